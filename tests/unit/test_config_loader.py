"""
Unit tests for configuration loading and admission bounds.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from l2a_ondemand.domain.exceptions import ConfigurationError
from l2a_ondemand.infrastructure.config import AdmissionBound, ConfigLoader, TransformerConfig

REQUIRED = {
    'service_url': "http://wps.example.org/wps",
    'user_id': "dhus",
    'processor_version': "02.05",
    'resolution': "60",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host environment out of the loader."""
    for env_name in ConfigLoader.ENV_VARS.values():
        monkeypatch.delenv(env_name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "l2a_ondemand.yaml"
    path.write_text(
        "service_url: http://wps.example.org/wps\n"
        "user_id: dhus\n"
        "processor_version: '02.05'\n"
        "resolution: 60\n"
        f"tmp_dir: {tmp_path / 'scratch'}\n"
        "date_start: '2017-01-01T00:00:00Z'\n"
        "date_stop: now-P30D\n"
        "max_downloads: 10\n",
        encoding='utf-8'
    )
    return path


class TestAdmissionBound:
    """Test AdmissionBound parsing and resolution."""

    def test_absolute(self):
        bound = AdmissionBound.parse("2018-03-05T10:00:00Z")

        assert bound.absolute == datetime(2018, 3, 5, 10, tzinfo=timezone.utc)
        assert bound.resolve() == bound.absolute

    def test_relative(self):
        bound = AdmissionBound.parse("now-P1DT12H")
        now = datetime(2020, 1, 10, tzinfo=timezone.utc)

        assert bound.offset == timedelta(days=1, hours=12)
        assert bound.resolve(now) == datetime(2020, 1, 8, 12, tzinfo=timezone.utc)

    def test_relative_slides_with_now(self):
        bound = AdmissionBound.parse("now-PT1H")
        first = datetime(2020, 1, 1, 12, tzinfo=timezone.utc)
        later = first + timedelta(days=1)

        assert bound.resolve(later) - bound.resolve(first) == timedelta(days=1)

    def test_bare_now(self):
        now = datetime(2020, 1, 1, tzinfo=timezone.utc)

        assert AdmissionBound.parse("now").resolve(now) == now

    @pytest.mark.parametrize("value", ["now+P1D", "now-", "now-30 days", "2018-03-05", "tomorrow"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            AdmissionBound.parse(value)

    def test_exactly_one_form(self):
        with pytest.raises(ValueError):
            AdmissionBound()


class TestTransformerConfig:
    """Test TransformerConfig validation."""

    def test_defaults(self):
        config = TransformerConfig(**REQUIRED)

        assert config.max_downloads == 16
        assert config.date_start is None
        assert config.date_stop is None
        assert isinstance(config.tmp_dir, Path)

    @pytest.mark.parametrize("field", sorted(REQUIRED))
    def test_required_fields(self, field):
        values = dict(REQUIRED, **{field: "  "})

        with pytest.raises(ConfigurationError, match=field):
            TransformerConfig(**values)

    @pytest.mark.parametrize("url", ["wps.example.org", "ftp://wps.example.org", "http://"])
    def test_invalid_service_url(self, url):
        with pytest.raises(ConfigurationError):
            TransformerConfig(**dict(REQUIRED, service_url=url))

    @pytest.mark.parametrize("resolution", ["sixty", "0", "-10"])
    def test_invalid_resolution(self, resolution):
        with pytest.raises(ConfigurationError):
            TransformerConfig(**dict(REQUIRED, resolution=resolution))

    def test_invalid_max_downloads(self):
        with pytest.raises(ConfigurationError):
            TransformerConfig(**REQUIRED, max_downloads=0)

    def test_inverted_absolute_window(self):
        with pytest.raises(ConfigurationError):
            TransformerConfig(
                **REQUIRED,
                date_start=AdmissionBound.parse("2019-01-01T00:00:00Z"),
                date_stop=AdmissionBound.parse("2018-01-01T00:00:00Z"),
            )


class TestConfigLoader:
    """Test ConfigLoader."""

    def test_load_from_file(self, config_file, tmp_path):
        config = ConfigLoader(config_file).load()

        assert config.service_url == "http://wps.example.org/wps"
        assert config.processor_version == "02.05"
        assert config.resolution == "60"
        assert config.tmp_dir == tmp_path / "scratch"
        assert config.date_start.absolute == datetime(2017, 1, 1, tzinfo=timezone.utc)
        assert config.date_stop.offset == timedelta(days=30)
        assert config.max_downloads == 10

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv('L2A_USER_ID', "operator")
        monkeypatch.setenv('L2A_MAX_DOWNLOADS', "5")

        config = ConfigLoader(config_file).load()

        assert config.user_id == "operator"
        assert config.max_downloads == 5

    def test_overrides_win(self, config_file, monkeypatch):
        monkeypatch.setenv('L2A_RESOLUTION', "20")

        config = ConfigLoader(config_file).load({'resolution': "10", 'user_id': None})

        assert config.resolution == "10"
        assert config.user_id == "dhus"

    def test_env_only(self, tmp_path, monkeypatch):
        monkeypatch.setenv('L2A_WPS_URL', "https://wps.example.org/wps")
        monkeypatch.setenv('L2A_USER_ID', "dhus")
        monkeypatch.setenv('L2A_PROCESSOR_VERSION', "02.05")
        monkeypatch.setenv('L2A_RESOLUTION', "60")
        monkeypatch.setenv('L2A_DATE_START', "now-P365D")

        config = ConfigLoader(tmp_path / "missing.yaml").load()

        assert config.service_url == "https://wps.example.org/wps"
        assert config.date_start.offset == timedelta(days=365)

    def test_missing_required(self, tmp_path):
        with pytest.raises(ConfigurationError, match="L2A_WPS_URL"):
            ConfigLoader(tmp_path / "missing.yaml").load()

    def test_malformed_bound(self, config_file):
        with pytest.raises(ConfigurationError, match="date_stop"):
            ConfigLoader(config_file).load({'date_stop': "last week"})

    def test_unquoted_yaml_timestamp(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "service_url: http://wps.example.org/wps\n"
            "user_id: dhus\n"
            "processor_version: '02.05'\n"
            "resolution: 60\n"
            "date_start: 2017-01-01T00:00:00Z\n",
            encoding='utf-8'
        )

        config = ConfigLoader(path).load()

        assert config.date_start.absolute == datetime(2017, 1, 1, tzinfo=timezone.utc)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding='utf-8')

        with pytest.raises(ConfigurationError):
            ConfigLoader(path).load()

    def test_invalid_max_downloads(self, config_file):
        with pytest.raises(ConfigurationError, match="max_downloads"):
            ConfigLoader(config_file).load({'max_downloads': "many"})

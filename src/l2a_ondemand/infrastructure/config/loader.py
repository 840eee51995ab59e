"""Configuration loading and validation."""

import os
import tempfile
import yaml
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Dict, Any
from urllib.parse import urlparse

from l2a_ondemand.domain.exceptions import ConfigurationError
from l2a_ondemand.shared.dates import parse_duration, parse_timestamp, utc_now
from l2a_ondemand.shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_DOWNLOADS = 16


@dataclass(frozen=True)
class AdmissionBound:
    """
    One end of the sensing date window accepted for transformation.

    Either an absolute instant, or an offset back from the current time
    that is resolved every time the window is checked.
    """

    absolute: Optional[datetime] = None
    offset: Optional[timedelta] = None

    def __post_init__(self):
        if (self.absolute is None) == (self.offset is None):
            raise ValueError("Exactly one of absolute or offset must be set")

    @classmethod
    def parse(cls, value: str) -> "AdmissionBound":
        """
        Parse 'YYYY-MM-DDTHH:MM:SSZ' or 'now-<ISO-8601 duration>'.

        Raises:
            ValueError: If the value matches neither form
        """
        text = value.strip()
        if text.lower().startswith("now"):
            rest = text[3:].strip()
            if not rest:
                return cls(offset=timedelta(0))
            if not rest.startswith("-"):
                raise ValueError(f"Expected 'now-<duration>', got: {value!r}")
            return cls(offset=parse_duration(rest[1:]))
        return cls(absolute=parse_timestamp(text))

    def resolve(self, now: Optional[datetime] = None) -> datetime:
        """Get the bound as an instant."""
        if self.absolute is not None:
            return self.absolute
        return (now or utc_now()) - self.offset

    def __str__(self) -> str:
        if self.absolute is not None:
            return self.absolute.isoformat()
        return f"now-{self.offset}"


@dataclass(frozen=True)
class TransformerConfig:
    """Settings of the L2A on-demand transformer."""

    # Web processing service
    service_url: str
    user_id: str
    processor_version: str
    resolution: str

    # Scratch storage for downloaded results
    tmp_dir: Path = Path(tempfile.gettempdir())

    # Sensing date window of accepted products
    date_start: Optional[AdmissionBound] = None
    date_stop: Optional[AdmissionBound] = None

    # Ceiling of concurrent result downloads
    max_downloads: int = DEFAULT_MAX_DOWNLOADS

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        for name in ("service_url", "user_id", "processor_version", "resolution"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{name} is required")

        parsed = urlparse(self.service_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Invalid service_url: {self.service_url}")

        if not self.resolution.isdigit() or int(self.resolution) <= 0:
            raise ConfigurationError(f"Resolution must be a positive number of metres, got: {self.resolution}")

        if not isinstance(self.tmp_dir, Path):
            raise ConfigurationError(f"tmp_dir must be a Path, got: {self.tmp_dir!r}")

        if self.max_downloads < 1:
            raise ConfigurationError(f"max_downloads must be positive, got: {self.max_downloads}")

        if (self.date_start is not None and self.date_stop is not None
                and self.date_start.absolute is not None and self.date_stop.absolute is not None
                and self.date_start.absolute > self.date_stop.absolute):
            raise ConfigurationError(
                f"date_start ({self.date_start}) is after date_stop ({self.date_stop})"
            )


class ConfigLoader:
    """Loads and validates configuration from YAML files and environment variables."""

    ENV_VARS = {
        'service_url': 'L2A_WPS_URL',
        'user_id': 'L2A_USER_ID',
        'processor_version': 'L2A_PROCESSOR_VERSION',
        'resolution': 'L2A_RESOLUTION',
        'tmp_dir': 'L2A_TMP_DIR',
        'date_start': 'L2A_DATE_START',
        'date_stop': 'L2A_DATE_STOP',
        'max_downloads': 'L2A_MAX_DOWNLOADS',
    }

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config loader.

        Args:
            config_path: Optional path to YAML config file
        """
        self.config_path = Path(config_path) if config_path else Path("l2a_ondemand.yaml")
        self._logger = get_logger(__name__)

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> TransformerConfig:
        """
        Load configuration from file and environment.

        Environment variables take precedence over the config file,
        runtime overrides take precedence over both.

        Returns:
            TransformerConfig instance

        Raises:
            ConfigurationError: If configuration is missing or invalid
        """
        config_dict: Dict[str, Any] = {}

        if self.config_path.exists():
            self._logger.info(f"Loading config from {self.config_path}")
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {self.config_path}: {e}") from e
            if not isinstance(yaml_config, dict):
                raise ConfigurationError(f"{self.config_path} must contain a mapping")
            config_dict.update(yaml_config)
        else:
            self._logger.warning(f"Config file not found: {self.config_path}")

        config_dict.update(self._load_from_env())

        if overrides:
            for k, v in overrides.items():
                if v is None:
                    continue
                config_dict[k] = v

        unknown = sorted(k for k in config_dict if k not in self.ENV_VARS)
        if unknown:
            self._logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        for name in ('service_url', 'user_id', 'processor_version', 'resolution'):
            if config_dict.get(name) in (None, ''):
                raise ConfigurationError(
                    f"{name} is required (set it in {self.config_path} or {self.ENV_VARS[name]})"
                )

        return self.build(config_dict)

    @staticmethod
    def build(values: Dict[str, Any]) -> TransformerConfig:
        """
        Build a config from raw values, coercing types.

        Raises:
            ConfigurationError: If a value cannot be converted
        """
        kwargs: Dict[str, Any] = {
            'service_url': str(values.get('service_url', '')).strip(),
            'user_id': str(values.get('user_id', '')).strip(),
            'processor_version': str(values.get('processor_version', '')).strip(),
            'resolution': str(values.get('resolution', '')).strip(),
        }

        if values.get('tmp_dir'):
            kwargs['tmp_dir'] = Path(values['tmp_dir'])

        for name in ('date_start', 'date_stop'):
            kwargs[name] = _to_bound(name, values.get(name))

        if values.get('max_downloads') is not None:
            try:
                kwargs['max_downloads'] = int(values['max_downloads'])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid max_downloads: {values['max_downloads']!r}") from e

        return TransformerConfig(**kwargs)

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config = {}
        for key, env_name in self.ENV_VARS.items():
            if value := os.getenv(env_name):
                env_config[key] = value
        return env_config


def _to_bound(name: str, value: Any) -> Optional[AdmissionBound]:
    if value is None or value == '':
        return None
    if isinstance(value, AdmissionBound):
        return value
    if isinstance(value, datetime):
        # YAML turns unquoted timestamps into datetimes
        return AdmissionBound(absolute=value if value.tzinfo else value.replace(tzinfo=timezone.utc))
    try:
        return AdmissionBound.parse(str(value))
    except ValueError as e:
        raise ConfigurationError(f"Invalid {name}: {e}") from e

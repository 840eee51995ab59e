"""
Unit tests for the transformer factory.
"""

import pytest
import requests
from unittest.mock import MagicMock, Mock

from l2a_ondemand.application.download_manager import DownloadManager
from l2a_ondemand.application.factories import TransformerFactory
from l2a_ondemand.application.transformer import L2ATransformer
from l2a_ondemand.domain.exceptions import ConfigurationError, TransformationError
from l2a_ondemand.infrastructure.config import TransformerConfig
from l2a_ondemand.infrastructure.wps.client import WebProcessClient


def make_config(tmp_dir, **overrides):
    values = dict(
        service_url="http://wps.example.org/wps",
        user_id="dhus",
        processor_version="02.05",
        resolution="60",
        tmp_dir=tmp_dir,
        max_downloads=3,
    )
    values.update(overrides)
    return TransformerConfig(**values)


@pytest.fixture
def session():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


def capabilities_response(content):
    response = Mock()
    response.status_code = 200
    response.content = content
    return response


class TestTransformerFactory:

    def test_components_share_session_and_metrics(self, tmp_path, session):
        factory = TransformerFactory(make_config(tmp_path / "scratch"), session=session)

        client = factory.create_client()
        downloads = factory.create_download_manager()

        assert isinstance(client, WebProcessClient)
        assert isinstance(downloads, DownloadManager)
        assert client.session is session
        assert client.metrics is factory.metrics
        assert downloads.metrics is factory.metrics
        downloads.shutdown()

    def test_create_transformer(self, tmp_path, session, load_fixture):
        session.get.return_value = capabilities_response(load_fixture("capabilities.xml"))
        scratch = tmp_path / "scratch"

        transformer = TransformerFactory(make_config(scratch), session=session).create_transformer()

        assert isinstance(transformer, L2ATransformer)
        assert scratch.is_dir()
        session.get.assert_called_once()

    def test_create_transformer_offline(self, tmp_path, session):
        transformer = TransformerFactory(make_config(tmp_path), session=session).create_transformer(
            load_capabilities=False
        )

        assert isinstance(transformer, L2ATransformer)
        session.get.assert_not_called()

    def test_unreachable_service(self, tmp_path, session):
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransformationError, match="Service not reachable"):
            TransformerFactory(make_config(tmp_path), session=session).create_transformer()

    def test_scratch_directory_is_a_file(self, tmp_path, session):
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("x")

        with pytest.raises(ConfigurationError):
            TransformerFactory(make_config(not_a_dir), session=session).create_transformer(
                load_capabilities=False
            )

"""
Unit tests for the web processing service client.
"""

import pytest
import requests
from unittest.mock import Mock, MagicMock
from urllib3.exceptions import ReadTimeoutError

from l2a_ondemand.domain.exceptions import ProtocolError, RemoteProcessError, ServiceUnavailable
from l2a_ondemand.domain.models import ProcessStatus
from l2a_ondemand.infrastructure.wps.client import WebProcessClient, is_read_timeout
from l2a_ondemand.shared.metrics import MetricsCollector

SERVICE_URL = "http://wps.example.org/wps"


def make_response(status_code=200, content=b"", reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.content = content
    response.reason = reason
    return response


@pytest.fixture
def session():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def formatter():
    formatter = Mock()
    formatter.format.return_value = "versionNumber=02.05;InputProducts=s2pdi://PDI=T1"
    return formatter


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def client(session, formatter, metrics):
    return WebProcessClient(SERVICE_URL, formatter, session=session, metrics=metrics)


class TestLoadCapabilities:

    def test_load(self, client, session, load_fixture):
        session.get.return_value = make_response(content=load_fixture("capabilities.xml"))

        descriptor = client.load_capabilities()

        assert descriptor.version == "1.0.0"
        assert client.descriptor is descriptor
        session.get.assert_called_once_with(
            SERVICE_URL,
            params={'SERVICE': 'WPS', 'REQUEST': 'GetCapabilities'},
            timeout=(30.0, 3.0),
        )

    def test_accept_header(self, client, session):
        assert 'xml' in session.headers['Accept']


class TestRetryPolicy:

    def test_recovers_after_gateway_timeouts(self, client, session, metrics, load_fixture):
        session.get.side_effect = [
            make_response(504, reason="Gateway Timeout"),
            make_response(504, reason="Gateway Timeout"),
            make_response(504, reason="Gateway Timeout"),
            make_response(content=load_fixture("status_started.xml")),
        ]

        status = client.query_status("http://wps.example.org/status/1234")

        assert status.progress == 6
        assert session.get.call_count == 4
        assert metrics.get_counter('wps_requests') == 4
        assert metrics.get_counter('wps_transient_failures') == 3

    def test_gives_up_after_five_attempts(self, client, session):
        session.get.return_value = make_response(504, reason="Gateway Timeout")

        with pytest.raises(ServiceUnavailable):
            client.query_status("http://wps.example.org/status/1234")

        assert session.get.call_count == 5

    def test_timeouts_are_retried(self, client, session, load_fixture):
        session.get.side_effect = [
            requests.Timeout("read timed out"),
            make_response(content=load_fixture("status_started.xml")),
        ]

        assert client.query_status("http://wps.example.org/status/1234").progress == 6
        assert session.get.call_count == 2

    def test_stalled_body_is_retried(self, client, session, metrics, load_fixture):
        stalled = requests.ConnectionError(
            ReadTimeoutError(None, "http://wps.example.org/status/1234", "Read timed out.")
        )
        session.get.side_effect = [
            stalled,
            make_response(content=load_fixture("status_started.xml")),
        ]

        assert client.query_status("http://wps.example.org/status/1234").progress == 6
        assert session.get.call_count == 2
        assert metrics.get_counter('wps_transient_failures') == 1

    def test_stalled_body_gives_up_as_unavailable(self, client, session):
        session.get.side_effect = requests.ConnectionError(
            ReadTimeoutError(None, "http://wps.example.org/status/1234", "Read timed out.")
        )

        with pytest.raises(ServiceUnavailable):
            client.query_status("http://wps.example.org/status/1234")

        assert session.get.call_count == 5

    def test_stalled_body_on_content_access(self, client, session, load_fixture):
        response = Mock()
        response.status_code = 200
        type(response).content = property(Mock(side_effect=requests.ConnectionError(
            ReadTimeoutError(None, "http://wps.example.org/status/1234", "Read timed out.")
        )))
        session.get.side_effect = [
            response,
            make_response(content=load_fixture("status_started.xml")),
        ]

        assert client.query_status("http://wps.example.org/status/1234").progress == 6

    def test_fatal_status_not_retried(self, client, session):
        session.get.return_value = make_response(500, reason="Internal Server Error")

        with pytest.raises(ProtocolError, match="500"):
            client.query_status("http://wps.example.org/status/1234")

        assert session.get.call_count == 1

    def test_connection_error_not_retried(self, client, session):
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(ProtocolError):
            client.load_capabilities()

        assert session.get.call_count == 1

    def test_custom_attempts(self, session, formatter):
        client = WebProcessClient(SERVICE_URL, formatter, session=session, max_attempts=2)
        session.get.return_value = make_response(504)

        with pytest.raises(ServiceUnavailable):
            client.query_status("http://wps.example.org/status/1234")

        assert session.get.call_count == 2


class TestSubmit:

    def test_submit_loads_capabilities_first(self, client, session, formatter, load_fixture):
        session.get.side_effect = [
            make_response(content=load_fixture("capabilities.xml")),
            make_response(content=load_fixture("execute_accepted.xml")),
        ]

        submission = client.submit("l2a", "T1")

        assert submission.status is ProcessStatus.ACCEPTED
        assert submission.monitoring_url == "http://wps.example.org/status/1234"
        formatter.format.assert_called_once_with("l2a", "T1")

        params = session.get.call_args_list[1][1]['params']
        assert params == {
            'SERVICE': 'WPS',
            'REQUEST': 'Execute',
            'VERSION': '1.0.0',
            'IDENTIFIER': 'l2a',
            'storeExecuteResponse': 'true',
            'status': 'true',
            'lineage': 'true',
            'DATAINPUTS': "versionNumber=02.05;InputProducts=s2pdi://PDI=T1",
        }

    def test_submit_reuses_descriptor(self, client, session, load_fixture):
        session.get.side_effect = [
            make_response(content=load_fixture("capabilities.xml")),
            make_response(content=load_fixture("execute_accepted.xml")),
            make_response(content=load_fixture("execute_accepted.xml")),
        ]

        client.load_capabilities()
        client.submit("l2a", "T1")
        client.submit("l2a", "T2")

        assert session.get.call_count == 3

    def test_submit_refused(self, client, session, load_fixture):
        session.get.side_effect = [
            make_response(content=load_fixture("capabilities.xml")),
            make_response(content=load_fixture("execute_failed.xml")),
        ]

        with pytest.raises(RemoteProcessError, match="Unknown tile"):
            client.submit("l2a", "T1")


class TestQueryStatus:

    def test_bare_get_on_monitoring_url(self, client, session, load_fixture):
        session.get.return_value = make_response(content=load_fixture("status_succeeded.xml"))

        status = client.query_status("http://wps.example.org/status/1234")

        assert status.output == "http://host/result.tar"
        session.get.assert_called_once_with(
            "http://wps.example.org/status/1234", params=None, timeout=(30.0, 3.0)
        )

    def test_malformed_body(self, client, session):
        session.get.return_value = make_response(content=b"not xml")

        with pytest.raises(ProtocolError):
            client.query_status("http://wps.example.org/status/1234")


class TestIsReadTimeout:

    def test_wrapped_read_timeout(self):
        error = requests.ConnectionError(ReadTimeoutError(None, "http://wps", "Read timed out."))

        assert is_read_timeout(error)

    def test_chained_read_timeout(self):
        try:
            try:
                raise ReadTimeoutError(None, "http://wps", "Read timed out.")
            except ReadTimeoutError as inner:
                raise requests.ConnectionError("Read timed out.") from inner
        except requests.ConnectionError as error:
            assert is_read_timeout(error)

    def test_refused_connection(self):
        assert not is_read_timeout(requests.ConnectionError("Connection refused"))

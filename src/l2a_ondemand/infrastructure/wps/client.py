"""
Web processing service client implementation.

Infrastructure layer for the Sentinel-2 WPS integration.
"""

import logging
from typing import Dict, Optional

import requests
from requests.exceptions import RequestException, Timeout
from urllib3.exceptions import ReadTimeoutError

from l2a_ondemand.domain.exceptions import ProtocolError, ServiceUnavailable
from l2a_ondemand.domain.models import (
    RemoteJobStatus,
    RemoteJobSubmission,
    ServiceDescriptor,
)
from l2a_ondemand.infrastructure.wps import responses
from l2a_ondemand.infrastructure.wps.parameters import DataInputsFormatter
from l2a_ondemand.shared.logging import get_logger
from l2a_ondemand.shared.metrics import MetricsCollector
from l2a_ondemand.shared.retry import RetryStrategy

# main http parameters
PARAM_SERVICE = "SERVICE"
PARAM_REQUEST = "REQUEST"
PARAM_VERSION = "VERSION"
PARAM_IDENTIFIER = "IDENTIFIER"
PARAM_DATA_INPUTS = "DATAINPUTS"

# asynchronous execution flags
PARAM_STORE_EXECUTE_RESPONSE = "storeExecuteResponse"
PARAM_STATUS = "status"
PARAM_LINEAGE = "lineage"

SERVICE_WPS = "WPS"
REQUEST_CAPABILITIES = "GetCapabilities"
REQUEST_EXECUTE = "Execute"

MAX_ATTEMPTS = 5
CONNECT_TIMEOUT = 30.0
READ_TIMEOUT = 3.0

# The gateway in front of the service answers this while the backend is busy
TRANSIENT_STATUS_CODES = (504,)


def is_read_timeout(error: BaseException) -> bool:
    """
    Check if a request failed because the server stalled while sending the body.

    requests reports such a timeout as a ConnectionError wrapping
    urllib3's ReadTimeoutError rather than as a Timeout.
    """
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        if isinstance(error, ReadTimeoutError):
            return True
        if any(isinstance(arg, ReadTimeoutError) for arg in getattr(error, 'args', ())):
            return True
        error = error.__cause__ or error.__context__
    return False


class WebProcessClient:
    """
    Client of the Sentinel-2 web processing service.

    Every request is a GET. Timeouts and gateway timeouts are retried
    up to ``max_attempts`` times without delay, any other failure is
    reported at once.
    """

    def __init__(
        self,
        service_url: str,
        formatter: DataInputsFormatter,
        session: Optional[requests.Session] = None,
        metrics: Optional[MetricsCollector] = None,
        max_attempts: int = MAX_ATTEMPTS,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the client.

        Args:
            service_url: Endpoint of the service (capabilities and execute requests)
            formatter: Builds the DATAINPUTS of execute requests
            session: HTTP session (a new one is created if None)
            metrics: Collector for request counters
            max_attempts: Attempts per request when failures are transient
            connect_timeout: Connect timeout per attempt, in seconds
            read_timeout: Read timeout per attempt, in seconds
            logger: Logger instance
        """
        self.service_url = service_url
        self.formatter = formatter
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.metrics = metrics or MetricsCollector()
        self.logger = logger or get_logger(__name__)
        self.descriptor: Optional[ServiceDescriptor] = None

        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'text/xml, application/xml',
        })

        self._retry = RetryStrategy(
            max_attempts=max_attempts,
            retry_on=(ServiceUnavailable,),
            on_retry=self._on_transient_failure,
        )

    def load_capabilities(self) -> ServiceDescriptor:
        """
        Describe the service, and remember the protocol version it speaks.

        Raises:
            ServiceUnavailable: If the service keeps timing out
            ProtocolError: On a fatal failure or a malformed response
        """
        self.logger.debug(f"Loading web process service at: {self.service_url}")
        body = self._request(self.service_url, {
            PARAM_SERVICE: SERVICE_WPS,
            PARAM_REQUEST: REQUEST_CAPABILITIES,
        })
        descriptor = responses.decode_capabilities(responses.parse_document(body), self.service_url)
        self.descriptor = descriptor
        self.logger.info(f"Web process service loaded: {descriptor}")
        return descriptor

    def submit(self, process_id: str, tile_id: str) -> RemoteJobSubmission:
        """
        Request an asynchronous execution of a process on a product tile.

        Returns:
            Submission carrying the URL to monitor the execution

        Raises:
            RemoteProcessError: If the service refuses the execution
            ServiceUnavailable: If the service keeps timing out
            ProtocolError: On a fatal failure or a malformed response
        """
        data_inputs = self.formatter.format(process_id, tile_id)
        version = (self.descriptor or self.load_capabilities()).version

        body = self._request(self.service_url, {
            PARAM_SERVICE: SERVICE_WPS,
            PARAM_REQUEST: REQUEST_EXECUTE,
            PARAM_VERSION: version,
            PARAM_IDENTIFIER: process_id,
            PARAM_STORE_EXECUTE_RESPONSE: "true",
            PARAM_STATUS: "true",
            PARAM_LINEAGE: "true",
            PARAM_DATA_INPUTS: data_inputs,
        })
        submission = responses.decode_execute_response(responses.parse_document(body))

        self.logger.info(
            f"Process '{process_id}' accepted for {tile_id}, monitoring at {submission.monitoring_url}"
        )
        return submission

    def query_status(self, monitoring_url: str) -> RemoteJobStatus:
        """
        Get the status of a process execution.

        Raises:
            ServiceUnavailable: If the service keeps timing out
            ProtocolError: On a fatal failure or a malformed response
        """
        body = self._request(monitoring_url)
        status = responses.decode_status(responses.parse_document(body))
        self.logger.debug(f"Execution {monitoring_url}: {status.status.name} ({status.progress}%)")
        return status

    def _request(self, url: str, params: Optional[Dict[str, str]] = None) -> bytes:
        """
        Perform a GET request, retrying transient failures.

        Returns:
            Response body
        """
        try:
            return self._retry.execute(self._perform_query, url, params)
        except ServiceUnavailable as e:
            self.logger.warning(f"Giving up on {url} after {self._retry.max_attempts} attempts: {e}")
            raise ServiceUnavailable(
                f"Cannot reach service at {url} after {self._retry.max_attempts} attempts: {e}"
            ) from e

    def _perform_query(self, url: str, params: Optional[Dict[str, str]]) -> bytes:
        """
        Perform a single GET request.

        Raises:
            ServiceUnavailable: On a timeout or a transient HTTP status
            ProtocolError: On any other failure
        """
        self.metrics.increment_counter('wps_requests')
        self.logger.debug(f"Performing request: {url} {params or ''}")

        try:
            response = self.session.get(
                url,
                params=params,
                timeout=(self.connect_timeout, self.read_timeout),
            )
            # the body is read here when the session streams
            body = response.content
        except Timeout as e:
            raise ServiceUnavailable(f"Web process service is not responding: {e}") from e
        except RequestException as e:
            if is_read_timeout(e):
                raise ServiceUnavailable(f"Web process service stopped responding: {e}") from e
            raise ProtocolError(f"Cannot reach service at {url}: {e}") from e

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise ServiceUnavailable(
                f"Web process service raised non-critical status "
                f"({response.status_code}): {response.reason}"
            )
        if not 200 <= response.status_code < 300:
            raise ProtocolError(
                f"Web process service raised an unexpected status "
                f"({response.status_code}): {response.reason}"
            )

        return body

    def _on_transient_failure(self, attempt: int, error: Exception) -> None:
        self.metrics.increment_counter('wps_transient_failures')
        self.logger.debug(f"Non-critical failure on attempt {attempt}: {error}, retrying")

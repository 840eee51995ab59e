"""Sentinel-2 L1C to L2A on-demand transformation."""

from datetime import datetime
from typing import Callable, List, Mapping, Optional

from l2a_ondemand.domain.exceptions import (
    DownloadFailure,
    DownloadInterrupted,
    EligibilityRejected,
    ServiceUnavailable,
    TransformationError,
    WebProcessError,
)
from l2a_ondemand.domain.models import JobStatus, JobView, ProcessStatus
from l2a_ondemand.domain.protocols import IDownloadManager, IWebProcessClient
from l2a_ondemand.infrastructure.config.loader import TransformerConfig
from l2a_ondemand.infrastructure.wps.parameters import L2A_PROCESS
from l2a_ondemand.shared.dates import SENSING_DATE_FORMATS, parse_timestamp, utc_now
from l2a_ondemand.shared.logging import get_logger

logger = get_logger(__name__)

TRANSFORMER_NAME = "L2AOnDemand"
TRANSFORMER_DESCRIPTION = "Generate a new product Sentinel-2 L2A from a Sentinel-2 L1C"

# product metadata used by the eligibility rules
ATTRIBUTE_SATELLITE = "Satellite name"
ATTRIBUTE_PRODUCT_TYPE = "Product type"
ATTRIBUTE_TILE_ID = "Level-1C PDI Identifier"
ATTRIBUTE_SENSING_STOP = "Sensing stop"

SENTINEL_2 = "Sentinel-2"
L1C_PRODUCT_TYPE = "S2MSI1C"

TOO_YOUNG_MESSAGE = (
    "The corresponding Level-2 product will be soon online as output of the nominal "
    "systematic processing flow. No dedicated On-Demand order is submitted. "
    "Please check the product availability later."
)

# remote execution status -> job status, once no download is involved
_JOB_STATUS = {
    ProcessStatus.ACCEPTED: JobStatus.RUNNING,
    ProcessStatus.STARTED: JobStatus.RUNNING,
    ProcessStatus.FAILED: JobStatus.FAILED,
}


class L2ATransformer:
    """
    Drives L2A reprocessing orders for the hosting platform.
    Implements ITransformer protocol.

    A job is RUNNING while the remote process runs, and stays RUNNING
    after the process succeeded until its result is downloaded into the
    scratch directory; only then is it COMPLETED. The opaque state handed
    to the host is the URL monitoring the remote execution.
    """

    def __init__(
        self,
        config: TransformerConfig,
        client: IWebProcessClient,
        downloads: IDownloadManager,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Args:
            config: Transformer configuration (admission window)
            client: Web processing service client
            downloads: Registry of result downloads
            clock: Current UTC time, used to resolve relative admission bounds
        """
        self._config = config
        self._client = client
        self._downloads = downloads
        self._clock = clock
        self._logger = get_logger(__name__)

    @property
    def name(self) -> str:
        return TRANSFORMER_NAME

    @property
    def description(self) -> str:
        return TRANSFORMER_DESCRIPTION

    def parameters(self) -> List[str]:
        """This transformation takes no parameters."""
        return []

    def is_transformable(
        self,
        metadata: Mapping[str, str],
        parameters: Optional[Mapping[str, str]] = None
    ) -> None:
        """
        Check that a product can be transformed.

        Raises:
            EligibilityRejected: With the reason the product is refused
        """
        if parameters:
            raise EligibilityRejected("This transformer takes no parameters.")

        if metadata.get(ATTRIBUTE_SATELLITE) != SENTINEL_2:
            raise EligibilityRejected("Product is not a Sentinel-2 product.")

        if metadata.get(ATTRIBUTE_PRODUCT_TYPE) != L1C_PRODUCT_TYPE:
            raise EligibilityRejected("Product is not a Sentinel-2 L1C product.")

        if ATTRIBUTE_TILE_ID not in metadata:
            raise EligibilityRejected(f"Product attribute missing: {ATTRIBUTE_TILE_ID}")

        try:
            sensing_stop = parse_timestamp(metadata.get(ATTRIBUTE_SENSING_STOP) or "", SENSING_DATE_FORMATS)
        except ValueError:
            raise EligibilityRejected("Cannot parse product sensing date")

        now = self._clock()

        if self._config.date_start is not None:
            limit_start = self._config.date_start.resolve(now)
            if sensing_stop < limit_start:
                self._logger.debug(f"product: {sensing_stop} -- limit start: {limit_start} (too old)")
                raise EligibilityRejected("Product is too old to allow its transformation.")

        if self._config.date_stop is not None:
            limit_end = self._config.date_stop.resolve(now)
            if sensing_stop > limit_end:
                self._logger.debug(f"product: {sensing_stop} -- limit end: {limit_end} (too young)")
                raise EligibilityRejected(TOO_YOUNG_MESSAGE)

    def check_eligible(
        self,
        metadata: Mapping[str, str],
        parameters: Optional[Mapping[str, str]] = None
    ) -> Optional[str]:
        """Return None if the product can be transformed, else the reason why not."""
        try:
            self.is_transformable(metadata, parameters)
        except EligibilityRejected as e:
            return e.reason
        return None

    def submit(
        self,
        job_id: str,
        metadata: Mapping[str, str],
        parameters: Optional[Mapping[str, str]] = None
    ) -> JobView:
        """
        Order the reprocessing of a product.

        Parameters are ignored, this transformation takes none.

        Raises:
            TransformationError: If the order could not be placed
        """
        tile_id = metadata.get(ATTRIBUTE_TILE_ID)
        if not tile_id:
            raise TransformationError(f"Product attribute missing: {ATTRIBUTE_TILE_ID}")

        try:
            submission = self._client.submit(L2A_PROCESS, tile_id)
        except WebProcessError as e:
            raise TransformationError(f"Could not start transformation '{job_id}': {e}") from e

        self._logger.info(
            f"Transformation '{job_id}' submitted at {submission.creation_time.isoformat()}"
        )
        return JobView(JobStatus.RUNNING, None, submission.monitoring_url)

    def poll(self, job_id: str, state: Optional[str]) -> JobView:
        """
        Get the current state of a transformation.

        Args:
            job_id: Transformation identifier
            state: Monitoring URL returned by :meth:`submit`

        Raises:
            TransformationError: If the status or the result cannot be obtained
        """
        if state is None:
            raise TransformationError("Execution status URL cannot be null")

        try:
            if self._downloads.has(job_id):
                return self._download_view(job_id, state)
            return self._remote_view(job_id, state)

        except ServiceUnavailable as e:
            self._logger.warning(f"Could not retrieve status of transformation '{job_id}': {e}")
            self._logger.warning(f"Transformation '{job_id}' assumed RUNNING")
            return JobView(JobStatus.RUNNING, None, state)
        except WebProcessError as e:
            raise TransformationError(f"Could not handle status of transformation '{job_id}': {e}") from e
        except DownloadInterrupted:
            self._logger.debug(
                f"Download interrupted for transformation '{job_id}' and should start again next run"
            )
            self._downloads.remove(job_id)
            return JobView(JobStatus.RUNNING, None, state)
        except DownloadFailure as e:
            raise TransformationError(
                f"Could not download or extract result of transformation '{job_id}': {e}"
            ) from e

    def terminate(self, job_id: str) -> None:
        """Forget the result download of a transformation, if any. Never raises."""
        try:
            self._downloads.remove(job_id)
        except Exception:
            self._logger.error(f"Could not terminate transformation '{job_id}'", exc_info=True)
            return
        self._logger.debug(f"Transformation '{job_id}' terminated")

    def _download_view(self, job_id: str, state: str) -> JobView:
        if not self._downloads.is_done(job_id):
            return JobView(JobStatus.RUNNING, None, state)
        return JobView(JobStatus.COMPLETED, self._downloads.result(job_id), state)

    def _remote_view(self, job_id: str, state: str) -> JobView:
        status = self._client.query_status(state)

        if status.status is ProcessStatus.SUCCEEDED:
            self._downloads.start(job_id, status.output)
            return JobView(JobStatus.RUNNING, None, state)

        job_status = _JOB_STATUS.get(status.status, JobStatus.UNKNOWN)
        if job_status is JobStatus.UNKNOWN:
            self._logger.info(f"Transformation '{job_id}' in remote state {status.status.name}")
        return JobView(job_status, None, state)

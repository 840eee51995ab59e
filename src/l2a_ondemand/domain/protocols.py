"""Protocol definitions for dependency inversion."""

from pathlib import Path
from typing import Protocol, List, Mapping, Optional

from .models import (
    JobView,
    RemoteJobStatus,
    RemoteJobSubmission,
    ServiceDescriptor,
)


class IWebProcessClient(Protocol):
    """Interface for the remote web processing service."""

    def load_capabilities(self) -> ServiceDescriptor:
        """Describe the service."""
        ...

    def submit(self, process_id: str, tile_id: str) -> RemoteJobSubmission:
        """Request an asynchronous process execution."""
        ...

    def query_status(self, monitoring_url: str) -> RemoteJobStatus:
        """Get the status of a process execution."""
        ...


class IResultFetcher(Protocol):
    """Interface for materializing a remote result archive locally."""

    def fetch(self, source_url: str) -> Path:
        """Download and unpack the result, return the local file."""
        ...


class IDownloadManager(Protocol):
    """Interface for the keyed background download registry."""

    def start(self, job_id: str, source_url: str) -> bool:
        """Start a download for the job unless one is already registered."""
        ...

    def has(self, job_id: str) -> bool:
        """Check if a download is registered for the job."""
        ...

    def is_done(self, job_id: str) -> bool:
        """Check if the job's download has finished (successfully or not)."""
        ...

    def result(self, job_id: str, timeout: Optional[float] = None) -> str:
        """Wait for the job's download and return the local file URI."""
        ...

    def remove(self, job_id: str) -> None:
        """Stop tracking the job's download."""
        ...


class ITransformer(Protocol):
    """Contract the hosting platform uses to drive a transformation."""

    @property
    def name(self) -> str:
        ...

    @property
    def description(self) -> str:
        ...

    def parameters(self) -> List[str]:
        """Names of the parameters this transformation accepts."""
        ...

    def check_eligible(
        self,
        metadata: Mapping[str, str],
        parameters: Optional[Mapping[str, str]] = None
    ) -> Optional[str]:
        """Return None if the product can be transformed, else the reason why not."""
        ...

    def submit(
        self,
        job_id: str,
        metadata: Mapping[str, str],
        parameters: Optional[Mapping[str, str]] = None
    ) -> JobView:
        """Start a transformation."""
        ...

    def poll(self, job_id: str, state: Optional[str]) -> JobView:
        """Get the current state of a transformation."""
        ...

    def terminate(self, job_id: str) -> None:
        """Forget any local work attached to a transformation."""
        ...

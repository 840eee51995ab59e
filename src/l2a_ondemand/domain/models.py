"""Domain models for the L2A on-demand transformer."""

from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, Tuple


class ProcessStatus(Enum):
    """Status of a process execution, keyed by its wire tag name."""

    ACCEPTED = "ProcessAccepted"
    STARTED = "ProcessStarted"
    PAUSED = "ProcessPaused"
    SUCCEEDED = "ProcessSucceeded"
    FAILED = "ProcessFailed"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "ProcessStatus":
        """Map a status element name to a status; unmatched names are UNKNOWN."""
        return _STATUS_BY_TAG.get(tag, cls.UNKNOWN)


_STATUS_BY_TAG = {
    status.value: status
    for status in ProcessStatus
    if status is not ProcessStatus.UNKNOWN
}


class JobStatus(Enum):
    """Job lifecycle as seen by the host."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ServiceDescriptor:
    """Identification of a web processing service."""

    url: str
    label: str
    description: str
    version: str
    processes: Tuple[str, ...] = ()

    def offers(self, process_id: str) -> bool:
        """Check if the service advertises the given process."""
        return process_id in self.processes

    def __str__(self) -> str:
        return f"{self.label} (WPS {self.version}) at {self.url}"


@dataclass(frozen=True)
class RemoteJobSubmission:
    """Acknowledgement of a process execution request."""

    status: ProcessStatus
    creation_time: datetime
    monitoring_url: str


@dataclass(frozen=True)
class RemoteJobStatus:
    """Status of a process execution at the time it was queried."""

    status: ProcessStatus
    progress: int
    output: Optional[str] = None

    def __post_init__(self):
        if self.progress != -1 and not 0 <= self.progress <= 100:
            raise ValueError(f"Progress out of range: {self.progress}")
        if self.status is ProcessStatus.SUCCEEDED and not self.output:
            raise ValueError("A succeeded execution must carry an output")


@dataclass
class DownloadTask:
    """Background download of a job result."""

    job_id: str
    source_url: str
    future: Future
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def done(self) -> bool:
        return self.future.done()

    def __str__(self) -> str:
        state = "done" if self.done else "running"
        return (
            f"Download of '{self.job_id}' from {self.source_url} "
            f"({state}, registered {self.started_at:%Y-%m-%d %H:%M:%S})"
        )


@dataclass(frozen=True)
class JobView:
    """Job state handed back to the host after each call."""

    status: JobStatus
    result_location: Optional[str] = None
    state: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not JobStatus.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict for printing."""
        return {
            'status': self.status.value,
            'result_location': self.result_location,
            'state': self.state,
        }

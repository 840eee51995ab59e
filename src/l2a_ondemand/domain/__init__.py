"""Domain layer package."""

from .models import (
    ProcessStatus,
    JobStatus,
    ServiceDescriptor,
    RemoteJobSubmission,
    RemoteJobStatus,
    DownloadTask,
    JobView,
)
from .exceptions import (
    DomainException,
    ConfigurationError,
    WebProcessError,
    ProtocolError,
    ServiceUnavailable,
    RemoteProcessError,
    EligibilityRejected,
    DownloadFailure,
    DownloadInterrupted,
    TransformationError,
)
from .protocols import (
    IWebProcessClient,
    IResultFetcher,
    IDownloadManager,
    ITransformer,
)

__all__ = [
    # Models
    "ProcessStatus",
    "JobStatus",
    "ServiceDescriptor",
    "RemoteJobSubmission",
    "RemoteJobStatus",
    "DownloadTask",
    "JobView",
    # Exceptions
    "DomainException",
    "ConfigurationError",
    "WebProcessError",
    "ProtocolError",
    "ServiceUnavailable",
    "RemoteProcessError",
    "EligibilityRejected",
    "DownloadFailure",
    "DownloadInterrupted",
    "TransformationError",
    # Protocols
    "IWebProcessClient",
    "IResultFetcher",
    "IDownloadManager",
    "ITransformer",
]

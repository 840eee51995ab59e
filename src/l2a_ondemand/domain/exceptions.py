"""Domain exceptions for the L2A on-demand transformer."""

from typing import Optional


class DomainException(Exception):
    """Base exception for all domain errors."""
    pass


class ConfigurationError(DomainException):
    """Raised when configuration is missing or invalid."""
    pass


class WebProcessError(DomainException):
    """Base exception for failures talking to the web processing service."""
    pass


class ProtocolError(WebProcessError):
    """Raised on a fatal HTTP status or an unexpected response shape."""
    pass


class ServiceUnavailable(WebProcessError):
    """Raised when the service keeps timing out or answering 504."""
    pass


class RemoteProcessError(WebProcessError):
    """Raised when the service explicitly reports that a process failed."""

    def __init__(self, code: Optional[str], message: Optional[str]):
        self.code = code
        self.message = message
        super().__init__(f"Process failed: {message} (code: {code})")


class EligibilityRejected(DomainException):
    """Raised when a product cannot be transformed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class DownloadFailure(DomainException):
    """Raised when a result download or unpacking fails."""
    pass


class DownloadInterrupted(DownloadFailure):
    """Raised when a background download was cancelled before finishing."""
    pass


class TransformationError(DomainException):
    """Raised to the host when a transformation cannot be submitted or polled."""
    pass

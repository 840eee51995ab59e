"""IO utilities package."""

from l2a_ondemand.infrastructure.io.archive_fetcher import ResultArchiveFetcher, payload_filename

__all__ = ["ResultArchiveFetcher", "payload_filename"]

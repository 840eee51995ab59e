"""Background downloads of transformation results."""

import threading
import time
from concurrent.futures import CancelledError, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from pathlib import Path
from typing import Dict, Optional

from l2a_ondemand.domain.exceptions import DownloadFailure, DownloadInterrupted
from l2a_ondemand.domain.models import DownloadTask
from l2a_ondemand.domain.protocols import IResultFetcher
from l2a_ondemand.shared.logging import get_logger
from l2a_ondemand.shared.metrics import MetricsCollector

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 16


class DownloadManager:
    """
    Registry of result downloads, at most one per job.
    Implements IDownloadManager protocol.

    Downloads run on a bounded thread pool; threads are started on demand
    up to ``max_workers`` and reused once idle. Callers observe a download
    through its job id and never block, except in :meth:`result`.
    """

    def __init__(
        self,
        fetcher: IResultFetcher,
        max_workers: int = DEFAULT_MAX_WORKERS,
        metrics: Optional[MetricsCollector] = None,
        thread_name_prefix: str = "l2a-download"
    ):
        self._fetcher = fetcher
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._downloads: Dict[str, DownloadTask] = {}
        self._lock = threading.Lock()
        self.metrics = metrics or MetricsCollector()
        self._logger = get_logger(__name__)

    def start(self, job_id: str, source_url: str) -> bool:
        """
        Start downloading the result of a job, unless already registered.

        Returns:
            True if a download was started, False if one was already registered
        """
        with self._lock:
            if job_id in self._downloads:
                return False
            future = self._executor.submit(self._download, job_id, source_url)
            self._downloads[job_id] = DownloadTask(job_id=job_id, source_url=source_url, future=future)

        self.metrics.increment_counter('downloads_started')
        self._logger.info(f"Starting result download of transformation '{job_id}' ({source_url})")
        self._logger.info(f"{self.active_count()} transformation downloads now running")
        return True

    def has(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._downloads

    def is_done(self, job_id: str) -> bool:
        task = self._get(job_id)
        return task is not None and task.done

    def result(self, job_id: str, timeout: Optional[float] = None) -> str:
        """
        Wait for the download of a job and return the local file URI.

        Raises:
            DownloadInterrupted: If the download was cancelled
            DownloadFailure: If no download is registered or it failed
            concurrent.futures.TimeoutError: If timeout expires first
        """
        task = self._get(job_id)
        if task is None:
            raise DownloadFailure(f"No download registered for transformation '{job_id}'")

        try:
            location = task.future.result(timeout)
        except FuturesTimeoutError:
            raise
        except CancelledError as e:
            raise DownloadInterrupted(f"Download of transformation '{job_id}' was cancelled") from e
        except DownloadFailure:
            self._logger.error(f"Failed result download of transformation '{job_id}'", exc_info=True)
            raise
        except Exception as e:
            self._logger.error(f"Failed result download of transformation '{job_id}'", exc_info=True)
            raise DownloadFailure(f"Download of transformation '{job_id}' failed: {e}") from e

        self._logger.info(f"Finished result download of transformation '{job_id}' ({location})")
        return location

    def remove(self, job_id: str) -> None:
        """Stop tracking a job's download; a running transfer goes on."""
        with self._lock:
            task = self._downloads.pop(job_id, None)
        if task is not None:
            self._logger.debug(f"Removed {task}")

    def active_count(self) -> int:
        """Number of registered downloads not finished yet."""
        with self._lock:
            return sum(1 for task in self._downloads.values() if not task.done)

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop the worker pool."""
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)

    def _get(self, job_id: str) -> Optional[DownloadTask]:
        with self._lock:
            return self._downloads.get(job_id)

    def _download(self, job_id: str, source_url: str) -> str:
        started = time.monotonic()
        try:
            path = Path(self._fetcher.fetch(source_url))
        except Exception:
            self.metrics.increment_counter('downloads_failed')
            raise
        finally:
            self.metrics.record_metric('download_duration', time.monotonic() - started)

        self.metrics.increment_counter('downloads_completed')
        self._logger.debug(f"Result of transformation '{job_id}' stored at {path}")
        return path.resolve().as_uri()

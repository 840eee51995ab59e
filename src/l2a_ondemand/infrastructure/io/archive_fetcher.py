"""Result archive download and unpacking."""

import os
import shutil
import tarfile
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from l2a_ondemand.domain.exceptions import DownloadFailure
from l2a_ondemand.shared.logging import get_logger

logger = get_logger(__name__)

# Leading directory entry of result archives, before the product itself
SKIPPED_ENTRIES = 1

# Products are packed as '<name>.SAFE.<ext>', they are stored as '<name>.<ext>'
PACKAGING_SUFFIX = ".SAFE."


def payload_filename(entry_name: str) -> str:
    """
    Derive the local file name of a payload entry.

    'S2_EPA__l2a_20180305_3/S2B_MSIL2A_X.SAFE.zip' gives 'S2B_MSIL2A_X.zip'.

    Raises:
        DownloadFailure: If the entry name does not denote a file
    """
    parts = [p for p in entry_name.split('/') if p]
    name = parts[1] if len(parts) > 1 else (parts[0] if parts else '')
    if name in ('', '.', '..'):
        raise DownloadFailure(f"Cannot derive a file name from archive entry '{entry_name}'")
    return name.replace(PACKAGING_SUFFIX, ".")


class ResultArchiveFetcher:
    """
    Streams a result tar archive and copies its product into a directory.
    Implements IResultFetcher protocol.

    The archive is never written to disk: entries are read as they come
    off the network. HTTP/HTTPS, file:// URLs and local paths are supported.
    """

    def __init__(
        self,
        output_dir: Path,
        session: Optional[requests.Session] = None,
        connect_timeout: float = 30.0,
        chunk_size: int = 1024 * 1024
    ):
        """
        Initialize the fetcher.

        Args:
            output_dir: Directory receiving the products
            session: HTTP session (a new one is created if None)
            connect_timeout: Connect timeout in seconds (reads never time out)
            chunk_size: Copy buffer size in bytes
        """
        self.output_dir = Path(output_dir)
        self.session = session or requests.Session()
        self.connect_timeout = connect_timeout
        self.chunk_size = chunk_size
        self._logger = get_logger(__name__)

    def fetch(self, source_url: str) -> Path:
        """
        Download the archive at source_url and extract its product.

        Returns:
            Path of the extracted product

        Raises:
            DownloadFailure: If download or extraction fails
        """
        try:
            parsed = urlparse(source_url)
            if parsed.scheme in ('http', 'https'):
                return self._fetch_http(source_url)

            local_path = self._local_path(source_url)
            if local_path is None:
                raise DownloadFailure(f"Unsupported URL scheme: {source_url}")
            if not local_path.is_file():
                raise DownloadFailure(f"File not found: {local_path}")

            self._logger.info(f"Unpacking local archive {local_path}")
            with open(local_path, 'rb') as stream:
                return self._unpack(stream, source_url)

        except DownloadFailure:
            raise
        except requests.RequestException as e:
            raise DownloadFailure(f"Failed to download {source_url}: {e}") from e
        except tarfile.TarError as e:
            raise DownloadFailure(f"Invalid result archive {source_url}: {e}") from e
        except Exception as e:
            raise DownloadFailure(f"Unexpected error downloading {source_url}: {e}") from e

    def _fetch_http(self, source_url: str) -> Path:
        self._logger.info(f"Downloading result archive {source_url}")

        response = self.session.get(source_url, stream=True, timeout=(self.connect_timeout, None))
        try:
            response.raise_for_status()
            raw = response.raw
            if hasattr(raw, 'decode_content'):
                # undo any transfer compression, keep the tar bytes
                raw.decode_content = True
            return self._unpack(raw, source_url)
        finally:
            response.close()

    @staticmethod
    def _local_path(source_url: str) -> Optional[Path]:
        parsed = urlparse(source_url)
        if parsed.scheme == 'file':
            return Path(url2pathname(parsed.path))
        if parsed.scheme == '' or (len(parsed.scheme) == 1 and os.name == 'nt'):
            return Path(source_url)
        return None

    def _unpack(self, stream: BinaryIO, source_url: str) -> Path:
        """Skip the structural entries and copy the payload entry."""
        with tarfile.open(fileobj=stream, mode='r|*') as archive:
            for _ in range(SKIPPED_ENTRIES):
                if archive.next() is None:
                    raise DownloadFailure(f"Result archive {source_url} is empty")

            entry = archive.next()
            if entry is None or not entry.isfile():
                raise DownloadFailure(f"Result archive {source_url} has no product entry")

            output = self.output_dir / payload_filename(entry.name)
            partial = output.with_name(output.name + '.part')
            self.output_dir.mkdir(parents=True, exist_ok=True)

            payload = archive.extractfile(entry)
            try:
                with open(partial, 'wb') as f:
                    shutil.copyfileobj(payload, f, self.chunk_size)
            except BaseException:
                partial.unlink(missing_ok=True)
                raise
            # overwrites a previous result of the same name
            os.replace(partial, output)

        self._logger.info(f"Extracted {entry.name} ({entry.size} bytes) to {output}")
        return output

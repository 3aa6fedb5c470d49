"""Footage Source - downloads source video into the job workspace."""

import shutil
import time
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import requests

from reelforge.core.config import Settings
from reelforge.core.exceptions import SourceFetchFailed


def source_suffix(url: str, default: str = ".mp4") -> str:
    """File extension of the footage URL path, e.g. '.mov' (default '.mp4')."""
    suffix = Path(urlparse(url).path).suffix
    if suffix and len(suffix) <= 6:
        return suffix.lower()
    return default


class HttpFootageSource:
    """Fetches footage by URL with requests; local paths and file:// URLs are copied."""

    def __init__(self, settings: Settings, logger: Any, session: Optional[requests.Session] = None):
        """
        Initialize footage source.

        Args:
            settings: Application settings
            logger: Logger instance
            session: Optional requests session (for connection reuse or tests)
        """
        self.settings = settings
        self.logger = logger
        self.session = session or requests.Session()
        self.chunk_size = getattr(settings, "download_chunk_size", 1024 * 1024)
        self.request_timeout = getattr(settings, "source_fetch_timeout_seconds", 30.0)

    def fetch(self, url: str, destination: Path, timeout: Optional[float] = None) -> Path:
        """
        Download footage to destination.

        Args:
            url: http(s) URL, file:// URL or local path
            destination: Target file path (already tracked by the caller)
            timeout: Total time budget for the download

        Returns:
            destination

        Raises:
            SourceFetchFailed: On a non-2xx status, transport error or missing local file
        """
        parsed = urlparse(url)
        if parsed.scheme in ("http", "https"):
            return self._download(url, destination, timeout)
        if parsed.scheme == "file":
            return self._copy_local(Path(unquote(parsed.path)), destination)
        if parsed.scheme == "" or len(parsed.scheme) == 1:
            # Bare paths, including Windows drive letters.
            return self._copy_local(Path(url), destination)
        raise SourceFetchFailed(f"Unsupported footage URL scheme '{parsed.scheme}': {url}")

    def _download(self, url: str, destination: Path, timeout: Optional[float]) -> Path:
        request_timeout = self.request_timeout
        if timeout is not None:
            request_timeout = max(0.1, min(request_timeout, timeout))
        started = time.monotonic()

        self.logger.info(f"Downloading source footage: {url}")
        try:
            with self.session.get(url, stream=True, timeout=request_timeout) as response:
                if not 200 <= response.status_code < 300:
                    raise SourceFetchFailed(
                        f"Failed to download source video ({response.status_code})",
                        status=response.status_code,
                    )
                written = 0
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        f.write(chunk)
                        written += len(chunk)
                        if timeout is not None and time.monotonic() - started > timeout:
                            raise SourceFetchFailed(f"Download of {url} exceeded {timeout:.1f}s")
        except requests.RequestException as e:
            raise SourceFetchFailed(f"Failed to download source video: {e}", cause=e) from e
        except OSError as e:
            raise SourceFetchFailed(f"Failed to write source video to {destination}: {e}", cause=e) from e

        if written == 0:
            raise SourceFetchFailed(f"Source video at {url} is empty", status=response.status_code)

        self.logger.info(f"Downloaded {written / (1024 * 1024):.1f}MB in {time.monotonic() - started:.2f}s")
        return destination

    def _copy_local(self, path: Path, destination: Path) -> Path:
        if not path.is_file():
            raise SourceFetchFailed(f"Source video not found: {path}")
        try:
            shutil.copyfile(path, destination)
        except OSError as e:
            raise SourceFetchFailed(f"Failed to copy source video {path}: {e}", cause=e) from e
        self.logger.info(f"Copied local source footage: {path}")
        return destination

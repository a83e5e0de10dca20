"""
Download Service.
Fetches playlists and XMLTV guides over HTTP(S) with bounded retry,
resume of partial files, and progress reporting.
"""
import logging
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, TypeVar
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, Field

from iptv_feeds.config import Settings, get_settings
from iptv_feeds.models.epg import EPGData
from iptv_feeds.services.epg_parser import EPGParser

logger = logging.getLogger(__name__)

# (bytes received so far, total bytes if known)
ProgressCallback = Callable[[int, Optional[int]], None]

T = TypeVar("T")


class DownloadError(RuntimeError):
    """Raised when a resource could not be fetched within the retry budget."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class RetryConfig(BaseModel):
    """Retry and transfer settings for one download."""
    max_attempts: int = Field(gt=0)
    retry_delay_ms: int = Field(ge=0)
    connect_timeout: float = Field(gt=0)
    read_timeout: float = Field(gt=0)
    chunk_size: int = Field(gt=0)
    user_agent: str

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryConfig":
        """Build the download policy from application settings."""
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.download_max_attempts,
            retry_delay_ms=settings.download_retry_delay_ms,
            connect_timeout=settings.download_connect_timeout,
            read_timeout=settings.download_read_timeout,
            chunk_size=settings.download_chunk_size,
            user_agent=settings.user_agent,
        )

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.read_timeout, connect=self.connect_timeout)


def _with_retries(
    url: str,
    config: RetryConfig,
    client: Optional[httpx.Client],
    action: Callable[[httpx.Client, int], T],
) -> T:
    """
    Run ``action`` until it succeeds or the attempt budget is spent.

    Any transport failure (connect, read, non-2xx status) or local I/O
    error counts as a failed attempt.
    """
    owns_client = client is None
    if owns_client:
        client = httpx.Client(follow_redirects=True)

    last_error: Exception | None = None
    try:
        for attempt in range(1, config.max_attempts + 1):
            try:
                logger.debug(f"GET {url} (attempt {attempt}/{config.max_attempts})")
                return action(client, attempt)
            except (httpx.HTTPError, OSError) as e:
                last_error = e
                if attempt < config.max_attempts:
                    logger.warning(
                        f"Download attempt {attempt}/{config.max_attempts} failed: {e}. "
                        f"Retrying in {config.retry_delay_ms}ms..."
                    )
                    time.sleep(config.retry_delay_ms / 1000)
    finally:
        if owns_client:
            client.close()

    logger.error(f"Download of {url} failed after {config.max_attempts} attempts")
    raise DownloadError(
        f"Download failed after {config.max_attempts} attempts: {last_error}",
        attempts=config.max_attempts,
    ) from last_error


def _request_headers(config: RetryConfig, offset: int = 0) -> dict[str, str]:
    # Identity encoding keeps gzip files byte-for-byte so they can be sniffed
    headers = {"User-Agent": config.user_agent, "Accept-Encoding": "identity"}
    if offset:
        headers["Range"] = f"bytes={offset}-"
    return headers


def download_to_file(
    url: str,
    destination: str | Path,
    config: RetryConfig,
    progress: Optional[ProgressCallback] = None,
    client: Optional[httpx.Client] = None,
) -> Path:
    """
    Stream a remote resource to a file.

    A retry that finds a partially written destination asks the server to
    resume from its current size; anything but a 206 response rewrites the
    file from the start.

    Args:
        url: Resource to download
        destination: File to write
        config: Retry and transfer settings
        progress: Called with (bytes so far, total if known) after each chunk
        client: Optional pre-configured HTTP client

    Returns:
        Path of the written file

    Raises:
        DownloadError: If every attempt failed
    """
    destination = Path(destination)
    logger.info(f"Downloading {url} to {destination}")

    def attempt_download(http: httpx.Client, attempt: int) -> int:
        offset = 0
        if attempt > 1 and destination.exists():
            offset = destination.stat().st_size

        with http.stream("GET", url, headers=_request_headers(config, offset),
                         timeout=config.timeout) as response:
            response.raise_for_status()

            if offset and response.status_code == 206:
                logger.info(f"Resuming download at byte {offset}")
                mode = "ab"
            else:
                mode, offset = "wb", 0

            length = response.headers.get("Content-Length", "")
            total = offset + int(length) if length.isdigit() else None

            received = offset
            with open(destination, mode) as f:
                for chunk in response.iter_bytes(config.chunk_size):
                    f.write(chunk)
                    received += len(chunk)
                    if progress:
                        progress(received, total)
        return received

    size = _with_retries(url, config, client, attempt_download)
    if progress:
        progress(size, size)

    logger.info(f"Downloaded {size / (1024 * 1024):.2f} MB from {url}")
    return destination


def download_text(
    url: str,
    config: RetryConfig,
    client: Optional[httpx.Client] = None,
) -> str:
    """Fetch a text resource (playlist) into memory with the same retry policy."""

    def attempt_fetch(http: httpx.Client, attempt: int) -> str:
        response = http.get(url, headers={"User-Agent": config.user_agent},
                            timeout=config.timeout)
        response.raise_for_status()
        return response.text

    text = _with_retries(url, config, client, attempt_fetch)
    logger.info(f"Fetched {len(text)} characters from {url}")
    return text


def cleanup_temp_file(file_path: Path) -> bool:
    """
    Safely delete a temporary file

    Returns:
        True if deleted successfully, False otherwise
    """
    if not file_path or not file_path.exists():
        return False

    try:
        file_path.unlink()
        logger.debug(f"Cleaned up temporary file: {file_path}")
        return True
    except OSError as e:
        logger.warning(f"Failed to delete temporary file {file_path}: {e}")
        return False


def download_and_parse(
    url: str,
    config: RetryConfig,
    progress: Optional[ProgressCallback] = None,
    client: Optional[httpx.Client] = None,
) -> EPGData:
    """
    Download an XMLTV guide to a temporary file and parse it.

    The temporary file is removed whether or not parsing succeeds.
    """
    suffix = ".xml.gz" if urlsplit(url).path.lower().endswith(".gz") else ".xml"
    with tempfile.NamedTemporaryFile(prefix="iptv_epg_", suffix=suffix, delete=False) as tmp:
        temp_path = Path(tmp.name)

    try:
        download_to_file(url, temp_path, config, progress=progress, client=client)
        return EPGParser().parse_file(temp_path)
    finally:
        cleanup_temp_file(temp_path)

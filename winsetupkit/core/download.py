"""
Installer download manager.

Streams installer binaries to disk with:
- Bounded per-request timeout
- A single retry with a short backoff
- Progress reporting (bytes, percentage, speed)

Retries beyond that are the orchestrator's concern.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

from winsetupkit.core.exceptions import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second

    def __str__(self) -> str:
        return format_progress(self)


def download_file(
    url: str,
    destination: Path,
    timeout: float = 15,
    max_retries: int = 1,
    backoff_seconds: float = 2.0,
    session: Optional[requests.Session] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
) -> Path:
    """
    Download file from URL to destination.

    Args:
        url: URL to download from
        destination: Local path to save file
        timeout: Per-request timeout in seconds
        max_retries: Retries after the first attempt
        backoff_seconds: Delay before each retry
        session: Optional requests session (a module-level get is used if None)
        progress_callback: Optional callback for progress updates

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If every attempt fails
        ValueError: If URL or destination is empty

    Example:
        >>> download_file("https://example.com/setup.exe", Path("tmp/git.exe"))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DownloadError(
            f"Cannot create download directory {destination.parent}: {e}"
        ) from e

    attempts = max_retries + 1
    for attempt in range(attempts):
        try:
            return _download_with_progress(
                url=url,
                destination=destination,
                timeout=timeout,
                session=session,
                progress_callback=progress_callback,
            )
        except (RequestException, OSError, DownloadError) as e:
            # Partial files are never resumed
            try:
                destination.unlink(missing_ok=True)
            except OSError:
                pass

            if attempt == attempts - 1:
                raise DownloadError(
                    f"Download failed after {attempts} attempt(s): {e}"
                ) from e

            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)

    raise DownloadError("Download failed for unknown reason")


def _download_with_progress(
    url: str,
    destination: Path,
    timeout: float,
    session: Optional[requests.Session],
    progress_callback: Optional[Callable[[DownloadProgress], None]],
) -> Path:
    logger.info(f"Downloading from {url}")

    getter = session.get if session is not None else requests.get
    response = getter(url, stream=True, timeout=timeout, allow_redirects=True)
    try:
        response.raise_for_status()

        content_length = response.headers.get("content-length")
        total_size = int(content_length) if content_length else 0

        downloaded = 0
        start_time = time.time()
        last_progress_time = start_time

        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)

                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or downloaded == total_size
                ):
                    elapsed = current_time - start_time
                    progress_callback(
                        DownloadProgress(
                            bytes_downloaded=downloaded,
                            total_bytes=total_size if total_size > 0 else downloaded,
                            percentage=(downloaded / total_size * 100)
                            if total_size > 0
                            else 0,
                            speed_bps=downloaded / elapsed if elapsed > 0 else 0,
                        )
                    )
                    last_progress_time = current_time
    finally:
        response.close()

    if downloaded == 0:
        raise DownloadError(f"Server returned an empty body for {url}")

    logger.info(f"Download complete: {destination} ({downloaded} bytes)")
    return destination


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> format_progress(DownloadProgress(52428800, 104857600, 50.0, 1048576))
        '50.0/100.0 MB (50.0%) at 1.0 MB/s'
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0 and progress.percentage > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s"
        )
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"

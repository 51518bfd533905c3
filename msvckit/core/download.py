"""
Network download manager with retry logic and streaming hashing.

This module provides the HTTP transport used by the payload cache and the
manifest caches:
- Streaming HTTP/HTTPS downloads with TLS verification
- SHA256 computed while the bytes are written
- Retry logic with exponential backoff for transient network errors
- Redirect resolution without following the redirect
"""

import hashlib
import logging
import time
from pathlib import Path
from typing import Optional

import requests
from requests.exceptions import ConnectionError, HTTPError, RequestException, Timeout

from msvckit import __version__
from msvckit.core.exceptions import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class StreamingHasher:
    """Compute a SHA256 digest incrementally for streaming downloads."""

    def __init__(self):
        self.hasher = hashlib.sha256()

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as lowercase hex string."""
        return self.hasher.hexdigest()


def create_session() -> requests.Session:
    """Create the HTTP session shared by one command invocation."""
    session = requests.Session()
    session.headers["User-Agent"] = f"msvckit/{__version__}"
    return session


def fetch_to_file(
    url: str,
    destination: Path,
    session: Optional[requests.Session] = None,
    timeout: int = 30,
    max_retries: int = 3,
) -> str:
    """
    Download `url` to `destination` and return the SHA256 of the bytes written.

    The destination is truncated on every attempt. Verification against an
    expected hash is left to the caller.

    Args:
        url: URL to download from
        destination: Local path to save file
        session: HTTP session (a new one is created if omitted)
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts

    Returns:
        Lowercase hex SHA256 of the downloaded content

    Raises:
        DownloadError: If download fails after retries
        ValueError: If URL is empty

    Example:
        >>> sha256 = fetch_to_file(url, Path("cache/foo.vsix.fetching"))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    session = session or create_session()

    for attempt in range(max_retries):
        try:
            return _stream_to_file(session, url, destination, timeout)
        except (Timeout, ConnectionError) as e:
            if attempt == max_retries - 1:
                raise DownloadError(
                    f"fetch '{url}' failed after {max_retries} attempts: {e}"
                ) from e

            backoff_seconds = 2**attempt
            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)
        except HTTPError as e:
            raise DownloadError(f"fetch '{url}': HTTP status {e.response.status_code}") from e
        except RequestException as e:
            raise DownloadError(f"fetch '{url}': {e}") from e

    raise DownloadError(f"fetch '{url}' failed for unknown reason")


def _stream_to_file(
    session: requests.Session, url: str, destination: Path, timeout: int
) -> str:
    logger.info(f"fetch: {url}")

    hasher = StreamingHasher()
    with session.get(url, stream=True, timeout=timeout, allow_redirects=True) as response:
        response.raise_for_status()
        try:
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        hasher.update(chunk)
        except OSError as e:
            raise DownloadError(f"writing to '{destination}': {e}") from e

    return hasher.finalize()


def resolve_redirect(
    url: str, session: Optional[requests.Session] = None, timeout: int = 30
) -> str:
    """
    Issue a GET without following redirects and return the `Location` target.

    Raises:
        DownloadError: If the response is not a redirect or has no Location
    """
    logger.info(f"resolving URL '{url}'...")
    session = session or create_session()

    try:
        response = session.get(url, allow_redirects=False, timeout=timeout)
    except RequestException as e:
        raise DownloadError(f"resolving '{url}': {e}") from e

    if response.is_redirect or 300 <= response.status_code < 400:
        location = response.headers.get("Location")
        if not location:
            raise DownloadError(f"redirect response from '{url}' missing Location header")
        return location

    raise DownloadError(
        f"GET '{url}' HTTP status {response.status_code} (expected redirect)"
    )


__all__ = [
    "CHUNK_SIZE",
    "StreamingHasher",
    "create_session",
    "fetch_to_file",
    "resolve_redirect",
]

"""Source I/O for OpenAPI documents: URLs, local files, and stdin.

This module is the only place that touches the network. The streaming
parser itself only ever sees text or a binary stream; fetching a remote
document, sniffing its format, and enforcing the caller-side size ceiling
all happen here.

Public helpers:

* :func:`detect_format` -- JSON vs YAML from a file name, content type, or
  the first characters of the document.
* :func:`check_file_size` -- size pre-check raising
  :class:`~specmaster.exceptions.SpecTooLargeError`.
* :func:`fetch_url_text` -- async HTTP(S) fetch via :mod:`httpx`.
* :func:`read_source_text` -- synchronous read of ``-`` (stdin), a URL, or
  a file path.
* :func:`format_bytes` -- human-readable byte counts for messages.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import httpx

from specmaster.exceptions import ConnectionError_, SpecReadError, SpecTooLargeError
from specmaster.models import DocumentFormat

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE_MB = 50
_FETCH_TIMEOUT = 30.0
_SNIFF_CHARS = 512


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def detect_format(
    name: Optional[str] = None,
    text: str = "",
    content_type: str = "",
) -> DocumentFormat:
    """Determine whether a document is JSON or YAML.

    The file extension wins when it is recognised (``.json``, ``.yaml``,
    ``.yml``), then the HTTP content type. Otherwise the trimmed text is
    sniffed: a leading ``{`` or ``[`` means JSON, a leading ``openapi:`` or
    ``swagger:`` means YAML, and anything else is treated as JSON.

    Args:
        name: File name, path, or URL of the document, if known.
        text: The document text, or at least its first few hundred characters.
        content_type: ``Content-Type`` header of an HTTP response.

    Returns:
        The detected :class:`~specmaster.models.DocumentFormat`.
    """
    if name:
        suffix = Path(name.split("?", 1)[0]).suffix.lower()
        if suffix == ".json":
            return DocumentFormat.JSON
        if suffix in (".yaml", ".yml"):
            return DocumentFormat.YAML

    if "json" in content_type:
        return DocumentFormat.JSON
    if "yaml" in content_type or "yml" in content_type:
        return DocumentFormat.YAML

    head = text[:_SNIFF_CHARS].lstrip("\ufeff \t\r\n")
    if head.startswith(("{", "[")):
        return DocumentFormat.JSON
    if head.startswith(("openapi:", "swagger:")):
        return DocumentFormat.YAML
    return DocumentFormat.JSON


def format_bytes(size: int) -> str:
    """Render *size* as ``B``, ``KB``, ``MB`` or ``GB`` with two decimals at most.

    Example::

        >>> format_bytes(1536)
        '1.5 KB'
    """
    if size <= 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB")
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def check_file_size(path: str | Path, max_size_mb: int = DEFAULT_MAX_FILE_SIZE_MB) -> int:
    """Verify that the file at *path* is not larger than *max_size_mb*.

    The streaming parser never rejects input on size; callers run this
    check first.

    Args:
        path: File to check.
        max_size_mb: Ceiling in mebibytes.

    Returns:
        The file size in bytes.

    Raises:
        SpecReadError: If the file does not exist or cannot be stat'ed.
        SpecTooLargeError: If the file exceeds the ceiling.
    """
    file_path = Path(path)
    try:
        size = file_path.stat().st_size
    except OSError as exc:
        raise SpecReadError(f"Cannot read spec file {path}: {exc}") from exc

    limit = max_size_mb * 1024 * 1024
    if size > limit:
        raise SpecTooLargeError(
            f"File too large: {format_bytes(size)} (max {format_bytes(limit)})"
        )
    return size


async def fetch_url_text(url: str, timeout: float = _FETCH_TIMEOUT) -> tuple[str, str]:
    """Fetch a document over HTTP(S).

    Args:
        url: The HTTP(S) URL to fetch. Redirects are followed.
        timeout: Request timeout in seconds.

    Returns:
        A ``(text, content_type)`` tuple.

    Raises:
        SpecReadError: If the server answers with a non-2xx status.
        ConnectionError_: On network-level failures.
    """
    logger.debug("Fetching %s", url)
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecReadError(
            f"HTTP {exc.response.status_code} fetching spec from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise ConnectionError_(f"Failed to fetch spec from {url}: {exc}") from exc

    return response.text, response.headers.get("content-type", "")


def read_source_text(source: str) -> tuple[str, DocumentFormat]:
    """Read a whole document from a URL, file path, or ``-`` (stdin).

    Used for sources that cannot be streamed from disk. Files are normally
    handed to :meth:`~specmaster.parser.stream.StreamingParser.parse_file`
    instead.

    Returns:
        A ``(text, format)`` tuple.

    Raises:
        SpecReadError: If the source cannot be read or is empty.
        ConnectionError_: On network-level failures for URLs.
    """
    if source == "-":
        try:
            text = sys.stdin.read()
        except OSError as exc:
            raise SpecReadError(f"Failed to read from stdin: {exc}") from exc
        name: Optional[str] = None
        content_type = ""
    elif is_url(source):
        try:
            response = httpx.get(source, timeout=_FETCH_TIMEOUT, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SpecReadError(
                f"HTTP {exc.response.status_code} fetching spec from {source}"
            ) from exc
        except httpx.RequestError as exc:
            raise ConnectionError_(f"Failed to fetch spec from {source}: {exc}") from exc
        text = response.text
        name = source
        content_type = response.headers.get("content-type", "")
    else:
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SpecReadError(f"Failed to read spec file {source}: {exc}") from exc
        name = path.name
        content_type = ""

    if not text.strip():
        raise SpecReadError(f"No content received from {source}")
    return text, detect_format(name, text, content_type)

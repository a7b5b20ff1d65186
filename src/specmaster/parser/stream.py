"""Stream orchestrator: drive the chunk scanner over a whole source.

:class:`StreamingParser` reads a document in fixed-size slices, feeds each
slice to the :mod:`~specmaster.parser.scanner`, keeps the emitted sections
in a :class:`SectionRing`, reports progress, and finally hands the sections
to the :mod:`~specmaster.parser.assembler`.

Everything runs as one cooperative task. After every slice the parser
yields to the event loop with ``await asyncio.sleep(0)``; file reads are
pushed to a worker thread with :func:`asyncio.to_thread` so a slow disk
never blocks the loop. A :class:`CancelToken` is checked at every yield
point.

Progress events follow a fixed stage sequence::

    initialization (0) -> parsing (0..90) -> assembling (90) -> complete (100)

and percentages never decrease. Within a stage, events are throttled by
:class:`ProgressThrottle`; a stage change and the final 100% always fire.

Example::

    import asyncio
    from specmaster.parser import StreamingParser

    result = asyncio.run(StreamingParser().parse_file("openapi.json"))
    print(result.metadata.parse_time, len(result.endpoints))
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import time
from collections import deque
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Callable, Iterator, Optional

from specmaster.exceptions import ParseCancelledError, SpecParseError, SpecReadError
from specmaster.models import (
    DocumentFormat,
    ParsedSection,
    ParseMetadata,
    ProgressEvent,
    ProgressStage,
    StreamOptions,
    StreamResult,
)
from specmaster.parser.assembler import assemble
from specmaster.parser.loader import detect_format, fetch_url_text, format_bytes
from specmaster.parser.scanner import ScanDiagnostics, finish, open_scan_session, scan

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

PARSING_SHARE = 90.0
_SNIFF_BYTES = 512


def _coerce_format(fmt: DocumentFormat | str) -> DocumentFormat:
    try:
        return DocumentFormat(fmt)
    except ValueError:
        raise SpecParseError(f"Unsupported document format: {fmt}") from None


class CancelToken:
    """Cooperative cancellation flag shared between a caller and a parse.

    Example::

        token = CancelToken()
        parser = StreamingParser(cancel_token=token)
        task = asyncio.create_task(parser.parse_file(path))
        ...
        token.cancel()  # the parse raises ParseCancelledError at its next yield
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason = "Parse cancelled"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "Parse cancelled") -> None:
        self._cancelled = True
        self._reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ParseCancelledError(self._reason)


class ProgressThrottle:
    """Rate-limit and sanitise progress events before they reach a callback.

    Percentages are clamped to ``[0, 100]`` and never go below the last
    delivered value. Consecutive events of the same stage closer together
    than *interval_ms* are dropped, except for 100%.

    Args:
        callback: Receiver of :class:`~specmaster.models.ProgressEvent`.
            ``None`` turns the throttle into a no-op.
        interval_ms: Minimum gap between two events of one stage.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        callback: Optional[ProgressCallback],
        interval_ms: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self._interval = interval_ms / 1000.0
        self._clock = clock
        self._last_stage: Optional[ProgressStage] = None
        self._last_time = 0.0
        self._last_percentage = 0.0

    @property
    def last_percentage(self) -> float:
        return self._last_percentage

    def emit(self, percentage: float, stage: ProgressStage, message: str) -> bool:
        """Deliver an event unless throttled. Returns whether it was delivered."""
        if self._callback is None:
            return False

        value = max(self._last_percentage, min(100.0, max(0.0, float(percentage))))
        now = self._clock()
        if (
            stage == self._last_stage
            and value < 100.0
            and now - self._last_time < self._interval
        ):
            return False

        self._last_stage = stage
        self._last_time = now
        self._last_percentage = value
        self._callback(ProgressEvent(percentage=value, stage=stage, message=message))
        return True


class SectionRing:
    """Retained sections with an explicit trim-to-capacity policy.

    Sections accumulate without bound until :meth:`trim` is called, which
    keeps only the *capacity* most recent ones. The orchestrator trims when
    its resident-memory estimate crosses the configured ceiling.
    """

    def __init__(self, capacity: int = 10) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._sections: deque[ParsedSection] = deque()
        self._retained_bytes = 0
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._sections)

    def __iter__(self) -> Iterator[ParsedSection]:
        return iter(self._sections)

    @property
    def retained_bytes(self) -> int:
        return self._retained_bytes

    def append(self, section: ParsedSection) -> None:
        self._sections.append(section)
        self._retained_bytes += section.byte_size

    def trim(self) -> int:
        """Drop all but the most recent ``capacity`` sections; return how many went."""
        removed = 0
        while len(self._sections) > self.capacity:
            section = self._sections.popleft()
            self._retained_bytes -= section.byte_size
            removed += 1
        self.dropped += removed
        return removed


class StreamingParser:
    """Chunked, cooperative parser for OpenAPI/Swagger documents.

    One instance may run several parses one after another; each parse
    opens its own scan session, so nothing leaks between runs.

    Args:
        options: Chunk size, memory ceiling and related knobs. Defaults to
            :class:`~specmaster.models.StreamOptions` defaults.
        progress_callback: Called with each delivered
            :class:`~specmaster.models.ProgressEvent`.
        cancel_token: Checked at every yield point.
        clock: Monotonic clock used for progress throttling.
    """

    def __init__(
        self,
        options: Optional[StreamOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.options = options or StreamOptions()
        self._progress_callback = progress_callback
        self._cancel_token = cancel_token
        self._clock = clock
        self.last_diagnostics: Optional[ScanDiagnostics] = None

    # ------------------------------------------------------------------ #
    # Public entry points
    # ------------------------------------------------------------------ #

    async def parse_text(
        self,
        text: str,
        name: Optional[str] = None,
        fmt: Optional[DocumentFormat | str] = None,
    ) -> StreamResult:
        """Parse an in-memory document, sliced into ``chunk_size`` characters.

        Args:
            text: The whole document.
            name: Optional file name or URL used for format detection.
            fmt: Explicit format, skipping detection.

        Raises:
            SpecParseError: If *fmt* is not ``json`` or ``yaml``.
        """
        doc_format = _coerce_format(fmt) if fmt else detect_format(name, text)
        size = self.options.chunk_size

        async def _slices() -> AsyncIterator[tuple[str, int]]:
            for start in range(0, len(text), size):
                piece = text[start:start + size]
                yield piece, len(piece)

        return await self._drive(
            _slices(), len(text), doc_format, len(text.encode("utf-8"))
        )

    async def parse_file(self, path: str | Path) -> StreamResult:
        """Parse a local file without loading it into memory at once.

        Raises:
            SpecReadError: If the file cannot be opened or read.
        """
        file_path = Path(path)
        try:
            total = file_path.stat().st_size
            stream = open(file_path, "rb")
        except OSError as exc:
            raise SpecReadError(f"Cannot read spec file {path}: {exc}") from exc

        with stream:
            return await self.parse_stream(stream, total_size=total, name=file_path.name)

    async def parse_stream(
        self,
        stream: BinaryIO,
        total_size: int = 0,
        name: Optional[str] = None,
        fmt: Optional[DocumentFormat | str] = None,
    ) -> StreamResult:
        """Parse a binary file-like object read sequentially to EOF.

        Args:
            stream: Object with a blocking ``read(n) -> bytes`` method.
            total_size: Expected size in bytes, used for progress. ``0``
                means unknown; parsing progress then stays at 0 until the
                assembling stage.
            name: Optional file name used for format detection.
            fmt: Explicit format, skipping detection.

        Raises:
            SpecReadError: If a read fails or the bytes are not UTF-8.
        """
        self._check_cancelled()
        first = await self._read(stream)
        if fmt:
            doc_format = _coerce_format(fmt)
        else:
            doc_format = detect_format(name, first[:_SNIFF_BYTES].decode("utf-8", errors="ignore"))
        return await self._drive(
            self._decode_chunks(stream, first), total_size, doc_format, total_size
        )

    async def parse_url(self, url: str) -> StreamResult:
        """Fetch *url* through the loader and parse the body as text."""
        self._check_cancelled()
        text, content_type = await fetch_url_text(url)
        return await self.parse_text(text, fmt=detect_format(url, text, content_type))

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _check_cancelled(self) -> None:
        if self._cancel_token is not None:
            self._cancel_token.raise_if_cancelled()

    async def _read(self, stream: BinaryIO) -> bytes:
        try:
            return await asyncio.to_thread(stream.read, self.options.chunk_size)
        except (OSError, ValueError) as exc:
            raise SpecReadError(f"Failed to read spec stream: {exc}") from exc

    async def _decode_chunks(
        self, stream: BinaryIO, first: bytes
    ) -> AsyncIterator[tuple[str, int]]:
        decoder = codecs.getincrementaldecoder("utf-8-sig")()
        data = first
        try:
            while data:
                yield decoder.decode(data), len(data)
                data = await self._read(stream)
            tail = decoder.decode(b"", final=True)
        except UnicodeDecodeError as exc:
            raise SpecReadError(f"Spec is not valid UTF-8: {exc}") from exc
        if tail:
            yield tail, 0

    def _apply_memory_policy(self, ring: SectionRing, buffered: int) -> None:
        ceiling = self.options.max_memory_mb * 1024 * 1024
        resident = ring.retained_bytes + buffered
        if resident <= ceiling:
            return
        dropped = ring.trim()
        if dropped:
            logger.warning(
                "Resident estimate %s exceeds %s; discarded %d older section(s)",
                format_bytes(resident),
                format_bytes(ceiling),
                dropped,
            )

    async def _drive(
        self,
        chunks: AsyncIterator[tuple[str, int]],
        progress_total: int,
        doc_format: DocumentFormat,
        total_size: int,
    ) -> StreamResult:
        started = time.perf_counter()
        self._check_cancelled()

        session = open_scan_session(doc_format)
        ring = SectionRing(self.options.retained_sections)
        throttle = ProgressThrottle(
            self._progress_callback, self.options.progress_interval_ms, self._clock
        )
        bytes_seen = 0
        processed = 0

        throttle.emit(
            0,
            ProgressStage.INITIALIZATION,
            f"Starting {doc_format.value.upper()} parse ({format_bytes(total_size)})",
        )
        logger.debug("Parsing %s document, %d bytes", doc_format.value, total_size)

        async for text, consumed in chunks:
            self._check_cancelled()
            for section in scan(session, text):
                ring.append(section)
                bytes_seen += section.byte_size
            processed += consumed
            self._apply_memory_policy(ring, session.buffered_chars)

            if progress_total > 0:
                percentage = min(PARSING_SHARE, PARSING_SHARE * processed / progress_total)
            else:
                percentage = 0.0
            throttle.emit(
                percentage,
                ProgressStage.PARSING,
                f"Parsed {processed:,} of {progress_total:,}",
            )
            await asyncio.sleep(0)

        for section in finish(session):
            ring.append(section)
            bytes_seen += section.byte_size
        self.last_diagnostics = session.diagnostics
        self._check_cancelled()

        throttle.emit(
            PARSING_SHARE,
            ProgressStage.ASSEMBLING,
            f"Assembling {len(ring)} section(s)",
        )
        await asyncio.sleep(0)
        self._check_cancelled()

        spec, endpoints = assemble(
            ring,
            prioritize_endpoints=self.options.prioritize_endpoints,
            openapi_version=session.document_version,
        )

        size = max(total_size, processed) if progress_total <= 0 else total_size
        ratio: Optional[float] = None
        if self.options.enable_compression and bytes_seen:
            ratio = size / bytes_seen

        metadata = ParseMetadata(
            total_size=size,
            parse_time=(time.perf_counter() - started) * 1000.0,
            chunks_processed=session.sections_emitted,
            memory_used=bytes_seen,
            compression_ratio=ratio,
        )
        throttle.emit(100, ProgressStage.COMPLETE, f"Parsed {len(endpoints)} endpoint(s)")
        logger.debug(
            "Parsed %d section(s), %d endpoint(s) in %.1f ms",
            session.sections_emitted,
            len(endpoints),
            metadata.parse_time,
        )
        return StreamResult(spec=spec, endpoints=endpoints, metadata=metadata)

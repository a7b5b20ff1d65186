"""Incremental chunk scanner for JSON and YAML OpenAPI documents.

The scanner consumes arbitrary-sized text fragments of a document and emits
a :class:`~specmaster.models.ParsedSection` for each recognised top-level
key (``info``, ``paths``, ``components``, ``servers``, ``security``,
``tags``) as soon as the value of that key is complete. The whole document
never has to be held in memory: only the text of the section that is still
open is retained between calls.

All state lives on an explicit :class:`ScanSession` returned by
:func:`open_scan_session`, so any number of parses can run side by side::

    session = open_scan_session(DocumentFormat.JSON)
    for chunk in chunks:
        for section in scan(session, chunk):
            handle(section)
    for section in finish(session):
        handle(section)

**JSON** is walked structurally with a nesting depth counter, an in-string
flag and backslash-escape lookahead. A value that opens at depth 2 under a
recognised key is decoded with :func:`json.loads` when its closing
delimiter brings the depth back to 1.

**YAML** is handled line by line. A non-indented ``key:`` line starts a new
top-level block and flushes the previous one; the trailing partial line is
always held back until the next chunk completes it. Blocks are decoded with
PyYAML.

Malformed input never raises. Depth underflow, undecodable section payloads
and unterminated documents are counted in :attr:`ScanSession.diagnostics`
and logged at WARNING level; whatever complete sections were observed are
still emitted.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from specmaster.models import DocumentFormat, ParsedSection, SectionKind

logger = logging.getLogger(__name__)

SECTION_NAMES = frozenset(kind.value for kind in SectionKind)

_VERSION_KEYS = frozenset({"openapi", "swagger"})

# Characters that can change scanner state; everything else is skipped.
_JSON_SIGNIFICANT = re.compile(r'[\\"{}\[\]:,]')


@dataclass
class ScanDiagnostics:
    """Counters for the anomalies a forgiving scan tolerated."""

    depth_underflows: int = 0
    undecodable_sections: int = 0
    unterminated: bool = False

    @property
    def clean(self) -> bool:
        return not (self.depth_underflows or self.undecodable_sections or self.unterminated)


@dataclass
class ScanSession:
    """Mutable scanning state for one document.

    Attributes:
        format: Serialisation format being scanned.
        buffer: YAML only: the trailing partial line carried to the next
            call.
        pieces: JSON only: text of the open section (or open string), kept
            as the chunk strings it arrived in and joined once when needed.
        depth: Current JSON nesting depth (objects and arrays).
        document_version: ``openapi``/``swagger`` value seen at the root.
        sections_emitted: Number of sections returned so far.
        diagnostics: Anomaly counters, see :class:`ScanDiagnostics`.
    """

    format: DocumentFormat
    buffer: str = ""
    depth: int = 0
    document_version: Optional[str] = None
    sections_emitted: int = 0
    diagnostics: ScanDiagnostics = field(default_factory=ScanDiagnostics)

    # JSON walk state; offsets are absolute positions in the document text.
    pieces: list[str] = field(default_factory=list)
    pieces_start: int = 0
    pieces_chars: int = 0
    consumed: int = 0
    in_string: bool = False
    escape_at: int = -1
    string_start: int = -1
    pending_key: Optional[str] = None
    current_key: Optional[str] = None
    expecting_value: bool = False
    value_start: int = -1

    # YAML block state.
    yaml_key: Optional[str] = None
    yaml_lines: list[str] = field(default_factory=list)
    yaml_block_chars: int = 0
    yaml_flow_depth: int = 0

    @property
    def open_text(self) -> str:
        """Unresolved text the session is holding, joined."""
        return "".join(self.pieces) + self.buffer

    @property
    def buffered_chars(self) -> int:
        """Characters currently held by the session."""
        return len(self.buffer) + self.pieces_chars + self.yaml_block_chars


def open_scan_session(fmt: DocumentFormat | str) -> ScanSession:
    """Create an independent scanning session for a document of format *fmt*."""
    return ScanSession(format=DocumentFormat(fmt))


def scan(session: ScanSession, chunk: str) -> list[ParsedSection]:
    """Feed *chunk* to *session* and return every section it completed.

    Args:
        session: Session from :func:`open_scan_session`.
        chunk: Next fragment of document text. May split tokens, strings,
            escape sequences or lines anywhere.

    Returns:
        Sections completed by this chunk, in document order. A section is
        never returned twice and never returned partially.
    """
    if not chunk:
        return []
    if session.format == DocumentFormat.JSON:
        return _scan_json(session, chunk)
    return _scan_yaml(session, chunk)


def finish(session: ScanSession) -> list[ParsedSection]:
    """Signal end of input and return any sections still pending.

    For YAML the held-back last line is processed and the open block is
    emitted. For JSON nothing can complete at this point; an unclosed
    document is recorded as a diagnostic.
    """
    emitted: list[ParsedSection] = []
    if session.format == DocumentFormat.JSON:
        if session.depth > 0 or session.in_string:
            session.diagnostics.unterminated = True
            logger.warning(
                "JSON document ended inside %s (depth %d); open section discarded",
                "a string" if session.in_string else "an open structure",
                session.depth,
            )
        _drop_json_text(session)
        session.value_start = -1
        session.string_start = -1
        return emitted

    if session.buffer:
        line, session.buffer = session.buffer, ""
        _process_yaml_line(session, line.rstrip("\r"), emitted)
    _flush_yaml_block(session, emitted)
    return emitted


def _make_section(session: ScanSession, key: str, payload: Any, raw: str) -> ParsedSection:
    session.sections_emitted += 1
    return ParsedSection(
        kind=SectionKind(key),
        payload=payload,
        byte_size=len(raw.encode("utf-8")),
        emitted_at=time.monotonic(),
    )


# --- JSON ---


def _scan_json(session: ScanSession, chunk: str) -> list[ParsedSection]:
    emitted: list[ParsedSection] = []
    base = session.consumed
    session.consumed += len(chunk)

    for match in _JSON_SIGNIFICANT.finditer(chunk):
        i = base + match.start()
        c = match.group()

        if session.in_string:
            if session.escape_at >= 0:
                escaped, session.escape_at = session.escape_at, -1
                if i == escaped:
                    continue
            if c == "\\":
                session.escape_at = i + 1
            elif c == '"':
                _close_json_string(session, chunk, base, i)
            continue

        if c == '"':
            session.in_string = True
            session.string_start = i
        elif c in "{[":
            session.depth += 1
            if session.depth == 2 and session.expecting_value:
                if session.current_key in SECTION_NAMES:
                    session.value_start = i
                session.expecting_value = False
        elif c in "}]":
            session.depth -= 1
            if session.depth < 0:
                session.diagnostics.depth_underflows += 1
                logger.warning("Unbalanced %r at offset %d; resetting depth", c, i)
                _reset_json_keys(session)
                session.depth = 0
            elif session.depth == 1 and session.value_start >= 0:
                raw = _json_text(session, chunk, base, session.value_start, i)
                section = _decode_json_section(session, raw)
                if section is not None:
                    emitted.append(section)
                session.value_start = -1
            elif session.depth == 0:
                _reset_json_keys(session)
        elif session.depth == 1:
            if c == ":" and session.pending_key is not None:
                session.current_key = session.pending_key
                session.pending_key = None
                session.expecting_value = True
            elif c == ",":
                _reset_json_keys(session)

    _retain_json_text(session, chunk, base)
    return emitted


def _json_text(session: ScanSession, chunk: str, base: int, start: int, end: int) -> str:
    """Document text from *start* to *end* inclusive.

    *chunk* begins at absolute offset *base*; anything before it must still
    be held in ``session.pieces``.
    """
    if start >= base:
        return chunk[start - base:end - base + 1]
    head = "".join(session.pieces)
    return head[start - session.pieces_start:] + chunk[:end - base + 1]


def _close_json_string(session: ScanSession, chunk: str, base: int, end: int) -> None:
    session.in_string = False
    start, session.string_start = session.string_start, -1
    if session.depth != 1:
        return
    if session.expecting_value and session.current_key not in _VERSION_KEYS:
        session.expecting_value = False
        return

    raw = _json_text(session, chunk, base, start, end)
    try:
        text = json.loads(raw)
    except json.JSONDecodeError:
        text = raw[1:-1]

    if session.expecting_value:
        session.document_version = str(text)
        session.expecting_value = False
    else:
        session.pending_key = text


def _decode_json_section(session: ScanSession, raw: str) -> Optional[ParsedSection]:
    key = session.current_key
    assert key is not None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        session.diagnostics.undecodable_sections += 1
        logger.warning("Skipping undecodable '%s' section: %s", key, exc)
        return None
    return _make_section(session, key, payload, raw)


def _reset_json_keys(session: ScanSession) -> None:
    session.pending_key = None
    session.current_key = None
    session.expecting_value = False
    session.value_start = -1


def _drop_json_text(session: ScanSession) -> None:
    session.pieces = []
    session.pieces_chars = 0
    session.pieces_start = session.consumed


def _retain_json_text(session: ScanSession, chunk: str, base: int) -> None:
    """Keep only the text an open section or string still refers to.

    A chunk that falls entirely inside the open section is appended as-is,
    so a large section costs one join when it closes instead of one copy
    per chunk.
    """
    marks = [m for m in (session.value_start, session.string_start) if m >= 0]
    if not marks:
        _drop_json_text(session)
        return

    keep_from = min(marks)
    if keep_from >= base:
        tail = chunk[keep_from - base:]
        session.pieces = [tail] if tail else []
        session.pieces_start = keep_from
        session.pieces_chars = len(tail)
    else:
        session.pieces.append(chunk)
        session.pieces_chars += len(chunk)


# --- YAML ---


def _scan_yaml(session: ScanSession, chunk: str) -> list[ParsedSection]:
    emitted: list[ParsedSection] = []
    lines = (session.buffer + chunk).split("\n")
    session.buffer = lines.pop()
    for line in lines:
        _process_yaml_line(session, line.rstrip("\r"), emitted)
    return emitted


def _strip_key(key: str) -> str:
    key = key.strip()
    if len(key) >= 2 and key[0] == key[-1] and key[0] in "'\"":
        return key[1:-1]
    return key


def _process_yaml_line(session: ScanSession, line: str, emitted: list[ParsedSection]) -> None:
    if session.yaml_flow_depth > 0:
        # Continuation of a flow collection opened on a top-level line.
        session.yaml_lines.append("  " + line)
        session.yaml_block_chars += len(line) + 3
        session.yaml_flow_depth += _flow_balance(line)
        if session.yaml_flow_depth <= 0:
            _flush_yaml_block(session, emitted)
        return

    stripped = line.strip()
    is_top_level = bool(stripped) and line[0] not in " \t" and not stripped.startswith("#")
    if is_top_level and (stripped == "-" or stripped.startswith("- ")):
        # Compact sequence items belong to the open block.
        is_top_level = False

    if not is_top_level:
        if session.yaml_key is not None:
            session.yaml_lines.append(line)
            session.yaml_block_chars += len(line) + 1
        return

    _flush_yaml_block(session, emitted)

    if stripped in ("---", "..."):
        return

    content = stripped.split(" #", 1)[0].rstrip()
    key, sep, value = content.partition(": ")
    if not sep:
        if content.endswith(":"):
            key = _strip_key(content[:-1])
            if key in SECTION_NAMES:
                session.yaml_key = key
        return

    key = _strip_key(key)
    if key in _VERSION_KEYS:
        session.document_version = _yaml_scalar(value)
    elif key in SECTION_NAMES:
        depth = _flow_balance(value)
        if depth > 0:
            # Flow collection continued on the following lines.
            session.yaml_key = key
            session.yaml_lines = ["  " + value.strip()]
            session.yaml_block_chars = len(value) + 3
            session.yaml_flow_depth = depth
            return
        # Inline flow value such as ``tags: []``.
        section = _decode_yaml_section(session, key, content + "\n")
        if section is not None:
            emitted.append(section)


def _flow_balance(text: str) -> int:
    """Open minus closed flow brackets in *text*, ignoring quoted scalars."""
    balance = 0
    quote: Optional[str] = None
    escaped = False
    previous = " "
    for c in text:
        if quote is not None:
            if escaped:
                escaped = False
            elif c == "\\" and quote == '"':
                escaped = True
            elif c == quote:
                quote = None
        elif c in "'\"" and previous in " \t,[{:":
            quote = c
        elif c in "{[":
            balance += 1
        elif c in "}]":
            balance -= 1
        elif c == "#" and previous in " \t":
            break
        previous = c
    return balance


def _yaml_scalar(value: str) -> str:
    try:
        loaded = yaml.safe_load(value)
    except yaml.YAMLError:
        return value.strip()
    return value.strip() if loaded is None else str(loaded)


def _flush_yaml_block(session: ScanSession, emitted: list[ParsedSection]) -> None:
    key, lines = session.yaml_key, session.yaml_lines
    session.yaml_key = None
    session.yaml_lines = []
    session.yaml_block_chars = 0
    session.yaml_flow_depth = 0
    if key is None or not any(line.strip() for line in lines):
        return

    raw = f"{key}:\n" + "\n".join(lines) + "\n"
    section = _decode_yaml_section(session, key, raw)
    if section is not None:
        emitted.append(section)


def _decode_yaml_section(session: ScanSession, key: str, raw: str) -> Optional[ParsedSection]:
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        session.diagnostics.undecodable_sections += 1
        logger.warning("Skipping undecodable '%s' section: %s", key, exc)
        return None
    if not isinstance(data, dict):
        session.diagnostics.undecodable_sections += 1
        logger.warning("Skipping '%s' section: block did not decode to a mapping", key)
        return None
    return _make_section(session, key, data.get(key), raw)

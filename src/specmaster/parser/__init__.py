"""Streaming OpenAPI parser -- scan, orchestrate, assemble.

This sub-package turns a raw OpenAPI 3.x or Swagger 2.0 document (JSON or
YAML; string, file, binary stream or URL) into a
:class:`~specmaster.models.StreamResult` holding the assembled
specification and its annotated endpoints.

Typical usage::

    import asyncio
    from specmaster.parser import StreamingParser

    parser = StreamingParser(progress_callback=print)
    result = asyncio.run(parser.parse_file("openapi.yaml"))

Sub-modules:

* :mod:`~specmaster.parser.scanner` -- incremental JSON/YAML chunk scanner
  emitting complete top-level sections.
* :mod:`~specmaster.parser.stream` -- the orchestrator: slicing, progress,
  memory policy, cancellation.
* :mod:`~specmaster.parser.assembler` -- shallow merge of sections and
  endpoint extraction.
* :mod:`~specmaster.parser.loader` -- I/O helpers (URL, file, stdin),
  format detection and the size pre-check.
"""

from specmaster.parser.assembler import SpecAssembler, assemble, extract_endpoints, shallow_merge
from specmaster.parser.loader import check_file_size, detect_format, read_source_text
from specmaster.parser.scanner import ScanSession, finish, open_scan_session, scan
from specmaster.parser.stream import CancelToken, SectionRing, StreamingParser

__all__ = [
    "CancelToken",
    "ScanSession",
    "SectionRing",
    "SpecAssembler",
    "StreamingParser",
    "assemble",
    "check_file_size",
    "detect_format",
    "extract_endpoints",
    "finish",
    "open_scan_session",
    "read_source_text",
    "scan",
    "shallow_merge",
]

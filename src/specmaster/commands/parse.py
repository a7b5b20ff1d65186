"""Parse command -- stream-parse a document and summarise it.

Implements the ``specmaster parse`` top-level command and the shared
:func:`load_result` helper that every ``inspect`` sub-command uses to turn
a SOURCE argument (file path, URL, or ``-`` for stdin) into a
:class:`~specmaster.models.StreamResult`, going through the parse cache
when it is enabled.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import typer

from specmaster.output import ProgressRenderer, debug, format_response, get_output, warning


def load_result(
    source: str,
    overrides: Optional[dict[str, Any]] = None,
    use_cache: bool = True,
    show_progress: bool = True,
):  # noqa: ANN201
    """Parse *source* with the effective configuration.

    Local files are size-checked and streamed from disk. URLs and stdin
    are read whole and parsed from memory.

    Args:
        source: File path, ``http(s)://`` URL, or ``-`` for stdin.
        overrides: Section-keyed config overrides from CLI flags.
        use_cache: When ``False`` the parse cache is bypassed entirely.
        show_progress: Render a progress bar when the terminal allows it.

    Returns:
        The :class:`~specmaster.models.StreamResult`.

    Raises:
        SpecmasterError: Any read, size, network or config failure.
    """
    from specmaster.cache import ParseCache
    from specmaster.config import get_cache_dir, resolve_config
    from specmaster.models import CacheConfig
    from specmaster.parser import StreamingParser, check_file_size, read_source_text
    from specmaster.parser.loader import is_url

    config = resolve_config(cli_overrides=overrides)
    options = config.stream
    cache_config = config.cache if use_cache else CacheConfig(enabled=False)
    cache = ParseCache(get_cache_dir(), cache_config)

    try:
        local = source != "-" and not is_url(source)
        text = ""
        fmt = None
        if local:
            check_file_size(source, options.max_file_size_mb)
            key = ParseCache.file_key(source, options) if cache.enabled else ""
        else:
            text, fmt = read_source_text(source)
            key = ParseCache.text_key(text, options) if cache.enabled else ""

        cached = cache.get(key) if key else None
        if cached is not None:
            debug(f"Using cached parse result for {source}")
            return cached

        output = get_output()
        enabled = show_progress and config.output.show_progress
        with ProgressRenderer(output, enabled=enabled) as renderer:
            parser = StreamingParser(options, progress_callback=renderer.update)
            if local:
                result = asyncio.run(parser.parse_file(Path(source)))
            else:
                result = asyncio.run(parser.parse_text(text, fmt=fmt))

        diagnostics = parser.last_diagnostics
        if diagnostics is not None and not diagnostics.clean:
            warning(
                "Document was not well-formed: "
                f"{diagnostics.depth_underflows} unbalanced closer(s), "
                f"{diagnostics.undecodable_sections} undecodable section(s)"
                + (", unterminated input" if diagnostics.unterminated else "")
            )

        if key:
            cache.set(key, result)
        return result
    finally:
        cache.close()


def parse_command(
    source: str = typer.Argument(
        help="OpenAPI document: file path, URL, or '-' for stdin."
    ),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", min=1, help="Bytes/characters read per slice."
    ),
    max_memory_mb: Optional[int] = typer.Option(
        None, "--max-memory-mb", min=1, help="Resident estimate that triggers trimming."
    ),
    max_file_size_mb: Optional[int] = typer.Option(
        None, "--max-file-size-mb", min=1, help="Refuse local files larger than this."
    ),
    no_priority: bool = typer.Option(
        False, "--no-priority", help="Assemble sections in emission order."
    ),
    compression: bool = typer.Option(
        False, "--compression", help="Report a compression ratio."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Bypass the parse-result cache."
    ),
    no_progress: bool = typer.Option(
        False, "--no-progress", help="Do not render a progress bar."
    ),
) -> None:
    """Stream-parse an OpenAPI/Swagger document and print a summary.

    The summary lists the title, API version, OpenAPI version, section
    and endpoint counts, plus parse metadata (size, time, sections
    processed, memory used).

    Example::

        specmaster parse ./openapi.yaml
        specmaster parse https://api.example.com/openapi.json --json
        cat swagger.json | specmaster parse - --chunk-size 4096
    """
    overrides = {
        "stream": {
            "chunk_size": chunk_size,
            "max_memory_mb": max_memory_mb,
            "max_file_size_mb": max_file_size_mb,
            "prioritize_endpoints": False if no_priority else None,
            "enable_compression": True if compression else None,
        }
    }
    result = load_result(
        source, overrides, use_cache=not no_cache, show_progress=not no_progress
    )
    format_response(summarise(result))


def summarise(result) -> dict[str, Any]:  # noqa: ANN001
    """Flatten a :class:`~specmaster.models.StreamResult` into summary rows."""
    spec = result.spec
    meta = result.metadata
    data: dict[str, Any] = {
        "title": spec.title,
        "version": str(spec.info.get("version", "")),
        "openapi_version": spec.openapi_version,
        "endpoints": len(result.endpoints),
        "schemas": len(spec.schemas),
        "servers": len(spec.servers),
        "tags": len(spec.tags),
        "total_size": meta.total_size,
        "parse_time_ms": round(meta.parse_time, 2),
        "sections_processed": meta.chunks_processed,
        "memory_used": meta.memory_used,
    }
    if meta.compression_ratio is not None:
        data["compression_ratio"] = round(meta.compression_ratio, 3)
    return data

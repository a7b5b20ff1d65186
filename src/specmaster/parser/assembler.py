"""Merge scanned sections into one specification and extract its endpoints.

Sections arrive from the chunk scanner one at a time. :class:`SpecAssembler`
collects them and, on :meth:`~SpecAssembler.build`, folds them into an
:class:`~specmaster.models.AssembledSpecification`:

* ``info``, ``paths`` and ``components`` are mappings; a repeated section is
  combined with :func:`shallow_merge` (top-level keys overwrite, nested
  values are replaced wholesale).
* ``servers``, ``security`` and ``tags`` are lists; a repeated section
  replaces the earlier one.

Endpoint records are extracted once, from the final ``paths`` value, so a
path split across several sections never yields duplicate or stale
records.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from specmaster.analysis.heuristics import (
    business_context,
    estimate_response_time,
    operation_complexity,
)
from specmaster.models import (
    SECTION_PRIORITY,
    AssembledSpecification,
    EndpointRecord,
    HTTPMethod,
    ParsedSection,
    SectionKind,
)

logger = logging.getLogger(__name__)

DEFAULT_OPENAPI_VERSION = "3.0.0"

_MAPPING_SECTIONS = frozenset({SectionKind.INFO, SectionKind.PATHS, SectionKind.COMPONENTS})


def shallow_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """Overwrite-by-key merge without recursion.

    Example::

        >>> shallow_merge({"a": {"x": 1}, "b": 2}, {"a": {"y": 2}})
        {'a': {'y': 2}, 'b': 2}
    """
    merged = dict(base)
    merged.update(update)
    return merged


def order_sections(
    sections: Iterable[ParsedSection], prioritize_endpoints: bool = True
) -> list[ParsedSection]:
    """Return *sections* in assembly order.

    With ``prioritize_endpoints`` the fixed order is info, paths,
    components, servers, security, tags; sections of the same kind keep
    their arrival order. Otherwise arrival order is used unchanged.
    """
    ordered = list(sections)
    if prioritize_endpoints:
        ordered.sort(key=lambda section: SECTION_PRIORITY[section.kind])
    return ordered


def _string_keys(value: Any) -> dict[str, Any]:
    # YAML decodes unquoted status codes such as 200 as integers.
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items()}


def build_endpoint(method: HTTPMethod, path: str, operation: Mapping[str, Any]) -> EndpointRecord:
    """Build one annotated :class:`~specmaster.models.EndpointRecord`.

    Absent or mistyped optional fields fall back to empty values.
    """
    summary = operation.get("summary")
    description = operation.get("description")
    operation_id = operation.get("operationId")
    tags = operation.get("tags")
    parameters = operation.get("parameters")
    request_body = operation.get("requestBody")
    security = operation.get("security")

    return EndpointRecord(
        method=method,
        path=path,
        summary=summary if isinstance(summary, str) else "",
        description=description if isinstance(description, str) else "",
        tags=list(dict.fromkeys(str(tag) for tag in tags)) if isinstance(tags, list) else [],
        operation_id=operation_id if isinstance(operation_id, str) else "",
        parameters=list(parameters) if isinstance(parameters, list) else [],
        request_body=request_body if isinstance(request_body, dict) else None,
        responses=_string_keys(operation.get("responses")),
        security=list(security) if isinstance(security, list) else None,
        deprecated=operation.get("deprecated") is True,
        complexity=operation_complexity(operation),
        business_context=business_context(operation),
        estimated_response_time=estimate_response_time(method, operation),
    )


def extract_endpoints(paths: Mapping[str, Any]) -> list[EndpointRecord]:
    """Build one record per (path, method) pair present in *paths*.

    Paths are visited in document order and, within a path, methods in the
    order GET, POST, PUT, DELETE, PATCH, HEAD, OPTIONS, TRACE.
    """
    endpoints: list[EndpointRecord] = []
    for path, item in paths.items():
        if not isinstance(item, dict):
            continue
        for method in HTTPMethod:
            operation = item.get(method.key)
            if isinstance(operation, dict):
                endpoints.append(build_endpoint(method, str(path), operation))
    return endpoints


class SpecAssembler:
    """Incrementally collect sections and build the final specification.

    Args:
        prioritize_endpoints: Apply the fixed section priority order instead
            of arrival order.

    Example::

        assembler = SpecAssembler()
        for section in sections:
            assembler.add(section)
        spec, endpoints = assembler.build(openapi_version="3.1.0")
    """

    def __init__(self, prioritize_endpoints: bool = True) -> None:
        self._prioritize = prioritize_endpoints
        self._sections: list[ParsedSection] = []

    def __len__(self) -> int:
        return len(self._sections)

    def add(self, section: ParsedSection) -> None:
        self._sections.append(section)

    def extend(self, sections: Iterable[ParsedSection]) -> None:
        self._sections.extend(sections)

    def build(
        self, openapi_version: Optional[str] = None
    ) -> tuple[AssembledSpecification, list[EndpointRecord]]:
        """Merge the collected sections and extract endpoints.

        Args:
            openapi_version: Version detected by the scanner; defaults to
                ``"3.0.0"`` when ``None``.

        Returns:
            A ``(specification, endpoints)`` tuple.
        """
        spec = AssembledSpecification(openapi_version=openapi_version or DEFAULT_OPENAPI_VERSION)
        fields: dict[str, Any] = {}

        for section in order_sections(self._sections, self._prioritize):
            name = section.kind.value
            payload = section.payload
            if section.kind in _MAPPING_SECTIONS:
                if not isinstance(payload, dict):
                    logger.warning(
                        "Ignoring '%s' section: expected a mapping, got %s",
                        name,
                        type(payload).__name__,
                    )
                    continue
                current = fields.get(name, getattr(spec, name) if name == "info" else {})
                fields[name] = shallow_merge(current, payload)
            elif payload is not None:
                fields[name] = list(payload) if isinstance(payload, list) else [payload]

        if "paths" in fields:
            fields["paths"] = _string_keys(fields["paths"])
        if fields:
            spec = spec.model_copy(update=fields)

        endpoints = extract_endpoints(spec.paths)
        logger.debug(
            "Assembled %d section(s) into %d endpoint(s)", len(self._sections), len(endpoints)
        )
        return spec, endpoints


def assemble(
    sections: Iterable[ParsedSection],
    prioritize_endpoints: bool = True,
    openapi_version: Optional[str] = None,
) -> tuple[AssembledSpecification, list[EndpointRecord]]:
    """One-shot form of :class:`SpecAssembler`."""
    assembler = SpecAssembler(prioritize_endpoints=prioritize_endpoints)
    assembler.extend(sections)
    return assembler.build(openapi_version=openapi_version)

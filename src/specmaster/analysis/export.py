"""Documentation export in markdown, JSON or a short summary."""

from __future__ import annotations

import json
from typing import Any, Sequence

from specmaster.analysis.endpoints import generate_analytics
from specmaster.analysis.examples import generate_code_example, server_url
from specmaster.models import AssembledSpecification, EndpointRecord, ExportFormat


def _distribution(counts: dict[str, int]) -> list[str]:
    return [f"- {key}: {count}" for key, count in counts.items()]


def _parameter_line(param: Any) -> str:
    if not isinstance(param, dict):
        return "- (unnamed)"
    if "$ref" in param and "name" not in param:
        return f"- `{param['$ref']}`"
    description = param.get("description") or "No description"
    return f"- `{param.get('name', '?')}` ({param.get('in', '?')}) - {description}"


def _response_line(code: str, response: Any) -> str:
    description = response.get("description", "") if isinstance(response, dict) else ""
    return f"- `{code}` - {description}" if description else f"- `{code}`"


def export_data(
    spec: AssembledSpecification,
    endpoints: Sequence[EndpointRecord],
    include_analytics: bool = False,
) -> dict[str, Any]:
    """Structured export: API info plus one summary object per endpoint."""
    data: dict[str, Any] = {
        "api": {
            "title": spec.title,
            "version": str(spec.info.get("version", "")),
            "description": spec.info.get("description"),
            "openapi": spec.openapi_version,
        },
        "endpoints": [
            {
                "method": e.method.value,
                "path": e.path,
                "summary": e.summary,
                "description": e.description,
                "tags": list(e.tags),
                "deprecated": e.deprecated,
                "complexity": e.complexity.value,
                "parameters": len(e.parameters),
                "hasRequestBody": e.request_body is not None,
                "responseCodes": list(e.responses),
            }
            for e in endpoints
        ],
    }
    if include_analytics:
        data["analytics"] = generate_analytics(endpoints, spec).model_dump(
            mode="json", by_alias=True
        )
    return data


def _summary(spec: AssembledSpecification, endpoints: Sequence[EndpointRecord]) -> str:
    analytics = generate_analytics(endpoints, spec)
    lines = [
        f"# {spec.title} - API Summary",
        "",
        f"**Version:** {spec.info.get('version', '')}",
        f"**Total Endpoints:** {len(endpoints)}",
        "",
        "## Endpoints by Method",
        *_distribution(analytics.method_distribution),
        "",
        "## All Endpoints",
    ]
    for e in endpoints:
        suffix = f" - {e.summary}" if e.summary else ""
        lines.append(f"- {e.method.value} {e.path}{suffix}")
    return "\n".join(lines) + "\n"


def _markdown(
    spec: AssembledSpecification,
    endpoints: Sequence[EndpointRecord],
    include_examples: bool,
    include_analytics: bool,
) -> str:
    lines = [
        f"# {spec.title}",
        "",
        f"**Version:** {spec.info.get('version', '')}",
        f"**OpenAPI Version:** {spec.openapi_version}",
        "",
    ]
    description = spec.info.get("description")
    if description:
        lines += ["## Description", "", str(description), ""]
    lines += [f"## Endpoints ({len(endpoints)})", ""]

    base_url = server_url(spec)
    for e in endpoints:
        lines += [f"### {e.method.value} {e.path}", ""]
        if e.summary:
            lines += [f"**Summary:** {e.summary}", ""]
        if e.description:
            lines += [f"**Description:** {e.description}", ""]
        if e.tags:
            lines += [f"**Tags:** {', '.join(e.tags)}", ""]
        if e.deprecated:
            lines += ["**Deprecated:** this endpoint is deprecated.", ""]
        if e.parameters:
            lines.append("**Parameters:**")
            lines.extend(_parameter_line(p) for p in e.parameters)
            lines.append("")
        if e.responses:
            lines.append("**Responses:**")
            lines.extend(_response_line(code, r) for code, r in e.responses.items())
            lines.append("")
        if include_examples:
            lines += [
                "**Example:**",
                "```bash",
                generate_code_example(e, "curl", base_url),
                "```",
                "",
            ]
        lines += ["---", ""]

    if include_analytics:
        analytics = generate_analytics(endpoints, spec)
        lines += [
            "## Analytics",
            "",
            f"**Total Endpoints:** {analytics.total_endpoints}",
            f"**Deprecated:** {analytics.deprecated_count}",
            f"**Average Parameters:** {analytics.average_parameters_per_endpoint:.1f}",
            "",
            "### Method Distribution",
            *_distribution(analytics.method_distribution),
            "",
            "### Complexity Distribution",
            *_distribution(analytics.complexity_distribution),
            "",
        ]
    return "\n".join(lines)


def export_documentation(
    spec: AssembledSpecification,
    endpoints: Sequence[EndpointRecord],
    fmt: ExportFormat | str = ExportFormat.MARKDOWN,
    include_examples: bool = True,
    include_analytics: bool = False,
) -> str:
    """Render the document's endpoints as text in *fmt*.

    ``summary`` lists every endpoint on one line and ignores the include
    flags. ``json`` ignores *include_examples*.

    Raises:
        ValueError: If *fmt* is not a known :class:`ExportFormat`.
    """
    fmt = ExportFormat(fmt)
    if fmt == ExportFormat.SUMMARY:
        return _summary(spec, endpoints)
    if fmt == ExportFormat.JSON:
        return json.dumps(export_data(spec, endpoints, include_analytics), indent=2, ensure_ascii=False)
    return _markdown(spec, endpoints, include_examples, include_analytics)

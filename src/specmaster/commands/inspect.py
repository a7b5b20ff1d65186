"""Inspect commands -- query endpoints and schemas of a document.

Provides the ``specmaster inspect`` sub-command group with read-only
commands over a parsed document: endpoint search and lookup, schema
metrics and validation, schema comparison, aggregate analytics, a
design review, request snippets and documentation export. Every
sub-command takes the document SOURCE as its first argument and loads
it through :func:`~specmaster.commands.parse.load_result`, so results
come from the parse cache when possible.
"""

from __future__ import annotations

from typing import List, Optional

import typer

from specmaster.commands.parse import load_result
from specmaster.exceptions import InvalidUsageError, NotFoundError
from specmaster.output import format_response, get_output, info


inspect_app = typer.Typer(no_args_is_help=True)

_SOURCE_HELP = "OpenAPI document: file path, URL, or '-' for stdin."


def _load(source: str, no_cache: bool):  # noqa: ANN202
    return load_result(source, use_cache=not no_cache, show_progress=False)


@inspect_app.command("endpoints")
def inspect_endpoints(
    source: str = typer.Argument(help=_SOURCE_HELP),
    query: Optional[str] = typer.Option(
        None, "--query", "-q", help="Substring of path, summary, description or tag."
    ),
    method: Optional[List[str]] = typer.Option(
        None, "--method", "-m", help="HTTP method (repeatable)."
    ),
    tag: Optional[List[str]] = typer.Option(
        None, "--tag", "-t", help="Tag (repeatable)."
    ),
    complexity: Optional[List[str]] = typer.Option(
        None, "--complexity", "-c", help="low, medium or high (repeatable)."
    ),
    deprecated: Optional[bool] = typer.Option(
        None, "--deprecated/--not-deprecated", help="Filter on deprecation."
    ),
    has_parameters: Optional[bool] = typer.Option(
        None, "--with-params/--without-params", help="Filter on parameters."
    ),
    has_request_body: Optional[bool] = typer.Option(
        None, "--with-body/--without-body", help="Filter on request body."
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", min=1, help="Maximum number of results."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """List endpoints, optionally filtered.

    Displays a table of matching operations with method, path, summary,
    complexity, business context and estimated response time.

    Example::

        specmaster inspect endpoints openapi.yaml
        specmaster inspect endpoints openapi.yaml -m GET -t Users --limit 20
        specmaster inspect endpoints openapi.yaml -q login --json
    """
    from pydantic import ValidationError

    from specmaster.analysis import search_endpoints
    from specmaster.models import EndpointFilter

    try:
        criteria = EndpointFilter(
            query=query,
            methods=method or [],
            tags=tag or [],
            complexity=[c.lower() for c in complexity or []],
            deprecated=deprecated,
            has_parameters=has_parameters,
            has_request_body=has_request_body,
        )
    except ValidationError as exc:
        raise InvalidUsageError(f"Invalid filter: {exc.errors()[0]['msg']}") from None

    result = _load(source, no_cache)
    matches = search_endpoints(result.endpoints, criteria, limit=limit)

    if not matches:
        info("No endpoints match.")
        return

    headers = ["Method", "Path", "Summary", "Complexity", "Context", "Speed", "Deprecated"]
    rows: list[list[str]] = []
    for endpoint in matches:
        rows.append([
            endpoint.method.value,
            endpoint.path,
            endpoint.summary or "-",
            endpoint.complexity.value,
            endpoint.business_context,
            endpoint.estimated_response_time.value,
            "Yes" if endpoint.deprecated else "",
        ])

    get_output().print_table(
        headers, rows, title=f"{result.spec.title} -- Endpoints ({len(rows)})"
    )


@inspect_app.command("endpoint")
def inspect_endpoint(
    source: str = typer.Argument(help=_SOURCE_HELP),
    method: str = typer.Argument(help="HTTP method, any case."),
    path: str = typer.Argument(help="Exact path template, e.g. /users/{id}."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """Show one endpoint in full.

    Raises:
        NotFoundError: If no operation matches *method* and *path*.

    Example::

        specmaster inspect endpoint openapi.yaml get /users/{id}
    """
    from specmaster.analysis import find_endpoint

    result = _load(source, no_cache)
    endpoint = find_endpoint(result.endpoints, method, path)
    if endpoint is None:
        raise NotFoundError(f"Endpoint not found: {method.upper()} {path}")
    format_response(endpoint.model_dump(mode="json", by_alias=True))


@inspect_app.command("schemas")
def inspect_schemas(
    source: str = typer.Argument(help=_SOURCE_HELP),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """List named schemas with their structural metrics.

    Example::

        specmaster inspect schemas openapi.yaml
    """
    from specmaster.analysis import compute_all_metrics

    result = _load(source, no_cache)
    schemas = result.spec.schemas
    if not schemas:
        info("No schemas defined in this spec.")
        return

    metrics = compute_all_metrics(schemas)
    headers = ["Schema", "Complexity", "Depth", "Properties", "Required", "Dependencies", "Circular"]
    rows: list[list[str]] = []
    for name in sorted(schemas):
        m = metrics[name]
        rows.append([
            name,
            str(m.complexity),
            str(m.depth),
            str(m.property_count),
            str(m.required_count),
            str(m.dependency_count),
            "Yes" if m.circular_refs else "",
        ])

    get_output().print_table(headers, rows, title=f"Schemas ({len(rows)})")


@inspect_app.command("schema")
def inspect_schema(
    source: str = typer.Argument(help=_SOURCE_HELP),
    name: str = typer.Argument(help="Schema name under components.schemas."),
    properties: bool = typer.Option(
        False, "--properties", "-p", help="Include the flattened property list."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """Show metrics, dependencies and validation issues for one schema.

    Raises:
        NotFoundError: If *name* is not a named schema.

    Example::

        specmaster inspect schema openapi.yaml User --properties
    """
    from specmaster.analysis import build_dependency_map, compute_metrics, validate_schema
    from specmaster.analysis.schema_graph import iter_properties

    result = _load(source, no_cache)
    schemas = result.spec.schemas
    if name not in schemas:
        raise NotFoundError(f"Schema not found: {name}")

    dependency_map = build_dependency_map(schemas)
    metrics = compute_metrics(name, schemas[name], dependency_map, schemas)
    dependents = sorted(other for other, deps in dependency_map.items() if name in deps)
    issues = validate_schema(name, schemas[name], schemas, metrics)

    data: dict = {
        "name": name,
        "metrics": metrics.model_dump(mode="json", by_alias=True),
        "dependencies": dependency_map.get(name, []),
        "dependents": dependents,
        "issues": [issue.model_dump(mode="json") for issue in issues],
    }
    if properties:
        data["properties"] = [
            prop.model_dump(mode="json", by_alias=True, exclude_none=True)
            for prop in iter_properties(name, schemas[name], schemas)
        ]
    format_response(data)


@inspect_app.command("compare")
def inspect_compare(
    source: str = typer.Argument(help=_SOURCE_HELP),
    names: List[str] = typer.Argument(help="Two or more schema names."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """Compare schemas against the first one named.

    Each row reports the compatibility score with the first schema and the
    differences found (property counts, required fields, type changes).

    Example::

        specmaster inspect compare openapi.yaml User UserInput AdminUser
    """
    from specmaster.analysis import compare_schemas, compatibility_score

    if len(names) < 2:
        raise InvalidUsageError("Provide at least two schema names to compare.")

    result = _load(source, no_cache)
    schemas = result.spec.schemas
    missing = [n for n in names if n not in schemas]
    if missing:
        raise NotFoundError(f"Schema not found: {', '.join(missing)}")

    headers = ["Schema", "Properties", "Complexity", "Compatibility", "Differences"]
    rows: list[list[str]] = []
    for row in compare_schemas(names, schemas):
        rows.append([
            row.name,
            str(row.property_count),
            str(row.metrics.complexity) if row.metrics else "-",
            f"{compatibility_score(names[0], row.name, schemas)}%",
            "; ".join(row.differences) or "-",
        ])

    get_output().print_table(headers, rows, title=f"Compared with {names[0]}")


@inspect_app.command("analytics")
def inspect_analytics(
    source: str = typer.Argument(help=_SOURCE_HELP),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """Show endpoint and schema analytics.

    Outputs endpoint distributions (methods, tags, complexity, business
    context, response codes, security schemes) and schema figures
    (complexity and type distributions, dependency hubs, circular
    references, health score, recommendations).

    Example::

        specmaster inspect analytics openapi.yaml --json
    """
    from specmaster.analysis import generate_analytics, schema_analytics

    result = _load(source, no_cache)
    format_response({
        "endpoints": generate_analytics(result.endpoints, result.spec).model_dump(
            mode="json", by_alias=True
        ),
        "schemas": schema_analytics(result.spec.schemas).model_dump(
            mode="json", by_alias=True
        ),
    })


@inspect_app.command("review")
def inspect_review(
    source: str = typer.Argument(help=_SOURCE_HELP),
    focus: str = typer.Option(
        "all",
        "--focus",
        "-f",
        help="security, performance, design, documentation or all.",
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """Review the API design and list recommendations.

    Example::

        specmaster inspect review openapi.yaml --focus security
    """
    from specmaster.analysis import review_design
    from specmaster.models import DesignFocus

    try:
        area = DesignFocus(focus.lower())
    except ValueError:
        choices = ", ".join(f.value for f in DesignFocus)
        raise InvalidUsageError(f"Unknown focus '{focus}'. Choose from: {choices}") from None

    result = _load(source, no_cache)
    review = review_design(result.endpoints, area, result.spec)
    format_response(review.model_dump(mode="json", by_alias=True))


@inspect_app.command("example")
def inspect_example(
    source: str = typer.Argument(help=_SOURCE_HELP),
    method: str = typer.Argument(help="HTTP method, any case."),
    path: str = typer.Argument(help="Exact path template, e.g. /users/{id}."),
    language: str = typer.Option(
        "curl", "--language", "-L", help="curl, javascript, python or typescript."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """Print a request snippet for one endpoint.

    The URL is built from the first server in the document.

    Raises:
        NotFoundError: If no operation matches *method* and *path*.

    Example::

        specmaster inspect example openapi.yaml post /pets --language python
    """
    from specmaster.analysis import find_endpoint, generate_code_example, server_url
    from specmaster.models import CodeLanguage
    from specmaster.output import OutputFormat

    try:
        lang = CodeLanguage(language.lower())
    except ValueError:
        choices = ", ".join(c.value for c in CodeLanguage)
        raise InvalidUsageError(f"Unknown language '{language}'. Choose from: {choices}") from None

    result = _load(source, no_cache)
    endpoint = find_endpoint(result.endpoints, method, path)
    if endpoint is None:
        raise NotFoundError(f"Endpoint not found: {method.upper()} {path}")

    code = generate_code_example(endpoint, lang, server_url(result.spec))
    output = get_output()
    if output.format == OutputFormat.JSON:
        format_response({
            "method": endpoint.method.value,
            "path": endpoint.path,
            "language": lang.value,
            "code": code,
        })
    else:
        output.print_data(code)


@inspect_app.command("export")
def inspect_export(
    source: str = typer.Argument(help=_SOURCE_HELP),
    export_format: str = typer.Option(
        "markdown", "--format", "-F", help="markdown, json or summary."
    ),
    examples: bool = typer.Option(
        True, "--examples/--no-examples", help="Include a curl example per endpoint."
    ),
    analytics: bool = typer.Option(
        False, "--analytics", help="Append endpoint analytics."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the parse cache."),
) -> None:
    """Export endpoint documentation.

    Combine with the global ``-o`` option to write the export to a file.

    Example::

        specmaster inspect export openapi.yaml --format markdown --analytics
        specmaster -o api.json inspect export openapi.yaml -F json
    """
    from specmaster.analysis import export_documentation
    from specmaster.models import ExportFormat

    try:
        fmt = ExportFormat(export_format.lower())
    except ValueError:
        choices = ", ".join(f.value for f in ExportFormat)
        raise InvalidUsageError(
            f"Unknown export format '{export_format}'. Choose from: {choices}"
        ) from None

    result = _load(source, no_cache)
    get_output().print_data(
        export_documentation(result.spec, result.endpoints, fmt, examples, analytics)
    )

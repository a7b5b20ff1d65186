"""Endpoint heuristics, schema graph analysis, and endpoint queries.

* :mod:`~specmaster.analysis.heuristics` -- per-operation complexity,
  business context and response-time labels, applied during assembly.
* :mod:`~specmaster.analysis.schema_graph` -- reference graph, schema
  metrics, cycle detection, compatibility, validation and analytics.
* :mod:`~specmaster.analysis.endpoints` -- search, lookup, analytics and
  design review over endpoint records.
* :mod:`~specmaster.analysis.examples` -- request snippets per endpoint.
* :mod:`~specmaster.analysis.export` -- markdown, JSON and summary exports.
"""

from specmaster.analysis.endpoints import (
    find_endpoint,
    generate_analytics,
    review_design,
    search_endpoints,
)
from specmaster.analysis.examples import generate_code_example, server_url
from specmaster.analysis.export import export_data, export_documentation
from specmaster.analysis.heuristics import (
    business_context,
    classify_complexity,
    complexity_score,
    estimate_response_time,
)
from specmaster.analysis.schema_graph import (
    build_dependency_map,
    compare_schemas,
    compatibility_score,
    compute_all_metrics,
    compute_metrics,
    has_circular_reference,
    schema_analytics,
    schemas_from_document,
    validate_schema,
)

__all__ = [
    "build_dependency_map",
    "business_context",
    "classify_complexity",
    "compare_schemas",
    "compatibility_score",
    "complexity_score",
    "compute_all_metrics",
    "compute_metrics",
    "estimate_response_time",
    "export_data",
    "export_documentation",
    "find_endpoint",
    "generate_analytics",
    "generate_code_example",
    "has_circular_reference",
    "review_design",
    "schema_analytics",
    "schemas_from_document",
    "search_endpoints",
    "server_url",
    "validate_schema",
]

"""Search, lookup, analytics and design review over endpoint records.

These are the query operations behind the ``inspect`` commands. They take
the endpoint list produced by the parser and never modify it.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional, Sequence

from specmaster.models import (
    AssembledSpecification,
    Complexity,
    DesignFocus,
    DesignReview,
    EndpointAnalytics,
    EndpointFilter,
    EndpointRecord,
    ResponseTimeEstimate,
)

HIGH_COMPLEXITY_SHARE = 0.3


def _matches_query(endpoint: EndpointRecord, term: str) -> bool:
    return (
        term in endpoint.path.lower()
        or term in endpoint.summary.lower()
        or term in endpoint.description.lower()
        or any(term in tag.lower() for tag in endpoint.tags)
    )


def search_endpoints(
    endpoints: Iterable[EndpointRecord],
    criteria: Optional[EndpointFilter] = None,
    limit: Optional[int] = None,
) -> list[EndpointRecord]:
    """Return the endpoints matching every criterion that is set.

    The free-text ``query`` is a case-insensitive substring match against
    path, summary, description and tags. ``methods`` is compared
    case-insensitively; ``tags`` matches when any endpoint tag is listed.

    Args:
        endpoints: Records to filter, in the order they should be returned.
        criteria: Filter; ``None`` matches everything.
        limit: Maximum number of results, ``None`` for no limit.
    """
    criteria = criteria or EndpointFilter()
    term = criteria.query.lower() if criteria.query else ""
    methods = {m.upper() for m in criteria.methods}
    tags = set(criteria.tags)
    complexities = set(criteria.complexity)

    results: list[EndpointRecord] = []
    for endpoint in endpoints:
        if term and not _matches_query(endpoint, term):
            continue
        if methods and endpoint.method.value not in methods:
            continue
        if tags and not tags.intersection(endpoint.tags):
            continue
        if complexities and endpoint.complexity not in complexities:
            continue
        if criteria.deprecated is not None and endpoint.deprecated != criteria.deprecated:
            continue
        if criteria.has_parameters is not None and bool(endpoint.parameters) != criteria.has_parameters:
            continue
        if (
            criteria.has_request_body is not None
            and (endpoint.request_body is not None) != criteria.has_request_body
        ):
            continue
        results.append(endpoint)
        if limit is not None and len(results) >= limit:
            break
    return results


def find_endpoint(
    endpoints: Iterable[EndpointRecord], method: str, path: str
) -> Optional[EndpointRecord]:
    """Look up one endpoint by method (any case) and exact path."""
    wanted = method.upper()
    for endpoint in endpoints:
        if endpoint.method.value == wanted and endpoint.path == path:
            return endpoint
    return None


def _security_names(endpoints: Sequence[EndpointRecord]) -> list[str]:
    names: dict[str, None] = {}
    for endpoint in endpoints:
        for requirement in endpoint.security or ():
            if isinstance(requirement, dict):
                names.update(dict.fromkeys(str(key) for key in requirement))
    return list(names)


def generate_analytics(
    endpoints: Sequence[EndpointRecord],
    spec: Optional[AssembledSpecification] = None,
) -> EndpointAnalytics:
    """Totals and distributions over *endpoints*.

    Security scheme names come from the endpoints' security requirements,
    the document-level ``security`` list, and ``components.securitySchemes``
    when *spec* is given.
    """
    total = len(endpoints)
    if total == 0:
        return EndpointAnalytics()

    methods: Counter[str] = Counter(e.method.value for e in endpoints)
    tags: Counter[str] = Counter(tag for e in endpoints for tag in e.tags)
    complexity = {level.value: 0 for level in Complexity}
    complexity.update(Counter(e.complexity.value for e in endpoints))
    contexts: Counter[str] = Counter(e.business_context for e in endpoints)
    codes: Counter[str] = Counter(code for e in endpoints for code in e.responses)

    schemes = dict.fromkeys(_security_names(endpoints))
    if spec is not None:
        for requirement in spec.security:
            if isinstance(requirement, dict):
                schemes.update(dict.fromkeys(str(key) for key in requirement))
        declared = spec.components.get("securitySchemes")
        if isinstance(declared, dict):
            schemes.update(dict.fromkeys(str(key) for key in declared))

    return EndpointAnalytics(
        total_endpoints=total,
        deprecated_count=sum(1 for e in endpoints if e.deprecated),
        average_parameters_per_endpoint=sum(len(e.parameters) for e in endpoints) / total,
        method_distribution=dict(methods.most_common()),
        tag_distribution=dict(tags.most_common()),
        complexity_distribution=complexity,
        business_context_distribution=dict(contexts.most_common()),
        response_code_distribution=dict(codes.most_common()),
        security_schemes=list(schemes),
    )


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def review_design(
    endpoints: Sequence[EndpointRecord],
    focus: DesignFocus | str = DesignFocus.ALL,
    spec: Optional[AssembledSpecification] = None,
) -> DesignReview:
    """Check endpoints for common API design gaps.

    Args:
        endpoints: Records to review.
        focus: ``security``, ``performance``, ``design``, ``documentation``
            or ``all``.
        spec: Optional document, used for security scheme discovery.

    Returns:
        A :class:`~specmaster.models.DesignReview`. An empty
        ``recommendations`` list means nothing was flagged.
    """
    focus = DesignFocus(focus)
    analytics = generate_analytics(endpoints, spec)
    total = analytics.total_endpoints
    recommendations: list[str] = []

    def wants(area: DesignFocus) -> bool:
        return focus in (area, DesignFocus.ALL)

    secured = [e for e in endpoints if e.security]
    documented = [e for e in endpoints if e.summary or e.description]
    tagged = [e for e in endpoints if e.tags]

    if wants(DesignFocus.SECURITY):
        if not analytics.security_schemes:
            recommendations.append(
                "Security: no security schemes detected. Consider adding authentication."
            )
        unsecured = total - len(secured)
        if unsecured:
            recommendations.append(
                f"Security: {unsecured} endpoints have no security requirements. "
                "Review if this is intentional."
            )

    if wants(DesignFocus.DOCUMENTATION):
        undocumented = total - len(documented)
        if undocumented:
            recommendations.append(
                f"Documentation: {undocumented} endpoints lack summaries or descriptions."
            )
        untagged = total - len(tagged)
        if untagged:
            recommendations.append(f"Organization: {untagged} endpoints have no tags.")

    if wants(DesignFocus.DESIGN):
        if analytics.deprecated_count:
            recommendations.append(
                f"Maintenance: {analytics.deprecated_count} deprecated endpoints found. "
                "Consider a migration strategy."
            )
        high = analytics.complexity_distribution.get(Complexity.HIGH.value, 0)
        if high > total * HIGH_COMPLEXITY_SHARE:
            recommendations.append(
                f"Design: high number of complex endpoints ({high}). "
                "Consider simplifying the API design."
            )

    if wants(DesignFocus.PERFORMANCE):
        slow = sum(1 for e in endpoints if e.estimated_response_time == ResponseTimeEstimate.SLOW)
        if slow:
            recommendations.append(
                f"Performance: {slow} endpoints estimated as slow. Consider optimization."
            )

    return DesignReview(
        focus=focus,
        recommendations=recommendations,
        total_endpoints=total,
        security_coverage=_percent(len(secured), total),
        documentation_coverage=_percent(len(documented), total),
        tag_coverage=_percent(len(tagged), total),
    )

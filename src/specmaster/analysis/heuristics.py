"""Per-operation heuristic annotations.

Pure functions of a single OpenAPI operation object. They are applied once
per endpoint while the document is assembled and are total: a missing or
oddly-typed field counts as absent rather than raising.

* :func:`complexity_score` / :func:`classify_complexity` -- size of the
  operation's interface, bucketed into ``low`` / ``medium`` / ``high``.
* :func:`business_context` -- coarse domain tag from tags and summary.
* :func:`estimate_response_time` -- display label, never a measurement.
"""

from __future__ import annotations

from typing import Any, Mapping

from specmaster.models import Complexity, HTTPMethod, ResponseTimeEstimate

LOW_COMPLEXITY_MAX = 3
MEDIUM_COMPLEXITY_MAX = 8
REQUEST_BODY_WEIGHT = 2
FAST_MAX_PARAMETERS = 5

# First match wins.
BUSINESS_CONTEXTS: tuple[tuple[str, str], ...] = (
    ("auth", "Authentication"),
    ("user", "User Management"),
    ("payment", "Payments"),
    ("order", "Orders"),
    ("product", "Products"),
)
DEFAULT_BUSINESS_CONTEXT = "General"


def _list_field(operation: Mapping[str, Any], key: str) -> list[Any]:
    value = operation.get(key)
    return value if isinstance(value, list) else []


def _dict_field(operation: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = operation.get(key)
    return value if isinstance(value, dict) else {}


def complexity_score(operation: Mapping[str, Any]) -> int:
    """Raw interface-size score of an operation.

    Parameters count one each, a request body counts two, each declared
    response code counts one, and each security requirement counts one.
    """
    score = len(_list_field(operation, "parameters"))
    if operation.get("requestBody"):
        score += REQUEST_BODY_WEIGHT
    score += len(_dict_field(operation, "responses"))
    score += len(_list_field(operation, "security"))
    return score


def classify_complexity(score: int) -> Complexity:
    """Bucket a raw score: ``<= 3`` low, ``<= 8`` medium, anything above high."""
    if score <= LOW_COMPLEXITY_MAX:
        return Complexity.LOW
    if score <= MEDIUM_COMPLEXITY_MAX:
        return Complexity.MEDIUM
    return Complexity.HIGH


def operation_complexity(operation: Mapping[str, Any]) -> Complexity:
    return classify_complexity(complexity_score(operation))


def business_context(operation: Mapping[str, Any]) -> str:
    """Match tags and summary against the fixed keyword list.

    The comparison is a case-insensitive substring match, so a tag of
    ``"Users"`` or a summary of ``"Authorize client"`` both match.
    """
    haystack = [str(tag).lower() for tag in _list_field(operation, "tags")]
    summary = operation.get("summary")
    if isinstance(summary, str):
        haystack.append(summary.lower())

    for keyword, context in BUSINESS_CONTEXTS:
        if any(keyword in text for text in haystack):
            return context
    return DEFAULT_BUSINESS_CONTEXT


def _is_multipart(operation: Mapping[str, Any]) -> bool:
    body = operation.get("requestBody")
    if not isinstance(body, dict):
        return False
    content = body.get("content")
    return isinstance(content, dict) and "multipart/form-data" in content


def estimate_response_time(
    method: HTTPMethod | str, operation: Mapping[str, Any]
) -> ResponseTimeEstimate:
    """Label an operation ``fast``, ``medium`` or ``slow``.

    GET with at most five parameters is fast. Multipart uploads and PATCH
    are slow. Everything else is medium.
    """
    verb = HTTPMethod(str(getattr(method, "value", method)).upper())
    if verb == HTTPMethod.GET and len(_list_field(operation, "parameters")) <= FAST_MAX_PARAMETERS:
        return ResponseTimeEstimate.FAST
    if _is_multipart(operation) or verb == HTTPMethod.PATCH:
        return ResponseTimeEstimate.SLOW
    return ResponseTimeEstimate.MEDIUM

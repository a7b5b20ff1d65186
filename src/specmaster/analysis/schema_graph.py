"""Schema reference graph, structural metrics, and schema design lint.

Everything here operates on the named-schema map of a document
(``components.schemas`` for OpenAPI 3, ``definitions`` for Swagger 2) and
is recomputed from scratch whenever that map changes.

A reference is any mapping with a string ``$ref`` of the form
``#/components/schemas/<Name>`` (or ``#/definitions/<Name>``). References to
names missing from the map are tolerated: resolution falls back to the
reference object itself, which only understates the metrics of that branch.

None of these functions raise on unusual schemas; a value of the wrong
type is simply treated as contributing nothing.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterable, Mapping, Optional, Union

from specmaster.models import (
    AssembledSpecification,
    PropertyInfo,
    SchemaAnalytics,
    SchemaComparison,
    SchemaMetrics,
    ValidationIssue,
    ValidationSeverity,
    ValidationSummary,
)

logger = logging.getLogger(__name__)

DependencyMap = dict[str, list[str]]

REF_PREFIXES = ("#/components/schemas/", "#/definitions/")
MAX_COMPLEXITY_DEPTH = 10
POLYMORPHISM_BONUS = 5
COMPOSITION_KEYWORDS = ("allOf", "oneOf", "anyOf")

# Schema complexity buckets used by schema_analytics.
COMPLEXITY_BUCKETS: tuple[tuple[str, Optional[int]], ...] = (
    ("low", 10),
    ("medium", 50),
    ("high", 100),
    ("extreme", None),
)


# --- Reference resolution ---


def schema_ref_name(ref: str) -> str:
    """Strip the schema pointer prefix from a ``$ref`` string."""
    for prefix in REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ref


def is_reference(schema: Any) -> bool:
    return isinstance(schema, dict) and isinstance(schema.get("$ref"), str)


def resolve_schema_reference(schema: Any, schemas: Mapping[str, Any]) -> Any:
    """Return the named schema *schema* points to, or *schema* itself.

    Only one level is followed; a reference to a reference is returned as
    the inner reference object.
    """
    if is_reference(schema):
        target = schemas.get(schema_ref_name(schema["$ref"]))
        if target is not None:
            return target
    return schema


def schemas_from_document(document: Union[AssembledSpecification, Mapping[str, Any], None]) -> dict[str, Any]:
    """Named schemas of an assembled spec or a raw OpenAPI/Swagger mapping."""
    if document is None:
        return {}
    if isinstance(document, AssembledSpecification):
        return document.schemas
    components = document.get("components")
    if isinstance(components, dict) and isinstance(components.get("schemas"), dict):
        return components["schemas"]
    definitions = document.get("definitions")
    if isinstance(definitions, dict):
        return definitions
    return {}


# --- Dependency graph ---


def _collect_refs(node: Any, schemas: Mapping[str, Any], found: list[str]) -> None:
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            ref = current.get("$ref")
            if isinstance(ref, str):
                name = schema_ref_name(ref)
                if name in schemas:
                    found.append(name)
                continue
            stack.extend(reversed(list(current.values())))
        elif isinstance(current, list):
            stack.extend(reversed(current))


def find_dependencies(name: str, schema: Any, schemas: Mapping[str, Any]) -> list[str]:
    """Ordered, de-duplicated names of the schemas *schema* references.

    The walk covers every nested mapping and list (properties, items,
    composition keywords, additionalProperties...). A reference node is a
    leaf: its siblings are not inspected. *name* itself is never listed.
    """
    found: list[str] = []
    _collect_refs(schema, schemas, found)
    return [dep for dep in dict.fromkeys(found) if dep != name]


def build_dependency_map(schemas: Mapping[str, Any]) -> DependencyMap:
    """Direct dependencies of every named schema."""
    return {name: find_dependencies(name, schema, schemas) for name, schema in schemas.items()}


def has_circular_reference(name: str, dependency_map: Mapping[str, list[str]]) -> bool:
    """Whether a dependency path starting at *name* ever returns to a node on it.

    Iterative depth-first search with an explicit on-path set, so it finds
    cycles of any length without recursion limits. Nodes whose subtree has
    been fully explored are never expanded twice, which keeps the walk
    linear in the size of the graph.
    """
    on_path: set[str] = set()
    finished: set[str] = set()
    stack: list[tuple[str, Iterable[str]]] = [(name, iter(dependency_map.get(name, ())))]
    on_path.add(name)

    while stack:
        node, children = stack[-1]
        for child in children:
            if child in on_path:
                return True
            if child not in finished:
                on_path.add(child)
                stack.append((child, iter(dependency_map.get(child, ()))))
                break
        else:
            stack.pop()
            on_path.discard(node)
            finished.add(node)
    return False


# --- Metrics ---


def _complexity_walk(node: Any, schemas: Mapping[str, Any], depth: int) -> tuple[int, int, int]:
    """Return ``(complexity, max_depth, property_count)`` below *node*."""
    if not isinstance(node, dict) or depth > MAX_COMPLEXITY_DEPTH:
        return 0, depth, 0

    complexity = 0
    max_depth = depth
    prop_count = 0

    properties = node.get("properties")
    if isinstance(properties, dict) and properties:
        prop_count = len(properties)
        complexity += prop_count
        for prop in properties.values():
            c, d, p = _complexity_walk(resolve_schema_reference(prop, schemas), schemas, depth + 1)
            complexity += c
            max_depth = max(max_depth, d)
            prop_count += p

    items = node.get("items")
    if items:
        c, d, p = _complexity_walk(resolve_schema_reference(items, schemas), schemas, depth + 1)
        complexity += c
        max_depth = max(max_depth, d)
        prop_count += p

    if any(node.get(keyword) for keyword in COMPOSITION_KEYWORDS):
        complexity += POLYMORPHISM_BONUS

    return complexity, max_depth, prop_count


def compute_metrics(
    name: str,
    schema: Any,
    dependency_map: Mapping[str, list[str]],
    schemas: Optional[Mapping[str, Any]] = None,
) -> SchemaMetrics:
    """Structural metrics for one named schema.

    Complexity counts every property at every level, followed through
    references, plus a bonus of 5 for each node using ``allOf``/``oneOf``/
    ``anyOf``. The walk stops below depth 10, which also bounds it on
    cyclic graphs.

    Args:
        name: The schema's name in the map.
        schema: The schema object (may itself be a reference).
        dependency_map: Output of :func:`build_dependency_map`.
        schemas: The full named-schema map used to follow references.
    """
    schemas = schemas or {}
    resolved = resolve_schema_reference(schema, schemas)
    complexity, depth, prop_count = _complexity_walk(resolved, schemas, 0)

    required = resolved.get("required") if isinstance(resolved, dict) else None
    return SchemaMetrics(
        complexity=complexity,
        depth=depth,
        property_count=prop_count,
        required_count=len(required) if isinstance(required, list) else 0,
        dependency_count=len(dependency_map.get(name, ())),
        circular_refs=has_circular_reference(name, dependency_map),
    )


def compute_all_metrics(
    schemas: Mapping[str, Any], dependency_map: Optional[DependencyMap] = None
) -> dict[str, SchemaMetrics]:
    """Metrics for every schema in *schemas*, in map order."""
    if dependency_map is None:
        dependency_map = build_dependency_map(schemas)
    return {
        name: compute_metrics(name, schema, dependency_map, schemas)
        for name, schema in schemas.items()
    }


# --- Properties and comparison ---


def iter_properties(name: str, schema: Any, schemas: Mapping[str, Any]) -> list[PropertyInfo]:
    """Flatten a schema into one :class:`~specmaster.models.PropertyInfo` per property.

    Nested objects (inline or referenced) are descended into with dotted
    paths such as ``address.street``. A schema already being expanded on
    the current path is not expanded again, so self- and mutually
    referencing schemas terminate.
    """
    results: list[PropertyInfo] = []

    def _walk(node: Any, path: str, active: tuple[int, ...]) -> None:
        resolved = resolve_schema_reference(node, schemas)
        if not isinstance(resolved, dict) or id(resolved) in active:
            return
        properties = resolved.get("properties")
        if not isinstance(properties, dict):
            return
        active = active + (id(resolved),)
        required = resolved.get("required")
        required_names = set(required) if isinstance(required, list) else set()

        for prop_name, prop_schema in properties.items():
            prop_name = str(prop_name)
            current = f"{path}.{prop_name}" if path else prop_name
            prop = resolve_schema_reference(prop_schema, schemas)
            if not isinstance(prop, dict):
                prop = {}
            enum = prop.get("enum")
            description = prop.get("description")
            fmt = prop.get("format")
            results.append(
                PropertyInfo(
                    schema_name=name,
                    property=prop_name,
                    type=prop.get("type") or "unknown",
                    path=current,
                    required=prop_name in required_names,
                    description=description if isinstance(description, str) else None,
                    format=fmt if isinstance(fmt, str) else None,
                    enum=enum if isinstance(enum, list) else None,
                    deprecated=prop.get("deprecated") is True,
                )
            )
            if prop.get("type") == "object" or "properties" in prop:
                _walk(prop, current, active)

    _walk(schema, "", ())
    return results


def compatibility_score(
    first: str,
    second: str,
    schemas: Mapping[str, Any],
) -> int:
    """Similarity of two named schemas as an integer percentage.

    60% is the Jaccard similarity of their (flattened) property names, 40%
    the share of common names whose types agree. Two schemas without any
    properties are considered identical.
    """
    props_a = iter_properties(first, schemas.get(first), schemas)
    props_b = iter_properties(second, schemas.get(second), schemas)

    types_a: dict[str, Any] = {}
    for prop in props_a:
        types_a.setdefault(prop.property, prop.type)
    types_b: dict[str, Any] = {}
    for prop in props_b:
        types_b.setdefault(prop.property, prop.type)

    union = types_a.keys() | types_b.keys()
    if not union:
        return 100
    common = types_a.keys() & types_b.keys()
    jaccard = len(common) / len(union)
    if common:
        type_agreement = sum(1 for key in common if types_a[key] == types_b[key]) / len(common)
    else:
        type_agreement = 1.0
    return round((jaccard * 0.6 + type_agreement * 0.4) * 100)


def compare_schemas(
    names: list[str],
    schemas: Mapping[str, Any],
    metrics: Optional[Mapping[str, SchemaMetrics]] = None,
) -> list[SchemaComparison]:
    """Describe how each schema in *names* differs from the first one.

    Reported differences: flattened property count, complexity gaps larger
    than 10, required fields missing or added, and properties whose type
    changed.
    """
    if metrics is None:
        metrics = compute_all_metrics(schemas)

    rows: list[SchemaComparison] = []
    base_props: list[PropertyInfo] = []
    for index, name in enumerate(names):
        props = iter_properties(name, schemas.get(name), schemas)
        row_metrics = metrics.get(name)
        differences: list[str] = []

        if index > 0:
            base = rows[0]
            if len(props) != len(base_props):
                differences.append(
                    f"Property count differs: {len(props)} vs {len(base_props)}"
                )
            if row_metrics and base.metrics:
                if abs(row_metrics.complexity - base.metrics.complexity) > 10:
                    differences.append(
                        "Complexity differs significantly: "
                        f"{row_metrics.complexity} vs {base.metrics.complexity}"
                    )
            required = list(dict.fromkeys(p.property for p in props if p.required))
            base_required = list(dict.fromkeys(p.property for p in base_props if p.required))
            missing = [f for f in base_required if f not in required]
            extra = [f for f in required if f not in base_required]
            if missing:
                differences.append(f"Missing required fields: {', '.join(missing)}")
            if extra:
                differences.append(f"Extra required fields: {', '.join(extra)}")

            base_types = {}
            for p in base_props:
                base_types.setdefault(p.property, p.type)
            changed = [
                p.property
                for p in props
                if p.property in base_types and base_types[p.property] != p.type
            ]
            if changed:
                differences.append(f"Type differences in: {', '.join(changed)}")
        else:
            base_props = props

        rows.append(
            SchemaComparison(
                name=name,
                metrics=row_metrics,
                property_count=len(props),
                differences=differences,
            )
        )
    return rows


# --- Validation ---


def _issue(severity: ValidationSeverity, message: str, path: str, suggestion: str) -> ValidationIssue:
    return ValidationIssue(severity=severity, message=message, path=path, suggestion=suggestion)


def validate_schema(
    name: str,
    schema: Any,
    schemas: Mapping[str, Any],
    metrics: Optional[SchemaMetrics] = None,
) -> list[ValidationIssue]:
    """Design lint for one schema: documentation, constraints, and structure."""
    issues: list[ValidationIssue] = []
    resolved = resolve_schema_reference(schema, schemas)
    if not isinstance(resolved, dict):
        resolved = {}

    if not resolved.get("title"):
        issues.append(_issue(
            ValidationSeverity.WARNING, "Schema is missing a title", name,
            "Add a descriptive title for better API documentation",
        ))
    if not resolved.get("description"):
        issues.append(_issue(
            ValidationSeverity.WARNING, "Schema is missing a description", name,
            "Add a comprehensive description explaining the purpose and usage",
        ))

    if metrics is not None:
        if metrics.circular_refs:
            issues.append(_issue(
                ValidationSeverity.ERROR, "Circular dependency detected", name,
                "Refactor to remove circular references by using composition or inheritance",
            ))
        if metrics.complexity > 100:
            issues.append(_issue(
                ValidationSeverity.WARNING, f"High complexity score ({metrics.complexity})", name,
                "Consider breaking down into smaller, more focused schemas",
            ))
        if metrics.property_count > 30:
            issues.append(_issue(
                ValidationSeverity.WARNING,
                f"Large number of properties ({metrics.property_count})", name,
                "Consider grouping related properties into nested objects",
            ))
        if metrics.depth > 5:
            issues.append(_issue(
                ValidationSeverity.WARNING, f"Deep nesting detected ({metrics.depth} levels)", name,
                "Consider flattening the structure or using references",
            ))

    properties = resolved.get("properties")
    if isinstance(properties, dict):
        for prop_name, prop_schema in properties.items():
            prop = resolve_schema_reference(prop_schema, schemas)
            if not isinstance(prop, dict):
                prop = {}
            path = f"{name}.{prop_name}"
            prop_type = prop.get("type")
            description = prop.get("description")

            if not description:
                issues.append(_issue(
                    ValidationSeverity.INFO, f"Property '{prop_name}' is missing a description", path,
                    "Add a description explaining the property purpose and expected values",
                ))
            if prop_type == "string" and not (
                prop.get("maxLength") or prop.get("enum") or prop.get("format")
            ):
                issues.append(_issue(
                    ValidationSeverity.WARNING,
                    f"String property '{prop_name}' has no length constraints", path,
                    "Add maxLength constraint to prevent potential issues",
                ))
            if prop_type in ("number", "integer") and "minimum" not in prop and "maximum" not in prop:
                issues.append(_issue(
                    ValidationSeverity.INFO,
                    f"Numeric property '{prop_name}' has no range constraints", path,
                    "Consider adding minimum/maximum constraints for better validation",
                ))
            if prop_type == "array" and not prop.get("items"):
                issues.append(_issue(
                    ValidationSeverity.ERROR,
                    f"Array property '{prop_name}' is missing items definition", path,
                    "Define the type/schema for array items",
                ))
            if prop.get("deprecated") and "use" not in (description if isinstance(description, str) else ""):
                issues.append(_issue(
                    ValidationSeverity.WARNING,
                    f"Deprecated property '{prop_name}' has no replacement guidance", path,
                    "Include guidance on what to use instead in the description",
                ))

    if resolved.get("required") == []:
        issues.append(_issue(
            ValidationSeverity.INFO, "Schema has no required fields", name,
            "Consider marking essential fields as required for better validation",
        ))
    if resolved.get("type") == "object" and "additionalProperties" not in resolved:
        issues.append(_issue(
            ValidationSeverity.INFO, "additionalProperties not explicitly defined", name,
            "Explicitly set additionalProperties to true or false for clarity",
        ))
    return issues


def validate_all(
    schemas: Mapping[str, Any], metrics: Optional[Mapping[str, SchemaMetrics]] = None
) -> dict[str, list[ValidationIssue]]:
    if metrics is None:
        metrics = compute_all_metrics(schemas)
    return {
        name: validate_schema(name, schema, schemas, metrics.get(name))
        for name, schema in schemas.items()
    }


def validation_summary(
    issues_by_schema: Mapping[str, list[ValidationIssue]], total_schemas: Optional[int] = None
) -> ValidationSummary:
    counts = Counter(
        issue.severity for issues in issues_by_schema.values() for issue in issues
    )
    return ValidationSummary(
        total=sum(counts.values()),
        errors=counts[ValidationSeverity.ERROR],
        warnings=counts[ValidationSeverity.WARNING],
        info=counts[ValidationSeverity.INFO],
        schemas_with_issues=sum(1 for issues in issues_by_schema.values() if issues),
        total_schemas=len(issues_by_schema) if total_schemas is None else total_schemas,
    )


# --- Analytics ---


def complexity_bucket(complexity: int) -> str:
    for label, ceiling in COMPLEXITY_BUCKETS:
        if ceiling is None or complexity <= ceiling:
            return label
    return COMPLEXITY_BUCKETS[-1][0]


def health_score(summary: ValidationSummary) -> int:
    """100 minus weighted issues (errors x3, warnings x1) over 5 issues per schema."""
    if summary.total_schemas <= 0:
        return 100
    weighted = summary.errors * 3 + summary.warnings
    return max(0, round(100 - weighted / (summary.total_schemas * 5) * 100))


def schema_analytics(schemas: Mapping[str, Any], top: int = 5) -> SchemaAnalytics:
    """Aggregate metrics, distributions, health score and recommendations."""
    dependency_map = build_dependency_map(schemas)
    metrics = compute_all_metrics(schemas, dependency_map)
    total = len(schemas)
    if total == 0:
        return SchemaAnalytics()

    total_properties = sum(m.property_count for m in metrics.values())
    circular = sum(1 for m in metrics.values() if m.circular_refs)
    distribution = {label: 0 for label, _ in COMPLEXITY_BUCKETS}
    for m in metrics.values():
        distribution[complexity_bucket(m.complexity)] += 1

    type_counts: Counter[str] = Counter()
    for name, schema in schemas.items():
        for prop in iter_properties(name, schema, schemas):
            type_counts[str(prop.type)] += 1

    depended: Counter[str] = Counter(dep for deps in dependency_map.values() for dep in deps)
    most_dependencies = sorted(metrics.items(), key=lambda item: -item[1].dependency_count)
    isolated = sum(1 for m in metrics.values() if m.dependency_count == 0)

    summary = validation_summary(validate_all(schemas, metrics), total)
    average_properties = round(total_properties / total)

    recommendations: list[str] = []
    if distribution["extreme"]:
        recommendations.append(
            f"{distribution['extreme']} schemas have extremely high complexity (>100). "
            "Consider refactoring."
        )
    if circular:
        recommendations.append(
            f"{circular} schemas have circular dependencies. This can cause issues."
        )
    if isolated > total * 0.3:
        recommendations.append(
            f"{isolated} schemas are isolated. Consider if they can be consolidated."
        )
    if average_properties > 25:
        recommendations.append(
            f"Average of {average_properties} properties per schema is high. "
            "Consider splitting large schemas."
        )

    return SchemaAnalytics(
        total_schemas=total,
        average_complexity=round(sum(m.complexity for m in metrics.values()) / total),
        total_properties=total_properties,
        total_dependencies=sum(m.dependency_count for m in metrics.values()),
        circular_refs=circular,
        complexity_distribution=distribution,
        type_distribution=dict(type_counts.most_common()),
        most_depended=dict(depended.most_common(top)),
        most_dependencies={
            name: m.dependency_count for name, m in most_dependencies[:top] if m.dependency_count
        },
        isolated_schemas=isolated,
        health_score=health_score(summary),
        validation=summary,
        recommendations=recommendations,
    )

"""Tests for the schema reference graph, metrics, validation and analytics."""

from __future__ import annotations

import pytest

from specmaster.analysis.schema_graph import (
    build_dependency_map,
    compare_schemas,
    compatibility_score,
    complexity_bucket,
    compute_all_metrics,
    compute_metrics,
    find_dependencies,
    has_circular_reference,
    health_score,
    iter_properties,
    schema_analytics,
    schema_ref_name,
    schemas_from_document,
    validate_schema,
    validation_summary,
)
from specmaster.models import AssembledSpecification, ValidationSeverity, ValidationSummary


def _ref(name: str) -> dict:
    return {"$ref": f"#/components/schemas/{name}"}


USER_ADDRESS = {
    "User": {"type": "object", "properties": {"id": _ref("Address")}},
    "Address": {"type": "object", "properties": {"owner": _ref("User")}},
}


# ------------------------------------------------------------------ #
# References and dependencies
# ------------------------------------------------------------------ #


class TestReferences:
    def test_ref_name(self) -> None:
        assert schema_ref_name("#/components/schemas/Pet") == "Pet"
        assert schema_ref_name("#/definitions/Pet") == "Pet"
        assert schema_ref_name("other.yaml#/Pet") == "other.yaml#/Pet"

    def test_schemas_from_document(self, petstore_result, petstore_schemas) -> None:
        assert schemas_from_document(petstore_result.spec) == petstore_schemas
        assert schemas_from_document({"components": {"schemas": {"A": {}}}}) == {"A": {}}
        assert schemas_from_document({"definitions": {"B": {}}}) == {"B": {}}
        assert schemas_from_document(None) == {}
        assert schemas_from_document(AssembledSpecification()) == {}


class TestDependencies:
    def test_no_references(self) -> None:
        schemas = {"Flat": {"type": "object", "properties": {"a": {"type": "string"}}}}
        deps = build_dependency_map(schemas)
        assert deps == {"Flat": []}
        assert not has_circular_reference("Flat", deps)

    def test_direct_dependencies_in_order(self, petstore_schemas) -> None:
        deps = build_dependency_map(petstore_schemas)
        assert deps["Pet"] == ["User"]
        assert deps["User"] == ["Address"]
        assert deps["NewPet"] == []

    def test_nested_locations_are_found(self) -> None:
        schema = {
            "allOf": [_ref("Base")],
            "properties": {
                "items": {"type": "array", "items": _ref("Item")},
                "extra": {"additionalProperties": _ref("Item")},
            },
        }
        schemas = {"Base": {}, "Item": {}, "Thing": schema}
        assert find_dependencies("Thing", schema, schemas) == ["Base", "Item"]

    def test_unknown_and_self_references_are_excluded(self, petstore_schemas) -> None:
        schema = {"properties": {"a": _ref("Missing"), "b": _ref("Self")}}
        assert find_dependencies("Self", schema, {"Self": schema}) == []
        assert build_dependency_map(petstore_schemas)["Node"] == []

    def test_swagger_definitions(self) -> None:
        schemas = {
            "Pet": {"properties": {"owner": {"$ref": "#/definitions/User"}}},
            "User": {},
        }
        assert build_dependency_map(schemas)["Pet"] == ["User"]


class TestCircularReferences:
    def test_mutual_references_flag_both(self) -> None:
        metrics = compute_all_metrics(USER_ADDRESS)
        assert metrics["User"].circular_refs is True
        assert metrics["Address"].circular_refs is True
        assert metrics["User"].dependency_count == 1
        assert metrics["Address"].dependency_count == 1

    def test_reaching_a_cycle_counts(self) -> None:
        deps = {"A": ["B"], "B": ["C"], "C": ["B"]}
        assert has_circular_reference("A", deps)

    def test_diamond_is_not_a_cycle(self) -> None:
        deps = {"A": ["B", "C"], "B": ["D"], "C": ["D"], "D": []}
        assert not has_circular_reference("A", deps)

    def test_long_chain_does_not_recurse(self) -> None:
        deps = {f"S{i}": [f"S{i + 1}"] for i in range(5000)}
        assert not has_circular_reference("S0", deps)
        deps["S5000"] = ["S0"]
        assert has_circular_reference("S0", deps)

    def test_unknown_name(self) -> None:
        assert not has_circular_reference("Nope", {})


# ------------------------------------------------------------------ #
# Metrics
# ------------------------------------------------------------------ #


class TestMetrics:
    def test_nested_references_are_followed(self, petstore_schemas) -> None:
        metrics = compute_all_metrics(petstore_schemas)
        user = metrics["User"]
        assert (user.complexity, user.depth, user.property_count) == (5, 2, 5)
        assert user.required_count == 1
        assert user.dependency_count == 1
        assert not user.circular_refs

        pet = metrics["Pet"]
        assert (pet.complexity, pet.depth, pet.property_count) == (9, 3, 9)
        assert pet.required_count == 2

    def test_composition_bonus(self) -> None:
        schemas = {
            "Circle": {"type": "object", "properties": {"r": {"type": "number"}}},
            "Shape": {"oneOf": [_ref("Circle")]},
        }
        deps = build_dependency_map(schemas)
        shape = compute_metrics("Shape", schemas["Shape"], deps, schemas)
        assert shape.complexity == 5
        assert shape.dependency_count == 1

    def test_depth_is_capped_on_cycles(self, petstore_schemas) -> None:
        node = compute_all_metrics(petstore_schemas)["Node"]
        assert node.complexity == 12
        assert node.depth == 11
        assert not node.circular_refs

    def test_mutual_cycle_terminates(self) -> None:
        metrics = compute_all_metrics(USER_ADDRESS)
        assert metrics["User"].depth == 11

    def test_non_object_schema(self) -> None:
        metrics = compute_metrics("S", {"type": "string"}, {})
        assert metrics.complexity == 0
        assert metrics.property_count == 0
        assert metrics.required_count == 0


# ------------------------------------------------------------------ #
# Properties and comparison
# ------------------------------------------------------------------ #


class TestProperties:
    def test_flattened_paths(self, petstore_schemas) -> None:
        props = iter_properties("User", petstore_schemas["User"], petstore_schemas)
        assert [p.path for p in props] == ["id", "email", "address", "address.street", "address.city"]
        assert props[0].required is True
        assert props[1].format == "email"
        assert props[2].type == "object"

    def test_cycles_terminate(self) -> None:
        props = iter_properties("User", USER_ADDRESS["User"], USER_ADDRESS)
        assert [p.path for p in props] == ["id", "id.owner"]

    def test_missing_type_is_unknown(self) -> None:
        props = iter_properties("X", {"properties": {"a": {}}}, {})
        assert props[0].type == "unknown"


class TestCompatibility:
    def test_self_compatibility(self, petstore_schemas) -> None:
        for name in petstore_schemas:
            assert compatibility_score(name, name, petstore_schemas) == 100

    def test_symmetric(self, petstore_schemas) -> None:
        names = list(petstore_schemas)
        for a in names:
            for b in names:
                assert compatibility_score(a, b, petstore_schemas) == compatibility_score(
                    b, a, petstore_schemas
                )

    def test_partial_overlap(self, petstore_schemas) -> None:
        assert compatibility_score("Pet", "NewPet", petstore_schemas) == 55

    def test_no_properties_on_either_side(self) -> None:
        assert compatibility_score("A", "B", {"A": {"type": "string"}, "B": {}}) == 100

    def test_disjoint(self) -> None:
        schemas = {
            "A": {"properties": {"x": {"type": "string"}}},
            "B": {"properties": {"y": {"type": "string"}}},
        }
        assert compatibility_score("A", "B", schemas) == 40


class TestCompareSchemas:
    def test_differences_relative_to_first(self, petstore_schemas) -> None:
        rows = compare_schemas(["NewPet", "Pet"], petstore_schemas)
        assert rows[0].differences == []
        assert rows[1].property_count == 9
        assert "Property count differs: 9 vs 2" in rows[1].differences
        assert "Extra required fields: id" in rows[1].differences

    def test_type_changes(self) -> None:
        schemas = {
            "A": {"properties": {"x": {"type": "string"}}, "required": ["x"]},
            "B": {"properties": {"x": {"type": "integer"}}},
        }
        rows = compare_schemas(["A", "B"], schemas)
        assert "Missing required fields: x" in rows[1].differences
        assert "Type differences in: x" in rows[1].differences


# ------------------------------------------------------------------ #
# Validation and analytics
# ------------------------------------------------------------------ #


class TestValidation:
    def test_rules(self) -> None:
        schema = {
            "type": "object",
            "required": [],
            "properties": {"tags": {"type": "array"}, "name": {"type": "string"}},
        }
        issues = validate_schema("Thing", schema, {"Thing": schema})
        by_severity = {s: [i for i in issues if i.severity == s] for s in ValidationSeverity}
        assert len(by_severity[ValidationSeverity.ERROR]) == 1
        assert len(by_severity[ValidationSeverity.WARNING]) == 3
        assert len(by_severity[ValidationSeverity.INFO]) == 4
        assert by_severity[ValidationSeverity.ERROR][0].path == "Thing.tags"

    def test_documented_constrained_schema_is_clean(self) -> None:
        schema = {
            "title": "Money",
            "description": "An amount",
            "type": "object",
            "additionalProperties": False,
            "required": ["amount"],
            "properties": {
                "amount": {"type": "integer", "minimum": 0, "description": "Cents"},
                "currency": {"type": "string", "maxLength": 3, "description": "ISO code"},
            },
        }
        assert validate_schema("Money", schema, {"Money": schema}) == []

    def test_circular_is_an_error(self) -> None:
        metrics = compute_all_metrics(USER_ADDRESS)
        issues = validate_schema("User", USER_ADDRESS["User"], USER_ADDRESS, metrics["User"])
        assert any(
            i.severity == ValidationSeverity.ERROR and "Circular" in i.message for i in issues
        )

    def test_deprecated_property_without_guidance(self) -> None:
        schema = {"properties": {"old": {"type": "integer", "deprecated": True, "minimum": 0}}}
        issues = validate_schema("S", schema, {})
        assert any("replacement guidance" in i.message for i in issues)

    def test_summary_and_health(self) -> None:
        summary = validation_summary({"A": [], "B": []}, 2)
        assert summary.total == 0
        assert health_score(summary) == 100
        assert health_score(ValidationSummary(errors=1, warnings=2, total_schemas=2)) == 50
        assert health_score(ValidationSummary(errors=50, total_schemas=1)) == 0


class TestAnalytics:
    @pytest.mark.parametrize(
        "complexity, bucket",
        [(0, "low"), (10, "low"), (11, "medium"), (50, "medium"), (100, "high"), (101, "extreme")],
    )
    def test_buckets(self, complexity: int, bucket: str) -> None:
        assert complexity_bucket(complexity) == bucket

    def test_empty(self) -> None:
        analytics = schema_analytics({})
        assert analytics.total_schemas == 0
        assert analytics.health_score == 100

    def test_fixture(self, petstore_schemas) -> None:
        analytics = schema_analytics(petstore_schemas)
        assert analytics.total_schemas == 5
        assert analytics.total_dependencies == 2
        assert analytics.circular_refs == 0
        assert analytics.isolated_schemas == 3
        assert analytics.most_depended == {"User": 1, "Address": 1}
        assert analytics.most_dependencies == {"Pet": 1, "User": 1}
        assert set(analytics.complexity_distribution) == {"low", "medium", "high", "extreme"}
        assert sum(analytics.complexity_distribution.values()) == 5
        assert analytics.type_distribution["string"] > 0
        assert analytics.validation.total_schemas == 5
        assert 0 <= analytics.health_score <= 100
        assert any("isolated" in r for r in analytics.recommendations)

    def test_circular_recommendation(self) -> None:
        analytics = schema_analytics(USER_ADDRESS)
        assert analytics.circular_refs == 2
        assert any("circular" in r for r in analytics.recommendations)

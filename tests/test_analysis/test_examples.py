"""Tests for request snippet generation."""

from __future__ import annotations

import pytest

from specmaster.analysis.examples import generate_code_example, server_url
from specmaster.models import AssembledSpecification, CodeLanguage, HTTPMethod
from specmaster.parser.assembler import build_endpoint

BASE = "https://petstore.example.com/v1"


def _endpoint(result, method: str, path: str):
    for endpoint in result.endpoints:
        if endpoint.method.value == method and endpoint.path == path:
            return endpoint
    raise AssertionError(f"{method} {path} missing from fixture")


# ------------------------------------------------------------------ #
# server_url
# ------------------------------------------------------------------ #


class TestServerUrl:
    def test_first_server(self, petstore_result) -> None:
        assert server_url(petstore_result.spec) == BASE

    def test_missing_or_malformed_servers(self) -> None:
        assert server_url(None) == ""
        assert server_url(AssembledSpecification()) == ""
        assert server_url(AssembledSpecification(servers=["x", {"url": 3}])) == ""

    def test_trailing_slash_is_dropped(self) -> None:
        spec = AssembledSpecification(servers=[{"url": "https://a.example.com/"}])
        assert server_url(spec) == "https://a.example.com"


# ------------------------------------------------------------------ #
# curl
# ------------------------------------------------------------------ #


class TestCurl:
    def test_get_without_body(self, petstore_result) -> None:
        code = generate_code_example(_endpoint(petstore_result, "GET", "/pets"), "curl", BASE)
        assert code == f'curl -X GET "{BASE}/pets"'

    def test_post_with_body(self, petstore_result) -> None:
        code = generate_code_example(_endpoint(petstore_result, "POST", "/pets"), base_url=BASE)
        assert code == (
            f'curl -X POST "{BASE}/pets" \\\n'
            '  -H "Content-Type: application/json" \\\n'
            "  -d '{\"example\": \"data\"}'"
        )

    def test_header_parameters_become_placeholders(self) -> None:
        endpoint = build_endpoint(
            HTTPMethod.DELETE,
            "/items/{id}",
            {
                "parameters": [
                    {"name": "id", "in": "path"},
                    {"name": "X-Request-Id", "in": "header"},
                    {"$ref": "#/components/parameters/Trace"},
                ],
                "requestBody": {"content": {}},
            },
        )
        code = generate_code_example(endpoint, CodeLanguage.CURL)
        assert code == 'curl -X DELETE "/items/{id}" \\\n  -H "X-Request-Id: <X-Request-Id>"'

    def test_base_url_slash_is_not_doubled(self) -> None:
        endpoint = build_endpoint(HTTPMethod.GET, "/a", {})
        assert generate_code_example(endpoint, "curl", "https://h/") == 'curl -X GET "https://h/a"'


# ------------------------------------------------------------------ #
# Other languages
# ------------------------------------------------------------------ #


class TestLanguages:
    def test_python_get(self, petstore_result) -> None:
        code = generate_code_example(_endpoint(petstore_result, "GET", "/pets"), "python", BASE)
        assert code.splitlines()[0] == "import httpx"
        assert f'url = "{BASE}/pets"' in code
        assert 'response = httpx.request("GET", url)' in code
        assert "headers =" not in code

    def test_python_post(self, petstore_result) -> None:
        code = generate_code_example(_endpoint(petstore_result, "POST", "/pets"), "python")
        assert 'headers = {"Content-Type": "application/json"}' in code
        assert 'httpx.request("POST", url, headers=headers, json=data)' in code

    def test_javascript(self, petstore_result) -> None:
        get = generate_code_example(_endpoint(petstore_result, "GET", "/pets"), "javascript", BASE)
        post = generate_code_example(_endpoint(petstore_result, "POST", "/pets"), "javascript", BASE)
        assert get.startswith(f"const response = await fetch('{BASE}/pets', {{")
        assert "body" not in get
        assert "  body: JSON.stringify({" in post
        assert "'Content-Type': 'application/json'," in post

    def test_typescript(self, petstore_result) -> None:
        get = generate_code_example(_endpoint(petstore_result, "GET", "/pets"), "typescript")
        patch = generate_code_example(
            _endpoint(petstore_result, "PATCH", "/orders/{orderId}"), "typescript"
        )
        assert "interface ApiResponse {" in get
        assert "RequestData" not in get
        assert "interface RequestData {" in patch
        assert "  } as RequestData)," in patch
        assert patch.endswith("console.log(data);")

    def test_body_only_for_body_methods(self) -> None:
        endpoint = build_endpoint(HTTPMethod.GET, "/q", {"requestBody": {"content": {}}})
        assert "-d" not in generate_code_example(endpoint, "curl")
        assert "json=data" not in generate_code_example(endpoint, "python")
        assert "body" not in generate_code_example(endpoint, "javascript")
        assert "RequestData" not in generate_code_example(endpoint, "typescript")

    def test_unknown_language(self, petstore_result) -> None:
        with pytest.raises(ValueError):
            generate_code_example(petstore_result.endpoints[0], "cobol")

"""Request snippets for a single endpoint.

Snippets are templates: the URL is the first server URL joined with the
path template, header parameters appear as placeholders, and a request
body is only sketched for POST, PUT and PATCH operations that declare one.
"""

from __future__ import annotations

import json
from typing import Optional

from specmaster.models import AssembledSpecification, CodeLanguage, EndpointRecord, HTTPMethod

BODY_METHODS = frozenset({HTTPMethod.POST, HTTPMethod.PUT, HTTPMethod.PATCH})

_SAMPLE_BODY = '{"example": "data"}'


def server_url(spec: Optional[AssembledSpecification]) -> str:
    """First ``servers[].url`` of *spec*, without a trailing slash, or ``""``."""
    if spec is None:
        return ""
    for server in spec.servers:
        if isinstance(server, dict) and isinstance(server.get("url"), str):
            return server["url"].rstrip("/")
    return ""


def _sends_body(endpoint: EndpointRecord) -> bool:
    return endpoint.request_body is not None and endpoint.method in BODY_METHODS


def _header_names(endpoint: EndpointRecord) -> list[str]:
    names: list[str] = []
    for param in endpoint.parameters:
        if isinstance(param, dict) and param.get("in") == "header" and param.get("name"):
            names.append(str(param["name"]))
    return names


def _headers(endpoint: EndpointRecord) -> dict[str, str]:
    headers = {"Content-Type": "application/json"} if _sends_body(endpoint) else {}
    for name in _header_names(endpoint):
        headers[name] = f"<{name}>"
    return headers


def _curl(endpoint: EndpointRecord, url: str) -> str:
    parts = [f'curl -X {endpoint.method.value} "{url}"']
    parts.extend(f'-H "{key}: {value}"' for key, value in _headers(endpoint).items())
    if _sends_body(endpoint):
        parts.append(f"-d '{_SAMPLE_BODY}'")
    return " \\\n  ".join(parts)


def _fetch_options(endpoint: EndpointRecord, body_suffix: str = "") -> list[str]:
    lines = [f"  method: '{endpoint.method.value}',"]
    headers = _headers(endpoint)
    if headers:
        lines.append("  headers: {")
        lines.extend(f"    '{key}': '{value}'," for key, value in headers.items())
        lines.append("  },")
    if _sends_body(endpoint):
        lines.append("  body: JSON.stringify({")
        lines.append("    // request data")
        lines.append(f"  }}{body_suffix}),")
    return lines


def _javascript(endpoint: EndpointRecord, url: str) -> str:
    lines = [f"const response = await fetch('{url}', {{"]
    lines.extend(_fetch_options(endpoint))
    lines += ["});", "", "const data = await response.json();", "console.log(data);"]
    return "\n".join(lines)


def _typescript(endpoint: EndpointRecord, url: str) -> str:
    lines = ["interface ApiResponse {", "  // response fields", "}", ""]
    if _sends_body(endpoint):
        lines += ["interface RequestData {", "  // request fields", "}", ""]
    lines.append(f"const response = await fetch('{url}', {{")
    lines.extend(_fetch_options(endpoint, " as RequestData"))
    lines += [
        "});",
        "",
        "const data: ApiResponse = await response.json();",
        "console.log(data);",
    ]
    return "\n".join(lines)


def _python(endpoint: EndpointRecord, url: str) -> str:
    lines = ["import httpx", "", f"url = {json.dumps(url)}"]
    args = [json.dumps(endpoint.method.value), "url"]
    headers = _headers(endpoint)
    if headers:
        lines.append(f"headers = {json.dumps(headers)}")
        args.append("headers=headers")
    if _sends_body(endpoint):
        lines += ["data = {", "    # request data", "}"]
        args.append("json=data")
    lines += [
        "",
        f"response = httpx.request({', '.join(args)})",
        "response.raise_for_status()",
        "print(response.json())",
    ]
    return "\n".join(lines)


_RENDERERS = {
    CodeLanguage.CURL: _curl,
    CodeLanguage.JAVASCRIPT: _javascript,
    CodeLanguage.PYTHON: _python,
    CodeLanguage.TYPESCRIPT: _typescript,
}


def generate_code_example(
    endpoint: EndpointRecord,
    language: CodeLanguage | str = CodeLanguage.CURL,
    base_url: str = "",
) -> str:
    """Return a snippet that calls *endpoint* in *language*.

    Args:
        endpoint: The operation to call.
        language: ``curl``, ``javascript``, ``python`` or ``typescript``.
        base_url: Prefix for the path template, usually :func:`server_url`.

    Raises:
        ValueError: If *language* is not supported.
    """
    render = _RENDERERS[CodeLanguage(language)]
    return render(endpoint, base_url.rstrip("/") + endpoint.path)

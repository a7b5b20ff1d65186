"""specmaster -- Stream-parse and analyse OpenAPI / Swagger documents.

This package reads OpenAPI 3.x and Swagger 2.0 documents (JSON or YAML) in
fixed-size chunks, emits each top-level section as soon as it is complete,
assembles the sections into a single specification, and annotates every
operation with heuristic metadata. A separate analyzer builds the schema
reference graph and computes structural metrics for every named schema.

Typical usage::

    import asyncio
    from specmaster.parser import StreamingParser

    result = asyncio.run(StreamingParser().parse_file("openapi.yaml"))
    for endpoint in result.endpoints:
        print(endpoint.method, endpoint.path, endpoint.complexity)

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    parser: Chunk scanner, stream orchestrator, assembler and loader.
    analysis: Endpoint heuristics, schema graph and endpoint analytics.
"""

__version__ = "0.3.0"

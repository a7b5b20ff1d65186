"""Canonical Pydantic models shared across all specmaster modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`StreamOptions`, :class:`CacheConfig`, :class:`OutputConfig` and
    :class:`GlobalConfig`.

**Parser models** -- produced by the chunk scanner, stream orchestrator and
document assembler:
    :class:`SectionKind`, :class:`DocumentFormat`, :class:`ParsedSection`,
    :class:`AssembledSpecification`, :class:`HTTPMethod`,
    :class:`EndpointRecord`, :class:`ProgressEvent`, :class:`ParseMetadata`
    and :class:`StreamResult`.

**Analysis models** -- produced by :mod:`specmaster.analysis`:
    :class:`SchemaMetrics`, :class:`PropertyInfo`, :class:`ValidationIssue`,
    :class:`ValidationSummary`, :class:`SchemaComparison`,
    :class:`SchemaAnalytics`, :class:`EndpointFilter` and
    :class:`EndpointAnalytics`.

Result models serialise with camelCase aliases (``openapiVersion``,
``businessContext``, ``parseTime``...) via ``model_dump(by_alias=True)`` and
accept either spelling on input.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# --- Config ---


class StreamOptions(BaseModel):
    """Tuning knobs for :class:`~specmaster.parser.stream.StreamingParser`.

    Stored under the ``stream`` key of :class:`GlobalConfig` and overridable
    through ``SPECMASTER_*`` environment variables and CLI flags.
    """

    chunk_size: int = Field(
        default=64 * 1024, gt=0, description="Characters/bytes read per slice"
    )
    max_memory_mb: int = Field(
        default=100, gt=0, description="Resident estimate that triggers section trimming"
    )
    max_file_size_mb: int = Field(
        default=50, gt=0, description="Caller-side file size ceiling"
    )
    prioritize_endpoints: bool = Field(
        default=True, description="Assemble sections in fixed priority order"
    )
    enable_compression: bool = Field(
        default=False, description="Report a compression ratio in the metadata"
    )
    retained_sections: int = Field(
        default=10, ge=1, description="Sections kept when memory pressure trims"
    )
    progress_interval_ms: int = Field(
        default=100, ge=0, description="Minimum gap between progress events of one stage"
    )


class CacheConfig(BaseModel):
    """Parse-result cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable parse-result caching")
    ttl_seconds: int = Field(default=3600, description="Cache TTL in seconds")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )
    show_progress: bool = Field(
        default=True, description="Render a progress bar while parsing in a TTY"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/specmaster/config.json``.

    Loaded and saved by :func:`~specmaster.config.load_global_config` and
    :func:`~specmaster.config.save_global_config`. See
    :func:`~specmaster.config.resolve_config` for the full precedence chain.
    """

    stream: StreamOptions = Field(default_factory=StreamOptions)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Parser ---


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SectionKind(str, enum.Enum):
    """The six recognised top-level OpenAPI sections.

    Declaration order doubles as the assembly priority order used when
    ``prioritize_endpoints`` is enabled.
    """

    INFO = "info"
    PATHS = "paths"
    COMPONENTS = "components"
    SERVERS = "servers"
    SECURITY = "security"
    TAGS = "tags"


SECTION_PRIORITY: dict[SectionKind, int] = {
    kind: index for index, kind in enumerate(SectionKind)
}


class DocumentFormat(str, enum.Enum):
    """Serialisation format of a source document."""

    JSON = "json"
    YAML = "yaml"


class ParsedSection(BaseModel):
    """A fully closed top-level section emitted by the chunk scanner.

    Sections are only ever created once their enclosing structure has closed,
    so ``payload`` is always the complete decoded value of that key.
    """

    kind: SectionKind
    payload: Any = None
    byte_size: int = 0
    emitted_at: float = Field(description="time.monotonic() at emission")


class AssembledSpecification(_CamelModel):
    """The merged document produced by :class:`~specmaster.parser.assembler.SpecAssembler`."""

    openapi_version: str = "3.0.0"
    info: dict[str, Any] = Field(
        default_factory=lambda: {"title": "Unknown", "version": "1.0.0"}
    )
    paths: dict[str, Any] = Field(default_factory=dict)
    components: dict[str, Any] = Field(default_factory=dict)
    servers: list[Any] = Field(default_factory=list)
    security: list[Any] = Field(default_factory=list)
    tags: list[Any] = Field(default_factory=list)

    @property
    def schemas(self) -> dict[str, Any]:
        """Named schemas from ``components.schemas`` (empty when absent)."""
        schemas = self.components.get("schemas")
        return schemas if isinstance(schemas, dict) else {}

    @property
    def title(self) -> str:
        return str(self.info.get("title", "Unknown"))


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised as operation keys of an OpenAPI path item.

    Values are upper-case; :attr:`key` gives the lower-case form used inside
    documents.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"

    @property
    def key(self) -> str:
        return self.value.lower()


class Complexity(str, enum.Enum):
    """Heuristic complexity class of an operation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ResponseTimeEstimate(str, enum.Enum):
    """Heuristic response-time label. Never measured."""

    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


class EndpointRecord(_CamelModel):
    """One operation (path + method) with derived heuristic annotations.

    Built once during assembly and immutable afterwards.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    method: HTTPMethod
    path: str
    summary: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    operation_id: str = ""
    parameters: list[Any] = Field(default_factory=list)
    request_body: Optional[dict[str, Any]] = None
    responses: dict[str, Any] = Field(default_factory=dict)
    security: Optional[list[Any]] = None
    deprecated: bool = False
    complexity: Complexity = Complexity.LOW
    business_context: str = "General"
    estimated_response_time: ResponseTimeEstimate = ResponseTimeEstimate.MEDIUM


class ProgressStage(str, enum.Enum):
    """Stages reported through :class:`ProgressEvent`, in emission order."""

    INITIALIZATION = "initialization"
    PARSING = "parsing"
    ASSEMBLING = "assembling"
    COMPLETE = "complete"


class ProgressEvent(BaseModel):
    """Progress notification passed to the caller's progress callback."""

    percentage: float = Field(ge=0, le=100)
    stage: ProgressStage
    message: str


class ParseMetadata(_CamelModel):
    """Bookkeeping attached to every :class:`StreamResult`."""

    total_size: int
    parse_time: float = Field(description="Wall-clock parse duration in milliseconds")
    chunks_processed: int
    memory_used: int = Field(description="Sum of section payload sizes in bytes")
    compression_ratio: Optional[float] = None


class StreamResult(_CamelModel):
    """Output of a streaming parse: the specification, its endpoints and metadata."""

    spec: AssembledSpecification
    endpoints: list[EndpointRecord] = Field(default_factory=list)
    metadata: ParseMetadata


# --- Analysis ---


class SchemaMetrics(_CamelModel):
    """Structural metrics for one named schema."""

    complexity: int = 0
    depth: int = 0
    property_count: int = 0
    required_count: int = 0
    dependency_count: int = 0
    circular_refs: bool = False


class PropertyInfo(_CamelModel):
    """A single property found while flattening a schema."""

    schema_name: str
    property: str
    type: Any = "unknown"
    path: str
    required: bool = False
    description: Optional[str] = None
    format: Optional[str] = None
    enum: Optional[list[Any]] = None
    deprecated: bool = False


class ValidationSeverity(str, enum.Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationIssue(BaseModel):
    """A schema design problem reported by :func:`~specmaster.analysis.schema_graph.validate_schema`."""

    severity: ValidationSeverity
    message: str
    path: str
    suggestion: Optional[str] = None


class ValidationSummary(_CamelModel):
    total: int = 0
    errors: int = 0
    warnings: int = 0
    info: int = 0
    schemas_with_issues: int = 0
    total_schemas: int = 0


class SchemaComparison(_CamelModel):
    """One row of a multi-schema comparison, relative to the first schema."""

    name: str
    metrics: Optional[SchemaMetrics] = None
    property_count: int = 0
    differences: list[str] = Field(default_factory=list)


class SchemaAnalytics(_CamelModel):
    """Aggregate figures over every schema in a document."""

    total_schemas: int = 0
    average_complexity: int = 0
    total_properties: int = 0
    total_dependencies: int = 0
    circular_refs: int = 0
    complexity_distribution: dict[str, int] = Field(default_factory=dict)
    type_distribution: dict[str, int] = Field(default_factory=dict)
    most_depended: dict[str, int] = Field(default_factory=dict)
    most_dependencies: dict[str, int] = Field(default_factory=dict)
    isolated_schemas: int = 0
    health_score: int = 100
    validation: ValidationSummary = Field(default_factory=ValidationSummary)
    recommendations: list[str] = Field(default_factory=list)


class EndpointFilter(_CamelModel):
    """Search criteria for :func:`~specmaster.analysis.endpoints.search_endpoints`.

    ``None`` / empty values mean "do not filter on this field".
    """

    query: Optional[str] = None
    methods: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    complexity: list[Complexity] = Field(default_factory=list)
    deprecated: Optional[bool] = None
    has_parameters: Optional[bool] = None
    has_request_body: Optional[bool] = None


class EndpointAnalytics(_CamelModel):
    """Aggregate figures over the endpoints of a document."""

    total_endpoints: int = 0
    deprecated_count: int = 0
    average_parameters_per_endpoint: float = 0.0
    method_distribution: dict[str, int] = Field(default_factory=dict)
    tag_distribution: dict[str, int] = Field(default_factory=dict)
    complexity_distribution: dict[str, int] = Field(default_factory=dict)
    business_context_distribution: dict[str, int] = Field(default_factory=dict)
    response_code_distribution: dict[str, int] = Field(default_factory=dict)
    security_schemes: list[str] = Field(default_factory=list)


class DesignFocus(str, enum.Enum):
    """Area examined by :func:`~specmaster.analysis.endpoints.review_design`."""

    SECURITY = "security"
    PERFORMANCE = "performance"
    DESIGN = "design"
    DOCUMENTATION = "documentation"
    ALL = "all"


class DesignReview(_CamelModel):
    """API design recommendations plus coverage percentages (0-100)."""

    focus: DesignFocus = DesignFocus.ALL
    recommendations: list[str] = Field(default_factory=list)
    total_endpoints: int = 0
    security_coverage: float = 0.0
    documentation_coverage: float = 0.0
    tag_coverage: float = 0.0


class CodeLanguage(str, enum.Enum):
    """Languages :func:`~specmaster.analysis.examples.generate_code_example` can emit."""

    CURL = "curl"
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    TYPESCRIPT = "typescript"


class ExportFormat(str, enum.Enum):
    """Output layouts of :func:`~specmaster.analysis.export.export_documentation`."""

    MARKDOWN = "markdown"
    JSON = "json"
    SUMMARY = "summary"

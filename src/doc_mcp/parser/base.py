"""Unified data models for parsed documentation.

All extractors (OpenAPI, Postman, Markdown, source code) convert their input
into a ParseResult built from these models. The normalizer turns the merged
ParseResult into a NormalizedSchema, which is what the server reads.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
ParamLocation = Literal["path", "query", "header", "cookie", "body"]

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")


class Contact(BaseModel):
    name: str | None = None
    email: str | None = None
    url: str | None = None


class License(BaseModel):
    name: str | None = None
    url: str | None = None


class ServerInfo(BaseModel):
    """A base URL the documented API is served from."""

    url: str
    description: str | None = None
    variables: dict[str, dict[str, Any]] | None = None


class ApiMetadata(BaseModel):
    """API-level information. Every field is optional until normalization."""

    title: str | None = None
    description: str | None = None
    version: str | None = None
    terms_of_service: str | None = None
    contact: Contact | None = None
    license: License | None = None
    servers: list[ServerInfo] | None = None
    custom: dict[str, Any] = {}


class Param(BaseModel):
    """A single endpoint parameter (path, query, header, cookie or body)."""

    name: str
    location: ParamLocation = "query"
    required: bool | None = None  # None until normalized
    param_type: str | None = None  # string / integer / boolean / array / object
    description: str = ""
    json_schema: dict[str, Any] | None = None
    example: Any = None
    deprecated: bool = False
    constraints: dict[str, Any] = {}  # minimum, maximum, pattern, enum, etc.


class ResponseSpec(BaseModel):
    status_code: int | str
    description: str = ""
    content: dict[str, dict[str, Any]] | None = None  # {media_type: {schema, example}}
    headers: dict[str, dict[str, Any]] | None = None


class RequestBody(BaseModel):
    required: bool = False
    description: str = ""
    content: dict[str, dict[str, Any]] = {}


class EndpointDraft(BaseModel):
    """A candidate endpoint as produced by an extractor; nothing is guaranteed."""

    method: str | None = None
    path: str | None = None
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    parameters: list[Param] | None = None
    request_body: RequestBody | None = None
    responses: list[ResponseSpec] | None = None
    security: list[dict[str, list[str]]] | None = None
    deprecated: bool | None = None
    metadata: dict[str, Any] | None = None


class ApiEndpoint(BaseModel):
    """A normalized endpoint. Unique by (method, path) within a schema."""

    method: HttpMethod
    path: str  # /api/users/{id}
    operation_id: str
    summary: str = ""
    description: str = ""
    tags: list[str] = []
    parameters: list[Param] = []
    request_body: RequestBody | None = None
    responses: list[ResponseSpec]
    security: list[dict[str, list[str]]] | None = None
    deprecated: bool = False
    metadata: dict[str, Any] = {}


class OAuthFlow(BaseModel):
    authorization_url: str | None = None
    token_url: str | None = None
    refresh_url: str | None = None
    scopes: dict[str, str] = {}


class SecurityScheme(BaseModel):
    type: Literal["apiKey", "http", "oauth2", "openIdConnect"]
    name: str | None = None
    location: Literal["header", "query", "cookie"] | None = None
    scheme: str | None = None
    bearer_format: str | None = None
    description: str | None = None
    flows: dict[str, OAuthFlow] | None = None
    open_id_connect_url: str | None = None


class AuthInfo(BaseModel):
    schemes: dict[str, SecurityScheme] = {}
    default_security: list[dict[str, list[str]]] = []
    description: str | None = None


class CodeExample(BaseModel):
    language: str
    code: str
    title: str | None = None


class DocResource(BaseModel):
    """A unit of free-text/code documentation addressable by id."""

    id: str
    name: str
    category: str = "docs"
    summary: str = ""
    content: str = ""
    code_examples: list[CodeExample] = []
    source: str = ""
    keywords: list[str] = Field(default=[], max_length=20)


class ParseResult(BaseModel):
    """Intermediate result of one extractor call, or the merge of several."""

    metadata: ApiMetadata = Field(default_factory=ApiMetadata)
    endpoints: list[EndpointDraft] = []
    schemas: dict[str, dict[str, Any]] = {}
    auth: AuthInfo = Field(default_factory=AuthInfo)
    resources: list[DocResource] = []


class SourceInfo(BaseModel):
    type: Literal["openapi", "markdown", "mixed"]
    files: list[str]
    parsed_at: datetime


class NormalizedSchema(BaseModel):
    """The canonical documentation model. Replaced wholesale on reload."""

    model_config = ConfigDict(frozen=True)

    metadata: ApiMetadata
    endpoints: list[ApiEndpoint]
    schemas: dict[str, dict[str, Any]]
    auth: AuthInfo
    resources: list[DocResource]
    source: SourceInfo

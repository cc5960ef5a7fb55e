"""Normalize a merged ParseResult into the canonical NormalizedSchema."""

import logging
import re
from datetime import datetime, timezone
from typing import Any

from doc_mcp.config import DocMcpConfig, is_path_visible
from doc_mcp.parser.base import (
    HTTP_METHODS,
    ApiEndpoint,
    ApiMetadata,
    AuthInfo,
    EndpointDraft,
    NormalizedSchema,
    OAuthFlow,
    Param,
    ParseResult,
    ResponseSpec,
    SecurityScheme,
    SourceInfo,
)
from doc_mcp.parser.detect import is_spec_file
from doc_mcp.parser.markdown import is_markdown_file

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "API Documentation"
DEFAULT_DESCRIPTION = "API documentation served via doc-mcp"
DEFAULT_VERSION = "1.0.0"

CONFIGURED_SCHEME = "configured"

RESPONSE_DESCRIPTIONS = {
    200: "Successful response",
    201: "Resource created",
    204: "No content",
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    500: "Internal server error",
}

METHOD_ORDER = {method: i for i, method in enumerate(HTTP_METHODS)}

COLON_PARAM_PATTERN = re.compile(r":(\w+)")


def normalize_schema(merged: ParseResult, config: DocMcpConfig, sources: list[str]) -> NormalizedSchema:
    """Build the immutable NormalizedSchema served to clients."""
    logger.debug("Normalizing parsed documentation...")

    endpoints = normalize_endpoints(merged.endpoints, config)
    schemas = {name: normalize_json_schema(schema) for name, schema in merged.schemas.items()}

    schema = NormalizedSchema(
        metadata=normalize_metadata(merged.metadata, config.metadata),
        endpoints=endpoints,
        schemas=schemas,
        auth=normalize_auth(merged.auth, config),
        resources=list(merged.resources),
        source=SourceInfo(
            type=determine_source_type(sources),
            files=list(sources),
            parsed_at=datetime.now(timezone.utc),
        ),
    )
    logger.debug(
        "Normalized schema: %d endpoints, %d schemas, %d resources",
        len(endpoints), len(schemas), len(schema.resources),
    )
    return schema


# Metadata

def normalize_metadata(parsed: ApiMetadata, overrides: ApiMetadata) -> ApiMetadata:
    """Configured values win over parsed ones, parsed values over defaults."""
    return ApiMetadata(
        title=overrides.title or parsed.title or DEFAULT_TITLE,
        description=overrides.description or parsed.description or DEFAULT_DESCRIPTION,
        version=overrides.version or parsed.version or DEFAULT_VERSION,
        terms_of_service=overrides.terms_of_service or parsed.terms_of_service,
        contact=overrides.contact or parsed.contact,
        license=overrides.license or parsed.license,
        servers=overrides.servers or parsed.servers or [],
        custom={**parsed.custom, **overrides.custom},
    )


# Endpoints

def normalize_endpoints(drafts: list[EndpointDraft], config: DocMcpConfig) -> list[ApiEndpoint]:
    endpoints = []
    seen = set()

    for draft in drafts:
        if not draft.method or not draft.path:
            logger.warning("Skipping endpoint without method or path: %s", draft.model_dump(exclude_none=True))
            continue

        method = draft.method.upper()
        if method not in METHOD_ORDER:
            logger.warning("Skipping endpoint with unsupported method: %s %s", draft.method, draft.path)
            continue

        path = normalize_path(draft.path)
        if not is_path_visible(path, config.visibility):
            logger.debug("Filtering out endpoint due to visibility: %s %s", method, path)
            continue

        key = (method, path)
        if key in seen:
            logger.debug("Skipping duplicate endpoint: %s %s", method, path)
            continue
        seen.add(key)

        endpoints.append(
            ApiEndpoint(
                method=method,
                path=path,
                operation_id=draft.operation_id or generate_operation_id(method, path),
                summary=draft.summary or "",
                description=draft.description or "",
                tags=draft.tags or [],
                parameters=[normalize_parameter(p) for p in draft.parameters or []],
                request_body=draft.request_body,
                responses=normalize_responses(draft.responses or []),
                security=draft.security,
                deprecated=bool(draft.deprecated),
                metadata=draft.metadata or {},
            )
        )

    endpoints.sort(key=lambda e: (e.path, METHOD_ORDER.get(e.method, len(METHOD_ORDER))))
    return endpoints


def normalize_path(path: str) -> str:
    """Leading slash, no trailing slash (except root), `:name` rewritten to `{name}`."""
    normalized = path if path.startswith("/") else f"/{path}"
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized.rstrip("/") or "/"
    return COLON_PARAM_PATTERN.sub(r"{\1}", normalized)


def generate_operation_id(method: str, path: str) -> str:
    """Camel-case id from method and path segments: GET /users/{id} -> getUsersId."""
    segments = [s for s in re.sub(r"[{}]", "", path).split("/") if s]
    return method.lower() + "".join(s[:1].upper() + s[1:].lower() for s in segments)


def normalize_parameter(param: Param) -> Param:
    return param.model_copy(
        update={
            "required": True if param.location == "path" else bool(param.required),
            "param_type": param.param_type or "string",
        }
    )


def normalize_responses(responses: list[ResponseSpec]) -> list[ResponseSpec]:
    if not responses:
        return [ResponseSpec(status_code=200, description=RESPONSE_DESCRIPTIONS[200])]
    return [
        r if r.description else r.model_copy(update={"description": default_response_description(r.status_code)})
        for r in responses
    ]


def default_response_description(status_code: int | str) -> str:
    if isinstance(status_code, str):
        if status_code == "default":
            return "Default response"
        if not status_code.isdigit():
            return "Response"
        status_code = int(status_code)
    return RESPONSE_DESCRIPTIONS.get(status_code, "Response")


# Type definitions

def normalize_json_schema(schema: Any) -> Any:
    """Infer missing `type` (object/array) recursively through nested schemas."""
    if not isinstance(schema, dict):
        return schema
    normalized = dict(schema)

    if "properties" in normalized and "type" not in normalized:
        normalized["type"] = "object"
    if "items" in normalized and "type" not in normalized:
        normalized["type"] = "array"

    if isinstance(normalized.get("properties"), dict):
        normalized["properties"] = {k: normalize_json_schema(v) for k, v in normalized["properties"].items()}

    items = normalized.get("items")
    if isinstance(items, list):
        normalized["items"] = [normalize_json_schema(i) for i in items]
    elif isinstance(items, dict):
        normalized["items"] = normalize_json_schema(items)

    if isinstance(normalized.get("additionalProperties"), dict):
        normalized["additionalProperties"] = normalize_json_schema(normalized["additionalProperties"])

    for key in ("allOf", "anyOf", "oneOf"):
        if isinstance(normalized.get(key), list):
            normalized[key] = [normalize_json_schema(s) for s in normalized[key]]

    if isinstance(normalized.get("not"), dict):
        normalized["not"] = normalize_json_schema(normalized["not"])

    return normalized


# Auth

def normalize_auth(parsed: AuthInfo, config: DocMcpConfig) -> AuthInfo:
    schemes = dict(parsed.schemes)
    configured = scheme_from_config(config)
    if configured is not None:
        schemes[CONFIGURED_SCHEME] = configured

    if not schemes:
        description = "No authentication required."
    else:
        description = parsed.description or generate_auth_description(schemes)

    return AuthInfo(schemes=schemes, default_security=list(parsed.default_security), description=description)


def scheme_from_config(config: DocMcpConfig) -> SecurityScheme | None:
    auth = config.auth
    if auth.type == "apiKey":
        return SecurityScheme(
            type="apiKey",
            name=auth.name or "X-API-Key",
            location=auth.location or "header",
            description=auth.description,
        )
    if auth.type in ("bearer", "basic"):
        return SecurityScheme(type="http", scheme=auth.type, description=auth.description)
    if auth.type == "oauth2":
        flows = None
        if auth.oauth2:
            flows = {
                "authorizationCode": OAuthFlow(
                    authorization_url=auth.oauth2.authorization_url or "",
                    token_url=auth.oauth2.token_url or "",
                    scopes=auth.oauth2.scopes,
                )
            }
        return SecurityScheme(type="oauth2", description=auth.description, flows=flows)
    return None


def generate_auth_description(schemes: dict[str, SecurityScheme]) -> str:
    lines = ["This API supports the following authentication methods:"]
    for name, scheme in schemes.items():
        if scheme.type == "apiKey":
            lines.append(f"- **{name}**: API Key in {scheme.location} ({scheme.name})")
        elif scheme.type == "http":
            lines.append(f"- **{name}**: HTTP {scheme.scheme} authentication")
        elif scheme.type == "oauth2":
            lines.append(f"- **{name}**: OAuth 2.0")
        elif scheme.type == "openIdConnect":
            lines.append(f"- **{name}**: OpenID Connect")
    return "\n".join(lines)


# Provenance

def determine_source_type(sources: list[str]) -> str:
    if not sources:
        return "mixed"
    if all(is_markdown_file(s) for s in sources):
        return "markdown"
    if all(is_spec_file(s) for s in sources):
        return "openapi"
    return "mixed"

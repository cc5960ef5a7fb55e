"""Read-only documentation handlers: describe, schemas, endpoints, auth.

Each handler reads one NormalizedSchema and returns a JSON-ready dict.
"""

import re

from doc_mcp.parser.base import ApiEndpoint, NormalizedSchema, SecurityScheme

ROUTES = [
    ("describe", "High-level API description, metadata, versioning info"),
    ("schemas", "Normalized API schemas (OpenAPI-like JSON)"),
    ("endpoints", "List of available API endpoints with methods and params"),
    ("auth", "Authentication requirements and headers"),
]


def route_table(base_path: str) -> list[dict[str, str]]:
    """GET routes served under `base_path`, with a short description each."""
    return [
        {"method": "GET", "path": re.sub(r"/+", "/", f"{base_path}/{name}"), "handler": name, "description": text}
        for name, text in ROUTES
    ]


class DocHandlers:
    def __init__(self, schema: NormalizedSchema):
        self.schema = schema

    def describe(self) -> dict:
        metadata = self.schema.metadata
        source = self.schema.source
        return {
            "name": metadata.title or "API",
            "description": metadata.description or "",
            "version": metadata.version or "1.0.0",
            "servers": [s.model_dump(mode="json", exclude_none=True) for s in metadata.servers or []],
            "contact": metadata.contact.model_dump(mode="json", exclude_none=True) if metadata.contact else None,
            "license": metadata.license.model_dump(mode="json", exclude_none=True) if metadata.license else None,
            "documentation": {"type": source.type, "sources": source.files},
            "generated_at": source.parsed_at.isoformat(),
        }

    def schemas(self) -> dict:
        return {"schemas": self.schema.schemas, "count": len(self.schema.schemas)}

    def endpoints(
        self,
        tag: str | None = None,
        method: str | None = None,
        path: str | None = None,
        deprecated: bool | None = None,
    ) -> dict:
        """List endpoints, optionally filtered.

        `tag` and `path` are substring matches, `method` is case-insensitive.
        The returned tag set covers all endpoints, not only the filtered ones.
        """
        matched = [e for e in self.schema.endpoints if _matches(e, tag, method, path, deprecated)]
        tags = sorted({t for e in self.schema.endpoints for t in e.tags})
        return {
            "endpoints": [e.model_dump(mode="json", exclude_none=True) for e in matched],
            "count": len(matched),
            "tags": tags,
        }

    def auth(self) -> dict:
        auth = self.schema.auth
        return {
            "schemes": {name: s.model_dump(mode="json", exclude_none=True) for name, s in auth.schemes.items()},
            "default_security": auth.default_security,
            "description": auth.description or "No authentication configured.",
            "instructions": auth_instructions(auth.schemes),
        }


def _matches(
    endpoint: ApiEndpoint, tag: str | None, method: str | None, path: str | None, deprecated: bool | None
) -> bool:
    if tag and not any(tag in t for t in endpoint.tags):
        return False
    if method and endpoint.method != method.upper():
        return False
    if path and path not in endpoint.path:
        return False
    if deprecated is not None and endpoint.deprecated != deprecated:
        return False
    return True


def auth_instructions(schemes: dict[str, SecurityScheme]) -> str:
    """Human-readable instructions for each security scheme."""
    instructions = []
    for name, s in schemes.items():
        if s.type == "apiKey":
            instructions.append(
                f"**{name}** (API Key):\n"
                f"Add the `{s.name}` {s.location} to your request.\n"
                f"Example: `{s.name}: your-api-key`"
            )
        elif s.type == "http" and s.scheme == "bearer":
            instructions.append(
                f"**{name}** (Bearer Token):\n"
                "Add the Authorization header with a Bearer token.\n"
                "Example: `Authorization: Bearer your-token`"
            )
        elif s.type == "http" and s.scheme == "basic":
            instructions.append(
                f"**{name}** (Basic Auth):\n"
                "Add the Authorization header with Base64-encoded credentials.\n"
                "Example: `Authorization: Basic base64(username:password)`"
            )
        elif s.type == "oauth2":
            instructions.append(
                f"**{name}** (OAuth 2.0):\n"
                "Obtain an access token through the OAuth 2.0 flow.\n"
                "Include it as: `Authorization: Bearer your-access-token`"
            )
        elif s.type == "openIdConnect":
            instructions.append(
                f"**{name}** (OpenID Connect):\n"
                "Authenticate via OpenID Connect to obtain a token.\n"
                "Include it as: `Authorization: Bearer your-token`"
            )

    if not instructions:
        return "This API does not require authentication."
    return "\n\n".join(instructions)

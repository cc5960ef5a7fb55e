"""Postman Collection v2.x parser.

Parses Postman exported JSON collections into a ParseResult. Folders are
walked recursively and their names become endpoint tags.
"""

import json

from doc_mcp.errors import ParseError
from doc_mcp.parser.base import (
    ApiMetadata,
    AuthInfo,
    EndpointDraft,
    Param,
    ParseResult,
    RequestBody,
    SecurityScheme,
    ServerInfo,
)

COLLECTION_SCHEME = "postmanAuth"


def parse_postman(content: str, locator: str) -> ParseResult:
    """Parse a Postman Collection file into a ParseResult."""
    try:
        collection = json.loads(content)
    except json.JSONDecodeError as e:
        raise ParseError(locator, e) from e
    if not isinstance(collection, dict) or "item" not in collection:
        raise ParseError(locator, "not a Postman collection")

    info = collection.get("info") or {}
    endpoints: list[EndpointDraft] = []
    try:
        _parse_items(collection.get("item") or [], endpoints, [])
        return ParseResult(
            metadata=ApiMetadata(
                title=info.get("name"),
                description=_description_text(info.get("description")) or None,
                version=_collection_version(collection),
                servers=_servers_from_variables(collection.get("variable") or []),
            ),
            endpoints=endpoints,
            auth=_parse_collection_auth(collection.get("auth")),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ParseError(locator, e) from e


def _parse_items(items: list[dict], endpoints: list[EndpointDraft], folders: list[str]) -> None:
    """Recursively parse items (supports folders)."""
    for item in items:
        if "item" in item:
            _parse_items(item["item"], endpoints, [*folders, item.get("name", "")])
        elif "request" in item:
            endpoints.append(_parse_request(item, folders))


def _parse_request(item: dict, folders: list[str]) -> EndpointDraft:
    req = item["request"]
    if isinstance(req, str):
        req = {"method": "GET", "url": req}
    method = req.get("method", "GET").upper()
    url = req.get("url") or {}
    if isinstance(url, str):
        url = {"raw": url, "path": _path_from_raw(url)}

    path = "/" + "/".join(segment for segment in url.get("path", []) if segment)
    params = _parse_query_params(url.get("query") or [])
    params.extend(_parse_path_variables(url.get("variable") or []))
    params.extend(_parse_headers(req.get("header") or []))
    has_auth = _has_auth_header(req.get("header") or []) or bool(req.get("auth"))

    return EndpointDraft(
        method=method,
        path=path,
        summary=item.get("name", ""),
        description=_description_text(req.get("description")),
        tags=[f for f in folders if f] or None,
        parameters=params,
        request_body=_parse_body(req.get("body")),
        security=[{COLLECTION_SCHEME: []}] if has_auth else None,
    )


def _path_from_raw(raw: str) -> list[str]:
    without_scheme = raw.split("://", 1)[-1]
    path = without_scheme.split("?", 1)[0]
    return path.split("/")[1:]


def _parse_query_params(query: list[dict]) -> list[Param]:
    return [
        Param(
            name=q["key"],
            location="query",
            required=False,
            param_type="string",
            description=_description_text(q.get("description")),
            example=q.get("value"),
        )
        for q in query
        if q.get("key") and not q.get("disabled")
    ]


def _parse_path_variables(variables: list[dict]) -> list[Param]:
    return [
        Param(
            name=v["key"],
            location="path",
            required=True,
            param_type="string",
            description=_description_text(v.get("description")),
            example=v.get("value"),
        )
        for v in variables
        if v.get("key")
    ]


def _parse_headers(headers: list[dict]) -> list[Param]:
    skipped = {"authorization", "content-type", "accept"}
    return [
        Param(
            name=h["key"],
            location="header",
            required=False,
            param_type="string",
            description=_description_text(h.get("description")),
            example=h.get("value"),
        )
        for h in headers
        if h.get("key") and h["key"].lower() not in skipped and not h.get("disabled")
    ]


def _parse_body(body: dict | None) -> RequestBody | None:
    if not body:
        return None
    mode = body.get("mode")
    if mode == "raw":
        try:
            example = json.loads(body["raw"])
        except (json.JSONDecodeError, KeyError, TypeError):
            return RequestBody(content={"text/plain": {"example": body.get("raw", "")}})
        return RequestBody(content={"application/json": {"example": example}})
    if mode in ("urlencoded", "formdata"):
        fields = body.get(mode) or []
        properties = {f["key"]: {"type": "string"} for f in fields if f.get("key")}
        media_type = "multipart/form-data" if mode == "formdata" else "application/x-www-form-urlencoded"
        return RequestBody(content={media_type: {"schema": {"type": "object", "properties": properties}}})
    return None


def _has_auth_header(headers: list[dict]) -> bool:
    return any(h.get("key", "").lower() == "authorization" for h in headers)


def _parse_collection_auth(auth: dict | None) -> AuthInfo:
    if not auth:
        return AuthInfo()
    kind = auth.get("type")
    if kind == "bearer":
        scheme = SecurityScheme(type="http", scheme="bearer")
    elif kind == "basic":
        scheme = SecurityScheme(type="http", scheme="basic")
    elif kind == "apikey":
        settings = {entry.get("key"): entry.get("value") for entry in auth.get("apikey") or []}
        scheme = SecurityScheme(
            type="apiKey",
            name=settings.get("key") or "X-API-Key",
            location="query" if settings.get("in") == "query" else "header",
        )
    elif kind == "oauth2":
        scheme = SecurityScheme(type="oauth2")
    else:
        return AuthInfo()
    return AuthInfo(schemes={COLLECTION_SCHEME: scheme}, default_security=[{COLLECTION_SCHEME: []}])


def _servers_from_variables(variables: list[dict]) -> list[ServerInfo] | None:
    for var in variables:
        value = var.get("value")
        if var.get("key", "").lower() in ("baseurl", "base_url", "host") and isinstance(value, str) and value.startswith("http"):
            return [ServerInfo(url=value)]
    return None


def _collection_version(collection: dict) -> str | None:
    version = (collection.get("info") or {}).get("version")
    if isinstance(version, dict):
        parts = [str(version.get(k, 0)) for k in ("major", "minor", "patch")]
        return ".".join(parts)
    return str(version) if version else None


def _description_text(description) -> str:
    if isinstance(description, dict):
        return description.get("content", "")
    return description or ""

"""OpenAPI / Swagger document parser.

Parses OpenAPI 3.x and Swagger 2.0 documents (YAML or JSON) into a
ParseResult. Swagger 2.0 is first rewritten into an OpenAPI 3-like document
so that only one extraction path exists.
"""

import copy
from typing import Any

import yaml

from doc_mcp.errors import ParseError, UnsupportedFormat
from doc_mcp.parser.base import (
    ApiMetadata,
    AuthInfo,
    Contact,
    DocResource,
    EndpointDraft,
    License,
    OAuthFlow,
    Param,
    ParseResult,
    RequestBody,
    ResponseSpec,
    SecurityScheme,
    ServerInfo,
)

OPERATION_KEYS = ("get", "post", "put", "patch", "delete", "head", "options")

CONSTRAINT_KEYS = ("minimum", "maximum", "minLength", "maxLength", "pattern", "enum", "format")

SCHEMA_KEYS = (
    "type", "format", "title", "description", "default", "enum", "const",
    "minLength", "maxLength", "pattern",
    "minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf",
    "minItems", "maxItems", "uniqueItems", "required",
    "example", "examples", "nullable", "readOnly", "writeOnly", "deprecated",
)


def parse_openapi(content: str, locator: str) -> ParseResult:
    """Parse an OpenAPI/Swagger document into a ParseResult."""
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ParseError(locator, e) from e
    if not isinstance(doc, dict):
        raise ParseError(locator, "document root is not a mapping")

    doc = _dereference(doc, doc, locator, ())

    if "openapi" in doc:
        version = str(doc["openapi"])
        if not version.startswith("3."):
            raise UnsupportedFormat(locator, version)
    elif "swagger" in doc:
        version = str(doc["swagger"])
        if not version.startswith("2."):
            raise UnsupportedFormat(locator, version)
    else:
        raise ParseError(locator, "missing 'openapi' or 'swagger' version field")

    try:
        if "openapi" not in doc:
            doc = _swagger2_to_v3(doc)
        return ParseResult(
            metadata=_extract_metadata(doc),
            endpoints=_extract_endpoints(doc),
            schemas=_extract_schemas(doc),
            auth=_extract_auth(doc),
            resources=_extract_tag_resources(doc, locator),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ParseError(locator, e) from e


def _dereference(node: Any, root: dict, locator: str, seen: tuple[str, ...]) -> Any:
    """Inline local `#/...` references. A cyclic reference is left as a bare $ref."""
    if isinstance(node, list):
        return [_dereference(item, root, locator, seen) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/"):
        if ref in seen:
            return {"$ref": ref}
        target = _resolve_pointer(root, ref, locator)
        resolved = _dereference(target, root, locator, seen + (ref,))
        siblings = {k: v for k, v in node.items() if k != "$ref"}
        if siblings and isinstance(resolved, dict):
            return {**resolved, **_dereference(siblings, root, locator, seen)}
        return resolved

    return {key: _dereference(value, root, locator, seen) for key, value in node.items()}


def _resolve_pointer(root: dict, ref: str, locator: str) -> Any:
    target: Any = root
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if isinstance(target, dict) and part in target:
            target = target[part]
        elif isinstance(target, list) and part.isdigit() and int(part) < len(target):
            target = target[int(part)]
        else:
            raise ParseError(locator, f"unresolvable reference {ref}")
    return target


def _extract_metadata(doc: dict) -> ApiMetadata:
    info = doc.get("info") or {}
    contact = info.get("contact")
    license_ = info.get("license")
    servers = [
        ServerInfo(
            url=s["url"],
            description=s.get("description"),
            variables=s.get("variables"),
        )
        for s in doc.get("servers") or []
        if s.get("url")
    ]
    custom = {k: v for k, v in info.items() if k.startswith("x-")}
    return ApiMetadata(
        title=info.get("title"),
        description=info.get("description"),
        version=str(info["version"]) if info.get("version") is not None else None,
        terms_of_service=info.get("termsOfService"),
        contact=Contact(**contact) if isinstance(contact, dict) else None,
        license=License(**license_) if isinstance(license_, dict) else None,
        servers=servers or None,
        custom=custom,
    )


def _extract_endpoints(doc: dict) -> list[EndpointDraft]:
    endpoints = []
    for path, path_item in (doc.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        path_params = path_item.get("parameters") or []

        for method in OPERATION_KEYS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue

            params = _merge_parameters(path_params, operation.get("parameters") or [])
            extensions = {k: v for k, v in operation.items() if k.startswith("x-")}

            endpoints.append(
                EndpointDraft(
                    method=method.upper(),
                    path=path,
                    operation_id=operation.get("operationId"),
                    summary=operation.get("summary"),
                    description=operation.get("description"),
                    tags=operation.get("tags"),
                    parameters=_parse_parameters(params),
                    request_body=_parse_request_body(operation.get("requestBody")),
                    responses=_parse_responses(operation.get("responses") or {}),
                    security=operation.get("security"),
                    deprecated=operation.get("deprecated"),
                    metadata=extensions or None,
                )
            )
    return endpoints


def _merge_parameters(path_level: list[dict], operation_level: list[dict]) -> list[dict]:
    """Operation parameters override path-level ones with the same (name, in)."""
    merged: dict[tuple[str, str], dict] = {}
    for p in [*path_level, *operation_level]:
        if isinstance(p, dict) and "name" in p:
            merged[(p["name"], p.get("in", "query"))] = p
    return list(merged.values())


def _parse_parameters(params: list[dict]) -> list[Param]:
    result = []
    for p in params:
        schema = p.get("schema") or {}
        constraints = {}
        for key in CONSTRAINT_KEYS:
            if key in schema:
                constraints[key] = schema[key]

        result.append(
            Param(
                name=p["name"],
                location=p.get("in", "query"),
                required=p.get("required", False),
                param_type=_schema_type(schema),
                description=p.get("description", ""),
                json_schema=_convert_schema(schema) if schema else None,
                example=p.get("example", schema.get("example")),
                deprecated=p.get("deprecated", False),
                constraints=constraints,
            )
        )
    return result


def _schema_type(schema: dict) -> str | None:
    if not schema:
        return None
    if "type" in schema:
        t = schema["type"]
        return " | ".join(t) if isinstance(t, list) else t
    if "allOf" in schema or "properties" in schema:
        return "object"
    if "anyOf" in schema or "oneOf" in schema:
        return "mixed"
    return None


def _parse_request_body(body: dict | None) -> RequestBody | None:
    if not body:
        return None
    return RequestBody(
        required=body.get("required", False),
        description=body.get("description", ""),
        content=_parse_content(body.get("content") or {}),
    )


def _parse_content(content: dict) -> dict[str, dict]:
    result = {}
    for media_type, media in content.items():
        media = media or {}
        entry: dict[str, Any] = {}
        if media.get("schema"):
            entry["schema"] = _convert_schema(media["schema"])
        if "example" in media:
            entry["example"] = media["example"]
        if media.get("examples"):
            entry["examples"] = media["examples"]
        result[media_type] = entry
    return result


def _parse_responses(responses: dict) -> list[ResponseSpec]:
    result = []
    for status_code, resp in responses.items():
        resp = resp or {}
        code = str(status_code)
        headers = {
            name: {
                "description": header.get("description", ""),
                **({"schema": _convert_schema(header["schema"])} if header.get("schema") else {}),
            }
            for name, header in (resp.get("headers") or {}).items()
            if isinstance(header, dict)
        }
        result.append(
            ResponseSpec(
                status_code=int(code) if code.isdigit() else code,
                description=resp.get("description", ""),
                content=_parse_content(resp["content"]) if resp.get("content") else None,
                headers=headers or None,
            )
        )
    return result


def _convert_schema(schema: Any) -> dict:
    """Copy the JSON-Schema subset we serve, recursing into nested schemas."""
    if not isinstance(schema, dict):
        return {}
    if "$ref" in schema and len(schema) == 1:
        return {"$ref": schema["$ref"]}

    result = {key: copy.deepcopy(schema[key]) for key in SCHEMA_KEYS if key in schema}

    # OpenAPI 3.0 allows boolean exclusive bounds; JSON Schema wants numbers
    for key in ("exclusiveMinimum", "exclusiveMaximum"):
        if isinstance(result.get(key), bool):
            del result[key]

    if "items" in schema:
        items = schema["items"]
        result["items"] = [_convert_schema(i) for i in items] if isinstance(items, list) else _convert_schema(items)
    if "properties" in schema:
        result["properties"] = {k: _convert_schema(v) for k, v in (schema["properties"] or {}).items()}
    if "additionalProperties" in schema:
        extra = schema["additionalProperties"]
        result["additionalProperties"] = extra if isinstance(extra, bool) else _convert_schema(extra)
    for key in ("allOf", "anyOf", "oneOf"):
        if key in schema:
            result[key] = [_convert_schema(s) for s in schema[key]]
    if "not" in schema:
        result["not"] = _convert_schema(schema["not"])
    return result


def _extract_schemas(doc: dict) -> dict[str, dict]:
    schemas = (doc.get("components") or {}).get("schemas") or {}
    return {name: _convert_schema(schema) for name, schema in schemas.items()}


def _extract_auth(doc: dict) -> AuthInfo:
    raw_schemes = (doc.get("components") or {}).get("securitySchemes") or {}
    schemes = {}
    for name, s in raw_schemes.items():
        scheme = _parse_security_scheme(s)
        if scheme is not None:
            schemes[name] = scheme
    return AuthInfo(schemes=schemes, default_security=doc.get("security") or [])


def _parse_security_scheme(s: dict) -> SecurityScheme | None:
    kind = s.get("type")
    if kind == "apiKey":
        return SecurityScheme(
            type="apiKey",
            name=s.get("name"),
            location=s.get("in", "header"),
            description=s.get("description"),
        )
    if kind == "http":
        return SecurityScheme(
            type="http",
            scheme=s.get("scheme"),
            bearer_format=s.get("bearerFormat"),
            description=s.get("description"),
        )
    if kind == "oauth2":
        flows = {
            flow_name: OAuthFlow(
                authorization_url=flow.get("authorizationUrl"),
                token_url=flow.get("tokenUrl"),
                refresh_url=flow.get("refreshUrl"),
                scopes=flow.get("scopes") or {},
            )
            for flow_name, flow in (s.get("flows") or {}).items()
            if isinstance(flow, dict)
        }
        return SecurityScheme(type="oauth2", description=s.get("description"), flows=flows)
    if kind == "openIdConnect":
        return SecurityScheme(
            type="openIdConnect",
            open_id_connect_url=s.get("openIdConnectUrl"),
            description=s.get("description"),
        )
    return None


def _extract_tag_resources(doc: dict, locator: str) -> list[DocResource]:
    resources = []
    for tag in doc.get("tags") or []:
        if not isinstance(tag, dict) or not tag.get("name") or not tag.get("description"):
            continue
        name = tag["name"]
        resources.append(
            DocResource(
                id=f"tag:{name}",
                name=name,
                category="tags",
                summary=tag["description"].split("\n", 1)[0],
                content=tag["description"],
                source=locator,
                keywords=[name.lower()],
            )
        )
    return resources


# Swagger 2.0 conversion

SWAGGER2_FLOW_NAMES = {
    "implicit": "implicit",
    "password": "password",
    "application": "clientCredentials",
    "accessCode": "authorizationCode",
}


def _swagger2_to_v3(doc: dict) -> dict:
    servers = []
    if doc.get("host"):
        for scheme in doc.get("schemes") or ["https"]:
            servers.append({"url": f"{scheme}://{doc['host']}{doc.get('basePath', '')}"})

    consumes = doc.get("consumes") or ["application/json"]
    produces = doc.get("produces") or ["application/json"]

    paths = {}
    for path, path_item in (doc.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        new_item: dict[str, Any] = {}
        if path_item.get("parameters"):
            new_item["parameters"] = [_swagger2_param(p) for p in path_item["parameters"] if p.get("in") not in ("body", "formData")]
        for method in OPERATION_KEYS:
            operation = path_item.get(method)
            if isinstance(operation, dict):
                new_item[method] = _swagger2_operation(
                    operation,
                    path_item.get("parameters") or [],
                    operation.get("consumes") or consumes,
                    operation.get("produces") or produces,
                )
        paths[path] = new_item

    return {
        "openapi": "3.0.0",
        "info": doc.get("info") or {},
        "servers": servers,
        "paths": paths,
        "tags": doc.get("tags") or [],
        "components": {
            "schemas": doc.get("definitions") or {},
            "securitySchemes": _swagger2_security(doc.get("securityDefinitions") or {}),
        },
        "security": doc.get("security"),
    }


def _swagger2_param(p: dict) -> dict:
    schema = {k: p[k] for k in ("type", "format", "items", "enum", "default", *CONSTRAINT_KEYS) if k in p}
    converted = {k: p[k] for k in ("name", "in", "required", "description", "deprecated") if k in p}
    if schema:
        converted["schema"] = schema
    return converted


def _swagger2_operation(operation: dict, path_params: list[dict], consumes: list[str], produces: list[str]) -> dict:
    result = {k: v for k, v in operation.items() if k not in ("parameters", "responses", "consumes", "produces")}
    all_params = [*path_params, *(operation.get("parameters") or [])]

    body = next((p for p in all_params if p.get("in") == "body"), None)
    form = [p for p in all_params if p.get("in") == "formData"]
    if body is not None:
        result["requestBody"] = {
            "required": body.get("required", False),
            "description": body.get("description", ""),
            "content": {ct: {"schema": body.get("schema") or {}} for ct in consumes},
        }
    elif form:
        properties = {p["name"]: _swagger2_param(p).get("schema", {"type": "string"}) for p in form}
        required = [p["name"] for p in form if p.get("required")]
        form_type = "multipart/form-data" if "multipart/form-data" in consumes else "application/x-www-form-urlencoded"
        result["requestBody"] = {
            "required": bool(required),
            "content": {form_type: {"schema": {"type": "object", "properties": properties, "required": required}}},
        }

    result["parameters"] = [_swagger2_param(p) for p in operation.get("parameters") or [] if p.get("in") not in ("body", "formData")]

    responses = {}
    for code, resp in (operation.get("responses") or {}).items():
        resp = resp or {}
        new_resp = {"description": resp.get("description", "")}
        if resp.get("schema"):
            new_resp["content"] = {ct: {"schema": resp["schema"]} for ct in produces}
        if resp.get("headers"):
            new_resp["headers"] = {
                name: {"description": h.get("description", ""), "schema": {k: v for k, v in h.items() if k != "description"}}
                for name, h in resp["headers"].items()
            }
        responses[code] = new_resp
    result["responses"] = responses
    return result


def _swagger2_security(definitions: dict) -> dict:
    result = {}
    for name, d in definitions.items():
        kind = d.get("type")
        if kind == "apiKey":
            result[name] = {"type": "apiKey", "name": d.get("name", ""), "in": d.get("in", "header"), "description": d.get("description")}
        elif kind == "basic":
            result[name] = {"type": "http", "scheme": "basic", "description": d.get("description")}
        elif kind == "oauth2":
            flow_name = SWAGGER2_FLOW_NAMES.get(d.get("flow", ""), "authorizationCode")
            result[name] = {
                "type": "oauth2",
                "description": d.get("description"),
                "flows": {
                    flow_name: {
                        "authorizationUrl": d.get("authorizationUrl", ""),
                        "tokenUrl": d.get("tokenUrl", ""),
                        "scopes": d.get("scopes") or {},
                    }
                },
            }
    return result

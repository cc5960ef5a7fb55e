"""JSON-RPC 2.0 method table for the Model Context Protocol.

Every call reads only the schema snapshot held by the session. Errors raised
by a handler become JSON-RPC error objects; `dispatch` never raises.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol

from doc_mcp.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    ProtocolError,
)
from doc_mcp.parser.base import ApiEndpoint, NormalizedSchema
from doc_mcp.protocol.formatting import (
    DOC_SCHEME,
    ENDPOINT_SCHEME,
    endpoint_uri,
    format_endpoint,
    format_resource,
    format_search_results,
    resource_uri,
    search_resources,
    tool_names,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"
MIME_TYPE = "text/markdown"

SEARCH_TOOL = "search_docs"

SEARCH_TOOL_DESCRIPTOR = {
    "name": SEARCH_TOOL,
    "description": "Search the API documentation",
    "inputSchema": {
        "type": "object",
        "properties": {"query": {"type": "string", "description": "Search query"}},
        "required": ["query"],
    },
}


class SessionState(Protocol):
    schema: NormalizedSchema
    initialized: bool


Handler = Callable[[dict[str, Any], SessionState], Any]


def success(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def failure(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": code, "message": message}}


class Dispatcher:
    """Answers protocol requests against a session's schema snapshot."""

    def __init__(self):
        self._methods: dict[str, Handler] = {
            "initialize": self._initialize,
            "initialized": self._initialized,
            "notifications/initialized": self._initialized,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "prompts/list": lambda params, session: {"prompts": []},
            "ping": lambda params, session: {},
        }

    @property
    def methods(self) -> list[str]:
        return list(self._methods)

    def dispatch(self, message: Any, session: SessionState) -> dict[str, Any]:
        """Answer one JSON-RPC request object."""
        if not isinstance(message, dict):
            return failure(None, INVALID_REQUEST, "Invalid Request")
        request_id = message.get("id")
        method = message.get("method")
        if not isinstance(method, str):
            return failure(request_id, INVALID_REQUEST, "Invalid Request")

        handler = self._methods.get(method)
        if handler is None:
            return failure(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        params = message.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return failure(request_id, INVALID_PARAMS, "params must be an object")

        try:
            return success(request_id, handler(params, session))
        except ProtocolError as e:
            return failure(request_id, e.code, e.message)
        except Exception as e:
            logger.exception("Error handling %s", method)
            return failure(request_id, INTERNAL_ERROR, str(e) or "Internal error")

    # Handlers

    def _initialize(self, params: dict, session: SessionState) -> dict:
        metadata = session.schema.metadata
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
            "serverInfo": {"name": metadata.title or "doc-mcp", "version": metadata.version or "1.0.0"},
        }

    def _initialized(self, params: dict, session: SessionState) -> dict:
        session.initialized = True
        return {}

    def _tools_list(self, params: dict, session: SessionState) -> dict:
        tools = [
            {
                "name": name,
                "description": endpoint.summary or endpoint.description or f"{endpoint.method} {endpoint.path}",
                "inputSchema": {
                    "type": "object",
                    "properties": _tool_properties(endpoint),
                    "required": _required_arguments(endpoint),
                },
            }
            for name, endpoint in tool_names(session.schema.endpoints).items()
        ]
        tools.append(SEARCH_TOOL_DESCRIPTOR)
        return {"tools": tools}

    def _tools_call(self, params: dict, session: SessionState) -> dict:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError(INVALID_PARAMS, "Missing tool name")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ProtocolError(INVALID_PARAMS, "Tool arguments must be an object")

        if name == SEARCH_TOOL:
            query = str(arguments.get("query") or "")
            text = format_search_results(search_resources(session.schema.resources, query))
            return _text_content(text)

        endpoint = tool_names(session.schema.endpoints).get(name)
        if endpoint is None:
            raise ProtocolError(INVALID_PARAMS, f"Unknown tool: {name}")
        return _text_content(format_endpoint(endpoint))

    def _resources_list(self, params: dict, session: SessionState) -> dict:
        schema = session.schema
        resources = [
            {
                "uri": resource_uri(resource),
                "name": resource.name,
                "description": resource.summary,
                "mimeType": MIME_TYPE,
            }
            for resource in schema.resources
        ]
        resources.extend(
            {
                "uri": endpoint_uri(endpoint),
                "name": f"{endpoint.method} {endpoint.path}",
                "description": endpoint.summary or endpoint.description,
                "mimeType": MIME_TYPE,
            }
            for endpoint in schema.endpoints
        )
        return {"resources": resources}

    def _resources_read(self, params: dict, session: SessionState) -> dict:
        uri = params.get("uri")
        if not isinstance(uri, str) or not uri:
            raise ProtocolError(INVALID_PARAMS, "Missing resource uri")
        schema = session.schema

        if uri.startswith(DOC_SCHEME):
            resource_id = uri[len(DOC_SCHEME):]
            resource = next((r for r in schema.resources if r.id == resource_id), None)
            if resource is None:
                raise ProtocolError(INVALID_PARAMS, f"Resource not found: {uri}")
            text = format_resource(resource)
        elif uri.startswith(ENDPOINT_SCHEME):
            endpoint = next((e for e in schema.endpoints if endpoint_uri(e) == uri), None)
            if endpoint is None:
                raise ProtocolError(INVALID_PARAMS, f"Endpoint not found: {uri}")
            text = format_endpoint(endpoint)
        else:
            raise ProtocolError(INVALID_PARAMS, f"Unknown URI scheme: {uri}")

        return {"contents": [{"uri": uri, "mimeType": MIME_TYPE, "text": text}]}


def _text_content(text: str) -> dict:
    return {"content": [{"type": "text", "text": text}]}


def _tool_properties(endpoint: ApiEndpoint) -> dict[str, dict]:
    properties = {}
    for location in ("path", "query"):
        for param in endpoint.parameters:
            if param.location == location:
                properties[param.name] = {
                    "type": param.param_type or "string",
                    "description": param.description or f"{location.capitalize()} parameter: {param.name}",
                }
    if endpoint.request_body and endpoint.request_body.content:
        properties["body"] = {
            "type": "object",
            "description": endpoint.request_body.description or "Request body",
        }
    return properties


def _required_arguments(endpoint: ApiEndpoint) -> list[str]:
    required = [
        p.name
        for location in ("path", "query")
        for p in endpoint.parameters
        if p.location == location and p.required
    ]
    if endpoint.request_body and endpoint.request_body.required:
        required.append("body")
    return required

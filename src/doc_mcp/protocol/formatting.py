"""Markdown rendering of endpoints and resources, plus tool/resource naming."""

import json
import re

from doc_mcp.parser.base import ApiEndpoint, DocResource

DOC_SCHEME = "doc://"
ENDPOINT_SCHEME = "endpoint://"

NO_RESULTS = "No results found"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def tool_name(endpoint: ApiEndpoint) -> str:
    """get /users/{id} -> get__users__id_"""
    return f"{endpoint.method.lower()}_{_NON_ALNUM.sub('_', endpoint.path)}"


def tool_names(endpoints: list[ApiEndpoint]) -> dict[str, ApiEndpoint]:
    """Unique tool name per endpoint, in schema order.

    Paths that differ only in punctuation (`/a-b`, `/a_b`) share a base name;
    later ones get `_2`, `_3`, ... appended.
    """
    named: dict[str, ApiEndpoint] = {}
    for endpoint in endpoints:
        base = tool_name(endpoint)
        name = base
        n = 2
        while name in named:
            name = f"{base}_{n}"
            n += 1
        named[name] = endpoint
    return named


def resource_uri(resource: DocResource) -> str:
    return f"{DOC_SCHEME}{resource.id}"


def endpoint_uri(endpoint: ApiEndpoint) -> str:
    return f"{ENDPOINT_SCHEME}{endpoint.method}{endpoint.path}"


def format_endpoint(endpoint: ApiEndpoint) -> str:
    """Render one endpoint as a Markdown document."""
    text = f"# {endpoint.method} {endpoint.path}\n\n"

    if endpoint.deprecated:
        text += "> **Deprecated**: this endpoint may be removed in a future version.\n\n"
    if endpoint.summary:
        text += f"{endpoint.summary}\n\n"
    if endpoint.description:
        text += f"{endpoint.description}\n\n"

    if endpoint.parameters:
        text += "## Parameters\n\n"
        for param in endpoint.parameters:
            flags = f"{param.location}, required" if param.required else param.location
            text += f"- **{param.name}** ({flags}): {param.description}\n"
        text += "\n"

    body = endpoint.request_body
    if body:
        text += "## Request Body\n\n"
        if body.description:
            text += f"{body.description}\n\n"
        if body.content:
            media = next(iter(body.content.values())) or {}
            if media.get("schema"):
                text += "```json\n" + json.dumps(media["schema"], indent=2) + "\n```\n\n"

    if endpoint.responses:
        text += "## Responses\n\n"
        for response in endpoint.responses:
            text += f"### {response.status_code}\n{response.description}\n\n"

    return text


def format_resource(resource: DocResource) -> str:
    return resource.content or f"# {resource.name}\n\n{resource.summary}"


def search_resources(resources: list[DocResource], query: str) -> list[DocResource]:
    """Case-insensitive substring match over name, summary and content."""
    needle = query.lower()
    return [
        r for r in resources
        if needle in r.name.lower() or needle in r.summary.lower() or needle in r.content.lower()
    ]


def format_search_results(results: list[DocResource]) -> str:
    if not results:
        return NO_RESULTS
    return "\n\n---\n\n".join(f"## {r.name}\n{r.summary}\n\n{r.content}" for r in results)

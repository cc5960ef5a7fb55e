"""Combine the ParseResults of several sources into one.

Results are folded in source order:
- singular metadata fields: first non-empty value wins
- custom metadata: merged, later keys overwrite
- servers: concatenated, then deduplicated by URL (first wins)
- endpoints: concatenated (the normalizer deduplicates them)
- schemas and auth schemes: merged by name, later sources overwrite
- default security: concatenated
- resources: concatenated, then deduplicated by id (first wins)
"""

import logging

from doc_mcp.parser.base import ApiMetadata, AuthInfo, DocResource, ParseResult, ServerInfo

logger = logging.getLogger(__name__)

SINGULAR_METADATA_FIELDS = ("title", "description", "version", "terms_of_service", "contact", "license")


def merge_results(results: list[ParseResult]) -> ParseResult:
    if not results:
        return ParseResult()
    if len(results) == 1:
        result = results[0]
        resources = _dedupe_resources(result.resources)
        if len(resources) == len(result.resources):
            return result
        return result.model_copy(update={"resources": resources})

    endpoints = []
    schemas = {}
    resources = []
    for result in results:
        endpoints.extend(result.endpoints)
        schemas.update(result.schemas)
        resources.extend(result.resources)

    return ParseResult(
        metadata=_merge_metadata([r.metadata for r in results]),
        endpoints=endpoints,
        schemas=schemas,
        auth=_merge_auth([r.auth for r in results]),
        resources=_dedupe_resources(resources),
    )


def _merge_metadata(items: list[ApiMetadata]) -> ApiMetadata:
    fields = {}
    for name in SINGULAR_METADATA_FIELDS:
        fields[name] = next((getattr(m, name) for m in items if getattr(m, name)), None)

    custom = {}
    servers: list[ServerInfo] = []
    for m in items:
        custom.update(m.custom)
        servers.extend(m.servers or [])

    return ApiMetadata(**fields, custom=custom, servers=_dedupe_servers(servers) or None)


def _dedupe_servers(servers: list[ServerInfo]) -> list[ServerInfo]:
    seen = set()
    unique = []
    for server in servers:
        if server.url in seen:
            continue
        seen.add(server.url)
        unique.append(server)
    return unique


def _merge_auth(items: list[AuthInfo]) -> AuthInfo:
    schemes = {}
    default_security = []
    for auth in items:
        schemes.update(auth.schemes)
        default_security.extend(auth.default_security)
    description = next((a.description for a in items if a.description), None)
    return AuthInfo(schemes=schemes, default_security=default_security, description=description)


def _dedupe_resources(resources: list[DocResource]) -> list[DocResource]:
    seen = set()
    unique = []
    for resource in resources:
        if resource.id in seen:
            logger.debug("Dropping duplicate resource %s from %s", resource.id, resource.source)
            continue
        seen.add(resource.id)
        unique.append(resource)
    return unique

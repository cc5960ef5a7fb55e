"""Markdown documentation parser.

Builds a section tree from the markdown-it token stream, then mines it for
API information (endpoints, parameters, schemas, auth) with simple heuristics.
Every section is also exposed as a searchable DocResource.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import PurePath

from markdown_it import MarkdownIt
from markdown_it.token import Token

from doc_mcp.parser.base import (
    ApiMetadata,
    AuthInfo,
    CodeExample,
    DocResource,
    EndpointDraft,
    Param,
    ParseResult,
    ResponseSpec,
    SecurityScheme,
    ServerInfo,
)

HTTP_METHOD_PATTERN = re.compile(r"^(GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)\s+(/[\w{}\-.:/]*)")

PARAM_PATTERNS = [
    re.compile(r"^[-*]\s*`?(\w+)`?\s*\((\w+)\)\s*[-:]\s*(.+)"),  # - param (type) - description
    re.compile(r"^[-*]\s*`?(\w+)`?\s*:\s*(\w+)\s*[-:]\s*(.+)"),  # - param: type - description
    re.compile(r"^\|\s*`?(\w+)`?\s*\|\s*(\w+)\s*\|\s*(.+?)\s*\|"),  # | param | type | description |
]
PATH_PARAM_PATTERN = re.compile(r"\{(\w+)\}")
VERSION_PATTERN = re.compile(r"version[:\s]+v?([0-9]+\.[0-9]+\.[0-9]+)", re.IGNORECASE)
SERVER_PATTERN = re.compile(r"(?:base\s*url|server|api\s*url)[:\s]+(https?://[^\s`)]+)", re.IGNORECASE)
AUTH_SECTION_PATTERNS = [
    re.compile(r"auth(?:entication|orization)?", re.IGNORECASE),
    re.compile(r"security", re.IGNORECASE),
    re.compile(r"api\s*key", re.IGNORECASE),
]
HEADER_NAME_PATTERN = re.compile(r"header[:\s]+[`\"]?([A-Za-z0-9_-]+)[`\"]?", re.IGNORECASE)
TS_INTERFACE_PATTERN = re.compile(r"interface\s+(\w+)\s*\{([^}]+)\}")
TS_PROPERTY_PATTERN = re.compile(r"(\w+)(\?)?:\s*(\w+(?:\[\])?)")

TS_TYPE_MAP = {
    "string": "string",
    "number": "number",
    "boolean": "boolean",
    "string[]": "array",
    "number[]": "array",
    "any": "object",
    "object": "object",
}

MAX_KEYWORDS = 20
SUMMARY_LENGTH = 200


@dataclass
class Section:
    title: str
    level: int
    content: list[str] = field(default_factory=list)
    code_blocks: list[tuple[str, str]] = field(default_factory=list)  # (lang, code)
    children: list["Section"] = field(default_factory=list)
    parent: "Section | None" = None
    raw: str = ""


def parse_markdown(content: str, locator: str) -> ParseResult:
    """Parse a markdown document into a ParseResult."""
    md = MarkdownIt("commonmark").enable("table")
    tokens = md.parse(content)
    sections = _build_sections(tokens, content.splitlines())
    flat = _flatten(sections)

    return ParseResult(
        metadata=_extract_metadata(sections, flat),
        endpoints=_extract_endpoints(flat),
        schemas=_extract_schemas(flat),
        auth=_extract_auth(flat),
        resources=_extract_resources(flat, locator),
    )


def is_markdown_file(locator: str) -> bool:
    return locator.lower().endswith((".md", ".markdown", ".mdx"))


# Section extraction

def _build_sections(tokens: list[Token], lines: list[str]) -> list[Section]:
    roots: list[Section] = []
    stack: list[Section] = []
    preamble = Section(title="_preamble", level=0)
    context: list[str] = []
    row: list[str] = []
    heading_starts: list[tuple[Section, int]] = []

    def current() -> Section:
        return stack[-1] if stack else preamble

    for i, token in enumerate(tokens):
        if token.type == "heading_open":
            level = int(token.tag[1])
            title = _inline_text(tokens[i + 1])
            section = Section(title=title, level=level)
            while stack and stack[-1].level >= level:
                stack.pop()
            if stack:
                section.parent = stack[-1]
                stack[-1].children.append(section)
            else:
                roots.append(section)
            stack.append(section)
            heading_starts.append((section, token.map[0] if token.map else 0))
            context.append(token.type)
            continue

        if token.nesting == 1:
            context.append(token.type)
        elif token.nesting == -1:
            if context:
                context.pop()
            if token.type == "tr_close" and row:
                if "tbody_open" in context:
                    current().content.append("| " + " | ".join(row) + " |")
                row = []
            continue

        if token.type in ("fence", "code_block"):
            lang = token.info.strip().split()[0] if token.info.strip() else ""
            current().code_blocks.append((lang, token.content.rstrip("\n")))
        elif token.type == "inline":
            if context and context[-1] == "heading_open":
                continue
            text = _inline_text(token)
            if not text:
                continue
            if "th_open" in context or "td_open" in context:
                row.append(text)
            elif "list_item_open" in context:
                current().content.append(f"- {text}")
            else:
                current().content.append(text)

    # Raw source of each section: from its heading to the next heading of any level
    for index, (section, start) in enumerate(heading_starts):
        end = heading_starts[index + 1][1] if index + 1 < len(heading_starts) else len(lines)
        section.raw = "\n".join(lines[start + 1:end]).strip()

    if preamble.content or preamble.code_blocks:
        first_heading = heading_starts[0][1] if heading_starts else len(lines)
        preamble.raw = "\n".join(lines[:first_heading]).strip()
        roots.insert(0, preamble)
    return roots


def _inline_text(token: Token) -> str:
    parts = []
    for child in token.children or []:
        if child.type in ("text", "code_inline"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append(" ")
    return "".join(parts).strip()


def _flatten(sections: list[Section]) -> list[Section]:
    result = []
    for section in sections:
        result.append(section)
        result.extend(_flatten(section.children))
    return result


# Metadata

def _extract_metadata(sections: list[Section], flat: list[Section]) -> ApiMetadata:
    metadata = ApiMetadata()
    first = next((s for s in sections if s.level == 1), None)
    if first:
        metadata.title = first.title
        if first.content:
            metadata.description = "\n".join(first.content)

    for section in flat:
        match = VERSION_PATTERN.search(" ".join(section.content))
        if match:
            metadata.version = match.group(1)
            break

    for section in flat:
        match = SERVER_PATTERN.search(" ".join(section.content))
        if match:
            metadata.servers = [ServerInfo(url=match.group(1))]
            break

    return metadata


# Endpoints

def _extract_endpoints(flat: list[Section]) -> list[EndpointDraft]:
    endpoints = []
    for section in flat:
        title_match = HTTP_METHOD_PATTERN.match(section.title)
        if title_match:
            endpoints.append(_endpoint_from_section(section, title_match))
            continue

        for lang, code in section.code_blocks:
            if lang in ("http", "rest", ""):
                code_match = HTTP_METHOD_PATTERN.match(code.strip())
                if code_match:
                    endpoints.append(
                        EndpointDraft(
                            method=code_match.group(1),
                            path=code_match.group(2),
                            description="\n".join(section.content),
                            tags=[section.title],
                            parameters=_path_params(code_match.group(2)),
                        )
                    )

        for line in section.content:
            line_match = HTTP_METHOD_PATTERN.match(line)
            if line_match:
                endpoints.append(
                    EndpointDraft(
                        method=line_match.group(1),
                        path=line_match.group(2),
                        description="\n".join(c for c in section.content if c != line),
                        tags=[section.title],
                        parameters=_path_params(line_match.group(2)),
                    )
                )
    return endpoints


def _endpoint_from_section(section: Section, match: re.Match) -> EndpointDraft:
    responses = []
    for child in section.children:
        if re.search(r"response", child.title, re.IGNORECASE):
            status = re.search(r"(\d{3})", child.title)
            responses.append(
                ResponseSpec(
                    status_code=int(status.group(1)) if status else 200,
                    description="\n".join(child.content),
                )
            )

    tags = [section.parent.title] if section.parent and section.parent.level > 0 else None
    return EndpointDraft(
        method=match.group(1),
        path=match.group(2),
        summary=section.title[match.end():].strip(" -:") or None,
        description="\n".join(section.content),
        tags=tags,
        parameters=_params_from_section(section, match.group(2)),
        responses=responses,
    )


def _params_from_section(section: Section, path: str) -> list[Param]:
    params = []
    for line in section.content:
        for pattern in PARAM_PATTERNS:
            m = pattern.match(line)
            if m:
                params.append(
                    Param(
                        name=m.group(1),
                        location="query",
                        required="required" in line.lower(),
                        param_type=m.group(2).lower(),
                        description=m.group(3).strip(),
                    )
                )
                break

    for p in _path_params(path):
        existing = next((q for q in params if q.name == p.name), None)
        if existing:
            existing.location = "path"
            existing.required = True
        else:
            params.append(p)
    return params


def _path_params(path: str) -> list[Param]:
    names = PATH_PARAM_PATTERN.findall(path) + re.findall(r":(\w+)", path)
    return [Param(name=name, location="path", required=True, param_type="string") for name in dict.fromkeys(names)]


# Schemas

def _extract_schemas(flat: list[Section]) -> dict[str, dict]:
    schemas: dict[str, dict] = {}
    for section in flat:
        for lang, code in section.code_blocks:
            if lang in ("json", "jsonschema"):
                try:
                    parsed = json.loads(code)
                except json.JSONDecodeError:
                    continue
                if isinstance(parsed, dict) and ("type" in parsed or "properties" in parsed or "$schema" in parsed):
                    name = re.sub(r"[^a-zA-Z0-9]", "", section.title) or "Schema"
                    schemas[name] = parsed
            elif lang in ("typescript", "ts"):
                schemas.update(_parse_typescript_interfaces(code))
    return schemas


def _parse_typescript_interfaces(code: str) -> dict[str, dict]:
    schemas = {}
    for match in TS_INTERFACE_PATTERN.finditer(code):
        properties = {}
        required = []
        for prop in TS_PROPERTY_PATTERN.finditer(match.group(2)):
            name, optional, ts_type = prop.groups()
            properties[name] = {"type": TS_TYPE_MAP.get(ts_type.lower(), "string")}
            if not optional:
                required.append(name)
        if properties:
            schema: dict = {"type": "object", "properties": properties}
            if required:
                schema["required"] = required
            schemas[match.group(1)] = schema
    return schemas


# Auth

def _extract_auth(flat: list[Section]) -> AuthInfo:
    auth = AuthInfo()
    for section in flat:
        if not any(p.search(section.title) for p in AUTH_SECTION_PATTERNS):
            continue

        joined = " ".join(section.content)
        text = joined.lower()
        description = "\n".join(section.content)

        if "api key" in text or "apikey" in text:
            header = HEADER_NAME_PATTERN.search(joined)
            auth.schemes["apiKey"] = SecurityScheme(
                type="apiKey",
                name=header.group(1) if header else "X-API-Key",
                location="header",
                description=description,
            )
        if "bearer" in text or "jwt" in text or "token" in text:
            auth.schemes["bearer"] = SecurityScheme(type="http", scheme="bearer", description=description)
        if "basic auth" in text:
            auth.schemes["basic"] = SecurityScheme(type="http", scheme="basic", description=description)
        if "oauth" in text:
            auth.schemes["oauth2"] = SecurityScheme(type="oauth2", description=description)

        if not auth.description and description:
            auth.description = description
    return auth


# Resources

def _extract_resources(flat: list[Section], locator: str) -> list[DocResource]:
    stem = PurePath(locator).stem or "doc"
    resources = []
    used: set[str] = set()

    for section in flat:
        if not section.raw and not section.content:
            continue
        slug = _slugify(section.title) or "section"
        resource_id = f"{stem}:{slug}"
        suffix = 2
        while resource_id in used:
            resource_id = f"{stem}:{slug}-{suffix}"
            suffix += 1
        used.add(resource_id)

        name = stem if section.level == 0 else section.title
        summary = section.content[0] if section.content else ""
        resources.append(
            DocResource(
                id=resource_id,
                name=name,
                category=_category(section),
                summary=summary[:SUMMARY_LENGTH],
                content=section.raw,
                code_examples=[
                    CodeExample(language=lang or "text", code=code)
                    for lang, code in section.code_blocks
                ],
                source=locator,
                keywords=_keywords(name, summary),
            )
        )
    return resources


def _category(section: Section) -> str:
    if HTTP_METHOD_PATTERN.match(section.title):
        return "endpoints"
    if section.parent is not None:
        return _slugify(section.parent.title) or "docs"
    return "docs"


def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _keywords(name: str, summary: str) -> list[str]:
    words = [name.lower()]
    words.extend(w.lower() for w in re.findall(r"[A-Za-z][A-Za-z0-9_-]*", summary) if len(w) > 3)
    return list(dict.fromkeys(words))[:MAX_KEYWORDS]

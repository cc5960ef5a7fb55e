"""Unified parse: pick an extractor per source, expand globs, fetch URLs, merge.

Selection order for one source: a matching custom parser, then remote fetch
for http(s) locators, then file extension, then content sniffing, falling
back to markdown.
"""

import glob
import logging
from collections.abc import Callable
from pathlib import Path

import requests

from doc_mcp.config import CustomParser, DocMcpConfig, resolve_config
from doc_mcp.errors import DocMcpError, ParseError, SourceNotFound
from doc_mcp.normalizer import normalize_schema
from doc_mcp.parser.base import NormalizedSchema, ParseResult
from doc_mcp.parser.detect import detect_format
from doc_mcp.parser.markdown import parse_markdown
from doc_mcp.parser.merge import merge_results
from doc_mcp.parser.openapi import parse_openapi
from doc_mcp.parser.postman import parse_postman
from doc_mcp.parser.source import parse_source as parse_source_code

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 30

GLOB_CHARS = ("*", "?", "[")

EXTRACTORS: dict[str, Callable[[str, str], ParseResult]] = {
    "openapi": parse_openapi,
    "postman": parse_postman,
    "markdown": parse_markdown,
    "source": parse_source_code,
}


def is_url(locator: str) -> bool:
    return locator.startswith(("http://", "https://"))


def is_glob(locator: str) -> bool:
    return not is_url(locator) and any(ch in locator for ch in GLOB_CHARS)


def parse_source(locator: str, config: DocMcpConfig) -> ParseResult:
    """Parse a single concrete source (file path or URL) into a ParseResult."""
    logger.debug("Parsing documentation source: %s", locator)

    for parser in config.parsers:
        if _matches_parser(locator, parser):
            logger.debug("Using custom parser for: %s", locator)
            content = _read_source(locator)
            try:
                return parser.parse(content, locator)
            except DocMcpError:
                raise
            except Exception as e:
                raise ParseError(locator, e) from e

    if is_url(locator):
        return _parse_url(locator)
    return _parse_file(locator)


def expand_sources(sources: list[str]) -> list[tuple[str, bool]]:
    """Expand glob patterns into concrete paths.

    Returns (locator, explicit) pairs; `explicit` is False for paths that came
    from a glob pattern. A pattern matching nothing is logged and skipped.
    """
    expanded = []
    for source in sources:
        if not is_glob(source):
            expanded.append((source, True))
            continue
        matches = sorted(p for p in glob.glob(source, recursive=True) if Path(p).is_file())
        if not matches:
            logger.warning("No files matched pattern: %s", source)
        expanded.extend((match, False) for match in matches)
    return expanded


def parse_all(sources: list[str], config: DocMcpConfig) -> tuple[ParseResult, list[str]]:
    """Parse every source and merge the results in source order.

    Failures on explicitly named sources propagate; failures on sources that
    came from a glob pattern are logged and skipped.
    """
    results = []
    parsed = []
    for locator, explicit in expand_sources(sources):
        try:
            results.append(parse_source(locator, config))
        except (SourceNotFound, ParseError) as e:
            if explicit:
                logger.error("Failed to parse %s: %s", locator, e)
                raise
            logger.warning("Skipping %s: %s", locator, e)
            continue
        parsed.append(locator)
        logger.debug("Successfully parsed: %s", locator)

    return merge_results(results), parsed


def parse(sources: list[str] | str, config: DocMcpConfig | None = None) -> NormalizedSchema:
    """Parse, merge and normalize documentation sources."""
    if isinstance(sources, str):
        sources = [sources]
    if config is None:
        config = resolve_config({"docs": sources}, env={})
    merged, parsed = parse_all(sources, config)
    return normalize_schema(merged, config, parsed)


def _parse_file(locator: str) -> ParseResult:
    path = Path(locator)
    if not path.is_file():
        raise SourceNotFound(str(path.resolve()))
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(locator, e) from e

    fmt = detect_format(content, locator)
    logger.debug("Parsing %s as %s", locator, fmt)
    return EXTRACTORS[fmt](content, locator)


def _parse_url(url: str) -> ParseResult:
    content, content_type = _fetch(url)
    fmt = detect_format(content, url)
    if fmt == "markdown" and ("yaml" in content_type or "json" in content_type):
        fmt = "openapi"
    logger.debug("Parsing %s as %s", url, fmt)
    return EXTRACTORS[fmt](content, url)


def _fetch(url: str) -> tuple[str, str]:
    logger.debug("Fetching documentation from URL: %s", url)
    try:
        response = requests.get(url, timeout=FETCH_TIMEOUT)
    except requests.RequestException as e:
        raise SourceNotFound(url, str(e)) from e
    if not response.ok:
        raise SourceNotFound(url, f"{response.status_code} {response.reason}")
    return response.text, response.headers.get("Content-Type", "").lower()


def _read_source(locator: str) -> str:
    if is_url(locator):
        return _fetch(locator)[0]
    path = Path(locator)
    if not path.is_file():
        raise SourceNotFound(str(path.resolve()))
    return path.read_text(encoding="utf-8")


def _matches_parser(locator: str, parser: CustomParser) -> bool:
    suffix = Path(locator.split("?", 1)[0]).suffix.lower()
    for pattern in parser.extensions:
        if pattern.startswith("."):
            if suffix == pattern.lower():
                return True
        elif pattern in locator:
            return True
    return False

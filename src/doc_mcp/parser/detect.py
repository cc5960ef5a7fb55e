"""Auto-detect documentation format."""

import json
import re
from pathlib import PurePosixPath

import yaml

from doc_mcp.parser.markdown import is_markdown_file
from doc_mcp.parser.source import is_source_file

SPEC_EXTENSIONS = (".yaml", ".yml", ".json")
SPEC_NAME_MARKERS = ("openapi", "swagger")

SPEC_CONTENT_PATTERN = re.compile(r"""^\s*["']?(openapi|swagger)["']?\s*:""", re.MULTILINE)


def is_spec_file(locator: str) -> bool:
    """True when the locator looks like a structured API spec (by extension or name)."""
    lower = locator.lower()
    name = PurePosixPath(lower.split("?", 1)[0]).name
    return lower.endswith(SPEC_EXTENSIONS) or any(marker in name for marker in SPEC_NAME_MARKERS)


def detect_format(content: str, locator: str = "") -> str:
    """Detect the format of a documentation source.

    Extension sniffing first, then content sniffing.
    Returns: 'openapi', 'postman', 'source' or 'markdown'.
    """
    if locator:
        if is_markdown_file(locator):
            return "markdown"
        if is_source_file(locator):
            return "source"
        if is_spec_file(locator):
            return _detect_structured(content) or "openapi"

    return _detect_structured(content) or "markdown"


def _detect_structured(content: str) -> str | None:
    data = _load_mapping(content)
    if data is not None:
        if "openapi" in data or "swagger" in data:
            return "openapi"
        info = data.get("info")
        if isinstance(info, dict) and "_postman_id" in info:
            return "postman"
        if "item" in data and isinstance(info, dict) and "schema" in info:
            return "postman"
        return None

    if SPEC_CONTENT_PATTERN.search(content):
        return "openapi"
    return None


def _load_mapping(content: str) -> dict | None:
    # Try JSON first (cheap and strict), then YAML
    try:
        data = json.loads(content)
    except ValueError:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError:
            return None
    return data if isinstance(data, dict) else None

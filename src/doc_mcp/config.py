"""Configuration loading and resolution.

Options are layered: environment variables (DOC_MCP_DOCS, DOC_MCP_BASE_PATH,
DOC_MCP_VERBOSE) sit below explicit options, which may in turn come from a
YAML config file. The result is a validated DocMcpConfig.
"""

import logging
import os
import re
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from doc_mcp.errors import ConfigValidationError
from doc_mcp.parser.base import ApiMetadata, ParseResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_PATH = "/mcp"
DEFAULT_KEEPALIVE_INTERVAL = 15.0

BASE_PATH_PATTERN = re.compile(r"^/[a-zA-Z0-9/_-]*$")


class OAuth2Config(BaseModel):
    authorization_url: str | None = None
    token_url: str | None = None
    scopes: dict[str, str] = {}


class AuthConfig(BaseModel):
    """Auth scheme to advertise. doc-mcp describes auth, it never enforces it."""

    type: Literal["none", "apiKey", "bearer", "basic", "oauth2"] = "none"
    name: str | None = None  # header/query/cookie name for apiKey
    location: Literal["header", "query", "cookie"] | None = None
    oauth2: OAuth2Config | None = None
    description: str | None = None


class VisibilityConfig(BaseModel):
    include: list[str] | None = None
    exclude: list[str] | None = None
    expose_internal: bool = False


class CustomParser(BaseModel):
    """User-supplied extractor for sources matching one of `extensions`.

    An entry starting with "." is compared to the file extension, anything
    else is a substring of the locator.
    """

    extensions: list[str]
    parse: Callable[[str, str], ParseResult]


class DocMcpConfig(BaseModel):
    docs: list[str] = []
    base_path: str = DEFAULT_BASE_PATH
    auth: AuthConfig = Field(default_factory=AuthConfig)
    visibility: VisibilityConfig = Field(default_factory=VisibilityConfig)
    metadata: ApiMetadata = Field(default_factory=ApiMetadata)
    verbose: bool = False
    parsers: list[CustomParser] = []
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL


def _env_options(env: Mapping[str, str]) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if env.get("DOC_MCP_DOCS"):
        options["docs"] = [d.strip() for d in env["DOC_MCP_DOCS"].split(",") if d.strip()]
    if env.get("DOC_MCP_BASE_PATH"):
        options["base_path"] = env["DOC_MCP_BASE_PATH"]
    if env.get("DOC_MCP_VERBOSE"):
        options["verbose"] = env["DOC_MCP_VERBOSE"].lower() in ("true", "1")
    return options


def normalize_base_path(base_path: str) -> str:
    normalized = base_path if base_path.startswith("/") else f"/{base_path}"
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def resolve_config(
    options: DocMcpConfig | Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> DocMcpConfig:
    """Merge environment and explicit options, apply defaults and validate.

    Explicit options take precedence over environment variables. Raises
    ConfigValidationError when the result is unusable.
    """
    if isinstance(options, DocMcpConfig):
        options = options.model_dump(exclude_unset=True)
    merged = _env_options(os.environ if env is None else env)
    for key, value in (options or {}).items():
        if value is not None:
            merged[key] = value

    if isinstance(merged.get("docs"), str):
        merged["docs"] = [merged["docs"]]

    try:
        config = DocMcpConfig(**merged)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid configuration: {e}") from e

    config.base_path = normalize_base_path(config.base_path)
    validate_config(config)
    return config


def validate_config(config: DocMcpConfig) -> None:
    """Check that required configuration is present and well formed."""
    if not config.docs:
        raise ConfigValidationError(
            '"docs" configuration is required. Provide a path, glob or URL to your documentation.'
        )
    if not BASE_PATH_PATTERN.match(config.base_path):
        raise ConfigValidationError(
            f'Invalid base_path "{config.base_path}". Must start with "/" and contain only '
            "alphanumeric characters, underscores, hyphens, and slashes."
        )
    if config.keepalive_interval <= 0:
        raise ConfigValidationError("keepalive_interval must be positive")


def load_config_file(file_path: Path) -> dict[str, Any]:
    """Read options from a YAML (or JSON) config file.

    Relative `docs` entries are resolved against the config file's directory.
    """
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigValidationError(f"Cannot read config file {file_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Config file {file_path} must contain a mapping")

    docs = data.get("docs")
    if isinstance(docs, str):
        docs = [docs]
    if docs:
        data["docs"] = [_resolve_relative(d, file_path.parent) for d in docs]
    logger.debug("Loaded config file %s", file_path)
    return data


def _resolve_relative(source: str, base_dir: Path) -> str:
    if source.startswith(("http://", "https://")) or Path(source).is_absolute():
        return source
    return str(base_dir / source)


def merge_configs(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge two option mappings, `override` winning.

    Visibility and metadata are merged per key, parsers are concatenated.
    """
    merged = {**base, **{k: v for k, v in override.items() if v is not None}}
    for key in ("visibility", "metadata"):
        if key in base or key in override:
            merged[key] = {**(base.get(key) or {}), **(override.get(key) or {})}
    merged["parsers"] = [*(base.get("parsers") or []), *(override.get("parsers") or [])]
    return merged


def is_path_visible(path: str, visibility: VisibilityConfig) -> bool:
    """Excludes always win; when includes are set the path must match one of them."""
    for pattern in visibility.exclude or []:
        if matches_pattern(path, pattern):
            return False

    if visibility.include:
        return any(matches_pattern(path, pattern) for pattern in visibility.include)

    return True


def matches_pattern(path: str, pattern: str) -> bool:
    """Glob-like match anchored at both ends: `*` is any run of characters, `?` one character."""
    regex = "".join(
        ".*" if ch == "*" else "." if ch == "?" else re.escape(ch)
        for ch in pattern
    )
    return re.fullmatch(regex, path) is not None

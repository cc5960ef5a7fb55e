"""Exceptions raised while loading documentation and serving the protocol."""

# JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class DocMcpError(Exception):
    """Base class for all doc-mcp errors."""


class SourceNotFound(DocMcpError):
    """A named documentation source does not exist or could not be fetched."""

    def __init__(self, locator: str, reason: str = ""):
        self.locator = locator
        message = f"Documentation source not found: {locator}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ParseError(DocMcpError):
    """An extractor could not make sense of a source's content."""

    def __init__(self, locator: str, cause: Exception | str):
        self.locator = locator
        self.cause = cause
        super().__init__(f"Failed to parse {locator}: {cause}")


class UnsupportedFormat(ParseError):
    """A structured spec declares a version that is neither Swagger 2.0 nor OpenAPI 3.x."""

    def __init__(self, locator: str, version: str):
        self.version = version
        super().__init__(
            locator,
            f"unsupported OpenAPI version {version!r}; supported versions: Swagger 2.0, OpenAPI 3.x",
        )


class ConfigValidationError(DocMcpError):
    """The resolved configuration failed its shape or range checks."""


class ProtocolError(DocMcpError):
    """A protocol call could not be answered; reported to the caller, never fatal."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class SessionNotFound(DocMcpError):
    """A message was submitted against an unknown or closed session."""

    def __init__(self, session_id: str | None):
        self.session_id = session_id
        super().__init__(f"Invalid or missing session ID: {session_id!r}")

"""The running doc-mcp instance: holds the current schema and reloads it."""

import logging
from collections.abc import Mapping
from typing import Any

from doc_mcp.config import DocMcpConfig, resolve_config
from doc_mcp.parser.base import NormalizedSchema
from doc_mcp.parser.loader import parse
from doc_mcp.protocol.dispatcher import Dispatcher
from doc_mcp.server.handlers import DocHandlers
from doc_mcp.server.sessions import Session, SessionRegistry

logger = logging.getLogger(__name__)


class DocMcp:
    """Parsed documentation plus the session registry serving it.

    `schema` is replaced in a single assignment on reload. Anything that
    captured the previous schema (open sessions, in-flight dispatches) keeps
    reading it.
    """

    def __init__(self, config: DocMcpConfig, schema: NormalizedSchema):
        self.config = config
        self.schema = schema
        self.dispatcher = Dispatcher()
        self.sessions = SessionRegistry()

    @classmethod
    def from_config(cls, config: DocMcpConfig | Mapping[str, Any] | None = None) -> "DocMcp":
        """Resolve the config and parse every source. Parse errors propagate."""
        resolved = config if isinstance(config, DocMcpConfig) else resolve_config(config)
        schema = parse(resolved.docs, resolved)
        logger.info(
            "Loaded %s v%s: %d endpoints, %d schemas, %d resources",
            schema.metadata.title,
            schema.metadata.version,
            len(schema.endpoints),
            len(schema.schemas),
            len(schema.resources),
        )
        return cls(resolved, schema)

    def handlers(self) -> DocHandlers:
        return DocHandlers(self.schema)

    def reload(self) -> NormalizedSchema:
        """Re-parse every source and swap in the new schema.

        On failure the current schema stays in place and the error propagates.
        """
        schema = parse(self.config.docs, self.config)
        self.schema = schema
        logger.info("Reloaded documentation: %d endpoints", len(schema.endpoints))
        return schema

    def open_session(self) -> Session:
        return self.sessions.create(self.schema, self.config)

    def handle_message(self, session_id: str | None, message: Any) -> dict:
        """Dispatch one message for a session and push the response onto its stream.

        Raises SessionNotFound for an unknown session id.
        """
        session = self.sessions.get(session_id)
        response = self.dispatcher.dispatch(message, session)
        session.send("message", response)
        return response

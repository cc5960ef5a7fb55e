"""Session registry for SSE connections.

A session is created when a client opens the SSE stream and removed when the
stream ends. Each session carries the schema and config it was opened
against, so a reload only affects sessions opened afterwards.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from doc_mcp.config import DocMcpConfig
from doc_mcp.errors import SessionNotFound
from doc_mcp.parser.base import NormalizedSchema

logger = logging.getLogger(__name__)

HEARTBEAT = ": heartbeat\n\n"


def sse_event(event: str, data: Any) -> str:
    """Format data as a Server-Sent Event."""
    if not isinstance(data, str):
        data = json.dumps(data)
    return f"event: {event}\ndata: {data}\n\n"


@dataclass
class Session:
    schema: NormalizedSchema
    config: DocMcpConfig
    id: str = field(default_factory=lambda: uuid4().hex)
    initialized: bool = False
    closed: bool = False
    queue: asyncio.Queue = field(default_factory=asyncio.Queue, repr=False)

    def send(self, event: str, data: Any) -> bool:
        """Queue an event for the client. Returns False once the session is closed."""
        if self.closed:
            return False
        self.queue.put_nowait(sse_event(event, data))
        return True

    def close(self) -> None:
        """Mark closed and wake a stream waiting on the queue."""
        if self.closed:
            return
        self.closed = True
        self.queue.put_nowait(None)


class SessionRegistry:
    """Maps session ids to open sessions."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self, schema: NormalizedSchema, config: DocMcpConfig) -> Session:
        session = Session(schema=schema, config=config)
        self._sessions[session.id] = session
        logger.debug("Opened session %s (%d open)", session.id, len(self._sessions))
        return session

    def get(self, session_id: str | None) -> Session:
        session = self._sessions.get(session_id) if session_id else None
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def remove(self, session_id: str) -> None:
        """Close and forget a session. Removing an unknown id does nothing."""
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()
            logger.debug("Closed session %s (%d open)", session_id, len(self._sessions))

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.remove(session_id)

    async def stream(
        self, session: Session, message_url: str, keepalive_interval: float
    ) -> AsyncGenerator[str, None]:
        """Yield the SSE frames of one session until the client goes away.

        The first frame is the `endpoint` event telling the client where to
        POST messages. A heartbeat comment is sent whenever nothing else was
        sent for `keepalive_interval` seconds.
        """
        try:
            yield sse_event("endpoint", message_url)
            while not session.closed:
                try:
                    frame = await asyncio.wait_for(session.queue.get(), timeout=keepalive_interval)
                except asyncio.TimeoutError:
                    frame = HEARTBEAT
                if frame is None:
                    break
                yield frame
        finally:
            self.remove(session.id)

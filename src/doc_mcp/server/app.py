"""FastAPI transport for doc-mcp.

Two explicit entry points: `mount` adds the doc-mcp routes to an existing
FastAPI app, `create_app` builds a standalone app around them.
"""

import json
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from doc_mcp.errors import PARSE_ERROR, DocMcpError, SessionNotFound
from doc_mcp.instance import DocMcp
from doc_mcp.protocol.dispatcher import failure
from doc_mcp.server.handlers import route_table

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def create_router(instance: DocMcp) -> APIRouter:
    """Build the router serving `instance` under its configured base path."""
    prefix = "" if instance.config.base_path == "/" else instance.config.base_path
    router = APIRouter(prefix=prefix, tags=["doc-mcp"])

    @router.get("/describe")
    async def describe() -> dict:
        return instance.handlers().describe()

    @router.get("/schemas")
    async def schemas() -> dict:
        return instance.handlers().schemas()

    @router.get("/endpoints")
    async def endpoints(
        tag: str | None = None,
        method: str | None = None,
        path: str | None = None,
        deprecated: bool | None = None,
    ) -> dict:
        return instance.handlers().endpoints(tag=tag, method=method, path=path, deprecated=deprecated)

    @router.get("/auth")
    async def auth() -> dict:
        return instance.handlers().auth()

    @router.get("/sse")
    async def sse() -> StreamingResponse:
        """Open an MCP session. Events: endpoint (once), then message."""
        session = instance.open_session()
        message_url = f"{prefix}/message?sessionId={session.id}"
        return StreamingResponse(
            instance.sessions.stream(session, message_url, instance.config.keepalive_interval),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @router.post("/message")
    async def message(request: Request, session_id: str | None = Query(default=None, alias="sessionId")):
        if session_id not in instance.sessions:
            return JSONResponse(status_code=400, content={"error": "Invalid or missing session ID"})
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse(status_code=400, content=failure(None, PARSE_ERROR, "Parse error"))
        try:
            return instance.handle_message(session_id, payload)
        except SessionNotFound:
            # closed between the check above and the dispatch
            return JSONResponse(status_code=400, content={"error": "Invalid or missing session ID"})

    @router.post("/reload")
    def reload():
        try:
            instance.reload()
        except DocMcpError as e:
            logger.error("Reload failed: %s", e)
            return JSONResponse(status_code=500, content={"error": str(e)})
        return instance.handlers().describe()

    return router


def mount(app: FastAPI, instance: DocMcp) -> FastAPI:
    """Add the doc-mcp routes to an existing FastAPI app."""
    app.include_router(create_router(instance))
    return app


def create_app(instance: DocMcp) -> FastAPI:
    """Create a standalone FastAPI app serving `instance`."""
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        yield
        # Shutdown
        instance.sessions.close_all()

    metadata = instance.schema.metadata
    app = FastAPI(
        title=f"{metadata.title} (doc-mcp)",
        description=metadata.description,
        version=metadata.version or "1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
    )
    mount(app, instance)

    @app.get("/")
    async def index() -> dict:
        base_path = instance.config.base_path
        return {
            "name": instance.schema.metadata.title,
            "version": instance.schema.metadata.version,
            "routes": route_table(base_path),
            "sse": f"{base_path.rstrip('/')}/sse",
        }

    return app


def run_server(instance: DocMcp, host: str = "127.0.0.1", port: int = 3000) -> None:
    """Run a standalone doc-mcp server."""
    import uvicorn

    app = create_app(instance)
    uvicorn.run(app, host=host, port=port, log_level="debug" if instance.config.verbose else "info")

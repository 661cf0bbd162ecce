from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request

from zentao_mcp.core.config import Settings
from zentao_mcp.core.logging_config import setup_logging
from zentao_mcp.mcp.protocol import MCPProtocolHandler

logger = logging.getLogger("zentao_mcp.gateway")


def create_app(handler: MCPProtocolHandler | None = None) -> FastAPI:
    # Ensure .env is loaded before anything reads os.getenv
    load_dotenv(override=False)

    settings = handler.settings if handler else Settings.from_env()
    setup_logging(log_dir=settings.log_dir, log_level=settings.log_level, debug=settings.debug)
    os.makedirs(settings.data_dir, exist_ok=True)

    mcp_handler = handler or MCPProtocolHandler(settings)

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        yield
        if mcp_handler.session is not None:
            mcp_handler.session.close()

    app = FastAPI(title="zentao-mcp", lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/mcp")
    async def mcp_jsonrpc(request: Request) -> dict:
        """MCP JSON-RPC endpoint."""
        if settings.mcp_token:
            token = request.headers.get("x-mcp-token")
            auth = request.headers.get("authorization", "")
            if not token and auth.lower().startswith("bearer "):
                token = auth.split(" ", 1)[1]
            if token != settings.mcp_token:
                raise HTTPException(status_code=401, detail="Invalid MCP token")

        body = await request.json()
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="JSON-RPC body must be an object")
        return mcp_handler.handle_request(body)

    return app

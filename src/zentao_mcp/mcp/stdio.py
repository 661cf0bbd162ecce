"""Line-delimited JSON-RPC over stdin/stdout."""
from __future__ import annotations

import json
import logging
from typing import TextIO

from zentao_mcp.mcp.protocol import MCPProtocolHandler

logger = logging.getLogger("zentao_mcp.mcp.stdio")


def serve_stdio(handler: MCPProtocolHandler, stdin: TextIO, stdout: TextIO) -> None:
    """Answer one JSON-RPC request per input line until EOF."""
    logger.info("stdio transport started")
    for line in stdin:
        line = line.strip()
        if not line:
            continue
        try:
            body = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON-RPC line: %s", exc)
            response = {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": f"Parse error: {exc}"}}
        else:
            if not isinstance(body, dict):
                response = {"jsonrpc": "2.0", "id": None, "error": {"code": -32600, "message": "Invalid request"}}
            else:
                response = handler.handle_request(body)
        if response:
            stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
            stdout.flush()
    logger.info("stdio transport closed")

"""Centralized logging configuration for zentao-mcp.

Console output goes to stderr only: in stdio mode stdout carries the
JSON-RPC responses and must stay clean.

Log directory structure::

    ~/.zentao/logs/
    ├── zentao-mcp.log     # All Python logger output (rotating)
    └── mcp-calls.log      # Every MCP tool call (JSONL)
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
from typing import Any, Optional, TextIO

# Module-level log directory, set by setup_logging()
_log_dir: Optional[str] = None

mcp_call_logger = logging.getLogger("zentao_mcp._mcp_calls")


def get_log_dir() -> str:
    if _log_dir:
        return _log_dir
    default = os.path.join(os.path.expanduser("~"), ".zentao", "logs")
    return os.getenv("ZENTAO_LOG_DIR", default)


def setup_logging(
    log_dir: str,
    log_level: str = "info",
    *,
    debug: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Configure the root logger with a stderr handler and a rotating file.

    Safe to call more than once; existing handlers are replaced.
    """
    global _log_dir
    _log_dir = log_dir
    os.makedirs(log_dir, exist_ok=True)

    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    fmt = logging.Formatter(
        "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(fmt)
    root.addHandler(stream_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, "zentao-mcp.log"),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    _setup_jsonl_logger(mcp_call_logger, os.path.join(log_dir, "mcp-calls.log"))

    logging.getLogger("zentao_mcp").info(
        "Logging initialized: log_dir=%s, level=%s, debug=%s", log_dir, log_level, debug
    )


def _setup_jsonl_logger(logger_instance: logging.Logger, path: str) -> None:
    logger_instance.setLevel(logging.INFO)
    logger_instance.propagate = False
    logger_instance.handlers.clear()
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    # Message is already JSON
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger_instance.addHandler(handler)


def log_mcp_call(
    method: str,
    tool_name: str | None = None,
    tool_args: dict[str, Any] | None = None,
    result: Any = None,
    error: str | None = None,
    duration_ms: float | None = None,
) -> None:
    """Log an MCP JSON-RPC call to the dedicated MCP calls log."""
    record: dict[str, Any] = {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "method": method,
    }
    if tool_name:
        record["tool"] = tool_name
    if tool_args is not None:
        args_str = json.dumps(_redact(tool_args), default=str)
        record["tool_args"] = _redact(tool_args) if len(args_str) < 10000 else args_str[:10000] + "…(truncated)"
    if duration_ms is not None:
        record["duration_ms"] = round(duration_ms, 1)
    if error:
        record["error"] = error[:5000]
    elif result is not None:
        result_str = json.dumps(result, default=str)
        if len(result_str) > 10000:
            record["result_preview"] = result_str[:10000] + "..."
        else:
            record["result"] = result
    try:
        mcp_call_logger.info(json.dumps(record, default=str))
    except Exception:  # noqa: BLE001
        pass


def _redact(args: dict[str, Any]) -> dict[str, Any]:
    return {k: ("***" if k == "password" else v) for k, v in args.items()}


def get_audit_log_path() -> str:
    return os.path.join(get_log_dir(), "audit.jsonl")


def append_to_file(path: str, line: str) -> None:
    """Append a timestamped line to a log file, flushing immediately."""
    try:
        ts = time.strftime("%Y-%m-%dT%H:%M:%S")
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"{ts} {line}\n")
            f.flush()
    except Exception:  # noqa: BLE001
        pass

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import os
from typing import Any, Dict

from zentao_mcp.core.logging_config import append_to_file, get_audit_log_path

logger = logging.getLogger("zentao_mcp.audit")


def log_event(data_dir: str, event_type: str, payload: Dict[str, Any]) -> None:
    """Append one audit record to ``<data_dir>/audit.jsonl``.

    Write failures are logged and never propagate to the tool call.
    """
    record: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "type": event_type,
        "payload": {k: v for k, v in payload.items() if k != "password"},
    }
    line = json.dumps(record, default=str)
    path = os.path.join(data_dir, "audit.jsonl")
    try:
        os.makedirs(data_dir, exist_ok=True)
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(line + "\n")
    except OSError as exc:
        logger.warning("Audit write failed for %s: %s", event_type, exc)
        return
    central = get_audit_log_path()
    if central != path:
        append_to_file(central, line)

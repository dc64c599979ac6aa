"""Structured JSON logging to stdout.

Low overhead, minimal dependencies, safe for production stdout collectors.
"""

from typing import Any, Dict
from datetime import datetime, timezone
import json

from flightlink.obs.context import request_id_var, conversation_id_var, user_id_var


def _redact_user(value: Any) -> Any:
    s = str(value) if value is not None else ""
    if not s:
        return s
    if len(s) < 4:
        return "***"
    return f"***{s[-4:]}"


def log_event(event: str, **fields: Any) -> None:
    now = datetime.now(timezone.utc).isoformat()
    payload: Dict[str, Any] = {
        "ts": now,
        "level": fields.pop("level", "INFO"),
        "event": event,
        "request_id": request_id_var.get(),
    }
    # Attach context vars if not provided explicitly
    payload.setdefault("conversation_id", conversation_id_var.get())
    if "user_id" not in fields:
        payload["user_id"] = _redact_user(user_id_var.get())

    for k, v in fields.items():
        if k == "user_id":
            payload["user_id"] = _redact_user(v)
        else:
            payload[k] = v

    try:
        print(json.dumps(payload, separators=(",", ":"), default=str))
    except (TypeError, ValueError):
        # As a last resort, avoid crashing the app due to logging
        pass

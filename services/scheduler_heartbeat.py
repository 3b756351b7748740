"""Heartbeat file written by the scheduler so external probes can check liveness."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from core.env import env_str

logger = logging.getLogger(__name__)

HeartbeatStatus = Literal["starting", "success", "error", "disabled", "idle"]

DEFAULT_HEARTBEAT_PATH = Path(env_str("SCHEDULER_HEARTBEAT_PATH") or "/tmp/scheduler-heartbeat.json")


def write_heartbeat(
    status: HeartbeatStatus,
    detail: Optional[str] = None,
    *,
    path: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Overwrite the heartbeat file; write errors are logged, never raised."""
    target = Path(path) if path is not None else DEFAULT_HEARTBEAT_PATH
    payload: Dict[str, Any] = {
        "status": status,
        "detail": detail,
        "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
    }
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to write scheduler heartbeat to %s: %s", target, exc)
    return payload


def read_heartbeat(path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    target = Path(path) if path is not None else DEFAULT_HEARTBEAT_PATH
    try:
        payload = json.loads(target.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read scheduler heartbeat from %s: %s", target, exc)
        return None
    return payload if isinstance(payload, dict) else None


__all__ = ["DEFAULT_HEARTBEAT_PATH", "HeartbeatStatus", "read_heartbeat", "write_heartbeat"]

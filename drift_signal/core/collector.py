"""Append-only drift event collector."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging

from drift_signal.core.drift_config import DRIFT_EVENT_KIND, DRIFT_EVENT_VERSION, UNKNOWN_MODULE
from drift_signal.core.log_readers import PathLike
from drift_signal.core.utils import iso_utc, utc_now

MIRRORED_FIELDS = ("risk_score", "severity", "verdict", "exit_code", "receipt_id", "snapshot_id")


def build_drift_event_line(event: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "kind": DRIFT_EVENT_KIND,
        "v": DRIFT_EVENT_VERSION,
        "ts": iso_utc(now or utc_now()),
        "surface_id": event.get("surface_id") or UNKNOWN_MODULE,
        "module": event.get("module") or UNKNOWN_MODULE,
    }
    # Mirrored fields are trend inputs only; they never drive an exit code.
    for key in MIRRORED_FIELDS:
        payload[key] = event.get(key)
    if event.get("boundary"):
        payload["boundary"] = event["boundary"]
    return payload


def collect_drift_event(event: Dict[str, Any], events_path: PathLike, now: Optional[datetime] = None) -> bool:
    """
    Append one drift_event (v2) line to ``events_path``.

    Never raises; returns False when the line could not be written.
    """
    try:
        payload = build_drift_event_line(event or {}, now=now)
        path_obj = Path(events_path)
        path_obj.parent.mkdir(parents=True, exist_ok=True)
        with open(path_obj, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False) + "\n")
        return True
    except Exception as exc:
        logging.warning(f"Failed to append drift event to {events_path}: {exc}")
        return False

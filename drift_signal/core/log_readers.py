"""Best-effort readers for newline-delimited JSON drift and audit logs."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Union
import json
import logging

from drift_signal.core.drift_config import DRIFT_EVENT_KIND, DRIFT_EVENT_VERSION
from drift_signal.core.drift_models import DriftEvent

PathLike = Union[str, Path]


def read_lines(path: PathLike) -> List[str]:
    path_obj = Path(path)
    if not path_obj.is_file():
        return []
    try:
        text = path_obj.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logging.warning(f"Could not read log {path_obj}: {exc}")
        return []
    return [line for line in text.split("\n") if line.strip()]


def _parse_objects(path: PathLike) -> List[Dict[str, Any]]:
    objects: List[Dict[str, Any]] = []
    skipped = 0
    for line in read_lines(path):
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            skipped += 1
            continue
        if not isinstance(obj, dict):
            skipped += 1
            continue
        objects.append(obj)
    if skipped:
        logging.debug("Skipped %d malformed lines in %s", skipped, path)
    return objects


def read_drift_events(path: PathLike) -> List[DriftEvent]:
    """
    Read drift events from a JSONL log.

    Only ``kind == "drift_event"`` lines with schema ``v == 2`` are kept.
    A missing file or a malformed line never raises.
    """
    events: List[DriftEvent] = []
    for obj in _parse_objects(path):
        if obj.get("kind") != DRIFT_EVENT_KIND or obj.get("v") != DRIFT_EVENT_VERSION:
            continue
        events.append(DriftEvent.from_dict(obj))
    return events


def read_audit_records(path: PathLike) -> List[Dict[str, Any]]:
    """Read schema-loose audit records; each record is returned as a plain dict."""
    return _parse_objects(path)

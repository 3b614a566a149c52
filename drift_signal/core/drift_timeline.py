"""Bucketed drift event timeline with UTC-truncated bucket boundaries."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set
import logging

from drift_signal.core.drift_config import DEFAULT_BUCKET, TIMELINE_BUCKETS
from drift_signal.core.drift_models import DriftEvent
from drift_signal.core.log_readers import PathLike, read_drift_events
from drift_signal.core.utils import iso_utc, utc_day_start, utc_hour_start, utc_now, window_to_days


def bucket_start(ts: datetime, bucket: str) -> datetime:
    if bucket == "hour":
        return utc_hour_start(ts)
    return utc_day_start(ts)


def build_timeline_series(
    events: List[DriftEvent],
    window: str = "7d",
    bucket: str = DEFAULT_BUCKET,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    now = now or utc_now()
    if bucket not in TIMELINE_BUCKETS:
        bucket = DEFAULT_BUCKET
    start = now - timedelta(days=window_to_days(window))

    counts: Dict[datetime, int] = {}
    modules: Dict[datetime, Set[str]] = {}
    for event in events:
        ts = event.timestamp
        if ts is None or ts < start:
            continue
        key = bucket_start(ts, bucket)
        counts[key] = counts.get(key, 0) + 1
        modules.setdefault(key, set()).add(event.module_key)

    return [
        {
            "bucket_start": iso_utc(key),
            "event_count": counts[key],
            "unique_module_count": len(modules[key]),
        }
        for key in sorted(counts)
    ]


def build_timeline(
    events_path: PathLike,
    window: str = "7d",
    bucket: str = DEFAULT_BUCKET,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build a drift_timeline (v1). Never raises; failures produce an empty series.
    """
    now = now or utc_now()
    if bucket not in TIMELINE_BUCKETS:
        bucket = DEFAULT_BUCKET
    try:
        series = build_timeline_series(read_drift_events(events_path), window, bucket, now)
    except Exception as exc:
        logging.warning(f"Drift timeline failed, emitting empty series: {exc}")
        series = []
    return {
        "kind": "drift_timeline",
        "v": 1,
        "window": window,
        "bucket": bucket,
        "generated_at": iso_utc(utc_now()),
        "series": series,
        "policy": {"affects_exit": False},
    }

"""Previous-window vs current-window drift comparison."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
import logging

from drift_signal.core.drift_analyzer import analyze_drift
from drift_signal.core.log_readers import PathLike
from drift_signal.core.utils import iso_utc, utc_now, window_to_days

_ZERO_SIDE = {"events": 0, "unique_modules": 0, "density": 0.0, "expansion": 0}


def _compare_bundle(window: str, a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "kind": "drift_compare",
        "v": 1,
        "window": window,
        "generated_at": iso_utc(utc_now()),
        "a": a,
        "b": b,
        "delta": {
            "events": b["events"] - a["events"],
            "unique_modules": b["unique_modules"] - a["unique_modules"],
            "density": round(b["density"] - a["density"], 2),
            "expansion": b["expansion"] - a["expansion"],
        },
        "policy": {"affects_exit": False},
    }


def build_compare(
    events_path: PathLike,
    window: str = "7d",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build a drift_compare (v1) of the previous window (a) against the current one (b).

    Never raises; failures produce a comparison of two zeroed windows.
    """
    try:
        analysis = analyze_drift(events_path, window=window, now=now)
    except Exception as exc:
        logging.warning(f"Drift compare failed, emitting zeroed comparison: {exc}")
        return _compare_bundle(window, dict(_ZERO_SIDE), dict(_ZERO_SIDE))

    days = window_to_days(window)
    a = {
        "events": analysis.events_prev,
        "unique_modules": analysis.unique_modules_prev,
        "density": round(analysis.events_prev / days, 2),
        "expansion": 0,
    }
    b = {
        "events": analysis.events_current,
        "unique_modules": analysis.unique_modules,
        "density": analysis.density,
        "expansion": analysis.expansion,
    }
    return _compare_bundle(window, a, b)

"""Direction of recent audit risk scores (half-split mean comparison)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List
import json
import math

from drift_signal.core.drift_config import RISK_DIRECTION_DELTA, RISK_DIRECTION_MIN_WINDOW
from drift_signal.core.log_readers import PathLike, read_lines
from drift_signal.core.utils import is_number, mean


def _latest_scores(lines: List[str], limit: int) -> List[float]:
    scores: List[float] = []
    for line in reversed(lines):
        if len(scores) >= limit:
            break
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            continue
        risk = obj.get("risk") if isinstance(obj, dict) else None
        score = risk.get("score") if isinstance(risk, dict) else None
        if is_number(score) and math.isfinite(score):
            scores.append(float(score))
    scores.reverse()
    return scores


def read_risk_direction(audit_path: PathLike, window: int = 14) -> Dict[str, Any]:
    """
    Compare the mean of the newer half of recent risk scores with the older half.

    Uses the most recent ``max(4, window)`` records carrying ``risk.score``.
    Fewer than four scores is reported as unavailable.
    """
    limit = max(RISK_DIRECTION_MIN_WINDOW, window)
    if not Path(audit_path).is_file():
        return {"window": limit, "available": False}

    scores = _latest_scores(read_lines(audit_path), limit)
    if len(scores) < RISK_DIRECTION_MIN_WINDOW:
        return {"window": len(scores), "available": False}

    mid = len(scores) // 2
    mean_prev = mean(scores[:mid])
    mean_recent = mean(scores[mid:])
    delta = mean_recent - mean_prev

    direction = "flat"
    if delta > RISK_DIRECTION_DELTA:
        direction = "up"
    elif delta < -RISK_DIRECTION_DELTA:
        direction = "down"

    return {
        "window": len(scores),
        "available": True,
        "last_score": scores[-1],
        "mean_recent": mean_recent,
        "mean_prev": mean_prev,
        "delta": delta,
        "direction": direction,
    }

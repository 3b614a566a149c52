"""Zero-filled, UTC-day-aligned daily series for drift events and audit risk."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from drift_signal.core.drift_models import DailyDriftBucket, DailyRiskBucket, DriftEvent
from drift_signal.core.extractors import extract_risk_score, extract_timestamp
from drift_signal.core.utils import DAY, day_window, mean, quantile, utc_day_start, utc_now, window_to_days


def _prefill_days(days: int, now: datetime) -> List[datetime]:
    start, _ = day_window(days, now)
    return [start + i * DAY for i in range(days)]


def build_drift_daily_series(
    events: Iterable[DriftEvent],
    window: str = "7d",
    now: Optional[datetime] = None,
) -> List[DailyDriftBucket]:
    """
    Count drift events per UTC calendar day over the window.

    Returns exactly ``days`` buckets in ascending order. Days without events
    are zero-filled; only non-empty module names count toward the module set.
    """
    now = now or utc_now()
    days = window_to_days(window)
    day_starts = _prefill_days(days, now)
    lower, upper = day_starts[0], day_starts[-1] + DAY

    counts: Dict[datetime, int] = OrderedDict((d, 0) for d in day_starts)
    modules: Dict[datetime, Set[str]] = {d: set() for d in day_starts}

    for event in events:
        ts = event.timestamp
        if ts is None or ts < lower or ts >= upper:
            continue
        key = utc_day_start(ts)
        if key not in counts:
            continue
        counts[key] += 1
        if event.module:
            modules[key].add(event.module)

    return [
        DailyDriftBucket(day=d, event_count=counts[d], unique_module_count=len(modules[d]))
        for d in day_starts
    ]


def build_risk_daily_series(
    records: Iterable[Dict[str, Any]],
    window: str = "7d",
    now: Optional[datetime] = None,
) -> List[DailyRiskBucket]:
    """
    Aggregate audit risk scores per UTC calendar day over the window.

    Records whose timestamp cannot be resolved are dropped. A record with a
    timestamp but no score still counts toward ``event_count``.
    """
    now = now or utc_now()
    days = window_to_days(window)
    day_starts = _prefill_days(days, now)
    lower, upper = day_starts[0], day_starts[-1] + DAY

    counts: Dict[datetime, int] = OrderedDict((d, 0) for d in day_starts)
    scores: Dict[datetime, List[float]] = {d: [] for d in day_starts}

    for record in records:
        ts = extract_timestamp(record)
        if ts is None or ts < lower or ts >= upper:
            continue
        key = utc_day_start(ts)
        if key not in counts:
            continue
        counts[key] += 1
        score = extract_risk_score(record)
        if score is not None:
            scores[key].append(score)

    series: List[DailyRiskBucket] = []
    for d in day_starts:
        day_scores = sorted(scores[d])
        series.append(
            DailyRiskBucket(
                day=d,
                event_count=counts[d],
                sample_count=len(day_scores),
                score_avg=round(mean(day_scores), 2),
                score_p95=round(quantile(day_scores, 0.95), 2),
            )
        )
    return series

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from drift_signal.core.daily_series import build_drift_daily_series, build_risk_daily_series
from drift_signal.core.drift_models import DriftEvent
from drift_signal.core.utils import quantile


def _event(ts: datetime, module: str = "alpha") -> DriftEvent:
    return DriftEvent.from_dict({"ts": ts.isoformat(), "module": module})


@pytest.mark.parametrize("window,days", [("7d", 7), ("14d", 14), ("30d", 30), ("bogus", 7)])
def test_window_yields_exactly_n_ascending_days(window, days, now) -> None:
    series = build_drift_daily_series([], window=window, now=now)

    assert len(series) == days
    day_values = [bucket.day for bucket in series]
    assert day_values == sorted(set(day_values))
    assert all(b - a == timedelta(days=1) for a, b in zip(day_values, day_values[1:]))
    assert day_values[-1] == datetime(2026, 10, 18, tzinfo=timezone.utc)
    assert all(bucket.event_count == 0 for bucket in series)


def test_drift_series_counts_events_and_modules_per_utc_day(now) -> None:
    today = datetime(2026, 10, 18, tzinfo=timezone.utc)
    events = [
        _event(today + timedelta(hours=1), "alpha"),
        _event(today + timedelta(hours=2), "alpha"),
        _event(today + timedelta(hours=3), "beta"),
        _event(today - timedelta(minutes=1), "gamma"),  # previous UTC day
        _event(today - timedelta(days=7), "old"),  # before window start
        _event(today + timedelta(days=1), "future"),  # after window end
    ]

    series = build_drift_daily_series(events, window="7d", now=now)

    assert series[-1].event_count == 3
    assert series[-1].unique_module_count == 2
    assert series[-2].event_count == 1
    assert sum(bucket.event_count for bucket in series) == 4


def test_drift_series_ignores_empty_module_names(now) -> None:
    events = [DriftEvent.from_dict({"ts": now.isoformat(), "module": ""})]
    series = build_drift_daily_series(events, window="7d", now=now)
    assert series[-1].event_count == 1
    assert series[-1].unique_module_count == 0


def test_risk_series_aggregates_scores(now) -> None:
    today = "2026-10-18T0{}:00:00Z"
    records = [
        {"ts": today.format(1), "risk_score": 10},
        {"ts": today.format(2), "risk": {"score": 20}},
        {"ts": today.format(3), "snapshot": {"risk_score": 40}},
        {"ts": today.format(4)},  # counted, no score
        {"risk_score": 99},  # no timestamp: dropped
    ]

    series = build_risk_daily_series(records, window="7d", now=now)
    last = series[-1]

    assert len(series) == 7
    assert last.event_count == 4
    assert last.sample_count == 3
    assert last.score_avg == pytest.approx(23.33)
    assert last.score_p95 == pytest.approx(round(quantile([10.0, 20.0, 40.0], 0.95), 2))
    assert series[0].score_avg == 0
    assert series[0].score_p95 == 0


def test_quantile_interpolates_linearly() -> None:
    assert quantile([], 0.5) == 0
    assert quantile([5.0], 0.95) == 5.0
    assert quantile([1.0, 2.0, 3.0, 4.0], 0.5) == pytest.approx(2.5)
    assert quantile([10.0, 20.0, 40.0], 0.95) == pytest.approx(38.0)

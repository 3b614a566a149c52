from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from drift_signal.core.association import (
    block_bootstrap,
    build_association_bundle,
    build_joint_series,
    classify_stability,
    lag_stats,
    lag_sweep,
    pearson_stats,
    resolve_max_lag,
    resolve_subsamples,
)
from drift_signal.core.daily_series import build_drift_daily_series, build_risk_daily_series
from drift_signal.core.drift_models import DriftEvent
from drift_signal.core.errors import SeriesAlignmentError


class FirstIndexSource:
    """Deterministic random source that always picks the first block."""

    def randrange(self, stop: int) -> int:
        return 0


def test_constant_risk_series_is_degenerate() -> None:
    stats = pearson_stats([0, 0, 0, 0, 0, 0, 10], [0, 0, 0, 0, 0, 0, 0])

    assert stats.degenerate is True
    assert stats.r == 0
    assert stats.variance_y == 0
    assert stats.variance_x > 0


def test_perfect_linear_relation() -> None:
    xs = list(range(1, 11))
    ys = [2 * x + 1 for x in xs]

    assert pearson_stats(xs, ys).r == pytest.approx(1.0)

    sweep = lag_sweep(xs, ys, max_lag=3)
    lag_zero = next(result for result in sweep if result.lag_days == 0)
    assert abs(lag_zero.r) == max(abs(result.r) for result in sweep)


def test_pearson_filters_non_finite_pairs() -> None:
    stats = pearson_stats([1, 2, float("nan"), 3, 4], [2, 4, 6, float("inf"), 8])

    assert stats.n_effective == 3
    assert stats.r == pytest.approx(1.0)


def test_too_few_pairs_is_degenerate() -> None:
    stats = pearson_stats([1, 2], [3, 4])
    assert stats.degenerate is True
    assert stats.n_effective == 2
    assert (stats.variance_x, stats.variance_y) == (0, 0)


def test_r_is_bounded_and_rounded() -> None:
    rng = random.Random(7)
    for _ in range(50):
        xs = [rng.uniform(-5, 5) for _ in range(12)]
        ys = [rng.uniform(-5, 5) for _ in range(12)]
        stats = pearson_stats(xs, ys)
        assert -1.0 <= stats.r <= 1.0
        assert stats.r == round(stats.r, 4)


def test_lag_sweep_shape() -> None:
    xs = [1, 3, 2, 5, 4, 6, 8]
    ys = [2, 1, 4, 3, 6, 5, 7]

    sweep = lag_sweep(xs, ys, max_lag=4)

    assert [result.lag_days for result in sweep] == list(range(-4, 5))
    assert all(result.n == 7 for result in sweep)
    assert [result.n_pairs for result in sweep] == [3, 4, 5, 6, 7, 6, 5, 4, 3]
    assert all(result.r == 0 for result in sweep if result.degenerate)


def test_positive_lag_means_x_leads_y() -> None:
    xs = [0, 1, 0, 2, 0, 3, 0, 4]
    ys = [9, 0, 1, 0, 2, 0, 3, 0]  # y repeats x one day later

    assert lag_stats(xs, ys, 1).r == pytest.approx(1.0)
    assert lag_stats(xs, ys, -1).r < 1.0


def test_parameter_clamping() -> None:
    assert resolve_max_lag(7) == 7
    assert resolve_max_lag(30) == 14
    assert resolve_max_lag(2) == 3
    assert resolve_max_lag(7, 99) == 14
    assert resolve_max_lag(7, -3) == 0
    assert resolve_max_lag(7, "abc") == 0
    assert resolve_subsamples(None) == 100
    assert resolve_subsamples(5) == 20
    assert resolve_subsamples(10_000) == 500
    assert resolve_subsamples("nope") == 100


def test_bootstrap_on_short_series_is_uninformative() -> None:
    result = block_bootstrap([1, 2], [1, 2], subsamples=50)

    assert result.is_informative is False
    assert result.samples_used == 0
    assert result.degenerate_rate == 1
    assert (result.median_r, result.iqr_r, result.stability) == (0, 0, "low")


def test_bootstrap_with_constant_side_is_uninformative() -> None:
    result = block_bootstrap([1, 2, 3, 4, 5, 6], [3, 3, 3, 3, 3, 3], subsamples=40, rng=random.Random(1))

    assert result.is_informative is False
    assert result.degenerate_rate == 1
    assert result.median_r == 0
    assert result.iqr_r == 0


def test_bootstrap_with_injected_source_is_deterministic() -> None:
    xs = list(range(1, 11))
    ys = [2 * x + 1 for x in xs]

    # Always drawing block 0 repeats the same two days in every resample.
    pinned = block_bootstrap(xs, ys, subsamples=30, rng=FirstIndexSource())
    assert pinned.samples_used == 30
    assert pinned.degenerate_rate == 0
    assert pinned.median_r == pytest.approx(1.0)
    assert pinned.iqr_r == 0
    assert pinned.stability == "high"
    assert pinned.is_informative is True


def test_bootstrap_on_linear_relation_is_highly_stable() -> None:
    xs = list(range(1, 15))
    ys = [2 * x + 1 for x in xs]

    first = block_bootstrap(xs, ys, subsamples=200, rng=random.Random(42))
    second = block_bootstrap(xs, ys, subsamples=200, rng=random.Random(42))

    assert first == second
    assert first.is_informative is True
    assert first.samples_used >= 20
    assert first.median_r == pytest.approx(1.0)
    assert first.iqr_r == pytest.approx(0.0)
    assert first.stability == "high"


def test_stability_classification() -> None:
    assert classify_stability(0.6, 0.1) == "high"
    assert classify_stability(-0.6, 0.1) == "high"
    assert classify_stability(0.6, 0.3) == "medium"
    assert classify_stability(0.35, 0.2) == "medium"
    assert classify_stability(0.2, 0.05) == "low"
    assert classify_stability(0.9, 0.5) == "low"


def test_joint_series_requires_same_start_and_length(now) -> None:
    drift = build_drift_daily_series([], window="7d", now=now)
    risk = build_risk_daily_series([], window="7d", now=now)
    shifted = build_risk_daily_series([], window="7d", now=now + timedelta(days=1))
    longer = build_risk_daily_series([], window="14d", now=now)

    assert len(build_joint_series(drift, risk)) == 7
    with pytest.raises(SeriesAlignmentError):
        build_joint_series(drift, shifted)
    with pytest.raises(SeriesAlignmentError):
        build_joint_series(drift, longer)


def test_joint_series_metric_selection(now) -> None:
    events = [
        DriftEvent.from_dict({"ts": now.isoformat(), "module": "a"}),
        DriftEvent.from_dict({"ts": now.isoformat(), "module": "a"}),
        DriftEvent.from_dict({"ts": now.isoformat(), "module": "b"}),
    ]
    records = [{"ts": now.isoformat(), "risk_score": 10}, {"ts": now.isoformat(), "risk_score": 30}]
    drift = build_drift_daily_series(events, window="7d", now=now)
    risk = build_risk_daily_series(records, window="7d", now=now)

    assert build_joint_series(drift, risk, "drift_density", "risk_score_avg")[-1]["x"] == 3
    assert build_joint_series(drift, risk, "drift_unique_modules", "risk_events")[-1] == {
        "t": "2026-10-18T00:00:00.000Z",
        "x": 2.0,
        "y": 2.0,
    }
    assert build_joint_series(drift, risk, "events", "risk_score_p95")[-1]["y"] == pytest.approx(29.0)


def _seed_logs(write_jsonl, make_event, now, drift_counts, risk_scores):
    today = datetime(now.year, now.month, now.day, 6, tzinfo=timezone.utc)
    events = []
    records = []
    days = len(drift_counts)
    for offset, (count, score) in enumerate(zip(drift_counts, risk_scores)):
        day = today - timedelta(days=days - 1 - offset)
        events.extend(make_event(day, module=f"m{offset % 3}") for _ in range(count))
        records.append({"ts": day.isoformat(), "risk_score": score})
    return write_jsonl("events.jsonl", events), write_jsonl("audit.jsonl", records)


def test_association_bundle_constant_risk(write_jsonl, make_event, now) -> None:
    events_path, audit_path = _seed_logs(write_jsonl, make_event, now, [0, 0, 0, 0, 0, 0, 10], [0] * 7)

    bundle = build_association_bundle(events_path, audit_path, window="7d", now=now, rng=random.Random(3))
    pearson = bundle["results"]["pearson"]

    assert bundle["kind"] == "association_bundle"
    assert bundle["v"] == 2
    assert pearson["degenerate"] is True
    assert pearson["r"] == 0
    assert pearson["variance_y"] == 0
    assert "degenerate_y" in bundle["diagnostics"]["notes"]
    assert "sparse_x" in bundle["diagnostics"]["notes"]
    assert "low_overlap" in bundle["diagnostics"]["notes"]
    assert bundle["policy"]["affects_exit"] is False


def test_association_bundle_linear_relation(write_jsonl, make_event, now) -> None:
    counts = list(range(1, 15))
    scores = [2 * c + 1 for c in counts]
    events_path, audit_path = _seed_logs(write_jsonl, make_event, now, counts, scores)

    bundle = build_association_bundle(
        events_path,
        audit_path,
        window="14d",
        lags=5,
        subsamples=120,
        now=now,
        rng=random.Random(11),
    )
    results = bundle["results"]

    assert [point["x"] for point in bundle["series"]] == counts
    assert results["pearson"]["r"] == pytest.approx(1.0)
    assert results["pearson"]["n"] == 14
    assert len(results["lags"]) == 11
    assert results["robustness"]["subsamples"] == 120
    assert results["robustness"]["is_informative"] is True
    assert bundle["diagnostics"]["notes"] == []
    assert bundle["diagnostics"]["window_days"] == 14


def test_association_core_outputs_are_deterministic(write_jsonl, make_event, now) -> None:
    events_path, audit_path = _seed_logs(write_jsonl, make_event, now, [3, 1, 4, 1, 5, 9, 2], [6, 5, 3, 5, 8, 9, 7])

    first = build_association_bundle(events_path, audit_path, now=now)
    second = build_association_bundle(events_path, audit_path, now=now)

    assert first["series"] == second["series"]
    assert first["results"]["pearson"] == second["results"]["pearson"]
    assert first["results"]["lags"] == second["results"]["lags"]
    assert first["diagnostics"] == second["diagnostics"]


def test_uninformative_robustness_reports_zeroes(tmp_path, now) -> None:
    bundle = build_association_bundle(tmp_path / "e.jsonl", tmp_path / "a.jsonl", now=now)
    robustness = bundle["results"]["robustness"]

    assert robustness["is_informative"] is False
    assert robustness["median_r"] == 0
    assert robustness["iqr_r"] == 0
    assert len(bundle["results"]["lags"]) == 2 * 7 + 1


def test_engine_failure_yields_neutral_bundle(monkeypatch, tmp_path, now) -> None:
    def misaligned(*args, **kwargs):
        raise SeriesAlignmentError("misaligned")

    monkeypatch.setattr("drift_signal.core.association.build_joint_series", misaligned)

    bundle = build_association_bundle(tmp_path / "e.jsonl", tmp_path / "a.jsonl", window="30d", now=now)

    assert bundle["kind"] == "association_bundle"
    assert bundle["window"] == "30d"
    assert bundle["series"] == []
    assert bundle["diagnostics"]["notes"] == ["engine_error"]
    assert bundle["results"]["pearson"]["degenerate"] is True
    assert bundle["results"]["pearson"]["r"] == 0
    assert bundle["results"]["robustness"]["is_informative"] is False


@pytest.mark.parametrize("level", [0.1, 33.33, 7.77, 42.37])
def test_constant_fractional_series_is_degenerate(level) -> None:
    stats = pearson_stats([0, 0, 1, 3, 0, 2, 5], [level] * 7)

    assert stats.degenerate is True
    assert stats.r == 0
    assert stats.variance_y == 0
    assert stats.variance_x == pytest.approx(3.619048)


def test_constant_fractional_risk_is_flagged_and_uninformative(write_jsonl, make_event, now) -> None:
    counts = [0, 0, 1, 3, 0, 2, 5]
    events_path, audit_path = _seed_logs(write_jsonl, make_event, now, counts, [33.33] * 7)

    bundle = build_association_bundle(events_path, audit_path, window="7d", now=now, rng=random.Random(5))

    assert bundle["results"]["pearson"]["degenerate"] is True
    assert "degenerate_y" in bundle["diagnostics"]["notes"]
    assert bundle["results"]["robustness"]["is_informative"] is False
    assert bundle["results"]["robustness"]["degenerate_rate"] == 1

"""
Cross-metric association between daily drift and daily risk series.

The engine joins a drift metric (X) and a risk metric (Y) over the same
UTC-day window and reports:

* Pearson correlation with degeneracy diagnostics,
* a lagged correlation sweep over ``[-max_lag, +max_lag]``,
* block-bootstrap robustness of the correlation estimate.

Every output is signal-only. Degenerate statistics are flagged in the bundle
rather than raised, and any unexpected failure is replaced with a neutral
bundle at :func:`build_association_bundle`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple
import logging
import math
import random

from drift_signal.core.daily_series import build_drift_daily_series, build_risk_daily_series
from drift_signal.core.drift_config import (
    BOOTSTRAP_BLOCK_SIZE,
    DEFAULT_BUCKET,
    DEFAULT_METRIC_X,
    DEFAULT_METRIC_Y,
    DEFAULT_SUBSAMPLES,
    MAX_DEGENERATE_RATE,
    MAX_LAG_CAP,
    MAX_SUBSAMPLES,
    METRIC_X_ALIASES,
    MIN_DEFAULT_LAG,
    MIN_INFORMATIVE_SAMPLES,
    MIN_PEARSON_PAIRS,
    MIN_SUBSAMPLES,
    SPARSE_DAY_THRESHOLD,
)
from drift_signal.core.drift_models import (
    DailyDriftBucket,
    DailyRiskBucket,
    LagResult,
    PearsonStats,
    RobustnessResult,
)
from drift_signal.core.errors import SeriesAlignmentError
from drift_signal.core.log_readers import PathLike, read_audit_records, read_drift_events
from drift_signal.core.utils import clamp, iso_utc, quantile, utc_now, window_to_days


class RandomSource(Protocol):
    """Anything that can draw a uniform integer in ``[0, stop)``."""

    def randrange(self, stop: int) -> int:
        ...


# --- Parameter resolution ---

def resolve_max_lag(days: int, lags: Any = None) -> int:
    if lags is None:
        return int(clamp(days, MIN_DEFAULT_LAG, MAX_LAG_CAP))
    try:
        value = int(float(lags))
    except (TypeError, ValueError, OverflowError):
        value = 0
    return int(clamp(value, 0, MAX_LAG_CAP))


def resolve_subsamples(subsamples: Any = None) -> int:
    try:
        value = int(float(subsamples)) if subsamples is not None else DEFAULT_SUBSAMPLES
    except (TypeError, ValueError, OverflowError):
        value = DEFAULT_SUBSAMPLES
    # 0 falls back to the default, matching an unset value
    return int(clamp(value or DEFAULT_SUBSAMPLES, MIN_SUBSAMPLES, MAX_SUBSAMPLES))


# --- Joint series ---

def _x_value(bucket: DailyDriftBucket, metric_x: str) -> float:
    if METRIC_X_ALIASES.get(metric_x) == "drift_unique_modules":
        return float(bucket.unique_module_count)
    return float(bucket.event_count)


def _y_value(bucket: DailyRiskBucket, metric_y: str) -> float:
    if metric_y == "risk_events":
        return float(bucket.event_count)
    if metric_y == "risk_score_p95":
        return float(bucket.score_p95)
    return float(bucket.score_avg)


def build_joint_series(
    drift_daily: Sequence[DailyDriftBucket],
    risk_daily: Sequence[DailyRiskBucket],
    metric_x: str = DEFAULT_METRIC_X,
    metric_y: str = DEFAULT_METRIC_Y,
) -> List[Dict[str, Any]]:
    """
    Align the two daily series by index into ``{t, x, y}`` points.

    Raises:
        SeriesAlignmentError: the series differ in start day or length.
    """
    left_start = drift_daily[0].day if drift_daily else None
    right_start = risk_daily[0].day if risk_daily else None
    if len(drift_daily) != len(risk_daily) or left_start != right_start:
        raise SeriesAlignmentError(
            f"Cannot join series: drift starts {left_start} ({len(drift_daily)} days), "
            f"risk starts {right_start} ({len(risk_daily)} days)",
            left_start=left_start,
            right_start=right_start,
            left_len=len(drift_daily),
            right_len=len(risk_daily),
        )

    return [
        {"t": iso_utc(d.day), "x": _x_value(d, metric_x), "y": _y_value(r, metric_y)}
        for d, r in zip(drift_daily, risk_daily)
    ]


# --- Statistics ---

def _is_finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def pearson_stats(xs: Sequence[float], ys: Sequence[float]) -> PearsonStats:
    """
    Pearson correlation over the finite pairs of ``xs`` and ``ys``.

    Fewer than three finite pairs, or zero variance on either side, yields a
    degenerate result with ``r == 0``.
    """
    pairs = [(x, y) for x, y in zip(xs, ys) if _is_finite(x) and _is_finite(y)]
    n = len(pairs)
    if n < MIN_PEARSON_PAIRS:
        return PearsonStats(r=0.0, n_effective=n, degenerate=True)

    mean_x = sum(x for x, _ in pairs) / n
    mean_y = sum(y for _, y in pairs) / n

    num = dx = dy = 0.0
    for x, y in pairs:
        ax = x - mean_x
        ay = y - mean_y
        num += ax * ay
        dx += ax * ax
        dy += ay * ay

    variance_x = round(dx / (n - 1), 6)
    variance_y = round(dy / (n - 1), 6)

    den = math.sqrt(dx) * math.sqrt(dy)
    # Sums of squares of a constant fractional series carry float noise; the
    # rounded variance is authoritative.
    if not den or variance_x == 0 or variance_y == 0:
        return PearsonStats(r=0.0, n_effective=n, degenerate=True, variance_x=variance_x, variance_y=variance_y)

    r = round(clamp(num / den, -1.0, 1.0), 4)
    return PearsonStats(r=r, n_effective=n, degenerate=False, variance_x=variance_x, variance_y=variance_y)


def lag_stats(xs: Sequence[float], ys: Sequence[float], lag_days: int) -> LagResult:
    """
    Correlate ``x[i]`` with ``y[i + lag_days]``.

    A positive lag means X leads Y; a negative lag means Y leads X.
    """
    n = min(len(xs), len(ys))
    shifted_x: List[float] = []
    shifted_y: List[float] = []
    for i in range(n):
        j = i + lag_days
        if j < 0 or j >= n:
            continue
        shifted_x.append(xs[i])
        shifted_y.append(ys[j])

    stats = pearson_stats(shifted_x, shifted_y)
    degenerate = stats.degenerate or stats.n_effective < MIN_PEARSON_PAIRS
    return LagResult(
        lag_days=lag_days,
        r=0.0 if degenerate else stats.r,
        n=n,
        n_pairs=len(shifted_x),
        n_effective=stats.n_effective,
        degenerate=degenerate,
    )


def lag_sweep(xs: Sequence[float], ys: Sequence[float], max_lag: int) -> List[LagResult]:
    return [lag_stats(xs, ys, lag) for lag in range(-max_lag, max_lag + 1)]


def classify_stability(median_r: float, iqr_r: float) -> str:
    magnitude = abs(median_r)
    if magnitude >= 0.5 and iqr_r <= 0.2:
        return "high"
    if magnitude >= 0.3 and iqr_r <= 0.35:
        return "medium"
    return "low"


def block_bootstrap(
    xs: Sequence[float],
    ys: Sequence[float],
    subsamples: int = DEFAULT_SUBSAMPLES,
    block_size: int = BOOTSTRAP_BLOCK_SIZE,
    rng: Optional[RandomSource] = None,
) -> RobustnessResult:
    """
    Estimate how stable the correlation is under block-bootstrap resampling.

    Contiguous blocks of ``block_size`` paired days are drawn with
    replacement, which keeps short-range day-to-day dependence intact.
    Degenerate resamples are counted and discarded.

    Args:
        xs, ys: Paired daily values
        subsamples: Number of bootstrap iterations
        block_size: Length of each contiguous block
        rng: Random source; a fresh ``random.Random`` is created when omitted

    Returns:
        RobustnessResult, uninformative (median and IQR zero) unless at least
        20 valid resamples exist and at most half were degenerate.
    """
    n = min(len(xs), len(ys))
    if n < MIN_PEARSON_PAIRS:
        return RobustnessResult(subsamples=subsamples, block_size=block_size)

    rng = rng or random.Random()
    blocks = max(1, n // block_size)
    start_range = max(1, n - block_size + 1)

    valid_rs: List[float] = []
    degenerate_count = 0
    for _ in range(subsamples):
        sample_x: List[float] = []
        sample_y: List[float] = []
        for _ in range(blocks):
            start = rng.randrange(start_range)
            for idx in range(start, min(start + block_size, n)):
                sample_x.append(xs[idx])
                sample_y.append(ys[idx])

        stats = pearson_stats(sample_x, sample_y)
        if stats.degenerate or stats.n_effective < MIN_PEARSON_PAIRS:
            degenerate_count += 1
            continue
        valid_rs.append(stats.r)

    valid_rs.sort()
    samples_used = len(valid_rs)
    degenerate_rate = round(degenerate_count / subsamples, 4)
    is_informative = samples_used >= MIN_INFORMATIVE_SAMPLES and degenerate_rate <= MAX_DEGENERATE_RATE

    if not is_informative:
        return RobustnessResult(
            subsamples=subsamples,
            block_size=block_size,
            samples_used=samples_used,
            degenerate_rate=degenerate_rate,
        )

    median_r = quantile(valid_rs, 0.5)
    iqr_r = max(0.0, quantile(valid_rs, 0.75) - quantile(valid_rs, 0.25))
    return RobustnessResult(
        subsamples=subsamples,
        block_size=block_size,
        samples_used=samples_used,
        degenerate_rate=degenerate_rate,
        median_r=round(clamp(median_r, -1.0, 1.0), 4),
        iqr_r=round(iqr_r, 4),
        stability=classify_stability(median_r, iqr_r),
        is_informative=True,
    )


# --- Diagnostics and bundle ---

def build_diagnostics(series: List[Dict[str, Any]], pearson: PearsonStats) -> Dict[str, Any]:
    nonzero_x = sum(1 for point in series if point["x"] != 0)
    nonzero_y = sum(1 for point in series if point["y"] != 0)
    nonzero_overlap = sum(1 for point in series if point["x"] != 0 and point["y"] != 0)

    notes: List[str] = []
    if nonzero_x < SPARSE_DAY_THRESHOLD:
        notes.append("sparse_x")
    if nonzero_y < SPARSE_DAY_THRESHOLD:
        notes.append("sparse_y")
    if nonzero_overlap < SPARSE_DAY_THRESHOLD:
        notes.append("low_overlap")
    if pearson.degenerate and pearson.variance_y == 0:
        notes.append("degenerate_y")
    if pearson.degenerate and pearson.variance_x == 0:
        notes.append("degenerate_x")

    return {
        "window_days": len(series),
        "nonzero_x_days": nonzero_x,
        "nonzero_y_days": nonzero_y,
        "nonzero_overlap_days": nonzero_overlap,
        "missing_policy": "zero_fill",
        "notes": notes,
    }


def _serialize_pearson(stats: PearsonStats, n: int) -> Dict[str, Any]:
    return {
        "r": 0.0 if stats.degenerate else stats.r,
        "n": n,
        "n_effective": stats.n_effective,
        "degenerate": stats.degenerate,
        "variance_x": stats.variance_x,
        "variance_y": stats.variance_y,
    }


def _serialize_lag(result: LagResult) -> Dict[str, Any]:
    return {
        "lag_days": result.lag_days,
        "r": result.r,
        "n": result.n,
        "n_pairs": result.n_pairs,
        "n_effective": result.n_effective,
        "degenerate": result.degenerate,
    }


def _serialize_robustness(result: RobustnessResult) -> Dict[str, Any]:
    return {
        "method": result.method,
        "block_size": result.block_size,
        "subsamples": result.subsamples,
        "samples_used": result.samples_used,
        "degenerate_rate": result.degenerate_rate,
        "median_r": result.median_r,
        "iqr_r": result.iqr_r,
        "stability": result.stability,
        "is_informative": result.is_informative,
    }


def _bundle_header(window: str, bucket: str, metric_x: str, metric_y: str) -> Dict[str, Any]:
    return {
        "kind": "association_bundle",
        "v": 2,
        "generated_at": iso_utc(utc_now()),
        "window": window,
        "bucket": bucket,
        "metric_x": metric_x,
        "metric_y": metric_y,
    }


def correlate_series(
    series: List[Dict[str, Any]],
    max_lag: int,
    subsamples: int,
    rng: Optional[RandomSource] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Run Pearson, the lag sweep and the bootstrap over a joint series."""
    xs = [point["x"] for point in series]
    ys = [point["y"] for point in series]
    n = len(series)

    pearson = pearson_stats(xs, ys)
    results = {
        "pearson": _serialize_pearson(pearson, n),
        "lags": [_serialize_lag(result) for result in lag_sweep(xs, ys, max_lag)],
        "robustness": _serialize_robustness(
            block_bootstrap(xs, ys, subsamples=subsamples, block_size=BOOTSTRAP_BLOCK_SIZE, rng=rng)
        ),
    }
    return build_diagnostics(series, pearson), results


def neutral_association_bundle(
    window: str = "7d",
    bucket: str = DEFAULT_BUCKET,
    metric_x: str = DEFAULT_METRIC_X,
    metric_y: str = DEFAULT_METRIC_Y,
    subsamples: int = DEFAULT_SUBSAMPLES,
) -> Dict[str, Any]:
    """Stable placeholder returned when the engine fails unexpectedly."""
    bundle = _bundle_header(window, bucket, metric_x, metric_y)
    bundle.update(
        {
            "series": [],
            "diagnostics": {
                "window_days": 0,
                "nonzero_x_days": 0,
                "nonzero_y_days": 0,
                "nonzero_overlap_days": 0,
                "missing_policy": "zero_fill",
                "notes": ["engine_error"],
            },
            "results": {
                "pearson": _serialize_pearson(PearsonStats(), 0),
                "lags": [],
                "robustness": _serialize_robustness(
                    RobustnessResult(subsamples=subsamples, block_size=BOOTSTRAP_BLOCK_SIZE)
                ),
            },
            "policy": {"affects_exit": False},
        }
    )
    return bundle


def build_association_bundle(
    events_path: PathLike,
    audit_path: PathLike,
    window: str = "7d",
    bucket: str = DEFAULT_BUCKET,
    metric_x: str = DEFAULT_METRIC_X,
    metric_y: str = DEFAULT_METRIC_Y,
    lags: Any = None,
    subsamples: Any = DEFAULT_SUBSAMPLES,
    now: Optional[datetime] = None,
    rng: Optional[RandomSource] = None,
) -> Dict[str, Any]:
    """
    Build an association_bundle (v2) correlating drift against risk.

    Both daily series are built against the same ``now`` so they share start
    day and length. Never raises; failures produce
    :func:`neutral_association_bundle`.
    """
    now = now or utc_now()
    days = window_to_days(window)
    max_lag = resolve_max_lag(days, lags)
    resolved_subsamples = resolve_subsamples(subsamples)

    try:
        drift_daily = build_drift_daily_series(read_drift_events(events_path), window=window, now=now)
        risk_daily = build_risk_daily_series(read_audit_records(audit_path), window=window, now=now)
        series = build_joint_series(drift_daily, risk_daily, metric_x=metric_x, metric_y=metric_y)
        diagnostics, results = correlate_series(series, max_lag, resolved_subsamples, rng=rng)
    except Exception as exc:
        logging.warning(f"Association engine failed, emitting neutral bundle: {exc}")
        return neutral_association_bundle(window, bucket, metric_x, metric_y, resolved_subsamples)

    bundle = _bundle_header(window, bucket, metric_x, metric_y)
    bundle.update(
        {
            "series": series,
            "diagnostics": diagnostics,
            "results": results,
            "policy": {"affects_exit": False},
        }
    )
    return bundle

"""Window-over-window drift trend and per-module dominance analysis."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
import logging

from drift_signal.core.drift_config import (
    DEFAULT_TOP_N,
    DEFAULT_TREND_EPSILON,
    DOMINANCE_METRIC,
)
from drift_signal.core.drift_models import (
    BoundaryContribution,
    DominanceSummary,
    DriftAnalysis,
    DriftEvent,
    ModuleContribution,
)
from drift_signal.core.log_readers import PathLike, read_drift_events
from drift_signal.core.utils import utc_now, window_to_days


def rank_by_contribution(counts: Dict[str, int]) -> List[Tuple[str, int]]:
    """Order (name, count) pairs by count descending, then name ascending."""
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def compute_dominance(
    module_counts: Dict[str, int],
    boundary_counts: Optional[Dict[str, int]] = None,
    metric: str = DOMINANCE_METRIC,
    top_n: int = DEFAULT_TOP_N,
) -> DominanceSummary:
    if not module_counts:
        return DominanceSummary(metric=metric, top_n=top_n)

    ranked = rank_by_contribution(module_counts)
    total = sum(count for _, count in ranked)

    top_modules = [
        ModuleContribution(
            module=module,
            contribution=count,
            share=count / total if total > 0 else 0.0,
            rank=index + 1,
        )
        for index, (module, count) in enumerate(ranked[:top_n])
    ]
    dominance_ratio = ranked[0][1] / total if total > 0 else 0.0
    top3_share = sum(count for _, count in ranked[:3]) / total if total > 0 else 0.0

    boundaries = [
        BoundaryContribution(
            boundary=boundary,
            contribution=count,
            share=count / total if total > 0 else 0.0,
        )
        for boundary, count in rank_by_contribution(boundary_counts or {})
    ]

    return DominanceSummary(
        metric=metric,
        top_n=top_n,
        total_contribution=total,
        top_modules=top_modules,
        dominance_ratio=dominance_ratio,
        top3_share=top3_share,
        boundaries=boundaries,
    )


@dataclass
class DriftAnalyzer:
    window: str = "7d"
    top_n: int = DEFAULT_TOP_N
    trend_epsilon: float = DEFAULT_TREND_EPSILON

    @property
    def days(self) -> int:
        return window_to_days(self.window)

    def analyze(self, events: List[DriftEvent], now: Optional[datetime] = None) -> DriftAnalysis:
        now = now or utc_now()
        current, previous = self._split_windows(events, now)
        days = self.days

        density = len(current) / days
        density_prev = len(previous) / days
        slope = density - density_prev

        modules_current = {e.module_key for e in current}
        modules_prev = {e.module_key for e in previous}
        expansion = max(0, len(modules_current) - len(modules_prev))

        module_counts = Counter(e.module_key for e in current)
        boundary_counts = Counter(e.boundary for e in current if e.boundary)
        dominance = compute_dominance(
            module_counts,
            boundary_counts,
            metric=DOMINANCE_METRIC,
            top_n=self.top_n,
        )
        modules = self._module_contributions(module_counts, current)

        logging.debug(
            "Drift analysis: window=%s current=%d previous=%d slope=%.3f",
            self.window,
            len(current),
            len(previous),
            slope,
        )

        return DriftAnalysis(
            trend=self._classify_trend(slope),
            density=round(density, 2),
            slope=round(slope, 2),
            expansion=expansion,
            unique_modules=len(modules_current),
            unique_modules_prev=len(modules_prev),
            events_current=len(current),
            events_prev=len(previous),
            modules=modules,
            dominance=dominance,
        )

    def _split_windows(self, events: List[DriftEvent], now: datetime) -> Tuple[List[DriftEvent], List[DriftEvent]]:
        span = timedelta(days=self.days)
        current_start = now - span
        previous_start = now - 2 * span

        current: List[DriftEvent] = []
        previous: List[DriftEvent] = []
        for event in events:
            ts = event.timestamp
            if ts is None:
                continue
            if ts >= current_start:
                current.append(event)
            elif ts >= previous_start:
                previous.append(event)
        return current, previous

    def _classify_trend(self, slope: float) -> str:
        if slope > self.trend_epsilon:
            return "accelerating"
        if slope < -self.trend_epsilon:
            return "cooling"
        return "stable"

    @staticmethod
    def _module_contributions(module_counts: Dict[str, int], current: List[DriftEvent]) -> List[ModuleContribution]:
        boundary_by_module: Dict[str, str] = {}
        for event in current:
            if event.boundary and event.module_key not in boundary_by_module:
                boundary_by_module[event.module_key] = event.boundary

        total = sum(module_counts.values())
        return [
            ModuleContribution(
                module=module,
                contribution=count,
                share=count / total if total > 0 else 0.0,
                rank=index + 1,
                boundary=boundary_by_module.get(module),
            )
            for index, (module, count) in enumerate(rank_by_contribution(module_counts))
        ]


def analyze_drift(
    events_path: PathLike,
    window: str = "7d",
    now: Optional[datetime] = None,
    top_n: int = DEFAULT_TOP_N,
    trend_epsilon: float = DEFAULT_TREND_EPSILON,
) -> DriftAnalysis:
    analyzer = DriftAnalyzer(window=window, top_n=top_n, trend_epsilon=trend_epsilon)
    return analyzer.analyze(read_drift_events(events_path), now=now)

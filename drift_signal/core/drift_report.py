"""Drift signal bundle composition and text rendering."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from drift_signal.core.drift_analyzer import analyze_drift
from drift_signal.core.drift_config import DEFAULT_TOP_N, DEFAULT_TREND_EPSILON
from drift_signal.core.drift_models import DominanceSummary, DriftAnalysis, ModuleContribution
from drift_signal.core.log_readers import PathLike
from drift_signal.core.utils import clamp, iso_utc, utc_now

SIGNAL_ONLY_POLICY = {"affects_exit": False, "affects_risk_v1": False}


@dataclass
class DriftReportBuilder:
    window: str = "7d"

    def build_status(self, analysis: DriftAnalysis) -> Dict[str, Any]:
        return {
            "kind": "drift_signal_bundle",
            "v": 2,
            "window": self.window,
            "generated_at": iso_utc(utc_now()),
            "trend": analysis.trend,
            "signal": {
                "density": analysis.density,
                "slope": analysis.slope,
                "expansion": analysis.expansion,
                "unique_modules": analysis.unique_modules,
            },
            "explain": {
                "events": analysis.events_current,
                "events_prev": analysis.events_prev,
            },
            "modules": [self._serialize_module(m) for m in analysis.modules],
            "dominance": analysis.dominance.to_dict(),
            "policy": dict(SIGNAL_ONLY_POLICY),
        }

    def build_noop(self) -> Dict[str, Any]:
        return self.build_status(DriftAnalysis(dominance=DominanceSummary()))

    @staticmethod
    def _serialize_module(module: ModuleContribution) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "module": module.module,
            "drift_units": module.contribution,
            "share": module.share,
        }
        if module.boundary:
            entry["boundary"] = module.boundary
        return entry


def build_drift_status(
    events_path: PathLike,
    window: str = "7d",
    now: Optional[datetime] = None,
    top_n: int = DEFAULT_TOP_N,
    trend_epsilon: float = DEFAULT_TREND_EPSILON,
) -> Dict[str, Any]:
    """
    Build a drift_signal_bundle (v2) for the window.

    Never raises: any unexpected failure yields the noop bundle, which has
    the same shape with a stable trend and zeroed signal.
    """
    builder = DriftReportBuilder(window=window)
    try:
        analysis = analyze_drift(events_path, window=window, now=now, top_n=top_n, trend_epsilon=trend_epsilon)
    except Exception as exc:
        logging.warning(f"Drift status failed, emitting noop bundle: {exc}")
        return builder.build_noop()
    return builder.build_status(analysis)


# --- Text rendering ---

def _pct(value: Any, digits: int = 1) -> str:
    return f"{clamp(float(value or 0), 0.0, 1.0) * 100:.{digits}f}%"


def _fmt_int(value: Any) -> str:
    try:
        return str(int(value or 0))
    except (TypeError, ValueError):
        return "0"


def shorten_middle(text: str, max_len: int = 48) -> str:
    """Shorten long module paths, keeping the tail where the meaning is."""
    if len(text) <= max_len:
        return text
    tail_len = max(16, int(max_len * 0.6))
    head_len = max(6, max_len - tail_len - 1)
    return f"{text[:head_len]}…{text[len(text) - tail_len:]}"


def concentration_note(dominance_ratio: float) -> str:
    if dominance_ratio >= 0.7:
        return "concentrated"
    if dominance_ratio >= 0.4:
        return "mixed"
    return "spread"


def render_dominance_text(bundle: Dict[str, Any]) -> str:
    dominance = bundle.get("dominance") or {}
    top_modules = dominance.get("top_modules") or []
    if not top_modules:
        return ""

    lines: List[str] = [
        "Drift Dominance (signal-only)",
        "----------------------------",
        f"dominance_ratio: {_pct(dominance.get('dominance_ratio'))}  "
        f"(note: {concentration_note(float(dominance.get('dominance_ratio') or 0))})",
        f"top3_share:      {_pct(dominance.get('top3_share'))}",
        f"total:           {_fmt_int(dominance.get('total_contribution'))} {dominance.get('metric', '')}".rstrip(),
        "",
        f"{'Rank':<5}  {'Share':<8}  {'Contrib':<10}  {'Module':<52}".rstrip(),
        f"{'-' * 5}  {'-' * 8}  {'-' * 10}  {'-' * 52}",
    ]
    for entry in top_modules:
        lines.append(
            f"{'#' + str(entry.get('rank', '?')):<5}  {_pct(entry.get('share')):>8}  "
            f"{_fmt_int(entry.get('contribution')):>10}  {shorten_middle(str(entry.get('module') or 'unknown'), 52)}"
        )

    cross = dominance.get("cross_boundary") or {}
    if cross.get("is_cross_boundary"):
        lines.extend(["", "Cross-boundary drift (signal-only)", "-------------------------------"])
        lines.append(f"{'Boundary':<16}  {'Share':<8}  {'Contrib':<10}".rstrip())
        lines.append(f"{'-' * 16}  {'-' * 8}  {'-' * 10}")
        for boundary in cross.get("boundaries") or []:
            lines.append(
                f"{str(boundary.get('boundary') or 'unknown'):<16}  {_pct(boundary.get('share')):>8}  "
                f"{_fmt_int(boundary.get('contribution')):>10}"
            )
    return "\n".join(lines)


def render_status_text(bundle: Dict[str, Any]) -> str:
    signal = bundle.get("signal") or {}
    explain = bundle.get("explain") or {}
    base = "\n".join(
        [
            "Drift Status",
            "------------",
            f"Window: {bundle.get('window')}",
            f"Trend: {bundle.get('trend')}",
            f"Density: {signal.get('density', 0)} events/day",
            f"Expansion: +{signal.get('expansion', 0)} modules",
            f"Unique Modules: {signal.get('unique_modules', 0)}",
            f"Events (current): {explain.get('events', 0)}",
            f"Events (prev): {explain.get('events_prev', 0)}",
        ]
    )
    dominance_text = render_dominance_text(bundle)
    return f"{base}\n\n{dominance_text}" if dominance_text else base

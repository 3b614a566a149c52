"""Data models for drift events, daily series and signal outputs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Any, Optional

from drift_signal.core.drift_config import DOMINANCE_METRIC, UNKNOWN_MODULE
from drift_signal.core.utils import iso_utc, parse_timestamp


@dataclass
class DriftEvent:
    ts: str
    surface_id: str = UNKNOWN_MODULE
    module: Optional[str] = None
    risk_score: Optional[float] = None
    severity: Optional[str] = None
    verdict: Optional[str] = None
    exit_code: Optional[int] = None
    receipt_id: Optional[str] = None
    snapshot_id: Optional[str] = None
    boundary: Optional[str] = None
    timestamp: Optional[datetime] = None  # parsed ts, None when unparsable

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DriftEvent":
        ts = data.get("ts")
        module = data.get("module")
        boundary = data.get("boundary")
        return cls(
            ts=ts if isinstance(ts, str) else "",
            surface_id=str(data.get("surface_id") or UNKNOWN_MODULE),
            module=module if isinstance(module, str) and module else None,
            risk_score=data.get("risk_score"),
            severity=data.get("severity"),
            verdict=data.get("verdict"),
            exit_code=data.get("exit_code"),
            receipt_id=data.get("receipt_id"),
            snapshot_id=data.get("snapshot_id"),
            boundary=boundary if isinstance(boundary, str) and boundary else None,
            timestamp=parse_timestamp(ts) if isinstance(ts, str) else None,
        )

    @property
    def module_key(self) -> str:
        return self.module or UNKNOWN_MODULE


@dataclass
class DailyDriftBucket:
    day: datetime
    event_count: int = 0
    unique_module_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": iso_utc(self.day),
            "event_count": self.event_count,
            "unique_module_count": self.unique_module_count,
        }


@dataclass
class DailyRiskBucket:
    day: datetime
    event_count: int = 0  # records with a resolved timestamp
    sample_count: int = 0  # records with a resolved score
    score_avg: float = 0.0
    score_p95: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": iso_utc(self.day),
            "event_count": self.event_count,
            "sample_count": self.sample_count,
            "score_avg": self.score_avg,
            "score_p95": self.score_p95,
        }


@dataclass
class ModuleContribution:
    module: str
    contribution: int
    share: float
    rank: int
    boundary: Optional[str] = None


@dataclass
class BoundaryContribution:
    boundary: str
    contribution: int
    share: float


@dataclass
class DominanceSummary:
    metric: str = DOMINANCE_METRIC
    top_n: int = 5
    total_contribution: int = 0
    top_modules: List[ModuleContribution] = field(default_factory=list)
    dominance_ratio: float = 0.0
    top3_share: float = 0.0
    boundaries: List[BoundaryContribution] = field(default_factory=list)

    @property
    def is_cross_boundary(self) -> bool:
        return len(self.boundaries) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "top_n": self.top_n,
            "total_contribution": self.total_contribution,
            "top_modules": [
                {"module": m.module, "contribution": m.contribution, "share": m.share, "rank": m.rank}
                for m in self.top_modules
            ],
            "dominance_ratio": self.dominance_ratio,
            "top3_share": self.top3_share,
            "cross_boundary": {
                "is_cross_boundary": self.is_cross_boundary,
                "boundaries": [
                    {"boundary": b.boundary, "contribution": b.contribution, "share": b.share}
                    for b in self.boundaries
                ],
                "note": "signal-only",
            },
        }


@dataclass
class DriftAnalysis:
    trend: str = "stable"  # accelerating | stable | cooling
    density: float = 0.0
    slope: float = 0.0
    expansion: int = 0
    unique_modules: int = 0
    unique_modules_prev: int = 0
    events_current: int = 0
    events_prev: int = 0
    modules: List[ModuleContribution] = field(default_factory=list)
    dominance: DominanceSummary = field(default_factory=DominanceSummary)


@dataclass
class PearsonStats:
    r: float = 0.0
    n_effective: int = 0
    degenerate: bool = True
    variance_x: float = 0.0
    variance_y: float = 0.0


@dataclass
class LagResult:
    lag_days: int
    r: float
    n: int
    n_pairs: int
    n_effective: int
    degenerate: bool


@dataclass
class RobustnessResult:
    subsamples: int
    block_size: int
    samples_used: int = 0
    degenerate_rate: float = 1.0
    median_r: float = 0.0
    iqr_r: float = 0.0
    stability: str = "low"  # low | medium | high
    is_informative: bool = False
    method: str = "block_bootstrap"

from mcp.server.fastmcp import FastMCP
import logging
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any

from drift_signal.core.association import build_association_bundle
from drift_signal.core.collector import collect_drift_event
from drift_signal.core.config import DriftSignalConfig
from drift_signal.core.drift_compare import build_compare
from drift_signal.core.drift_config import (
    ASSOCIATION_BUCKETS,
    DEFAULT_METRIC_X,
    DEFAULT_METRIC_Y,
    METRIC_X_ALIASES,
    METRIC_Y_NAMES,
    TIMELINE_BUCKETS,
    WINDOW_DAYS,
)
from drift_signal.core.drift_report import build_drift_status
from drift_signal.core.drift_timeline import build_timeline
from drift_signal.core.risk_trend import read_risk_direction


class MCPError(Exception):
    """Custom MCP error with code and hint."""

    def __init__(self, code: int, message: str, hint: str = ""):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = {"hint": hint} if hint else {}


class PingResponse(BaseModel):
    status: str
    echoed: str


class DriftStatusResponse(BaseModel):
    bundle: dict


class DriftTimelineResponse(BaseModel):
    timeline: dict


class DriftCompareResponse(BaseModel):
    compare: dict


class AssociationResponse(BaseModel):
    bundle: dict


class DriftCollectResponse(BaseModel):
    written: bool
    events_path: str


class RiskDirectionResponse(BaseModel):
    direction: dict


# Global logger for MCP
logger = logging.getLogger("mcp")
logger.addHandler(logging.StreamHandler(sys.stderr))
logger.setLevel(logging.INFO)


@dataclass
class AppContext:
    config: Optional[Dict[str, Any]] = field(default=None)


async def on_shutdown():
    logger.info("Server shutdown")


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    config = getattr(server, 'config', None)
    if config:
        logger.info("Server started for project root %s", config.get("project_root"))
    else:
        logger.warning("No config provided to server, tools will be unavailable")
    try:
        yield AppContext(config=config)
    finally:
        await on_shutdown()


server = FastMCP("DriftSignalMCP", lifespan=lifespan)


def _require_config() -> DriftSignalConfig:
    config = getattr(server, 'config', None)
    if not config:
        raise MCPError(5001, "Configuration unavailable", "Start the server with python -m drift_signal.mcp_server")
    return DriftSignalConfig(**config)


def _validate_window(window: str) -> str:
    if window not in WINDOW_DAYS:
        raise MCPError(4001, f"Invalid window: {window}", f"Use one of {', '.join(WINDOW_DAYS)}")
    return window


@server.tool(name="ping")
async def ping_tool(message: str = Field(description="Message to echo")) -> PingResponse:
    """Echo a message to check that the server is alive."""
    return PingResponse(status="ok", echoed=message)


@server.tool(name="drift_status")
async def drift_status(window: str = Field(default="7d", description="Rolling window: 7d, 14d or 30d")) -> DriftStatusResponse:
    """
    Signal-only drift trend, density, expansion and module dominance.
    """
    config = _require_config()
    bundle = build_drift_status(
        config.events_file(),
        window=_validate_window(window),
        top_n=config.top_n,
        trend_epsilon=config.trend_epsilon,
    )
    return DriftStatusResponse(bundle=bundle)


@server.tool(name="drift_timeline")
async def drift_timeline(
    window: str = Field(default="7d", description="Rolling window: 7d, 14d or 30d"),
    bucket: str = Field(default="day", description="Bucket width: hour or day"),
) -> DriftTimelineResponse:
    """UTC-bucketed drift event series."""
    config = _require_config()
    if bucket not in TIMELINE_BUCKETS:
        raise MCPError(4001, f"Invalid bucket: {bucket}", "Use hour or day")
    timeline = build_timeline(config.events_file(), window=_validate_window(window), bucket=bucket)
    return DriftTimelineResponse(timeline=timeline)


@server.tool(name="drift_compare")
async def drift_compare(window: str = Field(default="7d", description="Rolling window: 7d, 14d or 30d")) -> DriftCompareResponse:
    """Previous-window vs current-window drift comparison."""
    config = _require_config()
    compare = build_compare(config.events_file(), window=_validate_window(window))
    return DriftCompareResponse(compare=compare)


@server.tool(name="assoc_correlate")
async def assoc_correlate(
    window: str = Field(default="7d", description="Rolling window: 7d, 14d or 30d"),
    metric_x: str = Field(default=DEFAULT_METRIC_X, description="drift_density | drift_events | drift_unique_modules"),
    metric_y: str = Field(default=DEFAULT_METRIC_Y, description="risk_score_avg | risk_score_p95 | risk_events"),
    lags: Optional[int] = Field(default=None, description="Maximum lag in days (clamped to [0, 14])"),
    subsamples: Optional[int] = Field(default=None, description="Bootstrap iterations (clamped to [20, 500])"),
    bucket: str = Field(default="day", description="Bucket width; only day is supported"),
) -> AssociationResponse:
    """
    Correlate a daily drift metric against a daily risk metric.

    Returns Pearson r with diagnostics, a lag sweep and block-bootstrap
    robustness. The result is advisory and never affects exit codes.
    """
    config = _require_config()
    if metric_x not in METRIC_X_ALIASES:
        raise MCPError(4001, f"Unknown drift metric: {metric_x}", "Use drift_density, drift_events or drift_unique_modules")
    if metric_y not in METRIC_Y_NAMES:
        raise MCPError(4001, f"Unknown risk metric: {metric_y}", "Use risk_score_avg, risk_score_p95 or risk_events")
    if bucket not in ASSOCIATION_BUCKETS:
        raise MCPError(4001, f"Invalid bucket: {bucket}", "Only day buckets are supported")

    bundle = build_association_bundle(
        events_path=config.events_file(),
        audit_path=config.audit_file(),
        window=_validate_window(window),
        bucket=bucket,
        metric_x=metric_x,
        metric_y=metric_y,
        lags=lags,
        subsamples=subsamples if subsamples is not None else config.bootstrap_subsamples,
    )
    return AssociationResponse(bundle=bundle)


@server.tool(name="drift_collect")
async def drift_collect(
    module: Optional[str] = Field(default=None, description="Module the event belongs to"),
    surface_id: Optional[str] = Field(default=None, description="Surface that emitted the event"),
    boundary: Optional[str] = Field(default=None, description="Architectural boundary of the module"),
    risk_score: Optional[float] = Field(default=None, description="Risk score mirrored into the event"),
    verdict: Optional[str] = Field(default=None, description="Verdict mirrored into the event"),
    exit_code: Optional[int] = Field(default=None, description="Exit code mirrored into the event"),
) -> DriftCollectResponse:
    """Append one drift_event (v2) line to the project's drift log."""
    config = _require_config()
    events_path = config.events_file()
    written = collect_drift_event(
        {
            "module": module,
            "surface_id": surface_id,
            "boundary": boundary,
            "risk_score": risk_score,
            "verdict": verdict,
            "exit_code": exit_code,
        },
        events_path,
    )
    return DriftCollectResponse(written=written, events_path=str(events_path))


@server.tool(name="risk_direction")
async def risk_direction(
    limit: int = Field(default=14, description="Number of latest scored audit records to compare (minimum 4)"),
) -> RiskDirectionResponse:
    """Up/down/flat direction of the latest audit risk scores."""
    config = _require_config()
    if limit < 1:
        raise MCPError(4001, f"Invalid limit: {limit}", "Use a positive number of records")
    return RiskDirectionResponse(direction=read_risk_direction(config.audit_file(), window=limit))

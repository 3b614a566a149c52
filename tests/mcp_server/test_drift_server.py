import json
from datetime import datetime, timezone

import pytest

import drift_signal.mcp_server.server as server_module
from drift_signal.mcp_server.server import (
    MCPError,
    assoc_correlate,
    drift_collect,
    drift_compare,
    drift_status,
    drift_timeline,
    ping_tool,
    risk_direction,
)


@pytest.fixture
def configured_server(tmp_path, monkeypatch):
    """Point the server at a temporary repository with one drift event."""
    drift_dir = tmp_path / ".mindforge" / "drift"
    drift_dir.mkdir(parents=True)
    midnight = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    (drift_dir / "events.jsonl").write_text(
        json.dumps({"kind": "drift_event", "v": 2, "ts": midnight.isoformat(), "module": "api"}) + "\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(server_module.server, "config", {"project_root": str(tmp_path)}, raising=False)
    return tmp_path


def test_server_initialization():
    assert server_module.server.name == "DriftSignalMCP"
    assert callable(server_module.server.run_stdio_async)


@pytest.mark.asyncio
async def test_registered_tools():
    tools = await server_module.server.list_tools()
    names = {tool.name for tool in tools}
    expected = {"ping", "drift_status", "drift_timeline", "drift_compare", "assoc_correlate", "drift_collect", "risk_direction"}
    assert expected <= names


@pytest.mark.asyncio
async def test_ping():
    response = await ping_tool(message="hello")
    assert response.status == "ok"
    assert response.echoed == "hello"


@pytest.mark.asyncio
async def test_drift_status_tool(configured_server):
    response = await drift_status(window="14d")

    assert response.bundle["kind"] == "drift_signal_bundle"
    assert response.bundle["window"] == "14d"
    assert response.bundle["modules"] == [{"module": "api", "drift_units": 1, "share": 1.0}]


@pytest.mark.asyncio
async def test_timeline_and_compare_tools(configured_server):
    timeline = await drift_timeline(window="7d", bucket="hour")
    compare = await drift_compare(window="7d")

    assert timeline.timeline["bucket"] == "hour"
    assert timeline.timeline["series"][0]["event_count"] == 1
    assert compare.compare["b"]["events"] == 1


@pytest.mark.asyncio
async def test_assoc_correlate_tool(configured_server):
    response = await assoc_correlate(
        window="7d",
        metric_x="drift_unique_modules",
        metric_y="risk_events",
        lags=1,
        subsamples=25,
        bucket="day",
    )
    bundle = response.bundle

    assert bundle["metric_x"] == "drift_unique_modules"
    assert len(bundle["results"]["lags"]) == 3
    assert bundle["results"]["robustness"]["subsamples"] == 25
    assert bundle["policy"]["affects_exit"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"window": "90d", "metric_x": "drift_density", "metric_y": "risk_score_avg", "bucket": "day"},
        {"window": "7d", "metric_x": "commits", "metric_y": "risk_score_avg", "bucket": "day"},
        {"window": "7d", "metric_x": "drift_density", "metric_y": "risk_max", "bucket": "day"},
        {"window": "7d", "metric_x": "drift_density", "metric_y": "risk_score_avg", "bucket": "hour"},
    ],
)
async def test_assoc_correlate_rejects_invalid_input(configured_server, kwargs):
    with pytest.raises(MCPError) as excinfo:
        await assoc_correlate(lags=None, subsamples=None, **kwargs)
    assert excinfo.value.code == 4001


@pytest.mark.asyncio
async def test_invalid_timeline_bucket(configured_server):
    with pytest.raises(MCPError) as excinfo:
        await drift_timeline(window="7d", bucket="week")
    assert excinfo.value.code == 4001


@pytest.mark.asyncio
async def test_tools_require_config(monkeypatch):
    monkeypatch.setattr(server_module.server, "config", None, raising=False)

    with pytest.raises(MCPError) as excinfo:
        await drift_status(window="7d")
    assert excinfo.value.code == 5001
    assert "hint" in excinfo.value.data


@pytest.mark.asyncio
async def test_drift_collect_tool(configured_server):
    response = await drift_collect(
        module="billing",
        surface_id="mcp",
        boundary=None,
        risk_score=12.0,
        verdict="allow",
        exit_code=0,
    )

    assert response.written is True
    lines = (configured_server / ".mindforge" / "drift" / "events.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["module"] == "billing"

    status = await drift_status(window="7d")
    assert status.bundle["signal"]["unique_modules"] == 2


@pytest.mark.asyncio
async def test_risk_direction_tool(configured_server):
    audit = configured_server / ".mindforge" / "audit.jsonl"
    audit.write_text(
        "\n".join(json.dumps({"risk": {"score": score}}) for score in [40, 40, 20, 20]) + "\n",
        encoding="utf-8",
    )

    response = await risk_direction(limit=4)

    assert response.direction["direction"] == "down"
    assert response.direction["window"] == 4


@pytest.mark.asyncio
async def test_risk_direction_rejects_non_positive_limit(configured_server):
    with pytest.raises(MCPError) as excinfo:
        await risk_direction(limit=0)
    assert excinfo.value.code == 4001

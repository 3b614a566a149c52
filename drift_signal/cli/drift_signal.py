"""
Command-line entry point for drift signals and drift/risk association.

Every command here is signal-only: the exit code is 0 on success and 1 on a
generic failure, and never reflects trend, dominance or correlation values.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from drift_signal.core.association import build_association_bundle
from drift_signal.core.collector import collect_drift_event
from drift_signal.core.config import DriftSignalConfig, load_config
from drift_signal.core.drift_compare import build_compare
from drift_signal.core.drift_config import (
    ASSOCIATION_BUCKETS,
    DEFAULT_METRIC_X,
    DEFAULT_METRIC_Y,
    DEFAULT_WINDOW,
    METRIC_X_ALIASES,
    METRIC_Y_NAMES,
    TIMELINE_BUCKETS,
    WINDOW_DAYS,
)
from drift_signal.core.drift_report import build_drift_status, render_status_text
from drift_signal.core.drift_timeline import build_timeline
from drift_signal.core.risk_trend import read_risk_direction


def normalize_window(window: Optional[str]) -> str:
    if window in WINDOW_DAYS:
        return window
    print(f"⚠️  Invalid --window \"{window}\", falling back to \"{DEFAULT_WINDOW}\"", file=sys.stderr)
    return DEFAULT_WINDOW


def _dump_json(bundle: Dict[str, Any], pretty: bool) -> str:
    if pretty:
        return json.dumps(bundle, indent=2, ensure_ascii=False)
    return json.dumps(bundle, ensure_ascii=False)


def _emit(text: str, out: Optional[str]) -> None:
    if not out:
        print(text)
        return
    output_path = Path(out)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text + "\n", encoding="utf-8")
    print(str(output_path))


def _resolve_config(args: argparse.Namespace) -> DriftSignalConfig:
    cli_overrides: Dict[str, Any] = {}
    if getattr(args, "directory", None):
        cli_overrides['project_root'] = str(Path(args.directory).resolve())
    if getattr(args, "events_path", None):
        cli_overrides['events_path'] = args.events_path
    if getattr(args, "audit_path", None):
        cli_overrides['audit_path'] = args.audit_path
    return load_config(config_path=getattr(args, "config", None), cli_args=cli_overrides)


def _window_arg(args: argparse.Namespace, config: DriftSignalConfig) -> str:
    return normalize_window(args.window if args.window is not None else config.window)


def _run_drift_status(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    window = _window_arg(args, config)
    bundle = build_drift_status(
        config.events_file(),
        window=window,
        top_n=config.top_n,
        trend_epsilon=config.trend_epsilon,
    )
    if args.format == "json":
        _emit(_dump_json(bundle, args.pretty), args.out)
    else:
        _emit(render_status_text(bundle), args.out)
    return 0


def _run_drift_export(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    window = _window_arg(args, config)
    bundle = build_drift_status(
        config.events_file(),
        window=window,
        top_n=config.top_n,
        trend_epsilon=config.trend_epsilon,
    )
    _emit(_dump_json(bundle, args.pretty), args.out)
    return 0


def _run_drift_timeline(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    window = _window_arg(args, config)
    bundle = build_timeline(config.events_file(), window=window, bucket=args.bucket)
    _emit(_dump_json(bundle, args.pretty), args.out)
    return 0


def _run_drift_compare(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    window = _window_arg(args, config)
    bundle = build_compare(config.events_file(), window=window)
    _emit(_dump_json(bundle, args.pretty), args.out)
    return 0


def _run_drift_collect(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    event = {
        "surface_id": args.surface_id,
        "module": args.module,
        "boundary": args.boundary,
        "risk_score": args.risk_score,
        "severity": args.severity,
        "verdict": args.verdict,
        "exit_code": args.exit_code,
        "receipt_id": args.receipt_id,
        "snapshot_id": args.snapshot_id,
    }
    events_path = config.events_file()
    if collect_drift_event(event, events_path):
        print(str(events_path))
    else:
        print(f"⚠️  Could not append drift event to {events_path}", file=sys.stderr)
    return 0


def _run_risk_direction(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    direction = read_risk_direction(config.audit_file(), window=args.limit)
    _emit(_dump_json(direction, args.pretty), args.out)
    return 0


def _run_assoc_correlate(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    window = _window_arg(args, config)
    subsamples = args.subsamples if args.subsamples is not None else config.bootstrap_subsamples
    bundle = build_association_bundle(
        events_path=config.events_file(),
        audit_path=config.audit_file(),
        window=window,
        bucket=args.bucket,
        metric_x=args.x,
        metric_y=args.y,
        lags=args.lags,
        subsamples=subsamples,
    )
    _emit(_dump_json(bundle, args.pretty), args.out)
    return 0


def _add_location_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "directory",
        nargs='?',
        default=None,
        help="Repository root holding the .mindforge state directory (default: project_root from config).",
    )
    parser.add_argument("--config", help="Path to configuration YAML file (default: driftsignal.config.yaml)")


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
    parser.add_argument("--out", help="Write output to a file instead of stdout.")


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    _add_location_flags(parser)
    parser.add_argument("--window", default=None, help="Rolling window: 7d, 14d or 30d (default: 7d).")
    parser.add_argument("--events-path", help="Drift events JSONL (default: .mindforge/drift/events.jsonl).")
    _add_output_flags(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Drift Signal CLI: signal-only drift trends, timelines and drift/risk association."
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: WARNING).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    drift = subparsers.add_parser("drift", help="Drift trend signals")
    drift_sub = drift.add_subparsers(dest="drift_action", required=True)

    status = drift_sub.add_parser("status", help="Trend, density and module dominance for the window")
    _add_common_flags(status)
    status.add_argument("--format", choices=["text", "json"], default="text", help="Output format.")
    status.set_defaults(func=_run_drift_status)

    export = drift_sub.add_parser("export", help="Emit the drift_signal_bundle as JSON")
    _add_common_flags(export)
    export.set_defaults(func=_run_drift_export)

    timeline = drift_sub.add_parser("timeline", help="Bucketed drift event series")
    _add_common_flags(timeline)
    timeline.add_argument("--bucket", choices=list(TIMELINE_BUCKETS), default="day", help="Bucket width.")
    timeline.set_defaults(func=_run_drift_timeline)

    compare = drift_sub.add_parser("compare", help="Previous window vs current window")
    _add_common_flags(compare)
    compare.set_defaults(func=_run_drift_compare)

    collect = drift_sub.add_parser("collect", help="Append one drift_event to the events log")
    _add_location_flags(collect)
    collect.add_argument("--events-path", help="Drift events JSONL (default: .mindforge/drift/events.jsonl).")
    collect.add_argument("--module", help="Module the event belongs to (default: unknown).")
    collect.add_argument("--surface-id", help="Surface that emitted the event (default: unknown).")
    collect.add_argument("--boundary", help="Architectural boundary of the module.")
    collect.add_argument("--risk-score", type=float, default=None, help="Risk score to mirror into the event.")
    collect.add_argument("--severity", help="Severity to mirror into the event.")
    collect.add_argument("--verdict", help="Verdict to mirror into the event.")
    collect.add_argument("--exit-code", type=int, default=None, help="Exit code to mirror into the event.")
    collect.add_argument("--receipt-id", help="Receipt id to mirror into the event.")
    collect.add_argument("--snapshot-id", help="Snapshot id to mirror into the event.")
    collect.set_defaults(func=_run_drift_collect)

    risk = subparsers.add_parser("risk", help="Audit risk signals")
    risk_sub = risk.add_subparsers(dest="risk_action", required=True)

    direction = risk_sub.add_parser("direction", help="Direction of the latest audit risk scores")
    _add_location_flags(direction)
    direction.add_argument("--audit-path", help="Audit JSONL (default: .mindforge/audit.jsonl).")
    direction.add_argument("--limit", type=int, default=14,
                           help="Number of latest scored records to compare, at least 4 (default: 14).")
    _add_output_flags(direction)
    direction.set_defaults(func=_run_risk_direction)

    assoc =subparsers.add_parser("assoc", help="Drift/risk association")
    assoc_sub = assoc.add_subparsers(dest="assoc_action", required=True)

    correlate = assoc_sub.add_parser("correlate", help="Correlate a drift metric against a risk metric")
    _add_common_flags(correlate)
    correlate.add_argument("--audit-path", help="Audit JSONL (default: .mindforge/audit.jsonl).")
    correlate.add_argument("--bucket", choices=list(ASSOCIATION_BUCKETS), default="day", help="Bucket width.")
    correlate.add_argument("--x", default=DEFAULT_METRIC_X, choices=list(METRIC_X_ALIASES),
                           help="Drift metric: drift_density, drift_events or drift_unique_modules.")
    correlate.add_argument("--y", default=DEFAULT_METRIC_Y, choices=list(METRIC_Y_NAMES),
                           help="Risk metric: risk_score_avg, risk_score_p95 or risk_events.")
    correlate.add_argument("--lags", type=int, default=None,
                           help="Maximum lag in days, clamped to [0, 14] (default: window days clamped to [3, 14]).")
    correlate.add_argument("--subsamples", type=int, default=None,
                           help="Bootstrap iterations, clamped to [20, 500] (default: 100).")
    correlate.set_defaults(func=_run_assoc_correlate)

    return parser


def main(argv=None):
    """Main entry point for the drift signal CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=(args.log_level or "WARNING").upper(), stream=sys.stderr)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except Exception as e:
        print(f"\n❌ An unexpected error occurred: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

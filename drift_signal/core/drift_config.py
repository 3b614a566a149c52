"""Default configuration values for drift signals and association."""

DEFAULT_WINDOW = "7d"
WINDOW_DAYS = {"7d": 7, "14d": 14, "30d": 30}
DEFAULT_BUCKET = "day"
TIMELINE_BUCKETS = ("hour", "day")
ASSOCIATION_BUCKETS = ("day",)

DEFAULT_STATE_DIR = ".mindforge"
DEFAULT_DRIFT_SUBDIR = "drift"
DEFAULT_EVENTS_FILENAME = "events.jsonl"
DEFAULT_AUDIT_RELPATH = "audit.jsonl"
FALLBACK_AUDIT_RELPATH = "artifacts/guard/audit.jsonl"

DRIFT_EVENT_KIND = "drift_event"
DRIFT_EVENT_VERSION = 2

DEFAULT_TOP_N = 5
DEFAULT_TREND_EPSILON = 0.5  # events/day
DOMINANCE_METRIC = "drift_units"
UNKNOWN_MODULE = "unknown"

DEFAULT_METRIC_X = "drift_density"
DEFAULT_METRIC_Y = "risk_score_avg"
METRIC_X_ALIASES = {
    "drift_density": "drift_events",  # day bucket: density == events/day
    "density": "drift_events",
    "drift_events": "drift_events",
    "events": "drift_events",
    "drift_unique_modules": "drift_unique_modules",
    "unique_modules": "drift_unique_modules",
}
METRIC_Y_NAMES = ("risk_score_avg", "risk_score_p95", "risk_events")

MAX_LAG_CAP = 14
MIN_DEFAULT_LAG = 3
DEFAULT_SUBSAMPLES = 100
MIN_SUBSAMPLES = 20
MAX_SUBSAMPLES = 500
BOOTSTRAP_BLOCK_SIZE = 2
MIN_PEARSON_PAIRS = 3
MIN_INFORMATIVE_SAMPLES = 20
MAX_DEGENERATE_RATE = 0.5
SPARSE_DAY_THRESHOLD = 3

RISK_DIRECTION_MIN_WINDOW = 4
RISK_DIRECTION_DELTA = 3.0

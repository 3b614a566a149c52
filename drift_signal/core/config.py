import logging
from typing import Optional, Dict, Any
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from drift_signal.core.drift_config import (
    DEFAULT_WINDOW,
    DEFAULT_STATE_DIR,
    DEFAULT_DRIFT_SUBDIR,
    DEFAULT_EVENTS_FILENAME,
    DEFAULT_AUDIT_RELPATH,
    FALLBACK_AUDIT_RELPATH,
    DEFAULT_TOP_N,
    DEFAULT_TREND_EPSILON,
    DEFAULT_SUBSAMPLES,
)

# Default configuration values
DEFAULT_CONFIG_PATH = "driftsignal.config.yaml"
DEFAULT_PROJECT_ROOT = "."
DEFAULT_LOG_LEVEL = "INFO"


class DriftSignalConfig(BaseModel):
    """
    Central configuration model for drift signal and association commands.
    """
    project_root: str = Field(default=DEFAULT_PROJECT_ROOT)
    state_dir: str = Field(default=DEFAULT_STATE_DIR)
    events_path: Optional[str] = None
    audit_path: Optional[str] = None

    window: str = Field(default=DEFAULT_WINDOW)
    top_n: int = Field(default=DEFAULT_TOP_N, ge=1)
    trend_epsilon: float = Field(default=DEFAULT_TREND_EPSILON)
    bootstrap_subsamples: int = Field(default=DEFAULT_SUBSAMPLES)

    log_level: str = Field(default=DEFAULT_LOG_LEVEL)

    # Allow extra fields for flexibility
    model_config = {"extra": "allow"}

    def root(self) -> Path:
        return Path(self.project_root).resolve()

    def drift_dir(self) -> Path:
        return self.root() / self.state_dir / DEFAULT_DRIFT_SUBDIR

    def events_file(self) -> Path:
        if self.events_path:
            return Path(self.events_path)
        return self.drift_dir() / DEFAULT_EVENTS_FILENAME

    def audit_file(self) -> Path:
        """Explicit audit path, else the primary audit log, else the guard artifact log."""
        if self.audit_path:
            return Path(self.audit_path)
        primary = self.root() / self.state_dir / DEFAULT_AUDIT_RELPATH
        if primary.exists():
            return primary
        return self.root() / self.state_dir / FALLBACK_AUDIT_RELPATH


def load_config(
    config_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None
) -> DriftSignalConfig:
    """
    Load configuration from file and overrides.

    Priority:
    1. CLI Arguments (if provided and not None)
    2. Config File (if provided or found at default path)
    3. Default Values

    Args:
        config_path: Path to the YAML config file. If None, tries 'driftsignal.config.yaml'.
        cli_args: Dictionary of CLI arguments to override config values.

    Returns:
        DriftSignalConfig: The resolved configuration object.
    """
    config_data: Dict[str, Any] = {}

    target_path = config_path if config_path else DEFAULT_CONFIG_PATH
    path_obj = Path(target_path)

    if path_obj.exists() and path_obj.is_file():
        try:
            with open(path_obj, 'r', encoding='utf-8') as f:
                file_data = yaml.safe_load(f)
                if isinstance(file_data, dict):
                    config_data.update(file_data)
            logging.info(f"Loaded configuration from {target_path}")
        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load config file {target_path}: {e}")
    elif config_path:
        # If user explicitly provided a path that doesn't exist, warn them
        logging.warning(f"Config file not found at explicit path: {config_path}")
    else:
        logging.info(f"No config file found at {DEFAULT_CONFIG_PATH}, using defaults.")

    if cli_args:
        for key, value in cli_args.items():
            if value is not None:
                config_data[key] = value

    return DriftSignalConfig(**config_data)

# BotWatcher — configuration
# Override paths and timings via config.yaml, environment, or CLI args.

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

CONFIG_PATH = Path(__file__).parent / "config.yaml"

# Environment variable -> Config field
ENV_OVERRIDES = {
    "BOTWATCHER_INPUT_DIR": "input_dir",
    "BOTWATCHER_OUTPUT_DIR": "output_dir",
    "BOTWATCHER_LAUNCHER": "launcher_path",
    "BOTWATCHER_EVENT_LOG": "event_log_path",
    "BOTWATCHER_EVENT_URL": "event_url",
}


@dataclass
class Config:
    """Runtime configuration for the dispatcher."""

    # Directories
    input_dir: str = "/var/lib/botwatcher/input"
    output_dir: str = "/var/lib/botwatcher/output"
    input_pattern: str = "*.input"

    # External launcher
    launcher_path: str = "/opt/botwatcher/launch/launcher"

    # Event sink
    event_log_path: Optional[str] = "~/.local/share/botwatcher/events.jsonl"
    event_url: Optional[str] = None  # None = JSONL only
    log_level: str = "INFO"

    # Timings
    readiness_poll_ms: int = 100
    read_retry_secs: float = 1.0
    read_max_retries: Optional[int] = None         # None = retry forever
    completion_poll_ms: int = 300
    completion_timeout_secs: Optional[float] = None  # None = wait forever
    run_poll_ms: int = 100

    def resolve_paths(self):
        """Expand ~ in every path field."""
        self.input_dir = str(Path(self.input_dir).expanduser())
        self.output_dir = str(Path(self.output_dir).expanduser())
        self.launcher_path = str(Path(self.launcher_path).expanduser())
        if self.event_log_path:
            self.event_log_path = str(Path(self.event_log_path).expanduser())

    def apply_env(self, environ=None):
        environ = os.environ if environ is None else environ
        for var, attr in ENV_OVERRIDES.items():
            value = environ.get(var)
            if value:
                setattr(self, attr, value)

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "Config":
        """Load config from YAML, then environment overrides."""
        cfg_path = Path(path) if path else CONFIG_PATH
        data = {}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid config file {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {cfg_path} must contain a mapping")
        known = {f.name for f in fields(cls)}
        cfg = cls(**{k: v for k, v in data.items() if k in known})
        cfg.apply_env(environ)
        cfg.resolve_paths()
        return cfg

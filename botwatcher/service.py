"""
BotWatcher service — main entry point

Watches the input directory for {uuid}.input descriptors, launches the
matching job through the external launcher, and waits for its
{uuid-hex}.output marker before taking the next one.

Usage:
    botwatcher                                   # config.yaml + environment
    botwatcher --config /etc/botwatcher.yaml
    botwatcher --input-dir ./in --output-dir ./out --launcher ./launch/launcher
    botwatcher --completion-timeout 3600         # bound the marker wait
"""

import argparse
import logging
import signal
import sys
from enum import Enum
from typing import Optional

from .config import Config
from .dispatcher import Dispatcher
from .errors import BotWatcherError
from .eventlog import EventLog

logger = logging.getLogger(__name__)

EVENT_FLUSH_SECS = 5.0   # wait for queued event records on shutdown


class ServiceState(Enum):
    STOPPED = "stopped"
    START_PENDING = "start_pending"
    RUNNING = "running"
    STOP_PENDING = "stop_pending"


class WatcherService:
    """Start/stop lifecycle around a Dispatcher."""

    def __init__(self, cfg: Config, events: Optional[EventLog] = None,
                 dispatcher: Optional[Dispatcher] = None):
        self.cfg = cfg
        self.events = events or EventLog(cfg.event_log_path, cfg.event_url)
        self.dispatcher = dispatcher or Dispatcher(cfg, self.events)
        self.state = ServiceState.STOPPED

    def start(self) -> bool:
        """
        Run the dispatcher until stop() is called.

        Returns False if the input directory could not be watched.
        """
        self.state = ServiceState.START_PENDING
        self.events.info("BotWatcher service begins")
        try:
            self.state = ServiceState.RUNNING
            self.dispatcher.run()
        except BotWatcherError as e:
            self.events.error(
                f"FATAL ERROR. The monitoring process failed with the following error: {e}"
            )
            return False
        finally:
            self.events.flush(timeout=EVENT_FLUSH_SECS)
            self.state = ServiceState.STOPPED
        return True

    def stop(self) -> None:
        if self.state is ServiceState.STOPPED:
            return
        self.state = ServiceState.STOP_PENDING
        self.dispatcher.stop()
        self.events.info("BotWatcher service was stopped")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="File-drop job dispatcher: {uuid}.input → launcher → {uuid}.output"
    )
    ap.add_argument("--config", default=None, help="Path to config.yaml")
    ap.add_argument("--input-dir", default=None, help="Directory to watch for descriptors")
    ap.add_argument("--output-dir", default=None, help="Directory to watch for markers")
    ap.add_argument("--launcher", default=None, help="Launcher executable")
    ap.add_argument("--event-log", default=None, help="JSONL event log path")
    ap.add_argument(
        "--event-url", default=None,
        help="HTTP endpoint for event records (omit for JSONL only)",
    )
    ap.add_argument(
        "--completion-timeout", type=float, default=None,
        help="Seconds to wait for a marker before abandoning a job (default: forever)",
    )
    ap.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    return ap


def apply_args(cfg: Config, args: argparse.Namespace) -> Config:
    """CLI overrides on top of file and environment."""
    overrides = {
        "input_dir": args.input_dir,
        "output_dir": args.output_dir,
        "launcher_path": args.launcher,
        "event_log_path": args.event_log,
        "event_url": args.event_url,
        "completion_timeout_secs": args.completion_timeout,
        "log_level": args.log_level,
    }
    for attr, value in overrides.items():
        if value is not None:
            setattr(cfg, attr, value)
    cfg.resolve_paths()
    return cfg


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = apply_args(Config.load(args.config), args)
    except BotWatcherError as e:
        print(f"botwatcher: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, str(cfg.log_level).upper(), logging.INFO),
        format="%(asctime)s [botwatcher] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger.info(f"Input: {cfg.input_dir} ({cfg.input_pattern})")
    logger.info(f"Output: {cfg.output_dir}")
    logger.info(f"Launcher: {cfg.launcher_path}")
    if cfg.completion_timeout_secs is None:
        logger.warning(
            "No completion timeout: a job that never writes its marker "
            "blocks all later jobs"
        )

    service = WatcherService(cfg)

    def _shutdown(signum, _frame):
        logger.info(f"Received signal {signum}, stopping…")
        service.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    return 0 if service.start() else 1

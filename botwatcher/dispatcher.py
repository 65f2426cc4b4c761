"""
BotWatcher dispatcher
─────────────────────
Wires the pipeline together:

    InputWatcher → read + parse descriptor → DispatchGate
                 → JobLauncher → CompletionWatcher

Each trigger is handled on its own thread. Reading and parsing happen
outside the gate, so a second trigger can be validated while a job is in
flight; it then blocks on the gate until the current job's marker appears.

Failure handling:
    - WatchError on the input directory is fatal and leaves run()
    - anything that goes wrong for one trigger is logged and that trigger
      is abandoned; the run loop never sees it
"""

import logging
import threading
import uuid
from pathlib import Path
from typing import Optional

from watchdog.observers import Observer

from . import descriptor as descriptors
from .config import Config
from .descriptor import JobDescriptor
from .errors import BotWatcherError, WatchError
from .eventlog import EventLog, TRACE_CODE
from .gate import DispatchGate, RunState
from .launcher import JobLauncher
from .reader import read_when_ready
from .watchers import CompletionWatcher, InputWatcher

logger = logging.getLogger(__name__)


def parse_identifier(path) -> Optional[uuid.UUID]:
    """UUID from the filename's leading segment, or None if it is not one."""
    leading = Path(path).name.split(".")[0]
    try:
        return uuid.UUID(leading)
    except ValueError:
        return None


class Dispatcher:
    """Owns the run state and dispatch gate for one watcher process."""

    def __init__(self, cfg: Config, events: Optional[EventLog] = None,
                 launcher: Optional[JobLauncher] = None,
                 gate: Optional[DispatchGate] = None,
                 state: Optional[RunState] = None,
                 observer_factory=Observer):
        self.cfg = cfg
        self.events = events or EventLog()
        self.launcher = launcher or JobLauncher(cfg.launcher_path)
        self.gate = gate or DispatchGate()
        self.state = state or RunState()
        self.observer_factory = observer_factory
        self._handlers = []
        self._handlers_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._stop_requested = False

    # ── Run loop ───────────────────────────────────────────────────────────

    def run(self) -> None:
        """
        Watch the input directory until stop() is called.

        Returns at once if stop() was already called. Raises WatchError if
        the watch cannot be established.
        """
        with self._lifecycle_lock:
            if self._stop_requested:
                logger.info("Stop requested before the run loop started")
                return
            self.state.running.set()
        watcher = InputWatcher(
            self.cfg.input_dir, self.cfg.input_pattern,
            observer_factory=self.observer_factory,
        )
        try:
            watcher.start()
        except WatchError as e:
            self.state.running.clear()
            self.events.error(f"Directory watcher failed with the following error: {e}")
            raise

        self.events.info("Monitoring")
        poll = self.cfg.run_poll_ms / 1000
        try:
            while self.state.is_running:
                path = watcher.next_event(timeout=poll)
                if path is not None:
                    self.on_new_file(path)
        finally:
            watcher.stop()

    def stop(self) -> None:
        """
        Signal the run loop to exit. In-flight handlers are not interrupted.

        A stop that arrives before run() is remembered, and run() then
        returns without watching.
        """
        with self._lifecycle_lock:
            self._stop_requested = True
            self.state.running.clear()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for handler threads started so far."""
        with self._handlers_lock:
            handlers = list(self._handlers)
        for t in handlers:
            t.join(timeout)

    # ── Per-trigger handling ───────────────────────────────────────────────

    def on_new_file(self, path) -> Optional[threading.Thread]:
        """
        Start a handler thread for a new input file.

        Files whose name does not start with a UUID are skipped without
        touching the parser or gate.
        """
        try:
            self.events.info(f"Received new file {path}.")
            identifier = parse_identifier(path)
            if identifier is None:
                self.events.warning(f"Skipping Invalid file \"{path}\".")
                return None

            t = threading.Thread(
                target=self.handle_trigger,
                args=(Path(path), identifier),
                name=f"job-{identifier.hex[:8]}",
                daemon=True,
            )
            with self._handlers_lock:
                self._handlers = [h for h in self._handlers if h.is_alive()]
                self._handlers.append(t)
            t.start()
            return t
        except Exception as e:
            self.events.error(f"Unexpected error in on_new_file: {e}")
            return None

    def handle_trigger(self, path: Path, identifier: uuid.UUID) -> bool:
        """Read, parse and run one trigger. Returns True if the job completed."""
        try:
            job = self.load_descriptor(path)
            self.events.info(
                f"The following input arguments have been parsed for bot "
                f"{job.job_name}: {job.argument_string}"
            )
            self.gate.with_exclusive_job_slot(lambda: self.run_job(job, identifier))
            return True
        except BotWatcherError as e:
            self.events.error(
                f"Attempting to launch bot associated with file \"{path}\", "
                f"received error {e}. Skipping...",
                code=TRACE_CODE,
            )
        except Exception as e:
            logger.error(f"Trigger {path} failed with exception: {e}", exc_info=True)
            self.events.error(f"Unexpected error handling \"{path}\": {e}")
        return False

    def load_descriptor(self, path: Path) -> JobDescriptor:
        content = read_when_ready(
            path,
            poll_interval=self.cfg.readiness_poll_ms / 1000,
            retry_delay=self.cfg.read_retry_secs,
            max_retries=self.cfg.read_max_retries,
        )
        return descriptors.parse(content)

    def run_job(self, job: JobDescriptor, identifier: uuid.UUID) -> None:
        """Launch and await completion. Callers must hold the dispatch gate."""
        self.events.info("Launch slot acquired", code=TRACE_CODE)
        self.state.awaiting_completion.set()
        watcher = CompletionWatcher(
            self.cfg.output_dir, identifier, self.state,
            observer_factory=self.observer_factory,
        )
        try:
            # Watch before launching so a fast job's marker is not missed
            watcher.start()
            self.events.info(f"Waiting for file {watcher.marker}", code=TRACE_CODE)
            self.launcher.launch(job, identifier)
            self.events.info("Launcher should have started", code=TRACE_CODE)
            self.events.info(f"Waiting for completion of bot {job.job_name} with id {identifier}")
            timeout = self.cfg.completion_timeout_secs
            watcher.wait(self.cfg.completion_poll_ms / 1000, timeout)
        finally:
            watcher.stop()
            self.state.awaiting_completion.clear()
        self.events.info(f"Bot {job.job_name} with identifier {identifier} is complete.")

# BotWatcher — directory watchers
#
# InputWatcher turns creation events in the input directory into a lazy,
# non-restartable stream of paths. CompletionWatcher waits for one marker
# file in the output directory and clears the run state's awaiting flag.

import fnmatch
import logging
import queue
import time
import uuid
from pathlib import Path
from typing import Iterator, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import CompletionTimeout, WatchError
from .gate import RunState

logger = logging.getLogger(__name__)

INPUT_PATTERN = "*.input"
MARKER_SUFFIX = ".output"
COMPLETION_POLL_SECS = 0.3

_STOP = object()


def marker_name(identifier: uuid.UUID) -> str:
    """Marker filename for a job: the UUID without dashes plus ``.output``."""
    return f"{identifier.hex}{MARKER_SUFFIX}"


def _decode(path) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class _DirectoryWatch:
    """Owns a watchdog observer scheduled on a single directory."""

    def __init__(self, directory, observer_factory=Observer):
        self.directory = Path(directory)
        self._observer_factory = observer_factory
        self._observer = None

    def _schedule(self, handler: FileSystemEventHandler):
        if not self.directory.is_dir():
            raise WatchError(f"Cannot watch {self.directory}: not a directory")
        observer = self._observer_factory()
        try:
            observer.schedule(handler, str(self.directory), recursive=False)
            observer.start()
        except OSError as e:
            raise WatchError(f"Cannot watch {self.directory}: {e}") from e
        self._observer = observer

    def _unschedule(self):
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)


# ── Input ──────────────────────────────────────────────────────────────────

class InputEventHandler(FileSystemEventHandler):
    """Forwards new files matching the pattern to a queue."""

    def __init__(self, pattern: str, sink: "queue.Queue"):
        self.pattern = pattern
        self.sink = sink

    def _offer(self, path):
        path = _decode(path)
        if fnmatch.fnmatch(Path(path).name, self.pattern):
            self.sink.put(path)

    def on_created(self, event):
        if event.is_directory:
            return
        self._offer(event.src_path)

    def on_moved(self, event):
        # Producers that write then rename into place
        if event.is_directory:
            return
        self._offer(event.dest_path)


class InputWatcher(_DirectoryWatch):
    """
    Live sequence of file-creation events for the input directory.

    Events are yielded in the order the observer delivers them. Once
    stopped the watcher cannot be restarted.
    """

    def __init__(self, directory, pattern: str = INPUT_PATTERN,
                 observer_factory=Observer):
        super().__init__(directory, observer_factory)
        self.pattern = pattern
        self._events: "queue.Queue" = queue.Queue()
        self.handler = InputEventHandler(pattern, self._events)
        self._stopped = False

    def start(self) -> None:
        if self._stopped:
            raise WatchError("Input watcher cannot be restarted")
        self._schedule(self.handler)
        logger.info(f"Watching {self.directory} for {self.pattern}")

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._unschedule()
        self._events.put(_STOP)

    def next_event(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next created path, or None on timeout or after stop()."""
        try:
            item = self._events.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _STOP:
            # Leave the sentinel for any other consumer
            self._events.put(_STOP)
            return None
        return item

    def __iter__(self) -> Iterator[str]:
        while True:
            path = self.next_event()
            if path is None:
                return
            yield path


# ── Completion ─────────────────────────────────────────────────────────────

class MarkerEventHandler(FileSystemEventHandler):
    """Clears the awaiting flag when exactly the expected marker appears."""

    def __init__(self, expected: str, state: RunState):
        self.expected = expected
        self.state = state

    def _check(self, path):
        if Path(_decode(path)).name == self.expected:
            logger.info(f"File received: {self.expected}")
            self.state.awaiting_completion.clear()

    def on_created(self, event):
        if event.is_directory:
            return
        self._check(event.src_path)

    def on_moved(self, event):
        if event.is_directory:
            return
        self._check(event.dest_path)


class CompletionWatcher(_DirectoryWatch):
    """Watches the output directory for one job's marker file."""

    def __init__(self, directory, identifier: uuid.UUID, state: RunState,
                 observer_factory=Observer):
        super().__init__(directory, observer_factory)
        self.identifier = identifier
        self.state = state
        self.marker = marker_name(identifier)
        self.handler = MarkerEventHandler(self.marker, state)

    @property
    def marker_path(self) -> Path:
        return self.directory / self.marker

    def start(self) -> None:
        self._schedule(self.handler)
        # The job may have finished before the watch was in place
        if self.marker_path.exists():
            logger.info(f"Marker {self.marker} already present")
            self.state.awaiting_completion.clear()

    def stop(self) -> None:
        self._unschedule()

    def wait(self, poll_interval: float = COMPLETION_POLL_SECS,
             timeout: Optional[float] = None) -> None:
        """
        Block until the awaiting flag is cleared.

        With ``timeout=None`` this waits forever: a job that never writes its
        marker holds the dispatch gate indefinitely.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.state.is_awaiting:
            if deadline is not None and time.monotonic() >= deadline:
                raise CompletionTimeout(
                    f"No marker {self.marker} after {timeout}s"
                )
            time.sleep(poll_interval)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()
        return False

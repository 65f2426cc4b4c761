# BotWatcher — dispatch gate and run state
#
# The gate serializes the launch-and-await section across handler threads.
# It only orders dispatcher-side work; nothing stops a launched process from
# outliving its slot.

import threading
from contextlib import contextmanager
from typing import Callable, TypeVar

T = TypeVar("T")


class RunState:
    """
    Lifecycle flags shared by the dispatcher and its watchers.

    running              — the input watch loop should keep going
    awaiting_completion  — a launched job has not produced its marker yet
    """

    def __init__(self):
        self.running = threading.Event()
        self.awaiting_completion = threading.Event()

    @property
    def is_running(self) -> bool:
        return self.running.is_set()

    @property
    def is_awaiting(self) -> bool:
        return self.awaiting_completion.is_set()


class DispatchGate:
    """Single-flight mutual exclusion. No queue, no timeout."""

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def slot(self):
        with self._lock:
            yield

    def with_exclusive_job_slot(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` while holding the gate. Exceptions propagate after release."""
        with self.slot():
            return fn()

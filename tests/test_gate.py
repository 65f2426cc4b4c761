"""Tests for the dispatch gate and run state."""

import threading
import time

import pytest

from botwatcher.gate import DispatchGate, RunState


class TestRunState:

    def test_starts_idle(self):
        state = RunState()
        assert state.is_running is False
        assert state.is_awaiting is False

    def test_flags_are_independent(self):
        state = RunState()
        state.awaiting_completion.set()
        assert state.is_awaiting is True
        assert state.is_running is False


class TestDispatchGate:

    def test_returns_fn_result(self):
        gate = DispatchGate()
        assert gate.with_exclusive_job_slot(lambda: 42) == 42
        assert gate.held is False

    def test_held_while_running(self):
        gate = DispatchGate()
        seen = []
        gate.with_exclusive_job_slot(lambda: seen.append(gate.held))
        assert seen == [True]

    def test_released_on_exception(self):
        gate = DispatchGate()

        def boom():
            raise RuntimeError("job failed")

        with pytest.raises(RuntimeError, match="job failed"):
            gate.with_exclusive_job_slot(boom)
        assert gate.held is False
        assert gate.with_exclusive_job_slot(lambda: "next") == "next"

    def test_critical_sections_never_overlap(self):
        gate = DispatchGate()
        spans = []
        spans_lock = threading.Lock()

        def job():
            start = time.monotonic()
            time.sleep(0.02)
            end = time.monotonic()
            with spans_lock:
                spans.append((start, end))

        threads = [
            threading.Thread(target=gate.with_exclusive_job_slot, args=(job,))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert len(spans) == 8
        spans.sort()
        for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
            assert next_start >= prev_end

"""Shared test fixtures for BotWatcher tests."""

import sys
from pathlib import Path

import pytest

# Ensure the package is importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from botwatcher.config import Config


class RecordingEventLog:
    """EventLog stand-in that keeps (message, severity, code) tuples."""

    def __init__(self):
        self.records = []

    def record(self, message, severity="info", code=None):
        self.records.append((message, severity, code))

    def info(self, message, code=None):
        self.record(message, "info", code)

    def warning(self, message, code=None):
        self.record(message, "warning", code)

    def error(self, message, code=None):
        self.record(message, "error", code)

    def flush(self, timeout=None):
        return True

    def messages(self, severity=None):
        return [m for m, s, _ in self.records if severity is None or s == severity]


@pytest.fixture
def events():
    return RecordingEventLog()


@pytest.fixture
def dirs(tmp_path):
    input_dir = tmp_path / "input"
    output_dir = tmp_path / "output"
    input_dir.mkdir()
    output_dir.mkdir()
    return input_dir, output_dir


@pytest.fixture
def cfg(tmp_path, dirs):
    input_dir, output_dir = dirs
    return Config(
        input_dir=str(input_dir),
        output_dir=str(output_dir),
        launcher_path=str(tmp_path / "launch" / "launcher"),
        event_log_path=str(tmp_path / "events.jsonl"),
        readiness_poll_ms=10,
        read_retry_secs=0.01,
        completion_poll_ms=10,
        run_poll_ms=10,
    )

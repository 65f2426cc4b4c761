# BotWatcher — event log
#
# The Logger collaborator. Every record goes to the Python logger and to a
# local JSONL audit file; if an event endpoint is configured it is POSTed
# there instead, from a background sender so callers never wait on the
# network. record() never raises.

import json
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import requests

logger = logging.getLogger("botwatcher.events")

SOURCE = "botwatcher"
TRACE_CODE = 22333   # attached to launch trace records
POST_TIMEOUT = 2     # seconds
MAX_PENDING = 1000   # unsent records held for the sender


class Severity:
    """Record severities. Nothing else is permitted."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    _LEVELS = {
        INFO: logging.INFO,
        WARNING: logging.WARNING,
        ERROR: logging.ERROR,
    }

    @classmethod
    def level(cls, severity: str) -> int:
        return cls._LEVELS.get(severity, logging.INFO)


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class EventLog:
    """Fire-and-forget event sink."""

    def __init__(self, jsonl_path=None, url: Optional[str] = None):
        self.jsonl_path = Path(jsonl_path).expanduser() if jsonl_path else None
        self.url = url
        self._write_lock = threading.Lock()
        self._pending = deque()
        self._send_lock = threading.Lock()
        self._sender: Optional[threading.Thread] = None

    def record(self, message: str, severity: str = Severity.INFO,
               code: Optional[int] = None) -> None:
        try:
            self._record(message, severity, code)
        except Exception as e:
            logger.error(f"Failed to record event: {e}")

    def info(self, message: str, code: Optional[int] = None) -> None:
        self.record(message, Severity.INFO, code)

    def warning(self, message: str, code: Optional[int] = None) -> None:
        self.record(message, Severity.WARNING, code)

    def error(self, message: str, code: Optional[int] = None) -> None:
        self.record(message, Severity.ERROR, code)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued records to be sent. Returns False on timeout."""
        with self._send_lock:
            sender = self._sender
        if sender is not None:
            sender.join(timeout)
            return not sender.is_alive()
        return True

    def _record(self, message: str, severity: str, code: Optional[int]) -> None:
        if code is None:
            logger.log(Severity.level(severity), message)
        else:
            logger.log(Severity.level(severity), f"[{code}] {message}")

        entry = {
            "ts": utc_now(),
            "source": SOURCE,
            "severity": severity,
            "message": message,
        }
        if code is not None:
            entry["code"] = code
        payload = json.dumps(entry, ensure_ascii=False)

        if self.url and self._enqueue(payload):
            return
        self._write_jsonl(payload)

    def _enqueue(self, payload: str) -> bool:
        """Hand a payload to the sender thread, starting it if idle."""
        with self._send_lock:
            if len(self._pending) >= MAX_PENDING:
                return False
            self._pending.append(payload)
            if self._sender is None:
                self._sender = threading.Thread(
                    target=self._send_worker, name="eventlog-sender", daemon=True
                )
                self._sender.start()
        return True

    def _send_worker(self) -> None:
        while True:
            with self._send_lock:
                if not self._pending:
                    self._sender = None
                    return
                payload = self._pending.popleft()
            if not self._post(payload):
                self._write_jsonl(payload)

    def _post(self, payload: str) -> bool:
        try:
            r = requests.post(
                self.url,
                data=payload,
                headers={"Content-Type": "application/json"},
                timeout=POST_TIMEOUT,
            )
            return r.ok
        except requests.RequestException:
            return False

    def _write_jsonl(self, payload: str) -> None:
        if self.jsonl_path is None:
            return
        try:
            with self._write_lock:
                self.jsonl_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.jsonl_path, "a", encoding="utf-8") as f:
                    f.write(payload + "\n")
        except OSError as e:
            logger.error(f"Failed to write event log: {e}")

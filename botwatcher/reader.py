# BotWatcher — descriptor file reader
#
# The producer may still be writing when the creation event fires, so the
# reader waits until it can take an exclusive lock on the file before reading.

import fcntl
import logging
import time
from pathlib import Path
from typing import Optional

from .errors import ReadError

logger = logging.getLogger(__name__)

READY_POLL_SECS = 0.1
READ_RETRY_SECS = 1.0


def file_in_use(path: Path) -> bool:
    """
    Return True if another process holds the file.

    Opens read/write and tries a non-blocking exclusive lock. Only a lock
    conflict means "in use"; errors opening the file propagate.
    """
    with open(path, "r+b") as f:
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return True
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    return False


def read_when_ready(
    path,
    poll_interval: float = READY_POLL_SECS,
    retry_delay: float = READ_RETRY_SECS,
    max_retries: Optional[int] = None,
) -> str:
    """
    Read a file as UTF-8 once no other process holds it.

    A leading byte-order mark is dropped. Waits indefinitely while the file
    is in use. A transient OSError during the read sleeps ``retry_delay``
    and starts over; ``max_retries=None`` retries forever, otherwise
    ReadError is raised once they run out. A missing or inaccessible file
    raises ReadError straight away.
    """
    path = Path(path)
    failures = 0
    while True:
        try:
            while file_in_use(path):
                logger.info(f"File {path} in use. Waiting...")
                time.sleep(poll_interval)
            return path.read_text(encoding="utf-8-sig")
        except FileNotFoundError as e:
            raise ReadError(f"File {path} no longer exists") from e
        except PermissionError as e:
            raise ReadError(f"Access to file {path} denied: {e}") from e
        except UnicodeDecodeError as e:
            raise ReadError(f"File {path} is not valid UTF-8 text") from e
        except OSError as e:
            failures += 1
            logger.error(f"Error reading file {path}. Error thrown is {e}.")
            if max_retries is not None and failures > max_retries:
                raise ReadError(
                    f"Giving up on {path} after {failures} failed reads: {e}"
                ) from e
            time.sleep(retry_delay)

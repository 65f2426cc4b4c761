# BotWatcher — job launcher
#
# Starts the external launcher executable detached. The process handle is
# never waited on: completion is signalled only by the marker file.
#
# Command line: launcher {job_name} {identifier} [{k1=v1^k2=v2}]
# No shell is involved; the argument string is passed as a single argv entry.

import logging
import os
import subprocess
import uuid
from pathlib import Path
from typing import List

from .descriptor import JobDescriptor
from .errors import LaunchError

logger = logging.getLogger(__name__)


class JobLauncher:
    """Builds and starts launcher command lines."""

    def __init__(self, launcher_path):
        self.launcher_path = Path(launcher_path)

    def build_command(self, descriptor: JobDescriptor,
                      identifier: uuid.UUID) -> List[str]:
        cmd = [str(self.launcher_path), descriptor.job_name, str(identifier)]
        if descriptor.arguments:
            cmd.append(descriptor.argument_string)
        return cmd

    def check(self) -> Path:
        """Return the resolved launcher path, or raise if it is missing."""
        path = self.launcher_path
        if not path.is_file():
            raise LaunchError(f"Cannot find the launcher at {path}")
        if not os.access(path, os.X_OK):
            raise LaunchError(f"Launcher {path} is not executable")
        return path.resolve()

    def launch(self, descriptor: JobDescriptor,
               identifier: uuid.UUID) -> subprocess.Popen:
        path = self.check()
        cmd = self.build_command(descriptor, identifier)
        cmd[0] = str(path)
        logger.info(f"Starting {' '.join(cmd)}")
        try:
            return subprocess.Popen(
                cmd,
                cwd=str(path.parent),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise LaunchError(f"Failed to start {path}: {e}") from e

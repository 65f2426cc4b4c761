"""Tests for the job launcher (subprocess mocked where noted)."""

import stat
import subprocess
import uuid
from unittest.mock import MagicMock, patch

import pytest

from botwatcher.descriptor import JobDescriptor, parse
from botwatcher.errors import LaunchError
from botwatcher.launcher import JobLauncher

JOB_ID = uuid.UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")


@pytest.fixture
def launcher_exe(tmp_path):
    launch_dir = tmp_path / "launch"
    launch_dir.mkdir()
    exe = launch_dir / "launcher"
    exe.write_text("#!/bin/sh\nexit 0\n")
    exe.chmod(exe.stat().st_mode | stat.S_IXUSR)
    return exe


class TestBuildCommand:

    def test_with_arguments(self, tmp_path):
        launcher = JobLauncher(tmp_path / "launcher")
        cmd = launcher.build_command(parse("build|env=prod^retries=3"), JOB_ID)
        assert cmd == [
            str(tmp_path / "launcher"),
            "build",
            "6ba7b810-9dad-11d1-80b4-00c04fd430c8",
            "env=prod^retries=3",
        ]

    def test_without_arguments(self, tmp_path):
        launcher = JobLauncher(tmp_path / "launcher")
        cmd = launcher.build_command(JobDescriptor("cleanup"), JOB_ID)
        assert cmd[1:] == ["cleanup", str(JOB_ID)]

    def test_value_with_spaces_stays_one_argument(self, tmp_path):
        launcher = JobLauncher(tmp_path / "launcher")
        cmd = launcher.build_command(parse("mail|subject=weekly report"), JOB_ID)
        assert cmd[-1] == "subject=weekly report"
        assert len(cmd) == 4


class TestLaunch:

    def test_missing_launcher(self, tmp_path):
        launcher = JobLauncher(tmp_path / "nope")
        with pytest.raises(LaunchError, match="Cannot find the launcher"):
            launcher.launch(JobDescriptor("build"), JOB_ID)

    def test_not_executable(self, tmp_path):
        exe = tmp_path / "launcher"
        exe.write_text("")
        exe.chmod(0o644)
        with pytest.raises(LaunchError, match="not executable"):
            JobLauncher(exe).launch(JobDescriptor("build"), JOB_ID)

    @patch("botwatcher.launcher.subprocess.Popen")
    def test_starts_detached_in_launcher_dir(self, mock_popen, launcher_exe):
        mock_popen.return_value = MagicMock()
        JobLauncher(launcher_exe).launch(parse("build|env=prod"), JOB_ID)

        args, kwargs = mock_popen.call_args
        assert args[0] == [str(launcher_exe.resolve()), "build", str(JOB_ID), "env=prod"]
        assert kwargs["cwd"] == str(launcher_exe.resolve().parent)
        assert kwargs["start_new_session"] is True
        assert kwargs["stdout"] is subprocess.DEVNULL
        assert kwargs["stderr"] is subprocess.DEVNULL
        assert "shell" not in kwargs

    @patch("botwatcher.launcher.subprocess.Popen")
    def test_does_not_wait_on_child(self, mock_popen, launcher_exe):
        proc = MagicMock()
        mock_popen.return_value = proc
        result = JobLauncher(launcher_exe).launch(JobDescriptor("build"), JOB_ID)
        assert result is proc
        proc.wait.assert_not_called()
        proc.communicate.assert_not_called()

    @patch("botwatcher.launcher.subprocess.Popen", side_effect=OSError("exec format error"))
    def test_start_failure_is_launch_error(self, _mock_popen, launcher_exe):
        with pytest.raises(LaunchError, match="exec format error"):
            JobLauncher(launcher_exe).launch(JobDescriptor("build"), JOB_ID)

    def test_real_process_starts(self, launcher_exe):
        proc = JobLauncher(launcher_exe).launch(JobDescriptor("build"), JOB_ID)
        assert proc.wait(timeout=5) == 0

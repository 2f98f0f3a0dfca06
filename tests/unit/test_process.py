"""Tests for the external process runner."""

import subprocess
from unittest.mock import patch

import pytest

from kbsprov.core.errors import CommandError
from kbsprov.core.process import get_hardware_platform, run_command


def completed(returncode=0, stdout=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


class TestRunCommand:
    """Tests for run_command."""

    @patch("kbsprov.core.process.subprocess.run", return_value=completed(stdout="applied\n"))
    def test_returns_combined_output(self, mock_run):
        assert run_command(["kubectl", "apply", "-k", "base"]) == "applied\n"

        kwargs = mock_run.call_args[1]
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["env"] is None

    @patch("kbsprov.core.process.subprocess.run", return_value=completed())
    def test_env_merged_over_environment(self, mock_run, monkeypatch):
        monkeypatch.setenv("HOME", "/home/ci")

        run_command(["kubectl", "get", "pods"], env={"KUBECONFIG": "/tmp/kc"}, cwd="/work")

        kwargs = mock_run.call_args[1]
        assert kwargs["env"]["KUBECONFIG"] == "/tmp/kc"
        assert kwargs["env"]["HOME"] == "/home/ci"
        assert kwargs["cwd"] == "/work"

    @patch("kbsprov.core.process.subprocess.run", return_value=completed(2, "error: no objects passed\n"))
    def test_non_zero_exit_raises(self, _):
        with pytest.raises(CommandError) as exc_info:
            run_command(["kubectl", "apply", "-k", "base"])

        error = exc_info.value
        assert error.returncode == 2
        assert error.output == "error: no objects passed\n"
        assert error.command == ["kubectl", "apply", "-k", "base"]
        assert "no objects passed" in str(error)

    @patch("kbsprov.core.process.subprocess.run", side_effect=FileNotFoundError("scp"))
    def test_missing_executable(self, _):
        with pytest.raises(CommandError) as exc_info:
            run_command(["scp", "a", "b"])

        assert "scp executable not found" in str(exc_info.value)
        assert exc_info.value.returncode is None

    @patch(
        "kbsprov.core.process.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd=["ssh"], timeout=5, output=b"partial\xff"),
    )
    def test_timeout(self, _):
        with pytest.raises(CommandError) as exc_info:
            run_command(["ssh", "node"], timeout=5)

        assert "timed out" in str(exc_info.value)
        assert exc_info.value.output == "partial\ufffd"

    def test_undecodable_output_is_replaced(self):
        """Test that stray non-UTF-8 bytes do not escape as UnicodeDecodeError."""
        output = run_command(["sh", "-c", "printf 'ok\\377'"])

        assert output == "ok\ufffd"

    def test_undecodable_output_on_failure_raises_command_error(self):
        with pytest.raises(CommandError) as exc_info:
            run_command(["sh", "-c", "printf '\\377\\376'; exit 3"])

        assert exc_info.value.returncode == 3
        assert exc_info.value.output == "\ufffd\ufffd"

    @patch("kbsprov.core.process.subprocess.run", return_value=completed())
    def test_decodes_utf8_with_replacement(self, mock_run):
        run_command(["kbs-client", "--help"])

        kwargs = mock_run.call_args[1]
        assert kwargs["encoding"] == "utf-8"
        assert kwargs["errors"] == "replace"


class TestHardwarePlatform:
    """Tests for architecture detection."""

    @patch("kbsprov.core.process.subprocess.run", return_value=completed(stdout="s390x\n"))
    def test_strips_newline(self, mock_run):
        assert get_hardware_platform() == "s390x"
        assert mock_run.call_args[0][0] == ["uname", "-m"]

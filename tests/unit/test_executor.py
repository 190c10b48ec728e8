"""
Unit tests for the shell executor.
"""

import pytest

from queuectl.errors import ExecutionError
from queuectl.worker.executor import ShellExecutor


class TestShellExecutor:
    """Tests for ShellExecutor against the real shell."""

    @pytest.fixture
    def executor(self) -> ShellExecutor:
        return ShellExecutor()

    async def test_success_captures_output(self, executor: ShellExecutor):
        output = await executor.run("echo hello")

        assert output.exit_code == 0
        assert output.stdout.strip() == "hello"
        assert output.duration_seconds >= 0

    async def test_non_zero_exit_raises(self, executor: ShellExecutor):
        with pytest.raises(ExecutionError) as exc_info:
            await executor.run("exit 3")

        assert exc_info.value.exit_code == 3
        assert exc_info.value.reason == "exit code 3"

    async def test_reason_prefers_stderr(self, executor: ShellExecutor):
        with pytest.raises(ExecutionError) as exc_info:
            await executor.run("echo out; echo broken >&2; exit 1")

        assert exc_info.value.reason == "exit code 1: broken"

    async def test_reason_falls_back_to_stdout(self, executor: ShellExecutor):
        with pytest.raises(ExecutionError) as exc_info:
            await executor.run("echo only-stdout; exit 2")

        assert exc_info.value.reason == "exit code 2: only-stdout"

    async def test_unknown_command(self, executor: ShellExecutor):
        with pytest.raises(ExecutionError) as exc_info:
            await executor.run("definitely-not-a-real-command-xyz")

        assert exc_info.value.exit_code == 127
        assert exc_info.value.reason.startswith("exit code 127")

    async def test_timeout_kills_command(self, executor: ShellExecutor):
        with pytest.raises(ExecutionError) as exc_info:
            await executor.run("sleep 5", timeout=0.2)

        assert exc_info.value.reason == "Command timed out after 0.2s"
        assert exc_info.value.exit_code is None

    async def test_default_timeout_applies(self):
        executor = ShellExecutor(default_timeout=0.2)

        with pytest.raises(ExecutionError, match="timed out"):
            await executor.run("sleep 5")

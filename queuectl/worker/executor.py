"""
Shell command execution.

Jobs are plain shell command strings. Commands may run more than once for
the same job (at-least-once delivery), so they should be idempotent.
"""

import asyncio
import logging
import time

from queuectl.errors import ExecutionError
from queuectl.types.job import CommandOutput
from queuectl.utils import truncate_error

logger = logging.getLogger(__name__)

# Grace period between SIGKILL and giving up on reaping the child
_KILL_WAIT_SECONDS = 5.0


class ShellExecutor:
    """
    Runs commands through the system shell with asyncio subprocesses.

    Output is captured in full. A non-zero exit, a timeout or a spawn
    failure raises ExecutionError with a human-readable reason.
    """

    def __init__(self, default_timeout: float | None = None):
        """
        Initialize the executor.

        Args:
            default_timeout: Timeout in seconds used when run() gets none.
        """
        self.default_timeout = default_timeout

    async def run(self, command: str, timeout: float | None = None) -> CommandOutput:
        """
        Run a command and wait for it to finish.

        Args:
            command: Shell command line.
            timeout: Seconds before the process is killed.

        Returns:
            CommandOutput of a zero-exit run.

        Raises:
            ExecutionError: On non-zero exit, timeout or spawn failure.
        """
        timeout = timeout if timeout is not None else self.default_timeout
        start = time.monotonic()

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExecutionError(f"Failed to start command: {e}") from e

        try:
            stdout_b, stderr_b = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            await _kill(process)
            logger.warning(
                "Command timed out",
                extra={"command": command, "timeout": timeout},
            )
            raise ExecutionError(f"Command timed out after {timeout:g}s")
        except asyncio.CancelledError:
            await _kill(process)
            raise

        duration = time.monotonic() - start
        stdout = stdout_b.decode(errors="replace")
        stderr = stderr_b.decode(errors="replace")
        exit_code = process.returncode

        if exit_code != 0:
            raise ExecutionError(
                _failure_reason(exit_code, stdout, stderr),
                exit_code=exit_code,
            )

        return CommandOutput(
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            duration_seconds=duration,
        )


def _failure_reason(exit_code: int, stdout: str, stderr: str) -> str:
    detail = stderr.strip() or stdout.strip()
    if exit_code == 127 and not detail:
        detail = "command not found"
    if detail:
        return truncate_error(f"exit code {exit_code}: {detail}")
    return f"exit code {exit_code}"


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=_KILL_WAIT_SECONDS)
    except asyncio.TimeoutError:
        logger.error("Process did not exit after SIGKILL", extra={"pid": process.pid})

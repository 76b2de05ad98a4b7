"""Shell dispatch for recipe commands and scripts."""

import asyncio
import logging
import os
import shlex
import signal
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path

from mdmake.core.models import CommandResult

logger = logging.getLogger(__name__)

DEFAULT_SHELL = ["sh", "-c"]
STRICT_SHELL = ["bash", "-eo", "pipefail"]


class ShellExecutor(ABC):
    """Abstract base class for running recipe text."""

    @abstractmethod
    async def run_command(
        self,
        command: str,
        cwd: Path,
        target: str = "",
        timeout: float | None = None,
    ) -> CommandResult:
        """Run one command line through the baseline shell."""
        pass

    @abstractmethod
    async def run_script(
        self,
        script: str,
        cwd: Path,
        shell: str | None = None,
        trace: bool = False,
        target: str = "",
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a whole recipe body, under the strict shell or `shell` when given."""
        pass


class SubprocessShellExecutor(ShellExecutor):
    """Run recipes using subprocesses."""

    async def run_command(
        self,
        command: str,
        cwd: Path,
        target: str = "",
        timeout: float | None = None,
    ) -> CommandResult:
        """Run `sh -c <command>`."""
        return await self._execute([*DEFAULT_SHELL, command], command, cwd, target, timeout)

    async def run_script(
        self,
        script: str,
        cwd: Path,
        shell: str | None = None,
        trace: bool = False,
        target: str = "",
        timeout: float | None = None,
    ) -> CommandResult:
        """Run `bash -eo pipefail [-x] -c <script>`, or `<shell> <script file>`."""
        if shell is None:
            cmd = [*STRICT_SHELL, *(["-x"] if trace else []), "-c", script]
            return await self._execute(cmd, script, cwd, target, timeout)

        # Interpreters disagree on inline flags (-c, -e, ...) but all accept a file
        fd, script_path = tempfile.mkstemp(prefix="mdmake-", suffix=".script")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(script)
            cmd = [*shlex.split(shell), script_path]
            return await self._execute(cmd, script, cwd, target, timeout)
        finally:
            os.unlink(script_path)

    async def _execute(
        self,
        cmd: list[str],
        display: str,
        cwd: Path,
        target: str,
        timeout: float | None,
    ) -> CommandResult:
        if not cwd.exists():
            raise FileNotFoundError(f"Working directory does not exist: {cwd}")

        if not cwd.is_dir():
            raise ValueError(f"Working directory is not a directory: {cwd}")

        if timeout is not None and timeout <= 0:
            raise ValueError(f"Timeout must be positive, got: {timeout}")

        logger.debug(f"Executing in {cwd}: {cmd[0]} ({len(display.splitlines())} line(s))")

        start_time = time.time()
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                start_new_session=True,  # Create new process group for proper cleanup
            )
        except OSError as e:
            # Same exit code a shell reports for a command it cannot run
            logger.error(f"Could not start '{cmd[0]}' for '{target}': {e}")
            return CommandResult(
                success=False,
                exit_code=127,
                stdout="",
                stderr=f"Could not start {cmd[0]}: {e}",
                duration=time.time() - start_time,
                command=display,
                target=target,
            )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            duration = time.time() - start_time
            logger.error(f"Command for '{target}' timed out after {timeout}s")
            await self._kill(process)
            return CommandResult(
                success=False,
                exit_code=-1,
                stdout="",
                stderr=f"Execution timed out after {timeout} seconds",
                duration=duration,
                command=display,
                target=target,
            )
        except asyncio.CancelledError:
            logger.info(f"Command for '{target}' was cancelled, killing process")
            await self._kill(process)
            raise  # Re-raise to propagate cancellation

        duration = time.time() - start_time
        logger.debug(f"Command for '{target}' finished in {duration:.2f}s with exit code {process.returncode}")

        return CommandResult(
            success=process.returncode == 0,
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
            duration=duration,
            command=display,
            target=target,
        )

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        try:
            # Kill entire process group to cleanup children
            os.killpg(process.pid, signal.SIGKILL)
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Process did not terminate within 5s after SIGKILL (may have orphaned children)")
        except ProcessLookupError:
            # Process already terminated
            pass


class DryRunShellExecutor(ShellExecutor):
    """Records what would run without spawning anything."""

    def __init__(self, mock_success: bool = True, mock_output: str = "") -> None:
        self.mock_success = mock_success
        self.mock_output = mock_output
        self.executed: list[str] = []

    def _result(self, command: str, target: str) -> CommandResult:
        self.executed.append(command)
        logger.debug(f"DryRun: Would execute '{command}' for '{target}'")
        return CommandResult(
            success=self.mock_success,
            exit_code=0 if self.mock_success else 1,
            stdout=self.mock_output,
            stderr="" if self.mock_success else "Mock error",
            duration=0.0,
            command=command,
            target=target,
        )

    async def run_command(
        self,
        command: str,
        cwd: Path,
        target: str = "",
        timeout: float | None = None,
    ) -> CommandResult:
        """Return mock result without executing."""
        return self._result(command, target)

    async def run_script(
        self,
        script: str,
        cwd: Path,
        shell: str | None = None,
        trace: bool = False,
        target: str = "",
        timeout: float | None = None,
    ) -> CommandResult:
        """Return mock result without executing."""
        return self._result(script, target)

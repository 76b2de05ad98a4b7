"""Tests for shell executors."""

from pathlib import Path

import pytest

from mdmake.core.executor import DryRunShellExecutor, SubprocessShellExecutor


class TestDryRunShellExecutor:
    """Tests for DryRunShellExecutor."""

    @pytest.mark.anyio
    async def test_run_command_success(self, tmp_path: Path) -> None:
        """Dry run executor returns mock success."""
        executor = DryRunShellExecutor(mock_success=True, mock_output="Mock output")

        result = await executor.run_command("echo hi", tmp_path, target="greet")

        assert result.success is True
        assert result.exit_code == 0
        assert result.stdout == "Mock output"
        assert result.stderr == ""
        assert result.target == "greet"
        assert result.command == "echo hi"

    @pytest.mark.anyio
    async def test_run_command_failure(self, tmp_path: Path) -> None:
        """Dry run executor returns mock failure."""
        executor = DryRunShellExecutor(mock_success=False)

        result = await executor.run_command("echo hi", tmp_path)

        assert result.success is False
        assert result.exit_code == 1
        assert result.stderr == "Mock error"

    @pytest.mark.anyio
    async def test_tracks_executed(self, tmp_path: Path) -> None:
        """Dry run executor records commands and scripts in order."""
        executor = DryRunShellExecutor()

        await executor.run_command("make-a", tmp_path)
        await executor.run_script("line1\nline2\n", tmp_path)
        await executor.run_command("make-b", tmp_path)

        assert executor.executed == ["make-a", "line1\nline2\n", "make-b"]

    @pytest.mark.anyio
    async def test_never_spawns(self, tmp_path: Path) -> None:
        """Nothing touches the filesystem."""
        executor = DryRunShellExecutor()

        await executor.run_command("touch created", tmp_path)

        assert not (tmp_path / "created").exists()


class TestSubprocessShellExecutor:
    """Tests for SubprocessShellExecutor."""

    @pytest.mark.anyio
    async def test_run_command_success(self, tmp_path: Path) -> None:
        """Run successful command."""
        executor = SubprocessShellExecutor()

        result = await executor.run_command("echo Success!", tmp_path, target="ok")

        assert result.success is True
        assert result.exit_code == 0
        assert result.stdout == "Success!\n"
        assert result.target == "ok"
        assert result.duration >= 0

    @pytest.mark.anyio
    async def test_run_command_failure(self, tmp_path: Path) -> None:
        """Run failing command."""
        executor = SubprocessShellExecutor()

        result = await executor.run_command("echo Failing...; exit 3", tmp_path)

        assert result.success is False
        assert result.exit_code == 3
        assert "Failing..." in result.stdout

    @pytest.mark.anyio
    async def test_capture_stdout_and_stderr(self, tmp_path: Path) -> None:
        """Capture stdout and stderr separately."""
        executor = SubprocessShellExecutor()

        result = await executor.run_command("echo out; echo err >&2", tmp_path)

        assert result.stdout == "out\n"
        assert result.stderr == "err\n"

    @pytest.mark.anyio
    async def test_runs_in_working_directory(self, tmp_path: Path) -> None:
        """Commands run in the given directory."""
        executor = SubprocessShellExecutor()

        await executor.run_command("touch here.txt", tmp_path)

        assert (tmp_path / "here.txt").exists()

    @pytest.mark.anyio
    async def test_run_with_timeout(self, tmp_path: Path) -> None:
        """Timeout on long-running command."""
        executor = SubprocessShellExecutor()

        result = await executor.run_command("sleep 10", tmp_path, timeout=0.5)

        assert result.success is False
        assert result.exit_code == -1
        assert "timed out" in result.stderr.lower()

    @pytest.mark.anyio
    async def test_script_stops_on_first_error(self, tmp_path: Path) -> None:
        """Strict shell aborts at the first failing line."""
        executor = SubprocessShellExecutor()

        result = await executor.run_script("echo a\nfalse\necho b\n", tmp_path)

        assert result.success is False
        assert result.stdout == "a\n"

    @pytest.mark.anyio
    async def test_script_pipefail(self, tmp_path: Path) -> None:
        """A failure inside a pipeline fails the script."""
        executor = SubprocessShellExecutor()

        result = await executor.run_script("false | cat\necho after\n", tmp_path)

        assert result.success is False
        assert "after" not in result.stdout

    @pytest.mark.anyio
    async def test_script_trace(self, tmp_path: Path) -> None:
        """Tracing echoes commands to stderr."""
        executor = SubprocessShellExecutor()

        result = await executor.run_script("echo traced\n", tmp_path, trace=True)

        assert result.success is True
        assert "+ echo traced" in result.stderr

    @pytest.mark.anyio
    async def test_script_shares_state_between_lines(self, tmp_path: Path) -> None:
        """Unlike default mode, variables survive across lines."""
        executor = SubprocessShellExecutor()

        result = await executor.run_script("X=42\necho $X\n", tmp_path)

        assert result.stdout == "42\n"

    @pytest.mark.anyio
    async def test_custom_shell(self, tmp_path: Path) -> None:
        """Custom shells receive the script as a file."""
        executor = SubprocessShellExecutor()

        result = await executor.run_script("echo from sh\n", tmp_path, shell="sh")

        assert result.success is True
        assert result.stdout == "from sh\n"

    @pytest.mark.anyio
    async def test_custom_shell_failure_only_from_exit_status(self, tmp_path: Path) -> None:
        """A custom shell that does not stop on errors keeps going."""
        executor = SubprocessShellExecutor()

        lenient = await executor.run_script("false\necho still here\n", tmp_path, shell="sh")
        strict = await executor.run_script("false\necho still here\n", tmp_path, shell="sh -e")

        assert lenient.success is True
        assert "still here" in lenient.stdout
        assert strict.success is False

    @pytest.mark.anyio
    async def test_custom_shell_not_installed(self, tmp_path: Path) -> None:
        """An interpreter that cannot be started is a failed result."""
        executor = SubprocessShellExecutor()

        result = await executor.run_script("print(1)\n", tmp_path, shell="no-such-interpreter-mdmake")

        assert result.success is False
        assert result.exit_code == 127
        assert "no-such-interpreter-mdmake" in result.stderr

    @pytest.mark.anyio
    async def test_nonexistent_working_directory(self) -> None:
        """Run fails when working directory doesn't exist."""
        executor = SubprocessShellExecutor()

        with pytest.raises(FileNotFoundError, match="Working directory does not exist"):
            await executor.run_command("true", Path("/nonexistent/directory"))

    @pytest.mark.anyio
    async def test_file_as_working_directory(self, tmp_path: Path) -> None:
        """Run fails when working directory is a file."""
        executor = SubprocessShellExecutor()
        cwd = tmp_path / "file.txt"
        cwd.write_text("not a directory")

        with pytest.raises(ValueError, match="not a directory"):
            await executor.run_command("true", cwd)

    @pytest.mark.anyio
    async def test_zero_timeout(self, tmp_path: Path) -> None:
        """Run fails with zero timeout."""
        executor = SubprocessShellExecutor()

        with pytest.raises(ValueError, match="Timeout must be positive"):
            await executor.run_command("true", tmp_path, timeout=0)

    @pytest.mark.anyio
    async def test_handles_cancellation(self, tmp_path: Path) -> None:
        """Run properly cleans up when cancelled."""
        import asyncio

        executor = SubprocessShellExecutor()

        # Start a long-running task
        task = asyncio.create_task(executor.run_command("sleep 30", tmp_path))

        # Give it a moment to start
        await asyncio.sleep(0.1)

        # Cancel the task
        task.cancel()

        # Should raise CancelledError
        with pytest.raises(asyncio.CancelledError):
            await task

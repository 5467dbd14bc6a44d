"""Tests for child process execution."""

import sys
import time
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from script_test_action.process import _terminate, run_process, spawn_options


async def test_captures_output_and_exit_code() -> None:
    """Returns stdout, stderr and the exit status."""
    outcome = await run_process(
        [sys.executable, "-c", "import sys; print('out'); sys.stderr.write('err'); sys.exit(3)"],
        timeout=30,
    )

    assert outcome.returncode == 3
    assert outcome.stdout.strip() == "out"
    assert outcome.stderr == "err"
    assert outcome.timed_out is False
    assert not outcome.succeeded


async def test_succeeded_on_zero_exit() -> None:
    """A clean exit is a success."""
    outcome = await run_process([sys.executable, "-c", "pass"], timeout=30)

    assert outcome.succeeded


async def test_uses_working_directory_and_environment(tmp_path: Path) -> None:
    """The child sees the given cwd and environment."""
    outcome = await run_process(
        [sys.executable, "-c", "import os; print(os.getcwd()); print(os.environ['MARKER'])"],
        timeout=30,
        cwd=tmp_path,
        env={"MARKER": "set", "PATH": ""},
    )

    cwd, marker = outcome.stdout.splitlines()
    assert Path(cwd).resolve() == tmp_path.resolve()
    assert marker == "set"


async def test_stdin_is_closed() -> None:
    """Reading stdin gets end-of-file instead of blocking."""
    outcome = await run_process(
        [sys.executable, "-c", "import sys; print(repr(sys.stdin.read()))"],
        timeout=30,
    )

    assert outcome.stdout.strip() == "''"


async def test_kills_on_timeout() -> None:
    """A process exceeding the deadline is killed and flagged."""
    started = time.monotonic()

    outcome = await run_process(
        [sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5
    )

    assert outcome.timed_out is True
    assert not outcome.succeeded
    assert time.monotonic() - started < 10


@pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")
async def test_kills_grandchildren_on_timeout(tmp_path: Path) -> None:
    """Processes spawned by the child are killed with it."""
    marker = tmp_path / "marker"
    grandchild = (
        f"import time, pathlib; time.sleep(1.5); pathlib.Path({str(marker)!r}).write_text('x')"
    )
    child = (
        "import subprocess, sys, time; "
        f"subprocess.Popen([sys.executable, '-c', {grandchild!r}]); time.sleep(30)"
    )

    outcome = await run_process([sys.executable, "-c", child], timeout=0.5)
    time.sleep(2)

    assert outcome.timed_out is True
    assert not marker.exists()


async def test_raises_for_missing_program(tmp_path: Path) -> None:
    """Launch failures propagate as OSError."""
    with pytest.raises(OSError):
        await run_process([str(tmp_path / "missing")], timeout=5)


@pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")
async def test_kills_orphaned_grandchildren_after_parent_exits(tmp_path: Path) -> None:
    """Children left running by an exited parent are killed on timeout."""
    marker = tmp_path / "marker"
    grandchild = (
        f"import time, pathlib; time.sleep(1.5); pathlib.Path({str(marker)!r}).write_text('x')"
    )
    child = f"import subprocess, sys; subprocess.Popen([sys.executable, '-c', {grandchild!r}])"

    outcome = await run_process([sys.executable, "-c", child], timeout=0.5)
    time.sleep(2)

    assert outcome.timed_out is True
    assert not marker.exists()


@pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")
def test_spawn_options_start_new_session() -> None:
    """POSIX children lead their own session."""
    assert spawn_options() == {"start_new_session": True}


class TestWindowsTeardown:
    """Tests for process tree handling on Windows."""

    def test_spawn_options_create_process_group(self) -> None:
        """Windows children are started in a new process group."""
        with (
            patch("script_test_action.process.IS_WINDOWS", True),
            patch("script_test_action.process.subprocess.CREATE_NEW_PROCESS_GROUP", 512, create=True),
        ):
            assert spawn_options() == {"creationflags": 512}

    async def test_terminate_kills_tree_with_taskkill(self) -> None:
        """The whole tree is killed with taskkill /T."""
        process = Mock(pid=4242, returncode=None, wait=AsyncMock(return_value=1))
        killer = Mock(wait=AsyncMock(return_value=0))
        create = AsyncMock(return_value=killer)

        with (
            patch("script_test_action.process.IS_WINDOWS", True),
            patch("script_test_action.process.asyncio.create_subprocess_exec", create),
        ):
            await _terminate(process)

        assert create.call_args.args == ("taskkill", "/F", "/T", "/PID", "4242")
        killer.wait.assert_awaited_once()
        process.kill.assert_called_once()
        process.wait.assert_awaited_once()

    async def test_terminate_falls_back_to_kill(self, caplog: pytest.LogCaptureFixture) -> None:
        """When taskkill cannot run the direct child is still killed."""
        process = Mock(pid=4242, returncode=None, wait=AsyncMock(return_value=1))

        with (
            patch("script_test_action.process.IS_WINDOWS", True),
            patch(
                "script_test_action.process.asyncio.create_subprocess_exec",
                AsyncMock(side_effect=FileNotFoundError("taskkill")),
            ),
        ):
            await _terminate(process)

        assert "taskkill failed for process 4242" in caplog.text
        process.kill.assert_called_once()
        process.wait.assert_awaited_once()

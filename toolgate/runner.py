"""Bounded shell command execution used by auto-verification and run_cmd."""

import logging
import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path

MAX_CAPTURE_BYTES = 1 * 1024 * 1024  # 1MB per stream
MAX_TIMEOUT = 600
_KILL_WAIT_TIMEOUT = 5  # seconds to wait for process to die after kill signals

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def output(self) -> str:
        return self.stdout + self.stderr

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def _kill_process_tree(proc: subprocess.Popen) -> None:
    """SIGKILL the session a command was started in, then reap the shell.

    Compilers and test workers forked by the command go with it. On Windows
    ``taskkill /T`` walks the tree instead.
    """
    if sys.platform == "win32":
        taskkill = ["taskkill", "/T", "/F", "/PID", str(proc.pid)]
        try:
            subprocess.run(taskkill, capture_output=True, timeout=_KILL_WAIT_TIMEOUT)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("taskkill for pid %d failed: %s", proc.pid, e)
    else:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except OSError as e:
            logger.debug("killpg for pid %d failed: %s", proc.pid, e)

    if proc.poll() is None:
        proc.kill()
    try:
        proc.wait(timeout=_KILL_WAIT_TIMEOUT)
    except subprocess.TimeoutExpired:
        logger.warning("pid %d still running after kill", proc.pid)


def _drain(stream, chunks: list[bytes]) -> None:
    total = 0
    try:
        while True:
            chunk = stream.read(4096)
            if not chunk:
                break
            if total >= MAX_CAPTURE_BYTES:
                continue  # keep draining to prevent pipe backpressure
            chunks.append(chunk[: MAX_CAPTURE_BYTES - total])
            total += len(chunks[-1])
    except (OSError, ValueError):
        pass  # pipe closed/broken after kill


def exec_command(command: str, cwd: str | Path, timeout: int = 120) -> CommandResult:
    """Run a shell string via sh -c (Unix) or cmd.exe /c (Windows).

    A command that outlives ``timeout`` seconds has its process tree killed
    and comes back with ``timed_out=True``. Start failures are reported as
    exit code 127 with the OS error on stderr.
    """
    timeout = max(1, min(timeout, MAX_TIMEOUT))

    if sys.platform == "win32":
        shell_cmd = ["cmd.exe", "/c", command]
    else:
        shell_cmd = ["/bin/sh", "-c", command]

    popen_kwargs: dict = dict(
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.DEVNULL,
        cwd=str(cwd),
    )
    if sys.platform != "win32":
        popen_kwargs["start_new_session"] = True

    try:
        proc = subprocess.Popen(shell_cmd, **popen_kwargs)
    except OSError as e:
        return CommandResult(127, "", f"failed to start command: {e}")

    out_chunks: list[bytes] = []
    err_chunks: list[bytes] = []
    readers = [
        threading.Thread(target=_drain, args=(proc.stdout, out_chunks), daemon=True),
        threading.Thread(target=_drain, args=(proc.stderr, err_chunks), daemon=True),
    ]
    for reader in readers:
        reader.start()

    timed_out = False
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        _kill_process_tree(proc)

    for reader in readers:
        reader.join(timeout=2)
    proc.stdout.close()
    proc.stderr.close()

    return CommandResult(
        exit_code=proc.returncode if proc.returncode is not None else -1,
        stdout=b"".join(out_chunks).decode("utf-8", errors="replace"),
        stderr=b"".join(err_chunks).decode("utf-8", errors="replace"),
        timed_out=timed_out,
    )

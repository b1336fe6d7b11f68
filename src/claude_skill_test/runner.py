"""
Agent CLI process supervision

Runs the agent CLI for one prompt with a wall-clock bound and always hands
back whatever stdout/stderr was captured, whether the run finished, failed
or timed out.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_BINARY = "claude"

# Set by the agent CLI inside its own sessions; a child that sees it refuses
# to start.
NESTED_SESSION_ENV = "CLAUDECODE"

# Seconds a timed-out child gets between SIGTERM and SIGKILL, and again
# after SIGKILL for its pipes to reach EOF
TERMINATE_GRACE_S = 5

STATUS_OK = "ok"
STATUS_EXIT = "exit"
STATUS_TIMEOUT = "timeout"
STATUS_SPAWN_ERROR = "spawn_error"


@dataclass
class ExecResult:
    """Terminal outcome of one process run"""
    command: str
    status: str
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def timed_out(self) -> bool:
        return self.status == STATUS_TIMEOUT


def build_command(
    prompt: str,
    model: str,
    max_turns: int,
    binary: str = DEFAULT_BINARY,
    permission_mode: str = "bypassPermissions",
) -> list[str]:
    """Construct the agent CLI argv for one prompt."""
    return [
        binary, "-p", prompt,
        "--output-format", "stream-json",
        "--verbose",
        "--max-turns", str(max_turns),
        "--model", model,
        "--permission-mode", permission_mode,
    ]


def build_env(overrides: Optional[Mapping[str, Optional[str]]] = None) -> dict:
    """Return the child environment.

    Copies the current environment, drops the nested-session marker and
    applies ``overrides`` (a ``None`` value removes the key). ``os.environ``
    itself is left untouched.
    """
    env = os.environ.copy()
    env.pop(NESTED_SESSION_ENV, None)
    for key, value in (overrides or {}).items():
        if value is None:
            env.pop(key, None)
        else:
            env[key] = value
    return env


def _signal_group(proc: subprocess.Popen, sig: int) -> None:
    """Send ``sig`` to the child's whole process group."""
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass


def _decode(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _stop(proc: subprocess.Popen) -> tuple[str, str]:
    """Terminate a running child and collect the rest of its output.

    The child runs in its own session, so launchers and anything they
    started in the background are signalled too. A process that escaped the
    group can still hold the pipes open; after the second grace period the
    pipes are closed and only what was already read is returned.
    """
    _signal_group(proc, signal.SIGTERM)
    try:
        return proc.communicate(timeout=TERMINATE_GRACE_S)
    except subprocess.TimeoutExpired:
        logger.debug("pid %s ignored SIGTERM, killing", proc.pid)

    _signal_group(proc, signal.SIGKILL)
    try:
        return proc.communicate(timeout=TERMINATE_GRACE_S)
    except subprocess.TimeoutExpired as exc:
        # TimeoutExpired carries everything read so far, undecoded
        logger.debug("pipes of pid %s still open after SIGKILL, abandoning", proc.pid)
        stdout, stderr = _decode(exc.stdout), _decode(exc.stderr)

    for pipe in (proc.stdout, proc.stderr):
        if pipe is not None:
            pipe.close()
    proc.wait()
    return stdout, stderr


def run_agent(
    command: list[str],
    timeout_s: float,
    env: Optional[dict] = None,
) -> ExecResult:
    """Run ``command`` to completion or until ``timeout_s`` elapses.

    stdin is closed so the child can never wait on an operator, and the
    child starts its own session so a timeout stops everything it spawned.
    stdout and stderr are drained as they arrive, so a timed-out run still
    returns everything it wrote before it was stopped.

    Args:
        command: Full argv.
        timeout_s: Wall-clock bound in seconds.
        env: Child environment; defaults to ``build_env()``.

    Returns:
        ExecResult with status ok, exit, timeout or spawn_error.
    """
    binary = command[0] if command else ""
    command_display = shlex.join(command)
    logger.info("Spawning: %s", command_display)

    try:
        proc = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=env if env is not None else build_env(),
            start_new_session=True,
        )
    except OSError as exc:
        return ExecResult(
            command=command_display,
            status=STATUS_SPAWN_ERROR,
            error=f"Failed to spawn {binary}: {exc}",
        )

    try:
        stdout, stderr = proc.communicate(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        stdout, stderr = _stop(proc)
        logger.info("%s timed out after %ss", binary, timeout_s)
        if stderr:
            logger.debug("stderr: %s", stderr[:2000])
        return ExecResult(
            command=command_display,
            status=STATUS_TIMEOUT,
            stdout=stdout or "",
            stderr=stderr or "",
            exit_code=proc.returncode,
            error=f"Timed out after {timeout_s}s",
        )
    except BaseException:
        # Ctrl-C and friends: never leave the child or its group running
        _signal_group(proc, signal.SIGKILL)
        proc.wait()
        raise

    if stderr:
        logger.debug("stderr: %s", stderr[:2000])

    if proc.returncode != 0:
        return ExecResult(
            command=command_display,
            status=STATUS_EXIT,
            stdout=stdout,
            stderr=stderr,
            exit_code=proc.returncode,
            error=f"{binary} exited with code {proc.returncode}: {stderr.strip()}",
        )

    return ExecResult(
        command=command_display,
        status=STATUS_OK,
        stdout=stdout,
        stderr=stderr,
        exit_code=0,
    )

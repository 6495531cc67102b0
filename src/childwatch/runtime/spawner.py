"""OS-level spawning, signalling and probing of child processes.

childwatch runtime module

This module provides:
- spawn(): create a child with optional stdin/stdout/stderr pipes
- signal_process(): deliver a signal to any pid, classifying failures
- probe_exists(): non-intrusive existence check
- bring_to_foreground(): window activation (unsupported, always False)

Key design points:
- POSIX: start_new_session=True makes the child a process group leader, so
  KillFlags.CHILDREN can signal its whole group through killpg
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation, priority classes
  passed through creationflags, descendants found with psutil
- Priority 0..100 is mapped to a nice value (POSIX) or a priority class
  (Windows); failures to apply it are logged, never fatal
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Any

import psutil

from ..errors import SpawnError
from ..types import (
    PRIORITY_DEFAULT,
    PRIORITY_MAX,
    PRIORITY_MIN,
    KillError,
    KillFlags,
    ProcessSpec,
    is_valid_signal,
)
from .streams import PipeReader, PipeWriter

__all__ = [
    "SpawnResult",
    "spawn",
    "signal_process",
    "probe_exists",
    "bring_to_foreground",
    "priority_to_nice",
    "IS_WINDOWS",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Nice range on POSIX
NICE_HIGHEST = -20
NICE_LOWEST = 19


@dataclass
class SpawnResult:
    """What a successful spawn hands back to the launcher.

    Attributes:
        pid: OS process id of the child
        process: The asyncio process object, awaited by the reaper
        stdout: Reader for the child's stdout (redirected spawns only)
        stderr: Reader for the child's stderr (redirected spawns only)
        stdin: Writer for the child's stdin (redirected spawns only)
    """

    pid: int
    process: asyncio.subprocess.Process
    stdout: PipeReader | None = None
    stderr: PipeReader | None = None
    stdin: PipeWriter | None = None


def priority_to_nice(priority: int) -> int:
    """Map a 0..100 priority (50 = default) to a POSIX nice value."""
    priority = max(PRIORITY_MIN, min(priority, PRIORITY_MAX))
    nice = round((PRIORITY_DEFAULT - priority) * 20 / (PRIORITY_MAX - PRIORITY_DEFAULT))
    return max(NICE_HIGHEST, min(nice, NICE_LOWEST))


def _windows_priority_class(priority: int) -> int:
    """Map a 0..100 priority to a Windows priority class flag."""
    if priority < 20:
        return subprocess.IDLE_PRIORITY_CLASS
    if priority < 40:
        return subprocess.BELOW_NORMAL_PRIORITY_CLASS
    if priority <= 60:
        return subprocess.NORMAL_PRIORITY_CLASS
    if priority < 80:
        return subprocess.ABOVE_NORMAL_PRIORITY_CLASS
    return subprocess.HIGH_PRIORITY_CLASS


def _build_subprocess_kwargs(
    spec: ProcessSpec,
    *,
    redirect: bool,
    new_session: bool,
    priority: int,
) -> dict[str, Any]:
    """Build platform-specific kwargs for asyncio.create_subprocess_exec."""
    kwargs: dict[str, Any] = {}

    if spec.cwd is not None:
        kwargs["cwd"] = spec.cwd
    if spec.env is not None:
        kwargs["env"] = dict(spec.env)

    if redirect:
        kwargs["stdin"] = asyncio.subprocess.PIPE
        kwargs["stdout"] = asyncio.subprocess.PIPE
        kwargs["stderr"] = asyncio.subprocess.PIPE
    # Not redirected: the child inherits our stdio

    if IS_WINDOWS:
        creationflags = 0
        if new_session:
            creationflags |= subprocess.CREATE_NEW_PROCESS_GROUP
        if priority != PRIORITY_DEFAULT:
            creationflags |= _windows_priority_class(priority)
        if creationflags:
            kwargs["creationflags"] = creationflags
    elif new_session:
        # POSIX: start_new_session (equivalent to setsid)
        kwargs["start_new_session"] = True

    return kwargs


def _apply_posix_priority(pid: int, priority: int) -> None:
    """Apply the nice value to a freshly started child.

    Raising priority above the default usually needs privileges; the child
    keeps running at its inherited priority when that fails.
    """
    nice = priority_to_nice(priority)
    try:
        os.setpriority(os.PRIO_PROCESS, pid, nice)
        logger.debug(f"Set nice={nice} for pid={pid} (priority={priority})")
    except ProcessLookupError:
        logger.debug(f"Child pid={pid} exited before its priority was set")
    except OSError as e:
        logger.warning(f"Could not set priority={priority} (nice={nice}) for pid={pid}: {e}")


async def spawn(
    spec: ProcessSpec,
    *,
    redirect: bool = False,
    new_session: bool = False,
    priority: int = PRIORITY_DEFAULT,
    pipe_limit: int | None = None,
) -> SpawnResult:
    """Start a child process.

    Args:
        spec: Process specification
        redirect: Create pipes for stdin/stdout/stderr
        new_session: Make the child a session/process group leader
        priority: Scheduling hint, 0..100
        pipe_limit: Buffer limit of the read pipes (None = CW_PIPE_BUFFER_LIMIT)

    Returns:
        SpawnResult describing the child

    Raises:
        SpawnError: If the OS could not create the process or rejected the
            arguments (e.g. an embedded NUL byte)
    """
    kwargs = _build_subprocess_kwargs(
        spec,
        redirect=redirect,
        new_session=new_session,
        priority=priority,
    )

    try:
        process = await asyncio.create_subprocess_exec(*spec.argv, **kwargs)
    except (OSError, ValueError) as e:
        raise SpawnError(spec.argv, e) from e

    logger.debug(
        f"Started subprocess pid={process.pid} "
        f"argv={spec.argv[0]} cwd={spec.cwd} redirect={redirect}"
    )

    if not IS_WINDOWS and priority != PRIORITY_DEFAULT:
        _apply_posix_priority(process.pid, priority)

    result = SpawnResult(pid=process.pid, process=process)
    if redirect:
        # Any endpoint may be missing; the handle tolerates partial redirection
        if process.stdout is not None:
            result.stdout = PipeReader(
                process.stdout, name=f"stdout[{process.pid}]", limit=pipe_limit
            )
        if process.stderr is not None:
            result.stderr = PipeReader(
                process.stderr, name=f"stderr[{process.pid}]", limit=pipe_limit
            )
        if process.stdin is not None:
            result.stdin = PipeWriter(process.stdin, name=f"stdin[{process.pid}]")

    return result


def _windows_kill_tree(pid: int, sig: int) -> None:
    """Signal pid and all of its descendants on Windows."""
    parent = psutil.Process(pid)
    for child in parent.children(recursive=True):
        try:
            child.send_signal(sig)
        except psutil.NoSuchProcess:
            pass
    parent.send_signal(sig)


def signal_process(pid: int, sig: int, flags: KillFlags = KillFlags.NOCHILDREN) -> KillError:
    """Send a signal to an arbitrary pid.

    With KillFlags.CHILDREN on POSIX the signal goes to the process group led
    by pid; a pid that does not lead a group yields NO_PROCESS.

    Args:
        pid: Target process id
        sig: Signal number (0 only checks deliverability)
        flags: KillFlags.NOCHILDREN or KillFlags.CHILDREN

    Returns:
        KillError.OK or the failure kind
    """
    if pid <= 0:
        return KillError.NO_PROCESS
    if not is_valid_signal(sig):
        return KillError.BAD_SIGNAL

    try:
        if flags & KillFlags.CHILDREN:
            if IS_WINDOWS:
                _windows_kill_tree(pid, sig)
            else:
                os.killpg(pid, sig)
        else:
            os.kill(pid, sig)
    except (ProcessLookupError, psutil.NoSuchProcess):
        return KillError.NO_PROCESS
    except (PermissionError, psutil.AccessDenied):
        return KillError.ACCESS_DENIED
    except OSError as e:
        if e.errno == errno.EINVAL:
            return KillError.BAD_SIGNAL
        logger.warning(f"Failed to send signal {sig} to pid={pid}: {e}")
        return KillError.ERROR

    logger.debug(f"Sent signal {sig} to pid={pid} (flags={flags!r})")
    return KillError.OK


def probe_exists(pid: int) -> bool:
    """Check whether pid refers to a live (or not yet reaped) process.

    Returns False for invalid pids and when we may not query the process.
    """
    if pid <= 0:
        return False
    if IS_WINDOWS:
        # os.kill(pid, 0) would terminate the process on Windows
        return psutil.pid_exists(pid)
    try:
        os.kill(pid, 0)
    except OSError:
        # ProcessLookupError, PermissionError or anything else
        return False
    return True


def bring_to_foreground(pid: int) -> bool:
    """Bring the main window of pid to the front.

    No window system integration is available, so this always returns False.
    """
    logger.debug(f"Activate requested for pid={pid}: not supported on {sys.platform}")
    return False

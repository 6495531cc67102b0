"""Launch facade: start a child process and hand it to the runtime.

childwatch launcher module

This module provides:
- execute(): start a command asynchronously (returns pid) or synchronously
  (returns exit code), optionally filling a caller-supplied Process
- open_process(): start a command with redirected pipes and return its Process

Key design points:
- A failed spawn returns None and leaves no trace: the caller's handle stays
  unbound, nothing is registered, no reaper is started
- On success the handle is bound, its pipes installed (partial redirection is
  tolerated), registered by pid, and watched by a Reaper
- There is no retry; retrying a failed spawn is up to the caller
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Sequence

from .config import get_config
from .errors import SpawnError
from .process import Process
from .registry import ProcessRegistry, get_registry
from .runtime import spawner
from .runtime.reaper import Reaper
from .runtime.streams import UNBOUNDED
from .types import ExecFlags, ProcessFlags, ProcessSpec

__all__ = ["execute", "open_process", "to_spec"]

logger = logging.getLogger(__name__)


def to_spec(command: str | Sequence[str] | ProcessSpec) -> ProcessSpec:
    """Normalize a command into a ProcessSpec.

    A string is split with shell-like quoting rules (no shell is involved).

    Raises:
        ValueError: If the command is empty
    """
    if isinstance(command, ProcessSpec):
        return command
    if isinstance(command, str):
        argv = shlex.split(command)
    else:
        argv = [str(arg) for arg in command]
    if not argv:
        raise ValueError("Empty command")
    return ProcessSpec(argv=argv)


async def _launch(
    command: str | Sequence[str] | ProcessSpec,
    flags: ExecFlags,
    process: Process | None,
    registry: ProcessRegistry | None,
) -> tuple[Process, Reaper] | None:
    """Spawn, bind, register and start watching.

    Returns:
        (process, reaper), or None if the OS could not create the child
    """
    spec = to_spec(command)
    process = process if process is not None else Process()
    registry = registry if registry is not None else get_registry()

    if process.get_pid():
        raise ValueError(f"Process handle already used for pid={process.get_pid()}")

    config = get_config()
    new_session = bool(flags & ExecFlags.MAKE_GROUP_LEADER) or config.new_session
    # Nobody reads the pipes until a SYNC launch returns: never stall the child
    pipe_limit = UNBOUNDED if flags & ExecFlags.SYNC else None

    try:
        result = await spawner.spawn(
            spec,
            redirect=process.is_redirected(),
            new_session=new_session,
            priority=process.get_priority(),
            pipe_limit=pipe_limit,
        )
    except SpawnError as e:
        logger.warning(f"Execution of {spec.argv[0]!r} failed: {e.cause}")
        return None

    process.set_pid(result.pid)
    if process.is_redirected():
        if result.stdout is None or result.stderr is None or result.stdin is None:
            logger.debug(f"Partial redirection for pid={result.pid}")
        process.set_pipe_streams(result.stdout, result.stdin, result.stderr)

    registry.register(process)
    reaper = Reaper(process, result.process, registry)
    reaper.start()

    logger.debug(f"Launched {process!r} argv={spec.argv}")
    return process, reaper


async def execute(
    command: str | Sequence[str] | ProcessSpec,
    flags: ExecFlags = ExecFlags.ASYNC,
    process: Process | None = None,
    *,
    registry: ProcessRegistry | None = None,
) -> int | None:
    """Run a command.

    Args:
        command: Command string, argument list or ProcessSpec
        flags: ExecFlags.ASYNC (default) or ExecFlags.SYNC, optionally
            combined with ExecFlags.MAKE_GROUP_LEADER
        process: Handle to bind; call redirect() on it first to get pipes
        registry: Registry override (defaults to the process-wide one)

    Returns:
        ASYNC: the child's pid. SYNC: its exit code. None if the child could
        not be started.
    """
    launched = await _launch(command, flags, process, registry)
    if launched is None:
        return None

    process, reaper = launched
    if flags & ExecFlags.SYNC:
        return await reaper.done()
    return process.get_pid()


async def open_process(
    command: str | Sequence[str] | ProcessSpec,
    flags: ExecFlags = ExecFlags.ASYNC,
    process: Process | None = None,
    *,
    registry: ProcessRegistry | None = None,
) -> Process | None:
    """Run a command with stdin/stdout/stderr connected to pipes.

    With ExecFlags.SYNC the call returns after the child exited; its output
    is still readable from the returned handle. The pipes of a SYNC launch
    buffer without limit since nothing can consume them before the return.

    Returns:
        The Process, or None if the child could not be started
    """
    if process is None:
        process = Process(flags=ProcessFlags.REDIRECT)
    else:
        process.redirect()

    launched = await _launch(command, flags, process, registry)
    if launched is None:
        return None

    process, reaper = launched
    if flags & ExecFlags.SYNC:
        await reaper.done()
    return process

"""Exit detection for launched children.

childwatch runtime module

One reaper task runs per child. It is the only path that turns an OS exit
into a termination notification:
1. Await the OS exit status
2. Give the pipe pumps up to drain_timeout to read the remaining output
3. Notify the Process exactly once
4. Remove the pid from the registry (the runtime drops its reference)

The reaper is shielded from cancellation of the task that launched the child;
only the event loop shutting down stops it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import anyio

from ..config import get_config
from ..registry import ProcessRegistry

if TYPE_CHECKING:
    from ..process import Process

__all__ = ["Reaper"]

logger = logging.getLogger(__name__)

# Strong references to running reaper tasks (the event loop only keeps weak ones)
_running: set[asyncio.Task[int]] = set()


class Reaper:
    """Watches one child process and reports its exit.

    Example:
        reaper = Reaper(process, result.process, registry)
        reaper.start()
        await reaper.done()
    """

    def __init__(
        self,
        process: "Process",
        os_process: asyncio.subprocess.Process,
        registry: ProcessRegistry,
        *,
        drain_timeout: float | None = None,
    ) -> None:
        self._process = process
        self._os_process = os_process
        self._registry = registry
        self._drain_timeout = (
            drain_timeout if drain_timeout is not None else get_config().drain_timeout
        )
        self._task: asyncio.Task[int] | None = None

    @property
    def pid(self) -> int:
        return self._process.get_pid()

    def start(self) -> asyncio.Task[int]:
        """Start watching. Calling start() twice returns the same task."""
        if self._task is None:
            self._task = asyncio.create_task(
                self._run(),
                name=f"childwatch-reaper-{self.pid}",
            )
            _running.add(self._task)
            self._task.add_done_callback(_running.discard)
        return self._task

    async def done(self) -> int:
        """Wait until the notification was delivered; return the exit code."""
        return await asyncio.shield(self.start())

    async def _run(self) -> int:
        pid = self.pid
        returncode = await self._os_process.wait()
        logger.debug(f"Subprocess exited pid={pid} returncode={returncode}")

        await self._drain_pipes()

        try:
            self._process._notify_terminated(returncode)
        finally:
            self._registry.unregister(pid)

        return returncode

    async def _drain_pipes(self) -> None:
        """Wait for the read pipes to hit EOF, bounded by drain_timeout.

        A grandchild that inherited the pipes can keep them open after the
        child exits; the notification is not held back for it.
        """
        pipes = self._process.pipes
        if pipes is None:
            return

        with anyio.move_on_after(self._drain_timeout) as scope:
            await pipes.wait_drained()

        if scope.cancelled_caught:
            logger.debug(
                f"Pipes of pid={self.pid} still open after {self._drain_timeout}s, "
                f"notifying anyway"
            )

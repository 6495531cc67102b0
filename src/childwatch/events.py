"""Termination event and one-shot notifier.

childwatch events module

A ProcessEvent is built once per child, when the exit detection path has
confirmed the exit, and is handed to the owning Process. The
TerminationNotifier guards delivery so it happens at most once no matter how
many times the exit path reports the same pid.

Exit code encoding:
- ``exit_code >= 0``: the child's own exit status
- ``exit_code < 0`` (POSIX): the child was killed by signal ``-exit_code``

The value is the asyncio ``returncode`` and is never reinterpreted.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .types import END_PROCESS, ID_ANY

__all__ = [
    "ProcessEvent",
    "TerminationNotifier",
]

logger = logging.getLogger(__name__)


class ProcessEvent(BaseModel):
    """Immutable termination event.

    Attributes:
        event_type: Always "end_process"
        id: Event identifier of the Process that produced it
        pid: Process id of the child that exited
        exit_code: Child's exit status (see module docstring)
        timestamp: Unix time the exit was observed
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    event_type: Literal["end_process"] = END_PROCESS
    id: int = ID_ANY
    pid: int
    exit_code: int
    timestamp: float = Field(default_factory=time.time)

    def get_pid(self) -> int:
        return self.pid

    def get_exit_code(self) -> int:
        return self.exit_code

    def clone(self) -> "ProcessEvent":
        """Return a copy suitable for queueing or re-dispatch."""
        return self.model_copy()

    @property
    def killed_by_signal(self) -> int | None:
        """Signal number that killed the child, or None for a normal exit."""
        return -self.exit_code if self.exit_code < 0 else None


class TerminationNotifier:
    """One-shot termination guard.

    ``fire()`` stores the event and returns True the first time it is called;
    every later call returns False without side effects. Waiters created with
    ``wait()`` resolve with the stored event.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event: ProcessEvent | None = None
        self._waiters: list[asyncio.Future[ProcessEvent]] = []

    @property
    def fired(self) -> bool:
        return self._event is not None

    @property
    def event(self) -> ProcessEvent | None:
        return self._event

    def fire(self, event: ProcessEvent) -> bool:
        """Record the termination event once.

        Args:
            event: The termination event

        Returns:
            True if this call delivered the event, False if already fired
        """
        with self._lock:
            if self._event is not None:
                logger.warning(
                    f"Duplicate termination for pid={event.pid} ignored "
                    f"(already notified with exit_code={self._event.exit_code})"
                )
                return False
            self._event = event
            waiters, self._waiters = self._waiters, []

        for waiter in waiters:
            if not waiter.done():
                waiter.get_loop().call_soon_threadsafe(self._resolve, waiter, event)
        return True

    @staticmethod
    def _resolve(waiter: asyncio.Future[ProcessEvent], event: ProcessEvent) -> None:
        if not waiter.done():
            waiter.set_result(event)

    async def wait(self) -> ProcessEvent:
        """Wait until the event fires and return it."""
        with self._lock:
            if self._event is not None:
                return self._event
            waiter: asyncio.Future[ProcessEvent] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
        try:
            return await waiter
        finally:
            with self._lock:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)

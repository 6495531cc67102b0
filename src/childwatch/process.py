"""Process handle: one child process, its pipes and its termination.

childwatch process module

A Process is created unbound by the caller (or by open_process()), bound to
an OS pid by the launcher, and becomes terminated when the reaper delivers
the single termination notification.

Ownership:
- An attached handle belongs to whoever created it; it survives termination
  when a parent or listener received the event, otherwise it is destroyed
  right after the notification (buffered output stays readable either way)
- detach() hands the handle to the runtime registry, which keeps it alive
  until the child exits and then destroys it (pipes released, listeners
  dropped)

Example:
    process = Process()
    process.redirect()
    process.bind(lambda event: print(event.pid, event.exit_code))

    pid = await execute(["cat"], process=process)
    await process.get_output_stream().write(b"ping\\n")
    process.close_output()
    print(await process.get_input_stream().read())
    exit_code = await process.wait()
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable, Sequence
from typing import Any

import anyio

from .errors import ProcessStateError
from .events import ProcessEvent, TerminationNotifier
from .runtime import spawner
from .runtime.streams import PipeBundle, PipeReader, PipeWriter
from .types import (
    ID_ANY,
    PRIORITY_DEFAULT,
    PRIORITY_MAX,
    PRIORITY_MIN,
    ExecFlags,
    KillError,
    KillFlags,
    ProcessFlags,
    ProcessSpec,
    ProcessState,
)

__all__ = ["Process", "TerminateCallback"]

logger = logging.getLogger(__name__)

# Receives the termination event; the return value is ignored
TerminateCallback = Callable[[ProcessEvent], Any]


class Process:
    """Handle for a child process launched by execute() or open_process().

    Attributes:
        id: Identifier copied into every ProcessEvent this handle emits
    """

    def __init__(
        self,
        parent: TerminateCallback | None = None,
        id: int = ID_ANY,
        *,
        flags: ProcessFlags = ProcessFlags.DEFAULT,
    ) -> None:
        """Create an unbound handle.

        Args:
            parent: Receives the termination event (cleared by detach())
            id: Event identifier
            flags: ProcessFlags.REDIRECT requests pipes at spawn time
        """
        self.id = id
        self._parent = parent
        self._pid: int | None = None
        self._priority = PRIORITY_DEFAULT
        self._redirect = bool(flags & ProcessFlags.REDIRECT)
        self._detached = False
        self._destroyed = False
        self._pipes: PipeBundle | None = None
        self._listeners: list[TerminateCallback] = []
        self._notifier = TerminationNotifier()

    # -------------------------------------------------------------------------
    # Static operations on arbitrary pids
    # -------------------------------------------------------------------------

    @staticmethod
    def kill(
        pid: int,
        sig: int = signal.SIGTERM,
        flags: KillFlags = KillFlags.NOCHILDREN,
    ) -> KillError:
        """Send a signal to any process, not only children of ours.

        Returns:
            KillError.OK, or NO_PROCESS / ACCESS_DENIED / BAD_SIGNAL / ERROR.
            NO_PROCESS is the usual result for a child that already exited.
        """
        return spawner.signal_process(pid, sig, flags)

    @staticmethod
    def exists(pid: int) -> bool:
        """Check whether a process exists. Never signals it, never raises."""
        return spawner.probe_exists(pid)

    @staticmethod
    async def open(
        command: str | Sequence[str] | ProcessSpec,
        flags: ExecFlags = ExecFlags.ASYNC,
    ) -> "Process | None":
        """Launch a command with redirected pipes.

        Returns:
            The running handle, or None if the process could not be created
        """
        from .launcher import open_process

        return await open_process(command, flags)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ProcessState:
        if self._pid is None:
            return ProcessState.UNBOUND
        if self._notifier.fired:
            return ProcessState.TERMINATED
        return ProcessState.RUNNING

    def is_running(self) -> bool:
        return self.state is ProcessState.RUNNING

    @property
    def detached(self) -> bool:
        return self._detached

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def exit_code(self) -> int | None:
        """Exit code once terminated, None before."""
        event = self._notifier.event
        return event.exit_code if event is not None else None

    def get_pid(self) -> int:
        """Bound pid, or 0 before a successful spawn."""
        return self._pid or 0

    def set_pid(self, pid: int) -> None:
        """Bind the handle to its OS process (launcher only).

        Raises:
            ProcessStateError: If the handle is already bound
        """
        if self._pid is not None:
            raise ProcessStateError(f"Process already bound to pid={self._pid}")
        if pid <= 0:
            raise ValueError(f"Invalid pid {pid}")
        self._pid = pid

    def set_priority(self, priority: int) -> bool:
        """Set the scheduling hint (0 lowest, 50 default, 100 highest).

        Only possible before the process is started.

        Returns:
            True if stored, False if the handle is already bound

        Raises:
            ValueError: If priority is outside 0..100
        """
        if not PRIORITY_MIN <= priority <= PRIORITY_MAX:
            raise ValueError(
                f"Priority must be in [{PRIORITY_MIN}, {PRIORITY_MAX}], got {priority}"
            )
        if self._pid is not None:
            logger.warning(f"Cannot change priority of running process pid={self._pid}")
            return False
        self._priority = priority
        return True

    def get_priority(self) -> int:
        return self._priority

    def redirect(self) -> bool:
        """Request stdin/stdout/stderr pipes. No effect once started.

        Returns:
            True if the request was recorded
        """
        if self._pid is not None:
            logger.warning(f"Cannot redirect already started process pid={self._pid}")
            return False
        self._redirect = True
        return True

    def is_redirected(self) -> bool:
        return self._redirect

    # -------------------------------------------------------------------------
    # Ownership and termination
    # -------------------------------------------------------------------------

    def detach(self) -> None:
        """Give up ownership; the runtime destroys the handle after exit.

        The parent is dropped and will not receive the termination event.
        Detaching twice is a no-op.
        """
        if self._detached:
            logger.debug(f"Process pid={self.get_pid()} already detached")
            return
        self._detached = True
        self._parent = None
        logger.debug(f"Detached process pid={self.get_pid()}")

        if self.state is ProcessState.TERMINATED:
            # Notification already delivered, nobody is left to clean up
            self._destroy()

    def bind(self, callback: TerminateCallback) -> None:
        """Register a listener for the termination event."""
        self._listeners.append(callback)

    def unbind(self, callback: TerminateCallback) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        if callback in self._listeners:
            self._listeners.remove(callback)
            return True
        return False

    def on_terminate(self, pid: int, exit_code: int) -> None:
        """Called exactly once when the child exits.

        Override to add termination logic. The default delivers the event to
        the parent and the bound listeners, then destroys the handle if it
        was detached or if nobody received the event.
        """
        event = self._notifier.event
        if event is None or event.pid != pid:
            event = ProcessEvent(id=self.id, pid=pid, exit_code=exit_code)

        received = self._dispatch(event)

        if self._detached or not received:
            self._destroy()

    def _dispatch(self, event: ProcessEvent) -> int:
        """Deliver the event to every receiver, isolating their failures.

        Returns:
            Number of receivers that got the event
        """
        receivers: list[TerminateCallback] = []
        if self._parent is not None:
            receivers.append(self._parent)
        receivers.extend(self._listeners)

        for receiver in receivers:
            try:
                receiver(event.clone())
            except Exception as e:
                logger.warning(
                    f"Error in termination callback for pid={event.pid}: "
                    f"{type(e).__name__}: {e}"
                )
        return len(receivers)

    def _notify_terminated(self, exit_code: int) -> bool:
        """Deliver the termination notification (reaper only).

        Returns:
            True if delivered, False if this handle was already notified
        """
        pid = self.get_pid()
        if not pid:
            raise ProcessStateError("Cannot notify termination of an unbound process")

        event = ProcessEvent(id=self.id, pid=pid, exit_code=exit_code)
        if not self._notifier.fire(event):
            return False

        logger.debug("Process terminated: %s", event)
        try:
            self.on_terminate(pid, exit_code)
        except Exception:
            logger.exception(f"on_terminate failed for pid={pid}")
        return True

    def _destroy(self) -> None:
        """Release pipes and listeners. Buffered output stays readable."""
        if self._destroyed:
            return
        self._destroyed = True
        if self._pipes is not None:
            self._pipes.close()
        self._listeners.clear()
        logger.debug(f"Destroyed process handle pid={self.get_pid()}")

    async def wait(self, timeout: float | None = None) -> int:
        """Wait for the termination notification.

        Args:
            timeout: Seconds to wait (None = forever)

        Returns:
            The exit code

        Raises:
            ProcessStateError: If the handle was never started
            TimeoutError: If the timeout expired first
        """
        if self._pid is None:
            raise ProcessStateError("Process was not started")
        with anyio.fail_after(timeout):
            event = await self._notifier.wait()
        return event.exit_code

    def terminate(self, sig: int = signal.SIGTERM) -> KillError:
        """Signal this handle's child.

        Returns:
            KillError.NO_PROCESS if the handle is unbound or already terminated
        """
        if not self.is_running():
            return KillError.NO_PROCESS
        return self.kill(self.get_pid(), sig)

    def activate(self) -> bool:
        """Bring the child's main window to the front, if possible."""
        if not self.is_running():
            return False
        return spawner.bring_to_foreground(self.get_pid())

    # -------------------------------------------------------------------------
    # Pipes
    # -------------------------------------------------------------------------

    def set_pipe_streams(
        self,
        out_stream: PipeReader | None,
        in_stream: PipeWriter | None,
        err_stream: PipeReader | None,
    ) -> None:
        """Install the child's pipes (launcher only, once).

        Args:
            out_stream: Child's stdout
            in_stream: Child's stdin
            err_stream: Child's stderr
        """
        if self._pipes is not None:
            raise ProcessStateError(f"Pipes already installed for pid={self.get_pid()}")
        self._pipes = PipeBundle(stdout=out_stream, stderr=err_stream, stdin=in_stream)

    @property
    def pipes(self) -> PipeBundle | None:
        return self._pipes

    def get_input_stream(self) -> PipeReader | None:
        """Child's stdout."""
        return self._pipes.stdout if self._pipes else None

    def get_error_stream(self) -> PipeReader | None:
        """Child's stderr."""
        return self._pipes.stderr if self._pipes else None

    def get_output_stream(self) -> PipeWriter | None:
        """Child's stdin."""
        return self._pipes.stdin if self._pipes else None

    def close_output(self) -> None:
        """Close the child's stdin to signal end of input. Idempotent."""
        if self._pipes is not None:
            self._pipes.close_output()

    def is_input_opened(self) -> bool:
        """True while the child's stdout is present and not exhausted."""
        stream = self.get_input_stream()
        return stream is not None and not stream.at_eof()

    def is_input_available(self) -> bool:
        stream = self.get_input_stream()
        return stream is not None and stream.is_available()

    def is_error_available(self) -> bool:
        stream = self.get_error_stream()
        return stream is not None and stream.is_available()

    def __repr__(self) -> str:
        flags = []
        if self._redirect:
            flags.append("redirect")
        if self._detached:
            flags.append("detached")
        if self._destroyed:
            flags.append("destroyed")
        return (
            f"Process(pid={self.get_pid()}, "
            f"state={self.state.value}, "
            f"priority={self._priority}, "
            f"exit_code={self.exit_code}, "
            f"flags={','.join(flags) or '-'})"
        )

"""ProcessEvent and TerminationNotifier tests."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from childwatch.events import ProcessEvent, TerminationNotifier
from childwatch.types import END_PROCESS, ID_ANY


class TestProcessEvent:
    """Test the termination event model."""

    def test_defaults(self):
        event = ProcessEvent(pid=1234, exit_code=0)
        assert event.event_type == END_PROCESS
        assert event.id == ID_ANY
        assert event.get_pid() == 1234
        assert event.get_exit_code() == 0
        assert event.timestamp > 0

    def test_frozen(self):
        event = ProcessEvent(pid=1, exit_code=0)
        with pytest.raises(ValidationError):
            event.exit_code = 5  # type: ignore[misc]

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            ProcessEvent(pid=1, exit_code=0, status="ok")  # type: ignore[call-arg]

    def test_clone_is_equal_copy(self):
        event = ProcessEvent(id=7, pid=42, exit_code=3)
        copy = event.clone()
        assert copy == event
        assert copy is not event

    def test_killed_by_signal(self):
        assert ProcessEvent(pid=1, exit_code=-15).killed_by_signal == 15
        assert ProcessEvent(pid=1, exit_code=0).killed_by_signal is None
        assert ProcessEvent(pid=1, exit_code=2).killed_by_signal is None

    def test_exit_code_kept_verbatim(self):
        """Negative and large values are not reinterpreted."""
        assert ProcessEvent(pid=1, exit_code=-9).exit_code == -9
        assert ProcessEvent(pid=1, exit_code=255).exit_code == 255


class TestTerminationNotifier:
    """Test the one-shot guard."""

    def test_fires_once(self):
        notifier = TerminationNotifier()
        first = ProcessEvent(pid=10, exit_code=0)
        second = ProcessEvent(pid=10, exit_code=1)

        assert notifier.fired is False
        assert notifier.fire(first) is True
        assert notifier.fire(second) is False
        assert notifier.fired is True
        assert notifier.event is first

    @pytest.mark.asyncio
    async def test_wait_after_fire_returns_immediately(self):
        notifier = TerminationNotifier()
        event = ProcessEvent(pid=10, exit_code=4)
        notifier.fire(event)
        assert await notifier.wait() is event

    @pytest.mark.asyncio
    async def test_wait_before_fire(self):
        notifier = TerminationNotifier()
        event = ProcessEvent(pid=10, exit_code=4)

        waiters = [asyncio.create_task(notifier.wait()) for _ in range(3)]
        await asyncio.sleep(0)
        assert not any(w.done() for w in waiters)

        notifier.fire(event)
        results = await asyncio.wait_for(asyncio.gather(*waiters), timeout=5)
        assert results == [event, event, event]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_removed(self):
        notifier = TerminationNotifier()
        waiter = asyncio.create_task(notifier.wait())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        # Firing afterwards must not fail on the cancelled future
        assert notifier.fire(ProcessEvent(pid=1, exit_code=0)) is True

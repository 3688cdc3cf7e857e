"""
Core Module - Scheduled Tasks.

============================================================
RESPONSIBILITY
============================================================
Cancellable, delayed invocation of a coroutine on the running
event loop.

Every timer in the monitor (reconnect backoff, debounce delay,
watchdog) is one of these handles. Whoever replaces a timer
cancels the previous handle first.

A handle that has already fired ignores cancel(), so a callback
that ends up replacing its own handle never interrupts itself.

============================================================
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


TaskCallback = Callable[[], Awaitable[Any]]


class ScheduledTask:
    """Run a coroutine function once after a delay."""

    def __init__(
        self,
        delay_seconds: float,
        callback: TaskCallback,
        name: Optional[str] = None,
    ):
        """
        Arm the timer.

        Args:
            delay_seconds: Delay before the callback runs
            callback: Coroutine function invoked with no arguments
            name: Task name for debugging
        """
        self._delay = max(0.0, delay_seconds)
        self._callback = callback
        self._name = name or "scheduled-task"
        self._fired = False
        self._cancelled = False
        self._task = asyncio.create_task(self._run(), name=self._name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def fired(self) -> bool:
        """Whether the callback has started running."""
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> bool:
        """Armed, not yet fired, not cancelled."""
        return not self._fired and not self._cancelled

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """
        Cancel the timer if it has not fired yet.

        Returns True if the callback will not run.
        """
        if self._fired:
            return False
        if not self._cancelled:
            self._cancelled = True
            self._task.cancel()
        return True

    async def wait(self) -> None:
        """Wait for the task to finish (fired or cancelled)."""
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        await asyncio.sleep(self._delay)
        if self._cancelled:
            return
        self._fired = True
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled task {self._name} failed: {e}", exc_info=True)

    def __repr__(self) -> str:
        state = "fired" if self._fired else "cancelled" if self._cancelled else "pending"
        return f"ScheduledTask({self._name!r}, delay={self._delay:.3f}s, {state})"


async def cancel_and_wait(task: Optional[asyncio.Task]) -> None:
    """Cancel an asyncio task and wait for it to unwind."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


__all__ = [
    "ScheduledTask",
    "TaskCallback",
    "cancel_and_wait",
]

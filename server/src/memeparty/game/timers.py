"""Single-slot deadline timers keyed by lobby.

Each key holds at most one pending deadline. Arming a key replaces whatever
was pending for it. A timer that fires removes itself from its slot before
running its callback, so the callback may arm the next deadline for the same
key without cancelling itself.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


@dataclass
class _Slot:
    task: asyncio.Task[None]
    callback: TimerCallback
    deadline: float


class TimerScheduler:
    """Per-key deferred callbacks with cancel-and-replace semantics."""

    def __init__(self) -> None:
        self._slots: dict[str, _Slot] = {}

    def arm(self, key: str, delay: float, callback: TimerCallback) -> float:
        """Schedule a callback, replacing any pending one for the key.

        Must be called from inside a running event loop.

        Args:
            key: Slot key (the lobby id)
            delay: Seconds until the callback runs
            callback: Coroutine function to run on expiry

        Returns:
            Wall-clock deadline as epoch seconds
        """
        self.cancel(key)
        deadline = time.time() + delay
        task = asyncio.get_running_loop().create_task(self._run(key, delay, callback))
        self._slots[key] = _Slot(task=task, callback=callback, deadline=deadline)
        logger.debug(f"[timer-set] key={key} delay={delay}s deadline={deadline}")
        return deadline

    def cancel(self, key: str) -> bool:
        """Cancel the pending callback for a key.

        Returns:
            True if something was pending
        """
        slot = self._slots.pop(key, None)
        if slot is None:
            return False
        slot.task.cancel()
        logger.debug(f"[timer-cancel] key={key}")
        return True

    def cancel_all(self) -> None:
        for key in list(self._slots):
            self.cancel(key)

    def is_pending(self, key: str) -> bool:
        return key in self._slots

    def deadline(self, key: str) -> float | None:
        slot = self._slots.get(key)
        return slot.deadline if slot else None

    async def fire(self, key: str) -> bool:
        """Run the pending callback for a key immediately.

        Returns:
            True if a callback was pending and ran
        """
        slot = self._slots.pop(key, None)
        if slot is None:
            return False
        slot.task.cancel()
        logger.debug(f"[timer-fire-now] key={key}")
        await self._invoke(key, slot.callback)
        return True

    async def _run(self, key: str, delay: float, callback: TimerCallback) -> None:
        await asyncio.sleep(delay)
        slot = self._slots.get(key)
        if slot is None or slot.task is not asyncio.current_task():
            return
        del self._slots[key]
        logger.debug(f"[timer-fire] key={key}")
        await self._invoke(key, callback)

    async def _invoke(self, key: str, callback: TimerCallback) -> None:
        try:
            await callback()
        except Exception:
            # Keep the scheduler alive; the lobby stays in its last consistent state
            logger.exception(f"Timer callback failed for {key}")

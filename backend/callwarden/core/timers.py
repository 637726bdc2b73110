"""
CallWarden - Call Timer Manager

Owns at most one pending expiration timer per caller identity.

Timer lifecycle per identity:
    unarmed --arm--> armed --disarm--> unarmed
    armed --arm--> armed (old timer cancelled, never two racing timers)
    armed --delay elapses--> fired (handle dropped, expiry callback runs)

A firing timer drops its own handle before invoking the callback, so a
disarm issued while the callback runs (e.g. by the terminator's cleanup)
never cancels the termination in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, Set

from .logging import LogContext

logger = logging.getLogger(__name__)


ExpiryCallback = Callable[[str, str], Awaitable[None]]
"""Invoked as ``on_expire(identity, provider_call_id)`` when a timer fires."""


@dataclass
class PendingTimer:
    """A scheduled-but-not-yet-fired expiration for one caller."""
    identity: str
    provider_call_id: str
    delay_ms: int
    armed_at: float
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def deadline(self) -> float:
        """Event-loop time at which the timer fires."""
        return self.armed_at + self.delay_ms / 1000

    def remaining_ms(self, now: float) -> int:
        return max(0, int((self.deadline - now) * 1000))


class CallTimerManager:
    """
    Per-identity one-shot timers backed by asyncio tasks.

    Must be used from within a running event loop. The manager does no
    locking itself; arm/disarm never await, so each call is atomic with
    respect to other coroutines on the loop.

    Usage:
        timers = CallTimerManager()
        timers.arm("+15551230000", "CA123", 60_000, on_expire)
        timers.disarm("+15551230000")
        await timers.shutdown()
    """

    def __init__(self) -> None:
        self._timers: Dict[str, PendingTimer] = {}
        self._tasks: Set[asyncio.Task] = set()

    def arm(
        self,
        identity: str,
        provider_call_id: str,
        delay_ms: int,
        on_expire: ExpiryCallback,
    ) -> PendingTimer:
        """
        Schedule ``on_expire`` to run once after ``delay_ms``.

        Any timer already pending for ``identity`` is cancelled first.
        """
        if self.disarm(identity):
            logger.info("Cleared previous timer before re-arming")

        loop = asyncio.get_running_loop()
        timer = PendingTimer(
            identity=identity,
            provider_call_id=provider_call_id,
            delay_ms=delay_ms,
            armed_at=loop.time(),
        )
        timer.task = loop.create_task(self._run(timer, on_expire))
        self._tasks.add(timer.task)
        timer.task.add_done_callback(self._tasks.discard)
        self._timers[identity] = timer
        return timer

    def disarm(self, identity: str) -> bool:
        """
        Cancel the pending timer for ``identity``.

        Idempotent. Returns False if no timer was pending.
        """
        timer = self._timers.pop(identity, None)
        if timer is None:
            return False
        if timer.task is not None:
            timer.task.cancel()
        return True

    def get(self, identity: str) -> Optional[PendingTimer]:
        return self._timers.get(identity)

    def remaining_ms(self, identity: str) -> Optional[int]:
        """Milliseconds until the pending timer fires, or None if unarmed."""
        timer = self._timers.get(identity)
        if timer is None:
            return None
        return timer.remaining_ms(asyncio.get_running_loop().time())

    def __contains__(self, identity: object) -> bool:
        return identity in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    async def shutdown(self) -> None:
        """Cancel every pending timer and any expiry still running."""
        self._timers.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("CallTimerManager stopped: cancelled %d timers", len(tasks))

    async def _run(self, timer: PendingTimer, on_expire: ExpiryCallback) -> None:
        await asyncio.sleep(timer.delay_ms / 1000)

        # Fired: drop our own handle unless a newer timer replaced it.
        if self._timers.get(timer.identity) is timer:
            del self._timers[timer.identity]

        with LogContext(user_id=timer.identity, call_id=timer.provider_call_id):
            try:
                await on_expire(timer.identity, timer.provider_call_id)
            except Exception:
                logger.exception("Timer expiry handler failed")

"""
CallWarden - Call Terminator

Ends a caller's live call once its time budget is spent, then releases all
local state for that caller.

Failure policy:
    The provider request is attempted once. Whether it succeeds or fails,
    the pending timer, the active call and the member configuration are
    dropped. Failures are logged, never retried and never re-raised.
"""

from __future__ import annotations

import logging

from callwarden.config import DEFAULT_END_MESSAGE
from callwarden.core.exceptions import CallControlError
from callwarden.core.logging import log_data
from callwarden.core.registry import ActiveCallRegistry, MemberRegistry
from callwarden.core.timers import CallTimerManager
from .call_control import CallController
from .privacy import mask_call_id, mask_phone_number

logger = logging.getLogger(__name__)


class CallTerminator:
    """
    Performs the forced hang-up for one caller.

    Idempotent: terminating a caller with no active call (already ended
    naturally, or already terminated) does nothing.
    """

    def __init__(
        self,
        members: MemberRegistry,
        calls: ActiveCallRegistry,
        timers: CallTimerManager,
        controller: CallController,
        default_end_message: str = DEFAULT_END_MESSAGE,
    ):
        self._members = members
        self._calls = calls
        self._timers = timers
        self._controller = controller
        self._default_end_message = default_end_message

    async def terminate(self, identity: str, provider_call_id: str) -> bool:
        """
        End ``provider_call_id`` for ``identity`` with the caller's end message.

        Returns:
            True if the provider accepted the hang-up request, False if the
            call was no longer active or the provider request failed.
        """
        safe_user = mask_phone_number(identity)
        safe_call = mask_call_id(provider_call_id)

        call = self._calls.get(identity)
        if call is None:
            logger.info("Call for %s is no longer active", safe_user)
            return False

        if call.provider_call_id != provider_call_id:
            # A newer call replaced the one this timer was armed for.
            logger.warning(
                "Ignoring stale termination for %s: call %s is no longer the active call",
                safe_user,
                safe_call,
            )
            return False

        logger.info("Time limit reached for %s, ending call %s", safe_user, safe_call)

        member = self._members.lookup(identity)
        message = member.end_message if member else self._default_end_message

        ended = False
        try:
            await self._controller.end_call(provider_call_id, message)
            ended = True
            logger.info("Successfully ended call %s", safe_call)
        except CallControlError as e:
            logger.error(
                "Error ending call %s: %s",
                safe_call,
                e.message,
                extra=log_data(provider=self._controller.name, **e.details),
                exc_info=True,
            )
        finally:
            self._timers.disarm(identity)
            self._calls.remove(identity)
            self._members.remove(identity)

        return ended

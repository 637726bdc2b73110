"""
CallWarden - Call Limit Enforcer

Orchestrates registration, call lifecycle events and timer expiry.

Architecture:
    MemberRegistry + ActiveCallRegistry → CallTimerManager → CallTerminator

    Every operation touching a caller runs under that caller's lock, so
    registration, call-start, call-end, status callbacks and timer expiry for
    the same identity never interleave. Different callers proceed in
    parallel, including while a hang-up request is in flight.

Race handling:
    A timer can fire at the same moment a call-end arrives. Whichever runs
    second finds the state already gone and does nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from callwarden.config import Settings
from callwarden.telephony.call_control import CallController, create_call_controller
from callwarden.telephony.privacy import mask_call_id, mask_phone_number
from callwarden.telephony.terminator import CallTerminator
from .durations import parse_duration
from .locks import IdentityLocks
from .logging import format_duration
from .registry import ActiveCallRegistry, MemberRegistry
from .timers import CallTimerManager
from .types import ActiveCall, MemberConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveCallSnapshot:
    """Point-in-time view of one tracked call."""
    identity: str
    call: ActiveCall
    time_limit_ms: Optional[int]
    remaining_ms: Optional[int]


class CallLimitEnforcer:
    """
    Entry point for every inbound event.

    Usage:
        enforcer = create_enforcer(settings)
        await enforcer.register_member("+15551230000", "5m", None)
        await enforcer.call_started("+15551230000", "CA123", {"callSid": "CA123"})
        await enforcer.call_ended("+15551230000", "CA123")
        await enforcer.shutdown()
    """

    def __init__(
        self,
        members: MemberRegistry,
        calls: ActiveCallRegistry,
        timers: CallTimerManager,
        terminator: CallTerminator,
        default_end_message: str,
        locks: Optional[IdentityLocks] = None,
    ):
        self._members = members
        self._calls = calls
        self._timers = timers
        self._terminator = terminator
        self._default_end_message = default_end_message
        self._locks = locks or IdentityLocks()

    # =========================================================================
    # Registration
    # =========================================================================

    async def register_member(
        self,
        identity: str,
        duration: Optional[str] = None,
        end_message: Optional[str] = None,
    ) -> MemberConfig:
        """
        Store the caller's budget. If the caller is already on a call, restart
        the countdown with the full new budget measured from now.
        """
        time_limit_ms = parse_duration(duration)
        safe_user = mask_phone_number(identity)

        async with self._locks.hold(identity):
            config = self._members.register(
                identity,
                time_limit_ms,
                end_message or self._default_end_message,
            )
            logger.info(
                "Member registered: %s, Time limit: %s",
                safe_user,
                format_duration(time_limit_ms),
            )

            call = self._calls.get(identity)
            if call is None:
                logger.info(
                    "No active call found for %s, time limit will apply when call starts",
                    safe_user,
                )
                return config

            logger.info("Found active call for %s, applying time limit immediately", safe_user)
            self._timers.arm(identity, call.provider_call_id, time_limit_ms, self._on_expire)
            logger.info("Timer set for %s from now", format_duration(time_limit_ms))
            return config

    # =========================================================================
    # Call Lifecycle
    # =========================================================================

    async def call_started(
        self,
        identity: str,
        provider_call_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Track a new call and arm its timer if the caller has a budget.

        Returns:
            True if the call is timed, False if it runs untimed.
        """
        safe_user = mask_phone_number(identity)
        safe_call = mask_call_id(provider_call_id)

        async with self._locks.hold(identity):
            previous = self._calls.set(identity, provider_call_id, metadata=metadata)
            logger.info("Call started: %s from %s", safe_call, safe_user)

            if previous is not None and previous.provider_call_id != provider_call_id:
                logger.warning(
                    "Call %s replaces still-active call %s for %s",
                    safe_call,
                    mask_call_id(previous.provider_call_id),
                    safe_user,
                )
            # Never leave a timer aimed at the replaced call.
            self._timers.disarm(identity)

            member = self._members.lookup(identity)
            if member is None:
                logger.info("No time limit set for %s, call is not timed", safe_user)
                return False

            logger.info(
                "Starting timer for user %s, time limit: %s",
                safe_user,
                format_duration(member.time_limit_ms),
            )
            self._timers.arm(identity, provider_call_id, member.time_limit_ms, self._on_expire)
            return True

    async def call_ended(self, identity: str, provider_call_id: Optional[str] = None) -> bool:
        """
        Release everything held for the caller.

        An end event naming a call other than the tracked one is ignored.

        Returns:
            False if the event was ignored, True otherwise.
        """
        safe_user = mask_phone_number(identity)

        async with self._locks.hold(identity):
            call = self._calls.get(identity)
            if (
                call is not None
                and provider_call_id
                and call.provider_call_id != provider_call_id
            ):
                logger.warning(
                    "Ignoring end of call %s for %s: tracked call is %s",
                    mask_call_id(provider_call_id),
                    safe_user,
                    mask_call_id(call.provider_call_id),
                )
                return False

            logger.info("Call ended: %s from %s", mask_call_id(provider_call_id), safe_user)

            if self._timers.disarm(identity):
                logger.info("Timer cleared for user %s", safe_user)

            self._calls.remove(identity)

            if self._members.remove(identity):
                logger.info("Member data cleared for user %s", safe_user)

            logger.info("Call cleanup completed for user %s", safe_user)
            return True

    async def provider_call_completed(
        self,
        provider_call_id: str,
        status: str,
        duration_seconds: Optional[int] = None,
    ) -> bool:
        """
        Handle a terminal status reported by the provider for a call.

        ``duration_seconds`` is the provider-billed call length, logged only.

        Returns:
            True if the call was tracked and has been cleaned up.
        """
        identity = self._calls.find_by_call_id(provider_call_id)
        if identity is None:
            logger.debug(
                "Status %s for untracked call %s",
                status,
                mask_call_id(provider_call_id),
            )
            return False

        logger.info(
            "Provider reported call %s as %s after %s seconds",
            mask_call_id(provider_call_id),
            status,
            duration_seconds if duration_seconds is not None else "unknown",
        )
        return await self.call_ended(identity, provider_call_id)

    # =========================================================================
    # Expiry
    # =========================================================================

    async def _on_expire(self, identity: str, provider_call_id: str) -> None:
        async with self._locks.hold(identity):
            await self._terminator.terminate(identity, provider_call_id)

    # =========================================================================
    # Introspection & Lifecycle
    # =========================================================================

    def active_calls(self) -> List[ActiveCallSnapshot]:
        """Snapshot every tracked call with its remaining budget."""
        snapshots = []
        for identity, call in self._calls.items():
            member = self._members.lookup(identity)
            snapshots.append(
                ActiveCallSnapshot(
                    identity=identity,
                    call=call,
                    time_limit_ms=member.time_limit_ms if member else None,
                    remaining_ms=self._timers.remaining_ms(identity),
                )
            )
        return snapshots

    async def shutdown(self) -> None:
        """Cancel every pending timer. Tracked state is dropped with the process."""
        await self._timers.shutdown()


def create_enforcer(
    settings: Settings,
    controller: Optional[CallController] = None,
) -> CallLimitEnforcer:
    """
    Build the enforcer and its collaborators from settings.

    Args:
        settings: Application settings
        controller: Call controller override (defaults to the configured backend)

    Returns:
        Wired CallLimitEnforcer with fresh, empty registries
    """
    members = MemberRegistry()
    calls = ActiveCallRegistry()
    timers = CallTimerManager()

    if controller is None:
        controller = create_call_controller(settings)

    terminator = CallTerminator(
        members=members,
        calls=calls,
        timers=timers,
        controller=controller,
        default_end_message=settings.default_end_message,
    )

    logger.info("Creating CallLimitEnforcer: call_control=%s", controller.name)

    return CallLimitEnforcer(
        members=members,
        calls=calls,
        timers=timers,
        terminator=terminator,
        default_end_message=settings.default_end_message,
    )

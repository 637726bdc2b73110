"""
CallWarden - Enforcer Scenario Tests

End-to-end flows through registration, call lifecycle and timer expiry.
Budgets use the smallest duration token ("1s"); tests that need shorter
windows arm the timer manager directly.

Run with: pytest tests/test_enforcer.py -v
"""

import asyncio
import logging

import pytest

from callwarden.config import DEFAULT_END_MESSAGE, Settings
from callwarden.core.enforcer import CallLimitEnforcer, create_enforcer

from conftest import CALLER, OTHER_CALLER, FailingCallController


def _state(enforcer: CallLimitEnforcer, identity: str):
    """(member, call, timer) for an identity."""
    return (
        enforcer._members.lookup(identity),
        enforcer._calls.get(identity),
        enforcer._timers.get(identity),
    )


class TestTimedCall:

    @pytest.mark.asyncio
    async def test_call_over_budget_is_terminated_once(self, enforcer, controller):
        await enforcer.register_member(CALLER, "1s", "Your minute is up.")
        assert await enforcer.call_started(CALLER, "CA1", {"callSid": "CA1"}) is True

        await asyncio.sleep(1.3)

        assert controller.requests == [("CA1", "Your minute is up.")]
        assert _state(enforcer, CALLER) == (None, None, None)

    @pytest.mark.asyncio
    async def test_default_message_when_none_given(self, enforcer, controller):
        await enforcer.register_member(CALLER, "1s", None)
        await enforcer.call_started(CALLER, "CA1")

        await asyncio.sleep(1.3)

        assert controller.requests == [("CA1", DEFAULT_END_MESSAGE)]

    @pytest.mark.asyncio
    async def test_call_end_before_expiry_prevents_termination(self, enforcer, controller):
        await enforcer.register_member(CALLER, "1s", None)
        await enforcer.call_started(CALLER, "CA1")

        await asyncio.sleep(0.2)
        assert await enforcer.call_ended(CALLER, "CA1") is True
        await asyncio.sleep(1.1)

        assert controller.requests == []
        assert _state(enforcer, CALLER) == (None, None, None)

    @pytest.mark.asyncio
    async def test_budget_uses_parsed_duration(self, enforcer):
        await enforcer.register_member(CALLER, "5m", None)
        await enforcer.call_started(CALLER, "CA1")

        member, call, timer = _state(enforcer, CALLER)
        assert member.time_limit_ms == 300000
        assert timer.delay_ms == 300000
        assert timer.provider_call_id == "CA1"

        await enforcer.shutdown()


class TestUntimedCall:

    @pytest.mark.asyncio
    async def test_call_without_registration_is_untimed(self, enforcer, controller):
        assert await enforcer.call_started(CALLER, "CA1") is False
        assert enforcer._timers.get(CALLER) is None

        assert await enforcer.call_ended(CALLER, "CA1") is True

        assert controller.requests == []
        assert _state(enforcer, CALLER) == (None, None, None)

    @pytest.mark.asyncio
    async def test_call_end_for_unknown_caller_is_noop(self, enforcer, controller):
        assert await enforcer.call_ended(CALLER, "CA1") is True
        assert controller.requests == []


class TestRegistrationDuringCall:

    @pytest.mark.asyncio
    async def test_registration_arms_running_call(self, enforcer):
        await enforcer.call_started(CALLER, "CA1")
        assert enforcer._timers.get(CALLER) is None

        await enforcer.register_member(CALLER, "30s", None)

        timer = enforcer._timers.get(CALLER)
        assert timer is not None
        assert timer.delay_ms == 30000
        assert timer.provider_call_id == "CA1"

        await enforcer.shutdown()

    @pytest.mark.asyncio
    async def test_reregistration_restarts_full_window(self, enforcer, controller):
        await enforcer.register_member(CALLER, "1s", "First")
        await enforcer.call_started(CALLER, "CA1")

        await asyncio.sleep(0.6)
        await enforcer.register_member(CALLER, "1s", "Second")

        # t≈1.2s: the original window has passed, the fresh one has not
        await asyncio.sleep(0.6)
        assert controller.requests == []

        await asyncio.sleep(0.7)
        assert controller.requests == [("CA1", "Second")]

    @pytest.mark.asyncio
    async def test_registration_without_call_arms_nothing(self, enforcer):
        await enforcer.register_member(CALLER, "30s", None)

        assert enforcer._timers.get(CALLER) is None
        assert enforcer._members.lookup(CALLER).time_limit_ms == 30000


class TestOverlappingCalls:

    @pytest.mark.asyncio
    async def test_second_call_retargets_timer(self, enforcer):
        await enforcer.register_member(CALLER, "30s", None)
        await enforcer.call_started(CALLER, "CA1")
        first_timer = enforcer._timers.get(CALLER)

        await enforcer.call_started(CALLER, "CA2")

        timer = enforcer._timers.get(CALLER)
        assert timer is not first_timer
        assert timer.provider_call_id == "CA2"
        assert len(enforcer._timers) == 1

        await enforcer.shutdown()

    @pytest.mark.asyncio
    async def test_second_untimed_call_drops_old_timer(self, enforcer):
        await enforcer.register_member(CALLER, "30s", None)
        await enforcer.call_started(CALLER, "CA1")
        await enforcer.call_ended(CALLER, "CA1")

        await enforcer.call_started(CALLER, "CA2")

        assert enforcer._timers.get(CALLER) is None

    @pytest.mark.asyncio
    async def test_end_of_replaced_call_is_ignored(self, enforcer):
        await enforcer.register_member(CALLER, "30s", None)
        await enforcer.call_started(CALLER, "CA1")
        await enforcer.call_started(CALLER, "CA2")

        assert await enforcer.call_ended(CALLER, "CA1") is False

        member, call, timer = _state(enforcer, CALLER)
        assert call.provider_call_id == "CA2"
        assert timer is not None
        assert member is not None

        await enforcer.shutdown()


class TestRaces:

    @pytest.mark.asyncio
    async def test_expiry_after_call_end_is_noop(self, enforcer, controller):
        await enforcer.call_started(CALLER, "CA1")
        await enforcer.call_ended(CALLER, "CA1")

        # Simulate a timer callback that lost the race
        await enforcer._on_expire(CALLER, "CA1")

        assert controller.requests == []

    @pytest.mark.asyncio
    async def test_call_end_waits_for_running_termination(self, test_settings):
        release = asyncio.Event()

        class SlowController(FailingCallController):
            async def end_call(self, provider_call_id, message):
                self.requests.append((provider_call_id, message))
                await release.wait()

        slow = SlowController()
        enforcer = create_enforcer(test_settings, controller=slow)
        await enforcer.call_started(CALLER, "CA1")

        expiry = asyncio.create_task(enforcer._on_expire(CALLER, "CA1"))
        await asyncio.sleep(0.01)
        ending = asyncio.create_task(enforcer.call_ended(CALLER, "CA1"))
        await asyncio.sleep(0.01)

        # Same caller: the end event is held back while the hang-up is in flight
        assert not ending.done()
        # Other callers are unaffected
        assert await enforcer.call_started(OTHER_CALLER, "CA9") is False

        release.set()
        await asyncio.gather(expiry, ending)

        assert len(slow.requests) == 1
        assert _state(enforcer, CALLER) == (None, None, None)


class TestStatusCallback:

    @pytest.mark.asyncio
    async def test_terminal_status_releases_tracked_call(self, enforcer):
        await enforcer.register_member(CALLER, "30s", None)
        await enforcer.call_started(CALLER, "CA1")

        assert await enforcer.provider_call_completed("CA1", "completed") is True
        assert _state(enforcer, CALLER) == (None, None, None)

    @pytest.mark.asyncio
    async def test_terminal_status_logs_call_duration(self, enforcer, caplog):
        await enforcer.call_started(CALLER, "CA1")

        with caplog.at_level(logging.INFO, logger="callwarden.core.enforcer"):
            await enforcer.provider_call_completed("CA1", "completed", duration_seconds=42)

        assert "after 42 seconds" in caplog.text

    @pytest.mark.asyncio
    async def test_untracked_call_is_ignored(self, enforcer):
        assert await enforcer.provider_call_completed("CA404", "completed") is False


class TestSnapshot:

    @pytest.mark.asyncio
    async def test_active_calls_snapshot(self, enforcer):
        await enforcer.register_member(CALLER, "30s", None)
        await enforcer.call_started(CALLER, "CA1")
        await enforcer.call_started(OTHER_CALLER, "CA2")

        snapshots = {s.identity: s for s in enforcer.active_calls()}

        assert snapshots[CALLER].time_limit_ms == 30000
        assert 0 < snapshots[CALLER].remaining_ms <= 30000
        assert snapshots[OTHER_CALLER].remaining_ms is None

        await enforcer.shutdown()


class TestProviderFailure:

    @pytest.mark.asyncio
    async def test_provider_failure_still_releases_state(self):
        failing = FailingCallController()
        enforcer = create_enforcer(Settings(call_control_backend="dummy"), controller=failing)
        await enforcer.register_member(CALLER, "1s", None)
        await enforcer.call_started(CALLER, "CA1")

        await asyncio.sleep(1.3)

        assert len(failing.requests) == 1
        assert _state(enforcer, CALLER) == (None, None, None)
        assert enforcer.active_calls() == []

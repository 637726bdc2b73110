"""
CallWarden - Telephony HTTP Endpoints

Inbound webhooks that drive the enforcer:
- member registration (time budget + end message)
- call lifecycle events from the conversation platform
- call status callbacks from Twilio

Routing only: fields are extracted here and every decision is delegated to
the CallLimitEnforcer.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError

from callwarden.core.enforcer import CallLimitEnforcer
from callwarden.core.exceptions import MissingFieldError, ValidationError
from callwarden.core.types import CallEventType
from .models import (
    ActiveCallResponse,
    CallStatusCallback,
    CallWebhookEvent,
    MemberRegistrationRequest,
)
from .privacy import mask_call_id, mask_phone_number

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["telephony"])


# =============================================================================
# Dependencies
# =============================================================================

def get_enforcer(request: Request) -> CallLimitEnforcer:
    """Dependency to get the enforcer from app state."""
    return request.app.state.enforcer


async def _read_body(request: Request) -> Dict[str, Any]:
    """
    Parse a JSON or form-encoded request body into a dict.

    Raises:
        ValidationError: Body is not a JSON object or a form
    """
    content_type = request.headers.get("content-type", "")

    try:
        if "application/json" in content_type:
            body = await request.json()
        else:
            # Form-encoded (Twilio default)
            form = await request.form()
            body = dict(form)
    except Exception as e:
        logger.warning("Unreadable request body: %s", str(e))
        raise ValidationError("Invalid request body")

    if not isinstance(body, dict):
        raise ValidationError("Request body must be an object")
    return body


# =============================================================================
# Webhook Endpoints
# =============================================================================

@router.post(
    "/member",
    summary="Register a member's time budget",
    description="Store the time limit and end message applied to the member's calls.",
)
async def register_member(
    request: Request,
    enforcer: CallLimitEnforcer = Depends(get_enforcer),
) -> dict:
    """
    Register (or re-register) a member.

    If the member is already on a call, the countdown restarts with the full
    new budget.
    """
    body = await _read_body(request)

    try:
        registration = MemberRegistrationRequest.model_validate(body)
    except PydanticValidationError as e:
        logger.warning("Invalid member registration: %s", e.errors(include_url=False))
        raise ValidationError("Invalid member registration")

    if not registration.user_id:
        raise MissingFieldError("userID")

    await enforcer.register_member(
        registration.user_id,
        duration=registration.duration,
        end_message=registration.end_message,
    )
    return {"success": True}


@router.post(
    "/call-webhook",
    summary="Handle call lifecycle event",
    description="Webhook endpoint for call start/end notifications.",
)
async def handle_call_webhook(
    request: Request,
    enforcer: CallLimitEnforcer = Depends(get_enforcer),
) -> dict:
    """
    Dispatch a call lifecycle event.

    Always acknowledges: unknown event types and malformed payloads are
    logged and dropped so the sender never retries them.
    """
    try:
        body = await _read_body(request)
        event = CallWebhookEvent.model_validate(body)
    except (ValidationError, PydanticValidationError) as e:
        logger.warning("Ignoring unparseable call webhook: %s", str(e))
        return {"success": True}

    if event.type not in (CallEventType.CALL_START.value, CallEventType.CALL_END.value):
        logger.debug("Ignoring call webhook of type %s", event.type)
        return {"success": True}

    data = event.data
    if data is None or not data.user_id:
        logger.warning("Ignoring %s event without userID", event.type)
        return {"success": True}

    if event.type == CallEventType.CALL_START.value:
        if not data.call_sid:
            logger.warning(
                "Ignoring call start for %s without callSid",
                mask_phone_number(data.user_id),
            )
            return {"success": True}
        await enforcer.call_started(data.user_id, data.call_sid, data.metadata)
    else:
        await enforcer.call_ended(data.user_id, data.call_sid)

    return {"success": True}


@router.post(
    "/twilio/status",
    summary="Handle Twilio call status callback",
    description="Releases tracked state when Twilio reports a call as finished.",
)
async def handle_status_callback(
    request: Request,
    enforcer: CallLimitEnforcer = Depends(get_enforcer),
) -> dict:
    """
    Handle call status updates from Twilio.

    Non-terminal statuses and untracked calls are acknowledged without
    side effects.
    """
    body = await _read_body(request)

    try:
        status_update = CallStatusCallback.model_validate(body)
    except PydanticValidationError as e:
        logger.warning("Invalid status callback: %s", e.errors(include_url=False))
        raise ValidationError("Invalid status callback")

    released = False
    if status_update.is_terminal:
        released = await enforcer.provider_call_completed(
            status_update.call_id,
            status_update.status,
            duration_seconds=status_update.duration,
        )

    return {
        "status": "acknowledged",
        "call_id": mask_call_id(status_update.call_id),
        "released": released,
    }


# =============================================================================
# Call Management Endpoints
# =============================================================================

@router.get(
    "/calls/active",
    summary="Get active calls",
    description="Get all tracked calls with their remaining time budget.",
)
async def get_active_calls(
    enforcer: CallLimitEnforcer = Depends(get_enforcer),
) -> dict:
    """Get all active calls. Identities and call ids are masked."""
    calls: List[ActiveCallResponse] = [
        ActiveCallResponse(
            user=mask_phone_number(snapshot.identity),
            call_id_masked=mask_call_id(snapshot.call.provider_call_id),
            started_at=datetime.fromtimestamp(snapshot.call.start_time_ms / 1000, tz=timezone.utc),
            time_limit_ms=snapshot.time_limit_ms,
            remaining_ms=snapshot.remaining_ms,
            timed=snapshot.remaining_ms is not None,
        )
        for snapshot in enforcer.active_calls()
    ]

    return {
        "count": len(calls),
        "calls": [c.model_dump(mode="json") for c in calls],
    }

"""
CallWarden - Telephony Data Models

Pydantic models for inbound webhooks and API responses.
Field aliases match the wire names sent by the conversation platform
(``userID``, ``endMessage``) and by Twilio (``CallSid``, ``CallStatus``).
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


TERMINAL_CALL_STATUSES = frozenset({
    "completed",
    "failed",
    "busy",
    "no-answer",
    "canceled",
})


class MemberRegistrationRequest(BaseModel):
    """
    Request body for POST /api/member

    ``user_id`` is optional at the schema level so a missing value can be
    reported with the service's own error body.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    user_id: Optional[str] = Field(None, alias="userID", description="Caller identity")
    duration: Optional[str] = Field(None, description='Time budget token, e.g. "30s" or "5m"')
    end_message: Optional[str] = Field(None, alias="endMessage", description="Spoken before hang-up")


class CallEventData(BaseModel):
    """Payload of a call-lifecycle event."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    user_id: Optional[str] = Field(None, alias="userID")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def call_sid(self) -> Optional[str]:
        value = self.metadata.get("callSid")
        return str(value) if value else None


class CallWebhookEvent(BaseModel):
    """
    Request body for POST /api/call-webhook

    Only the ``type`` discriminator is required to route the event; unknown
    types are acknowledged and dropped.
    """

    type: Optional[str] = None
    data: Optional[CallEventData] = None


class CallStatusCallback(BaseModel):
    """
    Request body for POST /api/twilio/status

    Twilio posts these form-encoded; JSON is accepted too.
    """

    model_config = ConfigDict(populate_by_name=True)

    call_id: str = Field(..., alias="CallSid", description="Provider's call ID")
    status: str = Field(..., alias="CallStatus", description="New call status")
    duration: Optional[int] = Field(None, alias="CallDuration", description="Duration in seconds")

    @property
    def is_terminal(self) -> bool:
        return self.status.lower() in TERMINAL_CALL_STATUSES


class ActiveCallResponse(BaseModel):
    """API response entry for one tracked call. Identifiers are masked."""

    user: str = Field(..., description="Masked caller identity")
    call_id_masked: str = Field(..., description="Masked provider call ID")
    started_at: datetime
    time_limit_ms: Optional[int] = None
    remaining_ms: Optional[int] = None
    timed: bool = False

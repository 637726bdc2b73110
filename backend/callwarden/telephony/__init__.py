"""
CallWarden - Telephony Integration Module

Components:
- router: HTTP endpoints for registration and call webhooks
- call_control: Outbound hang-up requests (Twilio)
- terminator: Forced call termination and cleanup
- privacy: Caller identity masking
- models: Request/response schemas

Caller identities are masked in every log line and API response.
"""

from .models import CallStatusCallback, CallWebhookEvent, MemberRegistrationRequest
from .privacy import mask_call_id, mask_phone_number

__all__ = [
    "CallStatusCallback",
    "CallWebhookEvent",
    "MemberRegistrationRequest",
    "mask_call_id",
    "mask_phone_number",
]

"""
CallWarden - Telephony Privacy Utilities

Caller identity and call id masking for logs and API responses.

IMPORTANT:
    Raw caller identities must NEVER be logged or returned by the API.
    All identity handling in log statements must go through these utilities.
"""

from typing import Any, Optional


MASK = "xxxxx"


def mask_phone_number(identity: Any) -> str:
    """
    Mask a caller identity for logging.
    
    The last five characters are replaced with ``xxxxx``; anything shorter
    than that is masked entirely.
    
    Examples:
        +15551230000 → +1555123xxxxx
        12345        → xxxxx
        abc          → xxxxx
        None         → unknown
        42           → unknown
    """
    if not identity or not isinstance(identity, str):
        return "unknown"
    
    if len(identity) >= len(MASK):
        return identity[:-len(MASK)] + MASK
    
    return MASK


def mask_call_id(call_id: Optional[str]) -> str:
    """Mask a provider call id to its last 4 characters."""
    if not call_id:
        return "unknown"
    return f"***{call_id[-4:]}" if len(call_id) > 4 else "***"

"""
CallWarden - Core Domain Types

Domain objects shared by the registries, the timer manager and the
terminator. All of them are keyed by caller identity, an opaque string
(typically an E.164 phone number) that is unique per caller but not per call.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class CallEventType(str, Enum):
    """Recognised call-lifecycle webhook discriminators."""
    CALL_START = "runtime.call.start"
    CALL_END = "runtime.call.end"


@dataclass(frozen=True)
class MemberConfig:
    """
    Time budget registered for a caller.
    
    Attributes:
        time_limit_ms: Milliseconds the caller may stay on a call
        end_message: Sentence spoken before the call is hung up
    """
    time_limit_ms: int
    end_message: str


@dataclass(frozen=True)
class ActiveCall:
    """
    The call currently in progress for a caller.
    
    Attributes:
        provider_call_id: Telephony provider's handle (Twilio CallSid)
        start_time_ms: Epoch milliseconds when the call-start event arrived
        metadata: Provider metadata carried on the call-start event
    """
    provider_call_id: str
    start_time_ms: int = field(default_factory=now_ms)
    metadata: Dict[str, Any] = field(default_factory=dict)

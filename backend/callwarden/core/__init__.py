"""
CallWarden - Core Package

Contains the per-caller state and timing logic:
- types: Domain types (MemberConfig, ActiveCall)
- durations: Duration token parsing
- registry: Member and active call registries
- timers: Per-identity expiration timers
- locks: Per-identity serialisation
- enforcer: Orchestration of events, timers and termination
"""

from .durations import DEFAULT_TIME_LIMIT_MS, parse_duration
from .locks import IdentityLocks
from .registry import ActiveCallRegistry, MemberRegistry
from .timers import CallTimerManager, PendingTimer
from .types import ActiveCall, CallEventType, MemberConfig

__all__ = [
    # Types
    "ActiveCall",
    "CallEventType",
    "MemberConfig",
    # Durations
    "DEFAULT_TIME_LIMIT_MS",
    "parse_duration",
    # State
    "ActiveCallRegistry",
    "MemberRegistry",
    "CallTimerManager",
    "PendingTimer",
    "IdentityLocks",
]

"""
CallWarden - Member and Active Call Registries

In-memory, per-identity state. Nothing is persisted: a restart forgets every
registration and every tracked call.

Both registries are plain mappings with no locking of their own; callers
serialise access per identity through IdentityLocks (see enforcer.py).
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional, Tuple

from .types import ActiveCall, MemberConfig, now_ms


class MemberRegistry:
    """Configured time budget and end message per caller identity."""
    
    def __init__(self) -> None:
        self._members: Dict[str, MemberConfig] = {}
    
    def register(self, identity: str, time_limit_ms: int, end_message: str) -> MemberConfig:
        """Insert or overwrite the configuration for ``identity``. Last write wins."""
        config = MemberConfig(time_limit_ms=time_limit_ms, end_message=end_message)
        self._members[identity] = config
        return config
    
    def lookup(self, identity: str) -> Optional[MemberConfig]:
        return self._members.get(identity)
    
    def remove(self, identity: str) -> bool:
        """Remove ``identity``. Returns False if nothing was registered."""
        return self._members.pop(identity, None) is not None
    
    def __contains__(self, identity: object) -> bool:
        return identity in self._members
    
    def __len__(self) -> int:
        return len(self._members)


class ActiveCallRegistry:
    """The in-progress call per caller identity. At most one per identity."""
    
    def __init__(self) -> None:
        self._calls: Dict[str, ActiveCall] = {}
    
    def set(
        self,
        identity: str,
        provider_call_id: str,
        start_time_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActiveCall]:
        """
        Track a call for ``identity``, replacing any call already tracked.
        
        Returns the call it replaced, if any.
        """
        previous = self._calls.get(identity)
        self._calls[identity] = ActiveCall(
            provider_call_id=provider_call_id,
            start_time_ms=start_time_ms if start_time_ms is not None else now_ms(),
            metadata=dict(metadata or {}),
        )
        return previous
    
    def get(self, identity: str) -> Optional[ActiveCall]:
        return self._calls.get(identity)
    
    def remove(self, identity: str) -> bool:
        """Remove ``identity``. Returns False if no call was tracked."""
        return self._calls.pop(identity, None) is not None
    
    def find_by_call_id(self, provider_call_id: str) -> Optional[str]:
        """Reverse lookup: the identity whose active call has this provider id."""
        for identity, call in self._calls.items():
            if call.provider_call_id == provider_call_id:
                return identity
        return None
    
    def items(self) -> Iterator[Tuple[str, ActiveCall]]:
        return iter(list(self._calls.items()))
    
    def __contains__(self, identity: object) -> bool:
        return identity in self._calls
    
    def __len__(self) -> int:
        return len(self._calls)

"""
CallWarden - Duration Tokens

Parses the human-authored time budget sent with a member registration.
"""

import re
from typing import Any


DEFAULT_TIME_LIMIT_MS = 2 * 60 * 1000
"""Budget applied when no usable duration token is supplied (2 minutes)."""

MAX_TIME_LIMIT_MS = 365 * 24 * 60 * 60 * 1000
"""Largest accepted budget (one year). Larger tokens are treated as malformed."""

# Enough digits for any budget up to MAX_TIME_LIMIT_MS, even in seconds.
_MAX_DIGITS = len(str(MAX_TIME_LIMIT_MS // 1000))

_DURATION_RE = re.compile(r"([0-9]+)([sm])")

_UNIT_MS = {
    "s": 1000,
    "m": 60 * 1000,
}


def parse_duration(token: Any) -> int:
    """
    Parse a duration token such as ``"30s"`` or ``"5m"`` into milliseconds.
    
    Anything that is not digits followed by exactly one ``s``/``m`` unit
    (including ``None``, empty strings, decimals, whitespace, zero and budgets
    above MAX_TIME_LIMIT_MS) yields DEFAULT_TIME_LIMIT_MS.
    """
    if not token or not isinstance(token, str):
        return DEFAULT_TIME_LIMIT_MS
    
    match = _DURATION_RE.fullmatch(token)
    if not match:
        return DEFAULT_TIME_LIMIT_MS
    
    value, unit = match.groups()
    if len(value.lstrip("0")) > _MAX_DIGITS:
        return DEFAULT_TIME_LIMIT_MS
    
    millis = int(value) * _UNIT_MS[unit]
    if not 0 < millis <= MAX_TIME_LIMIT_MS:
        return DEFAULT_TIME_LIMIT_MS
    return millis

"""
Trigger-token check + rate limit helpers.
"""
from __future__ import annotations

import hmac
import time
from typing import Dict, Optional

TRIGGER_HEADER = "X-Trigger-Token"


def validate_trigger_token(request, expected: Optional[str]) -> bool:
    """
    Compare the request header with the configured trigger token using constant-time compare.
    With no token configured every trigger is refused.
    """
    expected = expected or ""
    supplied = request.headers.get(TRIGGER_HEADER) or ""
    if not expected or not supplied:
        return False
    return hmac.compare_digest(expected, supplied)


# -------- Rate limiting (in-memory) --------
_rate_state: Dict[str, list[float]] = {}


def allow_request(key: str, limit: int = 5, window_seconds: int = 60) -> bool:
    """
    Simple sliding-window rate limit stored in memory.
    Returns True if under limit, False otherwise.
    """
    now = time.time()
    window_start = now - window_seconds
    history = [t for t in _rate_state.get(key, []) if t > window_start]
    if len(history) >= limit:
        _rate_state[key] = history
        return False
    history.append(now)
    _rate_state[key] = history
    return True


def reset_rate_limits() -> None:
    _rate_state.clear()


__all__ = [
    "TRIGGER_HEADER",
    "validate_trigger_token",
    "allow_request",
    "reset_rate_limits",
]

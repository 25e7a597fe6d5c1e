"""API key authentication and per-key rate limiting.

Every router is mounted behind :func:`require_api_key`.  Rate limiting keeps
an in-memory sliding window of request timestamps per API key.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict

from fastapi import Header, HTTPException, status

from autoquote.config import settings

logger = logging.getLogger("autoquote.api.security")

# Maps api_key → list of request timestamps (monotonic seconds)
_rate_limit_windows: dict[str, list[float]] = defaultdict(list)


def _check_rate_limit(api_key: str) -> None:
    """Enforce ``rate_limit_max`` requests per sliding window per API key.

    Raises HTTP 429 when the limit is exceeded.
    """
    now = time.monotonic()
    cutoff = now - settings.rate_limit_window_seconds
    window = [t for t in _rate_limit_windows[api_key] if t > cutoff]
    _rate_limit_windows[api_key] = window
    if len(window) >= settings.rate_limit_max:
        logger.warning("Rate limit exceeded for key=%s", api_key[:8])
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                f"Rate limit exceeded: {settings.rate_limit_max} requests per "
                f"{settings.rate_limit_window_seconds:g} seconds."
            ),
        )
    window.append(now)


def reset_rate_limits() -> None:
    _rate_limit_windows.clear()


async def require_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> str:
    """Validate the ``X-API-Key`` header and enforce rate limiting.

    Raises
    ------
    HTTPException
        403 if the key is invalid; 429 if rate limit is exceeded.
    """
    if x_api_key != settings.autoquote_api_key:
        logger.warning("Invalid API key attempt: %s...", x_api_key[:6])
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key.",
        )
    _check_rate_limit(x_api_key)
    return x_api_key

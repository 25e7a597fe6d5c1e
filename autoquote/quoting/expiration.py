"""Quote expiration: quoted policies lapse a fixed number of days after creation.

Pure date arithmetic used by the quote retrieval endpoint to warn customers
about expiring quotes.  The periodic sweep that actually flips stale quotes
to ``EXPIRED`` lives in :meth:`PolicyCreationService.expire_stale_quotes`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel

from autoquote.config import settings
from autoquote.quoting.schemas import ExpirationInfo, UrgencyLevel

_URGENT_DAYS = 3
_WARNING_DAYS = 7


class ExpirationCheck(BaseModel):
    """Expiration status of a quote at a point in time.

    Attributes:
        is_expired: Whether the quote has reached its expiration age.
        days_old: Whole days elapsed since creation.
        days_until_expiration: Days left; negative once expired.
        expiration_date: Creation timestamp plus the expiration window.
        created_at: Creation timestamp (UTC).
    """

    is_expired: bool
    days_old: int
    days_until_expiration: int
    expiration_date: datetime
    created_at: datetime


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps come back from backends without timezone support.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def check_expiration(
    created_at: datetime,
    now: datetime | None = None,
    expiration_days: int | None = None,
) -> ExpirationCheck:
    days = expiration_days if expiration_days is not None else settings.quote_expiration_days
    created = _as_utc(created_at)
    current = _as_utc(now) if now is not None else datetime.now(timezone.utc)

    days_old = (current - created) // timedelta(days=1)
    return ExpirationCheck(
        is_expired=days_old >= days,
        days_old=days_old,
        days_until_expiration=days - days_old,
        expiration_date=created + timedelta(days=days),
        created_at=created,
    )


def expiration_message(check: ExpirationCheck) -> str:
    """Human-readable status, e.g. "This quote expires in 15 days"."""
    if check.is_expired:
        days_ago = abs(check.days_until_expiration)
        if days_ago == 0:
            return "This quote expired today"
        if days_ago == 1:
            return "This quote expired yesterday"
        return f"This quote expired {days_ago} days ago"

    days_left = check.days_until_expiration
    if days_left == 0:
        return "This quote expires today"
    if days_left == 1:
        return "This quote expires tomorrow"
    return f"This quote expires in {days_left} days"


def urgency_level(check: ExpirationCheck) -> UrgencyLevel:
    if check.is_expired:
        return "expired"
    if check.days_until_expiration <= _URGENT_DAYS:
        return "urgent"
    if check.days_until_expiration <= _WARNING_DAYS:
        return "warning"
    return "normal"


def should_show_warning(check: ExpirationCheck) -> bool:
    return not check.is_expired and check.days_until_expiration <= _WARNING_DAYS


def expiration_percentage(check: ExpirationCheck, expiration_days: int | None = None) -> int:
    """Share of the expiration window elapsed, capped at 100."""
    days = expiration_days if expiration_days is not None else settings.quote_expiration_days
    return min(100, (check.days_old * 100) // days)


def expiration_info(created_at: datetime, now: datetime | None = None) -> ExpirationInfo:
    """Build the API-facing expiration block for a quote."""
    check = check_expiration(created_at, now=now)
    return ExpirationInfo(
        is_expired=check.is_expired,
        days_old=check.days_old,
        days_until_expiration=check.days_until_expiration,
        expiration_date=check.expiration_date,
        message=expiration_message(check),
        urgency=urgency_level(check),
    )

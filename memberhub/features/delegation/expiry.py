"""
Lazy expiry of event-manager grants.

There is no scheduled sweep that revokes expired grants. A grant whose expiry
has passed stays in the role store until an admin revokes it, and every
decision reads the role through ``effective_role`` so the stale row is inert.
"""
from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from memberhub.core import config
from memberhub.features.roles.catalog import Role
from memberhub.utils import as_utc, utcnow


def effective_role(
    stored_role: Optional[Role],
    expiry: Optional[datetime],
    now: Optional[datetime] = None,
) -> Role:
    """
    Role to use for every authorization and verification decision.

    No stored row is MEMBER. An EVENT_MANAGER grant is MEMBER once
    ``now >= expiry``; a grant without an expiry is treated as expired.
    """
    if stored_role is None:
        return Role.MEMBER
    if stored_role != Role.EVENT_MANAGER:
        return stored_role
    if expiry is None:
        return Role.MEMBER
    now = as_utc(now) if now is not None else utcnow()
    if now >= as_utc(expiry):
        return Role.MEMBER
    return Role.EVENT_MANAGER


def is_grant_active(stored_role: Optional[Role], expiry: Optional[datetime], now: Optional[datetime] = None) -> bool:
    return effective_role(stored_role, expiry, now) == Role.EVENT_MANAGER


def end_of_day(day: date, tz_name: Optional[str] = None) -> datetime:
    """Last microsecond of ``day`` in the configured timezone, as UTC."""
    tz = ZoneInfo(tz_name or config.EVENT_EXPIRY_TIMEZONE)
    local = datetime.combine(day, time(23, 59, 59, 999999), tzinfo=tz)
    return local.astimezone(timezone.utc)

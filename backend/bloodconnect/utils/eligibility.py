from __future__ import annotations

from datetime import datetime, timedelta, timezone

DONATION_INTERVAL_DAYS = 56


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def is_eligible(last_donation_at: datetime | None, now: datetime | None = None) -> bool:
    """Whole-blood donors may give again once 56 full days have passed.

    Display only: matching and dispatch never exclude on this.
    """
    if last_donation_at is None:
        return True
    now = _as_utc(now or datetime.now(timezone.utc))
    return (now - _as_utc(last_donation_at)).days >= DONATION_INTERVAL_DAYS


def next_eligible_at(last_donation_at: datetime | None) -> datetime | None:
    if last_donation_at is None:
        return None
    return _as_utc(last_donation_at) + timedelta(days=DONATION_INTERVAL_DAYS)

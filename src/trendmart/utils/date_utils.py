from datetime import datetime, timezone
from typing import Optional

import pytz
from dateutil.relativedelta import relativedelta


class DateUtils:
    """
    Centralized date/time utilities

    Everything stored in the database is timezone-aware UTC. Conversion to the
    store's local timezone happens only for display (e.g. notification emails).
    """

    UTC = timezone.utc

    @classmethod
    def now_utc(cls) -> datetime:
        """Get current UTC datetime - always use this for database storage"""
        return datetime.now(cls.UTC)

    @classmethod
    def ensure_aware(cls, dt: datetime) -> datetime:
        """Treat naive datetimes (SQLite drops tzinfo) as UTC"""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=cls.UTC)
        return dt

    @classmethod
    def create_expiry_time(cls, duration_minutes: int, now: Optional[datetime] = None) -> datetime:
        """Create expiry datetime from current time + duration"""
        return (now or cls.now_utc()) + relativedelta(minutes=duration_minutes)

    @classmethod
    def is_expired(cls, expiry_date: datetime, now: Optional[datetime] = None) -> bool:
        return (now or cls.now_utc()) > cls.ensure_aware(expiry_date)

    @classmethod
    def format_for_display(
        cls,
        dt: datetime,
        timezone_name: str = 'UTC',
        format_string: str = '%Y-%m-%d %I:%M %p %Z'
    ) -> str:
        """
        Format datetime for user display

        Default format: "2026-01-03 10:30 AM UTC"
        """
        target_tz = pytz.timezone(timezone_name)
        local_dt = cls.ensure_aware(dt).astimezone(target_tz)

        return local_dt.strftime(format_string)

from __future__ import annotations

from datetime import date, datetime, timezone as dt_timezone

import pytz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "UTC"


class TimezoneUtils:
    """Timezone helpers for timestamps and the per-status date columns."""

    @staticmethod
    def validate_timezone(tz_name: str | None) -> bool:
        """Return True when the timezone string exists in pytz."""
        return bool(tz_name) and tz_name in pytz.all_timezones_set

    @staticmethod
    def _get_timezone(tz_name: str):
        if not TimezoneUtils.validate_timezone(tz_name):
            raise ValueError(f"Invalid timezone: {tz_name}")
        return pytz.timezone(tz_name)

    @staticmethod
    def utc_now() -> datetime:
        """Return the current UTC timestamp (timezone aware)."""
        return datetime.now(dt_timezone.utc)

    @staticmethod
    def app_timezone() -> str:
        """Configured business timezone, falling back to UTC when unset or invalid."""
        tz_name = current_app.config.get("APP_TIMEZONE") if has_app_context() else None
        return tz_name if TimezoneUtils.validate_timezone(tz_name) else DEFAULT_TIMEZONE

    @staticmethod
    def today(tz_name: str | None = None) -> date:
        """Calendar date "now" in the given (or configured) timezone."""
        target = TimezoneUtils._get_timezone(tz_name or TimezoneUtils.app_timezone())
        return TimezoneUtils.utc_now().astimezone(target).date()

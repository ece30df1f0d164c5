from datetime import date, datetime
from typing import Optional, Union

import pytz
from dateutil.parser import isoparse


class TimeManager:
    @staticmethod
    def get_time_now() -> datetime:
        return datetime.now(pytz.UTC)

    @staticmethod
    def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
        """
        Parse a form date ("2025-06-01" or a full ISO timestamp). Returns None when unparseable.

        Timestamps carrying an offset are read as UTC calendar dates, the same day a browser's
        `toISOString()` would print.
        """
        if value is None:
            return None
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            try:
                value = isoparse(value)
            except (ValueError, OverflowError):
                return None
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(pytz.UTC)
            return value.date()
        if isinstance(value, date):
            return value
        return None

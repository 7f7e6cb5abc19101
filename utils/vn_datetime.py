"""Timestamps in the warehouse's local time (Vietnam, UTC+7)."""

from datetime import datetime

import pytz

from constants.sheets import WAREHOUSE_TIMEZONE


def to_vn_timestamp(dt: datetime) -> str:
    """Convert a datetime to an ISO string with millisecond precision, e.g. 2025-11-19T14:30:00.000+07:00"""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    local = dt.astimezone(pytz.timezone(WAREHOUSE_TIMEZONE))
    return local.isoformat(timespec="milliseconds")


def get_vn_timestamp() -> str:
    return to_vn_timestamp(datetime.now(pytz.utc))

"""Shared formatting utilities used across backend modules."""
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from app.config import get_settings

ROC_EPOCH_OFFSET = 1911


def now_local(tz_name: Optional[str] = None) -> datetime:
    """Current time in the configured timezone."""
    return datetime.now(ZoneInfo(tz_name or get_settings().TIMEZONE))


def format_roc_timestamp(moment: datetime) -> str:
    """Format a datetime the way the light sheets write it (ROC year).

    Examples:
        2026-10-18 09:05:03 -> "115/10/18 9:05:03"
    """
    return (
        f"{moment.year - ROC_EPOCH_OFFSET}/{moment.month}/{moment.day} "
        f"{moment.hour}:{moment.minute:02d}:{moment.second:02d}"
    )


def format_file_timestamp(moment: datetime) -> str:
    """Compact timestamp used in stored attachment names (yyyyMMddHHmmss)."""
    return moment.strftime("%Y%m%d%H%M%S")


def format_coordinate(value: Optional[float]) -> str:
    """Text form of a coordinate for history rows; None becomes ""."""
    if value is None:
        return ""
    return repr(float(value))


def to_local_naive(moment: datetime, tz_name: Optional[str] = None) -> datetime:
    """Wall-clock time in the configured timezone, without tzinfo."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(ZoneInfo(tz_name or get_settings().TIMEZONE))
    return moment.replace(tzinfo=None)

import logging
from datetime import date
from datetime import datetime
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "America/Bogota"


def resolve_timezone(timezone_name: str, logger: logging.Logger | None = None) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        if logger is not None:
            logger.warning("Invalid timezone '%s'. Falling back to UTC.", timezone_name)
        return ZoneInfo("UTC")


def now_in_timezone(timezone_name: str, now: datetime | None = None) -> datetime:
    tz = resolve_timezone(timezone_name)
    if now is None:
        return datetime.now(tz=tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def today_in_timezone(timezone_name: str, now: datetime | None = None) -> date:
    return now_in_timezone(timezone_name, now).date()


def get_now_iso_and_epoch(timezone_name: str, logger: logging.Logger) -> tuple[str, int]:
    tz = resolve_timezone(timezone_name, logger=logger)
    now = datetime.now(tz=tz)
    return now.isoformat(), int(now.timestamp())

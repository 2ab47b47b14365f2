# plugin_gate/core/timeutil.py
import datetime as dt
from typing import Optional


def utc_now() -> dt.datetime:
    """
    Get current UTC datetime with timezone information.
    """
    return dt.datetime.now(dt.timezone.utc)


def as_utc(d: Optional[dt.datetime]) -> Optional[dt.datetime]:
    """Treat naive datetimes coming back from the database as UTC."""
    if d is None:
        return None
    if d.tzinfo is None:
        return d.replace(tzinfo=dt.timezone.utc)
    return d.astimezone(dt.timezone.utc)


def to_iso(d: Optional[dt.datetime]) -> Optional[str]:
    """ISO 8601 string with a trailing 'Z', or None."""
    d = as_utc(d)
    if d is None:
        return None
    return d.isoformat().replace("+00:00", "Z")

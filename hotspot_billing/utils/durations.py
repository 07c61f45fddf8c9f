"""Duration helpers for plans.

RouterOS expresses time spans as compact tokens such as ``1d2h`` or ``30m``.
Plans store an interval, which reaches us either as a ``timedelta`` or as the
PostgreSQL text form (``"1 day 02:00:00"``).
"""

import re
from datetime import timedelta
from typing import Optional, Union

_DAY_RE = re.compile(r"(\d+)\s*day")
_CLOCK_RE = re.compile(r"(\d+):(\d{2}):(\d{2})")
_HOUR_RE = re.compile(r"(\d+)\s*hour")
_MINUTE_RE = re.compile(r"(\d+)\s*min")
_TOKEN_RE = re.compile(r"^(?:\d+d)?(?:\d+h)?(?:\d+m)?(?:\d+s)?$")
_ALLOWED_RE = re.compile(r"^[0-9dhms]+$")


def to_routeros_duration(raw: Union[str, timedelta, None]) -> Optional[str]:
    """Convert a plan duration into a RouterOS time token.

    "02:00:00" -> "2h", "1 day" -> "1d", "1 day 02:00:00" -> "1d2h", "00:30:00" -> "30m".
    Seconds are only emitted when nothing coarser is present. Returns None when no
    unit can be recognised.
    """
    if raw is None:
        return None
    text = str(raw).strip().lower()
    if not text:
        return None

    # already a RouterOS token
    if _TOKEN_RE.match(text):
        return text

    out = ""

    day_match = _DAY_RE.search(text)
    if day_match:
        days = int(day_match.group(1))
        if days > 0:
            out += f"{days}d"

    clock_match = _CLOCK_RE.search(text)
    if clock_match:
        hours, minutes, seconds = (int(part) for part in clock_match.groups())
        if hours > 0:
            out += f"{hours}h"
        if minutes > 0:
            out += f"{minutes}m"
        if seconds > 0 and not out:
            out += f"{seconds}s"

    if not out:
        hour_match = _HOUR_RE.search(text)
        if hour_match:
            out += f"{int(hour_match.group(1))}h"
    if not out:
        minute_match = _MINUTE_RE.search(text)
        if minute_match:
            out += f"{int(minute_match.group(1))}m"

    if out and _ALLOWED_RE.match(out):
        return out
    return None


def describe_duration(duration: Optional[timedelta]) -> str:
    """Human readable plan length for the portal ("1 day", "3 hours", "30 minutes")."""
    if not duration:
        return ""
    total_seconds = int(duration.total_seconds())
    hours = total_seconds // 3600
    if hours >= 24 and hours % 24 == 0:
        days = hours // 24
        return f"{days} days" if days > 1 else f"{days} day"
    if hours >= 1:
        return f"{hours} hours" if hours > 1 else f"{hours} hour"
    minutes = total_seconds // 60
    return f"{minutes} minutes" if minutes != 1 else f"{minutes} minute"

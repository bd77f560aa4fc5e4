"""
Trading Sessions & Time-of-Day Helpers

Reliability Level: L6 Critical
Input Constraints: "HH:MM" strings, timezone-aware or naive (UTC) datetimes
Side Effects: None

Minute-of-day arithmetic for time-window rules, plus market session
classification and normalization used by session rules and by callers that
derive situational inputs from a trade's timestamp.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

# Strict time-of-day pattern, matched against the whole string with ASCII
# digits only. Anything else is treated as malformed.
TIME_OF_DAY_PATTERN = re.compile(r"(\d{1,2}):(\d{2})", re.ASCII)


class MarketSession(str, Enum):
    """Market sessions by UTC hour."""
    ASIAN = "asian"
    LONDON = "london"
    OVERLAP = "overlap"
    NEW_YORK = "new_york"
    OFF_HOURS = "off_hours"


# Alternate spellings seen in stored strategies and client payloads
SESSION_ALIASES = {
    "overlap_london_ny": MarketSession.OVERLAP.value,
    "london_ny_overlap": MarketSession.OVERLAP.value,
    "london/ny_overlap": MarketSession.OVERLAP.value,
    "newyork": MarketSession.NEW_YORK.value,
    "asia": MarketSession.ASIAN.value,
}


def parse_time_to_minutes(value: Optional[str]) -> Optional[int]:
    """
    Convert "HH:MM" to minutes since midnight.

    Returns None for anything that does not match TIME_OF_DAY_PATTERN,
    including None and non-string input. Hour and minute ranges are not
    checked beyond the pattern.
    """
    if not isinstance(value, str):
        return None
    match = TIME_OF_DAY_PATTERN.fullmatch(value)
    if match is None:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def is_within_window(minute: int, start: int, end: int, wrap_overnight: bool = False) -> bool:
    """
    Closed-interval inclusion of a minute-of-day in [start, end].

    A window with start > end contains no minute unless wrap_overnight is
    set, in which case it runs past midnight (e.g. 22:00-02:00).
    """
    if start <= end:
        return start <= minute <= end
    if not wrap_overnight:
        return False
    return minute >= start or minute <= end


def _as_utc(timestamp: Union[datetime, str]) -> datetime:
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def classify_session(timestamp: Union[datetime, str]) -> MarketSession:
    """
    Classify a timestamp into a market session by its UTC hour.

    00-06 Asian, 07-11 London, 12-15 London/NY overlap, 16-20 New York,
    21-23 off hours. Naive datetimes are taken as UTC.
    """
    hour = _as_utc(timestamp).hour
    if hour < 7:
        return MarketSession.ASIAN
    if hour < 12:
        return MarketSession.LONDON
    if hour < 16:
        return MarketSession.OVERLAP
    if hour < 21:
        return MarketSession.NEW_YORK
    return MarketSession.OFF_HOURS


def format_trade_time(timestamp: Union[datetime, str]) -> str:
    """Render a timestamp as UTC "HH:MM"."""
    return _as_utc(timestamp).strftime("%H:%M")


def normalize_session(value: Optional[str]) -> Optional[str]:
    """
    Canonical session key for membership checks.

    Lower-cases, trims, maps spaces and hyphens to underscores and resolves
    known aliases. Empty input yields None.
    """
    if value is None:
        return None
    key = str(value).strip().lower().replace(" ", "_").replace("-", "_")
    if not key:
        return None
    return SESSION_ALIASES.get(key, key)

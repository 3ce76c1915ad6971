"""
Helper functions for formatting data into human-readable strings.
"""

import re

_SIZE_UNITS = {
    "": 1,
    "B": 1,
    "KB": 1024,
    "K": 1024,
    "MB": 1024**2,
    "M": 1024**2,
    "GB": 1024**3,
    "G": 1024**3,
    "TB": 1024**4,
    "T": 1024**4,
}
_SIZE_REGEX = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[KMGT]?B?)\s*$", re.I)


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def parse_size(value: str | int | None) -> int:
    """
    Parses a byte count from the feed, which is either a plain integer or a
    human-readable string such as '1.2 GB'. Unparseable values become 0.
    """
    if value is None:
        return 0
    if isinstance(value, int):
        return max(value, 0)
    match = _SIZE_REGEX.match(value.replace(",", ""))
    if not match:
        return 0
    unit = match.group("unit").upper()
    return int(float(match.group("value")) * _SIZE_UNITS.get(unit, 1))


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_age(seconds: float) -> str:
    """Formats the age of a cache entry (e.g., '3h 12m ago')."""
    return f"{format_duration(max(seconds, 0))} ago"

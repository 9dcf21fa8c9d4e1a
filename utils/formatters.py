"""Formatting and timestamp utilities."""
from datetime import datetime, timezone


def parse_timestamp(value):
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Accepts a trailing 'Z'. Naive values are taken as UTC.
    Raises ValueError if the value cannot be parsed.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty timestamp")
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    else:
        raise ValueError(f"unsupported timestamp type: {type(value).__name__}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except OverflowError:
        raise ValueError(f"timestamp out of range: {value!r}") from None


def to_iso(dt):
    """Serialize a datetime as a fixed-width UTC ISO string (sortable as text)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utcnow():
    return datetime.now(timezone.utc)


def format_timestamp(ts):
    """Format a datetime to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        return ts
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_value(value, decimals=2):
    """Format a metric value, dropping trailing zeros for whole numbers."""
    if value is None:
        return "N/A"
    value = float(value)
    if value.is_integer():
        return f"{value:,.0f}"
    return f"{value:,.{decimals}f}"


def format_cooldown(seconds):
    """Format a cooldown in seconds: 0 -> 'none', 90 -> '1m 30s'."""
    if not seconds:
        return "none"
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        minutes, rem = divmod(seconds, 60)
        return f"{minutes}m {rem}s" if rem else f"{minutes}m"
    hours, rem = divmod(seconds, 3600)
    return f"{hours}h {rem // 60}m" if rem else f"{hours}h"


def time_ago(dt):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "N/A"
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = int(delta.total_seconds())

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"

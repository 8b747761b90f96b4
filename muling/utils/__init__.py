from datetime import datetime, timezone
from typing import Optional


def get_window_milliseconds(window_hours) -> float:
    return float(window_hours) * 3600 * 1000


def format_timestamp_ms(timestamp_ms) -> Optional[str]:
    """Render an epoch-milliseconds timestamp as a UTC ISO-8601 string, or None when not representable."""
    if timestamp_ms is None:
        return None
    try:
        dt = datetime.fromtimestamp(float(timestamp_ms) / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return dt.isoformat(timespec='milliseconds').replace('+00:00', 'Z')

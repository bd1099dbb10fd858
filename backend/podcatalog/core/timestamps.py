from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time, used for every locally written timestamp."""
    return datetime.now(timezone.utc)


def from_unix(value: Any) -> Optional[datetime]:
    """
    Converts a Unix timestamp in seconds (int, float or numeric string) to an
    aware UTC datetime. Missing, non-numeric and non-positive values map to None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if numeric != numeric or numeric <= 0:
        return None
    try:
        return datetime.fromtimestamp(numeric, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None

"""
Date window helpers.

Spotify reports release dates with a precision of "year" ("2024"),
"month" ("2024-10") or "day" ("2024-10-17"). Each one is turned into
midnight UTC of the first day it can denote, so releases of any
precision compare against a single cutoff instant.
"""

from datetime import datetime, timedelta, timezone

from release_sync.core.exceptions import ReleaseDateError


def cutoff_instant(lookback_days: int, now: datetime | None = None) -> datetime:
    """
    Return the instant `lookback_days` days before now, in UTC.

    Args:
        lookback_days: Size of the lookback window in days.
        now: Reference time, defaults to the current UTC time. Naive
             values are taken as UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - timedelta(days=lookback_days)


def parse_release_instant(release_date: str, precision: str | None) -> datetime:
    """
    Parse a Spotify release date into a comparable UTC instant.

    Args:
        release_date: The `release_date` field of an album object.
        precision: The `release_date_precision` field. "year" maps to
                   January 1, "month" to the first of the month, anything
                   else is read as a full date.

    Returns:
        Midnight UTC of the resolved day.

    Raises:
        ReleaseDateError: If the value does not match its precision.

    Example:
        >>> parse_release_instant("2024-10", "month")
        datetime.datetime(2024, 10, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if precision == "year":
        pattern = "%Y"
    elif precision == "month":
        pattern = "%Y-%m"
    else:
        pattern = "%Y-%m-%d"

    try:
        parsed = datetime.strptime(str(release_date).strip(), pattern)
    except ValueError as e:
        raise ReleaseDateError(
            f"Unparseable release date {release_date!r} (precision {precision!r})",
            details={"release_date": release_date, "precision": precision}
        ) from e

    return parsed.replace(tzinfo=timezone.utc)

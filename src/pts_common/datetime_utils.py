"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def seconds_since(moment: datetime, now: datetime | None = None) -> float:
    """Elapsed seconds from `moment` to `now` (defaults to utc_now()).

    Naive datetimes are treated as UTC (asyncpg returns aware values for
    TIMESTAMPTZ, but fixtures and older rows may not).
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return ((now or utc_now()) - moment).total_seconds()

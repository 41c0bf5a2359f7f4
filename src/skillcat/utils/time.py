"""Time helpers. All timestamps are timezone-aware UTC."""

from __future__ import annotations

from datetime import UTC, datetime

DAY_SECONDS = 86_400.0


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (as returned by SQLite)."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later``."""

    return (later - earlier).total_seconds() / DAY_SECONDS


def to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def parse_iso_datetime(raw: str | None) -> datetime | None:
    """Parse GitHub ISO-8601 timestamps (``2024-01-02T03:04:05Z``)."""

    if not raw:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        return None


def hour_key(value: datetime) -> str:
    """``YYYY-MM-DDTHH`` bucket used by hourly counters."""

    return value.astimezone(UTC).strftime("%Y-%m-%dT%H")


def quarter_key(value: datetime) -> str:
    return f"{value.year}-Q{(value.month - 1) // 3 + 1}"

from datetime import UTC, date, datetime


def date_key_utc(when: datetime | str) -> str:
    """UTC calendar day of a timestamp as "YYYY-MM-DD". Naive datetimes are taken as UTC."""
    if isinstance(when, str):
        when = datetime.fromisoformat(when.replace("Z", "+00:00"))
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return when.astimezone(UTC).date().isoformat()


def parse_date_key(date_key: str) -> date:
    return date.fromisoformat(date_key)

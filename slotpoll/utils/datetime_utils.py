from datetime import datetime, timezone


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def serialize_datetime(dt: datetime | None) -> str | None:
    if dt is None:
        return None

    return as_utc(dt).isoformat().replace("+00:00", "Z")


def format_event_range(start: datetime, end: datetime) -> str:
    start = as_utc(start)
    end = as_utc(end)
    if start.date() == end.date():
        return f"{start.strftime('%d.%m.%Y %H:%M')} - {end.strftime('%H:%M')} UTC"
    return f"{start.strftime('%d.%m.%Y %H:%M')} - {end.strftime('%d.%m.%Y %H:%M')} UTC"

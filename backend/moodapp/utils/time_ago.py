"""
Relative Zeitangaben ("5 minutes ago") für Mood-Einträge.
"""
from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    # SQLite liefert naive Datetimes zurück – als UTC interpretieren
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'} ago"


def time_ago(timestamp: datetime, now: datetime | None = None) -> str:
    """Formatiert den Abstand zwischen timestamp und now.

    <1 Minute → "Just now", <60 Minuten → Minuten, <24 Stunden → Stunden,
    sonst Tage. Es wird jeweils abgerundet.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    diff_minutes = int((now - as_utc(timestamp)).total_seconds() // 60)

    if diff_minutes < 1:
        return "Just now"
    if diff_minutes < 60:
        return _plural(diff_minutes, "minute")

    diff_hours = diff_minutes // 60
    if diff_hours < 24:
        return _plural(diff_hours, "hour")

    return _plural(diff_hours // 24, "day")

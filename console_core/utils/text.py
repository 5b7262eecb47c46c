"""
Text formatting helpers shared by the CLI and the view models.
"""
from datetime import datetime, timezone
from typing import Optional


def pluralize(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def relative_time(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Humanized distance to now, e.g. '3 minutes ago' or 'in 2 days'."""
    if value is None:
        return ""

    now = _utc(now or datetime.now(timezone.utc))
    seconds = (now - _utc(value)).total_seconds()
    future = seconds < 0
    seconds = abs(seconds)

    minutes = seconds / 60
    hours = minutes / 60
    days = hours / 24

    if seconds < 45:
        text = "a few seconds"
    elif seconds < 90:
        text = "a minute"
    elif minutes < 45:
        text = f"{round(minutes)} minutes"
    elif minutes < 90:
        text = "an hour"
    elif hours < 22:
        text = f"{round(hours)} hours"
    elif hours < 36:
        text = "a day"
    elif days < 26:
        text = f"{round(days)} days"
    elif days < 46:
        text = "a month"
    elif days < 320:
        text = f"{round(days / 30.4)} months"
    elif days < 548:
        text = "a year"
    else:
        text = f"{round(days / 365)} years"

    return f"in {text}" if future else f"{text} ago"


def format_short_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%b %d, %Y %H:%M")

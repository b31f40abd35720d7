"""Human-readable renderings of due times and intervals."""

from datetime import datetime, timedelta

from kairos.domain.constants import MINUTES_PER_DAY
from kairos.domain.scheduling.models import CardRecord, ensure_utc


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def format_time_until(delta: timedelta) -> str:
    """Render a signed time-until-due duration ("Due in 3 days", "2 days overdue")."""
    total_seconds = delta.total_seconds()

    if total_seconds < 0:
        overdue_days = int(-total_seconds // 86400)
        if overdue_days > 0:
            return f"{_plural(overdue_days, 'day')} overdue"
        return "Due now"

    days = int(total_seconds // 86400)
    hours = int(total_seconds % 86400 // 3600)
    minutes = int(total_seconds % 3600 // 60)

    if days > 0:
        return f"Due in {_plural(days, 'day')}"
    if hours > 0:
        return f"Due in {_plural(hours, 'hour')}"
    if minutes > 0:
        return f"Due in {_plural(minutes, 'minute')}"
    return "Due soon"


def format_due(card: CardRecord, now: datetime) -> str:
    return format_time_until(ensure_utc(card.scheduling.due) - ensure_utc(now))


def format_interval(days: float) -> str:
    """Compact interval label for grade buttons, e.g. '10m', '4h', '3d', '1.5mo', '2.1y'."""
    if days < 1 / 24:
        return f"{round(days * MINUTES_PER_DAY)}m"
    if days < 1:
        return f"{round(days * 24)}h"
    if days < 30:
        return f"{round(days)}d"
    if days < 365:
        return f"{round(days / 30, 1)}mo"
    return f"{round(days / 365, 1)}y"

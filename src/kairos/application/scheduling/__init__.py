# Application Scheduling Package
from .formatting import format_due, format_interval, format_time_until
from .scheduler import ScheduledOutcome, Scheduler, apply_review
from .service import ReviewSessionService

__all__ = [
    "Scheduler",
    "ScheduledOutcome",
    "apply_review",
    "ReviewSessionService",
    "format_due",
    "format_interval",
    "format_time_until",
]

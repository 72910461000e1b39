"""Human-readable elapsed-time phrases for bot replies."""

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(value: int | str) -> datetime:
    return _EPOCH + timedelta(milliseconds=int(value))


def format_elapsed(elapsed: timedelta) -> str:
    """Render an elapsed duration the way the bot phrases it, e.g. "3 minutes".

    Precision drops as the duration grows: seconds under two minutes,
    minutes under two hours, hours under two days, then whole days.
    """
    seconds = max(0, int(elapsed.total_seconds()))
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    if days > 1:
        return f"{days} days"
    if hours > 25:
        return f"1 day and {hours - 24} hours"
    if minutes >= 120:
        return f"{hours} hours"
    if minutes > 61:
        return f"1 hour and {minutes - 60} minutes"
    if minutes > 1:
        return f"{minutes} minutes"
    if seconds > 1:
        return f"{seconds} seconds"
    return "a second"

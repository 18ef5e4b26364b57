from datetime import datetime, timezone


def utcnow() -> datetime:
    """Server-side 'now' in UTC, naive to match the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

"""UTC clock for persisted timestamps.

Everything written to the local store is timezone-aware UTC. Use utcnow()
instead of datetime.now() anywhere a value ends up in a table or is compared
against one.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)

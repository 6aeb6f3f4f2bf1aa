"""Common helper functions for ledger modules."""

import uuid
from datetime import UTC, datetime


def now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def generate_client_id() -> str:
    """Generate a lock client id (36-char UUID4 string)."""
    return str(uuid.uuid4())


def as_utc(value: datetime) -> datetime:
    """Normalise a timestamp to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)

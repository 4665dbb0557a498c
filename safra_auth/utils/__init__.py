"""
Utility functions
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime.

    Timestamp columns are declared as plain DateTime (no time zone), so every
    timestamp written or compared by this package is naive UTC.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def normalize_email(email: str) -> str:
    """Trim and lowercase an email before any storage or comparison."""
    return email.strip().lower()


__all__ = [
    "normalize_email",
    "utcnow",
]

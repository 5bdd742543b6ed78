"""
Utility functions and classes for chatvault.
"""

from datetime import datetime, timezone


class Colors:
    """ANSI color codes for terminal output."""

    HEADER = "\033[95m"
    OKBLUE = "\033[94m"
    OKCYAN = "\033[96m"
    OKGREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[91m"
    ENDC = "\033[0m"
    BOLD = "\033[1m"


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def format_timestamp(timestamp_ms: int) -> str:
    """
    Convert an epoch-millisecond timestamp to a readable UTC string.

    Args:
        timestamp_ms: Milliseconds since 1970-01-01 UTC.

    Returns:
        Formatted date string, e.g. "2023-11-14 22:13:20".
    """
    return ms_to_datetime(timestamp_ms).strftime("%Y-%m-%d %H:%M:%S")


def format_message_count(count: int) -> str:
    """
    Format message count with appropriate units.

    Args:
        count: Number of messages.

    Returns:
        Formatted string (e.g., "1,234" or "1.2K").
    """
    if count < 1000:
        return str(count)
    elif count < 1_000_000:
        return f"{count / 1000:.1f}K"
    else:
        return f"{count / 1_000_000:.1f}M"

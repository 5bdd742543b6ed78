"""
Analysis helpers over stored contacts and messages.

Statistics, tag suggestions, the "smart filter" that hides reaction and
system noise from a timeline, and the small search helpers used by the
API and CLI.
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List

from chatvault.ingest.models import Contact, Message
from chatvault.store import SQLiteStore
from chatvault.utils import ms_to_datetime

logger = logging.getLogger(__name__)

# Lower-cased fragments of reaction / system messages
NOISE_MARKERS = ("reacted", "liked a message", "unsent", "theme to")


def get_statistics(store: SQLiteStore, top: int = 5) -> Dict[str, Any]:
    """
    Get overall store statistics.

    Returns:
        Dictionary with total_messages, total_contacts and top_contacts
        (the contacts with the most messages).
    """
    stats = {
        "total_messages": store.count_messages(),
        "total_contacts": store.count_contacts(),
        "top_contacts": store.top_contacts(limit=top),
    }
    logger.info(
        f"Statistics: {stats['total_messages']} messages, {stats['total_contacts']} contacts"
    )
    return stats


def get_smart_tags(store: SQLiteStore) -> List[str]:
    """Every distinct tag in use across contacts, sorted."""
    unique = set()
    for raw in store.get_all_tags():
        unique.update(tag.strip() for tag in raw.split(",") if tag.strip())
    return sorted(unique)


def add_tag(tags: str, tag: str) -> str:
    """
    Append a tag to a comma-joined tag string.

    Examples:
        >>> add_tag("", "work")
        'work'
        >>> add_tag("work", "family")
        'work, family'
    """
    if not tags:
        return tag
    return f"{tags}, {tag}"


def is_noise_message(message: Message) -> bool:
    """True for empty messages and reaction/system events."""
    text = message.content.lower()
    if not text:
        return True
    return any(marker in text for marker in NOISE_MARKERS)


def filter_noise(messages: Iterable[Message]) -> List[Message]:
    """Drop noise messages, keeping order."""
    return [message for message in messages if not is_noise_message(message)]


def find_matches(messages: List[Message], query: str) -> List[int]:
    """Indices of messages whose content contains query (case-insensitive)."""
    if not query:
        return []
    needle = query.casefold()
    return [index for index, message in enumerate(messages) if needle in message.content.casefold()]


def filter_contacts(contacts: Iterable[Contact], query: str) -> List[Contact]:
    """Contacts whose display name or nickname contains query."""
    needle = query.casefold()
    return [
        contact
        for contact in contacts
        if needle in contact.display_name.casefold()
        or (contact.nickname is not None and needle in contact.nickname.casefold())
    ]


def tag_contacts(contacts: Iterable[Contact], query: str) -> List[Contact]:
    """Contacts whose tags contain query."""
    needle = query.casefold()
    return [contact for contact in contacts if needle in contact.tags.casefold()]


def monthly_message_counts(messages: Iterable[Message]) -> Dict[str, int]:
    """
    Count messages per calendar month (UTC).

    Returns:
        Ordered mapping of "YYYY-MM" to message count.
    """
    counts = Counter(ms_to_datetime(message.timestamp).strftime("%Y-%m") for message in messages)
    return dict(sorted(counts.items()))

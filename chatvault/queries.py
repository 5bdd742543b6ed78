"""
SQL query definitions for the chatvault store.

Each builder returns the SQL text, or (SQL, parameters) when the query
takes arguments, so that SQLiteStore stays a thin executor.
"""

from typing import Any, Sequence, Tuple

CONTACT_COLUMNS = (
    "id, display_name, nickname, message_count, platforms, tags, is_hidden, is_pinned"
)
MESSAGE_COLUMNS = "id, chat_id, sender_name, content, timestamp, platform, is_from_me"

SEARCH_LIMIT = 100
TOP_CONTACTS_LIMIT = 5


def _escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def upsert_contact() -> str:
    """Full-record replace keyed by contact id."""
    return f"""
        INSERT OR REPLACE INTO contacts ({CONTACT_COLUMNS})
        VALUES (?, ?, ?, ?, ?, ?, ?, ?);
    """


def insert_message() -> str:
    """Insert one message, silently skipping dedup-key collisions."""
    return """
        INSERT OR IGNORE INTO messages
            (chat_id, sender_name, content, timestamp, platform, is_from_me)
        VALUES (?, ?, ?, ?, ?, ?);
    """


def list_contacts(include_hidden: bool = False) -> str:
    """
    Get query for the contact listing.

    Pinned contacts first, then by message count (highest first).
    """
    where = "" if include_hidden else "WHERE is_hidden = 0"
    return f"""
        SELECT {CONTACT_COLUMNS}
        FROM contacts
        {where}
        ORDER BY is_pinned DESC, message_count DESC, id ASC;
    """


def get_contact(contact_id: str) -> Tuple[str, Tuple[Any, ...]]:
    query = f"SELECT {CONTACT_COLUMNS} FROM contacts WHERE id = ?;"
    return query, (contact_id,)


def merge_links(representative_ids: Sequence[str]) -> Tuple[str, Tuple[Any, ...]]:
    """Get query for the ordered merge links of one or more contacts."""
    placeholders = ", ".join("?" for _ in representative_ids)
    query = f"""
        SELECT representative_id, absorbed_id
        FROM contact_merge
        WHERE representative_id IN ({placeholders})
        ORDER BY representative_id, position;
    """
    return query, tuple(representative_ids)


def search_messages(term: str, limit: int = SEARCH_LIMIT) -> Tuple[str, Tuple[Any, ...]]:
    """
    Get query to search message content (case-insensitive substring).

    Returns:
        (SQL query string, parameters tuple), most recent first.
    """
    query = f"""
        SELECT {MESSAGE_COLUMNS}
        FROM messages
        WHERE content LIKE ? ESCAPE '\\'
        ORDER BY timestamp DESC, id DESC
        LIMIT ?;
    """
    return query, (f"%{_escape_like(term)}%", int(limit))


def messages_for_ids(chat_ids: Sequence[str]) -> Tuple[str, Tuple[Any, ...]]:
    """Get query for every message filed under any of chat_ids, oldest first."""
    placeholders = ", ".join("?" for _ in chat_ids)
    query = f"""
        SELECT {MESSAGE_COLUMNS}
        FROM messages
        WHERE chat_id IN ({placeholders})
        ORDER BY timestamp ASC, id ASC;
    """
    return query, tuple(chat_ids)


def all_tags() -> str:
    return "SELECT tags FROM contacts WHERE tags != '';"


def message_count() -> str:
    return "SELECT COUNT(*) FROM messages;"


def contact_count() -> str:
    return "SELECT COUNT(*) FROM contacts;"


def top_contacts(limit: int = TOP_CONTACTS_LIMIT) -> Tuple[str, Tuple[Any, ...]]:
    query = f"""
        SELECT {CONTACT_COLUMNS}
        FROM contacts
        ORDER BY message_count DESC, id ASC
        LIMIT ?;
    """
    return query, (int(limit),)


def update_contact_field(column: str) -> str:
    """Get query for a targeted single-column contact update."""
    if column not in {"tags", "nickname", "is_hidden", "is_pinned"}:
        raise ValueError(f"Invalid contact column: {column!r}")
    return f"UPDATE contacts SET {column} = ? WHERE id = ?;"


def all_merge_links() -> str:
    return """
        SELECT representative_id, absorbed_id
        FROM contact_merge
        ORDER BY representative_id, position;
    """

"""
Schema definitions for the chatvault store.

Design Decisions:
    1. Contact ids are the importer's platform usernames (TEXT primary key)
    2. Messages get an AUTOINCREMENT id; identity is the dedup key
       (chat_id, timestamp, sender_name), enforced by a UNIQUE constraint
    3. Timestamps are INTEGER epoch milliseconds
    4. Merge links live in their own table, ordered by position, instead
       of a comma-joined column
    5. store_state holds small key/value metadata (schema version, last import)
"""

import sqlite3
from pathlib import Path
from typing import List
import logging

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"

SCHEMA_DDL = """
-- =============================================================================
-- contacts: one platform-scoped chat partner
-- =============================================================================
-- Written by the importer with replace semantics; the user-facing layer
-- only touches nickname, tags, is_hidden and is_pinned afterwards.
--
CREATE TABLE IF NOT EXISTS contacts (
    id TEXT PRIMARY KEY,
    display_name TEXT NOT NULL,
    nickname TEXT,
    message_count INTEGER NOT NULL DEFAULT 0,
    platforms TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '',
    is_hidden INTEGER NOT NULL DEFAULT 0 CHECK (is_hidden IN (0, 1)),
    is_pinned INTEGER NOT NULL DEFAULT 0 CHECK (is_pinned IN (0, 1))
);

CREATE INDEX IF NOT EXISTS idx_contacts_listing
    ON contacts(is_pinned, message_count);

-- =============================================================================
-- messages: one chat event
-- =============================================================================
-- chat_id is the contact the message was filed under at import time.
-- Re-importing the same archive is a no-op thanks to the dedup key.
--
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id TEXT NOT NULL,
    sender_name TEXT NOT NULL,
    content TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    platform TEXT NOT NULL,
    is_from_me INTEGER NOT NULL CHECK (is_from_me IN (0, 1)),
    UNIQUE (chat_id, timestamp, sender_name)
);

CREATE INDEX IF NOT EXISTS idx_messages_chat
    ON messages(chat_id);

CREATE INDEX IF NOT EXISTS idx_messages_timestamp
    ON messages(timestamp);

-- =============================================================================
-- contact_merge: absorbed contacts, one level deep
-- =============================================================================
CREATE TABLE IF NOT EXISTS contact_merge (
    representative_id TEXT NOT NULL,
    absorbed_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    PRIMARY KEY (representative_id, absorbed_id)
);

-- =============================================================================
-- store_state: key/value metadata
-- =============================================================================
CREATE TABLE IF NOT EXISTS store_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

INSERT OR REPLACE INTO store_state (key, value, updated_at)
VALUES ('schema_version', '{schema_version}', datetime('now'));
""".format(
    schema_version=SCHEMA_VERSION
)

REQUIRED_TABLES = {"contacts", "messages", "contact_merge", "store_state"}


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes on an open connection (idempotent)."""
    conn.executescript(SCHEMA_DDL)
    conn.commit()


def create_schema(db_path: Path) -> None:
    """
    Create the store schema if it doesn't exist.

    Safe to call multiple times.

    Args:
        db_path: Path to the database file. Parent directory will be
                 created if it doesn't exist.

    Raises:
        sqlite3.Error: If schema creation fails.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Creating/verifying schema at: {db_path}")

    conn = sqlite3.connect(str(db_path))
    try:
        apply_schema(conn)
        logger.info(f"Schema created/verified successfully (version {SCHEMA_VERSION})")
    except sqlite3.Error as e:
        logger.error(f"Schema creation failed: {e}")
        raise
    finally:
        conn.close()


def get_table_names(conn: sqlite3.Connection) -> List[str]:
    """Get all table names in the store."""
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;")
    return [row[0] for row in cursor.fetchall()]


def verify_schema(db_path: Path) -> bool:
    """
    Verify that the schema exists and has all required tables.

    Returns:
        True if schema is valid, False otherwise.
    """
    if not db_path.exists():
        return False

    conn = sqlite3.connect(str(db_path))
    try:
        return REQUIRED_TABLES.issubset(set(get_table_names(conn)))
    finally:
        conn.close()

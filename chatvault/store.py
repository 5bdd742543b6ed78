"""
Persistent store for contacts and messages.

PersistenceGateway is the write contract the ingestion pipeline depends
on. SQLiteStore implements it, plus the reads and targeted updates the
rest of the application needs.

Write semantics:
    - upsert_contact replaces the whole record (last writer wins on every
      field, counters and merge links included)
    - insert_messages ignores rows whose dedup key already exists, so
      re-importing an archive only adds what is missing
    - writes inside transaction() are committed together, or rolled back
      together if any of them fails
"""

import sqlite3
from collections import defaultdict
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import ContextManager, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple, Union
import logging

from chatvault import queries
from chatvault.ingest.models import Contact, Message
from chatvault.ingest.schema import apply_schema

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    """Get current UTC timestamp in ISO-8601 format."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class PersistenceGateway(Protocol):
    """Storage operations the ingestion pipeline relies on."""

    def upsert_contact(self, contact: Contact) -> None:
        ...

    def insert_messages(self, messages: Sequence[Message]) -> int:
        ...

    def transaction(self) -> ContextManager:
        ...


class SQLiteStore:
    """
    SQLite-backed store.

    One instance owns one connection. The schema is created on connect,
    so a fresh path (or ":memory:") is immediately usable.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection: Optional[sqlite3.Connection] = None
        self._in_transaction = False

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def connect(self) -> sqlite3.Connection:
        """
        Open the database and make sure the schema exists.

        Raises:
            sqlite3.Error: If the connection or schema setup fails.
        """
        if self._connection is not None:
            return self._connection

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            # FastAPI runs sync endpoints in a worker thread
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            apply_schema(conn)
        except sqlite3.Error as e:
            logger.error(f"Failed to open store: {e}")
            raise

        self._connection = conn
        logger.debug(f"Opened store: {self.db_path}")
        return conn

    def close(self) -> None:
        """Close the connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.debug("Store connection closed")

    @property
    def connection(self) -> sqlite3.Connection:
        """
        Get the open connection, connecting lazily.
        """
        return self.connect()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Commit every write made inside the block at once.

        On any exception all of them are rolled back and the exception is
        re-raised. Nested blocks join the outer transaction.
        """
        conn = self.connection
        if self._in_transaction:
            yield conn
            return

        self._in_transaction = True
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._in_transaction = False

    # =========================================================================
    # Writes used by the ingestion pipeline
    # =========================================================================

    def upsert_contact(self, contact: Contact) -> None:
        """
        Insert or fully replace a contact, including its merge links.
        """
        conn = self.connection
        with closing(conn.cursor()) as cursor:
            cursor.execute(
                queries.upsert_contact(),
                (
                    contact.id,
                    contact.display_name,
                    contact.nickname,
                    contact.message_count,
                    contact.platforms,
                    contact.tags,
                    1 if contact.is_hidden else 0,
                    1 if contact.is_pinned else 0,
                ),
            )
            self._write_merge_links(cursor, contact.id, contact.merged_with)
        self._commit()

        logger.debug(f"Upserted contact {contact.id} ({contact.message_count} messages)")

    def insert_messages(self, messages: Sequence[Message]) -> int:
        """
        Insert a batch of messages in one transaction.

        Rows that collide on (chat_id, timestamp, sender_name) are skipped
        silently.

        Returns:
            Number of messages actually inserted.
        """
        if not messages:
            return 0

        conn = self.connection
        inserted = 0
        try:
            with closing(conn.cursor()) as cursor:
                for message in messages:
                    cursor.execute(
                        queries.insert_message(),
                        (
                            message.chat_id,
                            message.sender_name,
                            message.content,
                            message.timestamp,
                            message.platform,
                            1 if message.is_from_me else 0,
                        ),
                    )
                    if cursor.rowcount > 0:
                        inserted += 1
                    else:
                        logger.debug(f"Skipped duplicate message {message.dedup_key}")
            self._commit()
        except sqlite3.Error:
            conn.rollback()
            raise

        logger.debug(
            f"Inserted {inserted} messages (skipped {len(messages) - inserted} duplicates)"
        )
        return inserted

    # =========================================================================
    # Reads
    # =========================================================================

    def list_contacts(self, include_hidden: bool = False) -> List[Contact]:
        """
        List contacts, pinned first, then by message count descending.

        Args:
            include_hidden: Also return hidden (e.g. merged-away) contacts.
        """
        rows = self._fetchall(queries.list_contacts(include_hidden))
        links = self._all_merge_links()
        return [self._row_to_contact(row, links.get(row[0], [])) for row in rows]

    def get_contact(self, contact_id: str) -> Optional[Contact]:
        """Get one contact by id, or None."""
        query, params = queries.get_contact(contact_id)
        rows = self._fetchall(query, params)
        if not rows:
            return None

        query, params = queries.merge_links([contact_id])
        merged = [absorbed for _, absorbed in self._fetchall(query, params)]
        return self._row_to_contact(rows[0], merged)

    def search_messages(self, term: str, limit: int = queries.SEARCH_LIMIT) -> List[Message]:
        """Case-insensitive substring search over content, most recent first."""
        query, params = queries.search_messages(term, limit)
        return [self._row_to_message(row) for row in self._fetchall(query, params)]

    def get_messages_for_ids(self, chat_ids: Sequence[str]) -> List[Message]:
        """All messages filed under any of chat_ids, oldest first."""
        if not chat_ids:
            return []
        query, params = queries.messages_for_ids(chat_ids)
        return [self._row_to_message(row) for row in self._fetchall(query, params)]

    def get_all_tags(self) -> List[str]:
        """Raw, non-empty tag strings of every contact."""
        return [row[0] for row in self._fetchall(queries.all_tags())]

    def count_messages(self) -> int:
        return self._fetch_count(queries.message_count())

    def count_contacts(self) -> int:
        return self._fetch_count(queries.contact_count())

    def top_contacts(self, limit: int = queries.TOP_CONTACTS_LIMIT) -> List[Contact]:
        """Contacts with the most messages, hidden ones included."""
        query, params = queries.top_contacts(limit)
        links = self._all_merge_links()
        return [self._row_to_contact(row, links.get(row[0], [])) for row in self._fetchall(query, params)]

    # =========================================================================
    # Targeted updates
    # =========================================================================

    def update_tags(self, contact_id: str, tags: str) -> None:
        self._update_field(contact_id, "tags", tags)

    def update_nickname(self, contact_id: str, nickname: Optional[str]) -> None:
        self._update_field(contact_id, "nickname", nickname or None)

    def set_hidden(self, contact_id: str, is_hidden: bool) -> None:
        self._update_field(contact_id, "is_hidden", 1 if is_hidden else 0)

    def set_pinned(self, contact_id: str, is_pinned: bool) -> None:
        self._update_field(contact_id, "is_pinned", 1 if is_pinned else 0)

    def set_merge_links(self, representative_id: str, absorbed_ids: Sequence[str]) -> None:
        """
        Replace the ordered list of contacts absorbed into representative_id.

        Raises:
            KeyError: If the representative does not exist.
        """
        self._require_contact(representative_id)
        conn = self.connection
        with closing(conn.cursor()) as cursor:
            self._write_merge_links(cursor, representative_id, absorbed_ids)
            self._commit()

    # =========================================================================
    # State
    # =========================================================================

    def set_state(self, key: str, value: str) -> None:
        """Update or insert a store_state value."""
        conn = self.connection
        with closing(conn.cursor()) as cursor:
            cursor.execute(
                "INSERT OR REPLACE INTO store_state (key, value, updated_at) VALUES (?, ?, ?);",
                (key, value, _now_iso()),
            )
            self._commit()

    def get_state(self, key: str) -> Optional[str]:
        rows = self._fetchall("SELECT value FROM store_state WHERE key = ?;", (key,))
        return rows[0][0] if rows else None

    def record_import(self, result) -> None:
        """
        Remember when the last import ran and its final status line.

        Args:
            result: ImportResult returned by ArchiveDispatcher.run_import.
        """
        summary = result.messages[-1] if result.messages else str(result)
        self.set_state("last_import_at", _now_iso())
        self.set_state("last_import_summary", summary)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _commit(self) -> None:
        if not self._in_transaction:
            self.connection.commit()

    def _fetchall(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with closing(self.connection.cursor()) as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    def _fetch_count(self, query: str) -> int:
        rows = self._fetchall(query)
        return rows[0][0] if rows else 0

    def _all_merge_links(self) -> Dict[str, List[str]]:
        links: Dict[str, List[str]] = defaultdict(list)
        for representative_id, absorbed_id in self._fetchall(queries.all_merge_links()):
            links[representative_id].append(absorbed_id)
        return links

    def _require_contact(self, contact_id: str) -> None:
        query, params = queries.get_contact(contact_id)
        if not self._fetchall(query, params):
            raise KeyError(contact_id)

    def _update_field(self, contact_id: str, column: str, value) -> None:
        conn = self.connection
        with closing(conn.cursor()) as cursor:
            cursor.execute(queries.update_contact_field(column), (value, contact_id))
            if cursor.rowcount == 0:
                raise KeyError(contact_id)
            self._commit()

    @staticmethod
    def _write_merge_links(
        cursor: sqlite3.Cursor, representative_id: str, absorbed_ids: Sequence[str]
    ) -> None:
        cursor.execute(
            "DELETE FROM contact_merge WHERE representative_id = ?;", (representative_id,)
        )
        seen = set()
        position = 0
        for absorbed_id in absorbed_ids:
            if absorbed_id in seen:
                continue
            seen.add(absorbed_id)
            cursor.execute(
                "INSERT INTO contact_merge (representative_id, absorbed_id, position) VALUES (?, ?, ?);",
                (representative_id, absorbed_id, position),
            )
            position += 1

    @staticmethod
    def _row_to_contact(row: Tuple, merged_with: List[str]) -> Contact:
        return Contact(
            id=row[0],
            display_name=row[1],
            nickname=row[2],
            message_count=row[3],
            platforms=row[4],
            tags=row[5],
            is_hidden=bool(row[6]),
            is_pinned=bool(row[7]),
            merged_with=list(merged_with),
        )

    @staticmethod
    def _row_to_message(row: Tuple) -> Message:
        return Message(
            id=row[0],
            chat_id=row[1],
            sender_name=row[2],
            content=row[3],
            timestamp=row[4],
            platform=row[5],
            is_from_me=bool(row[6]),
        )

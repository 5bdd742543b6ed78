"""
Pytest fixtures for chatvault tests.

This module provides shared fixtures for testing the ingestion pipeline,
including builders for Instagram / Snapchat export documents and zips.

Fixture Categories:
    1. Store fixtures (file-backed SQLiteStore under tmp_path)
    2. Document builders (Instagram conversation, Snapchat history)
    3. Archive builders (zip exports with arbitrary entries)

Design Notes:
    - Fixtures use tmp_path for isolation between tests
    - Builders return bytes so tests can feed them to io.BytesIO or a zip
"""

import io
import json
import zipfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import pytest

from chatvault import config as config_module
from chatvault.ingest.models import Contact, Message
from chatvault.store import SQLiteStore

# 2023-11-14 22:13:20 UTC
BASE_MS = 1_700_000_000_000


# =============================================================================
# Document builders
# =============================================================================


def instagram_doc(
    participants: List[str],
    messages: List[Dict[str, Any]],
) -> bytes:
    """Build an Instagram message_N.json document."""
    return json.dumps(
        {
            "participants": [{"name": name} for name in participants],
            "messages": messages,
            "title": participants[0] if participants else "",
            "is_still_participant": True,
        }
    ).encode("utf-8")


def instagram_message(sender: str, offset: int, content: Optional[str] = "hi") -> Dict[str, Any]:
    """One Instagram message object; content=None leaves the key out."""
    message: Dict[str, Any] = {"sender_name": sender, "timestamp_ms": BASE_MS + offset}
    if content is not None:
        message["content"] = content
    return message


def snapchat_doc(history: Dict[str, List[Dict[str, Any]]]) -> bytes:
    """Build a Snapchat chat_history.json document."""
    return json.dumps(history).encode("utf-8")


def snapchat_message(
    friend: str,
    offset: int,
    content: Optional[str] = "yo",
    is_sender: bool = False,
    media_type: str = "TEXT",
    microseconds: bool = True,
) -> Dict[str, Any]:
    """One Snapchat message object; content=None leaves the key out."""
    created = (BASE_MS + offset) * 1000 if microseconds else BASE_MS + offset
    message: Dict[str, Any] = {
        "From": "me" if is_sender else friend,
        "Media Type": media_type,
        "Created(microseconds)": created,
        "IsSender": is_sender,
    }
    if content is not None:
        message["Content"] = content
    return message


def build_zip(entries: Dict[str, Union[bytes, str]]) -> bytes:
    """Build a zip archive in memory, entries in the given order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def reset_global_config():
    """Reset the global config before and after each test."""
    config_module._config = None
    yield
    config_module._config = None


# =============================================================================
# Store fixtures
# =============================================================================


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path for a fresh store file."""
    return tmp_path / "data" / "chatvault.db"


@pytest.fixture
def store(db_path: Path) -> Iterator[SQLiteStore]:
    """
    Open a fresh file-backed store.

    Yields:
        Connected SQLiteStore, closed after the test.
    """
    with SQLiteStore(db_path) as s:
        yield s


@pytest.fixture
def populated_store(store: SQLiteStore) -> SQLiteStore:
    """
    Store with three contacts and a few messages each.

    Contacts:
        alice  (Instagram, 3 messages)
        bob    (Snapchat, 2 messages)
        carol  (Instagram, 1 message, pinned)
    """
    store.upsert_contact(Contact("alice", "Alice A", message_count=3, platforms="Instagram"))
    store.upsert_contact(Contact("bob", "bob", message_count=2, platforms="Snapchat"))
    store.upsert_contact(
        Contact("carol", "Carol C", message_count=1, platforms="Instagram", is_pinned=True)
    )
    store.insert_messages(
        [
            Message("alice", "Alice A", "Hello there", BASE_MS + 1000, "instagram", False),
            Message("alice", "me", "General Kenobi", BASE_MS + 2000, "instagram", True),
            Message("alice", "Alice A", "Alice reacted ❤️ to your message", BASE_MS + 3000, "instagram", False),
            Message("bob", "bob", "hello from snap", BASE_MS + 1500, "snapchat", False),
            Message("bob", "Me", "[Unsaved Chat]", BASE_MS + 2500, "snapchat", True),
            Message("carol", "Carol C", "Pinned hello", BASE_MS + 500, "instagram", False),
        ]
    )
    return store


@pytest.fixture
def instagram_zip() -> bytes:
    """Zip with two Instagram conversations and an unrelated file."""
    return build_zip(
        {
            "messages/inbox/janedoe_123/message_1.json": instagram_doc(
                ["Jane Doe", "me"],
                [
                    instagram_message("Jane Doe", 1000, "hey"),
                    instagram_message("me", 2000, "hi jane"),
                ],
            ),
            "messages/inbox/johnsmith_456/message_1.json": instagram_doc(
                ["John Smith", "me"],
                [instagram_message("John Smith", 3000, "sup")],
            ),
            "media/photo.jpg": b"\xff\xd8\xff",
        }
    )


@pytest.fixture
def snapchat_zip() -> bytes:
    """Zip with one Snapchat chat history for two friends."""
    return build_zip(
        {
            "json/chat_history.json": snapchat_doc(
                {
                    "friend1": [
                        snapchat_message("friend1", 1000, "yo"),
                        snapchat_message("friend1", 2000, "sup", is_sender=True),
                    ],
                    "friend2": [snapchat_message("friend2", 3000, None, media_type="MEDIA")],
                }
            ),
        }
    )

"""
Ingestion pipeline for chat export archives.

Turns Instagram and Snapchat data exports (a zip, or a single JSON file)
into normalized contacts and messages.

Architecture Overview:
    export (zip / json)
    └── ArchiveDispatcher      container detection, entry routing, progress
        ├── InstagramParser    .../<user>_<id>/message_N.json
        ├── SnapchatParser     .../chat_history.json
        │   ├── IdentityResolver   alias-based authorship
        │   └── repair_mojibake    Instagram text only
        └── PersistenceGateway upsert contact, insert messages (ignore dups)

Key Design Decisions:
    1. Parsing is token-streamed; one message object is built at a time
    2. Format is resolved once per entry, from its path
    3. One entry failing never stops the others
    4. Re-importing is idempotent through the (chat_id, timestamp,
       sender_name) dedup key
"""

from chatvault.ingest.models import Contact, Message, ParsedChat
from chatvault.ingest.encoding import repair_mojibake
from chatvault.ingest.identity import IdentityResolver
from chatvault.ingest.errors import (
    ChatVaultError,
    ContainerDetectionError,
    EntryParseError,
)
from chatvault.ingest.parsers import (
    ArchiveFormat,
    EntryPlan,
    InstagramParser,
    SnapchatParser,
    classify_entry,
    normalize_snapchat_timestamp,
)
from chatvault.ingest.dispatcher import (
    ArchiveDispatcher,
    ImportResult,
    ProgressEvent,
    detect_container,
)
from chatvault.ingest.schema import create_schema, verify_schema, SCHEMA_VERSION

__all__ = [
    # Models
    "Contact",
    "Message",
    "ParsedChat",
    # Text and identity
    "repair_mojibake",
    "IdentityResolver",
    # Errors
    "ChatVaultError",
    "ContainerDetectionError",
    "EntryParseError",
    # Parsers
    "ArchiveFormat",
    "EntryPlan",
    "InstagramParser",
    "SnapchatParser",
    "classify_entry",
    "normalize_snapchat_timestamp",
    # Dispatch
    "ArchiveDispatcher",
    "ImportResult",
    "ProgressEvent",
    "detect_container",
    # Schema
    "create_schema",
    "verify_schema",
    "SCHEMA_VERSION",
]

"""
Per-format parsers for chat export archives.

Two export dialects are supported, each as one ArchiveFormat variant
with its own parser. The variant is decided once per archive entry, by
path shape, in classify_entry(); after that every parser exposes the
same capability: parse(stream) yields ParsedChat batches.

Instagram (one conversation per file):
    {"participants": [{"name": ...}],
     "messages": [{"sender_name": ..., "timestamp_ms": ..., "content": ...}]}
    Stored under .../<username>_<suffix>/message_N.json

Snapchat (all conversations in one file):
    {"<friend>": [{"From": ..., "Media Type": ..., "Content": ...,
                   "Created(microseconds)": ..., "IsSender": ...}]}
    Stored as .../chat_history.json

Parsers read token by token (see jsonstream) and only ever build one
message object at a time. Field-level surprises fall back to defaults;
structural JSON errors raise EntryParseError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, BinaryIO, Dict, Iterator, List, Optional, Union
import logging

import ijson

from chatvault.ingest import jsonstream
from chatvault.ingest.encoding import repair_mojibake
from chatvault.ingest.errors import EntryParseError
from chatvault.ingest.identity import IdentityResolver
from chatvault.ingest.models import INSTAGRAM, SNAPCHAT, Contact, Message, ParsedChat

logger = logging.getLogger(__name__)

# Snapchat exports come in two variants: microseconds and milliseconds.
# Anything above this is taken to be microseconds.
MICROSECOND_THRESHOLD = 10_000_000_000_000

SNAPCHAT_PROGRESS_INTERVAL = 100

SNAPCHAT_HISTORY_TOKEN = "chat_history.json"
UNSAVED_CHAT = "[Unsaved Chat]"
INSTAGRAM_MEDIA = "[Media]"


class ArchiveFormat(Enum):
    """Supported export dialects."""

    INSTAGRAM = "instagram"
    SNAPCHAT = "snapchat"


@dataclass
class EntryPlan:
    """How to parse one archive entry."""

    format: ArchiveFormat
    contact_id: Optional[str] = None


@dataclass
class ParseTick:
    """Progress marker: messages parsed so far in the current entry."""

    parsed: int


ParseItem = Union[ParsedChat, ParseTick]


# =============================================================================
# Entry classification
# =============================================================================


def instagram_contact_id(path: str) -> Optional[str]:
    """
    Derive the contact id from an Instagram message file path.

    The path must have at least two segments, the file name must start
    with "message" and the parent folder must contain an underscore. The
    contact id is the folder name up to the first underscore.

    Examples:
        >>> instagram_contact_id("inbox/janedoe_123456/message_1.json")
        'janedoe'
        >>> instagram_contact_id("message_1.json") is None
        True
    """
    parts = path.split("/")
    if len(parts) < 2:
        return None

    file_name = parts[-1]
    folder_name = parts[-2]
    if file_name.startswith("message") and "_" in folder_name:
        return folder_name.split("_", 1)[0]
    return None


def classify_entry(path: str) -> Optional[EntryPlan]:
    """
    Decide which parser (if any) handles a zip entry.

    Returns:
        EntryPlan for Instagram message files and Snapchat chat
        histories, None for everything else.
    """
    lowered = path.lower()

    if lowered.endswith(".json"):
        contact_id = instagram_contact_id(path)
        if contact_id is not None:
            return EntryPlan(ArchiveFormat.INSTAGRAM, contact_id)

    if SNAPCHAT_HISTORY_TOKEN in lowered:
        return EntryPlan(ArchiveFormat.SNAPCHAT)

    return None


def plan_single_document(filename: str, platform: Optional[str] = None) -> EntryPlan:
    """
    Decide how to parse a standalone JSON document.

    Standalone files are Snapchat histories unless the caller says the
    platform is Instagram, in which case the contact id comes from the
    file path (folder rule when it applies, otherwise the file stem).
    """
    if platform and platform.lower() == ArchiveFormat.INSTAGRAM.value:
        contact_id = instagram_contact_id(filename) or PurePosixPath(filename).stem
        return EntryPlan(ArchiveFormat.INSTAGRAM, contact_id or "unknown")
    return EntryPlan(ArchiveFormat.SNAPCHAT)


# =============================================================================
# Field coercion
# =============================================================================


def _as_int(value: Any) -> int:
    """Coerce a JSON number (or numeric string) to int; 0 if impossible."""
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError, ArithmeticError):
        return 0


def _as_flag(value: Any) -> bool:
    """
    Coerce a JSON boolean field; only true or the string "true" count.

    Examples:
        >>> _as_flag("false")
        False
        >>> _as_flag(1)
        False
    """
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def normalize_snapchat_timestamp(raw: int) -> int:
    """
    Convert a Snapchat "Created(microseconds)" value to epoch milliseconds.

    Values above 10^13 are microseconds and are divided by 1000; smaller
    values are already milliseconds.

    Examples:
        >>> normalize_snapchat_timestamp(1700000000000000)
        1700000000000
        >>> normalize_snapchat_timestamp(1700000000000)
        1700000000000
    """
    if raw > MICROSECOND_THRESHOLD:
        return raw // 1000
    return raw


def snapchat_placeholder(media_type: str) -> str:
    """Content used when a Snapchat message has no saved text."""
    if media_type == "TEXT":
        return UNSAVED_CHAT
    return f"[{media_type}]"


# =============================================================================
# Parsers
# =============================================================================


class ChatParser(ABC):
    """Common interface for the per-format parsers."""

    format: ArchiveFormat

    def __init__(self, identity: IdentityResolver, source_name: str = "<stream>"):
        self.identity = identity
        self.source_name = source_name

    def parse(self, stream: BinaryIO) -> Iterator[ParseItem]:
        """
        Parse one JSON document.

        Yields:
            ParsedChat for every completed conversation, and ParseTick
            markers where the format reports intermediate progress.

        Raises:
            EntryParseError: If the document is malformed or truncated.
        """
        try:
            yield from self._parse(jsonstream.events(stream))
        except ijson.JSONError as e:
            raise EntryParseError(self.source_name, e) from e

    @abstractmethod
    def _parse(self, stream_events: Iterator[jsonstream.Event]) -> Iterator[ParseItem]:
        ...


class InstagramParser(ChatParser):
    """Parse one Instagram conversation file into a single ParsedChat."""

    format = ArchiveFormat.INSTAGRAM

    def __init__(
        self,
        identity: IdentityResolver,
        contact_id: str,
        source_name: str = "<stream>",
    ):
        super().__init__(identity, source_name)
        self.contact_id = contact_id

    def _parse(self, stream_events: Iterator[jsonstream.Event]) -> Iterator[ParseItem]:
        participants: List[str] = []
        messages: List[Message] = []

        jsonstream.expect(stream_events, "start_map")
        while True:
            event, key = jsonstream.next_event(stream_events)
            if event == "end_map":
                break

            event, value = jsonstream.next_event(stream_events)
            if key == "participants" and event == "start_array":
                participants.extend(self._read_participants(stream_events))
            elif key == "messages" and event == "start_array":
                messages.extend(self._read_messages(stream_events))
            else:
                jsonstream.skip_value(stream_events, event)

        if not messages:
            logger.debug(f"No text messages in {self.source_name}")
            return

        display_name = self.identity.canonical_name(participants, fallback=self.contact_id)
        if display_name != self.contact_id:
            display_name = repair_mojibake(display_name)

        contact = Contact(
            id=self.contact_id,
            display_name=display_name,
            message_count=len(messages),
            platforms=INSTAGRAM,
        )
        yield ParsedChat(contact=contact, messages=messages)

    def _read_participants(self, stream_events: Iterator[jsonstream.Event]) -> Iterator[str]:
        while True:
            event, value = jsonstream.next_event(stream_events)
            if event == "end_array":
                return
            item = jsonstream.read_value(stream_events, event, value)
            if isinstance(item, dict) and isinstance(item.get("name"), str):
                yield item["name"]

    def _read_messages(self, stream_events: Iterator[jsonstream.Event]) -> Iterator[Message]:
        while True:
            event, value = jsonstream.next_event(stream_events)
            if event == "end_array":
                return
            item = jsonstream.read_value(stream_events, event, value)
            if not isinstance(item, dict):
                continue
            message = self.to_message(item)
            if message is not None:
                yield message

    def to_message(self, raw: Dict[str, Any]) -> Optional[Message]:
        """
        Convert one raw Instagram message object.

        Returns:
            The Message, or None for system events (a sender but no text).
        """
        sender = raw.get("sender_name")
        sender = sender if isinstance(sender, str) else ""

        content = raw.get("content", "")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            content = INSTAGRAM_MEDIA

        if not content and sender:
            return None

        return Message(
            chat_id=self.contact_id,
            sender_name=repair_mojibake(sender),
            content=repair_mojibake(content),
            timestamp=_as_int(raw.get("timestamp_ms", 0)),
            platform=ArchiveFormat.INSTAGRAM.value,
            is_from_me=self.identity.is_from_me(sender),
        )


class SnapchatParser(ChatParser):
    """Parse a Snapchat chat history into one ParsedChat per friend."""

    format = ArchiveFormat.SNAPCHAT

    def __init__(
        self,
        identity: IdentityResolver,
        source_name: str = "<stream>",
        progress_interval: int = SNAPCHAT_PROGRESS_INTERVAL,
    ):
        super().__init__(identity, source_name)
        self.progress_interval = progress_interval
        self.parsed = 0

    def _parse(self, stream_events: Iterator[jsonstream.Event]) -> Iterator[ParseItem]:
        self.parsed = 0

        jsonstream.expect(stream_events, "start_map")
        while True:
            event, friend = jsonstream.next_event(stream_events)
            if event == "end_map":
                break

            event, value = jsonstream.next_event(stream_events)
            if event != "start_array":
                logger.warning(f"Skipping non-list history for {friend!r} in {self.source_name}")
                jsonstream.skip_value(stream_events, event)
                continue

            messages: List[Message] = []
            while True:
                event, value = jsonstream.next_event(stream_events)
                if event == "end_array":
                    break
                item = jsonstream.read_value(stream_events, event, value)
                if not isinstance(item, dict):
                    continue

                messages.append(self.to_message(item, friend))
                self.parsed += 1
                if self.parsed % self.progress_interval == 0:
                    yield ParseTick(parsed=self.parsed)

            if messages:
                contact = Contact(
                    id=friend,
                    display_name=friend,
                    message_count=len(messages),
                    platforms=SNAPCHAT,
                )
                yield ParsedChat(contact=contact, messages=messages)

    def to_message(self, raw: Dict[str, Any], friend: str) -> Message:
        """Convert one raw Snapchat message object filed under friend."""
        media_type = raw.get("Media Type", "TEXT")
        if not isinstance(media_type, str):
            media_type = "TEXT"

        content = raw.get("Content")
        if not isinstance(content, str):
            content = snapchat_placeholder(media_type)

        is_sender = _as_flag(raw.get("IsSender"))

        return Message(
            chat_id=friend,
            sender_name=self.identity.snapchat_sender(is_sender, friend),
            content=content,
            timestamp=normalize_snapchat_timestamp(_as_int(raw.get("Created(microseconds)", 0))),
            platform=ArchiveFormat.SNAPCHAT.value,
            is_from_me=is_sender,
        )


def build_parser(
    plan: EntryPlan,
    identity: IdentityResolver,
    source_name: str = "<stream>",
) -> ChatParser:
    """Instantiate the parser for an EntryPlan."""
    if plan.format is ArchiveFormat.INSTAGRAM:
        return InstagramParser(identity, plan.contact_id or "unknown", source_name)
    return SnapchatParser(identity, source_name)

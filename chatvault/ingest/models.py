"""
Normalized records produced by the ingestion pipeline.

Contacts are keyed by the platform username chosen at import time.
Messages carry the id of the contact they were filed under, which is
not necessarily the merge representative they are viewed through.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# Contact.platforms labels
INSTAGRAM = "Instagram"
SNAPCHAT = "Snapchat"


@dataclass
class Contact:
    """One platform-scoped chat partner (contacts table)."""

    id: str
    display_name: str
    nickname: Optional[str] = None
    message_count: int = 0
    platforms: str = ""
    tags: str = ""
    is_hidden: bool = False
    is_pinned: bool = False
    merged_with: List[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        """Name to show for this contact; the nickname wins when set."""
        return self.nickname or self.display_name

    def tag_list(self) -> List[str]:
        """Split the comma-joined tag string into trimmed labels."""
        return [tag.strip() for tag in self.tags.split(",") if tag.strip()]


@dataclass
class Message:
    """One chat event (messages table)."""

    chat_id: str
    sender_name: str
    content: str
    timestamp: int  # epoch milliseconds
    platform: str  # 'instagram' or 'snapchat'
    is_from_me: bool
    id: Optional[int] = None

    @property
    def dedup_key(self) -> Tuple[str, int, str]:
        return (self.chat_id, self.timestamp, self.sender_name)


@dataclass
class ParsedChat:
    """A contact and the message batch parsed for it from one source."""

    contact: Contact
    messages: List[Message]

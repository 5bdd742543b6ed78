"""
Identity resolution for imported messages.

The user declares one or more aliases (usernames that refer to
themselves). Authorship and the counterpart's display name are both
derived from that list, so it is passed in explicitly for every import.

Rules:
    1. A sender is "me" iff it equals an alias, ignoring case
    2. Instagram: the conversation's display name is the *last*
       participant that is not an alias; if every participant is an
       alias the contact id is used instead
    3. Snapchat: the export only says whether I sent a message, so my
       messages are attributed to the first alias ("Me" without one)
       and everything else to the chat's contact id
"""

from typing import Iterable, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

DEFAULT_SELF_NAME = "Me"


class IdentityResolver:
    """Classify senders against the caller's ordered alias list."""

    def __init__(self, aliases: Optional[Sequence[str]] = None):
        self._aliases: List[str] = list(aliases or [])
        self._folded = {alias.casefold() for alias in self._aliases}

    @property
    def aliases(self) -> List[str]:
        return list(self._aliases)

    @property
    def self_name(self) -> str:
        """Sender name used for my own messages when the format has none."""
        return self._aliases[0] if self._aliases else DEFAULT_SELF_NAME

    def is_from_me(self, sender: Optional[str]) -> bool:
        """Return True if sender matches any alias (case-insensitive)."""
        if not sender:
            return False
        return sender.casefold() in self._folded

    def canonical_name(self, participants: Iterable[str], fallback: str) -> str:
        """
        Pick the display name for a conversation from its participants.

        Later participants overwrite earlier picks, so the last non-alias
        name wins.

        Args:
            participants: Participant names in file order.
            fallback: Name to use when all participants are aliases.

        Returns:
            The chosen participant name, or fallback.
        """
        chosen = fallback
        for name in participants:
            if not self.is_from_me(name):
                chosen = name
        return chosen

    def snapchat_sender(self, is_sender: bool, contact_id: str) -> str:
        """Resolve the sender name for a Snapchat message."""
        return self.self_name if is_sender else contact_id

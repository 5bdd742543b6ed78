"""
Contact merging.

A user can link several platform contacts that are the same person. The
contact they link *into* becomes the representative: its timeline shows
its own messages plus those of every absorbed contact, and absorbed
contacts are hidden from the contact listing.

Merging is one level only. If an absorbed contact has absorbed others
itself, those are not pulled into the representative's timeline. Linking
never moves messages: each message keeps the chat_id it was imported
under, so an absorbed contact's own timeline is unchanged.
"""

from typing import List
import logging

from chatvault.ingest.models import Contact, Message
from chatvault.store import SQLiteStore

logger = logging.getLogger(__name__)


class ContactMergeGraph:
    """Link contacts and resolve merged timelines against a store."""

    def __init__(self, store: SQLiteStore):
        self.store = store

    def _get(self, contact_id: str) -> Contact:
        contact = self.store.get_contact(contact_id)
        if contact is None:
            raise KeyError(contact_id)
        return contact

    def link(self, representative_id: str, candidate_id: str) -> Contact:
        """
        Absorb candidate_id into representative_id.

        Appends the candidate to the representative's merged_with list
        (once) and hides the candidate.

        Returns:
            The updated representative.

        Raises:
            ValueError: If a contact is linked to itself.
            KeyError: If either contact does not exist.
        """
        if representative_id == candidate_id:
            raise ValueError(f"Cannot link contact {representative_id!r} to itself")

        representative = self._get(representative_id)
        self._get(candidate_id)

        if candidate_id not in representative.merged_with:
            representative.merged_with.append(candidate_id)
            self.store.set_merge_links(representative_id, representative.merged_with)
        self.store.set_hidden(candidate_id, True)

        logger.info(f"Linked {candidate_id} into {representative_id}")
        return representative

    def unlink(self, representative_id: str, candidate_id: str) -> Contact:
        """
        Undo link(): drop candidate_id from the list and show it again.

        Raises:
            KeyError: If the representative does not exist or does not
                      contain candidate_id.
        """
        representative = self._get(representative_id)
        if candidate_id not in representative.merged_with:
            raise KeyError(candidate_id)

        representative.merged_with.remove(candidate_id)
        self.store.set_merge_links(representative_id, representative.merged_with)
        if self.store.get_contact(candidate_id) is not None:
            self.store.set_hidden(candidate_id, False)

        logger.info(f"Unlinked {candidate_id} from {representative_id}")
        return representative

    def timeline_ids(self, contact_id: str) -> List[str]:
        """
        Chat ids whose messages make up contact_id's timeline.

        The contact itself followed by its directly absorbed contacts.
        An unknown contact resolves to just its own id.
        """
        contact = self.store.get_contact(contact_id)
        ids = [contact_id]
        if contact is not None:
            ids.extend(cid for cid in contact.merged_with if cid != contact_id)
        return ids

    def timeline(self, contact_id: str) -> List[Message]:
        """Messages of contact_id and its absorbed contacts, oldest first."""
        return self.store.get_messages_for_ids(self.timeline_ids(contact_id))

    def link_candidates(self, contact_id: str, query: str = "") -> List[Contact]:
        """
        Contacts that could still be linked into contact_id.

        Excludes the contact itself and everything already in its
        timeline; query filters on display name or id (case-insensitive).
        """
        excluded = set(self.timeline_ids(contact_id))
        needle = query.casefold()
        return [
            contact
            for contact in self.store.list_contacts(include_hidden=True)
            if contact.id not in excluded
            and (needle in contact.display_name.casefold() or needle in contact.id.casefold())
        ]

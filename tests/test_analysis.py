"""
Tests for analysis.py functions.

Tests statistics, tags, noise filtering, and the search helpers.
"""

from chatvault.analysis import (
    add_tag,
    filter_contacts,
    filter_noise,
    find_matches,
    get_smart_tags,
    get_statistics,
    is_noise_message,
    monthly_message_counts,
    tag_contacts,
)
from chatvault.ingest.models import Contact, Message
from chatvault.store import SQLiteStore

from conftest import BASE_MS


def _msg(content: str, timestamp: int = BASE_MS) -> Message:
    return Message("alice", "alice", content, timestamp, "instagram", False)


class TestGetStatistics:
    """Tests for get_statistics function."""

    def test_returns_expected_keys(self, populated_store: SQLiteStore):
        stats = get_statistics(populated_store)
        assert set(stats) == {"total_messages", "total_contacts", "top_contacts"}

    def test_totals(self, populated_store: SQLiteStore):
        stats = get_statistics(populated_store)
        assert stats["total_messages"] == 6
        assert stats["total_contacts"] == 3

    def test_top_contacts_ordered(self, populated_store: SQLiteStore):
        stats = get_statistics(populated_store, top=2)
        assert [c.id for c in stats["top_contacts"]] == ["alice", "bob"]

    def test_empty_store(self, store: SQLiteStore):
        stats = get_statistics(store)
        assert stats["total_messages"] == 0
        assert stats["top_contacts"] == []


class TestSmartTags:
    """Tests for get_smart_tags and add_tag."""

    def test_distinct_sorted(self, populated_store: SQLiteStore):
        populated_store.update_tags("alice", "work, friends")
        populated_store.update_tags("bob", "friends,gym, ")
        assert get_smart_tags(populated_store) == ["friends", "gym", "work"]

    def test_no_tags(self, populated_store: SQLiteStore):
        assert get_smart_tags(populated_store) == []

    def test_add_tag(self):
        assert add_tag("", "work") == "work"
        assert add_tag("work", "gym") == "work, gym"


class TestNoiseFilter:
    """Tests for the smart filter."""

    def test_reactions_are_noise(self):
        assert is_noise_message(_msg("Alice reacted ❤️ to your message")) is True
        assert is_noise_message(_msg("Liked a message")) is True
        assert is_noise_message(_msg("You unsent a message")) is True
        assert is_noise_message(_msg("Bob changed the theme to Love")) is True

    def test_empty_is_noise(self):
        assert is_noise_message(_msg("")) is True

    def test_regular_message_kept(self):
        assert is_noise_message(_msg("see you tomorrow")) is False

    def test_filter_keeps_order(self):
        messages = [_msg("one", 1), _msg("Liked a message", 2), _msg("two", 3)]
        assert [m.content for m in filter_noise(messages)] == ["one", "two"]


class TestSearchHelpers:
    """Tests for find_matches, filter_contacts and tag_contacts."""

    def test_find_matches(self):
        messages = [_msg("Hello"), _msg("nothing"), _msg("say HELLO")]
        assert find_matches(messages, "hello") == [0, 2]

    def test_find_matches_empty_query(self):
        assert find_matches([_msg("Hello")], "") == []

    def test_filter_contacts_by_name_or_nickname(self):
        contacts = [
            Contact("a", "Alice"),
            Contact("b", "bob", nickname="Bobby Tables"),
            Contact("c", "Carol"),
        ]
        assert [c.id for c in filter_contacts(contacts, "ali")] == ["a"]
        assert [c.id for c in filter_contacts(contacts, "tables")] == ["b"]

    def test_tag_contacts(self):
        contacts = [Contact("a", "A", tags="work, gym"), Contact("b", "B", tags="family")]
        assert [c.id for c in tag_contacts(contacts, "GYM")] == ["a"]


class TestMonthlyCounts:
    """Tests for monthly_message_counts function."""

    def test_groups_by_month(self):
        # 2023-11-14 and 2023-12-24 UTC
        messages = [_msg("a", BASE_MS), _msg("b", BASE_MS + 1000), _msg("c", 1_703_400_000_000)]
        assert monthly_message_counts(messages) == {"2023-11": 2, "2023-12": 1}

    def test_sorted_keys(self):
        messages = [_msg("late", 1_703_400_000_000), _msg("early", BASE_MS)]
        assert list(monthly_message_counts(messages)) == ["2023-11", "2023-12"]

    def test_empty(self):
        assert monthly_message_counts([]) == {}

"""
Property-based tests using Hypothesis.

These tests verify invariant properties across a wide range of inputs,
helping to find edge cases that might be missed by example-based tests.
"""

import io
import json

import pytest

from hypothesis import given, settings, strategies as st

from chatvault.ingest.dispatcher import ArchiveDispatcher
from chatvault.ingest.encoding import repair_mojibake
from chatvault.ingest.identity import IdentityResolver
from chatvault.ingest.parsers import MICROSECOND_THRESHOLD, normalize_snapchat_timestamp
from chatvault.store import SQLiteStore


# =============================================================================
# Mojibake Repair Properties
# =============================================================================


@pytest.mark.property
class TestRepairMojibakeProperties:
    """Property-based tests for mojibake repair."""

    @given(st.text(max_size=100))
    def test_never_crashes(self, value: str):
        assert isinstance(repair_mojibake(value), str)

    @given(st.text(max_size=100))
    def test_undoes_latin1_misdecoding(self, value: str):
        """Encoding as UTF-8 and reading back as Latin-1 is reversed exactly."""
        broken = value.encode("utf-8").decode("latin-1")
        assert repair_mojibake(broken) == value

    @given(st.text(alphabet=st.characters(max_codepoint=127), max_size=100))
    def test_ascii_unchanged(self, value: str):
        assert repair_mojibake(value) == value

    @given(st.text(max_size=20), st.characters(min_codepoint=0x100), st.text(max_size=20))
    def test_above_latin1_unchanged(self, head: str, wide: str, tail: str):
        value = head + wide + tail
        assert repair_mojibake(value) == value


# =============================================================================
# Timestamp Normalization Properties
# =============================================================================


@pytest.mark.property
class TestSnapchatTimestampProperties:
    """Property-based tests for Snapchat timestamp normalization."""

    @given(st.integers(min_value=0, max_value=MICROSECOND_THRESHOLD))
    def test_milliseconds_pass_through(self, raw: int):
        assert normalize_snapchat_timestamp(raw) == raw

    @given(st.integers(min_value=MICROSECOND_THRESHOLD + 1, max_value=10**18))
    def test_microseconds_scaled(self, raw: int):
        assert normalize_snapchat_timestamp(raw) == raw // 1000

    @given(st.integers(min_value=MICROSECOND_THRESHOLD + 1, max_value=10**18))
    def test_microseconds_shrink(self, raw: int):
        assert normalize_snapchat_timestamp(raw) < raw


# =============================================================================
# Identity Properties
# =============================================================================


@pytest.mark.property
class TestIdentityProperties:
    """Property-based tests for alias matching."""

    @given(st.lists(st.text(min_size=1, max_size=20), min_size=1, max_size=5))
    def test_every_alias_is_me(self, aliases):
        resolver = IdentityResolver(aliases)
        assert all(resolver.is_from_me(alias) for alias in aliases)

    @given(st.text(min_size=1, max_size=20))
    def test_case_variants_are_me(self, alias: str):
        resolver = IdentityResolver([alias])
        assert resolver.is_from_me(alias.upper()) == (alias.upper().casefold() == alias.casefold())

    @given(st.lists(st.text(min_size=1, max_size=10), max_size=6), st.text(min_size=1, max_size=10))
    def test_canonical_name_is_participant_or_fallback(self, participants, fallback):
        resolver = IdentityResolver(["me"])
        name = resolver.canonical_name(participants, fallback)
        assert name == fallback or name in participants
        assert name == fallback or not resolver.is_from_me(name)


# =============================================================================
# Import Properties
# =============================================================================


@pytest.mark.property
class TestImportProperties:
    """Property-based tests for the import pipeline."""

    @settings(max_examples=25, deadline=None)
    @given(
        st.dictionaries(
            st.text(alphabet="abcdefghij_", min_size=1, max_size=8),
            st.lists(
                st.tuples(st.integers(min_value=0, max_value=50), st.booleans()),
                max_size=10,
            ),
            max_size=4,
        )
    )
    def test_reimport_never_adds_messages(self, history):
        document = {
            friend: [
                {
                    "From": friend,
                    "Media Type": "TEXT",
                    "Content": f"m{offset}",
                    "Created(microseconds)": 1_700_000_000_000_000 + offset * 1000,
                    "IsSender": is_sender,
                }
                for offset, is_sender in messages
            ]
            for friend, messages in history.items()
        }
        data = json.dumps(document).encode()

        with SQLiteStore() as store:
            dispatcher = ArchiveDispatcher(store)
            first = dispatcher.run_import(io.BytesIO(data), filename="chat_history.json")
            count = store.count_messages()
            second = dispatcher.run_import(io.BytesIO(data), filename="chat_history.json")

            assert store.count_messages() == count
            assert second.inserted == 0
            assert first.processed == second.processed == sum(len(m) for m in history.values())

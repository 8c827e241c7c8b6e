"""
Tests for orphan detection and the provider-name matching strategy.
"""

from uuid import uuid4

import pytest

from ledger_engines.orphan_matching import (
    OrphanCandidate,
    OrphanMatcher,
    ProviderCandidate,
    ProviderNameMatchStrategy,
    is_orphan,
    parse_provider_reference,
)


class TestProviderReference:
    """parse_provider_reference / is_orphan."""

    @pytest.mark.parametrize("raw", [None, "", "  ", "undefined", "null", "None", "not-a-uuid"])
    def test_unusable_references(self, raw):
        """Empty, placeholder and malformed references parse to None."""
        assert parse_provider_reference(raw) is None

    def test_valid_reference(self):
        """A UUID string parses, surrounding whitespace ignored."""
        pid = uuid4()
        assert parse_provider_reference(f" {pid} ") == pid

    def test_reference_to_unknown_provider_is_orphan(self):
        """A well-formed id of a provider outside the set is orphaned."""
        assert is_orphan(str(uuid4()), {uuid4()})

    def test_reference_to_known_provider_is_healthy(self):
        """A reference to a known provider is not orphaned."""
        pid = uuid4()
        assert not is_orphan(str(pid), [pid])


class TestProviderNameMatchStrategy:
    """Name-based heuristic."""

    def test_matches_name_case_and_space_insensitively(self):
        """'  ana   SOUZA ' matches 'Ana Souza'."""
        ana = ProviderCandidate(provider_id=uuid4(), name="Ana Souza")
        orphan = OrphanCandidate(payment_id=uuid4(), raw_provider_id="", provider_name="  ana   SOUZA ")
        assert ProviderNameMatchStrategy().match(orphan, [ana]) == ana.provider_id

    def test_ambiguous_name_is_unresolved(self):
        """Two providers with the same name resolve to nothing."""
        providers = [
            ProviderCandidate(provider_id=uuid4(), name="Ana Souza"),
            ProviderCandidate(provider_id=uuid4(), name="ana souza"),
        ]
        orphan = OrphanCandidate(payment_id=uuid4(), raw_provider_id=None, provider_name="Ana Souza")
        assert ProviderNameMatchStrategy().match(orphan, providers) is None

    def test_falls_back_to_description(self):
        """Without a name, one provider named in the description matches."""
        bruno = ProviderCandidate(provider_id=uuid4(), name="Bruno Lima")
        ana = ProviderCandidate(provider_id=uuid4(), name="Ana Souza")
        orphan = OrphanCandidate(
            payment_id=uuid4(),
            raw_provider_id="undefined",
            provider_name="",
            description="Diaria de Bruno Lima - evento",
        )
        assert ProviderNameMatchStrategy().match(orphan, [ana, bruno]) == bruno.provider_id

    def test_description_needs_whole_phrase(self):
        """A partial word in the description does not match."""
        ana = ProviderCandidate(provider_id=uuid4(), name="Ana")
        orphan = OrphanCandidate(payment_id=uuid4(), raw_provider_id="", provider_name="", description="Banana")
        assert ProviderNameMatchStrategy().match(orphan, [ana]) is None


class TestOrphanMatcher:
    """OrphanMatcher.match_all."""

    def test_every_orphan_appears_once(self):
        """Matched and unmatched orphans are all reported."""
        ana = ProviderCandidate(provider_id=uuid4(), name="Ana Souza")
        found = OrphanCandidate(payment_id=uuid4(), raw_provider_id="", provider_name="Ana Souza")
        lost = OrphanCandidate(payment_id=uuid4(), raw_provider_id="", provider_name="Nobody")
        matches = OrphanMatcher().match_all(orphans=[found, lost], providers=[ana])
        assert [(m.payment_id, m.provider_id) for m in matches] == [
            (found.payment_id, ana.provider_id),
            (lost.payment_id, None),
        ]

    def test_strategy_cannot_assign_provider_outside_candidates(self):
        """A strategy returning a foreign id is treated as unresolved."""

        class Rogue:
            name = "rogue"

            def match(self, orphan, providers):
                return uuid4()

        orphan = OrphanCandidate(payment_id=uuid4(), raw_provider_id="", provider_name="x")
        matches = OrphanMatcher(Rogue()).match_all(
            orphans=[orphan],
            providers=[ProviderCandidate(provider_id=uuid4(), name="x")],
        )
        assert matches[0].resolved is False

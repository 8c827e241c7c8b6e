"""
ledger_engines.orphan_matching -- Orphan payment detection and re-link strategies.

Responsibility:
    Classify a payment's raw provider reference as healthy or orphaned, and
    propose a provider for each orphan through a pluggable strategy.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The candidates handed in
    are always from the caller's own company.

Invariants enforced:
    - A strategy only ever returns one of the candidate provider ids it was
      given, or None.  Ambiguous matches return None.
    - Matching never drops an orphan: every input appears exactly once in
      the output, matched or not.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from ledger_engines.tracer import traced_engine

# Values legacy writers stored when the provider was unknown.
_EMPTY_REFERENCES = frozenset({"", "undefined", "null", "none"})


@dataclass(frozen=True)
class OrphanCandidate:
    payment_id: UUID
    raw_provider_id: str | None
    provider_name: str
    description: str = ""


@dataclass(frozen=True)
class ProviderCandidate:
    provider_id: UUID
    name: str


@dataclass(frozen=True)
class OrphanMatch:
    payment_id: UUID
    provider_id: UUID | None

    @property
    def resolved(self) -> bool:
        return self.provider_id is not None


def parse_provider_reference(raw: str | None) -> UUID | None:
    """The UUID a raw reference names, or None when empty or malformed."""
    if raw is None or raw.strip().lower() in _EMPTY_REFERENCES:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


def is_orphan(raw: str | None, valid_provider_ids: Iterable[UUID]) -> bool:
    """True when ``raw`` does not name one of ``valid_provider_ids``."""
    parsed = parse_provider_reference(raw)
    return parsed is None or parsed not in set(valid_provider_ids)


def normalize_name(name: str | None) -> str:
    return " ".join((name or "").split()).casefold()


class OrphanMatchStrategy(Protocol):
    """Picks a provider for one orphan, or None."""

    name: str

    def match(
        self,
        orphan: OrphanCandidate,
        providers: Sequence[ProviderCandidate],
    ) -> UUID | None: ...


class ProviderNameMatchStrategy:
    """
    Match on the provider name copied onto the payment.

    Compares case- and whitespace-insensitively.  When the payment has no
    usable name, looks for exactly one provider name appearing as a whole
    phrase in the description.
    """

    name = "provider_name"

    def match(
        self,
        orphan: OrphanCandidate,
        providers: Sequence[ProviderCandidate],
    ) -> UUID | None:
        wanted = normalize_name(orphan.provider_name)
        if wanted:
            hits = {p.provider_id for p in providers if normalize_name(p.name) == wanted}
            return hits.pop() if len(hits) == 1 else None

        description = normalize_name(orphan.description)
        if not description:
            return None
        hits = {
            p.provider_id
            for p in providers
            if normalize_name(p.name)
            and re.search(rf"\b{re.escape(normalize_name(p.name))}\b", description)
        }
        return hits.pop() if len(hits) == 1 else None


class OrphanMatcher:
    """Runs a strategy over a batch of orphans."""

    def __init__(self, strategy: OrphanMatchStrategy | None = None):
        self.strategy = strategy or ProviderNameMatchStrategy()

    @traced_engine("orphan_matching", "1.0", fingerprint_fields=("orphans", "providers"))
    def match_all(
        self,
        *,
        orphans: Sequence[OrphanCandidate],
        providers: Sequence[ProviderCandidate],
    ) -> tuple[OrphanMatch, ...]:
        allowed = {p.provider_id for p in providers}
        matches = []
        for orphan in orphans:
            found = self.strategy.match(orphan, providers)
            if found is not None and found not in allowed:
                found = None
            matches.append(OrphanMatch(payment_id=orphan.payment_id, provider_id=found))
        return tuple(matches)

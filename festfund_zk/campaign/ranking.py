"""
Donor leaderboard for a campaign.

Algorithm:
    1. Take the active commitments of the event.
    2. Group by normalized donor identity; anonymous commitments are dropped.
    3. provenTotal sums the proof-backed amount of each commitment: a
       revealed amount checked against the commitment opening. Revealed
       amounts without that check still count, through the compatibility
       fallback below, and mark the entry as not proof-backed. An entry is
       proof-backed only when it has a proven amount and no unproven one;
       a donor with nothing revealed is not proof-backed.
    4. Sort by provenTotal desc, commitmentCount desc, earliest commitment
       asc, then donor identity asc so full ties are deterministic.
    5. Assign 1-based ranks and apply each donor's privacy preferences.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..storage.store import (
    CommitmentStore,
    StoredCommitment,
    StoredPreferences,
    commitments_by_donor,
    normalize_identity,
)

logger = logging.getLogger(__name__)

PRIVACY_SCORE_MAX = 100
PRIVACY_SCORE_STEP = 25


@dataclass(frozen=True)
class DonorTally:
    donor_address: str
    proven_total: int
    revealed_total: int
    commitment_count: int
    earliest_timestamp: float
    proof_backed: bool

    def sort_key(self) -> Tuple[int, int, float, str]:
        return (-self.proven_total, -self.commitment_count, self.earliest_timestamp, self.donor_address)


@dataclass(frozen=True)
class RankingEntry:
    rank: int
    display_name: str
    proven_total: int
    commitment_count: int
    earliest_timestamp: float
    reveal_amount: bool
    reveal_name: bool
    proof_backed: bool
    donor_address: Optional[str] = None
    total_donated: Optional[int] = None

    @property
    def is_anonymous(self) -> bool:
        return not self.reveal_name

    @property
    def privacy_score(self) -> int:
        return (
            PRIVACY_SCORE_MAX
            - (PRIVACY_SCORE_STEP if self.reveal_amount else 0)
            - (PRIVACY_SCORE_STEP if self.reveal_name else 0)
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Leaderboard row as shown to other users."""
        return {
            "rank": self.rank,
            "displayName": self.display_name,
            "donorAddress": self.donor_address,
            "totalDonated": self.total_donated,
            "isAmountRevealed": self.reveal_amount,
            "isNameRevealed": self.reveal_name,
            "isAnonymous": self.is_anonymous,
            "commitmentCount": self.commitment_count,
            "privacyScore": self.privacy_score,
            "proofBacked": self.proof_backed,
        }


def _proven_amount(commitment: StoredCommitment) -> Tuple[int, Optional[bool]]:
    """
    Amount this commitment contributes to provenTotal, and whether that amount
    is proof-backed. An unrevealed commitment contributes nothing, so its
    backing is None and it does not count either way.
    """
    if commitment.is_revealed and commitment.amount_proven:
        return commitment.revealed_amount or 0, True
    if commitment.is_revealed:
        # Compatibility fallback: revealed but unproven amounts still rank
        return commitment.revealed_amount or 0, False
    return 0, None


def _is_proof_backed(backing: Sequence[Optional[bool]]) -> bool:
    """At least one proven amount and no unproven reveal."""
    return any(b is True for b in backing) and not any(b is False for b in backing)


def tally_donors(commitments: Sequence[StoredCommitment]) -> List[DonorTally]:
    tallies = []
    for donor, donor_commitments in commitments_by_donor(commitments).items():
        contributions = [_proven_amount(c) for c in donor_commitments]
        tallies.append(
            DonorTally(
                donor_address=donor,
                proven_total=sum(amount for amount, _ in contributions),
                revealed_total=sum(c.revealed_amount or 0 for c in donor_commitments if c.is_revealed),
                commitment_count=len(donor_commitments),
                earliest_timestamp=min(c.timestamp for c in donor_commitments),
                proof_backed=_is_proof_backed([backed for _, backed in contributions]),
            )
        )
    tallies.sort(key=DonorTally.sort_key)
    return tallies


def short_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


class RankingEngine:
    def __init__(self, store: CommitmentStore) -> None:
        self._store = store

    def _preferences(
        self, event_id: str, tally: DonorTally, donor_commitments: Sequence[StoredCommitment]
    ) -> Tuple[bool, bool, Optional[str]]:
        stored: Optional[StoredPreferences] = self._store.get_preferences(
            tally.donor_address, event_id
        )
        if stored is not None:
            return stored.reveal_amount, stored.reveal_name, stored.custom_display_name
        # No explicit preferences: a revealed commitment implies revealAmount
        return any(c.is_revealed for c in donor_commitments), False, None

    def rank(self, event_id: str) -> List[RankingEntry]:
        commitments = self._store.list_event(event_id)
        grouped = commitments_by_donor(commitments)
        entries = []
        for index, tally in enumerate(tally_donors(commitments)):
            rank = index + 1
            reveal_amount, reveal_name, custom_name = self._preferences(
                event_id, tally, grouped[tally.donor_address]
            )
            if reveal_name:
                display_name = custom_name or short_address(tally.donor_address)
            else:
                display_name = f"Anonymous #{rank}"
            entries.append(
                RankingEntry(
                    rank=rank,
                    display_name=display_name,
                    proven_total=tally.proven_total,
                    commitment_count=tally.commitment_count,
                    earliest_timestamp=tally.earliest_timestamp,
                    reveal_amount=reveal_amount,
                    reveal_name=reveal_name,
                    proof_backed=tally.proof_backed,
                    donor_address=tally.donor_address if reveal_name else None,
                    total_donated=tally.revealed_total if reveal_amount else None,
                )
            )
        logger.debug("Ranked %d donors for event %s", len(entries), event_id)
        return entries

    def user_rank(self, event_id: str, identity: str) -> Tuple[Optional[int], int]:
        """Return (rank or None, total participants) for a donor identity."""
        tallies = tally_donors(self._store.list_event(event_id))
        donor = normalize_identity(identity)
        for index, tally in enumerate(tallies):
            if tally.donor_address == donor:
                return index + 1, len(tallies)
        return None, len(tallies)

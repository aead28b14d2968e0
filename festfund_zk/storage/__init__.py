"""Commitment persistence and the nullifier ledger."""

from .ledger import NullifierLedger, Reservation, ReservationOutcome
from .store import CommitmentStore, NewCommitment, StoredCommitment, StoredPreferences

__all__ = [
    "CommitmentStore",
    "NewCommitment",
    "NullifierLedger",
    "Reservation",
    "ReservationOutcome",
    "StoredCommitment",
    "StoredPreferences",
]

"""
Nullifier ledger.

Reservation is optimistic: the nullifier is reserved by inserting its
commitment, and the store's unique constraint decides the race. There is
no separate check-then-write step. is_used() exists for diagnostics and
must not be used as a guard before reserving.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..privacy_protocol.exceptions import CommitmentAlreadyExistsError, NullifierAlreadyUsedError
from .store import CommitmentStore, NewCommitment, StoredCommitment


class ReservationOutcome(Enum):
    SUCCESS = "success"
    ALREADY_USED = "already_used"
    COMMITMENT_EXISTS = "commitment_exists"


@dataclass(frozen=True)
class Reservation:
    outcome: ReservationOutcome
    record: Optional[StoredCommitment] = None
    detail: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is ReservationOutcome.SUCCESS


class NullifierLedger:
    def __init__(self, store: CommitmentStore) -> None:
        self._store = store

    def reserve(self, new: NewCommitment) -> Reservation:
        """Atomically reserve the nullifier of new together with its insert."""
        try:
            record = self._store.insert(new)
        except NullifierAlreadyUsedError as exc:
            return Reservation(ReservationOutcome.ALREADY_USED, detail=str(exc))
        except CommitmentAlreadyExistsError as exc:
            return Reservation(ReservationOutcome.COMMITMENT_EXISTS, detail=str(exc))
        return Reservation(ReservationOutcome.SUCCESS, record=record)

    def is_used(self, nullifier_hash: str) -> bool:
        return self._store.find_by_nullifier(nullifier_hash) is not None

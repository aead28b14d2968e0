"""
Commitment store: durable commitments, verification state and reveals.

The store is the only shared mutable resource. Uniqueness of commitment
and nullifier hashes is enforced by database constraints at insert time,
so concurrent submissions of the same nullifier cannot both succeed.
Readers receive immutable snapshots (StoredCommitment), never live rows.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..privacy_protocol.exceptions import (
    CommitmentAlreadyExistsError,
    NotFoundError,
    NullifierAlreadyUsedError,
    RevealStateError,
)
from ..privacy_protocol.types import ProofBundle, VerificationLevel, VerificationResult, serialize_proof
from .models import STATUS_ACTIVE, STATUS_CANCELLED, Base, CommitmentRecord, PrivacyPreference

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///festfund.db"


def normalize_identity(value: Optional[str]) -> Optional[str]:
    """Donor identities compare case-insensitively; blank means anonymous."""
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


@dataclass(frozen=True)
class StoredCommitment:
    commitment_hash: str
    nullifier_hash: str
    backend: str
    proof: bytes
    public_signals: Tuple[str, ...]
    verified: bool
    verification_level: str
    verified_at: Optional[float]
    event_id: str
    donor_address: Optional[str]
    revealed_amount: Optional[int]
    is_revealed: bool
    amount_proven: bool
    revealed_at: Optional[float]
    status: str
    timestamp: float

    @classmethod
    def from_row(cls, row: CommitmentRecord) -> "StoredCommitment":
        if row.is_revealed != (row.revealed_amount is not None):
            raise RevealStateError(
                f"commitment {row.commitment_hash} has inconsistent reveal state"
            )
        if row.amount_proven and not row.is_revealed:
            raise RevealStateError(
                f"commitment {row.commitment_hash} is proven but not revealed"
            )
        return cls(
            commitment_hash=row.commitment_hash,
            nullifier_hash=row.nullifier_hash,
            backend=row.backend,
            proof=bytes(row.proof),
            public_signals=tuple(row.public_signals or ()),
            verified=bool(row.verified),
            verification_level=row.verification_level,
            verified_at=row.verified_at,
            event_id=row.event_id,
            donor_address=row.donor_address,
            revealed_amount=int(row.revealed_amount) if row.revealed_amount is not None else None,
            is_revealed=bool(row.is_revealed),
            amount_proven=bool(row.amount_proven),
            revealed_at=row.revealed_at,
            status=row.status,
            timestamp=float(row.timestamp),
        )


@dataclass(frozen=True)
class StoredPreferences:
    donor_address: str
    event_id: str
    reveal_amount: bool
    reveal_name: bool
    custom_display_name: Optional[str]


@dataclass(frozen=True)
class NewCommitment:
    """A commitment ready for insertion, built from a backend ProofBundle."""

    bundle: ProofBundle
    event_id: str
    donor_address: Optional[str] = None
    verification: Optional[VerificationResult] = None
    timestamp: Optional[float] = None


class CommitmentStore:
    """
    SQLAlchemy-backed commitment store.

    Example:
        >>> store = CommitmentStore("sqlite:///:memory:")
        >>> stored = store.insert(NewCommitment(bundle, "event-1", "0xabc"))
    """

    def __init__(
        self,
        database_url: str = DEFAULT_DATABASE_URL,
        *,
        engine: Optional[Engine] = None,
        echo: bool = False,
    ) -> None:
        self.engine = engine or create_engine(database_url, echo=echo)
        Base.metadata.create_all(self.engine)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Commitments
    # ------------------------------------------------------------------

    def insert(self, new: NewCommitment) -> StoredCommitment:
        """
        Insert a commitment; the unique constraints act as nullifier ledger.

        Raises:
            NullifierAlreadyUsedError: If the nullifier is already stored
            CommitmentAlreadyExistsError: If the commitment hash is already stored
        """
        bundle = new.bundle
        verification = new.verification
        verified = bool(verification and verification.verified)
        row = CommitmentRecord(
            commitment_hash=bundle.commitment_hash,
            nullifier_hash=bundle.nullifier_hash,
            backend=bundle.backend,
            proof=serialize_proof(bundle.proof),
            public_signals=list(bundle.public_signals),
            verified=verified,
            verification_level=(
                verification.level.value if verified else VerificationLevel.NONE.value
            ),
            verified_at=time.time() if verified else None,
            event_id=new.event_id,
            donor_address=normalize_identity(new.donor_address),
            is_revealed=False,
            amount_proven=False,
            status=STATUS_ACTIVE,
            timestamp=new.timestamp if new.timestamp is not None else time.time(),
        )
        with self._sessions() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if self.find_by_nullifier(bundle.nullifier_hash) is not None:
                    raise NullifierAlreadyUsedError(
                        f"nullifier {bundle.nullifier_hash} already used"
                    ) from exc
                raise CommitmentAlreadyExistsError(
                    f"commitment {bundle.commitment_hash} already exists"
                ) from exc
            logger.info(
                "Stored commitment %s for event %s (verified=%s)",
                row.commitment_hash,
                row.event_id,
                verified,
            )
            return StoredCommitment.from_row(row)

    def _get_row(self, session: Any, commitment_hash: str) -> CommitmentRecord:
        row = session.execute(
            select(CommitmentRecord).where(CommitmentRecord.commitment_hash == commitment_hash)
        ).scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"commitment {commitment_hash} not found")
        return row

    def get(self, commitment_hash: str) -> Optional[StoredCommitment]:
        with self._sessions() as session:
            row = session.execute(
                select(CommitmentRecord).where(CommitmentRecord.commitment_hash == commitment_hash)
            ).scalar_one_or_none()
            return StoredCommitment.from_row(row) if row is not None else None

    def find_by_nullifier(self, nullifier_hash: str) -> Optional[StoredCommitment]:
        with self._sessions() as session:
            row = session.execute(
                select(CommitmentRecord).where(CommitmentRecord.nullifier_hash == nullifier_hash)
            ).scalar_one_or_none()
            return StoredCommitment.from_row(row) if row is not None else None

    def list_event(self, event_id: str, *, include_cancelled: bool = False) -> List[StoredCommitment]:
        query = select(CommitmentRecord).where(CommitmentRecord.event_id == event_id)
        if not include_cancelled:
            query = query.where(CommitmentRecord.status == STATUS_ACTIVE)
        query = query.order_by(CommitmentRecord.timestamp, CommitmentRecord.id)
        with self._sessions() as session:
            return [StoredCommitment.from_row(row) for row in session.execute(query).scalars()]

    def list_donor(self, donor_address: str, event_id: Optional[str] = None) -> List[StoredCommitment]:
        query = select(CommitmentRecord).where(
            CommitmentRecord.donor_address == normalize_identity(donor_address)
        )
        if event_id is not None:
            query = query.where(CommitmentRecord.event_id == event_id)
        query = query.order_by(CommitmentRecord.timestamp, CommitmentRecord.id)
        with self._sessions() as session:
            return [StoredCommitment.from_row(row) for row in session.execute(query).scalars()]

    def count_donor_commitments(self, donor_address: str, event_id: str) -> int:
        query = (
            select(func.count())
            .select_from(CommitmentRecord)
            .where(CommitmentRecord.donor_address == normalize_identity(donor_address))
            .where(CommitmentRecord.event_id == event_id)
            .where(CommitmentRecord.status == STATUS_ACTIVE)
        )
        with self._sessions() as session:
            return int(session.execute(query).scalar_one())

    def mark_verified(self, commitment_hash: str, result: VerificationResult) -> StoredCommitment:
        """
        Record a successful verification. verified only moves false -> true.

        Raises:
            ValueError: If result is not a successful verification of this commitment
            NotFoundError: If the commitment does not exist
        """
        if not result.verified:
            raise ValueError("only successful verification results can be recorded")
        if result.commitment_hash not in (None, commitment_hash):
            raise ValueError("verification result belongs to another commitment")
        with self._sessions() as session:
            row = self._get_row(session, commitment_hash)
            if not row.verified:
                row.verified = True
                row.verification_level = result.level.value
                row.verified_at = time.time()
                session.commit()
                logger.info("Commitment %s verified (%s)", commitment_hash, result.level.value)
            return StoredCommitment.from_row(row)

    def reveal(
        self,
        commitment_hash: str,
        donor_address: str,
        amount: int,
        *,
        amount_proven: bool = False,
    ) -> StoredCommitment:
        """
        Reveal the amount of a commitment, once, by its owning donor.

        Raises:
            NotFoundError: If the commitment does not exist
            RevealStateError: If the donor does not own the commitment, the
                commitment was already revealed, or it is cancelled
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise RevealStateError("revealed amount must be a positive integer")
        donor = normalize_identity(donor_address)
        with self._sessions() as session:
            row = self._get_row(session, commitment_hash)
            if row.donor_address is None or row.donor_address != donor:
                raise RevealStateError("only the owning donor can reveal a commitment")
            if row.status != STATUS_ACTIVE:
                raise RevealStateError("cancelled commitments cannot be revealed")
            if row.is_revealed or row.revealed_amount is not None:
                raise RevealStateError("commitment amount already revealed")
            row.revealed_amount = str(amount)
            row.is_revealed = True
            row.amount_proven = bool(amount_proven)
            row.revealed_at = time.time()
            session.commit()
            logger.info(
                "Revealed commitment %s (proven=%s)", commitment_hash, bool(amount_proven)
            )
            return StoredCommitment.from_row(row)

    def mark_cancelled(self, commitment_hash: str) -> StoredCommitment:
        with self._sessions() as session:
            row = self._get_row(session, commitment_hash)
            if row.status != STATUS_CANCELLED:
                row.status = STATUS_CANCELLED
                session.commit()
                logger.info("Cancelled commitment %s", commitment_hash)
            return StoredCommitment.from_row(row)

    # ------------------------------------------------------------------
    # Privacy preferences
    # ------------------------------------------------------------------

    def get_preferences(self, donor_address: str, event_id: str) -> Optional[StoredPreferences]:
        donor = normalize_identity(donor_address)
        with self._sessions() as session:
            row = session.execute(
                select(PrivacyPreference)
                .where(PrivacyPreference.donor_address == donor)
                .where(PrivacyPreference.event_id == event_id)
            ).scalar_one_or_none()
            return _preferences_view(row) if row is not None else None

    def list_preferences(self, event_id: str) -> List[StoredPreferences]:
        with self._sessions() as session:
            rows = session.execute(
                select(PrivacyPreference).where(PrivacyPreference.event_id == event_id)
            ).scalars()
            return [_preferences_view(row) for row in rows]

    def upsert_preferences(
        self,
        donor_address: str,
        event_id: str,
        *,
        reveal_amount: bool,
        reveal_name: bool,
        custom_display_name: Optional[str] = None,
    ) -> StoredPreferences:
        donor = normalize_identity(donor_address)
        if donor is None:
            raise ValueError("donor address is required")
        with self._sessions() as session:
            row = session.execute(
                select(PrivacyPreference)
                .where(PrivacyPreference.donor_address == donor)
                .where(PrivacyPreference.event_id == event_id)
            ).scalar_one_or_none()
            if row is None:
                row = PrivacyPreference(donor_address=donor, event_id=event_id)
                session.add(row)
            row.reveal_amount = bool(reveal_amount)
            row.reveal_name = bool(reveal_name)
            row.custom_display_name = custom_display_name
            row.updated_at = time.time()
            session.commit()
            return _preferences_view(row)


def _preferences_view(row: PrivacyPreference) -> StoredPreferences:
    return StoredPreferences(
        donor_address=row.donor_address,
        event_id=row.event_id,
        reveal_amount=bool(row.reveal_amount),
        reveal_name=bool(row.reveal_name),
        custom_display_name=row.custom_display_name,
    )


def commitments_by_donor(
    commitments: Sequence[StoredCommitment],
) -> Dict[str, List[StoredCommitment]]:
    """Group commitments by donor identity, dropping anonymous ones."""
    grouped: Dict[str, List[StoredCommitment]] = {}
    for commitment in commitments:
        if not commitment.donor_address:
            continue
        grouped.setdefault(commitment.donor_address, []).append(commitment)
    return grouped

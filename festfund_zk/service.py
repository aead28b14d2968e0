"""
Donation service: the operations exposed to callers.

create_commitment() runs the full pipeline:

    validate inputs -> backend.generate() -> backend.verify()
        -> reserve nullifier (insert) -> receipt

The nullifier is reserved only after verification has produced a result,
so an invalid proof never burns it. When verification cannot complete
because the remote service is degraded, the commitment is stored with
verified=False and can be re-verified later with reverify().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .campaign.milestones import EventAggregate, EventStats, MilestoneStatus, MilestoneVerifier
from .campaign.ranking import RankingEngine, RankingEntry
from .privacy_protocol.codec import parse_amount, validate_donation_input
from .privacy_protocol.exceptions import (
    BackendUnavailableError,
    CommitmentAlreadyExistsError,
    CryptographicError,
    NotFoundError,
    NullifierAlreadyUsedError,
    RevealStateError,
    ServiceDegradedError,
    ValidationError,
)
from .privacy_protocol.factory import get_proof_backend
from .privacy_protocol.interfaces import ProofBackend
from .privacy_protocol.types import (
    BackendStatus,
    LocalProof,
    ProofPayload,
    VerificationLevel,
    VerificationResult,
    deserialize_proof,
    serialize_proof,
)
from .storage.ledger import NullifierLedger, ReservationOutcome
from .storage.models import STATUS_ACTIVE
from .storage.store import (
    CommitmentStore,
    NewCommitment,
    StoredCommitment,
    StoredPreferences,
    normalize_identity,
)

logger = logging.getLogger(__name__)

MAX_DISPLAY_NAME_CHARS = 64


@dataclass(frozen=True)
class CommitmentReceipt:
    """
    Result of create_commitment().

    Attributes:
        commitment_hash, nullifier_hash: Public signals of the commitment
        proof: Serialized proof payload (opaque handle)
        verified: Whether the proof verified at creation time
        level: Strength of that verification
        stored: Whether the commitment was persisted
        reason: Why verification failed or was skipped, if it did
    """

    commitment_hash: str
    nullifier_hash: str
    proof: bytes
    verified: bool
    level: VerificationLevel
    stored: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commitmentHash": self.commitment_hash,
            "nullifierHash": self.nullifier_hash,
            "proof": self.proof.hex(),
            "verified": self.verified,
            "verificationLevel": self.level.value,
            "stored": self.stored,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class PrivacySettings:
    donor_address: str
    event_id: str
    reveal_amount: bool
    reveal_name: bool
    custom_display_name: Optional[str]
    commitment_count: int
    explicit: bool


def _load_payload(proof: Union[bytes, bytearray, ProofPayload]) -> ProofPayload:
    if isinstance(proof, (bytes, bytearray)):
        return deserialize_proof(bytes(proof))
    return proof


class DonationService:
    """
    Example:
        >>> service = DonationService(backend, CommitmentStore("sqlite:///:memory:"))
        >>> await service.initialize()
        >>> receipt = await service.create_commitment(1000, "s3cret", "event-1", 100, "0xabc")
    """

    def __init__(self, backend: ProofBackend, store: CommitmentStore) -> None:
        self.backend = backend
        self.store = store
        self.ledger = NullifierLedger(store)
        self.milestones = MilestoneVerifier(store)
        self.rankings = RankingEngine(store)

    @classmethod
    def from_settings(cls, settings: Any) -> "DonationService":
        """Build a service from ServiceSettings; call initialize() before use."""
        backend = get_proof_backend(prefer=settings.proof_backend, **settings.backend_options())
        return cls(backend, CommitmentStore(settings.database_url))

    async def initialize(self) -> None:
        await self.backend.initialize()
        status = self.backend.status()
        logger.info(
            "Donation service using %s backend %s (available=%s)",
            status.kind,
            status.name,
            status.available,
        )

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------
    # Commitments
    # ------------------------------------------------------------------

    async def create_commitment(
        self,
        amount: Any,
        secret: Any,
        event_id: Any,
        min_amount: Any = 0,
        donor_address: Optional[str] = None,
    ) -> CommitmentReceipt:
        """
        Create, verify and store a donation commitment.

        Raises:
            ValidationError: On invalid inputs
            BackendUnavailableError: If the configured backend cannot prove
            ProofGenerationError: If proving fails
            NullifierAlreadyUsedError: If this secret was already used for the event
            CommitmentAlreadyExistsError: If the same commitment is already stored
        """
        donation = validate_donation_input(amount, secret, event_id, min_amount)
        bundle = await self.backend.generate(donation)
        blob = serialize_proof(bundle.proof)

        try:
            result = await self.backend.verify(bundle.proof, bundle.public_signals)
        except ServiceDegradedError as exc:
            logger.warning(
                "Verification degraded for %s, storing unverified: %s",
                bundle.commitment_hash,
                exc,
            )
            result = VerificationResult(
                verified=False,
                commitment_hash=bundle.commitment_hash,
                nullifier_hash=bundle.nullifier_hash,
                reason=f"verification pending: {exc}",
            )
        else:
            if not result.verified:
                logger.warning(
                    "Rejected commitment %s: %s", bundle.commitment_hash, result.reason
                )
                return CommitmentReceipt(
                    commitment_hash=bundle.commitment_hash,
                    nullifier_hash=bundle.nullifier_hash,
                    proof=blob,
                    verified=False,
                    level=result.level,
                    stored=False,
                    reason=result.reason,
                )

        reservation = self.ledger.reserve(
            NewCommitment(
                bundle=bundle,
                event_id=donation.event_id,
                donor_address=donor_address,
                verification=result,
            )
        )
        if reservation.outcome is ReservationOutcome.ALREADY_USED:
            raise NullifierAlreadyUsedError(reservation.detail or "nullifier already used")
        if reservation.outcome is ReservationOutcome.COMMITMENT_EXISTS:
            raise CommitmentAlreadyExistsError(reservation.detail or "commitment already exists")

        return CommitmentReceipt(
            commitment_hash=bundle.commitment_hash,
            nullifier_hash=bundle.nullifier_hash,
            proof=blob,
            verified=result.verified,
            level=result.level if result.verified else VerificationLevel.NONE,
            stored=True,
            reason=result.reason,
        )

    async def verify_proof(
        self,
        proof: Union[bytes, bytearray, ProofPayload],
        public_signals: Sequence[str],
    ) -> VerificationResult:
        """
        Verify a proof with the configured backend. Malformed proofs are a
        negative result, not an error.
        """
        try:
            payload = _load_payload(proof)
        except CryptographicError as exc:
            return VerificationResult.rejected(str(exc), public_signals)
        if payload.kind != self.backend.kind:
            return VerificationResult.rejected(
                f"{payload.kind} proof cannot be checked by the {self.backend.kind} backend",
                public_signals,
            )
        return await self.backend.verify(payload, public_signals)

    async def reverify(self, commitment_hash: str) -> VerificationResult:
        """
        Re-run verification of a stored commitment and record a success.

        Raises:
            NotFoundError: If the commitment does not exist
            ServiceDegradedError: If the remote service is still unreachable
        """
        stored = self._require(commitment_hash)
        result = await self.verify_proof(stored.proof, stored.public_signals)
        if result.verified:
            self.store.mark_verified(commitment_hash, result)
        else:
            logger.info("Re-verification of %s failed: %s", commitment_hash, result.reason)
        return result

    def cancel_commitment(self, commitment_hash: str) -> StoredCommitment:
        """Exclude a commitment from rankings and milestones. Its nullifier stays used."""
        self._require(commitment_hash)
        return self.store.mark_cancelled(commitment_hash)

    def get_commitment(self, commitment_hash: str) -> StoredCommitment:
        return self._require(commitment_hash)

    def _require(self, commitment_hash: str) -> StoredCommitment:
        stored = self.store.get(commitment_hash)
        if stored is None:
            raise NotFoundError(f"commitment {commitment_hash} not found")
        return stored

    # ------------------------------------------------------------------
    # Reveal
    # ------------------------------------------------------------------

    def _opens_commitment(self, stored: StoredCommitment, amount: int, secret: str) -> bool:
        payload = deserialize_proof(stored.proof)
        if not isinstance(payload, LocalProof):
            logger.info(
                "Commitment %s uses the %s backend; amount cannot be re-derived",
                stored.commitment_hash,
                stored.backend,
            )
            return False

        codec = getattr(self.backend, "codec", None)
        if self.backend.kind != "local" or codec is None:
            raise BackendUnavailableError("local backend required to check a commitment opening")
        try:
            pair = codec.derive(amount, secret, payload.event_id, payload.min_amount)
        except ValidationError as exc:
            raise RevealStateError(f"revealed amount does not open the commitment: {exc}") from exc
        if pair.as_signals() != (stored.commitment_hash, stored.nullifier_hash):
            raise RevealStateError("revealed amount does not open the commitment")
        return True

    def reveal_amount(
        self,
        commitment_hash: str,
        donor_address: str,
        amount: Any,
        secret: Optional[str] = None,
    ) -> StoredCommitment:
        """
        Reveal the amount of a commitment, once.

        With the donor secret, a local commitment is re-derived from the
        revealed amount and must match; the reveal is then recorded as
        proof-backed (amount_proven).

        Raises:
            NotFoundError: If the commitment does not exist
            ValidationError: If amount is not a positive integer
            RevealStateError: If the donor does not own the commitment, it
                was already revealed or cancelled, or the opening does not match
        """
        parsed = parse_amount(amount, "revealed amount")
        if parsed == 0:
            raise ValidationError("revealed amount must be positive")
        stored = self._require(commitment_hash)
        if stored.donor_address is None or stored.donor_address != normalize_identity(
            donor_address
        ):
            raise RevealStateError("only the owning donor can reveal a commitment")
        if stored.is_revealed:
            raise RevealStateError("commitment amount already revealed")

        proven = False
        if secret is not None:
            proven = self._opens_commitment(stored, parsed, secret)
        return self.store.reveal(commitment_hash, donor_address, parsed, amount_proven=proven)

    # ------------------------------------------------------------------
    # Privacy preferences
    # ------------------------------------------------------------------

    def update_privacy(
        self,
        donor_address: str,
        event_id: str,
        *,
        reveal_amount: bool,
        reveal_name: bool,
        custom_display_name: Optional[str] = None,
    ) -> PrivacySettings:
        """
        Raises:
            ValidationError: If the donor is missing or the display name too long
            NotFoundError: If the donor has no commitment in the event
        """
        donor = normalize_identity(donor_address)
        if donor is None:
            raise ValidationError("donor address is required")
        name = custom_display_name.strip() if custom_display_name else None
        if name and len(name) > MAX_DISPLAY_NAME_CHARS:
            raise ValidationError(
                f"display name cannot exceed {MAX_DISPLAY_NAME_CHARS} characters"
            )
        count = self.store.count_donor_commitments(donor, event_id)
        if count == 0:
            raise NotFoundError(f"no commitments by {donor} for event {event_id}")

        prefs = self.store.upsert_preferences(
            donor,
            event_id,
            reveal_amount=reveal_amount,
            reveal_name=reveal_name,
            custom_display_name=name or None,
        )
        logger.info("Updated privacy preferences of %s for event %s", donor, event_id)
        return self._privacy_view(prefs, count, explicit=True)

    def get_privacy(self, donor_address: str, event_id: str) -> PrivacySettings:
        """
        Without stored preferences, revealAmount defaults to whether any
        active commitment of the donor in the event is revealed, matching
        the ranking.

        Raises:
            ValidationError: If the donor is missing
            NotFoundError: If the donor has no commitment in the event
        """
        donor = normalize_identity(donor_address)
        if donor is None:
            raise ValidationError("donor address is required")
        commitments = [
            c for c in self.store.list_donor(donor, event_id) if c.status == STATUS_ACTIVE
        ]
        count = len(commitments)
        if count == 0:
            raise NotFoundError(f"no commitments by {donor} for event {event_id}")
        prefs = self.store.get_preferences(donor, event_id)
        if prefs is None:
            return PrivacySettings(
                donor_address=donor,
                event_id=event_id,
                reveal_amount=any(c.is_revealed for c in commitments),
                reveal_name=False,
                custom_display_name=None,
                commitment_count=count,
                explicit=False,
            )
        return self._privacy_view(prefs, count, explicit=True)

    @staticmethod
    def _privacy_view(prefs: StoredPreferences, count: int, *, explicit: bool) -> PrivacySettings:
        return PrivacySettings(
            donor_address=prefs.donor_address,
            event_id=prefs.event_id,
            reveal_amount=prefs.reveal_amount,
            reveal_name=prefs.reveal_name,
            custom_display_name=prefs.custom_display_name,
            commitment_count=count,
            explicit=explicit,
        )

    # ------------------------------------------------------------------
    # Campaign views
    # ------------------------------------------------------------------

    def verify_milestone(self, event_id: str, target: Any) -> MilestoneStatus:
        return self.milestones.verify(event_id, target)

    def refresh_event_stats(self, event: EventAggregate) -> EventStats:
        return self.milestones.refresh(event)

    def get_event_ranking(self, event_id: str) -> List[RankingEntry]:
        return self.rankings.rank(event_id)

    def get_user_rank(self, event_id: str, identity: str) -> Tuple[Optional[int], int]:
        return self.rankings.user_rank(event_id, identity)

    def backend_status(self) -> BackendStatus:
        return self.backend.status()

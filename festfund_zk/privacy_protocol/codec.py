"""
Commitment codec: (amount, secret, eventId, minAmount) -> (commitment, nullifier).

Two schemes are supported, one per backend kind:

    pedersen (local backend)
        s = H_scalar(secret)
        C = amount*G + s*H_e          N = s*N_e
        commitment = 0x || SHA3(DS_C, C, eventId, minAmount)
        nullifier  = 0x || SHA3(DS_N, N)

    digest (remote backend)
        commitment = 0x || SHA3(DS_DC, amount, secret, eventId, minAmount)
        nullifier  = 0x || SHA3(DS_DN, secret, eventId)

In both schemes the nullifier depends only on (secret, eventId): the same
donor secret cannot be reused within one event, and nullifiers of different
events are unlinkable. Derivation is deterministic and one-way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .config import (
    COMMITMENT_SCHEMES,
    DOMAIN_SEPARATORS,
    GROUP_ORDER,
    HASH_HEX_LENGTH,
    MAX_EVENT_ID_BYTES,
    MAX_SECRET_BYTES,
    SCHEME_DIGEST,
    SCHEME_PEDERSEN,
)
from .exceptions import ValidationError
from .security import hash_to_scalar, hash_transcript, to_hex_digest
from .types import CommitmentPair, DonationInput

# ============================================================================
# INPUT VALIDATION
# ============================================================================


def parse_amount(value: Any, field: str = "amount") -> int:
    """
    Parse an amount in base units.

    Accepts ints and decimal digit strings. Floats, booleans and
    fractional or non-numeric strings are rejected.

    Raises:
        ValidationError: If value is not a non-negative integer amount
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer, got bool")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            raise ValidationError(f"{field} must be a whole number of base units, got {value!r}")
        parsed = int(text)
    else:
        raise ValidationError(f"{field} must be an integer or digit string, got {type(value).__name__}")
    if parsed < 0:
        raise ValidationError(f"{field} cannot be negative")
    return parsed


def _parse_text(value: Any, field: str, max_bytes: int) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if not value.strip():
        raise ValidationError(f"{field} cannot be empty")
    if len(value.encode("utf-8")) > max_bytes:
        raise ValidationError(f"{field} exceeds {max_bytes} bytes")
    return value


def validate_donation_input(
    amount: Any, secret: Any, event_id: Any, min_amount: Any = 0
) -> DonationInput:
    """
    Validate raw commitment inputs.

    Raises:
        ValidationError: On a non-positive or non-numeric amount, a negative
            threshold, an amount below the threshold, or an empty secret or
            event identifier
    """
    parsed_amount = parse_amount(amount)
    if parsed_amount == 0:
        raise ValidationError("amount must be positive")
    parsed_min = parse_amount(min_amount, "min_amount")
    if parsed_amount < parsed_min:
        raise ValidationError("amount is below the minimum amount")

    return DonationInput(
        amount=parsed_amount,
        secret=_parse_text(secret, "secret", MAX_SECRET_BYTES),
        event_id=_parse_text(event_id, "event_id", MAX_EVENT_ID_BYTES).strip(),
        min_amount=parsed_min,
    )


def is_hash_hex(value: Any) -> bool:
    """True for 0x-prefixed 32-byte lowercase hex digests."""
    if not isinstance(value, str) or len(value) != HASH_HEX_LENGTH:
        return False
    if not value.startswith("0x"):
        return False
    return all(ch in "0123456789abcdef" for ch in value[2:])


# ============================================================================
# DIGEST SCHEME
# ============================================================================


class DigestCodec:
    """Hash-only commitments, as produced by the remote proof service."""

    scheme = SCHEME_DIGEST

    def derive_input(self, donation: DonationInput) -> CommitmentPair:
        secret = donation.secret.encode("utf-8")
        event = donation.event_id.encode("utf-8")
        commitment = hash_transcript(
            DOMAIN_SEPARATORS["digest_commitment"],
            [
                str(donation.amount).encode("ascii"),
                secret,
                event,
                str(donation.min_amount).encode("ascii"),
            ],
        )
        nullifier = hash_transcript(DOMAIN_SEPARATORS["digest_nullifier"], [secret, event])
        return CommitmentPair(to_hex_digest(commitment), to_hex_digest(nullifier))

    def derive(self, amount: Any, secret: Any, event_id: Any, min_amount: Any = 0) -> CommitmentPair:
        return self.derive_input(validate_donation_input(amount, secret, event_id, min_amount))


# ============================================================================
# PEDERSEN SCHEME
# ============================================================================


@dataclass(frozen=True)
class PedersenOpening:
    """Witness and public points of a Pedersen donation commitment."""

    commitment_point: Any
    nullifier_point: Any
    secret_scalar: int
    blinding_generator: Any
    nullifier_generator: Any


class PedersenCodec:
    """
    Pedersen commitments bound to the generator seeds of a circuit.

    Example:
        >>> codec = PedersenCodec(artifacts.h_seed, artifacts.n_seed)
        >>> pair = codec.derive(1000, "donor-secret", "event-1", 100)
    """

    scheme = SCHEME_PEDERSEN

    def __init__(self, h_seed: bytes, n_seed: bytes) -> None:
        if not h_seed or not n_seed:
            raise ValueError("generator seeds cannot be empty")
        self._h_seed = h_seed
        self._n_seed = n_seed

    @classmethod
    def from_artifacts(cls, artifacts: Any) -> "PedersenCodec":
        return cls(artifacts.h_seed, artifacts.n_seed)

    @staticmethod
    def secret_scalar(secret: str) -> int:
        return hash_to_scalar(secret.encode("utf-8"), DOMAIN_SEPARATORS["secret_scalar"])

    def open(self, donation: DonationInput) -> PedersenOpening:
        # Imported here so the digest scheme works without petlib loaded
        from .pedersen.curve import blinding_generator, get_curve, mul, nullifier_generator

        if donation.amount >= GROUP_ORDER:
            raise ValidationError("amount exceeds the commitment group order")

        G = get_curve().G
        H = blinding_generator(self._h_seed, donation.event_id)
        N_gen = nullifier_generator(self._n_seed, donation.event_id)
        s = self.secret_scalar(donation.secret)
        if s == 0:
            raise ValidationError("secret maps to a degenerate scalar")

        C = mul(donation.amount, G) + mul(s, H)
        N = mul(s, N_gen)
        return PedersenOpening(
            commitment_point=C,
            nullifier_point=N,
            secret_scalar=s,
            blinding_generator=H,
            nullifier_generator=N_gen,
        )

    @staticmethod
    def commitment_hash(commitment_point: bytes, event_id: str, min_amount: int) -> str:
        digest = hash_transcript(
            DOMAIN_SEPARATORS["commitment_hash"],
            [
                commitment_point,
                event_id.encode("utf-8"),
                str(min_amount).encode("ascii"),
            ],
        )
        return to_hex_digest(digest)

    @staticmethod
    def nullifier_hash(nullifier_point: bytes) -> str:
        return to_hex_digest(hash_transcript(DOMAIN_SEPARATORS["nullifier_hash"], [nullifier_point]))

    def derive_input(self, donation: DonationInput) -> CommitmentPair:
        opening = self.open(donation)
        return CommitmentPair(
            self.commitment_hash(
                opening.commitment_point.export(), donation.event_id, donation.min_amount
            ),
            self.nullifier_hash(opening.nullifier_point.export()),
        )

    def derive(self, amount: Any, secret: Any, event_id: Any, min_amount: Any = 0) -> CommitmentPair:
        return self.derive_input(validate_donation_input(amount, secret, event_id, min_amount))


def get_codec(scheme: str, artifacts: Optional[Any] = None):
    """Return the codec for a scheme; pedersen requires circuit artifacts."""
    if scheme == SCHEME_DIGEST:
        return DigestCodec()
    if scheme == SCHEME_PEDERSEN:
        if artifacts is None:
            raise ValueError("pedersen codec requires circuit artifacts")
        return PedersenCodec.from_artifacts(artifacts)
    raise ValueError(
        f"Unknown commitment scheme: {scheme!r}; expected one of {COMMITMENT_SCHEMES}"
    )

"""
Common types for donation commitments and proofs.

This module provides:
1. DonationInput - validated inputs of a commitment
2. LocalProof / RemoteAttestation - proof payloads, tagged by backend kind
3. ProofBundle - output of a backend generate() call
4. VerificationResult - output of a backend verify() call, with its strength
5. BackendStatus - diagnostic snapshot of a backend

Proof payloads serialize to CBOR with a version field and a kind tag so the
commitment store can persist them as opaque blobs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Union

import cbor2

from .config import MAX_PROOF_SIZE_BYTES, PROOF_VERSION
from .exceptions import CryptographicError

# ============================================================================
# INPUTS
# ============================================================================


@dataclass(frozen=True)
class DonationInput:
    """
    Normalized commitment inputs.

    Attributes:
        amount: Donation amount in base units (positive integer)
        secret: Donor-held secret, never persisted
        event_id: Campaign identifier
        min_amount: Threshold the proof shows amount >= min_amount against

    Use codec.validate_donation_input() to build one from untrusted values.
    """

    amount: int
    secret: str
    event_id: str
    min_amount: int = 0

    def __repr__(self) -> str:
        return (
            f"DonationInput(amount=<hidden>, secret=<hidden>, "
            f"event_id={self.event_id!r}, min_amount={self.min_amount})"
        )


@dataclass(frozen=True)
class CommitmentPair:
    commitment_hash: str
    nullifier_hash: str

    def as_signals(self) -> Tuple[str, str]:
        return (self.commitment_hash, self.nullifier_hash)


# ============================================================================
# VERIFICATION LEVELS
# ============================================================================


class VerificationLevel(Enum):
    """
    Strength of a verification result.

    - NONE: not verified
    - STRUCTURAL: remote envelope is well formed (weak)
    - CONFIRMED: remote service confirmed its own attestation
    - CRYPTOGRAPHIC: local verifier checked the zero-knowledge proof
    """

    NONE = "none"
    STRUCTURAL = "structural"
    CONFIRMED = "confirmed"
    CRYPTOGRAPHIC = "cryptographic"


# ============================================================================
# PROOF PAYLOADS
# ============================================================================


@dataclass(frozen=True)
class RangeBitProof:
    """One bit of the range proof: commitment C_i and its OR-proof."""

    commitment: bytes
    announcement_0: bytes
    announcement_1: bytes
    challenge_0: bytes
    response_0: bytes
    response_1: bytes

    def to_list(self) -> List[bytes]:
        return [
            self.commitment,
            self.announcement_0,
            self.announcement_1,
            self.challenge_0,
            self.response_0,
            self.response_1,
        ]

    @classmethod
    def from_list(cls, items: List[Any]) -> "RangeBitProof":
        if not isinstance(items, list) or len(items) != 6:
            raise CryptographicError("bit proof must have 6 fields")
        if not all(isinstance(item, (bytes, bytearray)) for item in items):
            raise CryptographicError("bit proof fields must be bytes")
        return cls(*[bytes(item) for item in items])


@dataclass(frozen=True)
class LocalProof:
    """
    Proof produced by the local Pedersen range-proof circuit.

    Statement: commitment_point = amount*G + s*H_e, nullifier_point = s*N_e,
    and amount - min_amount is in [0, 2^k), where s is derived from the
    donor secret and H_e, N_e are the event generators of the circuit.
    """

    kind: ClassVar[str] = "local"

    circuit_digest: bytes
    event_id: str
    min_amount: int
    commitment_point: bytes
    nullifier_point: bytes
    bits: Tuple[RangeBitProof, ...]
    link_announcement_g: bytes
    link_announcement_n: bytes
    link_response_amount: bytes
    link_response_secret: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cd": self.circuit_digest,
            "e": self.event_id,
            "min": str(self.min_amount),
            "C": self.commitment_point,
            "N": self.nullifier_point,
            "bits": [bit.to_list() for bit in self.bits],
            "T1": self.link_announcement_g,
            "T2": self.link_announcement_n,
            "zd": self.link_response_amount,
            "zs": self.link_response_secret,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalProof":
        try:
            bits = data["bits"]
            if not isinstance(bits, list):
                raise CryptographicError("bits must be a list")
            return cls(
                circuit_digest=bytes(data["cd"]),
                event_id=str(data["e"]),
                min_amount=int(data["min"]),
                commitment_point=bytes(data["C"]),
                nullifier_point=bytes(data["N"]),
                bits=tuple(RangeBitProof.from_list(bit) for bit in bits),
                link_announcement_g=bytes(data["T1"]),
                link_announcement_n=bytes(data["T2"]),
                link_response_amount=bytes(data["zd"]),
                link_response_secret=bytes(data["zs"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CryptographicError(f"Malformed local proof: {e}")


@dataclass(frozen=True)
class RemoteAttestation:
    """
    Proof envelope returned by the remote proof service.

    Checking it locally is structural only; the service can additionally
    confirm the attestation it issued.
    """

    kind: ClassVar[str] = "remote"

    proof_type: str
    network: str
    scheme: str
    attestation_id: str
    attestation: bytes
    public_signals: Tuple[str, ...]
    issued_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.proof_type,
            "network": self.network,
            "scheme": self.scheme,
            "id": self.attestation_id,
            "att": self.attestation,
            "signals": list(self.public_signals),
            "ts": self.issued_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteAttestation":
        try:
            signals = data["signals"]
            if not isinstance(signals, (list, tuple)):
                raise CryptographicError("signals must be a list")
            return cls(
                proof_type=str(data["type"]),
                network=str(data["network"]),
                scheme=str(data["scheme"]),
                attestation_id=str(data["id"]),
                attestation=bytes(data["att"]),
                public_signals=tuple(str(s) for s in signals),
                issued_at=float(data.get("ts", 0.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CryptographicError(f"Malformed remote attestation: {e}")


ProofPayload = Union[LocalProof, RemoteAttestation]

_PAYLOAD_TYPES = {
    LocalProof.kind: LocalProof,
    RemoteAttestation.kind: RemoteAttestation,
}


def serialize_proof(proof: ProofPayload) -> bytes:
    """
    Serialize a proof payload to CBOR with version and kind tags.

    Raises:
        CryptographicError: If the payload cannot be encoded
    """
    if not isinstance(proof, (LocalProof, RemoteAttestation)):
        raise CryptographicError(f"Unsupported proof payload: {type(proof)}")
    try:
        blob = cbor2.dumps({"v": PROOF_VERSION, "k": proof.kind, "p": proof.to_dict()})
    except Exception as e:
        raise CryptographicError(f"Failed to serialize proof: {e}")
    if len(blob) > MAX_PROOF_SIZE_BYTES:
        raise CryptographicError("Serialized proof too large")
    return blob


def deserialize_proof(blob: bytes) -> ProofPayload:
    """
    Deserialize a CBOR proof payload produced by serialize_proof().

    Raises:
        CryptographicError: If the blob is malformed or of unknown kind
    """
    if not isinstance(blob, (bytes, bytearray)):
        raise CryptographicError("proof blob must be bytes")
    if len(blob) > MAX_PROOF_SIZE_BYTES:
        raise CryptographicError("Serialized proof too large")
    try:
        data = cbor2.loads(bytes(blob))
    except Exception as e:
        raise CryptographicError(f"Failed to deserialize proof: {e}")

    if not isinstance(data, dict):
        raise CryptographicError("proof blob must decode to a map")
    if data.get("v") != PROOF_VERSION:
        raise CryptographicError(f"Unsupported proof version: {data.get('v')!r}")
    payload_type = _PAYLOAD_TYPES.get(data.get("k"))
    if payload_type is None:
        raise CryptographicError(f"Unknown proof kind: {data.get('k')!r}")
    payload = data.get("p")
    if not isinstance(payload, dict):
        raise CryptographicError("proof body must be a map")
    return payload_type.from_dict(payload)


# ============================================================================
# BACKEND RESULTS
# ============================================================================


@dataclass(frozen=True)
class ProofBundle:
    """Output of ProofBackend.generate()."""

    backend: str
    commitment_hash: str
    nullifier_hash: str
    proof: ProofPayload
    public_signals: Tuple[str, ...]

    @property
    def pair(self) -> CommitmentPair:
        return CommitmentPair(self.commitment_hash, self.nullifier_hash)


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    level: VerificationLevel = VerificationLevel.NONE
    commitment_hash: Optional[str] = None
    nullifier_hash: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str, public_signals: Sequence[str] = ()) -> "VerificationResult":
        """
        A negative result. Well-formed (commitment, nullifier) signals are
        carried through so callers can match the result to their submission.
        """
        signals = tuple(public_signals)
        if len(signals) == 2 and all(isinstance(s, str) and s for s in signals):
            return cls(
                verified=False,
                level=VerificationLevel.NONE,
                commitment_hash=signals[0],
                nullifier_hash=signals[1],
                reason=reason,
            )
        return cls(verified=False, level=VerificationLevel.NONE, reason=reason)


@dataclass
class BackendStatus:
    name: str
    kind: str
    available: bool
    details: Dict[str, Any] = field(default_factory=dict)

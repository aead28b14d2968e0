"""Public API for privacy_protocol: codec, proof types and backend selection."""
from __future__ import annotations

from .codec import DigestCodec, PedersenCodec, get_codec, validate_donation_input
from .exceptions import (
    BackendUnavailableError,
    CircuitArtifactError,
    CommitmentAlreadyExistsError,
    ConfigurationError,
    ConflictError,
    CryptographicError,
    NotFoundError,
    NullifierAlreadyUsedError,
    PrivacyProtocolError,
    ProofGenerationError,
    RevealStateError,
    ServiceDegradedError,
    ValidationError,
)
from .factory import get_proof_backend
from .feature_flags import BackendKind, backend_override, get_backend_type, set_backend_type
from .interfaces import ProofBackend
from .types import (
    BackendStatus,
    CommitmentPair,
    DonationInput,
    LocalProof,
    ProofBundle,
    RemoteAttestation,
    VerificationLevel,
    VerificationResult,
    deserialize_proof,
    serialize_proof,
)

__all__ = [
    "BackendKind",
    "BackendStatus",
    "BackendUnavailableError",
    "CircuitArtifactError",
    "CommitmentAlreadyExistsError",
    "CommitmentPair",
    "ConfigurationError",
    "ConflictError",
    "CryptographicError",
    "DigestCodec",
    "DonationInput",
    "LocalProof",
    "NotFoundError",
    "NullifierAlreadyUsedError",
    "PedersenCodec",
    "PrivacyProtocolError",
    "ProofBackend",
    "ProofBundle",
    "ProofGenerationError",
    "RemoteAttestation",
    "RevealStateError",
    "ServiceDegradedError",
    "ValidationError",
    "VerificationLevel",
    "VerificationResult",
    "backend_override",
    "deserialize_proof",
    "get_backend_type",
    "get_codec",
    "get_proof_backend",
    "serialize_proof",
    "set_backend_type",
    "validate_donation_input",
]

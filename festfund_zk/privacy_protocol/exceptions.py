"""
Custom exceptions for the donation commitment protocol.

These exceptions provide structured error handling for commitment
derivation, proof generation and storage operations. An invalid proof is
not an exception: verifiers return a negative VerificationResult.
"""


class PrivacyProtocolError(Exception):
    """Base exception for privacy protocol errors."""

    pass


class ValidationError(PrivacyProtocolError):
    """Malformed donation input (amount, secret, event, threshold)."""

    pass


class ConflictError(PrivacyProtocolError):
    """A uniqueness constraint on stored commitments was violated."""

    pass


class NullifierAlreadyUsedError(ConflictError):
    """The nullifier has already been reserved by another commitment."""

    pass


class CommitmentAlreadyExistsError(ConflictError):
    """The commitment hash has already been stored."""

    pass


class NotFoundError(PrivacyProtocolError):
    """Referenced commitment or record does not exist."""

    pass


class BackendUnavailableError(PrivacyProtocolError):
    """The configured proof backend cannot serve requests."""

    pass


class CircuitArtifactError(BackendUnavailableError):
    """Circuit description or keys are missing, malformed or mismatched."""

    pass


class ServiceDegradedError(PrivacyProtocolError):
    """Transient remote failure (timeout, connection reset). Retryable."""

    pass


class RevealStateError(PrivacyProtocolError):
    """Reveal request conflicts with the stored reveal state."""

    pass


class ProofGenerationError(PrivacyProtocolError):
    """Error during proof generation."""

    pass


class ConfigurationError(PrivacyProtocolError):
    """Configuration error."""

    pass


class CryptographicError(PrivacyProtocolError):
    """Cryptographic operation error."""

    pass

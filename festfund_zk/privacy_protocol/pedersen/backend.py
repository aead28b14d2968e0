"""
Local proof backend: Pedersen commitments with a range-proof circuit.

The backend loads circuit artifacts once at initialize(); any problem with
them is fatal. Proving and verifying are CPU bound and run in a worker
thread so the trio event loop keeps serving other requests.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Sequence, Union

import trio

from ..codec import PedersenCodec
from ..exceptions import BackendUnavailableError, CircuitArtifactError, ProofGenerationError
from ..interfaces import ProofBackend
from ..security import RandomnessSource
from ..types import (
    BackendStatus,
    DonationInput,
    LocalProof,
    ProofBundle,
    ProofPayload,
    VerificationLevel,
    VerificationResult,
)
from .circuit import CircuitArtifacts, load_circuit
from .range_proof import expected_signals, generate_donation_proof, verify_donation_proof

logger = logging.getLogger(__name__)

DEFAULT_CIRCUIT_DIR = "circuits/donation"


class PedersenProofBackend(ProofBackend):
    """
    Local prover/verifier for donation commitments.

    Example:
        >>> backend = PedersenProofBackend(circuit_dir="circuits/donation")
        >>> await backend.initialize()
        >>> bundle = await backend.generate(donation)
        >>> result = await backend.verify(bundle.proof, bundle.public_signals)
        >>> assert result.verified
    """

    kind = "local"

    _BACKEND_NAME = "Pedersen+RangeProof"
    _BACKEND_VERSION = "1.0.0"

    def __init__(self, circuit_dir: Union[str, "os.PathLike[str]", None] = None) -> None:
        self.circuit_dir = Path(circuit_dir or DEFAULT_CIRCUIT_DIR)
        self.rng = RandomnessSource()
        self._artifacts: Optional[CircuitArtifacts] = None
        self._codec: Optional[PedersenCodec] = None
        self._error: Optional[str] = None

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    @property
    def artifacts(self) -> CircuitArtifacts:
        if self._artifacts is None:
            raise BackendUnavailableError("local backend is not initialized")
        return self._artifacts

    @property
    def codec(self) -> PedersenCodec:
        if self._codec is None:
            raise BackendUnavailableError("local backend is not initialized")
        return self._codec

    async def initialize(self) -> None:
        """
        Load circuit description, proving key and verification key.

        Raises:
            CircuitArtifactError: If artifacts are missing, malformed or mismatched
        """
        try:
            artifacts = load_circuit(self.circuit_dir)
        except CircuitArtifactError as exc:
            self._error = str(exc)
            logger.error("Local proof backend failed to load circuit: %s", exc)
            raise
        self._artifacts = artifacts
        self._codec = PedersenCodec.from_artifacts(artifacts)
        self._error = None
        logger.info(
            "Loaded circuit %s (%d-bit range) from %s",
            artifacts.name,
            artifacts.range_bits,
            self.circuit_dir,
        )

    def _prove(self, donation: DonationInput) -> ProofBundle:
        opening = self.codec.open(donation)
        proof = generate_donation_proof(donation, opening, self.artifacts, self.rng)
        commitment_hash, nullifier_hash = expected_signals(proof)
        return ProofBundle(
            backend=self.kind,
            commitment_hash=commitment_hash,
            nullifier_hash=nullifier_hash,
            proof=proof,
            public_signals=(commitment_hash, nullifier_hash),
        )

    async def generate(self, donation: DonationInput) -> ProofBundle:
        """
        Compute commitment, nullifier and the donation proof.

        Raises:
            BackendUnavailableError: If initialize() has not succeeded
            ValidationError: If the amount cannot be committed
            ProofGenerationError: If proving fails
        """
        if self._artifacts is None:
            raise BackendUnavailableError("local backend is not initialized")
        try:
            bundle = await trio.to_thread.run_sync(self._prove, donation)
        except ProofGenerationError:
            raise
        except (ValueError, TypeError) as exc:
            raise ProofGenerationError(f"local proving failed: {exc}") from exc
        logger.debug("Generated local proof for event %s", donation.event_id)
        return bundle

    async def verify(
        self, proof: ProofPayload, public_signals: Sequence[str]
    ) -> VerificationResult:
        artifacts = self.artifacts
        signals = tuple(public_signals)
        if not isinstance(proof, LocalProof):
            return VerificationResult.rejected("not a local proof", signals)
        ok = await trio.to_thread.run_sync(verify_donation_proof, proof, signals, artifacts)
        if not ok:
            logger.info("Local proof rejected for event %s", proof.event_id)
            return VerificationResult.rejected("proof verification failed", signals)
        return VerificationResult(
            verified=True,
            level=VerificationLevel.CRYPTOGRAPHIC,
            commitment_hash=signals[0],
            nullifier_hash=signals[1],
        )

    def status(self) -> BackendStatus:
        details = {
            "version": self.backend_version,
            "circuit_dir": str(self.circuit_dir),
        }
        if self._artifacts is not None:
            details["circuit"] = self._artifacts.name
            details["range_bits"] = self._artifacts.range_bits
            details["circuit_digest"] = self._artifacts.digest.hex()
        if self._error:
            details["error"] = self._error
        return BackendStatus(
            name=self.backend_name,
            kind=self.kind,
            available=self._artifacts is not None,
            details=details,
        )

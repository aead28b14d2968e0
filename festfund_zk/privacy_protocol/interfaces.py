"""
Proof backend interface.

Both backend variants (local prover/verifier and remote proof service
client) implement the same async shape, so the donation service never
branches on which one is configured.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from .types import BackendStatus, DonationInput, ProofBundle, ProofPayload, VerificationResult


class ProofBackend(ABC):
    """
    Abstract proof backend.

    Lifecycle: initialize() once at startup, then any number of generate()
    and verify() calls. verify() returns a negative VerificationResult for
    an invalid proof; exceptions are reserved for the backend itself being
    unusable (BackendUnavailableError) or degraded (ServiceDegradedError).
    """

    #: Short identifier stored with every commitment ("local" / "remote")
    kind: str = ""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Human-readable backend name."""

    @abstractmethod
    async def initialize(self) -> None:
        """Load artifacts or probe the remote service."""

    @abstractmethod
    async def generate(self, donation: DonationInput) -> ProofBundle:
        """Derive commitment and nullifier and prove the donation statement."""

    @abstractmethod
    async def verify(
        self, proof: ProofPayload, public_signals: Sequence[str]
    ) -> VerificationResult:
        """Check a proof against its public signals."""

    @abstractmethod
    def status(self) -> BackendStatus:
        """Diagnostic snapshot of the backend."""

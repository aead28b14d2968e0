"""
Remote proof backend: client of a remote proof service.

generate() sends the donation parameters to the service and accepts the
returned envelope only after checking its type tag, network tag, signal
order and, for the digest scheme, recomputing both hashes locally.

verify() is structural unless confirmation is enabled, in which case the
service is asked to confirm the attestation it issued. The result level
tells the two apart; structural results are weaker than local proofs.

Transport failures are retried with exponential backoff and then surface
as ServiceDegradedError. A backend that was unreachable re-probes the
service on the next call. It never falls back to local proving.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import trio

from ...network.proofservice.client import build_request, send_request
from ...network.proofservice.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    OP_COMMIT,
    OP_STATUS,
    OP_VERIFY,
)
from ...network.proofservice.errors import ProtocolError
from ...network.proofservice.messages import ServiceResponse
from ..codec import DigestCodec
from ..config import DEFAULT_REMOTE_NETWORK, REMOTE_PROOF_TYPE, SCHEME_DIGEST
from ..exceptions import (
    BackendUnavailableError,
    ConfigurationError,
    ProofGenerationError,
    ServiceDegradedError,
)
from ..interfaces import ProofBackend
from ..types import (
    BackendStatus,
    DonationInput,
    ProofBundle,
    ProofPayload,
    RemoteAttestation,
    VerificationLevel,
    VerificationResult,
)

logger = logging.getLogger(__name__)

MAX_SIGNAL_CHARS = 130


@dataclass(frozen=True)
class RemoteBackendConfig:
    """
    Attributes:
        host, port: Proof service address
        network: Network tag every envelope must carry
        timeout: Per-attempt deadline in seconds
        max_retries: Extra attempts after the first transport failure
        backoff_base: First backoff delay; doubles per attempt
        confirm: Ask the service to confirm attestations in verify()
        require_confirmation: Treat structural-only results as unverified
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    network: str = DEFAULT_REMOTE_NETWORK
    timeout: float = 5.0
    max_retries: int = 3
    backoff_base: float = 0.1
    confirm: bool = True
    require_confirmation: bool = False

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigurationError("remote proof service host is required")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"invalid remote proof service port: {self.port}")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative")
        if not self.network:
            raise ConfigurationError("network tag is required")


def _nonempty_signal(value: Any) -> bool:
    return isinstance(value, str) and 0 < len(value) <= MAX_SIGNAL_CHARS


class RemoteProofBackend(ProofBackend):
    """
    Proof backend delegating to a remote proof service.

    Example:
        >>> backend = RemoteProofBackend(RemoteBackendConfig(port=7460))
        >>> await backend.initialize()
        >>> backend.status().available
        True
    """

    kind = "remote"

    _BACKEND_NAME = "RemoteProofService"

    def __init__(self, config: Optional[RemoteBackendConfig] = None) -> None:
        self.config = config or RemoteBackendConfig()
        self._codec = DigestCodec()
        self._available = False
        self._error: Optional[str] = "not initialized"
        self._unreachable = False
        self._service_info: Dict[str, Any] = {}

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def available(self) -> bool:
        return self._available

    async def _call(self, op: str, params: Dict[str, Any]) -> ServiceResponse:
        attempts = self.config.max_retries + 1
        last_exc: Optional[BaseException] = None
        for attempt in range(attempts):
            req = build_request(op, params)
            try:
                return await send_request(
                    self.config.host, self.config.port, req, timeout=self.config.timeout
                )
            except ProtocolError as exc:
                raise ServiceDegradedError(f"malformed proof service response: {exc}") from exc
            except (
                OSError,
                trio.TooSlowError,
                trio.BrokenResourceError,
                trio.ClosedResourceError,
            ) as exc:
                last_exc = exc
                logger.warning(
                    "Proof service %s attempt %d/%d failed: %s",
                    op,
                    attempt + 1,
                    attempts,
                    str(exc) or type(exc).__name__,
                )
            if attempt + 1 < attempts:
                await trio.sleep(self.config.backoff_base * (2 ** attempt))

        raise ServiceDegradedError(
            f"proof service {op} failed after {attempts} attempts: "
            f"{str(last_exc) or type(last_exc).__name__}"
        ) from last_exc

    async def initialize(self) -> None:
        """
        Probe the proof service. Failure flags the backend unavailable
        instead of raising; call again to re-probe.
        """
        try:
            resp = await self._call(OP_STATUS, {})
        except ServiceDegradedError as exc:
            self._unreachable = True
            self._mark_unavailable(str(exc))
            return
        self._unreachable = False

        if not resp.ok:
            self._mark_unavailable(f"status rejected: {resp.err}")
            return
        network = resp.body.get("network")
        if network != self.config.network:
            self._mark_unavailable(
                f"service network {network!r} does not match {self.config.network!r}"
            )
            return

        self._service_info = dict(resp.body)
        self._available = True
        self._error = None
        logger.info(
            "Remote proof service ready at %s:%s (%s)",
            self.config.host,
            self.config.port,
            network,
        )

    def _mark_unavailable(self, reason: str) -> None:
        self._available = False
        self._error = reason
        logger.warning("Remote proof backend unavailable: %s", reason)

    async def _ensure_available(self) -> None:
        """
        Re-probe the service if it was unavailable.

        Raises:
            ServiceDegradedError: If the service is still unreachable
            BackendUnavailableError: If it answers but cannot be used
                (rejected status, wrong network)
        """
        if self._available:
            return
        await self.initialize()
        if self._available:
            return
        reason = self._error or "unknown error"
        if self._unreachable:
            raise ServiceDegradedError(f"remote proof service unreachable: {reason}")
        raise BackendUnavailableError(f"remote proof service unavailable: {reason}")

    def _accept_commit(self, body: Dict[str, Any], donation: DonationInput) -> ProofBundle:
        commitment = body.get("commitment")
        nullifier = body.get("nullifier")
        attestation_id = body.get("attestation_id")
        envelope = body.get("proof")

        if not _nonempty_signal(commitment) or not _nonempty_signal(nullifier):
            raise ProofGenerationError("proof service returned an empty commitment or nullifier")
        if not isinstance(attestation_id, str) or not attestation_id:
            raise ProofGenerationError("proof service returned no attestation id")
        if not isinstance(envelope, dict):
            raise ProofGenerationError("proof service returned no proof envelope")
        if envelope.get("type") != REMOTE_PROOF_TYPE:
            raise ProofGenerationError(f"unexpected proof type {envelope.get('type')!r}")
        if envelope.get("network") != self.config.network:
            raise ProofGenerationError(f"unexpected network tag {envelope.get('network')!r}")
        if list(envelope.get("public_signals") or []) != [commitment, nullifier]:
            raise ProofGenerationError("public signals do not match commitment and nullifier")
        attestation = envelope.get("attestation")
        if not isinstance(attestation, bytes) or not attestation:
            raise ProofGenerationError("proof envelope carries no attestation")

        scheme = envelope.get("scheme")
        if scheme == SCHEME_DIGEST:
            expected = self._codec.derive_input(donation)
            if expected.as_signals() != (commitment, nullifier):
                raise ProofGenerationError("proof service commitment does not match its inputs")
        else:
            logger.info("Remote scheme %r cannot be recomputed locally", scheme)

        proof = RemoteAttestation(
            proof_type=REMOTE_PROOF_TYPE,
            network=self.config.network,
            scheme=str(scheme),
            attestation_id=attestation_id,
            attestation=attestation,
            public_signals=(commitment, nullifier),
            issued_at=float(envelope.get("issued_at") or 0.0),
        )
        return ProofBundle(
            backend=self.kind,
            commitment_hash=commitment,
            nullifier_hash=nullifier,
            proof=proof,
            public_signals=(commitment, nullifier),
        )

    async def generate(self, donation: DonationInput) -> ProofBundle:
        """
        Raises:
            ServiceDegradedError: If the service cannot be reached
            BackendUnavailableError: If the service answers but cannot be used
            ProofGenerationError: If the service rejects the request or
                returns an envelope that fails the acceptance checks
        """
        await self._ensure_available()
        resp = await self._call(
            OP_COMMIT,
            {
                "amount": str(donation.amount),
                "secret": donation.secret,
                "event_id": donation.event_id,
                "min_amount": str(donation.min_amount),
            },
        )
        if not resp.ok:
            raise ProofGenerationError(f"proof service rejected commitment: {resp.err}")
        return self._accept_commit(resp.body, donation)

    def _structural_problem(
        self, proof: RemoteAttestation, signals: Sequence[str]
    ) -> Optional[str]:
        if proof.proof_type != REMOTE_PROOF_TYPE:
            return "unexpected proof type"
        if proof.network != self.config.network:
            return "unexpected network tag"
        if len(signals) != 2 or not all(_nonempty_signal(s) for s in signals):
            return "public signals must be [commitment, nullifier]"
        if tuple(signals) != tuple(proof.public_signals):
            return "public signals do not match the envelope"
        if not proof.attestation_id or not proof.attestation:
            return "missing attestation"
        return None

    async def verify(
        self, proof: ProofPayload, public_signals: Sequence[str]
    ) -> VerificationResult:
        """
        Raises:
            ServiceDegradedError: If confirmation is enabled and the service
                cannot be reached; the caller keeps the commitment unverified
        """
        signals = tuple(public_signals)
        if not isinstance(proof, RemoteAttestation):
            return VerificationResult.rejected("not a remote attestation", signals)
        problem = self._structural_problem(proof, signals)
        if problem is not None:
            return VerificationResult.rejected(problem, signals)

        if not self.config.confirm:
            return VerificationResult(
                verified=not self.config.require_confirmation,
                level=VerificationLevel.STRUCTURAL,
                commitment_hash=signals[0],
                nullifier_hash=signals[1],
                reason="structural check only",
            )

        await self._ensure_available()
        resp = await self._call(
            OP_VERIFY,
            {
                "attestation_id": proof.attestation_id,
                "commitment": signals[0],
                "nullifier": signals[1],
                "attestation": proof.attestation,
            },
        )
        if not resp.ok:
            return VerificationResult.rejected(f"proof service error: {resp.err}", signals)
        if resp.body.get("valid") is not True:
            return VerificationResult.rejected("attestation not confirmed by proof service", signals)
        return VerificationResult(
            verified=True,
            level=VerificationLevel.CONFIRMED,
            commitment_hash=signals[0],
            nullifier_hash=signals[1],
        )

    def status(self) -> BackendStatus:
        details: Dict[str, Any] = {
            "host": self.config.host,
            "port": self.config.port,
            "network": self.config.network,
            "confirm": self.config.confirm,
            "require_confirmation": self.config.require_confirmation,
        }
        if self._service_info:
            details["service"] = dict(self._service_info)
        if self._error:
            details["error"] = self._error
        return BackendStatus(
            name=self.backend_name,
            kind=self.kind,
            available=self._available,
            details=details,
        )

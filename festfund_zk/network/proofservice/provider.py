"""
Proof provider for the reference remote proof service.

The provider derives digest-scheme commitments, issues attestations keyed
by the service key, and confirms attestations it has issued. Attestations
live in memory for the lifetime of the service process.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Dict, Protocol, Tuple

from ...privacy_protocol.codec import DigestCodec, validate_donation_input
from ...privacy_protocol.config import (
    DEFAULT_REMOTE_NETWORK,
    DOMAIN_SEPARATORS,
    REMOTE_PROOF_TYPE,
    SCHEME_DIGEST,
)
from ...privacy_protocol.exceptions import ValidationError
from ...privacy_protocol.security import constant_time_compare, keyed_digest
from .constants import OP_COMMIT, OP_STATUS, OP_VERIFY, PROTOCOL_ID
from .errors import SchemaError
from .messages import ServiceRequest, ServiceResponse

logger = logging.getLogger(__name__)


class ProofProvider(Protocol):
    def get_response(self, req: ServiceRequest) -> ServiceResponse:
        ...


@dataclass(frozen=True)
class ProviderConfig:
    service_key: bytes
    network: str = DEFAULT_REMOTE_NETWORK
    max_attestations: int = 100_000

    def __post_init__(self) -> None:
        if not isinstance(self.service_key, bytes) or len(self.service_key) < 16:
            raise ValueError("service_key must be at least 16 bytes")
        if not self.network:
            raise ValueError("network cannot be empty")


def _ok(req: ServiceRequest, body: Dict) -> ServiceResponse:
    return ServiceResponse(msg_v=req.msg_v, ok=True, op=req.op, nonce=req.nonce, body=body)


def _error(req: ServiceRequest, err: str) -> ServiceResponse:
    return ServiceResponse(
        msg_v=req.msg_v, ok=False, op=req.op, nonce=req.nonce, body={}, err=err[:256]
    )


class DigestProofProvider:
    """
    Issues and confirms digest-scheme commitment attestations.

    Example:
        >>> provider = DigestProofProvider(ProviderConfig(service_key=key))
        >>> resp = provider.get_response(build_request("commit", params))
    """

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        self._codec = DigestCodec()
        self._attestations: Dict[str, Tuple[str, str]] = {}
        self._started = time.time()

    @property
    def network(self) -> str:
        return self._config.network

    def _attest(self, attestation_id: str, commitment: str, nullifier: str) -> bytes:
        return keyed_digest(
            self._config.service_key,
            DOMAIN_SEPARATORS["attestation"],
            [
                attestation_id.encode("ascii"),
                commitment.encode("ascii"),
                nullifier.encode("ascii"),
                self._config.network.encode("utf-8"),
            ],
        )

    def _commit(self, req: ServiceRequest) -> ServiceResponse:
        params = req.params
        try:
            donation = validate_donation_input(
                params["amount"], params["secret"], params["event_id"], params["min_amount"]
            )
        except ValidationError as exc:
            return _error(req, f"invalid parameters: {exc}")

        if len(self._attestations) >= self._config.max_attestations:
            return _error(req, "attestation capacity exhausted")

        pair = self._codec.derive_input(donation)
        attestation_id = secrets.token_hex(16)
        attestation = self._attest(attestation_id, pair.commitment_hash, pair.nullifier_hash)
        self._attestations[attestation_id] = pair.as_signals()
        logger.debug("Issued attestation %s", attestation_id)

        return _ok(
            req,
            {
                "commitment": pair.commitment_hash,
                "nullifier": pair.nullifier_hash,
                "attestation_id": attestation_id,
                "proof": {
                    "type": REMOTE_PROOF_TYPE,
                    "network": self._config.network,
                    "scheme": SCHEME_DIGEST,
                    "attestation": attestation,
                    "public_signals": [pair.commitment_hash, pair.nullifier_hash],
                    "issued_at": time.time(),
                },
            },
        )

    def _verify(self, req: ServiceRequest) -> ServiceResponse:
        params = req.params
        attestation_id = params["attestation_id"]
        issued = self._attestations.get(attestation_id)
        valid = False
        if issued is not None and issued == (params["commitment"], params["nullifier"]):
            expected = self._attest(attestation_id, params["commitment"], params["nullifier"])
            valid = constant_time_compare(bytes(params["attestation"]), expected)
        return _ok(req, {"valid": valid, "network": self._config.network})

    def _status(self, req: ServiceRequest) -> ServiceResponse:
        return _ok(
            req,
            {
                "protocol": PROTOCOL_ID,
                "network": self._config.network,
                "scheme": SCHEME_DIGEST,
                "ready": True,
                "attestations": len(self._attestations),
                "uptime": time.time() - self._started,
            },
        )

    def get_response(self, req: ServiceRequest) -> ServiceResponse:
        req.validate()
        if req.op == OP_COMMIT:
            return self._commit(req)
        if req.op == OP_VERIFY:
            return self._verify(req)
        if req.op == OP_STATUS:
            return self._status(req)
        raise SchemaError("unsupported operation")

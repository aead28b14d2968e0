"""Remote proof service protocol: framing, messages, client and reference server."""

from .client import build_request, send_request
from .constants import PROTOCOL_ID
from .errors import ProtocolError, SchemaError, SizeLimitError
from .handler import handle_request_bytes
from .messages import ServiceRequest, ServiceResponse
from .provider import DigestProofProvider, ProofProvider, ProviderConfig
from .server import handle_service_stream, serve_proof_service

__all__ = [
    "PROTOCOL_ID",
    "ProtocolError",
    "SchemaError",
    "SizeLimitError",
    "ServiceRequest",
    "ServiceResponse",
    "ProofProvider",
    "ProviderConfig",
    "DigestProofProvider",
    "build_request",
    "handle_request_bytes",
    "handle_service_stream",
    "send_request",
    "serve_proof_service",
]

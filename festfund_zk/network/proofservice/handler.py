"""Pure request/response handler for the proof service."""

from __future__ import annotations

import logging
import secrets

import cbor2

from .constants import MSG_V, NONCE_MIN_BYTES, OP_STATUS, OPERATIONS
from .errors import ProtocolError, SchemaError, SizeLimitError
from .messages import ServiceResponse, decode_request, encode_response
from .provider import ProofProvider

logger = logging.getLogger(__name__)


def _salvage_header(request_blob: bytes):
    """Best-effort op and nonce of an invalid request, for the error reply."""
    op, nonce = OP_STATUS, secrets.token_bytes(NONCE_MIN_BYTES)
    try:
        payload = cbor2.loads(bytes(request_blob))
    except Exception:
        return op, nonce
    if isinstance(payload, dict):
        if payload.get("op") in OPERATIONS:
            op = payload["op"]
        candidate = payload.get("nonce")
        if isinstance(candidate, bytes) and NONCE_MIN_BYTES <= len(candidate) <= 64:
            nonce = candidate
    return op, nonce


def error_response(err: str, op: str = OP_STATUS, nonce: bytes = b"") -> ServiceResponse:
    return ServiceResponse(
        msg_v=MSG_V,
        ok=False,
        op=op,
        nonce=nonce or secrets.token_bytes(NONCE_MIN_BYTES),
        body={},
        err=err[:256],
    )


def handle_request_bytes(request_blob: bytes, provider: ProofProvider) -> bytes:
    try:
        req = decode_request(request_blob)
    except (SchemaError, SizeLimitError) as exc:
        op, nonce = _salvage_header(request_blob)
        return encode_response(error_response(f"bad request: {exc}", op, nonce))

    try:
        response = provider.get_response(req)
    except ProtocolError as exc:
        response = error_response(f"bad request: {exc}", req.op, req.nonce)
    except Exception:
        logger.exception("Proof provider failed on %s", req.op)
        response = error_response("provider error", req.op, req.nonce)

    try:
        return encode_response(response)
    except SizeLimitError:
        return encode_response(error_response("response too large", req.op, req.nonce))

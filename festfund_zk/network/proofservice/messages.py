"""CBOR message schemas for the remote proof service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import cbor2

from .constants import (
    MAX_ATTESTATION_BYTES,
    MAX_ERR_CHARS,
    MAX_PARAM_STR_BYTES,
    MSG_V,
    NONCE_MAX_BYTES,
    NONCE_MIN_BYTES,
    OP_COMMIT,
    OP_VERIFY,
    is_valid_operation,
)
from .errors import SchemaError, SizeLimitError
from .limits import MAX_FRAME_BYTES

REQUEST_MAX_BYTES = 8192
RESPONSE_MAX_BYTES = MAX_FRAME_BYTES

# Required string parameters per operation
_STR_PARAMS: Dict[str, Tuple[str, ...]] = {
    OP_COMMIT: ("amount", "secret", "event_id", "min_amount"),
    OP_VERIFY: ("attestation_id", "commitment", "nullifier"),
}
_BYTES_PARAMS: Dict[str, Tuple[str, ...]] = {
    OP_VERIFY: ("attestation",),
}


def _require_bytes(value: Any, field_name: str) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise SchemaError(f"{field_name} must be bytes")
    return bytes(value)


def _validate_nonce(nonce: Any) -> None:
    if not isinstance(nonce, (bytes, bytearray)):
        raise SchemaError("nonce must be bytes")
    if not NONCE_MIN_BYTES <= len(nonce) <= NONCE_MAX_BYTES:
        raise SchemaError("nonce length out of bounds")


def _validate_params(op: str, params: Any) -> None:
    if not isinstance(params, dict):
        raise SchemaError("params must be a map")
    for name in _STR_PARAMS.get(op, ()):
        value = params.get(name)
        if not isinstance(value, str) or not value:
            raise SchemaError(f"{name} must be a non-empty string")
        if len(value.encode("utf-8")) > MAX_PARAM_STR_BYTES:
            raise SizeLimitError(f"{name} too large")
    for name in _BYTES_PARAMS.get(op, ()):
        value = params.get(name)
        if not isinstance(value, (bytes, bytearray)) or not value:
            raise SchemaError(f"{name} must be non-empty bytes")
        if len(value) > MAX_ATTESTATION_BYTES:
            raise SizeLimitError(f"{name} too large")


@dataclass(frozen=True)
class ServiceRequest:
    msg_v: int
    op: str
    nonce: bytes
    params: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        if self.msg_v != MSG_V:
            raise SchemaError("unsupported msg_v")
        if not is_valid_operation(self.op):
            raise SchemaError("unsupported operation")
        _validate_nonce(self.nonce)
        _validate_params(self.op, self.params)

    def __repr__(self) -> str:
        # commit params carry the donor secret
        return f"ServiceRequest(msg_v={self.msg_v}, op={self.op!r}, nonce={self.nonce.hex()})"


@dataclass(frozen=True)
class ServiceResponse:
    msg_v: int
    ok: bool
    op: str
    nonce: bytes
    body: Dict[str, Any] = field(default_factory=dict)
    err: Optional[str] = None

    def validate(self) -> None:
        if self.msg_v != MSG_V:
            raise SchemaError("unsupported msg_v")
        if not is_valid_operation(self.op):
            raise SchemaError("unsupported operation")
        _validate_nonce(self.nonce)
        if not isinstance(self.body, dict):
            raise SchemaError("body must be a map")
        if self.ok:
            if self.err not in (None, ""):
                raise SchemaError("err must be empty when ok=True")
        else:
            if not isinstance(self.err, str) or not self.err:
                raise SchemaError("err required when ok=False")
            if len(self.err) > MAX_ERR_CHARS:
                raise SchemaError("err too long")


def encode_request(req: ServiceRequest) -> bytes:
    req.validate()
    payload = {
        "msg_v": req.msg_v,
        "op": req.op,
        "nonce": bytes(req.nonce),
        "params": req.params,
    }
    blob = cbor2.dumps(payload)
    if len(blob) > REQUEST_MAX_BYTES:
        raise SizeLimitError("request too large")
    return blob


def _load_map(blob: Any, what: str, max_bytes: int) -> Dict[str, Any]:
    if not isinstance(blob, (bytes, bytearray)):
        raise SchemaError(f"{what} blob must be bytes")
    if len(blob) > max_bytes:
        raise SizeLimitError(f"{what} too large")
    try:
        payload = cbor2.loads(bytes(blob))
    except Exception as exc:
        raise SchemaError(f"{what} is not valid CBOR") from exc
    if not isinstance(payload, dict):
        raise SchemaError(f"{what} payload must be a map")
    return payload


def decode_request(blob: bytes) -> ServiceRequest:
    payload = _load_map(blob, "request", REQUEST_MAX_BYTES)
    req = ServiceRequest(
        msg_v=payload.get("msg_v", -1),
        op=payload.get("op", ""),
        nonce=_require_bytes(payload.get("nonce", b""), "nonce"),
        params=payload.get("params", {}),
    )
    req.validate()
    return req


def encode_response(resp: ServiceResponse) -> bytes:
    resp.validate()
    payload = {
        "msg_v": resp.msg_v,
        "ok": resp.ok,
        "op": resp.op,
        "nonce": bytes(resp.nonce),
        "body": resp.body,
        "err": resp.err,
    }
    blob = cbor2.dumps(payload)
    if len(blob) > RESPONSE_MAX_BYTES:
        raise SizeLimitError("response too large")
    return blob


def decode_response(blob: bytes) -> ServiceResponse:
    payload = _load_map(blob, "response", RESPONSE_MAX_BYTES)
    ok = payload.get("ok")
    if not isinstance(ok, bool):
        raise SchemaError("ok must be a bool")
    resp = ServiceResponse(
        msg_v=payload.get("msg_v", -1),
        ok=ok,
        op=payload.get("op", ""),
        nonce=_require_bytes(payload.get("nonce", b""), "nonce"),
        body=payload.get("body", {}),
        err=payload.get("err"),
    )
    resp.validate()
    return resp

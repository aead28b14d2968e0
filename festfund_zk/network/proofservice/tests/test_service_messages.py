"""Unit tests for proof service message schemas."""

from __future__ import annotations

import cbor2
import pytest

from festfund_zk.network.proofservice.client import build_request
from festfund_zk.network.proofservice.constants import MSG_V
from festfund_zk.network.proofservice.errors import SchemaError, SizeLimitError
from festfund_zk.network.proofservice.messages import (
    ServiceRequest,
    ServiceResponse,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)

COMMIT_PARAMS = {"amount": "100", "secret": "s1", "event_id": "E", "min_amount": "0"}


def test_commit_request_roundtrip() -> None:
    req = build_request("commit", COMMIT_PARAMS)
    decoded = decode_request(encode_request(req))
    assert decoded == req


def test_request_repr_hides_params() -> None:
    req = build_request("commit", COMMIT_PARAMS)
    assert "s1" not in repr(req)


def test_unknown_operation_rejected() -> None:
    req = ServiceRequest(msg_v=MSG_V, op="prove", nonce=b"n" * 16)
    with pytest.raises(SchemaError, match="operation"):
        encode_request(req)


def test_wrong_version_rejected() -> None:
    blob = cbor2.dumps({"msg_v": 2, "op": "status", "nonce": b"n" * 16, "params": {}})
    with pytest.raises(SchemaError, match="msg_v"):
        decode_request(blob)


@pytest.mark.parametrize("nonce", [b"short", b"n" * 65, "text-nonce-16byte"])
def test_bad_nonce_rejected(nonce) -> None:
    blob = cbor2.dumps({"msg_v": MSG_V, "op": "status", "nonce": nonce, "params": {}})
    with pytest.raises(SchemaError):
        decode_request(blob)


@pytest.mark.parametrize("missing", sorted(COMMIT_PARAMS))
def test_commit_requires_all_params(missing: str) -> None:
    params = dict(COMMIT_PARAMS)
    del params[missing]
    with pytest.raises(SchemaError, match=missing):
        encode_request(build_request("commit", params))


def test_commit_params_must_be_strings() -> None:
    params = dict(COMMIT_PARAMS, amount=100)
    with pytest.raises(SchemaError):
        encode_request(build_request("commit", params))


def test_oversized_param_rejected() -> None:
    params = dict(COMMIT_PARAMS, secret="x" * 2000)
    with pytest.raises(SizeLimitError):
        encode_request(build_request("commit", params))


def test_verify_attestation_must_be_bytes() -> None:
    params = {
        "attestation_id": "id",
        "commitment": "c",
        "nullifier": "n",
        "attestation": "not-bytes",
    }
    with pytest.raises(SchemaError, match="attestation"):
        encode_request(build_request("verify", params))


def test_request_blob_size_limit() -> None:
    with pytest.raises(SizeLimitError):
        decode_request(b"\x00" * 9000)


def test_non_cbor_request() -> None:
    with pytest.raises(SchemaError, match="CBOR"):
        decode_request(b"\xff\xff\xff")


def test_error_response_requires_err() -> None:
    resp = ServiceResponse(msg_v=MSG_V, ok=False, op="status", nonce=b"n" * 16)
    with pytest.raises(SchemaError, match="err required"):
        encode_response(resp)


def test_ok_response_must_not_carry_err() -> None:
    resp = ServiceResponse(msg_v=MSG_V, ok=True, op="status", nonce=b"n" * 16, err="boom")
    with pytest.raises(SchemaError):
        encode_response(resp)


def test_response_ok_must_be_bool() -> None:
    blob = cbor2.dumps({"msg_v": MSG_V, "ok": 1, "op": "status", "nonce": b"n" * 16, "body": {}})
    with pytest.raises(SchemaError, match="ok"):
        decode_response(blob)


def test_response_roundtrip() -> None:
    resp = ServiceResponse(
        msg_v=MSG_V, ok=True, op="status", nonce=b"n" * 16, body={"network": "festfund-testnet"}
    )
    assert decode_response(encode_response(resp)) == resp

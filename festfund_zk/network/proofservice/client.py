"""Client utilities for the remote proof service."""

from __future__ import annotations

import secrets
from typing import Any, Dict, Optional

import trio

from .constants import MSG_V, NONCE_MIN_BYTES
from .errors import SchemaError
from .limits import READ_TIMEOUT, exchange_frames
from .messages import ServiceRequest, ServiceResponse, decode_response, encode_request

CONNECT_TIMEOUT = 5.0


def build_request(op: str, params: Optional[Dict[str, Any]] = None) -> ServiceRequest:
    return ServiceRequest(
        msg_v=MSG_V,
        op=op,
        nonce=secrets.token_bytes(NONCE_MIN_BYTES),
        params=dict(params or {}),
    )


async def send_request(
    host: str, port: int, req: ServiceRequest, *, timeout: float | None = None
) -> ServiceResponse:
    """
    Send one request over a fresh TCP connection and return the response.

    Raises:
        OSError: If the connection cannot be established
        trio.TooSlowError: If connecting or a frame exceeds the deadline
        ProtocolError: If the response is malformed or does not match
    """
    frame_timeout = READ_TIMEOUT if timeout is None else timeout
    request_blob = encode_request(req)
    with trio.fail_after(CONNECT_TIMEOUT if timeout is None else timeout):
        stream = await trio.open_tcp_stream(host, port)
    async with stream:
        response_blob = await exchange_frames(stream, request_blob, timeout=frame_timeout)
    resp = decode_response(response_blob)
    if resp.op != req.op:
        raise SchemaError("response operation does not match request")
    if resp.nonce != req.nonce:
        raise SchemaError("response nonce does not match request")
    return resp

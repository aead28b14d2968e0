"""
Length-prefixed framing over trio byte streams.

Each frame is a 4-byte big-endian length followed by a CBOR payload.
Reads and writes are bounded by size limits and per-frame deadlines.
"""

from __future__ import annotations

import struct
from typing import Any, Optional

import trio

from .errors import SchemaError, SizeLimitError

FRAME_HEADER = struct.Struct(">I")
MAX_FRAME_BYTES = 65536
READ_TIMEOUT = 5.0
WRITE_TIMEOUT = 5.0


async def _receive_exactly(stream: Any, size: int) -> bytes:
    buffer = bytearray()
    while len(buffer) < size:
        chunk = await stream.receive_some(size - len(buffer))
        if not chunk:
            raise SchemaError(
                f"stream closed after {len(buffer)} of {size} bytes"
            )
        buffer.extend(chunk)
    return bytes(buffer)


async def read_frame(
    stream: Any, max_bytes: int = MAX_FRAME_BYTES, timeout: float = READ_TIMEOUT
) -> bytes:
    """
    Read one frame.

    Raises:
        SchemaError: On EOF inside a frame
        SizeLimitError: If the announced length exceeds max_bytes
        trio.TooSlowError: If the frame does not arrive within timeout
    """
    with trio.fail_after(timeout):
        (length,) = FRAME_HEADER.unpack(
            await _receive_exactly(stream, FRAME_HEADER.size)
        )
        if length > max_bytes:
            raise SizeLimitError(f"frame of {length} bytes exceeds {max_bytes}")
        return await _receive_exactly(stream, length)


async def write_frame(
    stream: Any,
    payload: bytes,
    max_bytes: int = MAX_FRAME_BYTES,
    timeout: float = WRITE_TIMEOUT,
) -> None:
    if len(payload) > max_bytes:
        raise SizeLimitError(f"frame of {len(payload)} bytes exceeds {max_bytes}")
    with trio.fail_after(timeout):
        await stream.send_all(FRAME_HEADER.pack(len(payload)) + payload)


async def exchange_frames(
    stream: Any, payload: bytes, timeout: Optional[float] = None
) -> bytes:
    """Write one request frame and read the matching response frame."""
    await write_frame(stream, payload, timeout=WRITE_TIMEOUT if timeout is None else timeout)
    return await read_frame(stream, timeout=READ_TIMEOUT if timeout is None else timeout)

"""TCP server for the reference remote proof service."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any

import trio

from .constants import DEFAULT_HOST, DEFAULT_PORT
from .errors import ProtocolError
from .handler import error_response, handle_request_bytes
from .limits import read_frame, write_frame
from .messages import encode_response
from .provider import ProofProvider

logger = logging.getLogger(__name__)

TOTAL_TIMEOUT = 30.0


async def handle_service_stream(stream: Any, provider: ProofProvider) -> None:
    """Serve one request on an accepted stream, then close it."""
    async with stream:
        try:
            with trio.fail_after(TOTAL_TIMEOUT):
                request_blob = await read_frame(stream)
                response_blob = handle_request_bytes(request_blob, provider)
                await write_frame(stream, response_blob)
        except (ProtocolError, trio.TooSlowError) as exc:
            logger.info("Rejected proof service request: %s", str(exc) or type(exc).__name__)
            try:
                await write_frame(stream, encode_response(error_response(f"protocol error: {exc}")))
            except (trio.BrokenResourceError, trio.ClosedResourceError, trio.TooSlowError):
                logger.debug("Client went away before the error reply")
        except (trio.BrokenResourceError, trio.ClosedResourceError) as exc:
            logger.debug("Client connection dropped: %s", exc)


async def serve_proof_service(
    provider: ProofProvider,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    *,
    task_status=trio.TASK_STATUS_IGNORED,
) -> None:
    """
    Serve the proof service until cancelled.

    Use port 0 for an ephemeral port; with nursery.start() the listeners are
    returned so callers can read the bound address.
    """
    handler = partial(handle_service_stream, provider=provider)
    logger.info("Proof service listening on %s:%s", host, port)
    await trio.serve_tcp(handler, port, host=host, task_status=task_status)

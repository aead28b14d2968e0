"""Protocol constants for the remote proof service."""

from __future__ import annotations

PROTOCOL_ID = "/festfund-proof/1.0.0"
MSG_V = 1

OP_COMMIT = "commit"
OP_VERIFY = "verify"
OP_STATUS = "status"
OPERATIONS = frozenset({OP_COMMIT, OP_VERIFY, OP_STATUS})

NONCE_MIN_BYTES = 16
NONCE_MAX_BYTES = 64

MAX_PARAM_STR_BYTES = 1024
MAX_ATTESTATION_BYTES = 64
MAX_ERR_CHARS = 256

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7460


def is_valid_operation(op: str) -> bool:
    return op in OPERATIONS

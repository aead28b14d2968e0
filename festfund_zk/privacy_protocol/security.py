"""
Security utilities for cryptographic operations.

Randomness, length-prefixed hashing, hash-to-scalar and hash-to-curve
helpers shared by the commitment codec and the proof backends.
"""

import os
import secrets
import hashlib
import hmac
from typing import Iterable

from .config import CURVE_NAME, GROUP_ORDER, HASH_FUNCTION


# ============================================================================
# GROUP ORDER VALIDATION (Run at module import)
# ============================================================================


def _validate_group_order():
    """
    Validate GROUP_ORDER is reasonable.

    Raises:
        ValueError: If GROUP_ORDER is invalid
    """
    if GROUP_ORDER < 2**128:
        raise ValueError(f"GROUP_ORDER too small (< 2^128): {GROUP_ORDER}")

    secp256k1_order = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
    if CURVE_NAME == "secp256k1" and GROUP_ORDER != secp256k1_order:
        raise ValueError(
            f"GROUP_ORDER mismatch for secp256k1: "
            f"expected {hex(secp256k1_order)}, got {hex(GROUP_ORDER)}"
        )


_validate_group_order()


# ============================================================================
# RANDOMNESS SOURCE (Fork-Safe)
# ============================================================================


class RandomnessSource:
    """
    Cryptographically secure randomness with fork detection.

    Example:
        >>> rng = RandomnessSource()
        >>> scalar = rng.get_nonzero_scalar()
    """

    def __init__(self):
        self._pid = os.getpid()
        self._rng = secrets.SystemRandom()

    def _check_fork(self) -> None:
        if os.getpid() != self._pid:
            self.__init__()

    def get_random_scalar(self, max_value: int) -> int:
        """Random scalar in [0, max_value)."""
        self._check_fork()
        return self._rng.randrange(0, max_value)

    def get_random_bytes(self, n: int) -> bytes:
        self._check_fork()
        return secrets.token_bytes(n)

    def get_random_scalar_mod_order(self) -> int:
        return self.get_random_scalar(GROUP_ORDER)

    def get_nonzero_scalar(self) -> int:
        """Random scalar in [1, GROUP_ORDER). Used for proof nonces."""
        value = self.get_random_scalar_mod_order()
        while value == 0:
            value = self.get_random_scalar_mod_order()
        return value


# ============================================================================
# HASH FUNCTIONS
# ============================================================================


def _new_hash():
    if HASH_FUNCTION == "SHA3-256":
        return hashlib.sha3_256()
    return hashlib.sha256()


def encode_length_prefixed(parts: Iterable[bytes]) -> bytes:
    """Concatenate parts as len(part) || part with 4-byte big-endian lengths."""
    out = bytearray()
    for part in parts:
        if not isinstance(part, (bytes, bytearray)):
            raise TypeError(f"transcript parts must be bytes, got {type(part)}")
        out.extend(len(part).to_bytes(4, "big"))
        out.extend(part)
    return bytes(out)


def hash_transcript(domain_sep: bytes, parts: Iterable[bytes]) -> bytes:
    """
    Hash a domain-separated, length-prefixed transcript.

    Args:
        domain_sep: Domain separator (must be non-empty)
        parts: Transcript items, each bytes

    Returns:
        32-byte digest
    """
    if not isinstance(domain_sep, bytes) or not domain_sep:
        raise ValueError("Domain separator cannot be empty")
    h = _new_hash()
    h.update(encode_length_prefixed([domain_sep]))
    h.update(encode_length_prefixed(parts))
    return h.digest()


def hash_to_scalar(data: bytes, domain_sep: bytes, max_value: int = GROUP_ORDER) -> int:
    """
    Hash data to scalar in [0, max_value) with domain separation.

    Raises:
        TypeError: If data is not bytes
        ValueError: If data is empty or max_value <= 1

    Security Note:
        Modulo reduction introduces a negligible bias for max_value close
        to 2^256.
    """
    if not isinstance(data, bytes):
        raise TypeError(f"data must be bytes, got {type(data)}")
    if not data:
        raise ValueError("Data cannot be empty")
    if max_value <= 1:
        raise ValueError(f"max_value must be > 1, got {max_value}")

    digest = hash_transcript(domain_sep, [data])
    return int.from_bytes(digest, "big") % max_value


def fiat_shamir_challenge(domain_sep: bytes, parts: Iterable[bytes]) -> int:
    """Deterministic challenge scalar in [0, GROUP_ORDER) over a transcript."""
    digest = hash_transcript(domain_sep, parts)
    return int.from_bytes(digest, "big") % GROUP_ORDER


def to_hex_digest(digest: bytes) -> str:
    return "0x" + digest.hex()


# ============================================================================
# HASH-TO-CURVE (via petlib)
# ============================================================================


def hash_to_curve(seed: bytes, domain_separator: bytes, group):
    """
    Hash seed to a secp256k1 point using petlib's hash_to_point.

    petlib uses try-and-increment (not RFC 9380). The discrete log of the
    result with respect to G is unknown, which is all the commitment
    binding property needs.

    Returns:
        EcPt on the given group
    """
    if not seed:
        raise ValueError("seed cannot be empty")
    return group.hash_to_point(domain_separator + b"||" + seed)


# ============================================================================
# CONSTANT-TIME OPERATIONS
# ============================================================================


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Constant-time comparison via hmac.compare_digest."""
    return hmac.compare_digest(a, b)


def keyed_digest(key: bytes, domain_sep: bytes, parts: Iterable[bytes]) -> bytes:
    """HMAC-SHA256 over a domain-separated, length-prefixed transcript."""
    if not key:
        raise ValueError("key cannot be empty")
    message = encode_length_prefixed([domain_sep]) + encode_length_prefixed(parts)
    return hmac.new(key, message, hashlib.sha256).digest()

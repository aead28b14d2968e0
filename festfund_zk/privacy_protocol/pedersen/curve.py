"""
secp256k1 group helpers for donation commitments.

Generators:
    G   - standard secp256k1 generator
    H_e - blinding generator of event e: hash_to_point(h_seed || e)
    N_e - nullifier generator of event e: hash_to_point(n_seed || e)

Per-event generators keep commitments and nullifiers of different
campaigns unrelated; the seeds come from the circuit verification key.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

from petlib.bn import Bn
from petlib.ec import EcGroup, EcPt

from ..config import CURVE_NID, DOMAIN_SEPARATORS, GROUP_ORDER, POINT_SIZE_BYTES, SCALAR_SIZE_BYTES
from ..exceptions import CryptographicError
from ..security import hash_to_curve


@dataclass(frozen=True)
class CurveParameters:
    """
    Attributes:
        group: EcGroup for secp256k1
        G: Standard generator
        order: Group order as int
    """

    group: Any
    G: Any
    order: int


@lru_cache(maxsize=1)
def get_curve() -> CurveParameters:
    group = EcGroup(CURVE_NID)
    order = int(group.order())
    if order != GROUP_ORDER:
        raise CryptographicError(
            f"Group order mismatch: expected {GROUP_ORDER}, got {order}"
        )
    return CurveParameters(group=group, G=group.generator(), order=order)


def to_bn(value: Union[Bn, int]) -> Bn:
    if isinstance(value, Bn):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Bn.from_decimal(str(value))
    raise TypeError(f"Expected Bn or int, got {type(value)}")


def scalar_to_bytes(value: int) -> bytes:
    return (value % GROUP_ORDER).to_bytes(SCALAR_SIZE_BYTES, "big")


def scalar_from_bytes(data: bytes) -> int:
    if not isinstance(data, (bytes, bytearray)) or len(data) != SCALAR_SIZE_BYTES:
        raise CryptographicError("scalar must be 32 bytes")
    value = int.from_bytes(data, "big")
    if value >= GROUP_ORDER:
        raise CryptographicError("scalar out of range")
    return value


def mul(scalar: int, point: Any) -> Any:
    """scalar * point with the scalar reduced mod the group order."""
    return to_bn(scalar % GROUP_ORDER) * point


def sub(a: Any, b: Any) -> Any:
    """a - b, computed as a + (q - 1) * b."""
    return a + mul(GROUP_ORDER - 1, b)


def load_point(data: bytes) -> Any:
    """
    Decode a compressed point and check it lies on the curve.

    Raises:
        CryptographicError: If the encoding is invalid
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != POINT_SIZE_BYTES:
        raise CryptographicError("point must be 33 bytes")
    group = get_curve().group
    try:
        point = EcPt.from_binary(bytes(data), group)
    except Exception as e:
        raise CryptographicError(f"invalid point encoding: {e}")
    if not group.check_point(point):
        raise CryptographicError("point not on curve")
    return point


@lru_cache(maxsize=256)
def blinding_generator(h_seed: bytes, event_id: str) -> Any:
    group = get_curve().group
    return hash_to_curve(
        h_seed + event_id.encode("utf-8"),
        DOMAIN_SEPARATORS["blinding_generator"],
        group,
    )


@lru_cache(maxsize=256)
def nullifier_generator(n_seed: bytes, event_id: str) -> Any:
    group = get_curve().group
    return hash_to_curve(
        n_seed + event_id.encode("utf-8"),
        DOMAIN_SEPARATORS["nullifier_generator"],
        group,
    )

"""
Donation circuit artifacts: description, proving key, verification key.

Layout of a circuit directory:
    donation_commitment.circuit  CBOR circuit description
    proving_key.bin              CBOR key used by the prover
    verification_key.bin         CBOR key used by the verifier

The scheme has a transparent setup: both keys carry the generator seeds
and the digest of the circuit description, and no trapdoor exists.
setup_circuit() produces a fresh directory; load_circuit() validates one.
Every loading failure is a CircuitArtifactError, which the local backend
treats as fatal.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

import cbor2

from ..config import (
    CIRCUIT_FILENAME,
    CIRCUIT_NAME,
    CIRCUIT_VERSION,
    CURVE_NAME,
    DEFAULT_RANGE_BITS,
    DOMAIN_SEPARATOR_PREFIX,
    DOMAIN_SEPARATORS,
    GENERATOR_SEED_BYTES,
    MAX_RANGE_BITS,
    MIN_RANGE_BITS,
    PROVING_KEY_FILENAME,
    PUBLIC_SIGNALS,
    VERIFICATION_KEY_FILENAME,
)
from ..exceptions import CircuitArtifactError
from ..security import RandomnessSource, constant_time_compare, hash_transcript
from .curve import get_curve

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class CircuitArtifacts:
    """Validated circuit parameters shared by prover and verifier."""

    directory: Path
    description: Dict[str, Any]
    digest: bytes
    range_bits: int
    h_seed: bytes
    n_seed: bytes

    @property
    def name(self) -> str:
        return str(self.description["name"])


def circuit_description(range_bits: int) -> Dict[str, Any]:
    return {
        "name": CIRCUIT_NAME,
        "v": CIRCUIT_VERSION,
        "curve": CURVE_NAME,
        "range_bits": range_bits,
        "public_signals": list(PUBLIC_SIGNALS),
        "domain": DOMAIN_SEPARATOR_PREFIX.decode("ascii"),
    }


def compute_circuit_digest(description: Dict[str, Any]) -> bytes:
    encoded = cbor2.dumps(description, canonical=True)
    return hash_transcript(DOMAIN_SEPARATORS["circuit_digest"], [encoded])


def _validate_range_bits(range_bits: Any) -> int:
    if not isinstance(range_bits, int) or isinstance(range_bits, bool):
        raise CircuitArtifactError("range_bits must be an integer")
    if not MIN_RANGE_BITS <= range_bits <= MAX_RANGE_BITS:
        raise CircuitArtifactError(
            f"range_bits must be in [{MIN_RANGE_BITS}, {MAX_RANGE_BITS}], got {range_bits}"
        )
    return range_bits


def setup_circuit(
    output_dir: PathLike,
    range_bits: int = DEFAULT_RANGE_BITS,
    *,
    overwrite: bool = False,
) -> CircuitArtifacts:
    """
    Generate circuit description and keys into output_dir.

    Args:
        output_dir: Target directory (created if missing)
        range_bits: Bit width of amount - minAmount
        overwrite: Replace existing artifacts

    Returns:
        The freshly loaded CircuitArtifacts

    Raises:
        CircuitArtifactError: If artifacts exist and overwrite is False
    """
    _validate_range_bits(range_bits)
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)

    targets = [
        directory / CIRCUIT_FILENAME,
        directory / PROVING_KEY_FILENAME,
        directory / VERIFICATION_KEY_FILENAME,
    ]
    if not overwrite and any(path.exists() for path in targets):
        raise CircuitArtifactError(f"circuit artifacts already exist in {directory}")

    rng = RandomnessSource()
    description = circuit_description(range_bits)
    digest = compute_circuit_digest(description)
    key = {
        "v": CIRCUIT_VERSION,
        "circuit_digest": digest,
        "g": get_curve().G.export(),
        "h_seed": rng.get_random_bytes(GENERATOR_SEED_BYTES),
        "n_seed": rng.get_random_bytes(GENERATOR_SEED_BYTES),
    }

    targets[0].write_bytes(cbor2.dumps(description, canonical=True))
    targets[1].write_bytes(cbor2.dumps(dict(key, role="proving"), canonical=True))
    targets[2].write_bytes(cbor2.dumps(dict(key, role="verification"), canonical=True))
    logger.info("Wrote %s circuit (%d-bit range) to %s", CIRCUIT_NAME, range_bits, directory)

    return load_circuit(directory)


def _read_cbor_map(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise CircuitArtifactError(f"missing circuit artifact: {path}")
    try:
        data = cbor2.loads(path.read_bytes())
    except Exception as exc:
        raise CircuitArtifactError(f"malformed circuit artifact {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise CircuitArtifactError(f"circuit artifact {path} must be a map")
    return data


def _read_key(path: Path, role: str, digest: bytes) -> Dict[str, Any]:
    key = _read_cbor_map(path)
    if key.get("role") != role:
        raise CircuitArtifactError(f"{path.name} is not a {role} key")
    if key.get("v") != CIRCUIT_VERSION:
        raise CircuitArtifactError(f"unsupported key version in {path.name}")
    key_digest = key.get("circuit_digest")
    if not isinstance(key_digest, bytes) or not constant_time_compare(key_digest, digest):
        raise CircuitArtifactError(f"{path.name} does not match the circuit description")
    if key.get("g") != get_curve().G.export():
        raise CircuitArtifactError(f"{path.name} uses an unexpected base generator")
    for seed_name in ("h_seed", "n_seed"):
        seed = key.get(seed_name)
        if not isinstance(seed, bytes) or len(seed) != GENERATOR_SEED_BYTES:
            raise CircuitArtifactError(f"{path.name} has an invalid {seed_name}")
    return key


def load_circuit(directory: PathLike) -> CircuitArtifacts:
    """
    Load and cross-check circuit artifacts.

    Raises:
        CircuitArtifactError: On any missing, malformed or mismatched file
    """
    base = Path(directory)
    if not base.is_dir():
        raise CircuitArtifactError(f"circuit directory not found: {base}")

    description = _read_cbor_map(base / CIRCUIT_FILENAME)
    if description.get("name") != CIRCUIT_NAME:
        raise CircuitArtifactError(f"unexpected circuit name {description.get('name')!r}")
    if description.get("v") != CIRCUIT_VERSION:
        raise CircuitArtifactError(f"unsupported circuit version {description.get('v')!r}")
    if description.get("curve") != CURVE_NAME:
        raise CircuitArtifactError(f"unsupported curve {description.get('curve')!r}")
    if description.get("public_signals") != list(PUBLIC_SIGNALS):
        raise CircuitArtifactError("unexpected public signal layout")
    range_bits = _validate_range_bits(description.get("range_bits"))
    digest = compute_circuit_digest(description)

    proving_key = _read_key(base / PROVING_KEY_FILENAME, "proving", digest)
    verification_key = _read_key(base / VERIFICATION_KEY_FILENAME, "verification", digest)
    for seed_name in ("h_seed", "n_seed"):
        if proving_key[seed_name] != verification_key[seed_name]:
            raise CircuitArtifactError(f"proving and verification keys disagree on {seed_name}")

    return CircuitArtifacts(
        directory=base,
        description=description,
        digest=digest,
        range_bits=range_bits,
        h_seed=verification_key["h_seed"],
        n_seed=verification_key["n_seed"],
    )

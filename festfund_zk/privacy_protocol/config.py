"""
Cryptographic configuration for donation commitments.

Protocol constants shared by the commitment codec, the local
Pedersen range-proof circuit and the remote proof service client.
"""

# ============================================================================
# CURVE SELECTION
# ============================================================================

# secp256k1 via petlib: prime order group, cofactor 1
CURVE_NAME = "secp256k1"
CURVE_LIBRARY = "petlib"
CURVE_NID = 714

GROUP_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
GROUP_ORDER_BITS = 256
COFACTOR = 1
POINT_SIZE_BYTES = 33  # Compressed point format
SCALAR_SIZE_BYTES = 32

# ============================================================================
# HASH FUNCTIONS
# ============================================================================

HASH_FUNCTION = "SHA3-256"

DOMAIN_SEPARATOR_PREFIX = b"FESTFUND_ZK_V1_"

DOMAIN_SEPARATORS = {
    "secret_scalar": DOMAIN_SEPARATOR_PREFIX + b"SECRET",
    "commitment_hash": DOMAIN_SEPARATOR_PREFIX + b"COMMITMENT",
    "nullifier_hash": DOMAIN_SEPARATOR_PREFIX + b"NULLIFIER",
    "blinding_generator": DOMAIN_SEPARATOR_PREFIX + b"GEN_H",
    "nullifier_generator": DOMAIN_SEPARATOR_PREFIX + b"GEN_N",
    "range_proof": DOMAIN_SEPARATOR_PREFIX + b"RANGE",
    "circuit_digest": DOMAIN_SEPARATOR_PREFIX + b"CIRCUIT",
    "digest_commitment": DOMAIN_SEPARATOR_PREFIX + b"DIGEST_COMMITMENT",
    "digest_nullifier": DOMAIN_SEPARATOR_PREFIX + b"DIGEST_NULLIFIER",
    "attestation": DOMAIN_SEPARATOR_PREFIX + b"ATTESTATION",
}

# ============================================================================
# COMMITMENT SCHEMES
# ============================================================================

# Local backend: Pedersen commitment + range proof (cryptographic verification)
SCHEME_PEDERSEN = "pedersen"
# Remote backend: hash commitments attested by the proof service
SCHEME_DIGEST = "digest"

COMMITMENT_SCHEMES = (SCHEME_PEDERSEN, SCHEME_DIGEST)

# Hex digests are rendered with a 0x prefix, 32 bytes of SHA3-256
HASH_HEX_LENGTH = 2 + 64

# ============================================================================
# CIRCUIT PARAMETERS
# ============================================================================

CIRCUIT_NAME = "donation_commitment"
CIRCUIT_VERSION = 1
CIRCUIT_FILENAME = "donation_commitment.circuit"
PROVING_KEY_FILENAME = "proving_key.bin"
VERIFICATION_KEY_FILENAME = "verification_key.bin"

# amount - minAmount must fit in RANGE_BITS bits
DEFAULT_RANGE_BITS = 64
MIN_RANGE_BITS = 8
MAX_RANGE_BITS = 128

PUBLIC_SIGNALS = ("commitment", "nullifier")

GENERATOR_SEED_BYTES = 32

# ============================================================================
# PROOF SERIALIZATION
# ============================================================================

PROOF_VERSION = 1

MAX_PROOF_SIZE_BYTES = 64 * 1024
MAX_SECRET_BYTES = 1024
MAX_EVENT_ID_BYTES = 128

# ============================================================================
# REMOTE PROOF ENVELOPE
# ============================================================================

REMOTE_PROOF_TYPE = "festfund_zk_commitment"
DEFAULT_REMOTE_NETWORK = "festfund-testnet"

# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert CURVE_NAME == "secp256k1", "Invalid curve"
    assert CURVE_LIBRARY == "petlib", "secp256k1 requires petlib library"
    assert COFACTOR == 1, "secp256k1 must have cofactor 1"
    assert HASH_FUNCTION in ["SHA3-256", "SHA256"], "Invalid hash function"
    assert MIN_RANGE_BITS <= DEFAULT_RANGE_BITS <= MAX_RANGE_BITS, "Invalid range"
    assert MAX_RANGE_BITS < GROUP_ORDER_BITS, "Range must fit in the group"
    assert len(set(DOMAIN_SEPARATORS.values())) == len(DOMAIN_SEPARATORS)

    return True


# Auto-validate on import
validate_config()

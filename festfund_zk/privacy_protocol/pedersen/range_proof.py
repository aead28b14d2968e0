"""
Non-interactive proof for the donation circuit.

Statement (public: C, N, eventId, minAmount; witness: amount, s):
    C = amount*G + s*H_e
    N = s*N_e
    amount - minAmount in [0, 2^k)

Protocol (Fiat-Shamir, one challenge c for the whole transcript):
    Let C' = C - minAmount*G = d*G + s*H_e with d = amount - minAmount.

    1. Bit decomposition: C_i = b_i*G + r_i*H_e for i < k, with
       sum(2^i * r_i) = s, so sum(2^i * C_i) = C'.
    2. For each C_i, a CDS OR-proof that C_i = r*H_e or C_i - G = r*H_e.
       The real branch is answered with nonce w, the other one simulated;
       branch challenges satisfy e_0 + e_1 = c.
    3. Link proof of (d, s): T1 = t_d*G + t_s*H_e, T2 = t_s*N_e,
       z_d = t_d + c*d, z_s = t_s + c*s. The shared z_s ties the
       commitment blinding to the nullifier.

    Verifier checks:
       sum(2^i * C_i) == C'
       z_j*H_e == A_j + e_j*(C_i - j*G)  for j in {0, 1}, e_1 = c - e_0
       z_d*G + z_s*H_e == T1 + c*C'
       z_s*N_e == T2 + c*N
       public signals == (hash(C, eventId, minAmount), hash(N))
"""

from typing import List, Optional, Sequence, Tuple

from ..codec import PedersenCodec, PedersenOpening
from ..config import DOMAIN_SEPARATORS, GROUP_ORDER
from ..exceptions import ProofGenerationError
from ..security import RandomnessSource, constant_time_compare, fiat_shamir_challenge
from ..types import DonationInput, LocalProof, RangeBitProof
from .circuit import CircuitArtifacts
from .curve import (
    blinding_generator,
    get_curve,
    load_point,
    mul,
    nullifier_generator,
    scalar_from_bytes,
    scalar_to_bytes,
    sub,
)

_RNG = RandomnessSource()


def _shifted_commitment(C, min_amount: int, G):
    if min_amount == 0:
        return C
    return sub(C, mul(min_amount, G))


def _challenge(
    artifacts: CircuitArtifacts,
    event_id: str,
    min_amount: int,
    C_bytes: bytes,
    N_bytes: bytes,
    T1_bytes: bytes,
    T2_bytes: bytes,
    bit_parts: Sequence[Tuple[bytes, bytes, bytes]],
) -> int:
    parts: List[bytes] = [
        artifacts.digest,
        event_id.encode("utf-8"),
        str(min_amount).encode("ascii"),
        C_bytes,
        N_bytes,
        T1_bytes,
        T2_bytes,
    ]
    for commitment, announcement_0, announcement_1 in bit_parts:
        parts.extend((commitment, announcement_0, announcement_1))
    return fiat_shamir_challenge(DOMAIN_SEPARATORS["range_proof"], parts)


def generate_donation_proof(
    donation: DonationInput,
    opening: PedersenOpening,
    artifacts: CircuitArtifacts,
    randomness_source: Optional[RandomnessSource] = None,
) -> LocalProof:
    """
    Prove the donation statement for an opened commitment.

    Raises:
        ProofGenerationError: If amount - minAmount does not fit the circuit
            range, or a degenerate value shows up while proving
    """
    rng = randomness_source or _RNG
    q = GROUP_ORDER
    k = artifacts.range_bits
    G = get_curve().G
    H = opening.blinding_generator
    N_gen = opening.nullifier_generator

    d = donation.amount - donation.min_amount
    if d < 0 or d >= 2**k:
        raise ProofGenerationError(f"amount - min_amount must be in [0, 2^{k})")

    s = opening.secret_scalar
    C = opening.commitment_point
    N = opening.nullifier_point

    try:
        # Step 1: bit commitments, blindings summing to s
        bits = [(d >> i) & 1 for i in range(k)]
        blindings = [0] + [rng.get_nonzero_scalar() for _ in range(1, k)]
        blindings[0] = (s - sum((1 << i) * blindings[i] for i in range(1, k))) % q
        if blindings[0] == 0:
            raise ProofGenerationError("degenerate bit blinding, retry")

        bit_commitments = []
        for bit, r in zip(bits, blindings):
            point = mul(r, H)
            bit_commitments.append(point + G if bit else point)

        # Step 2: OR-proof announcements
        nonces = []
        simulated = []
        announcements = []
        for bit, C_i in zip(bits, bit_commitments):
            w = rng.get_nonzero_scalar()
            e_sim = rng.get_nonzero_scalar()
            z_sim = rng.get_nonzero_scalar()
            real_A = mul(w, H)
            P_sim = sub(C_i, G) if bit == 0 else C_i
            sim_A = sub(mul(z_sim, H), mul(e_sim, P_sim))
            nonces.append(w)
            simulated.append((e_sim, z_sim))
            announcements.append((real_A, sim_A) if bit == 0 else (sim_A, real_A))

        # Step 3: link announcements
        t_d = rng.get_nonzero_scalar()
        t_s = rng.get_nonzero_scalar()
        T1 = mul(t_d, G) + mul(t_s, H)
        T2 = mul(t_s, N_gen)

        C_bytes = C.export()
        N_bytes = N.export()
        T1_bytes = T1.export()
        T2_bytes = T2.export()
        bit_parts = [
            (C_i.export(), A_0.export(), A_1.export())
            for C_i, (A_0, A_1) in zip(bit_commitments, announcements)
        ]
    except ProofGenerationError:
        raise
    except Exception as e:
        raise ProofGenerationError(f"Failed to build proof commitments: {e}")

    c = _challenge(
        artifacts, donation.event_id, donation.min_amount,
        C_bytes, N_bytes, T1_bytes, T2_bytes, bit_parts,
    )

    bit_proofs = []
    for i, bit in enumerate(bits):
        e_sim, z_sim = simulated[i]
        e_real = (c - e_sim) % q
        z_real = (nonces[i] + e_real * blindings[i]) % q
        if bit == 0:
            e_0, z_0, z_1 = e_real, z_real, z_sim
        else:
            e_0, z_0, z_1 = e_sim, z_sim, z_real
        commitment, announcement_0, announcement_1 = bit_parts[i]
        bit_proofs.append(
            RangeBitProof(
                commitment=commitment,
                announcement_0=announcement_0,
                announcement_1=announcement_1,
                challenge_0=scalar_to_bytes(e_0),
                response_0=scalar_to_bytes(z_0),
                response_1=scalar_to_bytes(z_1),
            )
        )

    return LocalProof(
        circuit_digest=artifacts.digest,
        event_id=donation.event_id,
        min_amount=donation.min_amount,
        commitment_point=C_bytes,
        nullifier_point=N_bytes,
        bits=tuple(bit_proofs),
        link_announcement_g=T1_bytes,
        link_announcement_n=T2_bytes,
        link_response_amount=scalar_to_bytes(t_d + c * d),
        link_response_secret=scalar_to_bytes(t_s + c * s),
    )


def expected_signals(proof: LocalProof) -> Tuple[str, str]:
    return (
        PedersenCodec.commitment_hash(proof.commitment_point, proof.event_id, proof.min_amount),
        PedersenCodec.nullifier_hash(proof.nullifier_point),
    )


def verify_donation_proof(
    proof: LocalProof, public_signals: Sequence[str], artifacts: CircuitArtifacts
) -> bool:
    """
    Verify a donation proof against its public signals.

    Returns:
        True if the proof is valid, False otherwise (never raises)
    """
    try:
        if not isinstance(proof, LocalProof):
            return False
        if not constant_time_compare(proof.circuit_digest, artifacts.digest):
            return False
        if len(proof.bits) != artifacts.range_bits:
            return False
        if proof.min_amount < 0 or not proof.event_id:
            return False

        # Public signals bind the points, event and threshold
        signals = list(public_signals)
        if len(signals) != 2 or not all(isinstance(s, str) for s in signals):
            return False
        commitment_hash, nullifier_hash = expected_signals(proof)
        if not constant_time_compare(signals[0].encode("ascii"), commitment_hash.encode("ascii")):
            return False
        if not constant_time_compare(signals[1].encode("ascii"), nullifier_hash.encode("ascii")):
            return False

        q = GROUP_ORDER
        G = get_curve().G
        H = blinding_generator(artifacts.h_seed, proof.event_id)
        N_gen = nullifier_generator(artifacts.n_seed, proof.event_id)
        C = load_point(proof.commitment_point)
        N = load_point(proof.nullifier_point)
        T1 = load_point(proof.link_announcement_g)
        T2 = load_point(proof.link_announcement_n)
        C_shift = _shifted_commitment(C, proof.min_amount, G)

        bit_points = []
        bit_parts = []
        for bit in proof.bits:
            C_i = load_point(bit.commitment)
            A_0 = load_point(bit.announcement_0)
            A_1 = load_point(bit.announcement_1)
            bit_points.append((C_i, A_0, A_1))
            bit_parts.append((bit.commitment, bit.announcement_0, bit.announcement_1))

        # Bits recombine to C'
        acc = bit_points[-1][0]
        for C_i, _, _ in reversed(bit_points[:-1]):
            acc = mul(2, acc) + C_i
        if acc != C_shift:
            return False

        c = _challenge(
            artifacts, proof.event_id, proof.min_amount,
            proof.commitment_point, proof.nullifier_point,
            proof.link_announcement_g, proof.link_announcement_n, bit_parts,
        )

        # Each bit is 0 or 1
        for bit, (C_i, A_0, A_1) in zip(proof.bits, bit_points):
            e_0 = scalar_from_bytes(bit.challenge_0)
            e_1 = (c - e_0) % q
            z_0 = scalar_from_bytes(bit.response_0)
            z_1 = scalar_from_bytes(bit.response_1)
            if mul(z_0, H) != A_0 + mul(e_0, C_i):
                return False
            if mul(z_1, H) != A_1 + mul(e_1, sub(C_i, G)):
                return False

        # Commitment blinding and nullifier share the secret
        z_d = scalar_from_bytes(proof.link_response_amount)
        z_s = scalar_from_bytes(proof.link_response_secret)
        if mul(z_d, G) + mul(z_s, H) != T1 + mul(c, C_shift):
            return False
        if mul(z_s, N_gen) != T2 + mul(c, N):
            return False

        return True

    except Exception:
        return False

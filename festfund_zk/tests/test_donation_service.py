"""
Tests for DonationService: commitment pipeline, reveals and privacy
preferences, on the local backend with an in-memory store.
"""

import pytest
import trio

from festfund_zk.privacy_protocol.codec import validate_donation_input
from festfund_zk.privacy_protocol.exceptions import (
    NotFoundError,
    NullifierAlreadyUsedError,
    RevealStateError,
    ServiceDegradedError,
    ValidationError,
)
from festfund_zk.privacy_protocol.pedersen.backend import PedersenProofBackend
from festfund_zk.privacy_protocol.pedersen.circuit import setup_circuit
from festfund_zk.privacy_protocol.types import (
    VerificationLevel,
    VerificationResult,
    deserialize_proof,
    serialize_proof,
)
from festfund_zk.service import DonationService
from festfund_zk.storage.store import CommitmentStore


class RejectingBackend(PedersenProofBackend):
    """Generates real proofs but refuses to verify any of them."""

    async def verify(self, proof, public_signals):
        return VerificationResult.rejected("proof verification failed")


class FlakyBackend(PedersenProofBackend):
    """Verification is degraded until `healthy` is set."""

    healthy = False

    async def verify(self, proof, public_signals):
        if not self.healthy:
            raise ServiceDegradedError("proof service unreachable")
        return await super().verify(proof, public_signals)


@pytest.fixture(scope="module")
def circuit_dir(tmp_path_factory):
    directory = tmp_path_factory.mktemp("circuit")
    setup_circuit(directory, range_bits=16)
    return directory


async def _service(backend_cls, circuit_dir):
    store = CommitmentStore("sqlite:///:memory:")
    service = DonationService(backend_cls(circuit_dir=circuit_dir), store)
    await service.initialize()
    return service


# ============================================================================
# COMMITMENTS
# ============================================================================


@pytest.mark.trio
async def test_create_commitment(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)

    receipt = await service.create_commitment(100, "s1", "E", 10, "0xAAA")
    assert receipt.stored
    assert receipt.verified
    assert receipt.level is VerificationLevel.CRYPTOGRAPHIC
    assert deserialize_proof(receipt.proof).event_id == "E"

    stored = service.get_commitment(receipt.commitment_hash)
    assert stored.verified
    assert stored.donor_address == "0xaaa"
    assert not stored.is_revealed
    assert receipt.to_dict()["proof"] == receipt.proof.hex()
    service.close()


@pytest.mark.trio
async def test_same_secret_and_event_conflicts(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    await service.create_commitment(100, "s1", "E", donor_address="0xa")

    with pytest.raises(NullifierAlreadyUsedError):
        await service.create_commitment(999, "s1", "E", donor_address="0xa")

    other_event = await service.create_commitment(100, "s1", "F", donor_address="0xa")
    assert other_event.stored
    service.close()


@pytest.mark.trio
async def test_concurrent_same_nullifier_stores_once(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    receipts = []
    conflicts = []

    async def submit(amount):
        try:
            receipts.append(await service.create_commitment(amount, "s1", "E", donor_address="0xa"))
        except NullifierAlreadyUsedError as e:
            conflicts.append(e)

    async with trio.open_nursery() as nursery:
        nursery.start_soon(submit, 100)
        nursery.start_soon(submit, 250)

    assert len(conflicts) == 1
    assert len(receipts) == 1
    assert receipts[0].stored
    assert len(service.store.list_event("E")) == 1
    service.close()


@pytest.mark.trio
@pytest.mark.parametrize(
    "amount, secret, event_id, min_amount",
    [(0, "s", "E", 0), (5, "s", "E", 10), (5, "", "E", 0), (5, "s", "", 0), ("1.5", "s", "E", 0)],
)
async def test_invalid_inputs(circuit_dir, amount, secret, event_id, min_amount) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    with pytest.raises(ValidationError):
        await service.create_commitment(amount, secret, event_id, min_amount)
    service.close()


@pytest.mark.trio
async def test_invalid_proof_is_not_stored(circuit_dir) -> None:
    service = await _service(RejectingBackend, circuit_dir)

    receipt = await service.create_commitment(100, "s1", "E", donor_address="0xa")
    assert not receipt.stored
    assert not receipt.verified
    assert receipt.reason == "proof verification failed"
    assert service.store.get(receipt.commitment_hash) is None
    assert service.store.find_by_nullifier(receipt.nullifier_hash) is None
    service.close()


@pytest.mark.trio
async def test_degraded_verification_stores_unverified(circuit_dir) -> None:
    service = await _service(FlakyBackend, circuit_dir)

    receipt = await service.create_commitment(100, "s1", "E", donor_address="0xa")
    assert receipt.stored
    assert not receipt.verified
    assert receipt.level is VerificationLevel.NONE
    assert receipt.reason.startswith("verification pending")
    assert not service.get_commitment(receipt.commitment_hash).verified

    with pytest.raises(ServiceDegradedError):
        await service.reverify(receipt.commitment_hash)

    service.backend.healthy = True
    result = await service.reverify(receipt.commitment_hash)
    assert result.verified
    stored = service.get_commitment(receipt.commitment_hash)
    assert stored.verified
    assert stored.verification_level == VerificationLevel.CRYPTOGRAPHIC.value
    service.close()


@pytest.mark.trio
async def test_verify_proof(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    bundle = await service.backend.generate(validate_donation_input(40, "s9", "E"))
    blob = serialize_proof(bundle.proof)

    assert (await service.verify_proof(blob, bundle.public_signals)).verified
    garbage = await service.verify_proof(b"\x00garbage", bundle.public_signals)
    assert not garbage.verified
    assert garbage.commitment_hash == bundle.commitment_hash
    assert garbage.nullifier_hash == bundle.nullifier_hash
    service.close()


@pytest.mark.trio
async def test_missing_commitment(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    with pytest.raises(NotFoundError):
        await service.reverify("0x" + "ab" * 32)
    with pytest.raises(NotFoundError):
        service.cancel_commitment("0x" + "ab" * 32)
    service.close()


@pytest.mark.trio
async def test_cancel_keeps_nullifier_used(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    receipt = await service.create_commitment(100, "s1", "E", donor_address="0xa")
    service.reveal_amount(receipt.commitment_hash, "0xa", 100)

    service.cancel_commitment(receipt.commitment_hash)
    assert service.verify_milestone("E", 1).current_amount == 0
    assert service.get_event_ranking("E") == []
    with pytest.raises(NullifierAlreadyUsedError):
        await service.create_commitment(100, "s1", "E", donor_address="0xa")
    service.close()


# ============================================================================
# REVEAL
# ============================================================================


@pytest.mark.trio
async def test_reveal_with_secret_is_proven(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    receipt = await service.create_commitment(100, "s1", "E", 10, "0xa")

    stored = service.reveal_amount(receipt.commitment_hash, "0xA", "100", secret="s1")
    assert stored.is_revealed
    assert stored.revealed_amount == 100
    assert stored.amount_proven
    assert service.get_event_ranking("E")[0].proof_backed
    service.close()


@pytest.mark.trio
async def test_reveal_with_wrong_opening_fails(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    receipt = await service.create_commitment(100, "s1", "E", donor_address="0xa")

    with pytest.raises(RevealStateError):
        service.reveal_amount(receipt.commitment_hash, "0xa", 101, secret="s1")
    with pytest.raises(RevealStateError):
        service.reveal_amount(receipt.commitment_hash, "0xa", 100, secret="s2")
    assert not service.get_commitment(receipt.commitment_hash).is_revealed
    service.close()


@pytest.mark.trio
async def test_reveal_without_secret_is_unproven(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    receipt = await service.create_commitment(100, "s1", "E", donor_address="0xa")

    stored = service.reveal_amount(receipt.commitment_hash, "0xa", 100)
    assert stored.is_revealed
    assert not stored.amount_proven
    assert not service.get_event_ranking("E")[0].proof_backed
    service.close()


@pytest.mark.trio
async def test_reveal_rules(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    receipt = await service.create_commitment(100, "s1", "E", donor_address="0xa")
    anonymous = await service.create_commitment(100, "s2", "E")

    with pytest.raises(ValidationError):
        service.reveal_amount(receipt.commitment_hash, "0xa", 0)
    with pytest.raises(RevealStateError):
        service.reveal_amount(receipt.commitment_hash, "0xb", 100)
    with pytest.raises(RevealStateError):
        service.reveal_amount(anonymous.commitment_hash, "0xa", 100)

    service.reveal_amount(receipt.commitment_hash, "0xa", 100)
    with pytest.raises(RevealStateError):
        service.reveal_amount(receipt.commitment_hash, "0xa", 100)
    service.close()


# ============================================================================
# PRIVACY AND CAMPAIGN VIEWS
# ============================================================================


@pytest.mark.trio
async def test_privacy_preferences(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    await service.create_commitment(100, "s1", "E", donor_address="0xa")

    defaults = service.get_privacy("0xA", "E")
    assert not defaults.explicit
    assert not defaults.reveal_name
    assert not defaults.reveal_amount
    assert defaults.commitment_count == 1

    updated = service.update_privacy(
        "0xa", "E", reveal_amount=False, reveal_name=True, custom_display_name="  Alice  "
    )
    assert updated.explicit
    assert updated.custom_display_name == "Alice"
    assert service.get_event_ranking("E")[0].display_name == "Alice"
    assert service.get_privacy("0xa", "E").reveal_name
    service.close()


@pytest.mark.trio
async def test_privacy_defaults_follow_reveals(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    receipt = await service.create_commitment(100, "s1", "E", donor_address="0xa")
    await service.create_commitment(50, "s2", "E", donor_address="0xa")
    service.reveal_amount(receipt.commitment_hash, "0xa", 100, secret="s1")

    defaults = service.get_privacy("0xa", "E")
    assert not defaults.explicit
    assert defaults.reveal_amount
    assert defaults.commitment_count == 2
    assert service.get_event_ranking("E")[0].reveal_amount == defaults.reveal_amount

    service.cancel_commitment(receipt.commitment_hash)
    after_cancel = service.get_privacy("0xa", "E")
    assert not after_cancel.reveal_amount
    assert after_cancel.commitment_count == 1
    service.close()


@pytest.mark.trio
async def test_privacy_requires_commitment(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    await service.create_commitment(100, "s1", "E", donor_address="0xa")

    with pytest.raises(NotFoundError):
        service.get_privacy("0xb", "E")
    with pytest.raises(NotFoundError):
        service.get_privacy("0xa", "other")
    with pytest.raises(ValidationError):
        service.get_privacy("  ", "E")
    service.close()


@pytest.mark.trio
async def test_privacy_update_rules(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    await service.create_commitment(100, "s1", "E", donor_address="0xa")

    with pytest.raises(ValidationError):
        service.update_privacy("  ", "E", reveal_amount=True, reveal_name=True)
    with pytest.raises(ValidationError):
        service.update_privacy(
            "0xa", "E", reveal_amount=True, reveal_name=True, custom_display_name="x" * 65
        )
    with pytest.raises(NotFoundError):
        service.update_privacy("0xa", "other", reveal_amount=True, reveal_name=True)
    service.close()


@pytest.mark.trio
async def test_ranking_and_milestone(circuit_dir) -> None:
    service = await _service(PedersenProofBackend, circuit_dir)
    a = await service.create_commitment(100, "s1", "E", donor_address="0xa")
    await service.create_commitment(50, "s2", "E", donor_address="0xb")
    service.reveal_amount(a.commitment_hash, "0xa", 100, secret="s1")

    assert service.get_user_rank("E", "0xa") == (1, 2)
    assert service.get_user_rank("E", "0xb") == (2, 2)
    assert service.verify_milestone("E", 100).achieved
    assert not service.verify_milestone("E", 150).achieved

    status = service.backend_status()
    assert status.available
    assert status.kind == "local"
    service.close()

"""
End-to-end donation scenarios.

Runs the DonationService over both proof backends: the local Pedersen
circuit and the reference remote proof service on a loopback socket.
"""

import pytest
import trio

from festfund_zk.campaign.milestones import EventAggregate
from festfund_zk.network.proofservice import DigestProofProvider, ProviderConfig, serve_proof_service
from festfund_zk.privacy_protocol.exceptions import NullifierAlreadyUsedError
from festfund_zk.privacy_protocol.pedersen.backend import PedersenProofBackend
from festfund_zk.privacy_protocol.pedersen.circuit import setup_circuit
from festfund_zk.privacy_protocol.remote.backend import RemoteBackendConfig, RemoteProofBackend
from festfund_zk.privacy_protocol.types import VerificationLevel
from festfund_zk.service import DonationService
from festfund_zk.settings import load_settings
from festfund_zk.storage.store import CommitmentStore


@pytest.fixture(scope="module")
def circuit_dir(tmp_path_factory):
    directory = tmp_path_factory.mktemp("scenario-circuit")
    setup_circuit(directory, range_bits=16)
    return directory


@pytest.mark.trio
async def test_two_donors_one_event(circuit_dir, tmp_path) -> None:
    """
    Donor A commits 100 and reveals it; donor B commits 50 and stays hidden.
    A outranks B, the 100 milestone is reached, and A cannot reuse its
    secret on the same event.
    """
    settings = load_settings(
        environ={},
        database_url=f"sqlite:///{tmp_path / 'festfund.db'}",
        circuit_dir=str(circuit_dir),
    )
    service = DonationService.from_settings(settings)
    await service.initialize()
    try:
        a = await service.create_commitment(100, "s1", "E", 10, "0xA11CE")
        b = await service.create_commitment(50, "s2", "E", 10, "0xB0B")
        assert a.stored and b.stored
        assert a.nullifier_hash != b.nullifier_hash

        service.reveal_amount(a.commitment_hash, "0xa11ce", 100, secret="s1")

        ranking = service.get_event_ranking("E")
        assert [entry.proven_total for entry in ranking] == [100, 0]
        assert ranking[0].total_donated == 100
        assert ranking[1].total_donated is None
        assert service.get_user_rank("E", "0xb0b") == (2, 2)

        assert service.verify_milestone("E", 100).achieved
        assert not service.verify_milestone("E", 150).achieved

        stats = service.refresh_event_stats(EventAggregate("E", milestones=(50, 100, 200)))
        assert stats.total_amount == 100
        assert stats.total_commitments == 2
        assert stats.current_milestone_index == 2

        with pytest.raises(NullifierAlreadyUsedError):
            await service.create_commitment(999, "s1", "E", 10, "0xA11CE")
        assert len(service.store.list_event("E")) == 2
    finally:
        service.close()

    reopened = CommitmentStore(settings.database_url)
    try:
        assert reopened.get(a.commitment_hash).amount_proven
    finally:
        reopened.close()


@pytest.mark.trio
async def test_remote_backend_flow() -> None:
    provider = DigestProofProvider(ProviderConfig(service_key=b"s" * 32))
    async with trio.open_nursery() as nursery:
        listeners = await nursery.start(serve_proof_service, provider, "127.0.0.1", 0)
        port = listeners[0].socket.getsockname()[1]

        backend = RemoteProofBackend(
            RemoteBackendConfig(host="127.0.0.1", port=port, timeout=2.0, max_retries=1)
        )
        service = DonationService(backend, CommitmentStore("sqlite:///:memory:"))
        await service.initialize()

        receipt = await service.create_commitment(100, "s1", "E", donor_address="0xa")
        assert receipt.stored
        assert receipt.level is VerificationLevel.CONFIRMED

        result = await service.reverify(receipt.commitment_hash)
        assert result.verified

        stored = service.reveal_amount(receipt.commitment_hash, "0xa", 100, secret="s1")
        assert stored.is_revealed
        assert not stored.amount_proven

        with pytest.raises(NullifierAlreadyUsedError):
            await service.create_commitment(5, "s1", "E")

        service.close()
        nursery.cancel_scope.cancel()


@pytest.mark.trio
async def test_local_proof_rejected_by_remote_backend(circuit_dir) -> None:
    local = PedersenProofBackend(circuit_dir=circuit_dir)
    await local.initialize()
    local_service = DonationService(local, CommitmentStore("sqlite:///:memory:"))
    receipt = await local_service.create_commitment(100, "s1", "E")

    remote_service = DonationService(
        RemoteProofBackend(RemoteBackendConfig(host="127.0.0.1", port=1)),
        CommitmentStore("sqlite:///:memory:"),
    )
    result = await remote_service.verify_proof(
        receipt.proof, (receipt.commitment_hash, receipt.nullifier_hash)
    )
    assert not result.verified
    assert "local proof" in result.reason
    local_service.close()
    remote_service.close()

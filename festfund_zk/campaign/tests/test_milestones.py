"""Tests for milestone verification and event statistics."""

import pytest

from festfund_zk.campaign.milestones import (
    EventAggregate,
    MilestoneVerifier,
    current_milestone_index,
    parse_milestones,
)
from festfund_zk.privacy_protocol.exceptions import ValidationError
from festfund_zk.privacy_protocol.types import ProofBundle, RemoteAttestation
from festfund_zk.storage.store import CommitmentStore, NewCommitment


@pytest.fixture
def store():
    store = CommitmentStore("sqlite:///:memory:")
    yield store
    store.close()


def _commit(store, name, donor="0xa", event="E", revealed=None):
    commitment, nullifier = f"c-{name}", f"n-{name}"
    proof = RemoteAttestation(
        proof_type="festfund_zk_commitment",
        network="festfund-testnet",
        scheme="digest",
        attestation_id=name,
        attestation=b"\x01" * 32,
        public_signals=(commitment, nullifier),
    )
    bundle = ProofBundle("remote", commitment, nullifier, proof, (commitment, nullifier))
    store.insert(NewCommitment(bundle, event, donor))
    if revealed is not None:
        store.reveal(commitment, donor, revealed)
    return commitment


class TestVerify:
    def test_only_revealed_amounts_count(self, store):
        _commit(store, "1", revealed=60)
        _commit(store, "2")
        _commit(store, "3", donor="0xb", revealed=40)

        status = MilestoneVerifier(store).verify("E", 100)
        assert status.achieved
        assert status.current_amount == 100
        assert status.commitment_count == 3
        assert status.revealed_count == 2

    def test_not_achieved(self, store):
        _commit(store, "1", revealed=60)
        status = MilestoneVerifier(store).verify("E", "61")
        assert not status.achieved
        assert status.current_amount == 60

    def test_empty_event(self, store):
        status = MilestoneVerifier(store).verify("E", 1)
        assert not status.achieved
        assert status.commitment_count == 0

    def test_cancelled_commitments_ignored(self, store):
        commitment = _commit(store, "1", revealed=60)
        store.mark_cancelled(commitment)
        assert MilestoneVerifier(store).verify("E", 60).current_amount == 0

    @pytest.mark.parametrize("target", [0, -1, "abc", 1.5])
    def test_invalid_target(self, store, target):
        with pytest.raises(ValidationError):
            MilestoneVerifier(store).verify("E", target)

    def test_achieved_stays_achieved_as_reveals_accumulate(self, store):
        verifier = MilestoneVerifier(store)
        _commit(store, "1", revealed=50)
        history = [verifier.verify("E", 100).achieved]
        _commit(store, "2", revealed=50)
        history.append(verifier.verify("E", 100).achieved)
        _commit(store, "3", revealed=10)
        history.append(verifier.verify("E", 100).achieved)
        _commit(store, "4")
        history.append(verifier.verify("E", 100).achieved)
        assert history == [False, True, True, True]


class TestRefresh:
    def test_event_stats(self, store):
        _commit(store, "1", donor="0xa", revealed=70)
        _commit(store, "2", donor="0xb", revealed=50)
        _commit(store, "3", donor="0xc")

        stats = MilestoneVerifier(store).refresh(
            EventAggregate("E", milestones=(50, 100, 200), target_amount=240)
        )
        assert stats.total_amount == 120
        assert stats.unique_donors == 2
        assert stats.total_commitments == 3
        assert stats.revealed_commitments == 2
        assert stats.current_milestone_index == 2
        assert stats.target_progress == pytest.approx(50.0)

        progress = stats.milestone_progress
        assert [p.achieved for p in progress] == [True, True, False]
        assert [p.is_next for p in progress] == [False, False, True]
        assert progress[0].percentage == 100.0
        assert progress[2].percentage == pytest.approx(60.0)

    def test_all_milestones_reached(self, store):
        _commit(store, "1", revealed=500)
        stats = MilestoneVerifier(store).refresh(EventAggregate("E", milestones=(50, 100)))
        assert stats.current_milestone_index == 2
        assert not any(p.is_next for p in stats.milestone_progress)


def test_current_milestone_index():
    assert current_milestone_index(0, (10, 20)) == 0
    assert current_milestone_index(10, (10, 20)) == 1
    assert current_milestone_index(25, (10, 20)) == 2
    assert current_milestone_index(5, ()) == 0


def test_parse_milestones():
    assert parse_milestones(["10", 20, "30"]) == (10, 20, 30)
    with pytest.raises(ValidationError, match="ascending"):
        parse_milestones([30, 20])

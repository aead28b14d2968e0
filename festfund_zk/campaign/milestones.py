"""
Milestone verification and event statistics.

Only revealed amounts count toward a milestone: a commitment whose amount
was never revealed contributes nothing, however large it is. This is a
liveness check; it proves nothing about unrevealed commitments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple

from ..privacy_protocol.codec import parse_amount
from ..privacy_protocol.exceptions import ValidationError
from ..storage.store import CommitmentStore, StoredCommitment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MilestoneStatus:
    event_id: str
    target: int
    achieved: bool
    current_amount: int
    commitment_count: int
    revealed_count: int


@dataclass(frozen=True)
class EventAggregate:
    """Campaign data owned by the external event service."""

    event_id: str
    milestones: Tuple[int, ...] = ()
    target_amount: int = 0


@dataclass(frozen=True)
class MilestoneProgress:
    amount: int
    achieved: bool
    percentage: float
    is_next: bool


@dataclass(frozen=True)
class EventStats:
    event_id: str
    total_amount: int
    unique_donors: int
    total_commitments: int
    revealed_commitments: int
    current_milestone_index: int
    target_progress: float
    milestone_progress: List[MilestoneProgress] = field(default_factory=list)


def _percentage(amount: int, threshold: int) -> float:
    if threshold <= 0:
        return 100.0
    return min(amount * 100.0 / threshold, 100.0)


def revealed_total(commitments: Sequence[StoredCommitment]) -> int:
    return sum(c.revealed_amount or 0 for c in commitments if c.is_revealed)


def current_milestone_index(total: int, milestones: Sequence[int]) -> int:
    """Index of the first milestone not yet reached; len(milestones) if all are."""
    for index, threshold in enumerate(milestones):
        if total < threshold:
            return index
    return len(milestones)


def parse_milestones(values: Sequence[Any]) -> Tuple[int, ...]:
    milestones = tuple(parse_amount(value, "milestone") for value in values)
    if any(later < earlier for earlier, later in zip(milestones, milestones[1:])):
        raise ValidationError("milestones must be in ascending order")
    return milestones


class MilestoneVerifier:
    def __init__(self, store: CommitmentStore) -> None:
        self._store = store

    def verify(self, event_id: str, target: Any) -> MilestoneStatus:
        """
        Check whether revealed donations of an event reach target.

        Raises:
            ValidationError: If target is not a positive integer amount
        """
        parsed_target = parse_amount(target, "milestone target")
        if parsed_target == 0:
            raise ValidationError("milestone target must be positive")

        commitments = self._store.list_event(event_id)
        current = revealed_total(commitments)
        status = MilestoneStatus(
            event_id=event_id,
            target=parsed_target,
            achieved=current >= parsed_target,
            current_amount=current,
            commitment_count=len(commitments),
            revealed_count=sum(1 for c in commitments if c.is_revealed),
        )
        logger.info(
            "Milestone %s for event %s: %s (%s revealed)",
            parsed_target,
            event_id,
            "achieved" if status.achieved else "not achieved",
            current,
        )
        return status

    def refresh(self, event: EventAggregate) -> EventStats:
        """Recompute the public aggregate of an event from revealed data."""
        commitments = self._store.list_event(event.event_id)
        revealed = [c for c in commitments if c.is_revealed]
        total = revealed_total(revealed)
        current_index = current_milestone_index(total, event.milestones)

        return EventStats(
            event_id=event.event_id,
            total_amount=total,
            unique_donors=len({c.donor_address for c in revealed if c.donor_address}),
            total_commitments=len(commitments),
            revealed_commitments=len(revealed),
            current_milestone_index=current_index,
            target_progress=_percentage(total, event.target_amount),
            milestone_progress=[
                MilestoneProgress(
                    amount=threshold,
                    achieved=total >= threshold,
                    percentage=_percentage(total, threshold),
                    is_next=index == current_index,
                )
                for index, threshold in enumerate(event.milestones)
            ],
        )

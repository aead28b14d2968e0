"""Campaign views computed from stored commitments: milestones and rankings."""

from .milestones import EventAggregate, EventStats, MilestoneStatus, MilestoneVerifier
from .ranking import RankingEngine, RankingEntry

__all__ = [
    "EventAggregate",
    "EventStats",
    "MilestoneStatus",
    "MilestoneVerifier",
    "RankingEngine",
    "RankingEntry",
]

"""SQLAlchemy models for commitments and donor privacy preferences."""

import time

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    LargeBinary,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

STATUS_ACTIVE = "active"
STATUS_CANCELLED = "cancelled"


class CommitmentRecord(Base):
    __tablename__ = "commitments"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Unique constraints enforce the nullifier ledger at insert time
    commitment_hash = Column(String(130), unique=True, nullable=False, index=True)
    nullifier_hash = Column(String(130), unique=True, nullable=False, index=True)

    backend = Column(String(16), nullable=False)  # local / remote
    proof = Column(LargeBinary, nullable=False)  # CBOR proof payload
    public_signals = Column(JSON, nullable=False)

    # false -> true once, after a successful backend verification
    verified = Column(Boolean, nullable=False, default=False)
    verification_level = Column(String(16), nullable=False, default="none")
    verified_at = Column(Float, nullable=True)

    event_id = Column(String(128), nullable=False, index=True)
    donor_address = Column(String(128), nullable=True, index=True)  # lower case

    # Decimal string in base units, set only together with is_revealed
    revealed_amount = Column(String(80), nullable=True)
    is_revealed = Column(Boolean, nullable=False, default=False)
    amount_proven = Column(Boolean, nullable=False, default=False)
    revealed_at = Column(Float, nullable=True)

    status = Column(String(16), nullable=False, default=STATUS_ACTIVE)
    timestamp = Column(Float, nullable=False, default=time.time)

    def __repr__(self) -> str:
        return (
            f"CommitmentRecord(commitment_hash={self.commitment_hash!r}, "
            f"event_id={self.event_id!r}, verified={self.verified})"
        )


class PrivacyPreference(Base):
    __tablename__ = "privacy_preferences"
    __table_args__ = (UniqueConstraint("donor_address", "event_id", name="uq_donor_event"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    donor_address = Column(String(128), nullable=False, index=True)
    event_id = Column(String(128), nullable=False, index=True)
    reveal_amount = Column(Boolean, nullable=False, default=False)
    reveal_name = Column(Boolean, nullable=False, default=False)
    custom_display_name = Column(String(64), nullable=True)
    updated_at = Column(Float, nullable=False, default=time.time)

"""Bid SQLAlchemy model."""

import enum
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.database import Base


class BidStatus(enum.Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


# Accepted and Rejected are terminal
BID_TRANSITIONS: dict[BidStatus, set[BidStatus]] = {
    BidStatus.PENDING: {BidStatus.ACCEPTED, BidStatus.REJECTED},
    BidStatus.ACCEPTED: set(),
    BidStatus.REJECTED: set(),
}


class Bid(Base):
    __tablename__ = "bids"
    __table_args__ = (
        UniqueConstraint("job_id", "pro_id", name="uq_bids_job_pro"),
        CheckConstraint("price > 0", name="ck_bids_price_positive"),
        # At most one accepted bid per job
        Index(
            "uq_bids_one_accepted_per_job",
            "job_id",
            unique=True,
            postgresql_where=text("status = 'Accepted'"),
            sqlite_where=text("status = 'Accepted'"),
        ),
    )

    bid_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("jobs.job_id", ondelete="RESTRICT"), nullable=False, index=True
    )
    pro_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.profile_id", ondelete="RESTRICT"), nullable=False, index=True
    )
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[BidStatus] = mapped_column(
        Enum(BidStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=BidStatus.PENDING,
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    job = relationship("Job", back_populates="bids", lazy="raise")
    pro = relationship("Profile", foreign_keys=[pro_id], lazy="raise")

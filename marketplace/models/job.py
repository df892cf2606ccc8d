"""Job SQLAlchemy model."""

import enum
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.database import Base


class JobCategory(enum.Enum):
    ELECTRICITY = "Electricity"
    PLUMBING = "Plumbing"
    ASSEMBLY = "Assembly"
    MOVING = "Moving"
    PAINTING = "Painting"


class JobStatus(enum.Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


# One-directional: a job never re-opens once a bid is accepted
JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.OPEN: {JobStatus.IN_PROGRESS},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED},
    JobStatus.COMPLETED: set(),
}


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        CheckConstraint("price_offer > 0", name="ck_jobs_price_offer_positive"),
    )

    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.profile_id", ondelete="RESTRICT"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[JobCategory] = mapped_column(
        Enum(JobCategory, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True,
    )
    photos: Mapped[list[str] | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True, default=list
    )
    price_offer: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    schedule_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    allow_counter_offers: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobStatus.OPEN,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    owner = relationship("Profile", foreign_keys=[owner_id], lazy="raise")
    bids = relationship(
        "Bid", back_populates="job", order_by="Bid.created_at", lazy="raise"
    )

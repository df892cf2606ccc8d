"""Create bids table with one bid per (job, pro).

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "bids",
        sa.Column("bid_id", sa.Uuid(), primary_key=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("jobs.job_id", ondelete="RESTRICT"), nullable=False),
        sa.Column("pro_id", sa.Uuid(), sa.ForeignKey("profiles.profile_id", ondelete="RESTRICT"), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("Pending", "Accepted", "Rejected", name="bidstatus"),
            nullable=False,
            server_default="Pending",
        ),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("job_id", "pro_id", name="uq_bids_job_pro"),
        sa.CheckConstraint("price > 0", name="ck_bids_price_positive"),
    )
    op.create_index("ix_bids_job_id", "bids", ["job_id"])
    op.create_index("ix_bids_pro_id", "bids", ["pro_id"])
    # At most one accepted bid per job
    op.create_index(
        "uq_bids_one_accepted_per_job",
        "bids",
        ["job_id"],
        unique=True,
        postgresql_where=sa.text("status = 'Accepted'"),
    )


def downgrade() -> None:
    op.drop_table("bids")
    op.execute("DROP TYPE IF EXISTS bidstatus")

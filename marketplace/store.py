"""Data-store operations over profiles, jobs and bids.

Each function maps to one store call of the lifecycle and translates driver
errors into the typed taxonomy in ``marketplace.errors``. Functions flush but
never commit: the calling service owns the transaction.

Reads always repopulate from the database so a status is never taken from a
stale in-session copy.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.errors import DuplicateBid, InvalidState, NotFound
from marketplace.models.bid import BID_TRANSITIONS, Bid, BidStatus
from marketplace.models.job import JOB_TRANSITIONS, Job, JobCategory, JobStatus
from marketplace.models.profile import Profile, UserRole

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == _UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


def _predecessors(transitions: dict, target: object) -> list:
    """Statuses from which ``target`` is a legal next status."""
    return [source for source, targets in transitions.items() if target in targets]


# =============================================================================
# Profiles
# =============================================================================

async def create_profile(
    db: AsyncSession,
    *,
    public_key: str,
    full_name: str,
    role: UserRole,
    avatar_url: str | None = None,
    specializations: list[str] | None = None,
    bio: str | None = None,
) -> Profile:
    profile = Profile(
        profile_id=uuid.uuid4(),
        public_key=public_key,
        full_name=full_name,
        role=role,
        avatar_url=avatar_url,
        specializations=specializations,
        bio=bio,
    )
    db.add(profile)
    await db.flush()
    return profile


async def get_profile(db: AsyncSession, profile_id: uuid.UUID) -> Profile:
    result = await db.execute(
        select(Profile)
        .where(Profile.profile_id == profile_id)
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFound("Profile not found")
    return profile


async def increment_completed_jobs(db: AsyncSession, profile_id: uuid.UUID) -> None:
    await db.execute(
        update(Profile)
        .where(Profile.profile_id == profile_id)
        .values(completed_jobs_count=Profile.completed_jobs_count + 1)
        .execution_options(synchronize_session=False)
    )


async def get_profile_by_public_key(db: AsyncSession, public_key: str) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.public_key == public_key))
    return result.scalar_one_or_none()


# =============================================================================
# Jobs
# =============================================================================

async def create_job(
    db: AsyncSession,
    *,
    owner_id: uuid.UUID,
    title: str,
    description: str,
    category: JobCategory,
    price_offer: Decimal,
    schedule_description: str | None = None,
    allow_counter_offers: bool = False,
    photos: list[str] | None = None,
) -> Job:
    job = Job(
        job_id=uuid.uuid4(),
        owner_id=owner_id,
        title=title,
        description=description,
        category=category,
        price_offer=price_offer,
        schedule_description=schedule_description,
        allow_counter_offers=allow_counter_offers,
        photos=photos or [],
        status=JobStatus.OPEN,
    )
    db.add(job)
    await db.flush()
    return job


async def get_job(
    db: AsyncSession,
    job_id: uuid.UUID,
    *,
    for_update: bool = False,
    with_owner: bool = False,
    with_bids: bool = False,
) -> Job:
    query = select(Job).where(Job.job_id == job_id)
    if with_owner:
        query = query.options(selectinload(Job.owner))
    if with_bids:
        query = query.options(selectinload(Job.bids).selectinload(Bid.pro))
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    job = result.scalar_one_or_none()
    if job is None:
        raise NotFound("Job not found")
    return job


async def list_jobs(
    db: AsyncSession,
    *,
    status: JobStatus | None = None,
    category: JobCategory | None = None,
    owner_id: uuid.UUID | None = None,
    with_bids: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[Job]:
    """Jobs matching the filter, newest first, with the owner profile loaded."""
    query = select(Job).options(selectinload(Job.owner))
    if status is not None:
        query = query.where(Job.status == status)
    if category is not None:
        query = query.where(Job.category == category)
    if owner_id is not None:
        query = query.where(Job.owner_id == owner_id)
    if with_bids:
        query = query.options(selectinload(Job.bids).selectinload(Bid.pro))
    query = (
        query.order_by(Job.created_at.desc(), Job.job_id)
        .limit(limit)
        .offset(offset)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def count_bids(db: AsyncSession, job_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    if not job_ids:
        return {}
    result = await db.execute(
        select(Bid.job_id, func.count())
        .where(Bid.job_id.in_(job_ids))
        .group_by(Bid.job_id)
    )
    return {job_id: count for job_id, count in result.all()}


async def update_job_status(
    db: AsyncSession, job_id: uuid.UUID, status: JobStatus
) -> Job:
    """Compare-and-set the job status; only legal predecessors may move to ``status``."""
    result = await db.execute(
        update(Job)
        .where(Job.job_id == job_id, Job.status.in_(_predecessors(JOB_TRANSITIONS, status)))
        .values(status=status)
        .returning(Job.job_id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        job = await get_job(db, job_id)
        raise InvalidState(
            f"Cannot move job from {job.status.value} to {status.value}"
        )
    return await get_job(db, job_id)


# =============================================================================
# Bids
# =============================================================================

async def create_bid(
    db: AsyncSession,
    *,
    job_id: uuid.UUID,
    pro_id: uuid.UUID,
    price: Decimal,
    message: str | None = None,
) -> Bid:
    """Insert a pending bid. The (job, pro) unique constraint is the real guard."""
    bid = Bid(
        bid_id=uuid.uuid4(),
        job_id=job_id,
        pro_id=pro_id,
        price=price,
        message=message,
        status=BidStatus.PENDING,
    )
    db.add(bid)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        if _is_unique_violation(exc):
            logger.warning("Duplicate bid rejected by store: job=%s pro=%s", job_id, pro_id)
            raise DuplicateBid() from exc
        raise
    return bid


async def get_bid(db: AsyncSession, bid_id: uuid.UUID) -> Bid:
    result = await db.execute(
        select(Bid)
        .where(Bid.bid_id == bid_id)
        .execution_options(populate_existing=True)
    )
    bid = result.scalar_one_or_none()
    if bid is None:
        raise NotFound("Bid not found")
    return bid


async def get_bid_for_pro(
    db: AsyncSession, job_id: uuid.UUID, pro_id: uuid.UUID
) -> Bid | None:
    result = await db.execute(
        select(Bid)
        .where(Bid.job_id == job_id, Bid.pro_id == pro_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_bids_for_job(db: AsyncSession, job_id: uuid.UUID) -> list[Bid]:
    result = await db.execute(
        select(Bid)
        .where(Bid.job_id == job_id)
        .order_by(Bid.created_at.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def update_bid_status(
    db: AsyncSession, bid_id: uuid.UUID, status: BidStatus
) -> Bid:
    """Compare-and-set the bid status; terminal statuses never change."""
    result = await db.execute(
        update(Bid)
        .where(Bid.bid_id == bid_id, Bid.status.in_(_predecessors(BID_TRANSITIONS, status)))
        .values(status=status)
        .returning(Bid.bid_id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        bid = await get_bid(db, bid_id)
        raise InvalidState(
            f"Cannot move bid from {bid.status.value} to {status.value}"
        )
    return await get_bid(db, bid_id)


async def reject_pending_bids(
    db: AsyncSession, job_id: uuid.UUID, *, exclude_bid_id: uuid.UUID
) -> int:
    """Reject every other pending bid on a job. Returns how many were rejected."""
    result = await db.execute(
        update(Bid)
        .where(
            Bid.job_id == job_id,
            Bid.bid_id != exclude_bid_id,
            Bid.status == BidStatus.PENDING,
        )
        .values(status=BidStatus.REJECTED)
        .returning(Bid.bid_id)
        .execution_options(synchronize_session=False)
    )
    return len(result.scalars().all())

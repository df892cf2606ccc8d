"""Job posting, feeds and completion."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace import store
from marketplace.auth.middleware import Caller
from marketplace.config import settings
from marketplace.errors import AuthorizationError
from marketplace.models.bid import BidStatus
from marketplace.models.job import Job, JobCategory, JobStatus
from marketplace.schemas.job import JobCreate

logger = logging.getLogger(__name__)


def _assert_owner(job: Job, caller: Caller) -> None:
    if job.owner_id != caller.profile_id:
        raise AuthorizationError("Only the job owner can perform this action")


async def create_job(db: AsyncSession, caller: Caller, data: JobCreate) -> Job:
    """Post a new Open job owned by the caller. No bids are created."""
    job = await store.create_job(
        db,
        owner_id=caller.profile_id,
        title=data.title,
        description=data.description,
        category=data.category,
        price_offer=data.price_offer,
        schedule_description=data.schedule_description,
        allow_counter_offers=data.allow_counter_offers,
        photos=data.photos,
    )
    await db.commit()
    await db.refresh(job)
    logger.info(
        "Job %s posted by %s (%s, %s)",
        job.job_id, caller.profile_id, job.category.value, job.price_offer,
    )
    return job


async def get_job(db: AsyncSession, job_id: uuid.UUID) -> tuple[Job, int]:
    """Public job detail: the job with its owner loaded, and its bid count."""
    job = await store.get_job(db, job_id, with_owner=True)
    counts = await store.count_bids(db, [job.job_id])
    return job, counts.get(job.job_id, 0)


async def browse_jobs(
    db: AsyncSession,
    status: JobStatus | None = None,
    category: JobCategory | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[tuple[Job, int]]:
    """Job feed, newest first, each paired with its bid count."""
    jobs = await store.list_jobs(
        db,
        status=status,
        category=category,
        limit=min(limit or settings.feed_page_size, settings.feed_max_page_size),
        offset=offset,
    )
    counts = await store.count_bids(db, [j.job_id for j in jobs])
    return [(job, counts.get(job.job_id, 0)) for job in jobs]


async def list_my_jobs(
    db: AsyncSession,
    caller: Caller,
    limit: int | None = None,
    offset: int = 0,
) -> list[Job]:
    """The caller's own jobs with nested bids and bidder profiles."""
    return await store.list_jobs(
        db,
        owner_id=caller.profile_id,
        with_bids=True,
        limit=min(limit or settings.feed_page_size, settings.feed_max_page_size),
        offset=offset,
    )


async def complete_job(db: AsyncSession, job_id: uuid.UUID, caller: Caller) -> Job:
    """Owner marks an In Progress job Completed and credits the accepted pro."""
    job = await store.get_job(db, job_id, for_update=True)
    _assert_owner(job, caller)

    job = await store.update_job_status(db, job_id, JobStatus.COMPLETED)

    accepted = [
        b for b in await store.list_bids_for_job(db, job_id)
        if b.status == BidStatus.ACCEPTED
    ]
    if accepted:
        await store.increment_completed_jobs(db, accepted[0].pro_id)

    await db.commit()
    await db.refresh(job)
    logger.info("Job %s completed by owner %s", job_id, caller.profile_id)
    return job

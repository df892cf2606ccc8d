"""Job posting, feed and bidding endpoints."""

import uuid

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import Caller, verify_request
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.models.job import Job, JobCategory, JobStatus
from marketplace.redis import get_redis
from marketplace.schemas.bid import BidCreate, BidResponse
from marketplace.schemas.job import JobCreate, JobFeedItem, JobResponse, JobWithBids
from marketplace.schemas.profile import ProfileSummary
from marketplace.services import bid as bid_service
from marketplace.services import job as job_service
from marketplace.services.inflight import inflight_guard

router = APIRouter(tags=["jobs"])


def _feed_item(job: Job, bid_count: int) -> JobFeedItem:
    return JobFeedItem(
        **JobResponse.model_validate(job).model_dump(),
        owner=ProfileSummary.model_validate(job.owner),
        bid_count=bid_count,
    )


@router.get("/categories", response_model=list[str], dependencies=[Depends(check_rate_limit)])
async def list_categories() -> list[str]:
    return [c.value for c in JobCategory]


@router.post("/jobs", response_model=JobResponse, status_code=201, dependencies=[Depends(check_rate_limit)])
async def create_job(
    data: JobCreate,
    auth: Caller = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Post a new job."""
    job = await job_service.create_job(db, auth, data)
    return JobResponse.model_validate(job)


@router.get("/jobs", response_model=list[JobFeedItem], dependencies=[Depends(check_rate_limit)])
async def browse_jobs(
    status: JobStatus = Query(JobStatus.OPEN),
    category: JobCategory | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[JobFeedItem]:
    """Job feed, newest first. Open jobs unless another status is asked for."""
    rows = await job_service.browse_jobs(db, status, category, limit, offset)
    return [_feed_item(job, count) for job, count in rows]


@router.get("/jobs/mine", response_model=list[JobWithBids], dependencies=[Depends(check_rate_limit)])
async def list_my_jobs(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    auth: Caller = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> list[JobWithBids]:
    """The caller's posted jobs with every bid received."""
    jobs = await job_service.list_my_jobs(db, auth, limit, offset)
    return [JobWithBids.model_validate(j) for j in jobs]


@router.get("/jobs/{job_id}", response_model=JobFeedItem, dependencies=[Depends(check_rate_limit)])
async def get_job(
    job_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> JobFeedItem:
    job, bid_count = await job_service.get_job(db, job_id)
    return _feed_item(job, bid_count)


@router.post("/jobs/{job_id}/complete", response_model=JobResponse, dependencies=[Depends(check_rate_limit)])
async def complete_job(
    job_id: uuid.UUID,
    auth: Caller = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Owner marks an in-progress job completed."""
    job = await job_service.complete_job(db, job_id, auth)
    return JobResponse.model_validate(job)


@router.post(
    "/jobs/{job_id}/bids",
    response_model=BidResponse,
    status_code=201,
    dependencies=[Depends(check_rate_limit)],
)
async def submit_bid(
    job_id: uuid.UUID,
    data: BidCreate,
    auth: Caller = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> BidResponse:
    """Pro accepts at the listed price (no price) or counter-offers."""
    async with inflight_guard(redis, auth.profile_id, "bid", job_id):
        bid = await bid_service.submit_bid(db, job_id, auth, data)
    return BidResponse.model_validate(bid)


@router.get("/jobs/{job_id}/bids/mine", response_model=BidResponse, dependencies=[Depends(check_rate_limit)])
async def get_my_bid(
    job_id: uuid.UUID,
    auth: Caller = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> BidResponse:
    bid = await bid_service.get_own_bid(db, job_id, auth)
    return BidResponse.model_validate(bid)

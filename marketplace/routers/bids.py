"""Bid resolution endpoints (job owner only)."""

import uuid

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import Caller, verify_request
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.redis import get_redis
from marketplace.schemas.bid import BidResponse
from marketplace.schemas.job import JobWithBids
from marketplace.services import bid as bid_service
from marketplace.services.inflight import inflight_guard

router = APIRouter(prefix="/bids", tags=["bids"])


@router.post("/{bid_id}/approve", response_model=JobWithBids, dependencies=[Depends(check_rate_limit)])
async def approve_bid(
    bid_id: uuid.UUID,
    auth: Caller = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> JobWithBids:
    """Accept this bid, reject the others and start the job."""
    async with inflight_guard(redis, auth.profile_id, "resolve", bid_id):
        job = await bid_service.approve_bid(db, bid_id, auth)
    return JobWithBids.model_validate(job)


@router.post("/{bid_id}/decline", response_model=BidResponse, dependencies=[Depends(check_rate_limit)])
async def decline_bid(
    bid_id: uuid.UUID,
    auth: Caller = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> BidResponse:
    """Reject this bid. Repeating the call is harmless."""
    async with inflight_guard(redis, auth.profile_id, "resolve", bid_id):
        bid = await bid_service.decline_bid(db, bid_id, auth)
    return BidResponse.model_validate(bid)

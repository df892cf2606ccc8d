"""Bid submission and resolution.

Approving a bid runs the approval cascade as a single transaction, always in
the same order:

    1. target bid      Pending -> Accepted
    2. sibling bids    Pending -> Rejected
    3. parent job      Open    -> In Progress

The job row is locked first, so two approvals racing on the same job
serialise and the loser sees a resolved bid (InvalidState). Transient store
failures roll back and retry the whole cascade a bounded number of times;
when the budget runs out the caller gets PartialFailure and must re-read the
job before retrying.
"""

import asyncio
import logging
import uuid

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace import store
from marketplace.auth.middleware import Caller
from marketplace.config import settings
from marketplace.errors import (
    AuthorizationError,
    CounterOffersNotAllowed,
    DuplicateBid,
    InvalidState,
    MarketplaceError,
    NotFound,
    PartialFailure,
)
from marketplace.models.bid import Bid, BidStatus
from marketplace.models.job import Job, JobStatus
from marketplace.models.profile import UserRole
from marketplace.schemas.bid import BidCreate

logger = logging.getLogger(__name__)

ACCEPT_MESSAGE = "Accepted at posted price"
COUNTER_MESSAGE = "Counter offer submitted"


def _is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, (OperationalError, InterfaceError)) or exc.connection_invalidated


def _assert_owner(job: Job, caller: Caller) -> None:
    if job.owner_id != caller.profile_id:
        raise AuthorizationError("Only the job owner can resolve its bids")


async def submit_bid(
    db: AsyncSession, job_id: uuid.UUID, caller: Caller, data: BidCreate
) -> Bid:
    """Pro accepts a job at its listed price or makes a counter-offer."""
    caller.require_role(UserRole.PRO)

    # Fast path only; the unique constraint in the store is the real guard
    if await store.get_bid_for_pro(db, job_id, caller.profile_id) is not None:
        raise DuplicateBid()

    # Locked like an approval, so a bid and an approval on one job serialise
    # and the insert below never lands after the siblings were rejected
    job = await store.get_job(db, job_id, for_update=True)
    if job.owner_id == caller.profile_id:
        raise AuthorizationError("Cannot bid on your own job")
    if job.status != JobStatus.OPEN:
        raise InvalidState(f"Job is {job.status.value}; bids are only accepted while Open")

    price = job.price_offer if data.price is None else data.price
    is_counter = price != job.price_offer
    if is_counter and not job.allow_counter_offers:
        raise CounterOffersNotAllowed()

    bid = await store.create_bid(
        db,
        job_id=job_id,
        pro_id=caller.profile_id,
        price=price,
        message=data.message or (COUNTER_MESSAGE if is_counter else ACCEPT_MESSAGE),
    )
    await db.commit()
    await db.refresh(bid)
    logger.info(
        "Bid %s on job %s by %s at %s (%s)",
        bid.bid_id, job_id, caller.profile_id, price, "counter" if is_counter else "accept",
    )
    return bid


async def get_own_bid(db: AsyncSession, job_id: uuid.UUID, caller: Caller) -> Bid:
    """The caller's bid on a job, if any."""
    bid = await store.get_bid_for_pro(db, job_id, caller.profile_id)
    if bid is None:
        raise NotFound("You have not bid on this job")
    return bid


async def decline_bid(db: AsyncSession, bid_id: uuid.UUID, caller: Caller) -> Bid:
    """Owner rejects one bid. Declining an already rejected bid is a no-op."""
    bid = await store.get_bid(db, bid_id)
    job = await store.get_job(db, bid.job_id)
    _assert_owner(job, caller)

    if bid.status == BidStatus.REJECTED:
        return bid

    try:
        bid = await store.update_bid_status(db, bid_id, BidStatus.REJECTED)
    except InvalidState:
        await db.rollback()
        bid = await store.get_bid(db, bid_id)
        if bid.status == BidStatus.REJECTED:
            return bid
        raise InvalidState(f"Cannot decline a bid that is {bid.status.value}")

    await db.commit()
    await db.refresh(bid)
    logger.info("Bid %s on job %s declined", bid_id, job.job_id)
    return bid


async def _load_for_approval(
    db: AsyncSession, bid_id: uuid.UUID, caller: Caller
) -> tuple[Bid, Job]:
    bid = await store.get_bid(db, bid_id)
    job = await store.get_job(db, bid.job_id, for_update=True)
    _assert_owner(job, caller)
    # Re-read under the job lock so a concurrent resolution is visible
    return await store.get_bid(db, bid_id), job


def _already_applied(bid: Bid, job: Job) -> bool:
    return bid.status == BidStatus.ACCEPTED and job.status != JobStatus.OPEN


async def _apply_cascade(db: AsyncSession, bid: Bid, job: Job) -> int:
    if bid.status != BidStatus.PENDING:
        raise InvalidState(f"Bid is already {bid.status.value}")
    if job.status != JobStatus.OPEN:
        raise InvalidState(f"Job is already {job.status.value}")

    await store.update_bid_status(db, bid.bid_id, BidStatus.ACCEPTED)
    rejected = await store.reject_pending_bids(db, job.job_id, exclude_bid_id=bid.bid_id)
    await store.update_job_status(db, job.job_id, JobStatus.IN_PROGRESS)
    return rejected


async def approve_bid(db: AsyncSession, bid_id: uuid.UUID, caller: Caller) -> Job:
    """Accept one bid, reject its siblings and start the job, all or nothing.

    Returns the job with every bid loaded.
    """
    attempts = max(1, settings.approval_max_attempts)
    commit_outcome_unknown = False
    last_error: DBAPIError | None = None

    for attempt in range(1, attempts + 1):
        try:
            bid, job = await _load_for_approval(db, bid_id, caller)
            if commit_outcome_unknown and _already_applied(bid, job):
                logger.info("Approval of bid %s found already applied on retry", bid_id)
                return await store.get_job(db, job.job_id, with_bids=True)
            rejected = await _apply_cascade(db, bid, job)
        except MarketplaceError:
            await db.rollback()
            raise
        except DBAPIError as exc:
            await db.rollback()
            if not _is_transient(exc):
                raise
            last_error = exc
        else:
            try:
                await db.commit()
            except DBAPIError as exc:
                await db.rollback()
                if not _is_transient(exc):
                    raise
                # The commit may have landed even though we saw an error
                commit_outcome_unknown = True
                last_error = exc
            else:
                logger.info(
                    "Bid %s accepted; %d sibling bid(s) rejected; job %s in progress",
                    bid_id, rejected, job.job_id,
                )
                return await store.get_job(db, job.job_id, with_bids=True)

        logger.warning(
            "Approval of bid %s hit a transient store error (attempt %d/%d): %s",
            bid_id, attempt, attempts, last_error,
        )
        if attempt < attempts:
            await asyncio.sleep(settings.approval_retry_backoff_seconds * 2 ** (attempt - 1))

    logger.error("Approval of bid %s abandoned after %d attempts", bid_id, attempts)
    raise PartialFailure() from last_error

"""Pydantic v2 schemas for Job endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketplace.config import settings
from marketplace.models.job import JobCategory, JobStatus
from marketplace.schemas.bid import BidWithPro
from marketplace.schemas.profile import ProfileSummary


class JobCreate(BaseModel):
    """A client posts a job.

    ``price_offer`` is currency-agnostic. ``allow_counter_offers`` decides
    whether pros may bid a price other than the listed one.
    """
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=8192)
    category: JobCategory
    price_offer: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    schedule_description: str | None = Field(None, max_length=1024)
    allow_counter_offers: bool = False
    photos: list[str] = Field(default_factory=list, max_length=10)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("schedule_description")
    @classmethod
    def empty_schedule_is_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("price_offer")
    @classmethod
    def validate_price(cls, v: Decimal) -> Decimal:
        if v > settings.max_price:
            raise ValueError(f"Maximum price offer is {settings.max_price}")
        return v

    @field_validator("photos")
    @classmethod
    def validate_photos(cls, v: list[str]) -> list[str]:
        for url in v:
            if not url.startswith(("http://", "https://")) or len(url) > 2048:
                raise ValueError("photos must be http(s) URLs of at most 2048 chars")
        return v


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    category: JobCategory
    photos: list[str] | None = None
    price_offer: Decimal
    schedule_description: str | None
    allow_counter_offers: bool
    status: JobStatus
    created_at: datetime
    updated_at: datetime


class JobFeedItem(JobResponse):
    """Job as shown in public feeds: owner card plus how many bids it drew."""
    owner: ProfileSummary
    bid_count: int = 0


class JobWithBids(JobResponse):
    """Owner's view of a job with every bid and the bidding pro."""
    bids: list[BidWithPro] = []

"""Pydantic v2 schemas for Bid endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketplace.config import settings
from marketplace.models.bid import BidStatus
from marketplace.schemas.profile import ProfileSummary


class BidCreate(BaseModel):
    """Pro bids on a job.

    Omit ``price`` to accept the job at its listed price; any other price is a
    counter-offer and needs the job to allow counter-offers.
    """
    price: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    message: str | None = Field(None, max_length=2048)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v > settings.max_price:
            raise ValueError(f"Maximum price is {settings.max_price}")
        return v


class BidResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bid_id: uuid.UUID
    job_id: uuid.UUID
    pro_id: uuid.UUID
    price: Decimal
    status: BidStatus
    message: str | None
    created_at: datetime
    updated_at: datetime


class BidWithPro(BidResponse):
    pro: ProfileSummary

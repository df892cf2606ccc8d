"""Pydantic v2 schemas for Profile endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketplace.models.job import JobCategory
from marketplace.models.profile import UserRole

_PRO_ONLY_FIELDS = ("specializations", "bio")


def _validate_avatar_url(url: str | None) -> str | None:
    if url is None:
        return url
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError("avatar_url must be an http(s) URL")
    return url


class ProfileCreate(BaseModel):
    public_key: str = Field(..., min_length=64, max_length=128, description="Ed25519 public key (hex)")
    full_name: str = Field(..., min_length=1, max_length=128)
    role: UserRole
    avatar_url: str | None = Field(None, max_length=2048)
    specializations: list[JobCategory] | None = Field(None, max_length=len(JobCategory))
    bio: str | None = Field(None, max_length=4096)

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("full_name must not be blank")
        return v

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar(cls, v: str | None) -> str | None:
        return _validate_avatar_url(v)

    def pro_fields_set(self) -> list[str]:
        return [f for f in _PRO_ONLY_FIELDS if getattr(self, f) is not None]


class ProfileUpdate(BaseModel):
    """Mutable profile fields. Role is fixed at signup and cannot be sent."""

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(None, min_length=1, max_length=128)
    avatar_url: str | None = Field(None, max_length=2048)
    specializations: list[JobCategory] | None = Field(None, max_length=len(JobCategory))
    bio: str | None = Field(None, max_length=4096)

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar(cls, v: str | None) -> str | None:
        return _validate_avatar_url(v)

    def pro_fields_set(self) -> list[str]:
        return [f for f in _PRO_ONLY_FIELDS if getattr(self, f) is not None]


class ProfileSummary(BaseModel):
    """Public card shown next to jobs and bids."""

    model_config = ConfigDict(from_attributes=True)

    profile_id: uuid.UUID
    full_name: str
    role: UserRole
    avatar_url: str | None = None
    completed_jobs_count: int = 0
    average_rating: Decimal | None = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    profile_id: uuid.UUID
    public_key: str
    full_name: str
    role: UserRole
    avatar_url: str | None
    specializations: list[JobCategory] | None = None
    completed_jobs_count: int
    average_rating: Decimal | None
    bio: str | None
    created_at: datetime
    updated_at: datetime

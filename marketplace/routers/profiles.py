"""Profile registration and lookup endpoints."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import Caller, verify_request
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.schemas.profile import ProfileCreate, ProfileResponse, ProfileUpdate
from marketplace.services import profile as profile_service

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("", response_model=ProfileResponse, status_code=201, dependencies=[Depends(check_rate_limit)])
async def register_profile(
    data: ProfileCreate,
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Sign up as a client or a pro. The role cannot change afterwards."""
    profile = await profile_service.register_profile(db, data)
    return ProfileResponse.model_validate(profile)


@router.get("/me", response_model=ProfileResponse, dependencies=[Depends(check_rate_limit)])
async def get_my_profile(auth: Caller = Depends(verify_request)) -> ProfileResponse:
    return ProfileResponse.model_validate(auth.profile)


@router.get("/{profile_id}", response_model=ProfileResponse, dependencies=[Depends(check_rate_limit)])
async def get_profile(
    profile_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Public profile, including pro stats."""
    profile = await profile_service.get_profile(db, profile_id)
    return ProfileResponse.model_validate(profile)


@router.patch("/{profile_id}", response_model=ProfileResponse, dependencies=[Depends(check_rate_limit)])
async def update_profile(
    profile_id: uuid.UUID,
    data: ProfileUpdate,
    auth: Caller = Depends(verify_request),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Update own profile."""
    profile = await profile_service.update_profile(db, profile_id, auth, data)
    return ProfileResponse.model_validate(profile)

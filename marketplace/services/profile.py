"""Profile business logic."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace import store
from marketplace.auth.middleware import Caller
from marketplace.errors import AuthorizationError, ProfileExists, ValidationError
from marketplace.models.profile import Profile, UserRole
from marketplace.schemas.profile import ProfileCreate, ProfileUpdate

logger = logging.getLogger(__name__)


async def register_profile(db: AsyncSession, data: ProfileCreate) -> Profile:
    """Create a profile. Role is fixed here for the lifetime of the account."""
    if data.role != UserRole.PRO and data.pro_fields_set():
        raise ValidationError(
            data.pro_fields_set(), "Only pro profiles can set specializations or bio"
        )

    if await store.get_profile_by_public_key(db, data.public_key) is not None:
        raise ProfileExists()

    profile = await store.create_profile(
        db,
        public_key=data.public_key,
        full_name=data.full_name,
        role=data.role,
        avatar_url=data.avatar_url,
        specializations=[c.value for c in data.specializations] if data.specializations else None,
        bio=data.bio,
    )
    await db.commit()
    await db.refresh(profile)
    logger.info("Profile %s registered as %s", profile.profile_id, profile.role.value)
    return profile


async def get_profile(db: AsyncSession, profile_id: uuid.UUID) -> Profile:
    return await store.get_profile(db, profile_id)


async def update_profile(
    db: AsyncSession, profile_id: uuid.UUID, caller: Caller, data: ProfileUpdate
) -> Profile:
    """Owner-only update of mutable fields."""
    if caller.profile_id != profile_id:
        raise AuthorizationError("Can only update own profile")

    profile = await store.get_profile(db, profile_id)
    if not profile.is_pro and data.pro_fields_set():
        raise ValidationError(
            data.pro_fields_set(), "Only pro profiles can set specializations or bio"
        )

    update_data = data.model_dump(exclude_unset=True)
    if "full_name" in update_data:
        name = (update_data["full_name"] or "").strip()
        if not name:
            raise ValidationError(["full_name"])
        update_data["full_name"] = name
    if "specializations" in update_data and update_data["specializations"] is not None:
        update_data["specializations"] = [c.value for c in update_data["specializations"]]

    for field, value in update_data.items():
        setattr(profile, field, value)

    await db.commit()
    await db.refresh(profile)
    return profile

"""Signed-request authentication dependency for FastAPI."""

import uuid
from dataclasses import dataclass

import redis.asyncio as aioredis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace import store
from marketplace.auth.signing import is_timestamp_valid, parse_authorization, verify_signature
from marketplace.config import settings
from marketplace.database import get_db
from marketplace.errors import AuthenticationRequired, AuthorizationError, NotFound
from marketplace.models.profile import Profile, UserRole
from marketplace.redis import get_redis


@dataclass(frozen=True)
class Caller:
    """Verified identity handed explicitly to every lifecycle operation."""

    profile_id: uuid.UUID
    role: UserRole
    profile: Profile

    def require_role(self, role: UserRole) -> None:
        if self.role != role:
            raise AuthorizationError(f"Only {role.value} accounts can perform this action")


async def verify_request(
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> Caller:
    """Verify the Ed25519 signature on an incoming request."""
    auth_header = request.headers.get("Authorization")
    timestamp = request.headers.get("X-Timestamp")
    nonce = request.headers.get("X-Nonce")

    if not auth_header or not timestamp:
        raise AuthenticationRequired("Missing authentication headers")

    parsed = parse_authorization(auth_header)
    if parsed is None:
        raise AuthenticationRequired("Malformed authorization header")
    profile_id, signature = parsed

    if not is_timestamp_valid(timestamp, settings.signature_max_age_seconds):
        raise AuthenticationRequired("Request timestamp expired")

    # Replay protection
    if nonce:
        fresh = await redis.set(f"nonce:{nonce}", "1", nx=True, ex=settings.nonce_ttl_seconds)
        if not fresh:
            raise AuthenticationRequired("Nonce already used")

    try:
        profile = await store.get_profile(db, profile_id)
    except NotFound:
        raise AuthenticationRequired("Unknown profile")

    body = await request.body()
    if not verify_signature(
        profile.public_key, signature, timestamp, request.method, request.url.path, body
    ):
        raise AuthenticationRequired("Invalid signature")

    return Caller(profile_id=profile.profile_id, role=profile.role, profile=profile)

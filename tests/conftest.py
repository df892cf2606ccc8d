"""Test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (or whatever
``settings.test_database_url`` points at) with tables created from the models,
and an AsyncMock standing in for Redis. The mock keeps SET NX keys in a dict
so nonce replay and the in-flight guard behave as they would against a server.
"""

import json
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace.auth.middleware import Caller
from marketplace.auth.signing import AUTH_SCHEME, generate_keypair, generate_nonce, sign_request
from marketplace.config import settings
from marketplace.database import Base, get_db
from marketplace.main import app
from marketplace.models.bid import Bid  # noqa: F401
from marketplace.models.job import Job  # noqa: F401
from marketplace.models.profile import Profile, UserRole
from marketplace.redis import get_redis
from marketplace.services.inflight import _RELEASE_SCRIPT


@pytest.fixture(autouse=True)
def _isolate_settings() -> None:
    """Snapshot settings before each test and restore after to prevent mutation bleed."""
    original = settings.model_dump()
    object.__setattr__(settings, "approval_retry_backoff_seconds", 0)
    yield  # type: ignore[misc]
    for key, value in original.items():
        object.__setattr__(settings, key, value)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    url = make_url(settings.test_database_url)
    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(
            url, poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
    else:
        engine = create_async_engine(url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_redis() -> AsyncMock:
    """AsyncMock Redis with working SET NX/EX and lock-release semantics.

    ``fake_redis.bucket_result`` is what the token-bucket script returns:
    ``[allowed, remaining, retry_after]``.
    """
    redis = AsyncMock()
    redis.data = {}
    redis.bucket_result = [1, 29, 0]

    async def _set(key: str, value: Any, nx: bool = False, ex: int | None = None) -> bool | None:
        if nx and key in redis.data:
            return None
        redis.data[key] = value
        return True

    async def _eval(script: str, numkeys: int, *args: Any) -> Any:
        if script == _RELEASE_SCRIPT:
            key, token = args[0], args[1]
            if redis.data.get(key) == token:
                del redis.data[key]
                return 1
            return 0
        return list(redis.bucket_result)

    redis.set.side_effect = _set
    redis.eval.side_effect = _eval
    return redis


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    fake_redis: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client with overridden DB and Redis dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> AsyncGenerator[AsyncMock, None]:
        yield fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class Account:
    """A registered profile and the private key that signs its requests."""

    def __init__(self, profile_id: str, private_key: str, role: str) -> None:
        self.profile_id = profile_id
        self.private_key = private_key
        self.role = role


def make_profile_data(
    role: str = "client", public_key: str | None = None, **overrides: Any
) -> dict:
    """Factory for profile registration payload."""
    if public_key is None:
        _, public_key = generate_keypair()
    data = {
        "public_key": public_key,
        "full_name": "Test Pro" if role == "pro" else "Test Client",
        "role": role,
    }
    if role == "pro":
        data["specializations"] = ["Plumbing", "Painting"]
        data["bio"] = "Ten years fixing leaks"
    data.update(overrides)
    return data


def make_job_data(**overrides: Any) -> dict:
    data = {
        "title": "Fix leaking kitchen tap",
        "description": "Tap drips constantly, washer probably gone.",
        "category": "Plumbing",
        "price_offer": "80.00",
        "schedule_description": "Weekday evenings",
        "allow_counter_offers": True,
    }
    data.update(overrides)
    return data


def encode_body(body: dict | list | None) -> bytes:
    if body is None:
        return b""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode()


def make_auth_headers(
    profile_id: str,
    private_key_hex: str,
    method: str,
    path: str,
    body: bytes | dict | list | None = None,
) -> dict[str, str]:
    """Build signed auth headers for a request."""
    body_bytes = body if isinstance(body, bytes) else encode_body(body)
    timestamp = datetime.now(UTC).isoformat()
    signature = sign_request(private_key_hex, timestamp, method, path, body_bytes)
    return {
        "Authorization": f"{AUTH_SCHEME} {profile_id}:{signature}",
        "X-Timestamp": timestamp,
        "X-Nonce": generate_nonce(),
    }


async def signed(
    client: AsyncClient,
    account: Account,
    method: str,
    path: str,
    body: dict | list | None = None,
    params: dict | None = None,
) -> Response:
    """Send a request signed by ``account``. The body is sent exactly as signed."""
    body_bytes = encode_body(body)
    headers = make_auth_headers(account.profile_id, account.private_key, method, path, body_bytes)
    if body is not None:
        headers["Content-Type"] = "application/json"
    return await client.request(method, path, content=body_bytes, headers=headers, params=params)


async def register(client: AsyncClient, role: str = "client", **overrides: Any) -> Account:
    priv, pub = generate_keypair()
    resp = await client.post("/profiles", json=make_profile_data(role, pub, **overrides))
    assert resp.status_code == 201, resp.text
    return Account(resp.json()["profile_id"], priv, role)


async def post_job(client: AsyncClient, owner: Account, **overrides: Any) -> dict:
    resp = await signed(client, owner, "POST", "/jobs", make_job_data(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def place_bid(
    client: AsyncClient, pro: Account, job_id: str, **body: Any
) -> Response:
    return await signed(client, pro, "POST", f"/jobs/{job_id}/bids", body)


async def make_caller(
    db: AsyncSession, role: UserRole = UserRole.CLIENT, name: str = "Direct Caller"
) -> Caller:
    """Create a profile straight through the store and wrap it as a Caller."""
    from marketplace import store

    _, pub = generate_keypair()
    profile: Profile = await store.create_profile(
        db, public_key=pub, full_name=name, role=role
    )
    await db.commit()
    return Caller(profile_id=profile.profile_id, role=profile.role, profile=profile)

"""Double-submit guard for lifecycle actions.

A short-lived Redis key (``SET NX EX``) marks an action as in flight for a
(caller, action, resource) triple. A second attempt while the first is still
running fails fast with ActionInProgress; the first attempt is never
interrupted, and the key expires on its own if a worker dies mid-action.
"""

import logging
import secrets
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from marketplace.config import settings
from marketplace.errors import ActionInProgress

logger = logging.getLogger(__name__)

# Delete only if we still own the lock (it may have expired and been re-taken)
_RELEASE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


def inflight_key(caller_id: uuid.UUID, action: str, resource_id: uuid.UUID) -> str:
    return f"inflight:{caller_id}:{action}:{resource_id}"


@asynccontextmanager
async def inflight_guard(
    redis: aioredis.Redis,
    caller_id: uuid.UUID,
    action: str,
    resource_id: uuid.UUID,
) -> AsyncIterator[None]:
    key = inflight_key(caller_id, action, resource_id)
    token = secrets.token_hex(8)
    acquired = await redis.set(key, token, nx=True, ex=settings.inflight_lock_ttl_seconds)
    if not acquired:
        logger.info("Rejected concurrent %s by %s on %s", action, caller_id, resource_id)
        raise ActionInProgress()
    try:
        yield
    finally:
        await redis.eval(_RELEASE_SCRIPT, 1, key, token)

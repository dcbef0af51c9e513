import json
import logging
from typing import Any, Optional
from redis.asyncio import Redis
from cinema_booking.core.config import settings


def idempotency_key(scope: str, key: str) -> str:
    return f"idempotency:{scope}:{key}"


async def check_idempotency(redis: Redis, scope: str, key: Optional[str]) -> Optional[dict[str, Any]]:
    """Return the cached response for a repeated request, or None."""
    if not key:
        return None
    cached = await redis.get(idempotency_key(scope, key))
    if cached:
        logging.info(f"replaying cached response for idempotency key {key}")
        return json.loads(cached)
    return None


async def save_idempotency(redis: Redis, scope: str, key: Optional[str], response: dict[str, Any]) -> None:
    if not key:
        return
    await redis.set(idempotency_key(scope, key), json.dumps(response, default=str),
                    ex=settings.IDEMPOTENCY_TTL_SECONDS)

"""
Replay protection for client-retried requests.

A caller sends an ``Idempotency-Key``; the first request claims the key,
runs, and stores its response. Retries with the same key get the stored
response back instead of executing again.
"""

import json

PENDING = "__pending__"


def _key(scope: str, idempotency_key: str) -> str:
    return f"idempotency:{scope}:{idempotency_key}"


async def claim(redis_client, scope: str, idempotency_key: str, ttl_seconds: int) -> bool:
    """True if this caller now owns the key; False if it was already claimed."""
    ok = await redis_client.set(_key(scope, idempotency_key), PENDING, nx=True, ex=ttl_seconds)
    return bool(ok)


async def get_response(redis_client, scope: str, idempotency_key: str) -> dict | str | None:
    """
    Stored response for a key, ``PENDING`` if the first request is still
    running, or None if the key was never claimed.
    """
    raw = await redis_client.get(_key(scope, idempotency_key))
    if raw is None:
        return None
    if raw == PENDING:
        return PENDING
    try:
        return json.loads(raw)
    except ValueError:
        return None


async def store_response(redis_client, scope: str, idempotency_key: str, payload: dict, ttl_seconds: int):
    await redis_client.set(_key(scope, idempotency_key), json.dumps(payload), ex=ttl_seconds)


async def release(redis_client, scope: str, idempotency_key: str):
    await redis_client.delete(_key(scope, idempotency_key))

from datetime import datetime

from .clock import as_utc

# compare-and-delete in one server-side step
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def slot_key(resource_id: str, start_at: datetime) -> str:
    """slot:{resource}:{start} with start as second-precision UTC ISO-8601."""
    return f"slot:{resource_id}:{as_utc(start_at).strftime('%Y-%m-%dT%H:%M:%SZ')}"


class SlotLockStore:
    """
    Redis-backed slot locks (shared across service instances).

    Only exact keys are known here; range overlap lives in the record store.
    """

    def __init__(self, redis_client):
        self.redis = redis_client
        self._release_script = redis_client.register_script(RELEASE_SCRIPT)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        res = await self.redis.set(key, value, nx=True, ex=ttl_seconds)
        return bool(res)

    async def get(self, key: str) -> str | None:
        return await self.redis.get(key)

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)

    async def release(self, key: str, token: str | None = None) -> bool:
        """
        Delete the lock. With a token, only delete it while it still carries
        that token so a newer holder's lock survives a late release.
        Returns True when a key was removed.
        """
        if token is None:
            return bool(await self.redis.delete(key))
        return bool(await self._release_script(keys=[key], args=[token]))

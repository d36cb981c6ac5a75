"""Redis-backed primary store and cache."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from redis.asyncio import Redis

from nutrition_planner.domain.records import StoreOperation
from nutrition_planner.services.cache import Cache
from nutrition_planner.services.records import PrimaryStore


def create_redis_client(url: str) -> Redis:
    """Create a Redis client that decodes responses to str."""
    return Redis.from_url(url, decode_responses=True)


@dataclass
class RedisPrimaryStore(PrimaryStore):
    """Redis implementation of the authoritative record store."""

    client: Redis

    async def set_fields(self, key: str, fields: Mapping[str, str]) -> None:
        """Set hash fields on a key."""
        await self.client.hset(key, mapping=dict(fields))

    async def get_all_fields(self, key: str) -> dict[str, str]:
        """Return all hash fields for a key."""
        return await self.client.hgetall(key)

    async def add_to_set(self, key: str, member: str) -> None:
        """Add a member to a set."""
        await self.client.sadd(key, member)

    async def remove_from_set(self, key: str, member: str) -> None:
        """Remove a member from a set."""
        await self.client.srem(key, member)

    async def set_members(self, key: str) -> set[str]:
        """Return the members of a set."""
        return set(await self.client.smembers(key))

    async def delete(self, key: str) -> None:
        """Delete a key."""
        await self.client.delete(key)

    async def exists(self, key: str) -> bool:
        """Return whether a key exists."""
        return bool(await self.client.exists(key))

    async def execute_atomic(self, operations: Sequence[StoreOperation]) -> None:
        """Apply operations in a MULTI/EXEC transaction."""
        async with self.client.pipeline(transaction=True) as pipe:
            for operation in operations:
                if operation.action == "set_fields":
                    pipe.hset(operation.key, mapping=dict(operation.fields))
                elif operation.action == "add_to_set":
                    pipe.sadd(operation.key, str(operation.member))
                elif operation.action == "remove_from_set":
                    pipe.srem(operation.key, str(operation.member))
                elif operation.action == "delete":
                    pipe.delete(operation.key)
                else:
                    raise ValueError(f"Unsupported store operation: {operation.action}")
            await pipe.execute()

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self.client.aclose()


@dataclass
class RedisCache(Cache):
    """Redis cache relying on native key expiry."""

    client: Redis
    prefix: str = "cache:"

    async def get(self, key: str) -> str | None:
        """Return a cached value if present."""
        return await self.client.get(f"{self.prefix}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL."""
        await self.client.set(f"{self.prefix}{key}", value, ex=ttl_seconds)

# hireflow/services/kv_store.py
"""
Key-value store client (Redis) used as HireFlow's "local" persistent storage.

Holds the serialized campaign list, message drafts and per-user account
settings as JSON strings. The analytics and feedback backups are Redis lists
with one JSON item per entry.
"""

import json
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from hireflow.config import Settings
from hireflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class KeyValueStoreError(Exception):
    """Raised when the key-value store cannot serve a read or write."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class KeyValueStore:
    """Pooled async Redis client with JSON helpers."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.pool: ConnectionPool | None = None
        self.client: redis.Redis | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            self.pool = ConnectionPool.from_url(
                self.settings.REDIS_URL,
                max_connections=20,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Key-value store ping successful", result=result)

            self._initialized = True

        except Exception as e:
            logger.error("Failed to initialize key-value store", error=str(e))
            self._initialized = False
            raise RuntimeError("Key-value store initialization failed") from e

    async def close(self) -> None:
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Key-value store closed")
        except Exception as e:
            logger.error("Error closing key-value store", error=str(e))

    def _require_client(self) -> redis.Redis:
        if not self._initialized or self.client is None:
            raise KeyValueStoreError("Key-value store not initialized")
        return self.client

    async def ping(self) -> bool:
        try:
            return bool(await self._require_client().ping())
        except Exception as e:
            logger.error("Key-value ping failed", error=str(e))
            return False

    async def get(self, key: str) -> str | None:
        try:
            result = await self._require_client().get(key)
            return result if result else None
        except KeyValueStoreError:
            raise
        except Exception as e:
            logger.error("Key-value GET failed", key=key[:40], error=str(e))
            raise KeyValueStoreError(f"GET failed: {e}", key=key) from e

    async def set(self, key: str, value: str, ttl_s: int | None = None) -> None:
        try:
            client = self._require_client()
            if ttl_s:
                await client.setex(key, ttl_s, value)
            else:
                await client.set(key, value)
        except KeyValueStoreError:
            raise
        except Exception as e:
            logger.error("Key-value SET failed", key=key[:40], error=str(e))
            raise KeyValueStoreError(f"SET failed: {e}", key=key) from e

    async def delete(self, key: str) -> bool:
        try:
            result = await self._require_client().delete(key)
            return result > 0
        except KeyValueStoreError:
            raise
        except Exception as e:
            logger.error("Key-value DELETE failed", key=key[:40], error=str(e))
            raise KeyValueStoreError(f"DELETE failed: {e}", key=key) from e

    async def get_json(self, key: str, default: Any = None) -> Any:
        """Read and decode a JSON value; undecodable blobs return the default."""
        raw = await self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Key-value value is not valid JSON", key=key[:40], error=str(e))
            return default

    async def set_json(self, key: str, value: Any, ttl_s: int | None = None) -> None:
        await self.set(key, json.dumps(value, default=str), ttl_s)

    async def push_json(self, key: str, item: Any, max_items: int | None = None) -> int:
        """RPUSH one JSON item onto a list, trimming to the newest max_items."""
        try:
            client = self._require_client()
            async with client.pipeline(transaction=True) as pipe:
                pipe.rpush(key, json.dumps(item, default=str))
                if max_items:
                    pipe.ltrim(key, -max_items, -1)
                results = await pipe.execute()
            return min(int(results[0]), max_items) if max_items else int(results[0])
        except KeyValueStoreError:
            raise
        except Exception as e:
            logger.error("Key-value RPUSH failed", key=key[:40], error=str(e))
            raise KeyValueStoreError(f"RPUSH failed: {e}", key=key) from e

    async def list_json(self, key: str) -> list[Any]:
        """Decode every item of a list; undecodable items are skipped."""
        try:
            raw_items = await self._require_client().lrange(key, 0, -1)
        except KeyValueStoreError:
            raise
        except Exception as e:
            logger.error("Key-value LRANGE failed", key=key[:40], error=str(e))
            raise KeyValueStoreError(f"LRANGE failed: {e}", key=key) from e

        items = []
        for raw in raw_items or []:
            try:
                items.append(json.loads(raw))
            except json.JSONDecodeError:
                logger.warning("Skipping undecodable list item", key=key[:40])
        return items

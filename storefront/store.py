"""
Key-value store boundary. One Store wraps one redis.asyncio client; it is built
once per process (see main.lifespan) and injected everywhere else.
"""
import asyncio
import json
import logging
import time

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from storefront.config import settings
from storefront.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "products"
ORDERS_KEY = "orders"
DELIVERY_MEN_KEY = "delivery-men"

READY_POLL_INTERVAL = 0.1


def product_key(product_id: str) -> str:
    return f"product:{product_id}"


def order_key(order_id: str) -> str:
    return f"order:{order_id}"


def delivery_key(phone: str) -> str:
    return f"delivery:{phone}"


def order_counter_key(year: int) -> str:
    return f"order:counter:{year}"


class Store:
    def __init__(self, client: redis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str | None = None, retries: int | None = None) -> "Store":
        client = redis.from_url(
            url or settings.redis_url,
            decode_responses=True,
            retry=Retry(ExponentialBackoff(), settings.store_retries if retries is None else retries),
            retry_on_error=[ConnectionError, TimeoutError],
        )
        return cls(client)

    async def close(self) -> None:
        await self._redis.aclose()

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError:
            return False

    async def wait_ready(self, timeout: float | None = None) -> None:
        """Poll ping() until it succeeds or `timeout` seconds pass."""
        timeout = settings.store_ready_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        while not await self.ping():
            if time.monotonic() >= deadline:
                logger.warning("Store not ready after %.1fs", timeout)
                raise StoreUnavailableError()
            await asyncio.sleep(READY_POLL_INTERVAL)

    async def get_json(self, key: str) -> dict | None:
        raw = await self._call("get", key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, value: dict) -> None:
        await self._call("set", key, json.dumps(value, ensure_ascii=False))

    async def set_json_nx(self, key: str, value: dict) -> bool:
        """SET NX: returns False if the key already exists."""
        try:
            created = await self._redis.set(key, json.dumps(value, ensure_ascii=False), nx=True)
        except RedisError as e:
            logger.warning("Store SET NX %s failed: %s", key, e)
            raise StoreUnavailableError() from e
        return bool(created)

    async def delete(self, key: str) -> int:
        return await self._call("delete", key)

    async def exists(self, key: str) -> bool:
        return bool(await self._call("exists", key))

    async def sadd(self, name: str, member: str) -> None:
        await self._call("sadd", name, member)

    async def srem(self, name: str, member: str) -> None:
        await self._call("srem", name, member)

    async def smembers(self, name: str) -> set[str]:
        return set(await self._call("smembers", name))

    async def incr(self, key: str) -> int:
        return await self._call("incr", key)

    async def scan_keys(self, pattern: str) -> list[str]:
        try:
            return [key async for key in self._redis.scan_iter(match=pattern)]
        except RedisError as e:
            logger.warning("Store scan %s failed: %s", pattern, e)
            raise StoreUnavailableError() from e

    async def get_many_json(self, keys: list[str]) -> list[dict]:
        """Read-only fan-out for list endpoints; missing keys and malformed JSON are dropped."""
        raws = await asyncio.gather(*(self._call("get", key) for key in keys))
        values = []
        for key, raw in zip(keys, raws):
            if raw is None:
                continue
            try:
                values.append(json.loads(raw))
            except json.JSONDecodeError:
                logger.warning("Skipping malformed record at %s", key)
        return values

    async def _call(self, command: str, *args):
        try:
            return await getattr(self._redis, command)(*args)
        except RedisError as e:
            logger.warning("Store %s %s failed: %s", command.upper(), args[0] if args else "", e)
            raise StoreUnavailableError() from e

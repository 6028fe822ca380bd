"""Short-lived per-twin copy of the parameter change log in Redis.

The store stays the system of record.  The cached list is only ever filled
with a twin's complete log read from the store, and writers drop it instead
of appending, so a cached list is never a partial history.  Every cache
failure is logged and treated as a miss so that callers fall back to the
store.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from croptwin.schemas.twin import ParameterChange

logger = structlog.get_logger("croptwin.change_log_cache")


class ChangeLogCache:
	def __init__(self, redis_client: Redis | None, ttl_seconds: int = 86400, max_entries: int = 500):
		self.redis_client = redis_client
		self.ttl_seconds = ttl_seconds
		self.max_entries = max_entries

	@staticmethod
	def _key(twin_id: str) -> str:
		return f"twin:{twin_id}:changes"

	async def fill(self, twin_id: str, changes: Sequence[ParameterChange]) -> None:
		"""Cache a twin's complete change log; logs of ``max_entries`` or more are not cached."""
		if self.redis_client is None or not changes or len(changes) >= self.max_entries:
			return
		key = self._key(twin_id)
		payloads = [json.dumps(change.model_dump(mode="json")) for change in changes]
		try:
			await self.redis_client.delete(key)
			await self.redis_client.rpush(key, *payloads)
			await self.redis_client.expire(key, self.ttl_seconds)
		except RedisError as exc:
			logger.warning("change_log_cache_write_failed", twin_id=twin_id, error=str(exc))

	async def invalidate(self, twin_id: str) -> None:
		if self.redis_client is None:
			return
		try:
			await self.redis_client.delete(self._key(twin_id))
		except RedisError as exc:
			logger.warning("change_log_cache_invalidate_failed", twin_id=twin_id, error=str(exc))

	async def get(self, twin_id: str) -> list[ParameterChange] | None:
		"""Cached changes oldest first, or ``None`` when nothing usable is cached."""
		if self.redis_client is None:
			return None
		try:
			values = await self.redis_client.lrange(self._key(twin_id), 0, -1)
		except RedisError as exc:
			logger.warning("change_log_cache_read_failed", twin_id=twin_id, error=str(exc))
			return None
		if not values or len(values) >= self.max_entries:
			return None
		return [ParameterChange.model_validate(json.loads(value)) for value in values]

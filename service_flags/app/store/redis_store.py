"""
Redis-backed flag store gateway.
"""

import asyncio
from typing import Optional

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from shared.logging import get_logger
from shared.errors import StoreUnavailableError, FlagDecodeError
from ..rules.models import Flag, FlagDocument

DEFAULT_PREFIX = "edge-flags"


class RedisFlagStore:
    """Reads flag documents from Redis.

    Flags live under ``{prefix}:flags:{environment}:{name}`` as JSON. Every
    read is bounded by ``timeout`` seconds; a timeout or a connection
    failure raises StoreUnavailableError so callers can tell a broken
    store apart from a missing flag.
    """

    def __init__(
        self,
        redis_url: str,
        token: Optional[str] = None,
        prefix: str = DEFAULT_PREFIX,
        timeout: float = 2.0,
        client: Optional[redis.Redis] = None
    ):
        self.redis_url = redis_url
        self.prefix = prefix
        self.timeout = timeout
        self.logger = get_logger("flags.store.redis")
        self.redis = client or redis.from_url(
            redis_url,
            password=token,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
            health_check_interval=30
        )

    async def start(self):
        """Check the store is reachable."""
        try:
            await asyncio.wait_for(self.redis.ping(), timeout=self.timeout)
        except (asyncio.TimeoutError, RedisConnectionError, RedisTimeoutError) as e:
            # Reads fail fast on their own; keep the service up
            self.logger.warning("Flag store not reachable at startup", error=str(e))
            return
        self.logger.info("Flag store connected")

    async def stop(self):
        """Close the Redis connection pool."""
        await self.redis.aclose()
        self.logger.info("Flag store closed")

    async def get_flag(self, name: str, environment: str) -> Optional[Flag]:
        """Fetch a flag for (name, environment); None when absent."""
        key = self._get_flag_key(name, environment)

        try:
            raw = await asyncio.wait_for(self.redis.get(key), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            self.logger.error("Flag store timed out", key=key, timeout=self.timeout)
            raise StoreUnavailableError("Flag store timed out", {"key": key}) from e
        except (RedisConnectionError, RedisTimeoutError) as e:
            self.logger.error("Flag store unreachable", key=key, error=str(e))
            raise StoreUnavailableError("Flag store unreachable", {"key": key}) from e

        if raw is None:
            return None

        try:
            document = FlagDocument.model_validate_json(raw)
        except PydanticValidationError as e:
            self.logger.error("Malformed flag document", key=key, errors=e.error_count())
            raise FlagDecodeError(details={"key": key}) from e

        if document.name != name or document.environment != environment:
            self.logger.warning(
                "Flag document identity mismatch",
                key=key,
                stored_name=document.name,
                stored_environment=document.environment
            )
            return None

        return document.to_flag()

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await asyncio.wait_for(self.redis.ping(), timeout=self.timeout)
            return True
        except (asyncio.TimeoutError, RedisConnectionError, RedisTimeoutError):
            return False

    def _get_flag_key(self, name: str, environment: str) -> str:
        """Generate store key for a flag."""
        return f"{self.prefix}:flags:{environment}:{name}"

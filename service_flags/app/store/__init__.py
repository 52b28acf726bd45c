"""
Flag store gateways.
"""

from typing import Optional, Protocol

from ..rules.models import Flag
from .memory import InMemoryFlagStore
from .redis_store import RedisFlagStore


class FlagStore(Protocol):
    """Read access to flag definitions."""

    async def get_flag(self, name: str, environment: str) -> Optional[Flag]: ...


__all__ = ["FlagStore", "InMemoryFlagStore", "RedisFlagStore"]

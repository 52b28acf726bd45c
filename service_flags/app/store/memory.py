"""In-memory flag store for local runs and tests."""

from typing import Dict, Optional, Tuple

from ..rules.models import Flag


class InMemoryFlagStore:
    """Flag store backed by a dict keyed on (name, environment)."""

    def __init__(self) -> None:
        self._flags: Dict[Tuple[str, str], Flag] = {}

    def set_flag(self, flag: Flag) -> None:
        self._flags[(flag.name, flag.environment)] = flag

    def remove_flag(self, name: str, environment: str) -> bool:
        return self._flags.pop((name, environment), None) is not None

    async def get_flag(self, name: str, environment: str) -> Optional[Flag]:
        return self._flags.get((name, environment))

    async def health_check(self) -> bool:
        return True

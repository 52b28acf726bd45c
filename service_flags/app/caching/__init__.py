"""
Response caching directives.
"""

from .cache_control import CacheController, DEFAULT_MAX_AGE

__all__ = ["CacheController", "DEFAULT_MAX_AGE"]

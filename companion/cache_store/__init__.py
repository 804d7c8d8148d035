"""Cache storage backends."""

from .base import CacheBackend
from .file import FileCacheBackend
from .memory import InMemoryCacheBackend
from .redis import RedisCacheBackend

__all__ = [
    "CacheBackend",
    "FileCacheBackend",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
]

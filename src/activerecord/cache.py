"""
Caching for schema metadata read from the engine.

Column catalogs are the expensive part of building a table descriptor, so
adapter introspection methods are memoized in named cachetools TTL caches,
keyed by connection and table.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)

__all__ = ['Cache', 'cacheable_metadata']


class Cache:
    """Process-wide manager for the named metadata caches.

    Thread-safe singleton.
    """

    _instance = None
    _caches: dict[str, cachetools.TTLCache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """Get or create a TTL cache with the given name.
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_cache(self, name: str) -> None:
        """Clear a specific cache by name."""
        with self._lock:
            if name in self._caches:
                self._caches[name].clear()

    def clear_for_table(self, table_name: str) -> None:
        """Drop every cached entry for `table_name`, on any connection.
        """
        suffix = f':{table_name.lower()}'
        with self._lock:
            for cache in self._caches.values():
                for key in [k for k in list(cache.keys()) if k.endswith(suffix)]:
                    cache.pop(key, None)
                    logger.debug(f'Cleared cache entry {key} for table {table_name}')

    def clear_for_connection(self, connection_key: str) -> None:
        """Drop every cached entry recorded for one adapter."""
        prefix = f'{connection_key}:'.lower()
        with self._lock:
            for cache in self._caches.values():
                for key in [k for k in list(cache.keys()) if k.startswith(prefix)]:
                    cache.pop(key, None)
        logger.debug(f'Cleared cached metadata for {connection_key}')


def _create_cache_key(adapter, table: str) -> str:
    return f'{adapter.cache_key}:{table}'.lower()


def cacheable_metadata(cache_name: str, ttl: int = 300, maxsize: int = 50):
    """Decorator for caching adapter introspection results per table.

    The wrapped method takes `(self, table)`; callers may pass
    `bypass_cache=True` to force a fresh read, which also refreshes the entry.
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, table, bypass_cache=False):
            cache = Cache.get_instance().get_cache(cache_name, ttl=ttl, maxsize=maxsize)
            cache_key = _create_cache_key(self, table)

            if not bypass_cache and cache_key in cache:
                logger.debug(f'Cache hit for {method.__name__}({table})')
                return cache[cache_key]

            if bypass_cache:
                logger.debug(f'Bypassing cache for {method.__name__}({table})')
            else:
                logger.debug(f'Cache miss for {method.__name__}({table})')

            result = method(self, table)
            cache[cache_key] = result
            return result

        return wrapper
    return decorator

"""Store registry: pick a key-value backend from a storage URL."""

from typing import Callable, Dict, List
from urllib.parse import urlparse

from movietracker.stores.base import KeyValueStore, StorageError
from movietracker.stores.memory_store import MemoryStore
from movietracker.stores.sqlite_store import SQLiteStore

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",
    "StorageError",
    "StoreRegistry",
    "create_store",
]


class StoreRegistry:
    """Registry mapping URL schemes to store factories."""

    _factories: Dict[str, Callable[[str], KeyValueStore]] = {}

    @classmethod
    def register(cls, scheme: str, factory: Callable[[str], KeyValueStore]) -> None:
        """Register a factory for a URL scheme."""
        cls._factories[scheme] = factory

    @classmethod
    def schemes(cls) -> List[str]:
        """Get all registered schemes."""
        return list(cls._factories.keys())

    @classmethod
    def create(cls, storage_url: str) -> KeyValueStore:
        """Build the store for storage_url."""
        scheme = urlparse(storage_url).scheme
        factory = cls._factories.get(scheme)
        if factory is None:
            raise ValueError(f"No store registered for scheme '{scheme}'")
        return factory(storage_url)


StoreRegistry.register("memory", lambda _url: MemoryStore())
StoreRegistry.register("sqlite", lambda url: SQLiteStore(url))


# Convenience function for construction
def create_store(storage_url: str) -> KeyValueStore:
    """Create a store from the configured storage URL."""
    return StoreRegistry.create(storage_url)

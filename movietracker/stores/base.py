"""Key-value store interface."""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Domain exception for storage faults (unreadable or corrupt data)."""

    def __init__(self, message: str, original_exception: Exception = None):
        super().__init__(message)
        self.original_exception = original_exception


class KeyValueStore(ABC):
    """Abstract base class for async string key-value stores.

    The repository and the remote cache receive a store instance instead of
    reaching for a global handle, so tests can hand them an in-memory one.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return a short name for this backend."""
        pass

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Return the stored text for key, or None when absent."""
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store text under key, replacing any previous value."""
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete key. Removing a missing key is not an error."""
        pass

    async def aclose(self) -> None:
        """Release any resources held by the store."""
        return None

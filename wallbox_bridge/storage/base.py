"""
Key/value storage contract.
"""

from abc import ABC, abstractmethod


class KeyValueStorageBase(ABC):
    """Async string-keyed storage of JSON-serializable values."""

    def __init__(self, uri: str):
        self.uri = uri

    @abstractmethod
    async def get(self, key: str):
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def list(self, prefix: str = None) -> list:
        """Return (key, value) pairs, optionally only keys starting with prefix."""

    async def close(self) -> None:
        pass

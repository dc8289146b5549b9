"""Abstract key-value store interface."""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """String blob store addressed by key."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the backing store."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Release the backing store."""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get the value stored under key, or None if absent."""
        pass

    @abstractmethod
    def set_many(self, items: dict[str, str]) -> None:
        """Store several values at once; all or none are written."""
        pass

    def contains(self, key: str) -> bool:
        """Check whether key is present."""
        return self.get(key) is not None

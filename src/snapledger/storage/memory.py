"""In-memory key-value store."""

from typing import Optional

from snapledger.storage.base import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def connect(self) -> None:
        pass

    def disconnect(self) -> None:
        pass

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_many(self, items: dict[str, str]) -> None:
        self._data.update(items)

"""SQLAlchemy-backed key-value store."""

from typing import Optional
from sqlalchemy.orm import Session

from snapledger.storage.base import KeyValueStore
from snapledger.storage.models import KeyValueEntry, create_session_factory


class SQLAlchemyKeyValueStore(KeyValueStore):
    """SQLAlchemy-based implementation of KeyValueStore interface."""

    def __init__(self, database_url: str):
        """Initialize SQLAlchemy key-value store.

        Args:
            database_url: SQLAlchemy database URL (e.g., 'sqlite:///path/to.db')
        """
        self.database_url = database_url
        self.session_factory = create_session_factory(database_url)
        self._session: Optional[Session] = None

    def _get_session(self) -> Session:
        """Get current session, creating one if needed."""
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    def connect(self) -> None:
        """Connect to the database."""
        # Connection is lazy, so this is a no-op
        pass

    def disconnect(self) -> None:
        """Disconnect from the database."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def get(self, key: str) -> Optional[str]:
        session = self._get_session()
        entry = session.get(KeyValueEntry, key)
        if entry is None:
            return None
        return entry.value

    def set_many(self, items: dict[str, str]) -> None:
        session = self._get_session()
        try:
            for key, value in items.items():
                entry = session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
            session.commit()
        except Exception:
            session.rollback()
            raise

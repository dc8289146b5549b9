"""Factory functions for creating key-value store instances."""

import os
from pathlib import Path
from typing import Optional

from snapledger.storage.sqlalchemy_kv import SQLAlchemyKeyValueStore


def create_sqlite_store(database_path: Optional[str] = None) -> SQLAlchemyKeyValueStore:
    """Create a SQLite-backed key-value store.

    Args:
        database_path: Path to SQLite database file. If None, checks SNAPLEDGER_DB_PATH
            environment variable, then defaults to ~/.snapledger/snapledger.db

    Returns:
        SQLAlchemyKeyValueStore instance configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get("SNAPLEDGER_DB_PATH")

    if database_path is None:
        db_dir = Path.home() / ".snapledger"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "snapledger.db")

    return SQLAlchemyKeyValueStore(f"sqlite:///{database_path}")

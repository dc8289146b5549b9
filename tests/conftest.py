"""Shared pytest fixtures for snapledger tests."""

import logging
import tempfile
import os
from datetime import datetime, timedelta, UTC
import pytest

from snapledger.domain.engine import LedgerEngine
from snapledger.domain.entities import AccountKind, UserIdentity
from snapledger.domain.store import LedgerStore
from snapledger.storage.factories import create_sqlite_store
from snapledger.storage.memory import InMemoryKeyValueStore
from snapledger.storage.persistence import LedgerPersistence


class StepClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture
def clock():
    return StepClock(datetime(2024, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def u1():
    return UserIdentity(user_id="u1", name="Alice", avatar="https://example.com/alice.png")


@pytest.fixture
def u2():
    return UserIdentity(user_id="u2", name="Bob", avatar="")


@pytest.fixture
def store():
    return LedgerStore()


@pytest.fixture
def engine(store, clock):
    """Create a LedgerEngine without persistence."""
    return LedgerEngine(store=store, clock=clock)


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def persistence(kv_store):
    return LedgerPersistence.for_kind(kv_store, AccountKind.POOL)


@pytest.fixture
def persistent_engine(persistence, clock):
    """Create a LedgerEngine backed by an in-memory key-value store."""
    return LedgerEngine(persistence=persistence, clock=clock)


@pytest.fixture
def trip(engine, u1):
    """Scenario A: account 'Trip' with a deposit of 100 from u1."""
    account_id = engine.create_account("Trip", owner=u1)
    engine.deposit(account_id, u1, "wallet-u1", 100)
    return account_id


@pytest.fixture
def temp_db_path():
    """Create a temporary SQLite file path for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    yield db_path

    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def sqlite_store(temp_db_path):
    """Create a SQLite-backed key-value store in a temporary file."""
    store = create_sqlite_store(database_path=temp_db_path)
    store.connect()
    yield store
    store.disconnect()


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture(autouse=True)
def reset_snapledger_logger():
    """Undo setup_logging so no handler outlives the stream it was bound to."""
    logger = logging.getLogger("snapledger")
    level = logger.level
    handlers = list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers

"""Tests for the persistence adapter and engine flushing."""

import json
import pytest
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from snapledger.domain.engine import LedgerEngine
from snapledger.domain.entities import AccountKind
from snapledger.domain.errors import ErrorKind, PersistenceError
from snapledger.storage.memory import InMemoryKeyValueStore
from snapledger.storage.persistence import LAYOUTS, LedgerPersistence


class FailingKeyValueStore(InMemoryKeyValueStore):
    """Store whose writes fail once ``fail`` is set."""

    fail = False

    def set_many(self, items):
        if self.fail:
            raise OperationalError("UPDATE kv_entries", {}, Exception("disk I/O error"))
        super().set_many(items)


def put(kv_store, key, value):
    kv_store.set_many({key: value})


def build_history(engine, u1, u2):
    trip = engine.create_account("Trip", owner=u1)
    engine.deposit(trip, u1, "wallet-u1", 100)
    engine.deposit(trip, u2, None, "40.25")
    engine.pay(trip, u2, 10, "Taxi", bill_reference="bill-9")
    loan_id = engine.borrow(trip, u1, 60, "Groceries")
    engine.repay(loan_id, 25)
    other = engine.create_account("Rent", owner=u2, description="Flat")
    engine.deposit(other, u2, None, 7)
    engine.attach_external_address(other, "addr", "token")
    return trip, other


class TestRoundTrip:
    """Saving and reloading preserves the ledger."""

    def test_round_trip_preserves_balances(self, persistent_engine, persistence, clock, u1, u2):
        trip, other = build_history(persistent_engine, u1, u2)

        reloaded = LedgerEngine(persistence=persistence, clock=clock)

        for account_id in (trip, other):
            assert reloaded.account_balance(account_id) == persistent_engine.account_balance(account_id)
            for user in (u1, u2):
                assert reloaded.user_balance(user.user_id, account_id) == (
                    persistent_engine.user_balance(user.user_id, account_id)
                )
                assert reloaded.user_available_credit(user.user_id, account_id) == (
                    persistent_engine.user_available_credit(user.user_id, account_id)
                )

    def test_round_trip_preserves_entities(self, persistent_engine, persistence, clock, u1, u2):
        build_history(persistent_engine, u1, u2)

        reloaded = LedgerEngine(persistence=persistence, clock=clock)

        assert reloaded.store.snapshot() == persistent_engine.store.snapshot()

    def test_sqlite_round_trip(self, sqlite_store, clock, u1, u2):
        engine = LedgerEngine(
            persistence=LedgerPersistence.for_kind(sqlite_store, AccountKind.COLLATERAL),
            clock=clock,
            kind=AccountKind.COLLATERAL,
        )
        trip, _ = build_history(engine, u1, u2)

        reloaded = LedgerEngine(
            persistence=LedgerPersistence.for_kind(sqlite_store, AccountKind.COLLATERAL),
            clock=clock,
        )
        assert reloaded.account_balance(trip) == Decimal("95.25")
        assert reloaded.store.snapshot() == engine.store.snapshot()


class TestSave:
    """Tests for the stored format and flush behavior."""

    def test_every_command_flushes(self, persistent_engine, kv_store, u1):
        keys = LAYOUTS[AccountKind.POOL].current
        trip = persistent_engine.create_account("Trip", owner=u1)
        assert json.loads(kv_store.get(keys.accounts))[0]["name"] == "Trip"

        persistent_engine.deposit(trip, u1, None, 5)

        deposits = json.loads(kv_store.get(keys.deposits))
        transactions = json.loads(kv_store.get(keys.transactions))
        assert deposits[0]["amount"] == "5"
        assert deposits[0]["accountId"] == trip
        assert transactions[0]["type"] == "deposit"
        assert json.loads(kv_store.get(keys.loans)) == []

    def test_kinds_use_separate_keys(self, kv_store, clock, u1):
        pool = LedgerEngine(persistence=LedgerPersistence.for_kind(kv_store, AccountKind.POOL), clock=clock)
        collateral = LedgerEngine(
            persistence=LedgerPersistence.for_kind(kv_store, AccountKind.COLLATERAL),
            kind=AccountKind.COLLATERAL,
            clock=clock,
        )
        pool.create_account("Pool account", owner=u1)
        collateral.create_account("Collateral account", owner=u1)

        assert kv_store.contains("snapSolPay_pools")
        assert kv_store.contains("snapSolPay_collaterals")
        assert [a.name for a in pool.list_accounts()] == ["Pool account"]
        assert [a.name for a in collateral.list_accounts()] == ["Collateral account"]

    def test_failed_flush_keeps_memory_state(self, clock, u1):
        kv_store = FailingKeyValueStore()
        engine = LedgerEngine(
            persistence=LedgerPersistence.for_kind(kv_store, AccountKind.POOL), clock=clock
        )
        trip = engine.create_account("Trip", owner=u1)
        kv_store.fail = True

        with pytest.raises(PersistenceError) as exc_info:
            engine.deposit(trip, u1, None, 10)

        assert exc_info.value.kind == ErrorKind.PERSISTENCE_WRITE_FAILED
        assert exc_info.value.result == engine.get_account_transactions(trip)[-1].id
        assert engine.account_balance(trip) == Decimal("10")

        kv_store.fail = False
        engine.deposit(trip, u1, None, 5)
        reloaded = LedgerEngine(
            persistence=LedgerPersistence.for_kind(kv_store, AccountKind.POOL), clock=clock
        )
        assert reloaded.account_balance(trip) == Decimal("15")

    def test_failed_flush_is_logged(self, clock, u1, caplog):
        kv_store = FailingKeyValueStore()
        engine = LedgerEngine(
            persistence=LedgerPersistence.for_kind(kv_store, AccountKind.POOL), clock=clock
        )
        kv_store.fail = True

        with caplog.at_level("ERROR", logger="snapledger"):
            with pytest.raises(PersistenceError):
                engine.create_account("Trip", owner=u1)

        assert "Failed to persist" in caplog.text
        assert len(engine.list_accounts()) == 1


class TestLoad:
    """Tests for loading and legacy migration."""

    def test_load_empty_store(self, persistence):
        snapshot = persistence.load()
        assert snapshot.accounts == ()
        assert snapshot.loans == ()

    def test_corrupt_value(self, kv_store, persistence):
        put(kv_store, "snapSolPay_pools", "{not json")

        with pytest.raises(PersistenceError) as exc_info:
            persistence.load()
        assert exc_info.value.kind == ErrorKind.PERSISTENCE_READ_FAILED

    def test_value_must_be_array(self, kv_store, persistence):
        put(kv_store, "snapSolPay_pools", json.dumps({"id": "x"}))

        with pytest.raises(PersistenceError):
            persistence.load()

    def test_reads_original_field_names(self, kv_store, persistence):
        put(kv_store, "snapSolPay_pools", json.dumps([{
            "id": "p1", "name": "Trip", "createdAt": 1700000000000,
            "ownerId": "u1", "ownerName": "Alice", "ownerAvatar": "",
            "solanaAddress": "sol-addr", "tokenAccount": "tok-addr",
        }]))
        put(kv_store, "snapSolPay_pool_contributions", json.dumps([{
            "id": "c1", "poolId": "p1", "userId": "u1", "userName": "Alice",
            "userAvatar": "", "walletAddress": "w1", "amount": 12.5,
            "timestamp": 1700000001000,
        }]))
        put(kv_store, "snapSolPay_pool_loans", json.dumps([{
            "id": "l1", "poolId": "p1", "userId": "u1", "userName": "Alice",
            "userAvatar": "", "amount": 5, "timestamp": 1700000002000,
            "repaid": True, "repaidAmount": 5, "repaidTimestamp": 1700000003000,
        }]))

        snapshot = persistence.load()

        assert snapshot.accounts[0].external_address == "sol-addr"
        assert snapshot.accounts[0].secondary_address == "tok-addr"
        assert snapshot.deposits[0].account_id == "p1"
        assert snapshot.deposits[0].amount == Decimal("12.5")
        assert snapshot.deposits[0].external_address == "w1"
        assert snapshot.loans[0].repaid is True
        assert snapshot.loans[0].repaid_at is not None

    def test_legacy_layout_migrated_once(self, kv_store, clock):
        legacy_pools = json.dumps([{
            "id": "p1", "name": "Old pool", "createdAt": 1700000000000,
            "ownerId": "u1", "ownerName": "Alice", "ownerAvatar": "",
        }])
        legacy_contributions = json.dumps([{
            "id": "c1", "poolId": "p1", "userId": "u1", "userName": "Alice",
            "userAvatar": "", "walletAddress": "", "amount": 30,
            "timestamp": 1700000001000,
        }])
        put(kv_store, "solSNAP_pools", legacy_pools)
        put(kv_store, "solSNAP_pool_contributions", legacy_contributions)
        persistence = LedgerPersistence.for_kind(kv_store, AccountKind.COLLATERAL)

        engine = LedgerEngine(persistence=persistence, kind=AccountKind.COLLATERAL, clock=clock)

        assert kv_store.get("snapSolPay_collaterals") == legacy_pools
        assert kv_store.get("snapSolPay_collateral_deposits") == legacy_contributions
        assert engine.account_balance("p1") == Decimal("30")
        assert persistence.migrate_legacy() is False

    def test_no_migration_when_current_data_exists(self, kv_store):
        put(kv_store, "snapSolPay_collaterals", "[]")
        put(kv_store, "solSNAP_pools", "[]")
        persistence = LedgerPersistence.for_kind(kv_store, AccountKind.COLLATERAL)

        assert persistence.migrate_legacy() is False

    def test_pool_layout_has_no_legacy(self, kv_store):
        put(kv_store, "solSNAP_pools", "[]")
        persistence = LedgerPersistence.for_kind(kv_store, AccountKind.POOL)

        assert persistence.migrate_legacy() is False
        assert not kv_store.contains("snapSolPay_pools")


def record(**fields):
    return {"userId": "u1", "userName": "Alice", "userAvatar": "", **fields}


class TestEarlierAppData:
    """Ledgers written by earlier app versions load with correct balances."""

    def test_pool_repaid_loan_without_restore_row(self, kv_store, clock):
        put(kv_store, "snapSolPay_pools", json.dumps([{
            "id": "p1", "name": "Trip", "createdAt": 1700000000000,
            "ownerId": "u1", "ownerName": "Alice", "ownerAvatar": "",
        }]))
        put(kv_store, "snapSolPay_pool_contributions", json.dumps([
            record(id="c1", poolId="p1", walletAddress="w1", amount=100, timestamp=1700000001000),
        ]))
        put(kv_store, "snapSolPay_pool_loans", json.dumps([
            record(id="l1", poolId="p1", amount=60, timestamp=1700000002000,
                   repaid=True, repaidAmount=60, repaidTimestamp=1700000003000),
        ]))
        put(kv_store, "snapSolPay_pool_transactions", json.dumps([
            record(id="t1", poolId="p1", type="repayment", amount=60,
                   timestamp=1700000003000, description="Full loan repayment"),
        ]))

        engine = LedgerEngine(
            persistence=LedgerPersistence.for_kind(kv_store, AccountKind.POOL), clock=clock
        )

        assert engine.account_balance("p1") == Decimal("100")
        assert engine.user_balance("u1", "p1") == Decimal("100")
        assert engine.user_withdrawable("u1", "p1") == Decimal("100")
        assert engine.user_available_credit("u1", "p1") == Decimal("100")

    @pytest.fixture
    def collateral_kv(self, kv_store):
        """Deposit 100, borrow 60, then repay 40 and 20 as the earlier app stored it."""
        put(kv_store, "snapSolPay_collaterals", json.dumps([{
            "id": "c1", "name": "Rent", "createdAt": 1700000000000,
            "ownerId": "u1", "ownerName": "Alice", "ownerAvatar": "",
        }]))
        put(kv_store, "snapSolPay_collateral_deposits", json.dumps([
            record(id="d1", collateralId="c1", walletAddress="w1", amount=100,
                   timestamp=1700000001000),
            record(id="d2", collateralId="c1", walletAddress="", amount=40,
                   timestamp=1700000003001),
            record(id="d3", collateralId="c1", walletAddress="", amount=20,
                   timestamp=1700000004001),
        ]))
        put(kv_store, "snapSolPay_collateral_loans", json.dumps([
            record(id="l1", collateralId="c1", amount=60, timestamp=1700000002000,
                   repaid=True, repaidAmount=20, repaidTimestamp=1700000004000),
        ]))
        put(kv_store, "snapSolPay_collateral_transactions", json.dumps([
            record(id="t1", collateralId="c1", type="loan", amount=60, timestamp=1700000002000),
            record(id="t2", collateralId="c1", type="repayment", amount=40,
                   timestamp=1700000003000),
            record(id="t3", collateralId="c1", type="repayment", amount=20,
                   timestamp=1700000004000),
        ]))
        return kv_store

    def test_collateral_repayment_rows_are_linked_to_loan(self, collateral_kv):
        persistence = LedgerPersistence.for_kind(collateral_kv, AccountKind.COLLATERAL)

        deposits = persistence.load().deposits

        assert [d.loan_id for d in deposits] == [None, "l1", "l1"]

    def test_collateral_balances(self, collateral_kv, clock):
        engine = LedgerEngine(
            persistence=LedgerPersistence.for_kind(collateral_kv, AccountKind.COLLATERAL),
            kind=AccountKind.COLLATERAL,
            clock=clock,
        )

        assert engine.account_balance("c1") == Decimal("100")
        assert engine.user_balance("u1", "c1") == Decimal("100")
        assert engine.user_withdrawable("u1", "c1") == Decimal("100")
        assert engine.user_withdrawable("u1", "c1") <= engine.account_balance("c1")

    def test_linked_rows_are_saved_with_loan_id(self, collateral_kv, clock, u1):
        engine = LedgerEngine(
            persistence=LedgerPersistence.for_kind(collateral_kv, AccountKind.COLLATERAL),
            kind=AccountKind.COLLATERAL,
            clock=clock,
        )
        engine.deposit("c1", u1, None, 5)

        stored = json.loads(collateral_kv.get("snapSolPay_collateral_deposits"))
        assert [r["loanId"] for r in stored] == [None, "l1", "l1", None]

    def test_deposit_without_nearby_repayment_stays_a_contribution(self, collateral_kv):
        deposits = json.loads(collateral_kv.get("snapSolPay_collateral_deposits"))
        deposits.append(record(id="d4", collateralId="c1", walletAddress="", amount=20,
                               timestamp=1700000900000))
        put(collateral_kv, "snapSolPay_collateral_deposits", json.dumps(deposits))

        loaded = LedgerPersistence.for_kind(collateral_kv, AccountKind.COLLATERAL).load()

        assert loaded.deposits[-1].loan_id is None

    def test_engine_written_ledger_is_unchanged(self, persistent_engine, persistence, u1, u2):
        build_history(persistent_engine, u1, u2)
        persistent_engine.deposit(persistent_engine.list_accounts()[0].id, u1, None, 25)

        assert persistence.load() == persistent_engine.store.snapshot()

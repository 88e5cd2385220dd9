"""
Tests for the SQLite order store - Data access layer testing.

These are integration tests that use a real SQLite database (temp file).
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from data_access.repositories.order_repository import SqliteOrderRepository
from domain.entities import OrderRecord
from domain.enums import OrderState
from domain.exceptions import ConditionalWriteConflict
from domain.value_objects import (
    REMOVE,
    AllOf,
    AttributeEquals,
    AttributeExists,
    AttributeNotExists,
    DrinkOrder,
    RecordKey,
)

KEY = RecordKey.for_order("o-1")


class TestSqliteOrderRepository:
    """Test order store with real database."""

    @pytest.fixture
    def repository(self, tmp_path, clock):
        """Create repository instance with temp database."""
        repo = SqliteOrderRepository(tmp_path / "orders.db", clock=clock)
        yield repo
        repo.close()

    def test_database_creation(self, tmp_path, clock):
        """Repository should create the database file and table on initialization."""
        db_path = tmp_path / "sub" / "orders.db"
        repo = SqliteOrderRepository(db_path, clock=clock)

        assert db_path.exists()
        assert repo.count() == 0
        repo.close()

    def test_get_missing(self, repository):
        assert repository.get(KEY) is None

    def test_conditional_create(self, repository, clock):
        """A missing record is created when its condition allows it."""
        result = repository.conditional_update(
            KEY,
            AttributeNotExists("user_id"),
            {
                "user_id": "u1",
                "drink_order": DrinkOrder("latte", ("oat",)),
                "order_state": OrderState.PENDING,
                "callback_token": "tok",
                "suspended_at": clock.now,
            },
        )

        assert result.created is True
        assert result.record.callback_token == "tok"
        stored = repository.get(KEY)
        assert stored == result.record
        assert stored.drink_order == DrinkOrder("latte", ("oat",))
        assert stored.last_updated == clock.now

    def test_condition_failure_leaves_record_unchanged(self, repository):
        repository.put(OrderRecord(order_id="o-1", user_id="u1"))
        before = repository.get(KEY)

        with pytest.raises(ConditionalWriteConflict) as exc_info:
            repository.conditional_update(
                KEY,
                AttributeEquals("user_id", "u2"),
                {"barista_user_id": "b-1"},
                action="make",
            )

        assert exc_info.value.action == "make"
        assert exc_info.value.detail == "order is Pending"
        assert repository.get(KEY) == before

    def test_condition_failure_on_missing_record(self, repository):
        with pytest.raises(ConditionalWriteConflict) as exc_info:
            repository.conditional_update(KEY, AttributeExists("user_id"), {"barista_user_id": "b-1"})

        assert exc_info.value.detail == "record does not exist"
        assert repository.count() == 0

    def test_remove_and_previous(self, repository):
        repository.put(OrderRecord(order_id="o-1", user_id="u1", callback_token="tok", suspended_at=5))

        result = repository.conditional_update(
            KEY,
            AllOf(AttributeExists("callback_token"), AttributeEquals("order_state", OrderState.PENDING)),
            {"order_state": OrderState.COMPLETED, "callback_token": REMOVE, "suspended_at": REMOVE},
        )

        assert result.previous.callback_token == "tok"
        assert result.record.callback_token is None
        assert result.record.suspended_at is None
        assert repository.get(KEY).order_state == OrderState.COMPLETED

    def test_last_updated_strictly_increases(self, repository, clock):
        """Even with a stalled clock every write moves last_updated forward."""
        repository.put(OrderRecord(order_id="o-1", user_id="u1"))
        first = repository.get(KEY).last_updated

        repository.conditional_update(KEY, AttributeExists("user_id"), {"barista_user_id": "b-1"})
        second = repository.get(KEY).last_updated
        repository.conditional_update(KEY, AttributeExists("user_id"), {"barista_user_id": ""})
        third = repository.get(KEY).last_updated

        assert first < second < third

    def test_list_suspended_oldest_first(self, repository):
        repository.put(OrderRecord(order_id="late", user_id="u1", callback_token="t2", suspended_at=200))
        repository.put(OrderRecord(order_id="early", user_id="u2", callback_token="t1", suspended_at=100))
        repository.put(OrderRecord(order_id="done", user_id="u3", order_state=OrderState.COMPLETED))

        suspended = repository.list_suspended()

        assert [r.order_id for r in suspended] == ["early", "late"]

    def test_records_survive_reopen(self, tmp_path, clock):
        db_path = tmp_path / "orders.db"
        repo = SqliteOrderRepository(db_path, clock=clock)
        repo.put(OrderRecord(order_id="o-1", user_id="u1", barista_user_id="b-1"))
        repo.close()

        reopened = SqliteOrderRepository(db_path, clock=clock)
        assert reopened.get(KEY).barista_user_id == "b-1"
        reopened.close()

"""
Order Repository - Order Record Store with conditional writes.

Records are keyed by (partition_key, sort_key); every order lives under
("orders", order_id). Mutations go through conditional_update, which
evaluates a Condition against the current attributes and applies the
changes atomically, returning the post-update record so callers can
read back what they wrote without a second round trip.

Two backends share the same conditional-update logic:
    - InMemoryOrderRepository: dict guarded by a lock (tests, single process)
    - SqliteOrderRepository: SQLite table, one BEGIN IMMEDIATE transaction per write
"""

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping

from domain.entities import OrderRecord
from domain.exceptions import CollaboratorUnavailable, ConditionalWriteConflict
from domain.value_objects import REMOVE, Condition, DrinkOrder, RecordKey

logger = logging.getLogger(__name__)


def epoch_millis() -> int:
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class WriteResult:
    """
    Outcome of a successful conditional update.

    Attributes:
        record: The record as it is after the update
        previous: The record as it was before, None if it was created
    """
    record: OrderRecord
    previous: OrderRecord | None

    @property
    def created(self) -> bool:
        return self.previous is None


def _storable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, DrinkOrder):
        return value.to_dict()
    return value


class OrderRepository:
    """
    Base Order Record Store.

    Subclasses provide _transaction, _read and _write; the conditional
    update protocol is implemented here once for every backend.
    """

    def __init__(self, clock: Callable[[], int] | None = None):
        self._clock = clock or epoch_millis

    # -- backend hooks ----------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        raise NotImplementedError
        yield

    def _read(self, key: RecordKey) -> OrderRecord | None:
        raise NotImplementedError

    def _write(self, key: RecordKey, record: OrderRecord) -> None:
        raise NotImplementedError

    def list_suspended(self) -> list[OrderRecord]:
        raise NotImplementedError

    # -- public API -------------------------------------------------------

    def get(self, key: RecordKey) -> OrderRecord | None:
        """
        Fetch a record by key.

        Returns:
            OrderRecord if found, None otherwise
        """
        with self._transaction():
            return self._read(key)

    def put(self, record: OrderRecord) -> OrderRecord:
        """Unconditionally store a record, stamping last_updated."""
        with self._transaction():
            current = self._read(record.key)
            stamped = OrderRecord.from_attributes({
                **record.to_attributes(),
                "last_updated": self._next_timestamp(current),
            })
            self._write(record.key, stamped)
            return stamped

    def conditional_update(
        self,
        key: RecordKey,
        condition: Condition,
        changes: Mapping[str, Any],
        action: str = "update",
    ) -> WriteResult:
        """
        Apply changes only if condition holds on the current record.

        A missing record is evaluated as an empty attribute set; when the
        condition passes it is created from the changes.

        Args:
            key: Record key
            condition: Precondition on the current attributes
            changes: Attribute name -> new value (REMOVE drops the attribute)
            action: Name of the attempted operation, for error context

        Returns:
            WriteResult with the post-update and pre-update records

        Raises:
            ConditionalWriteConflict: If the condition does not hold
            CollaboratorUnavailable: If the backend fails
        """
        with self._transaction():
            current = self._read(key)
            attributes = current.to_attributes() if current else {}
            if not condition.evaluate(attributes):
                detail = "record does not exist" if current is None else f"order is {current.order_state.value}"
                logger.info("Conditional %s rejected on %s: %s (%s)", action, key, condition, detail)
                raise ConditionalWriteConflict(key.sort_key, action, condition.describe(), detail)

            updated = dict(attributes) if current else {"order_id": key.sort_key}
            for name, value in changes.items():
                if value is REMOVE:
                    updated.pop(name, None)
                else:
                    updated[name] = _storable(value)
            updated["order_id"] = key.sort_key
            updated["last_updated"] = self._next_timestamp(current)

            record = OrderRecord.from_attributes(updated)
            self._write(key, record)
            logger.debug("Conditional %s applied on %s", action, key)
            return WriteResult(record=record, previous=current)

    def _next_timestamp(self, current: OrderRecord | None) -> int:
        # Strictly increasing per record even if the wall clock stalls.
        now = self._clock()
        if current is None:
            return now
        return max(now, current.last_updated + 1)


class InMemoryOrderRepository(OrderRepository):
    """Order store backed by a dict; the lock makes each update atomic."""

    def __init__(self, clock: Callable[[], int] | None = None):
        super().__init__(clock)
        self._records: dict[RecordKey, OrderRecord] = {}
        self._lock = threading.RLock()

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        with self._lock:
            yield

    def _read(self, key: RecordKey) -> OrderRecord | None:
        return self._records.get(key)

    def _write(self, key: RecordKey, record: OrderRecord) -> None:
        self._records[key] = record

    def list_suspended(self) -> list[OrderRecord]:
        with self._lock:
            return sorted(
                (r for r in self._records.values() if r.is_suspended()),
                key=lambda r: r.suspended_at or 0,
            )

    def count(self) -> int:
        with self._lock:
            return len(self._records)


_COLUMNS = (
    "pk", "sk", "user_id", "drink_order", "order_state", "barista_user_id",
    "callback_token", "suspended_at", "last_updated",
)


class SqliteOrderRepository(OrderRepository):
    """
    Order store backed by SQLite.

    One connection is shared and serialised by a lock; each write runs in
    a BEGIN IMMEDIATE transaction so separate processes on the same file
    also see atomic conditional updates.
    """

    def __init__(self, db_path: Path | str, clock: Callable[[], int] | None = None):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file or ":memory:" for in-memory DB
            clock: Millisecond clock, defaults to wall time
        """
        super().__init__(clock)
        if str(db_path) == ":memory:":
            self._db_path = ":memory:"
        else:
            self._db_path = Path(db_path)
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(str(self._db_path), isolation_level=None, check_same_thread=False)
            self._ensure_schema()
        except sqlite3.Error as e:
            raise CollaboratorUnavailable("order store", e) from e

    def _ensure_schema(self) -> None:
        """Create the order table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS order_records (
                pk TEXT NOT NULL,
                sk TEXT NOT NULL,
                user_id TEXT NOT NULL DEFAULT '',
                drink_order TEXT,
                order_state TEXT NOT NULL DEFAULT 'Pending',
                barista_user_id TEXT NOT NULL DEFAULT '',
                callback_token TEXT,
                suspended_at INTEGER,
                last_updated INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (pk, sk)
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_order_records_token
            ON order_records(callback_token)
        """)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise CollaboratorUnavailable("order store", e) from e
            try:
                yield
            except sqlite3.Error as e:
                self._conn.execute("ROLLBACK")
                raise CollaboratorUnavailable("order store", e) from e
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")

    def _read(self, key: RecordKey) -> OrderRecord | None:
        cursor = self._conn.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM order_records WHERE pk = ? AND sk = ?",
            (key.partition_key, key.sort_key),
        )
        row = cursor.fetchone()
        return self._row_to_record(row) if row else None

    def _write(self, key: RecordKey, record: OrderRecord) -> None:
        drink_order = json.dumps(record.drink_order.to_dict()) if record.drink_order else None
        self._conn.execute(
            f"""
            INSERT OR REPLACE INTO order_records ({', '.join(_COLUMNS)})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                key.partition_key,
                key.sort_key,
                record.user_id,
                drink_order,
                record.order_state.value,
                record.barista_user_id,
                record.callback_token,
                record.suspended_at,
                record.last_updated,
            ),
        )

    def list_suspended(self) -> list[OrderRecord]:
        """All orders with a caller still waiting, oldest suspension first."""
        with self._transaction():
            cursor = self._conn.execute(
                f"""
                SELECT {', '.join(_COLUMNS)} FROM order_records
                WHERE callback_token IS NOT NULL
                ORDER BY suspended_at
                """
            )
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def count(self) -> int:
        with self._transaction():
            return self._conn.execute("SELECT COUNT(*) FROM order_records").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_record(row: tuple) -> OrderRecord:
        """
        Map a database row to an OrderRecord entity.

        Args:
            row: Row tuple in _COLUMNS order

        Returns:
            OrderRecord entity
        """
        attributes = {
            "order_id": row[1],
            "user_id": row[2],
            "order_state": row[4],
            "barista_user_id": row[5],
            "last_updated": row[8],
        }
        if row[3] is not None:
            attributes["drink_order"] = json.loads(row[3])
        if row[6] is not None:
            attributes["callback_token"] = row[6]
        if row[7] is not None:
            attributes["suspended_at"] = row[7]
        return OrderRecord.from_attributes(attributes)


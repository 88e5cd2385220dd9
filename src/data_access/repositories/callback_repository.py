"""
Callback Repository - Issue and resume callback tokens.

A callback token identifies one suspended caller. The caller blocks
(or polls) on its token; a later unit of work resumes it with a payload.
Resume is at-most-once: a second resume, a resume after revoke, or a
resume of an unknown token raises CallbackResumeFailure.

Backends:
    - InMemoryCallbackRegistry: lock-protected tickets with threading.Event wake-ups
    - SqliteCallbackRegistry: durable ticket table, resume is a guarded UPDATE
"""

import json
import logging
import sqlite3
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Protocol

from domain.enums import CallbackStatus
from domain.exceptions import CallbackResumeFailure, CollaboratorUnavailable
from data_access.repositories.order_repository import epoch_millis

logger = logging.getLogger(__name__)


def new_token() -> str:
    """Opaque, unguessable callback token."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class CallbackTicket:
    """State of one issued token."""
    token: str
    status: CallbackStatus
    issued_at: int
    resolved_at: int | None = None
    payload: dict[str, Any] | None = None


class CallbackRegistry(Protocol):
    """Capability to suspend and resume callers."""

    def issue(self) -> str:
        ...

    def resume(self, token: str, payload: dict[str, Any]) -> None:
        ...

    def revoke(self, token: str) -> bool:
        ...

    def wait(self, token: str, timeout: float | None = None) -> dict[str, Any] | None:
        ...

    def ticket(self, token: str) -> CallbackTicket | None:
        ...


def _failure_reason(ticket: CallbackTicket | None) -> str:
    if ticket is None:
        return "unknown token"
    if ticket.status == CallbackStatus.RESUMED:
        return "token already consumed"
    return f"token is {ticket.status.value}"


@dataclass
class _Waiter:
    ticket: CallbackTicket
    event: threading.Event = field(default_factory=threading.Event)


class InMemoryCallbackRegistry:
    """
    Process-local registry; waiters are woken through threading.Event.

    Issued tokens are kept until resolved. Only the most recent
    max_resolved resumed or revoked tickets are retained; older ones are
    forgotten and read as unknown tokens afterwards.
    """

    def __init__(self, clock: Callable[[], int] | None = None, max_resolved: int = 10_000):
        if max_resolved < 1:
            raise ValueError("max_resolved must be positive")
        self._clock = clock or epoch_millis
        self._waiters: dict[str, _Waiter] = {}
        self._resolved: deque[str] = deque()
        self._max_resolved = max_resolved
        self._lock = threading.Lock()

    def issue(self) -> str:
        token = new_token()
        with self._lock:
            self._waiters[token] = _Waiter(CallbackTicket(token, CallbackStatus.ISSUED, self._clock()))
        logger.debug("Issued callback token %s", token)
        return token

    def resume(self, token: str, payload: dict[str, Any]) -> None:
        """
        Resume the caller waiting on token.

        Raises:
            CallbackResumeFailure: If the token is unknown, revoked or consumed
        """
        with self._lock:
            waiter = self._waiters.get(token)
            ticket = waiter.ticket if waiter else None
            if ticket is None or ticket.status != CallbackStatus.ISSUED:
                raise CallbackResumeFailure(token, _failure_reason(ticket))
            waiter.ticket = replace(
                ticket, status=CallbackStatus.RESUMED, resolved_at=self._clock(), payload=dict(payload)
            )
            waiter.event.set()
            self._retire(token)
        logger.info("Resumed callback token %s", token)

    def revoke(self, token: str) -> bool:
        """Withdraw an issued token that was never bound; False if not revocable."""
        with self._lock:
            waiter = self._waiters.get(token)
            if waiter is None or waiter.ticket.status != CallbackStatus.ISSUED:
                return False
            waiter.ticket = replace(waiter.ticket, status=CallbackStatus.REVOKED, resolved_at=self._clock())
            waiter.event.set()
            self._retire(token)
        return True

    def wait(self, token: str, timeout: float | None = None) -> dict[str, Any] | None:
        """
        Block until token is resumed.

        Returns:
            The resume payload, or None on timeout or revoke

        Raises:
            CallbackResumeFailure: If the token was never issued
        """
        with self._lock:
            waiter = self._waiters.get(token)
        if waiter is None:
            raise CallbackResumeFailure(token, "unknown token")
        waiter.event.wait(timeout)
        with self._lock:
            ticket = waiter.ticket
        return ticket.payload if ticket.status == CallbackStatus.RESUMED else None

    def ticket(self, token: str) -> CallbackTicket | None:
        with self._lock:
            waiter = self._waiters.get(token)
            return waiter.ticket if waiter else None

    def _retire(self, token: str) -> None:
        # Caller holds self._lock.
        self._resolved.append(token)
        while len(self._resolved) > self._max_resolved:
            del self._waiters[self._resolved.popleft()]


class SqliteCallbackRegistry:
    """
    Durable ticket store.

    Resume flips status from 'issued' to 'resumed' in a single guarded
    UPDATE, so concurrent resumes of the same token race on the row and
    exactly one of them changes it.
    """

    def __init__(
        self,
        db_path: Path | str,
        clock: Callable[[], int] | None = None,
        poll_interval: float = 0.05,
    ):
        """
        Initialize registry with database path.

        Args:
            db_path: Path to SQLite database file or ":memory:"
            clock: Millisecond clock, defaults to wall time
            poll_interval: Seconds between checks while waiting
        """
        self._clock = clock or epoch_millis
        self._poll_interval = poll_interval
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(str(db_path), isolation_level=None, check_same_thread=False)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS callback_tickets (
                    token TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    issued_at INTEGER NOT NULL,
                    resolved_at INTEGER,
                    payload TEXT
                )
            """)
        except sqlite3.Error as e:
            raise CollaboratorUnavailable("callback registry", e) from e

    def _execute(self, sql: str, params: tuple = ()) -> tuple[int, tuple | None]:
        """Run one statement; returns (rowcount, first row)."""
        try:
            with self._lock:
                cursor = self._conn.execute(sql, params)
                return cursor.rowcount, cursor.fetchone()
        except sqlite3.Error as e:
            raise CollaboratorUnavailable("callback registry", e) from e

    def issue(self) -> str:
        token = new_token()
        self._execute(
            "INSERT INTO callback_tickets (token, status, issued_at) VALUES (?, ?, ?)",
            (token, CallbackStatus.ISSUED.value, self._clock()),
        )
        logger.debug("Issued callback token %s", token)
        return token

    def resume(self, token: str, payload: dict[str, Any]) -> None:
        """
        Resume the caller waiting on token.

        Raises:
            CallbackResumeFailure: If the token is unknown, revoked or consumed
        """
        rowcount, _ = self._execute(
            """
            UPDATE callback_tickets
            SET status = ?, resolved_at = ?, payload = ?
            WHERE token = ? AND status = ?
            """,
            (
                CallbackStatus.RESUMED.value,
                self._clock(),
                json.dumps(payload),
                token,
                CallbackStatus.ISSUED.value,
            ),
        )
        if rowcount == 0:
            raise CallbackResumeFailure(token, _failure_reason(self.ticket(token)))
        logger.info("Resumed callback token %s", token)

    def revoke(self, token: str) -> bool:
        rowcount, _ = self._execute(
            "UPDATE callback_tickets SET status = ?, resolved_at = ? WHERE token = ? AND status = ?",
            (CallbackStatus.REVOKED.value, self._clock(), token, CallbackStatus.ISSUED.value),
        )
        return rowcount > 0

    def wait(self, token: str, timeout: float | None = None) -> dict[str, Any] | None:
        """
        Poll until token is resumed.

        Returns:
            The resume payload, or None on timeout or revoke

        Raises:
            CallbackResumeFailure: If the token was never issued
        """
        deadline = None if timeout is None else time.monotonic() + max(0.0, timeout)
        while True:
            ticket = self.ticket(token)
            if ticket is None:
                raise CallbackResumeFailure(token, "unknown token")
            if ticket.status == CallbackStatus.RESUMED:
                return ticket.payload
            if ticket.status == CallbackStatus.REVOKED:
                return None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                time.sleep(min(self._poll_interval, remaining))
            else:
                time.sleep(self._poll_interval)

    def ticket(self, token: str) -> CallbackTicket | None:
        _, row = self._execute(
            "SELECT token, status, issued_at, resolved_at, payload FROM callback_tickets WHERE token = ?",
            (token,),
        )
        if row is None:
            return None
        return CallbackTicket(
            token=row[0],
            status=CallbackStatus(row[1]),
            issued_at=row[2],
            resolved_at=row[3],
            payload=json.loads(row[4]) if row[4] is not None else None,
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()


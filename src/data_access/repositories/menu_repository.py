"""
Menu Repository - Read access to the menu configuration.

The menu is owned by an external configuration source; the workflow only
reads it. Documents are stored in the original shape
{"value": [{"drink", "available", "icon", "modifiers": [{"Options": [...]}]}]}.
"""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Mapping, Protocol

from domain.entities import MenuSnapshot
from domain.exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)

MENU_KEY = "menu"


class MenuSource(Protocol):
    """Read-only collaborator returning the current menu."""

    def get(self, key: str = MENU_KEY) -> MenuSnapshot:
        ...


class StaticMenuSource:
    """Menu held in memory."""

    def __init__(self, menu: MenuSnapshot | Mapping[str, Any] | list):
        self._menu = menu if isinstance(menu, MenuSnapshot) else MenuSnapshot.from_dict(menu)

    def get(self, key: str = MENU_KEY) -> MenuSnapshot:
        return self._menu


class SqliteMenuRepository:
    """
    Config table holding JSON documents keyed by name.

    A missing menu reads as an empty snapshot, which rejects every order.
    """

    def __init__(self, db_path: Path | str):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file or ":memory:"
        """
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
            with self._conn:
                self._conn.execute("""
                    CREATE TABLE IF NOT EXISTS config (
                        pk TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
        except sqlite3.Error as e:
            raise CollaboratorUnavailable("menu source", e) from e

    def get(self, key: str = MENU_KEY) -> MenuSnapshot:
        try:
            with self._lock:
                row = self._conn.execute("SELECT value FROM config WHERE pk = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise CollaboratorUnavailable("menu source", e) from e
        if row is None:
            logger.warning("No %r document in config table; every order will be rejected", key)
            return MenuSnapshot()
        return MenuSnapshot.from_dict(json.loads(row[0]))

    def save(self, document: Mapping[str, Any] | list, key: str = MENU_KEY) -> None:
        """Store or replace a menu document."""
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO config (pk, value) VALUES (?, ?)",
                    (key, json.dumps(document)),
                )
        except sqlite3.Error as e:
            raise CollaboratorUnavailable("menu source", e) from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

"""
Event Bus - Publish-only access to the shared domain event bus.

The workflow publishes events and never consumes them. Delivery to
downstream consumers is at-least-once; subscriptions are wired outside
this package.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Protocol

from domain.entities import DomainEvent
from domain.exceptions import CollaboratorUnavailable
from data_access.repositories.order_repository import epoch_millis

logger = logging.getLogger(__name__)


class EventBus(Protocol):
    """Publish-only collaborator."""

    def publish(self, source: str, detail_type: str, detail: dict[str, Any]) -> DomainEvent:
        ...


class InMemoryEventBus:
    """Keeps published events in order; used by tests and dry runs."""

    def __init__(self, clock: Callable[[], int] | None = None):
        self._clock = clock or epoch_millis
        self._events: list[DomainEvent] = []
        self._lock = threading.Lock()

    def publish(self, source: str, detail_type: str, detail: dict[str, Any]) -> DomainEvent:
        event = DomainEvent(source=source, detail_type=detail_type, detail=dict(detail), published_at=self._clock())
        with self._lock:
            self._events.append(event)
        logger.info("Published %s from %s", detail_type, source)
        return event

    @property
    def events(self) -> list[DomainEvent]:
        with self._lock:
            return list(self._events)

    def events_of_type(self, detail_type: str) -> list[DomainEvent]:
        return [e for e in self.events if e.detail_type == detail_type]


class JsonLinesEventBus:
    """Appends each event as one JSON line to a file a relay can tail."""

    def __init__(self, path: Path | str, clock: Callable[[], int] | None = None):
        self._path = Path(path)
        self._clock = clock or epoch_millis
        self._lock = threading.Lock()

    def publish(self, source: str, detail_type: str, detail: dict[str, Any]) -> DomainEvent:
        """
        Append an event to the log.

        Raises:
            CollaboratorUnavailable: If the log cannot be written
        """
        event = DomainEvent(source=source, detail_type=detail_type, detail=dict(detail), published_at=self._clock())
        try:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with open(self._path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(event.to_dict()) + "\n")
        except OSError as e:
            raise CollaboratorUnavailable("event bus", e) from e
        logger.info("Published %s from %s to %s", detail_type, source, self._path)
        return event


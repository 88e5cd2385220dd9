"""
Application Orchestrator - Main coordinator for the order manager.

This is the top-level component that ties together all layers:
- Domain models
- Order, menu and callback repositories
- Event bus
- Put-order, claim and complete services
- Dispatcher and suspension monitor
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Mapping

from data_access.event_bus import EventBus, JsonLinesEventBus
from data_access.repositories.callback_repository import CallbackRegistry, SqliteCallbackRegistry
from data_access.repositories.menu_repository import MenuSource, SqliteMenuRepository
from data_access.repositories.order_repository import OrderRepository, SqliteOrderRepository
from business_logic.services.claim_order_service import ClaimOrderService
from business_logic.services.complete_order_service import CompleteOrderService
from business_logic.services.put_order_service import PutOrderService
from domain.entities import DispatchResult, OrderRecord
from domain.exceptions import CollaboratorUnavailable
from domain.value_objects import OrderTrigger, RecordKey
from orchestration.config import ApplicationConfig
from orchestration.dispatcher import OrderDispatcher
from orchestration.suspension_monitor import SuspendedOrder, SuspensionMonitor

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure root logging to stderr.

    Args:
        level: Level name such as "INFO" or "DEBUG"

    Returns:
        The root logger
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    return logging.getLogger()


class ApplicationOrchestrator:
    """
    Main application orchestrator.

    Owns the collaborators and exposes the operations the CLI (or any
    other host) needs.
    """

    def __init__(
        self,
        config: ApplicationConfig,
        order_repository: OrderRepository,
        menu_source: MenuSource,
        callbacks: CallbackRegistry,
        event_bus: EventBus,
        dispatcher: OrderDispatcher | None = None,
        monitor: SuspensionMonitor | None = None,
        clock: Callable[[], int] | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Application configuration
            order_repository: Order Record Store
            menu_source: Menu configuration source
            callbacks: Callback registry
            event_bus: Domain event bus
            dispatcher: Trigger dispatcher (built from the above if None)
            monitor: Suspension monitor (built from the above if None)
            clock: Millisecond clock for suspension timestamps and ages
        """
        self._config = config
        self._order_repository = order_repository
        self._menu_source = menu_source
        self._callbacks = callbacks
        self._event_bus = event_bus

        self._dispatcher = dispatcher or OrderDispatcher(
            PutOrderService(order_repository, menu_source, callbacks, menu_key=config.menu_key, clock=clock),
            ClaimOrderService(order_repository, event_bus, config.event_source),
            CompleteOrderService(order_repository, event_bus, callbacks, config.event_source),
        )
        self._monitor = monitor or SuspensionMonitor(order_repository, clock=clock)

    @property
    def dispatcher(self) -> OrderDispatcher:
        return self._dispatcher

    def dispatch(self, trigger: OrderTrigger | Mapping[str, Any]) -> DispatchResult:
        """Route and run one trigger."""
        return self._dispatcher.dispatch(trigger)

    def show_order(self, order_id: str) -> OrderRecord | None:
        return self._order_repository.get(RecordKey.for_order(order_id))

    def report_stale(self, max_age_seconds: float | None = None) -> list[SuspendedOrder]:
        """Suspensions older than the threshold (config default if None)."""
        threshold = max_age_seconds if max_age_seconds is not None else self._config.stale_after_seconds
        return self._monitor.find_stale(threshold)

    def load_menu(self, menu_path: Path) -> int:
        """
        Seed the config table with a menu JSON document.

        Returns:
            Number of drinks loaded

        Raises:
            CollaboratorUnavailable: If the file is unreadable or the menu
                source is read-only
        """
        if not isinstance(self._menu_source, SqliteMenuRepository):
            raise CollaboratorUnavailable("menu source", TypeError("menu source is read-only"))
        try:
            with open(menu_path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CollaboratorUnavailable("menu source", e) from e
        self._menu_source.save(document, key=self._config.menu_key)
        drinks = self._menu_source.get(self._config.menu_key).drinks()
        logger.info("Loaded menu with %d drink(s)", len(drinks))
        return len(drinks)


def create_orchestrator(config: ApplicationConfig | None = None) -> ApplicationOrchestrator:
    """
    Factory function to create a fully configured orchestrator.

    Args:
        config: Application configuration (uses defaults if None)

    Returns:
        Configured ApplicationOrchestrator instance backed by SQLite
        and the JSON-lines event log
    """
    if config is None:
        config = ApplicationConfig.from_defaults()

    config.ensure_directories()

    return ApplicationOrchestrator(
        config=config,
        order_repository=SqliteOrderRepository(config.order_db_path),
        menu_source=SqliteMenuRepository(config.menu_db_path),
        callbacks=SqliteCallbackRegistry(config.order_db_path),
        event_bus=JsonLinesEventBus(config.event_log_path),
    )

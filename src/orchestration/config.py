"""
Application Configuration.

Centralized configuration for the order manager.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ApplicationConfig:
    """
    Central configuration for the application.

    All paths and settings are configurable through this object.
    """
    # Database paths
    order_db_path: Path
    menu_db_path: Path

    # Event log written by the file-backed bus
    event_log_path: Path

    # Workflow settings
    event_source: str = "coffee-shop.order-manager"
    menu_key: str = "menu"
    stale_after_seconds: int = 900

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.stale_after_seconds <= 0:
            raise ValueError("stale_after_seconds must be positive")
        if not self.event_source:
            raise ValueError("event_source is required")

    @classmethod
    def from_defaults(cls) -> "ApplicationConfig":
        """
        Create configuration with default values.

        Returns:
            ApplicationConfig with standard defaults
        """
        base_path = Path.cwd() / "data"

        return cls(
            order_db_path=base_path / "orders.db",
            menu_db_path=base_path / "config.db",
            event_log_path=base_path / "events.jsonl",
            event_source="coffee-shop.order-manager",
            menu_key="menu",
            stale_after_seconds=900,
            log_level="INFO",
        )

    @classmethod
    def for_testing(cls, base_path: Path | None = None) -> "ApplicationConfig":
        """
        Create configuration for testing environment.

        Args:
            base_path: Scratch directory (defaults to /tmp/order_manager_test)

        Returns:
            ApplicationConfig with testing defaults
        """
        base_path = base_path or Path("/tmp/order_manager_test")

        return cls(
            order_db_path=base_path / "orders_test.db",
            menu_db_path=base_path / "config_test.db",
            event_log_path=base_path / "events_test.jsonl",
            event_source="coffee-shop.order-manager.test",
            menu_key="menu",
            stale_after_seconds=60,
            log_level="DEBUG",
        )

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        self.order_db_path.parent.mkdir(parents=True, exist_ok=True)
        self.menu_db_path.parent.mkdir(parents=True, exist_ok=True)
        self.event_log_path.parent.mkdir(parents=True, exist_ok=True)

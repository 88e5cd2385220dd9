"""
Suspension Monitor - Report submissions that have waited too long.

The workflow never times out a suspended submission on its own. This
scanner surfaces each suspension's age so an external watchdog can
decide to cancel the order.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from data_access.repositories.order_repository import OrderRepository, epoch_millis
from domain.entities import OrderRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SuspendedOrder:
    """An order with a caller still waiting, and how long it has waited."""
    record: OrderRecord
    age_seconds: float

    @property
    def order_id(self) -> str:
        return self.record.order_id


class SuspensionMonitor:
    """
    Scans the order store for outstanding suspensions.

    Read-only: it never changes an order.
    """

    def __init__(self, order_repository: OrderRepository, clock: Callable[[], int] | None = None):
        """
        Initialize the monitor.

        Args:
            order_repository: Order Record Store to scan
            clock: Millisecond clock, defaults to wall time
        """
        self._orders = order_repository
        self._clock = clock or epoch_millis

    def scan_suspended(self) -> list[SuspendedOrder]:
        """
        List every suspended order with its age, oldest first.

        Returns:
            List of SuspendedOrder, empty if nothing is waiting
        """
        now = self._clock()
        suspended = []
        for record in self._orders.list_suspended():
            age_ms = record.suspension_age_ms(now)
            if age_ms is None:
                continue
            suspended.append(SuspendedOrder(record=record, age_seconds=age_ms / 1000.0))
        suspended.sort(key=lambda s: s.age_seconds, reverse=True)
        return suspended

    def find_stale(self, max_age_seconds: float) -> list[SuspendedOrder]:
        """
        List suspended orders older than max_age_seconds.

        Args:
            max_age_seconds: Age threshold; must be positive

        Returns:
            Stale suspensions, oldest first
        """
        if max_age_seconds <= 0:
            raise ValueError("max_age_seconds must be positive")
        stale = [s for s in self.scan_suspended() if s.age_seconds > max_age_seconds]
        if stale:
            logger.warning("%d order(s) suspended longer than %ss", len(stale), max_age_seconds)
        return stale

"""
Tests for the Suspension Monitor.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
_src_path = Path(__file__).parent.parent.parent / "src"
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

from business_logic.services.put_order_service import PutOrderRequest
from orchestration.suspension_monitor import SuspensionMonitor


@pytest.fixture
def monitor(order_repository, clock):
    return SuspensionMonitor(order_repository, clock=clock)


class TestSuspensionMonitor:
    """Tests for SuspensionMonitor."""

    def test_nothing_suspended(self, monitor):
        assert monitor.scan_suspended() == []

    def test_scan_reports_age_oldest_first(self, monitor, put_service, clock):
        put_service.put_order(PutOrderRequest("o-old", "u1", "latte"))
        clock.advance(30)
        put_service.put_order(PutOrderRequest("o-new", "u2", "espresso"))
        clock.advance(10)

        suspended = monitor.scan_suspended()

        assert [s.order_id for s in suspended] == ["o-old", "o-new"]
        assert suspended[0].age_seconds == 40
        assert suspended[1].age_seconds == 10

    def test_find_stale(self, monitor, put_service, clock):
        put_service.put_order(PutOrderRequest("o-old", "u1", "latte"))
        clock.advance(120)
        put_service.put_order(PutOrderRequest("o-new", "u2", "latte"))

        stale = monitor.find_stale(60)

        assert [s.order_id for s in stale] == ["o-old"]

    def test_finished_orders_are_not_suspended(self, monitor, put_service, complete_service, clock):
        put_service.put_order(PutOrderRequest("o-1", "u1", "latte"))
        complete_service.complete("o-1")
        clock.advance(3600)

        assert monitor.find_stale(60) == []

    def test_monitor_is_read_only(self, monitor, put_service, order_repository, clock):
        put_service.put_order(PutOrderRequest("o-1", "u1", "latte"))
        before = order_repository.list_suspended()
        clock.advance(3600)

        monitor.find_stale(60)

        assert order_repository.list_suspended() == before

    def test_rejects_non_positive_threshold(self, monitor):
        with pytest.raises(ValueError):
            monitor.find_stale(0)

"""
Global test configuration.

Shared fixtures: a sample menu, a controllable millisecond clock and
in-memory collaborators wired into the three order services.
"""
import sys
from pathlib import Path

import pytest

_src_path = Path(__file__).parent.parent / "src"
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

from data_access.event_bus import InMemoryEventBus
from data_access.repositories.callback_repository import InMemoryCallbackRegistry
from data_access.repositories.menu_repository import StaticMenuSource
from data_access.repositories.order_repository import InMemoryOrderRepository
from business_logic.services.claim_order_service import ClaimOrderService
from business_logic.services.complete_order_service import CompleteOrderService
from business_logic.services.put_order_service import PutOrderService
from orchestration.dispatcher import OrderDispatcher

EVENT_SOURCE = "coffee-shop.order-manager.test"

MENU_DOCUMENT = {
    "value": [
        {
            "drink": "latte",
            "available": True,
            "icon": "latte",
            "modifiers": [
                {"Name": "Milk", "Options": ["whole", "oat", "soy"]},
                {"Name": "Shots", "Options": ["single", "double"]},
            ],
        },
        {
            "drink": "espresso",
            "available": True,
            "icon": "espresso",
            "modifiers": [{"Name": "Shots", "Options": ["double"]}],
        },
        {
            "drink": "pumpkin spice",
            "available": False,
            "icon": "seasonal",
            "modifiers": [],
        },
    ]
}


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def menu_document():
    return MENU_DOCUMENT


@pytest.fixture
def menu_source():
    return StaticMenuSource(MENU_DOCUMENT)


@pytest.fixture
def order_repository(clock):
    return InMemoryOrderRepository(clock=clock)


@pytest.fixture
def callbacks(clock):
    return InMemoryCallbackRegistry(clock=clock)


@pytest.fixture
def event_bus(clock):
    return InMemoryEventBus(clock=clock)


@pytest.fixture
def put_service(order_repository, menu_source, callbacks, clock):
    return PutOrderService(order_repository, menu_source, callbacks, clock=clock)


@pytest.fixture
def claim_service(order_repository, event_bus):
    return ClaimOrderService(order_repository, event_bus, EVENT_SOURCE)


@pytest.fixture
def complete_service(order_repository, event_bus, callbacks):
    return CompleteOrderService(order_repository, event_bus, callbacks, EVENT_SOURCE)


@pytest.fixture
def dispatcher(put_service, claim_service, complete_service):
    return OrderDispatcher(put_service, claim_service, complete_service)

"""
Tests for the claim service: barista make / unmake.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
_src_path = Path(__file__).parent.parent.parent / "src"
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

from business_logic.services.claim_order_service import MAKE_MESSAGE, UNMAKE_MESSAGE
from business_logic.services.put_order_service import PutOrderRequest
from domain.enums import CallbackStatus, OrderAction, OrderState
from domain.exceptions import ConditionalWriteConflict, InvalidTrigger
from domain.value_objects import RecordKey


@pytest.fixture
def admitted(put_service):
    """An order admitted for u1 with its caller suspended."""
    return put_service.put_order(PutOrderRequest("o-1", "u1", "latte", ("oat",)))


class TestMake:
    """Claiming an order for a barista."""

    def test_make_assigns_barista(self, admitted, claim_service, order_repository):
        result = claim_service.make("o-1", "b-1")

        assert result.action == OrderAction.MAKE
        assert result.record.barista_user_id == "b-1"
        assert result.record.order_state == OrderState.MAKING
        assert order_repository.get(RecordKey.for_order("o-1")).barista_user_id == "b-1"

    def test_make_publishes_event(self, admitted, claim_service, event_bus):
        claim_service.make("o-1", "b-1")

        events = event_bus.events_of_type("OrderManager.MakeOrder")
        assert len(events) == 1
        assert events[0].source == "coffee-shop.order-manager.test"
        assert events[0].detail == {
            "baristaUserId": "b-1",
            "orderId": "o-1",
            "userId": "u1",
            "message": MAKE_MESSAGE,
        }

    def test_make_keeps_caller_suspended(self, admitted, claim_service, callbacks, order_repository):
        claim_service.make("o-1", "b-1")

        assert callbacks.ticket(admitted.token).status == CallbackStatus.ISSUED
        assert order_repository.get(RecordKey.for_order("o-1")).callback_token == admitted.token

    def test_duplicate_make_by_same_barista(self, admitted, claim_service):
        claim_service.make("o-1", "b-1")
        result = claim_service.make("o-1", "b-1")

        assert result.record.barista_user_id == "b-1"

    def test_make_by_second_barista_conflicts(self, admitted, claim_service, event_bus):
        claim_service.make("o-1", "b-1")

        with pytest.raises(ConditionalWriteConflict):
            claim_service.make("o-1", "b-2")

        assert len(event_bus.events) == 1

    def test_make_unknown_order_conflicts(self, claim_service, order_repository):
        with pytest.raises(ConditionalWriteConflict) as exc_info:
            claim_service.make("missing", "b-1")

        assert exc_info.value.detail == "record does not exist"
        assert order_repository.count() == 0

    def test_make_terminal_order_conflicts(self, admitted, claim_service, complete_service):
        complete_service.complete("o-1")

        with pytest.raises(ConditionalWriteConflict):
            claim_service.make("o-1", "b-1")

    def test_make_requires_barista(self, admitted, claim_service):
        with pytest.raises(InvalidTrigger):
            claim_service.make("o-1", "")


class TestUnmake:
    """Releasing an order back to the queue."""

    def test_unmake_clears_barista(self, admitted, claim_service):
        claim_service.make("o-1", "b-1")
        result = claim_service.unmake("o-1", "b-1")

        assert result.record.barista_user_id == ""
        assert result.record.order_state == OrderState.PENDING
        assert result.event.detail["message"] == UNMAKE_MESSAGE
        assert result.event.detail["baristaUserId"] == ""

    def test_reclaim_after_unmake(self, admitted, claim_service):
        claim_service.make("o-1", "b-1")
        claim_service.unmake("o-1")
        result = claim_service.make("o-1", "b-2")

        assert result.record.barista_user_id == "b-2"
        assert result.record.order_state == OrderState.MAKING

    def test_unmake_terminal_order_conflicts(self, admitted, claim_service, complete_service):
        complete_service.cancel("o-1")

        with pytest.raises(ConditionalWriteConflict):
            claim_service.unmake("o-1")


class TestClaimRouting:
    def test_claim_routes_by_action(self, admitted, claim_service):
        made = claim_service.claim(OrderAction.MAKE, "o-1", "b-1")
        unmade = claim_service.claim(OrderAction.UNMAKE, "o-1", None)

        assert made.record.order_state == OrderState.MAKING
        assert unmade.record.order_state == OrderState.PENDING

    def test_claim_requires_order_id(self, claim_service):
        with pytest.raises(InvalidTrigger):
            claim_service.claim(OrderAction.MAKE, "", "b-1")

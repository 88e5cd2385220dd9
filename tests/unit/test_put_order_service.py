"""
Tests for the put-order service: validate, admit and suspend.
"""

import sys
import threading
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src to path
_src_path = Path(__file__).parent.parent.parent / "src"
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

from business_logic.services.put_order_service import PutOrderRequest, PutOrderService
from domain.entities import OrderRecord, PutOrderOutcome
from domain.enums import CallbackStatus, OrderState
from domain.exceptions import CollaboratorUnavailable, ConditionalWriteConflict, InvalidTrigger
from domain.value_objects import RecordKey


def latte_request(order_id="o-1", user_id="u1", modifiers=("oat",)):
    return PutOrderRequest(order_id=order_id, user_id=user_id, drink="latte", modifiers=modifiers)


class TestRejection:
    """Invalid selections are rejected without side effects."""

    def test_unknown_drink_rejected(self, put_service, order_repository, callbacks):
        result = put_service.put_order(PutOrderRequest("o-1", "u1", "mocha"))

        assert result.outcome == PutOrderOutcome.REJECTED
        assert not result
        assert result.token is None
        assert order_repository.get(RecordKey.for_order("o-1")) is None

    def test_bad_modifier_rejected(self, put_service, order_repository):
        result = put_service.put_order(latte_request(modifiers=("caramel",)))

        assert result.admitted is False
        assert order_repository.count() == 0

    def test_blank_drink_rejected(self, put_service, order_repository):
        """A malformed drink is a rejection, not an error."""
        result = put_service.put_order(PutOrderRequest("o-1", "u1", ""))

        assert result.outcome == PutOrderOutcome.REJECTED
        assert order_repository.count() == 0

    def test_rejection_issues_no_token(self, order_repository, menu_source, clock):
        callbacks = Mock()
        service = PutOrderService(order_repository, menu_source, callbacks, clock=clock)

        service.put_order(PutOrderRequest("o-1", "u1", "mocha"))

        callbacks.issue.assert_not_called()


class TestAdmission:
    """Valid selections are stored Pending with a callback token."""

    def test_admit_new_order(self, put_service, order_repository, callbacks, clock):
        result = put_service.put_order(latte_request())

        assert result.outcome == PutOrderOutcome.ADMITTED
        assert result.token
        stored = order_repository.get(RecordKey.for_order("o-1"))
        assert stored.order_state == OrderState.PENDING
        assert stored.user_id == "u1"
        assert stored.callback_token == result.token
        assert stored.suspended_at == clock.now
        assert stored.drink_order.modifiers == ("oat",)
        assert callbacks.ticket(result.token).status == CallbackStatus.ISSUED

    def test_suspension_handle(self, put_service, callbacks):
        result = put_service.put_order(latte_request())

        assert result.suspension.token == result.token
        assert callbacks.ticket(result.suspension.token).status == CallbackStatus.ISSUED
        callbacks.resume(result.token, {})
        assert result.suspension.wait(timeout=1) == {}
        assert callbacks.ticket(result.suspension.token).status == CallbackStatus.RESUMED

    def test_wait_times_out_without_resume(self, put_service):
        result = put_service.put_order(latte_request())
        assert result.suspension.wait(timeout=0.01) is None

    def test_wait_unblocks_from_another_thread(self, put_service, callbacks):
        result = put_service.put_order(latte_request())
        received = []

        waiter = threading.Thread(target=lambda: received.append(result.suspension.wait(timeout=5)))
        waiter.start()
        callbacks.resume(result.token, {})
        waiter.join(timeout=5)

        assert received == [{}]

    def test_admit_over_unsuspended_pending_record(self, put_service, order_repository):
        """A Pending record of the same user without a waiting caller can be re-admitted."""
        order_repository.put(OrderRecord(order_id="o-1", user_id="u1"))

        result = put_service.put_order(latte_request())

        assert result.admitted
        assert result.reused_suspension is False


class TestIdempotentResubmission:
    """A duplicate submission joins the existing suspension."""

    def test_resubmit_reuses_token(self, put_service, order_repository):
        first = put_service.put_order(latte_request())
        second = put_service.put_order(latte_request(modifiers=("soy",)))

        assert second.admitted
        assert second.reused_suspension is True
        assert second.token == first.token
        stored = order_repository.get(RecordKey.for_order("o-1"))
        assert stored.callback_token == first.token
        assert stored.drink_order.modifiers == ("soy",)

    def test_resubmit_after_make_conflicts(self, put_service, claim_service):
        put_service.put_order(latte_request())
        claim_service.make("o-1", "b-1")

        with pytest.raises(ConditionalWriteConflict):
            put_service.put_order(latte_request())

    def test_resubmit_after_completion_conflicts(self, put_service, complete_service):
        put_service.put_order(latte_request())
        complete_service.complete("o-1")

        with pytest.raises(ConditionalWriteConflict) as exc_info:
            put_service.put_order(latte_request())

        assert exc_info.value.detail == "order is Completed"


class TestOwnership:
    """An order id belongs to the user who first submitted it."""

    def test_other_user_conflicts(self, put_service, callbacks):
        first = put_service.put_order(latte_request(user_id="u1"))

        with pytest.raises(ConditionalWriteConflict) as exc_info:
            put_service.put_order(latte_request(user_id="u2"))

        assert exc_info.value.order_id == "o-1"
        assert exc_info.value.action == "submit"
        assert callbacks.ticket(first.token).status == CallbackStatus.ISSUED

    def test_losing_token_is_revoked(self, order_repository, menu_source, clock):
        callbacks = Mock()
        callbacks.issue.side_effect = ["t1", "t2"]
        service = PutOrderService(order_repository, menu_source, callbacks, clock=clock)
        service.put_order(latte_request(user_id="u1"))

        with pytest.raises(ConditionalWriteConflict):
            service.put_order(latte_request(user_id="u2"))

        callbacks.revoke.assert_called_once_with("t2")


class TestInvalidRequests:
    def test_missing_order_id(self, put_service):
        with pytest.raises(InvalidTrigger):
            put_service.put_order(PutOrderRequest("", "u1", "latte"))

    def test_missing_user_id(self, put_service):
        with pytest.raises(InvalidTrigger):
            put_service.put_order(PutOrderRequest("o-1", "", "latte"))

    def test_menu_source_failure_propagates(self, order_repository, callbacks, clock):
        menu_source = Mock()
        menu_source.get.side_effect = CollaboratorUnavailable("menu source", OSError("down"))
        service = PutOrderService(order_repository, menu_source, callbacks, clock=clock)

        with pytest.raises(CollaboratorUnavailable):
            service.put_order(latte_request())

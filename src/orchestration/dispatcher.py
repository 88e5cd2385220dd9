"""
Order Dispatcher - Top-level decision point of the order workflow.

Routes an inbound trigger by its action tag:

    complete -> complete/cancel flow (complete path)
    cancel   -> complete/cancel flow (cancel path)
    make     -> claim flow (make path)
    unmake   -> claim flow (unmake path)
    other    -> put-order flow (new submission)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from business_logic.services.claim_order_service import ClaimOrderService
from business_logic.services.complete_order_service import CompleteOrderService
from business_logic.services.put_order_service import PutOrderRequest, PutOrderService
from domain.entities import DispatchResult
from domain.enums import OrderAction
from domain.exceptions import InvalidTrigger
from domain.value_objects import OrderTrigger

logger = logging.getLogger(__name__)


class Flow(Enum):
    """The three flows a trigger can be routed to."""
    PUT_ORDER = "put_order"
    CLAIM_ORDER = "claim_order"
    COMPLETE_ORDER = "complete_order"


@dataclass(frozen=True)
class Route:
    flow: Flow
    action: OrderAction


_ROUTES: dict[OrderAction, Flow] = {
    OrderAction.COMPLETE: Flow.COMPLETE_ORDER,
    OrderAction.CANCEL: Flow.COMPLETE_ORDER,
    OrderAction.MAKE: Flow.CLAIM_ORDER,
    OrderAction.UNMAKE: Flow.CLAIM_ORDER,
    OrderAction.SUBMIT: Flow.PUT_ORDER,
}


def route(action: str | None) -> Route:
    """
    Select the flow for an action tag (pure, total).

    Args:
        action: Raw action field, may be None

    Returns:
        Route naming the flow and the resolved action

    Examples:
        >>> route("make")
        Route(flow=<Flow.CLAIM_ORDER: 'claim_order'>, action=<OrderAction.MAKE: 'make'>)
        >>> route(None).flow
        <Flow.PUT_ORDER: 'put_order'>
    """
    resolved = OrderAction.from_value(action)
    return Route(flow=_ROUTES[resolved], action=resolved)


class OrderDispatcher:
    """
    Runs the routed flow for each trigger.

    Errors from the flows (conflicts, resume failures, collaborator
    outages) propagate unchanged; only a menu rejection comes back as
    an unsuccessful DispatchResult.
    """

    def __init__(
        self,
        put_order_service: PutOrderService,
        claim_order_service: ClaimOrderService,
        complete_order_service: CompleteOrderService,
    ):
        self._put_order = put_order_service
        self._claim_order = claim_order_service
        self._complete_order = complete_order_service

    def dispatch(self, trigger: OrderTrigger | Mapping[str, Any]) -> DispatchResult:
        """
        Handle one inbound trigger.

        Args:
            trigger: Parsed trigger or its raw JSON mapping

        Returns:
            DispatchResult describing what happened

        Raises:
            InvalidTrigger: If the trigger is malformed
            ConditionalWriteConflict: If a conditional write lost
            CallbackResumeFailure: If the suspended caller cannot be resumed
            CollaboratorUnavailable: If a collaborator failed
        """
        if not isinstance(trigger, OrderTrigger):
            try:
                trigger = OrderTrigger.from_dict(trigger)
            except ValueError as e:
                raise InvalidTrigger(str(e)) from e

        selected = route(trigger.action)
        logger.info("Dispatching %s for order %s to %s", selected.action.value, trigger.order_id, selected.flow.value)

        if selected.flow == Flow.COMPLETE_ORDER:
            completion = self._complete_order.finish(selected.action, trigger.order_id)
            return DispatchResult(
                action=selected.action,
                order_id=trigger.order_id,
                success=True,
                completion_result=completion,
                events=[completion.event],
            )

        if selected.flow == Flow.CLAIM_ORDER:
            claim = self._claim_order.claim(selected.action, trigger.order_id, trigger.barista_user_id)
            return DispatchResult(
                action=selected.action,
                order_id=trigger.order_id,
                success=True,
                claim_result=claim,
                events=[claim.event],
            )

        body = trigger.body or {}
        modifiers = body.get("modifiers") or []
        if isinstance(modifiers, str) or not isinstance(modifiers, (list, tuple)):
            raise InvalidTrigger(f"modifiers for order {trigger.order_id!r} must be a list")
        put = self._put_order.put_order(PutOrderRequest(
            order_id=trigger.order_id,
            user_id=trigger.submitting_user() or "",
            drink=body.get("drink") or "",
            modifiers=tuple(str(m) for m in modifiers),
        ))
        return DispatchResult(
            action=selected.action,
            order_id=trigger.order_id,
            success=put.admitted,
            put_result=put,
        )

"""
Claim Order Service - Barista-side make / unmake transitions.

    make:   AssignBarista -> ConstructRecord -> EmitMakingOrder
    unmake: ResetBarista -> AssignBarista -> ConstructRecord -> EmitMakingOrder

Any barista may claim an unclaimed order or re-claim one that was
unmade; there is no customer-ownership check on this path. The flow
never resumes a suspended caller.
"""

import logging
from dataclasses import dataclass, replace

from data_access.event_bus import EventBus
from data_access.repositories.order_repository import OrderRepository
from domain.entities import ClaimResult, DomainEvent, OrderRecord
from domain.enums import EventType, OrderAction, OrderState
from domain.exceptions import InvalidTrigger
from domain.value_objects import (
    AllOf,
    AnyOf,
    AttributeEquals,
    AttributeExists,
    AttributeIn,
    AttributeNotExists,
    Condition,
    RecordKey,
)

logger = logging.getLogger(__name__)

MAKE_MESSAGE = "The barista has pressed the 'Make order' button; the order is being made."
UNMAKE_MESSAGE = "The barista has pressed the 'Unmake order' button; the order is back in the queue."


@dataclass(frozen=True)
class ClaimContext:
    """Typed state threaded through the claim steps."""
    action: OrderAction
    order_id: str
    barista_user_id: str
    record: OrderRecord | None = None
    detail: dict | None = None
    event: DomainEvent | None = None

    @property
    def key(self) -> RecordKey:
        return RecordKey.for_order(self.order_id)


class ClaimOrderService:
    """Assigns and releases baristas, announcing each change on the bus."""

    def __init__(self, order_repository: OrderRepository, event_bus: EventBus, event_source: str):
        """
        Initialize service with its collaborators.

        Args:
            order_repository: Order Record Store
            event_bus: Bus that receives MakeOrder events
            event_source: Source name stamped on published events
        """
        self._orders = order_repository
        self._bus = event_bus
        self._source = event_source

    def make(self, order_id: str, barista_user_id: str) -> ClaimResult:
        """
        Claim an order for a barista.

        Raises:
            InvalidTrigger: If order_id or barista_user_id is missing
            ConditionalWriteConflict: If the order is unknown, terminal,
                or claimed by a different barista
        """
        if not barista_user_id:
            raise InvalidTrigger(f"make on order {order_id!r} requires baristaUserId")
        context = ClaimContext(OrderAction.MAKE, order_id, barista_user_id)
        return self._finish(self.assign_barista(context))

    def unmake(self, order_id: str, barista_user_id: str | None = None) -> ClaimResult:
        """
        Release an order so another barista can claim it.

        Raises:
            ConditionalWriteConflict: If the order is unknown or terminal
        """
        context = ClaimContext(OrderAction.UNMAKE, order_id, barista_user_id or "")
        context = self.reset_barista(context)
        return self._finish(self.assign_barista(context))

    def claim(self, action: OrderAction, order_id: str, barista_user_id: str | None) -> ClaimResult:
        """Route to make or unmake by action tag."""
        if not order_id:
            raise InvalidTrigger(f"{action.value} requires orderId")
        if action == OrderAction.UNMAKE:
            return self.unmake(order_id, barista_user_id)
        return self.make(order_id, barista_user_id or "")

    # -- states -----------------------------------------------------------

    def reset_barista(self, context: ClaimContext) -> ClaimContext:
        """Clear the assignment before reassignment."""
        return replace(context, barista_user_id="")

    def assign_barista(self, context: ClaimContext) -> ClaimContext:
        target_state = OrderState.PENDING if context.action == OrderAction.UNMAKE else OrderState.MAKING
        result = self._orders.conditional_update(
            context.key,
            self._claim_condition(context),
            {
                "barista_user_id": context.barista_user_id,
                "order_state": target_state,
            },
            action=context.action.value,
        )
        logger.info(
            "Order %s %s: barista=%r state=%s",
            context.order_id,
            context.action.value,
            result.record.barista_user_id,
            result.record.order_state.value,
        )
        return replace(context, record=result.record)

    def construct_record(self, context: ClaimContext) -> ClaimContext:
        """Build the event detail from the record as written."""
        record = context.record
        detail = {
            "baristaUserId": record.barista_user_id,
            "orderId": record.order_id,
            "userId": record.user_id,
            "message": UNMAKE_MESSAGE if context.action == OrderAction.UNMAKE else MAKE_MESSAGE,
        }
        return replace(context, detail=detail)

    def emit_making_order(self, context: ClaimContext) -> ClaimContext:
        event = self._bus.publish(self._source, EventType.MAKE_ORDER.value, context.detail)
        return replace(context, event=event)

    # -- helpers ----------------------------------------------------------

    def _finish(self, context: ClaimContext) -> ClaimResult:
        context = self.emit_making_order(self.construct_record(context))
        return ClaimResult(action=context.action, record=context.record, event=context.event)

    @staticmethod
    def _claim_condition(context: ClaimContext) -> Condition:
        active = AllOf(
            AttributeExists("user_id"),
            AttributeIn("order_state", OrderState.active_states()),
        )
        if context.action == OrderAction.UNMAKE:
            return active
        # Unclaimed, or a duplicate trigger from the barista already holding it.
        return AllOf(
            active,
            AnyOf(
                AttributeNotExists("barista_user_id"),
                AttributeEquals("barista_user_id", ""),
                AttributeEquals("barista_user_id", context.barista_user_id),
            ),
        )

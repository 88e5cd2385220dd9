"""
Complete Order Service - Terminal complete / cancel transitions.

    complete | cancel -> UpdateOrderState -> ConstructEventPayload
                      -> EmitTerminalEvent -> ResumeCaller -> ReleaseCallback

This is the only place a suspended submission is released. The state
update keeps the callback token on the record; the token is cleared only
after the caller has been resumed. If the bus or the registry fails in
between, the order stays terminal with its token and a retry of the same
action picks up where the failed attempt stopped. A different terminal
action, or a retry after the caller was already resumed, gets
ConditionalWriteConflict.
"""

import logging
from dataclasses import dataclass, replace

from data_access.event_bus import EventBus
from data_access.repositories.callback_repository import CallbackRegistry
from data_access.repositories.order_repository import OrderRepository
from domain.entities import CompletionResult, DomainEvent, OrderRecord
from domain.enums import CallbackStatus, EventType, OrderAction, OrderState
from domain.exceptions import CallbackResumeFailure, ConditionalWriteConflict, InvalidTrigger
from domain.value_objects import (
    REMOVE,
    AllOf,
    AnyOf,
    AttributeEquals,
    AttributeExists,
    AttributeIn,
    RecordKey,
)

logger = logging.getLogger(__name__)

TERMINAL_MESSAGE = "The barista has cancelled or completed the order."
CONSUMED_REASON = "token already consumed"


@dataclass(frozen=True)
class CompletionContext:
    """Typed state threaded through the terminal steps."""
    action: OrderAction
    order_id: str
    result_state: OrderState
    record: OrderRecord | None = None
    callback_token: str | None = None
    retry: bool = False
    detail: dict | None = None
    event: DomainEvent | None = None

    @property
    def key(self) -> RecordKey:
        return RecordKey.for_order(self.order_id)


class CompleteOrderService:
    """Finalises orders and resumes the callers waiting on them."""

    def __init__(
        self,
        order_repository: OrderRepository,
        event_bus: EventBus,
        callbacks: CallbackRegistry,
        event_source: str,
    ):
        """
        Initialize service with its collaborators.

        Args:
            order_repository: Order Record Store
            event_bus: Bus that receives terminal events
            callbacks: Registry holding the suspended submissions
            event_source: Source name stamped on published events
        """
        self._orders = order_repository
        self._bus = event_bus
        self._callbacks = callbacks
        self._source = event_source

    def complete(self, order_id: str) -> CompletionResult:
        return self._run(CompletionContext(OrderAction.COMPLETE, order_id, OrderState.COMPLETED))

    def cancel(self, order_id: str) -> CompletionResult:
        return self._run(CompletionContext(OrderAction.CANCEL, order_id, OrderState.CANCELLED))

    def finish(self, action: OrderAction, order_id: str) -> CompletionResult:
        """
        Route a terminal action.

        Raises:
            InvalidTrigger: If order_id is missing or action is not terminal
            ConditionalWriteConflict: If the order is unknown, already
                finished, or has no caller waiting on it
            CallbackResumeFailure: If the recovered token is unknown or revoked
            CollaboratorUnavailable: If the store, bus or registry fails;
                retrying the same action is safe
        """
        if not order_id:
            raise InvalidTrigger(f"{action.value} requires orderId")
        if action == OrderAction.COMPLETE:
            return self.complete(order_id)
        if action == OrderAction.CANCEL:
            return self.cancel(order_id)
        raise InvalidTrigger(f"{action.value} is not a terminal action")

    def _run(self, context: CompletionContext) -> CompletionResult:
        context = self.update_order_state(context)
        if context.retry:
            self._ensure_caller_waiting(context)
        context = self.construct_event_payload(context)
        context = self.emit_terminal_event(context)
        context = self.resume_caller(context)
        context = self.release_callback(context)
        return CompletionResult(
            action=context.action,
            record=context.record,
            event=context.event,
            resumed_token=context.callback_token,
        )

    # -- states -----------------------------------------------------------

    def update_order_state(self, context: CompletionContext) -> CompletionContext:
        """
        Move the order to its terminal state, keeping the callback token.

        Also matches an order already in the target state whose token is
        still recorded, which is what an interrupted attempt leaves behind.
        """
        result = self._orders.conditional_update(
            context.key,
            AllOf(
                AttributeExists("callback_token"),
                AnyOf(
                    AttributeIn("order_state", OrderState.active_states()),
                    AttributeEquals("order_state", context.result_state),
                ),
            ),
            {"order_state": context.result_state},
            action=context.action.value,
        )
        retry = result.previous is not None and result.previous.order_state.is_terminal()
        if retry:
            logger.warning("Order %s already %s; resuming interrupted %s",
                           context.order_id, context.result_state.value, context.action.value)
        else:
            logger.info("Order %s is now %s", context.order_id, result.record.order_state.value)
        return replace(
            context,
            record=result.record,
            callback_token=result.record.callback_token,
            retry=retry,
        )

    def construct_event_payload(self, context: CompletionContext) -> CompletionContext:
        detail = {
            "orderId": context.order_id,
            "userId": context.record.user_id,
            "orderState": context.record.order_state.value,
            "message": TERMINAL_MESSAGE,
        }
        return replace(context, detail=detail)

    def emit_terminal_event(self, context: CompletionContext) -> CompletionContext:
        detail_type = EventType.for_terminal_state(context.record.order_state)
        event = self._bus.publish(self._source, detail_type.value, context.detail)
        return replace(context, event=event)

    def resume_caller(self, context: CompletionContext) -> CompletionContext:
        """
        Release the suspended submission with an empty success payload.

        Raises:
            ConditionalWriteConflict: If another trigger already resumed it
            CallbackResumeFailure: If the token is unknown or revoked
        """
        try:
            self._callbacks.resume(context.callback_token, {})
        except CallbackResumeFailure as e:
            if e.reason == CONSUMED_REASON:
                self._already_resumed(context)
            logger.error("Order %s: resume failed for token %s: %s", context.order_id, context.callback_token, e.reason)
            raise CallbackResumeFailure(context.callback_token, e.reason, order_id=context.order_id) from e
        return context

    def release_callback(self, context: CompletionContext) -> CompletionContext:
        """Clear the consumed token and suspension timestamp from the record."""
        try:
            result = self._orders.conditional_update(
                context.key,
                AllOf(
                    AttributeEquals("callback_token", context.callback_token),
                    AttributeEquals("order_state", context.result_state),
                ),
                {"callback_token": REMOVE, "suspended_at": REMOVE},
                action=context.action.value,
            )
        except ConditionalWriteConflict:
            # A concurrent trigger for the same order cleared it first.
            logger.info("Order %s: callback token already released", context.order_id)
            return replace(context, record=self._orders.get(context.key))
        return replace(context, record=result.record)

    # -- helpers ----------------------------------------------------------

    def _ensure_caller_waiting(self, context: CompletionContext) -> None:
        ticket = self._callbacks.ticket(context.callback_token)
        if ticket is not None and ticket.status == CallbackStatus.RESUMED:
            self._already_resumed(context)

    def _already_resumed(self, context: CompletionContext) -> None:
        """Clean up after a caller someone else resumed, then report the conflict."""
        self.release_callback(context)
        raise ConditionalWriteConflict(
            context.order_id,
            context.action.value,
            "callback token not yet resumed",
            f"caller already resumed; order is {context.result_state.value}",
        )

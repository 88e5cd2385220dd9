"""
Put-Order Service - Admit a new drink order and suspend its caller.

State sequence:
    ReceiveSubmission -> FetchMenu -> Validate -> {Reject | AdmitAndSuspend}

Each state is a function from one PutOrderContext to the next. A rejected
submission stores nothing and issues no token. An admitted one is written
with a fresh callback token, and the caller is suspended until the
complete/cancel service resumes that token.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable

from data_access.repositories.callback_repository import CallbackRegistry
from data_access.repositories.menu_repository import MENU_KEY, MenuSource
from data_access.repositories.order_repository import OrderRepository, epoch_millis
from domain.entities import MenuSnapshot, OrderRecord, PutOrderOutcome, PutOrderResult
from domain.enums import OrderAction, OrderState
from domain.exceptions import ConditionalWriteConflict, InvalidTrigger
from domain.value_objects import (
    AllOf,
    AnyOf,
    AttributeEquals,
    AttributeNotExists,
    DrinkOrder,
    RecordKey,
)
from business_logic.services.menu_validator import find_invalid_modifiers, validate_order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PutOrderRequest:
    """A customer submission."""
    order_id: str
    user_id: str
    drink: str
    modifiers: tuple[str, ...] = ()


@dataclass(frozen=True)
class PutOrderContext:
    """Typed state threaded through the put-order steps."""
    order_id: str
    user_id: str
    drink_order: DrinkOrder | None = None
    menu: MenuSnapshot | None = None
    valid: bool | None = None
    token: str | None = None
    record: OrderRecord | None = None
    reused_suspension: bool = False

    @property
    def key(self) -> RecordKey:
        return RecordKey.for_order(self.order_id)


class Suspension:
    """
    Handle on a suspended submission.

    The host decides whether to block on it; the core never times it out.
    """

    def __init__(self, callbacks: CallbackRegistry, token: str, order_id: str):
        self._callbacks = callbacks
        self.token = token
        self.order_id = order_id

    def wait(self, timeout: float | None = None) -> dict[str, Any] | None:
        """
        Block until the order reaches a terminal state.

        Returns:
            The resume payload ({} on success), or None on timeout
        """
        return self._callbacks.wait(self.token, timeout)

    def __repr__(self) -> str:
        return f"Suspension(order_id={self.order_id!r}, token={self.token!r})"


class PutOrderService:
    """
    Validates and admits new orders.

    Dependencies are injected so tests can substitute in-memory stores.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        menu_source: MenuSource,
        callbacks: CallbackRegistry,
        menu_key: str = MENU_KEY,
        clock: Callable[[], int] | None = None,
    ):
        """
        Initialize service with its collaborators.

        Args:
            order_repository: Order Record Store
            menu_source: Read-only menu configuration
            callbacks: Callback registry used to suspend the caller
            menu_key: Config key of the menu document
            clock: Millisecond clock for suspended_at
        """
        self._orders = order_repository
        self._menu_source = menu_source
        self._callbacks = callbacks
        self._menu_key = menu_key
        self._clock = clock or epoch_millis

    def put_order(self, request: PutOrderRequest) -> PutOrderResult:
        """
        Run the whole flow for one submission.

        Returns:
            PutOrderResult: REJECTED if the menu check failed, ADMITTED
            with the callback token and a Suspension handle otherwise

        Raises:
            InvalidTrigger: If order_id or user_id is missing
            ConditionalWriteConflict: If the order belongs to another user,
                has left Pending, or is already suspended by another caller
            CollaboratorUnavailable: If the store or menu source fails
        """
        context = self.receive_submission(request)
        context = self.fetch_menu(context)
        context = self.validate(context)
        if not context.valid:
            return self.reject(context)
        context = self.admit_and_suspend(context)
        return PutOrderResult(
            outcome=PutOrderOutcome.ADMITTED,
            order_id=context.order_id,
            token=context.token,
            record=context.record,
            reused_suspension=context.reused_suspension,
            suspension=Suspension(self._callbacks, context.token, context.order_id),
        )

    # -- states -----------------------------------------------------------

    def receive_submission(self, request: PutOrderRequest) -> PutOrderContext:
        if not request.order_id:
            raise InvalidTrigger("submission requires orderId")
        if not request.user_id:
            raise InvalidTrigger(f"submission for order {request.order_id!r} requires userId")

        try:
            drink_order = DrinkOrder(drink=request.drink, modifiers=tuple(request.modifiers))
        except ValueError as e:
            logger.info("Order %s has a malformed drink selection: %s", request.order_id, e)
            drink_order = None

        return PutOrderContext(order_id=request.order_id, user_id=request.user_id, drink_order=drink_order)

    def fetch_menu(self, context: PutOrderContext) -> PutOrderContext:
        return replace(context, menu=self._menu_source.get(self._menu_key))

    def validate(self, context: PutOrderContext) -> PutOrderContext:
        if context.drink_order is None or context.menu is None:
            return replace(context, valid=False)

        valid = validate_order(context.drink_order, context.menu)
        if not valid:
            logger.info(
                "Order %s rejected: drink=%r invalid modifiers=%s",
                context.order_id,
                context.drink_order.drink,
                find_invalid_modifiers(context.drink_order, context.menu),
            )
        return replace(context, valid=valid)

    def reject(self, context: PutOrderContext) -> PutOrderResult:
        return PutOrderResult(outcome=PutOrderOutcome.REJECTED, order_id=context.order_id)

    def admit_and_suspend(self, context: PutOrderContext) -> PutOrderContext:
        """
        Persist the order with a callback token bound to this suspension.

        A repeat of a submission that is already suspended keeps the
        existing token instead of issuing a second one.
        """
        existing = self._orders.get(context.key)
        if self._is_same_suspension(context, existing):
            return self._refresh_existing(context, existing)

        token = self._callbacks.issue()
        try:
            result = self._orders.conditional_update(
                context.key,
                AnyOf(
                    AttributeNotExists("user_id"),
                    AllOf(
                        AttributeEquals("user_id", context.user_id),
                        AttributeEquals("order_state", OrderState.PENDING),
                        AttributeNotExists("callback_token"),
                    ),
                ),
                {
                    "user_id": context.user_id,
                    "drink_order": context.drink_order,
                    "order_state": OrderState.PENDING,
                    "callback_token": token,
                    "suspended_at": self._clock(),
                },
                action=OrderAction.SUBMIT.value,
            )
        except ConditionalWriteConflict:
            self._callbacks.revoke(token)
            # A duplicate submission may have won the race; join its suspension.
            existing = self._orders.get(context.key)
            if self._is_same_suspension(context, existing):
                return self._refresh_existing(context, existing)
            raise

        logger.info("Order %s admitted for user %s; caller suspended", context.order_id, context.user_id)
        return replace(context, token=token, record=result.record)

    @staticmethod
    def _is_same_suspension(context: PutOrderContext, existing: OrderRecord | None) -> bool:
        return (
            existing is not None
            and existing.is_suspended()
            and existing.user_id == context.user_id
            and existing.order_state == OrderState.PENDING
        )

    def _refresh_existing(self, context: PutOrderContext, existing: OrderRecord) -> PutOrderContext:
        result = self._orders.conditional_update(
            context.key,
            AllOf(
                AttributeEquals("user_id", context.user_id),
                AttributeEquals("callback_token", existing.callback_token),
                AttributeEquals("order_state", OrderState.PENDING),
            ),
            {"drink_order": context.drink_order},
            action=OrderAction.SUBMIT.value,
        )
        logger.info("Order %s resubmitted; reusing existing suspension", context.order_id)
        return replace(context, token=existing.callback_token, record=result.record, reused_suspension=True)

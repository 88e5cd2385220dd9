"""
Domain Enums - Type-safe constants for the order workflow.

These enums replace magic strings throughout the codebase: order states,
the inbound action tags routed by the dispatcher, and the event detail
types published to the shared bus.
"""

from enum import Enum


class OrderState(Enum):
    """
    Lifecycle state of a drink order.

    Transitions run Pending -> Making -> {Completed, Cancelled}.
    Making -> Pending happens only through an explicit unmake.
    """
    PENDING = "Pending"
    MAKING = "Making"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    def is_terminal(self) -> bool:
        """Terminal states never change again."""
        return self in {OrderState.COMPLETED, OrderState.CANCELLED}

    @classmethod
    def active_states(cls) -> tuple["OrderState", ...]:
        """States an order can still leave."""
        return (cls.PENDING, cls.MAKING)


class OrderAction(Enum):
    """
    Action tag carried by an inbound trigger.

    SUBMIT is the default route: anything the dispatcher does not
    recognise is treated as a new order submission.
    """
    COMPLETE = "complete"
    CANCEL = "cancel"
    MAKE = "make"
    UNMAKE = "unmake"
    SUBMIT = "submit"

    @classmethod
    def from_value(cls, value: str | None) -> "OrderAction":
        """
        Resolve a raw action tag, falling back to SUBMIT.

        Tags match exactly: "Make" or " make" is not a claim.

        Args:
            value: Raw action field from the trigger (may be None)

        Returns:
            Matching OrderAction, or SUBMIT for any other value
        """
        for action in (cls.COMPLETE, cls.CANCEL, cls.MAKE, cls.UNMAKE):
            if action.value == value:
                return action
        return cls.SUBMIT

    def terminal_state(self) -> OrderState | None:
        """Target state for terminal actions, None otherwise."""
        return {
            OrderAction.COMPLETE: OrderState.COMPLETED,
            OrderAction.CANCEL: OrderState.CANCELLED,
        }.get(self)


class EventType(Enum):
    """Detail types published to the event bus."""
    MAKE_ORDER = "OrderManager.MakeOrder"
    ORDER_COMPLETED = "OrderManager.OrderCompleted"
    ORDER_CANCELLED = "OrderManager.OrderCancelled"

    @classmethod
    def for_terminal_state(cls, state: OrderState) -> "EventType":
        """
        Derive the terminal event type from the order state.

        One topic per terminal state: OrderManager.Order<State>.

        Raises:
            ValueError: If state is not terminal
        """
        if not state.is_terminal():
            raise ValueError(f"No terminal event for non-terminal state {state.value}")
        return cls(f"OrderManager.Order{state.value}")


class CallbackStatus(Enum):
    """Lifecycle of a callback token."""
    ISSUED = "issued"
    RESUMED = "resumed"
    REVOKED = "revoked"

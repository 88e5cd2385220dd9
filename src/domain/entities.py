"""
Domain Entities - Core business objects with identity.

Entities are identified by their ID rather than their attributes.
They are immutable dataclasses; every change produces a new instance.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .enums import EventType, OrderAction, OrderState
from .value_objects import DrinkOrder, RecordKey


@dataclass(frozen=True)
class OrderRecord:
    """
    Core domain entity representing a drink order as persisted.

    The record holds the order state, the barista assignment and the
    callback token of the caller suspended on this order.
    """
    order_id: str
    user_id: str
    drink_order: DrinkOrder | None = None
    order_state: OrderState = OrderState.PENDING
    barista_user_id: str = ""
    callback_token: str | None = None
    suspended_at: int | None = None
    last_updated: int = 0

    @property
    def key(self) -> RecordKey:
        return RecordKey.for_order(self.order_id)

    def is_suspended(self) -> bool:
        """A caller is waiting on this order."""
        return self.callback_token is not None

    def suspension_age_ms(self, now_ms: int) -> int | None:
        """
        How long the current suspension has been outstanding.

        Args:
            now_ms: Current time in epoch milliseconds

        Returns:
            Age in milliseconds, or None if the order is not suspended
        """
        if self.suspended_at is None or not self.is_suspended():
            return None
        return max(0, now_ms - self.suspended_at)

    def to_attributes(self) -> dict[str, Any]:
        """
        Flatten to the attribute mapping conditions are evaluated against.

        Absent optional fields are omitted so attribute_exists checks
        behave like they do in a key-value store.
        """
        attributes: dict[str, Any] = {
            "order_id": self.order_id,
            "user_id": self.user_id,
            "order_state": self.order_state.value,
            "barista_user_id": self.barista_user_id,
            "last_updated": self.last_updated,
        }
        if self.drink_order is not None:
            attributes["drink_order"] = self.drink_order.to_dict()
        if self.callback_token is not None:
            attributes["callback_token"] = self.callback_token
        if self.suspended_at is not None:
            attributes["suspended_at"] = self.suspended_at
        return attributes

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "OrderRecord":
        """Rebuild a record from its attribute mapping."""
        drink_order = attributes.get("drink_order")
        if isinstance(drink_order, str):
            drink_order = json.loads(drink_order)
        if isinstance(drink_order, Mapping):
            drink_order = DrinkOrder.from_dict(drink_order)
        return cls(
            order_id=attributes["order_id"],
            user_id=attributes.get("user_id") or "",
            drink_order=drink_order,
            order_state=OrderState(attributes.get("order_state") or OrderState.PENDING.value),
            barista_user_id=attributes.get("barista_user_id") or "",
            callback_token=attributes.get("callback_token"),
            suspended_at=attributes.get("suspended_at"),
            last_updated=attributes.get("last_updated") or 0,
        )


@dataclass(frozen=True)
class ModifierCategory:
    """A group of options a drink can be modified with (e.g. milk types)."""
    options: tuple[str, ...] = ()

    def allows(self, modifier: str) -> bool:
        return modifier in self.options


@dataclass(frozen=True)
class MenuItem:
    """One drink on the menu with its modifier categories."""
    drink: str
    available: bool = True
    icon: str = ""
    modifiers: tuple[ModifierCategory, ...] = ()

    def allows_modifier(self, modifier: str) -> bool:
        """A modifier is allowed if any category attached to the drink lists it."""
        return any(category.allows(modifier) for category in self.modifiers)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MenuItem":
        categories = []
        for category in data.get("modifiers") or []:
            if isinstance(category, Mapping):
                options = category.get("Options", category.get("options", []))
            else:
                options = category
            categories.append(ModifierCategory(options=tuple(options or ())))
        return cls(
            drink=data["drink"],
            available=bool(data.get("available", True)),
            icon=data.get("icon", ""),
            modifiers=tuple(categories),
        )


@dataclass(frozen=True)
class MenuSnapshot:
    """
    Read-only menu supplied by the configuration source.

    Not owned or mutated by the order workflow.
    """
    items: tuple[MenuItem, ...] = ()

    def find(self, drink: str) -> MenuItem | None:
        """Return the first item matching drink, or None."""
        for item in self.items:
            if item.drink == drink:
                return item
        return None

    def drinks(self) -> list[str]:
        return [item.drink for item in self.items]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | list) -> "MenuSnapshot":
        """
        Parse a stored menu document.

        Accepts {"value": [...]} as stored in the config table, or a
        bare list of items.
        """
        items = data.get("value", []) if isinstance(data, Mapping) else data
        return cls(items=tuple(MenuItem.from_dict(item) for item in items))


@dataclass(frozen=True)
class DomainEvent:
    """An immutable fact published to the shared event bus."""
    source: str
    detail_type: str
    detail: dict[str, Any]
    published_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "detailType": self.detail_type,
            "detail": self.detail,
            "publishedAt": self.published_at,
        }


class PutOrderOutcome(Enum):
    """Outcome of a submission."""
    ADMITTED = "admitted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class PutOrderResult:
    """
    Result of the put-order flow.

    A rejection is a normal negative outcome, not an error: nothing is
    stored and no token is issued.
    """
    outcome: PutOrderOutcome
    order_id: str
    token: str | None = None
    record: OrderRecord | None = None
    reused_suspension: bool = False
    suspension: Any = None

    @property
    def admitted(self) -> bool:
        return self.outcome == PutOrderOutcome.ADMITTED

    def __bool__(self) -> bool:
        return self.admitted


@dataclass(frozen=True)
class ClaimResult:
    """Result of a make/unmake transition."""
    action: OrderAction
    record: OrderRecord
    event: DomainEvent


@dataclass(frozen=True)
class CompletionResult:
    """Result of a complete/cancel transition."""
    action: OrderAction
    record: OrderRecord
    event: DomainEvent
    resumed_token: str


@dataclass(frozen=True)
class DispatchResult:
    """
    What the dispatcher did with one trigger.

    success is False only for a menu rejection; every other failure
    is raised as a typed error instead.
    """
    action: OrderAction
    order_id: str
    success: bool
    put_result: PutOrderResult | None = None
    claim_result: ClaimResult | None = None
    completion_result: CompletionResult | None = None
    events: list[DomainEvent] = field(default_factory=list)

    @property
    def record(self) -> OrderRecord | None:
        for result in (self.completion_result, self.claim_result, self.put_result):
            if result is not None and result.record is not None:
                return result.record
        return None

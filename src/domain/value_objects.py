"""
Value Objects - Immutable domain data structures.

Value objects are identified by their values rather than a unique
identity: the drink selection, the composite store key, and the
predicates used by conditional writes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

# Partition key shared by every order record.
ORDERS_PARTITION = "orders"


@dataclass(frozen=True)
class DrinkOrder:
    """
    A drink plus the modifiers the customer asked for.

    Modifiers keep the submitted order; duplicates are allowed and
    each one is validated on its own.
    """
    drink: str
    modifiers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate drink name and coerce modifiers to a tuple."""
        if not isinstance(self.drink, str) or not self.drink.strip():
            raise ValueError("drink must be a non-empty string")
        object.__setattr__(self, "modifiers", tuple(self.modifiers))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DrinkOrder":
        """
        Build from a submission body like {"drink": ..., "modifiers": [...]}.

        Raises:
            ValueError: If drink is missing or modifiers is not a list
        """
        modifiers = data.get("modifiers") or []
        if isinstance(modifiers, str) or not isinstance(modifiers, (list, tuple)):
            raise ValueError("modifiers must be a list of strings")
        return cls(drink=data.get("drink", ""), modifiers=tuple(str(m) for m in modifiers))

    def to_dict(self) -> dict[str, Any]:
        """Serialise for storage and event payloads."""
        return {"drink": self.drink, "modifiers": list(self.modifiers)}


@dataclass(frozen=True)
class RecordKey:
    """
    Composite key of a store record: (partition_key, sort_key).

    Every order uses the same scheme: ("orders", order_id).
    """
    partition_key: str
    sort_key: str

    @classmethod
    def for_order(cls, order_id: str) -> "RecordKey":
        """Key of the order record for order_id."""
        if not order_id:
            raise ValueError("order_id is required")
        return cls(ORDERS_PARTITION, order_id)

    def __str__(self) -> str:
        return f"{self.partition_key}/{self.sort_key}"


class _Remove:
    """Sentinel telling a conditional update to drop an attribute."""

    def __repr__(self) -> str:
        return "REMOVE"


REMOVE = _Remove()


def _plain(value: Any) -> Any:
    """Compare enums by their stored value."""
    return value.value if isinstance(value, Enum) else value


class Condition:
    """
    Predicate evaluated against a record's current attributes.

    A missing record is evaluated as an empty attribute mapping, so
    AttributeNotExists conditions can guard record creation.
    """

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True)
class AttributeEquals(Condition):
    """True when the attribute exists and equals value."""
    name: str
    value: Any

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return self.name in attributes and attributes[self.name] == _plain(self.value)

    def describe(self) -> str:
        return f"{self.name} = {_plain(self.value)!r}"


@dataclass(frozen=True)
class AttributeIn(Condition):
    """True when the attribute exists and is one of values."""
    name: str
    values: tuple[Any, ...] = field(default_factory=tuple)

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return self.name in attributes and attributes[self.name] in {_plain(v) for v in self.values}

    def describe(self) -> str:
        options = ", ".join(repr(_plain(v)) for v in self.values)
        return f"{self.name} IN ({options})"


@dataclass(frozen=True)
class AttributeExists(Condition):
    name: str

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return attributes.get(self.name) is not None

    def describe(self) -> str:
        return f"attribute_exists({self.name})"


@dataclass(frozen=True)
class AttributeNotExists(Condition):
    name: str

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return attributes.get(self.name) is None

    def describe(self) -> str:
        return f"attribute_not_exists({self.name})"


@dataclass(frozen=True)
class AllOf(Condition):
    """Conjunction of conditions."""
    conditions: tuple[Condition, ...]

    def __init__(self, *conditions: Condition):
        object.__setattr__(self, "conditions", tuple(conditions))

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return all(c.evaluate(attributes) for c in self.conditions)

    def describe(self) -> str:
        return "(" + " AND ".join(c.describe() for c in self.conditions) + ")"


@dataclass(frozen=True)
class AnyOf(Condition):
    """Disjunction of conditions."""
    conditions: tuple[Condition, ...]

    def __init__(self, *conditions: Condition):
        object.__setattr__(self, "conditions", tuple(conditions))

    def evaluate(self, attributes: Mapping[str, Any]) -> bool:
        return any(c.evaluate(attributes) for c in self.conditions)

    def describe(self) -> str:
        return "(" + " OR ".join(c.describe() for c in self.conditions) + ")"


@dataclass(frozen=True)
class OrderTrigger:
    """
    Inbound trigger as received by the dispatcher.

    Shape: {action, orderId, userId?, body?: {drink, modifiers[], userId}, baristaUserId?}
    """
    action: str | None
    order_id: str
    user_id: str | None = None
    body: Mapping[str, Any] | None = None
    barista_user_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrderTrigger":
        """
        Parse the camelCase trigger document.

        Raises:
            ValueError: If data is not a mapping or body is not an object
        """
        if not isinstance(data, Mapping):
            raise ValueError("trigger must be a JSON object")
        body = data.get("body")
        if body is not None and not isinstance(body, Mapping):
            raise ValueError("trigger body must be a JSON object")
        return cls(
            action=data.get("action"),
            order_id=str(data.get("orderId") or ""),
            user_id=data.get("userId"),
            body=body,
            barista_user_id=data.get("baristaUserId"),
        )

    def submitting_user(self) -> str | None:
        """The customer identity: body.userId wins over the top-level field."""
        if self.body and self.body.get("userId"):
            return self.body["userId"]
        return self.user_id

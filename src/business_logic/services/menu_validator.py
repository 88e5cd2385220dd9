"""
Menu Validator - Check a submitted drink against the current menu.

Pure function, no I/O. Fails closed: any drink or modifier not on the
menu invalidates the whole order. The availability flag is not checked.
"""

from domain.entities import MenuSnapshot
from domain.value_objects import DrinkOrder


def validate_order(order: DrinkOrder, menu: MenuSnapshot) -> bool:
    """
    Check a drink order against a menu snapshot.

    Rules:
    - The drink must be on the menu.
    - Every modifier must appear in the options of at least one modifier
      category attached to that drink.
    - An empty modifier list is always valid.

    Args:
        order: Drink and modifiers requested by the customer
        menu: Current menu snapshot

    Returns:
        True if the order can be admitted, False otherwise

    Examples:
        >>> menu = MenuSnapshot.from_dict({"value": [
        ...     {"drink": "latte", "available": True,
        ...      "modifiers": [{"Options": ["oat-milk", "soy-milk"]}]}]})
        >>> validate_order(DrinkOrder("latte", ("oat-milk",)), menu)
        True
        >>> validate_order(DrinkOrder("mocha"), menu)
        False
    """
    item = menu.find(order.drink)
    if item is None:
        return False

    return all(item.allows_modifier(modifier) for modifier in order.modifiers)


def find_invalid_modifiers(order: DrinkOrder, menu: MenuSnapshot) -> list[str]:
    """List the modifiers that made an order invalid, for log context."""
    item = menu.find(order.drink)
    if item is None:
        return list(order.modifiers)
    return [m for m in order.modifiers if not item.allows_modifier(m)]

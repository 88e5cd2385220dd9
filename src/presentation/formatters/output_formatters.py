"""
Output Formatters - Presentation layer for displaying results.

This module handles all output formatting, keeping display logic
separate from the order workflow.
"""

from typing import Any

from domain.entities import DispatchResult, OrderRecord
from domain.enums import OrderAction
from domain.exceptions import (
    CallbackResumeFailure,
    CollaboratorUnavailable,
    ConditionalWriteConflict,
)


class ConsoleFormatter:
    """
    Formats output for console display.

    Base class for the specialised formatters below.
    """

    def __init__(self, width: int = 70):
        """
        Initialize formatter.

        Args:
            width: Width of output lines
        """
        self._width = width

    def header(self, text: str, char: str = "=") -> str:
        """
        Format a header line.

        Args:
            text: Header text
            char: Character to use for border

        Returns:
            Formatted header string
        """
        lines = [
            char * self._width,
            text,
            char * self._width
        ]
        return "\n".join(lines)

    def key_value(self, key: str, value: Any, indent: int = 0) -> str:
        spaces = " " * indent
        return f"{spaces}{key}: {value}"

    def success(self, message: str) -> str:
        return f"[OK] {message}"

    def error(self, message: str) -> str:
        return f"[ERROR] {message}"

    def warning(self, message: str) -> str:
        return f"[WARNING] {message}"

    def info(self, message: str) -> str:
        return f"[INFO] {message}"


class OrderFormatter(ConsoleFormatter):
    """Formatter for order records."""

    def format_order(self, record: OrderRecord | None, order_id: str = "") -> str:
        """
        Format one order record.

        Args:
            record: Record to display, None if not found
            order_id: Requested id, used when the record is missing

        Returns:
            Formatted multi-line string
        """
        if record is None:
            return self.warning(f"Order {order_id} not found")

        drink = "-"
        if record.drink_order is not None:
            drink = record.drink_order.drink
            if record.drink_order.modifiers:
                drink += f" ({', '.join(record.drink_order.modifiers)})"

        lines = [
            self.header(f"ORDER {record.order_id}"),
            self.key_value("User", record.user_id, 2),
            self.key_value("Drink", drink, 2),
            self.key_value("State", record.order_state.value, 2),
            self.key_value("Barista", record.barista_user_id or "-", 2),
            self.key_value("Waiting caller", "yes" if record.is_suspended() else "no", 2),
            self.key_value("Last updated", record.last_updated, 2),
        ]
        return "\n".join(lines)


class DispatchResultFormatter(ConsoleFormatter):
    """Formatter for dispatcher results."""

    def format_result(self, result: DispatchResult) -> str:
        """
        Format the outcome of one trigger.

        Args:
            result: Dispatch result

        Returns:
            Formatted string
        """
        lines = []

        if result.action == OrderAction.SUBMIT:
            put = result.put_result
            if not result.success:
                lines.append(self.warning(f"Order {result.order_id} rejected: not a valid menu selection"))
            elif put.reused_suspension:
                lines.append(self.success(f"Order {result.order_id} already admitted; waiting on existing token"))
                lines.append(self.key_value("Token", put.token, 2))
            else:
                lines.append(self.success(f"Order {result.order_id} admitted and waiting"))
                lines.append(self.key_value("Token", put.token, 2))
        elif result.claim_result is not None:
            record = result.claim_result.record
            barista = record.barista_user_id or "(unassigned)"
            lines.append(self.success(f"Order {result.order_id} {result.action.value}: barista {barista}"))
        elif result.completion_result is not None:
            record = result.completion_result.record
            lines.append(self.success(f"Order {result.order_id} {record.order_state.value}; caller resumed"))

        for event in result.events:
            lines.append(self.info(f"Published {event.detail_type}"))

        return "\n".join(lines)


class SuspensionFormatter(ConsoleFormatter):
    """Formatter for stale-suspension reports."""

    def format_stale_report(self, stale: list, max_age_seconds: float) -> str:
        """
        Format the list of orders suspended longer than the threshold.

        Args:
            stale: SuspendedOrder items, oldest first
            max_age_seconds: Threshold used for the scan

        Returns:
            Formatted report
        """
        if not stale:
            return self.info(f"No orders suspended longer than {max_age_seconds:g}s")

        lines = [self.header(f"STALE SUSPENSIONS (> {max_age_seconds:g}s)")]
        for item in stale:
            lines.append(
                f"  {item.order_id:<20} user={item.record.user_id:<12} "
                f"state={item.record.order_state.value:<8} waiting={item.age_seconds:.0f}s"
            )
        lines.append(f"\n{len(stale)} order(s) need attention")
        return "\n".join(lines)


class ErrorFormatter(ConsoleFormatter):
    """Formats typed workflow errors with their remediation context."""

    def format_error(self, error: Exception) -> str:
        """
        Format an error message.

        Args:
            error: Error to format

        Returns:
            Formatted error string
        """
        if isinstance(error, ConditionalWriteConflict):
            return "\n".join([
                self.error(f"Conflict on order {error.order_id} ({error.action})"),
                self.key_value("Precondition", error.condition, 2),
                self.key_value("Detail", error.detail or "-", 2),
            ])
        if isinstance(error, CallbackResumeFailure):
            return "\n".join([
                self.error(f"Could not resume caller for order {error.order_id or '?'}"),
                self.key_value("Token", error.token, 2),
                self.key_value("Reason", error.reason, 2),
            ])
        if isinstance(error, CollaboratorUnavailable):
            return self.error(f"{error.collaborator} unavailable: {error.cause}")
        return self.error(str(error))


# Default instances
order_formatter = OrderFormatter()
result_formatter = DispatchResultFormatter()
suspension_formatter = SuspensionFormatter()
error_formatter = ErrorFormatter()

"""
Output Formatters - Presentation layer for displaying results.

This module provides classes for formatting output to the console,
keeping display logic separate from business logic.
"""

from .output_formatters import (
    ConsoleFormatter,
    DispatchResultFormatter,
    ErrorFormatter,
    OrderFormatter,
    SuspensionFormatter,
    error_formatter,
    order_formatter,
    result_formatter,
    suspension_formatter,
)

__all__ = [
    "ConsoleFormatter",
    "DispatchResultFormatter",
    "ErrorFormatter",
    "OrderFormatter",
    "SuspensionFormatter",
    "error_formatter",
    "order_formatter",
    "result_formatter",
    "suspension_formatter",
]

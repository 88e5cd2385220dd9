"""
Presentation Layer - Output formatting.

This layer handles console output, keeping it separate from the
order workflow.
"""

from .formatters.output_formatters import (
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

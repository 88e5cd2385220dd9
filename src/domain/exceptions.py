"""
Domain Exceptions - Typed failures raised by the order workflow.

A menu rejection is not an exception: it is reported through
PutOrderResult. Everything here propagates to the caller with enough
context (order, action, failed precondition) for manual remediation.
"""


class OrderManagerError(Exception):
    """Base class for order workflow errors."""


class ConditionalWriteConflict(OrderManagerError):
    """
    A conditional store mutation's precondition did not hold.

    Raised for stale ownership, already-terminal orders, unknown orders
    and the loser of two racing terminal triggers. Never retried here.
    """

    def __init__(self, order_id: str, action: str, condition: str, detail: str | None = None):
        self.order_id = order_id
        self.action = action
        self.condition = condition
        self.detail = detail
        message = f"Conditional write conflict on order {order_id!r} during {action}: {condition} not met"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class CallbackResumeFailure(OrderManagerError):
    """Resume attempted against a missing, revoked or already-consumed token."""

    def __init__(self, token: str | None, reason: str, order_id: str | None = None):
        self.token = token
        self.reason = reason
        self.order_id = order_id
        where = f" for order {order_id!r}" if order_id else ""
        super().__init__(f"Cannot resume callback {token!r}{where}: {reason}")


class CollaboratorUnavailable(OrderManagerError):
    """Store, event bus or menu source I/O failed."""

    def __init__(self, collaborator: str, cause: BaseException):
        self.collaborator = collaborator
        self.cause = cause
        super().__init__(f"{collaborator} unavailable: {cause}")


class InvalidTrigger(OrderManagerError, ValueError):
    """The inbound trigger is missing fields its route needs."""

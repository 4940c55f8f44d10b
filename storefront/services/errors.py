"""Expected, caller-recoverable failures of the order coordination core.

Each error carries a stable ``kind`` string. The HTTP layer maps kinds to
status codes; nothing in the services knows about HTTP.
"""

from typing import Any


class OrderError(Exception):
    """Base class for structured order coordination failures."""

    kind = "order_error"

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable, user-facing description.
            details: Optional structured details for the client.
        """
        self.message = message
        self.details = details
        super().__init__(message)


class NotFound(OrderError):
    """Entity absent."""

    kind = "not_found"

    def __init__(self, entity: str, identifier: Any) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class InvalidTransition(OrderError):
    """Status change not permitted from the current status."""

    kind = "invalid_transition"

    def __init__(self, current: str, target: str, message: str | None = None) -> None:
        self.current = current
        self.target = target
        super().__init__(
            message or f"Cannot transition from {current} to {target}",
            details=[{"loc": ["status"], "msg": f"{current} -> {target}", "type": self.kind}],
        )


class InsufficientStock(OrderError):
    """Not enough stock to reserve an item."""

    kind = "insufficient_stock"

    def __init__(self, variant_name: str, variant_id: Any = None) -> None:
        self.variant_name = variant_name
        self.variant_id = variant_id
        super().__init__(f"Insufficient stock for {variant_name}")


class AlreadyClaimed(OrderError):
    """Another driver won the claim race."""

    kind = "already_claimed"

    def __init__(self, order_id: Any) -> None:
        self.order_id = order_id
        super().__init__("This order has already been accepted by another driver")


class NoLongerAvailable(OrderError):
    """The order moved past the claimable statuses."""

    kind = "no_longer_available"

    def __init__(self, order_id: Any, status: str) -> None:
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order is no longer available for pickup (status: {status})")


class AmountMismatch(OrderError):
    """Client-supplied amount disagrees with the server-computed total."""

    kind = "amount_mismatch"

    def __init__(self, expected_cents: int, received_cents: int) -> None:
        self.expected_cents = expected_cents
        self.received_cents = received_cents
        super().__init__(
            f"Amount {received_cents} does not match order total {expected_cents}"
        )


class AmountBelowMinimum(OrderError):
    """Charge total is smaller than the provider minimum."""

    kind = "amount_below_minimum"

    def __init__(self, amount_cents: int, minimum_cents: int) -> None:
        self.amount_cents = amount_cents
        self.minimum_cents = minimum_cents
        super().__init__(
            f"Amount {amount_cents} is below the minimum charge of {minimum_cents} cents"
        )


class PaymentUnavailable(OrderError):
    """Payment provider is not configured."""

    kind = "payment_unavailable"

    def __init__(self, message: str = "Payment processing is not configured") -> None:
        super().__init__(message)


class AccessDenied(OrderError):
    """Ownership or role check failed."""

    kind = "access_denied"

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class DriverUnavailable(OrderError):
    """Driver profile missing or marked unavailable."""

    kind = "driver_unavailable"

    def __init__(self, message: str = "Driver not available") -> None:
        super().__init__(message)


class OrdersPaused(OrderError):
    """New-order acceptance is switched off."""

    kind = "orders_paused"

    def __init__(self, message: str = "We are not accepting new orders right now") -> None:
        super().__init__(message)

"""Error kinds raised by the storefront core.

Every error carries a ``messages`` dict keyed by the field or product at
fault, so API and UI layers can name exactly what was rejected.
"""


class StorefrontError(Exception):
    """Base class for all storefront errors."""

    kind = "storefront_error"

    def __init__(self, messages: dict | str | None = None) -> None:
        if messages is None:
            messages = {}
        elif isinstance(messages, str):
            messages = {"_entity": [messages]}
        self.messages = messages
        super().__init__(messages)

    def to_dict(self) -> dict:
        return {"error": self.kind, "messages": self.messages}


class NotAuthenticated(StorefrontError):
    """No authenticated user was supplied with the request."""

    kind = "not_authenticated"

    def __init__(self, messages: dict | str | None = None) -> None:
        super().__init__(messages or {"user": ["You must sign in to continue"]})


class PermissionDenied(StorefrontError):
    kind = "permission_denied"


class ValidationError(StorefrontError):
    kind = "validation_error"

    @classmethod
    def from_protean(cls, exc) -> "ValidationError":
        """Translate a protean ``ValidationError`` into field-keyed messages."""
        messages: dict[str, list[str]] = {}
        for field, errors in (exc.messages or {}).items():
            if not isinstance(errors, list | tuple):
                errors = [errors]
            messages[field] = [str(error) for error in errors]
        return cls(messages or {"_entity": ["Invalid value"]})


class EmptyCart(ValidationError):
    kind = "empty_cart"

    def __init__(self, cart_id: str | None = None) -> None:
        self.cart_id = cart_id
        super().__init__({"cart": ["Cannot place an order from an empty cart"]})


class InsufficientStock(ValidationError):
    """Requested quantity exceeds the live stock of a product."""

    kind = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int, product_name: str | None = None) -> None:
        self.product_id = str(product_id)
        self.requested = requested
        self.available = available
        self.product_name = product_name
        label = product_name or self.product_id
        super().__init__(
            {"product_id": [f"{label} has insufficient stock: {available} available, {requested} requested"]}
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "product_id": self.product_id,
            "requested": self.requested,
            "available": self.available,
        }


class NotFound(StorefrontError):
    kind = "not_found"


class DuplicateRow(StorefrontError):
    """An aggregate with the same identity or unique field already exists."""

    kind = "duplicate_row"


class UpstreamFailure(StorefrontError):
    """A repository call failed for infrastructure reasons.

    ``retryable`` tells the caller whether repeating the same operation is
    known to be safe.
    """

    kind = "upstream_failure"

    def __init__(self, messages: dict | str | None = None, retryable: bool = True) -> None:
        self.retryable = retryable
        super().__init__(messages or {"store": ["The backing store is unavailable"]})

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retryable": self.retryable}


class PlacementIncomplete(UpstreamFailure):
    """Order placement failed after the order header was committed.

    Retrying is only safe with the same ``placement_key``, which resumes the
    existing order instead of creating a second one.
    """

    kind = "placement_incomplete"

    def __init__(self, order_id: str, placement_key: str, step: str, cause: Exception | None = None) -> None:
        self.order_id = str(order_id)
        self.placement_key = placement_key
        self.step = step
        self.cause = cause
        super().__init__(
            {"order_id": [f"Order {order_id} is incomplete: step '{step}' failed; retry with the same key"]},
            retryable=False,
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "order_id": self.order_id,
            "placement_key": self.placement_key,
            "step": self.step,
        }

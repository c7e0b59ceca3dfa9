"""Domain exceptions for the storefront service."""


class StorefrontError(Exception):
    """Base exception for all storefront errors.

    ``field`` names the request field the error is about (if any) and
    ``extra`` carries additional payload rendered into the error response.
    """

    status_code = 500

    def __init__(self, message: str, field: str | None = None, **extra):
        self.message = message
        self.field = field
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.field:
            body["field"] = self.field
        body.update(self.extra)
        return body


class ValidationError(StorefrontError):
    """Raised when a required field is missing or malformed."""

    status_code = 400


class InvalidTransitionError(ValidationError):
    """Raised when an order status change is not allowed by the state machine."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot change order status from {current} to {target}",
            field="status",
        )


class InsufficientStockError(StorefrontError):
    """Raised when a product has fewer units available than requested."""

    status_code = 400

    def __init__(self, product_id: int, name: str | None, available: int, field: str | None = None):
        self.product_id = product_id
        self.available = available
        label = name or f"product {product_id}"
        super().__init__(
            f"Not enough stock for {label}. Available: {available}",
            field=field,
            product=product_id,
            available=available,
        )


class GatewayError(StorefrontError):
    """Raised when the payment gateway call fails or returns an error payload."""

    status_code = 400

    def __init__(self, message: str, status: int | None = None, data=None):
        self.status = status
        self.data = data
        super().__init__("Payment processing error", error=message)


class AuthenticationError(StorefrontError):
    status_code = 401


class AuthorizationError(StorefrontError):
    """Raised when the actor does not own the resource."""

    status_code = 403


class NotFoundError(StorefrontError):
    status_code = 404


class ConflictError(StorefrontError):
    """Raised when a concurrent modification won the race."""

    status_code = 409


class PersistenceError(StorefrontError):
    """Raised when the database is unavailable or a transaction fails."""

    status_code = 500

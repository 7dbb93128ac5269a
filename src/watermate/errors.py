"""Custom exceptions for watermate."""


class WatermateError(Exception):
    """Base exception for all watermate errors."""

    pass


class NotFoundError(WatermateError):
    """Raised when an operation references an id that does not exist."""

    pass


class OrderNotFoundError(NotFoundError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class UserNotFoundError(NotFoundError):
    """Raised when no known identity matches a phone number or user ID."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"User not found: {key}")


class ShopNotFoundError(NotFoundError):
    """Raised when a shop ID is not in the catalog."""

    def __init__(self, shop_id: str):
        self.shop_id = shop_id
        super().__init__(f"Shop not found: {shop_id}")


class InvalidCredentialError(WatermateError):
    """Raised when an OTP is malformed or rejected."""

    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"Invalid OTP for {phone}")


class NotAuthenticatedError(WatermateError):
    """Raised when an operation needs a session and nobody is logged in."""

    def __init__(self):
        super().__init__("Not logged in. Run 'watermate login' first.")


class InvalidOrderError(WatermateError):
    """Raised when order creation input fails sanity checks."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid order: {reason}")


class InvalidTransitionError(WatermateError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, order_id: str, current: str, requested: str):
        self.order_id = order_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move order {order_id} from '{current}' to '{requested}'"
        )


class OperationFailedError(WatermateError):
    """Raised when the backing store fails while applying an operation."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        msg = f"Operation failed: {operation}"
        if cause is not None:
            msg = f"{msg} ({cause})"
        super().__init__(msg)


class InvalidSchemaVersionError(WatermateError):
    """Raised when a stored blob has an unsupported schema version."""

    def __init__(self, key: str, found: int, supported: int):
        self.key = key
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found} in '{key}'. "
            f"This tool supports version {supported}."
        )

# cart_engine/domain/errors.py


class CartError(Exception):
    """Base for every error the cart engine hands back to its caller.

    `kind` is the stable machine-readable identifier exposed over HTTP,
    `message` the human text.
    """

    kind = "cart_error"
    status_code = 400
    default_message = "Cart operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CartError):
    kind = "validation_error"
    default_message = "Invalid input"


class InvalidQuantity(ValidationError):
    kind = "invalid_quantity"
    default_message = "Quantity must be greater than 0"


class NotFoundError(CartError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class CartNotFound(NotFoundError):
    kind = "cart_not_found"
    default_message = "Cart not found"


class LineNotFound(NotFoundError):
    kind = "line_not_found"
    default_message = "Item not found in cart"


class ItemUnavailable(CartError):
    kind = "item_unavailable"
    default_message = "Product not found or unavailable"


class InsufficientStock(CartError):
    kind = "insufficient_stock"
    default_message = "Insufficient stock for requested quantity"


class InvalidDiscountCode(CartError):
    kind = "invalid_discount_code"
    default_message = "Invalid discount code"


class CatalogUnavailable(CartError):
    kind = "catalog_unavailable"
    status_code = 503
    default_message = "Product catalog is unavailable"


class ConcurrencyConflict(CartError):
    kind = "concurrency_conflict"
    status_code = 409
    default_message = "Cart was modified by another operation, please retry"

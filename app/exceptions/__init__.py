"""Custom exceptions for the shop back-office."""


class ShopError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(ShopError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(ShopError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ProductNotFoundError(NotFoundError):
    """The cart references a product outside the shop's catalog."""
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", payload={'product_id': product_id})


class VariantNotFoundError(NotFoundError):
    """The cart references a variant that does not belong to the product."""
    def __init__(self, variant_id, product_id):
        self.variant_id = variant_id
        self.product_id = product_id
        super().__init__(
            f"Variant {variant_id} not found for product {product_id}",
            payload={'variant_id': variant_id, 'product_id': product_id}
        )


class InvalidCartError(BusinessLogicError):
    """Empty cart or a line with a non-positive quantity."""
    def __init__(self, message="Order must contain at least one item"):
        super().__init__(message, status_code=400)


class CouponInvalidError(BusinessLogicError):
    """A discount code was rejected; `reason` is a CouponRejection value."""

    MESSAGES = {
        'NOT_FOUND': 'Invalid discount code',
        'INACTIVE': 'This discount code is not active',
        'NOT_YET_ACTIVE': 'This discount code is not yet active',
        'EXPIRED': 'This discount code has expired',
        'WRONG_CHANNEL': 'This discount code is not available for this order channel',
        'USAGE_LIMIT_REACHED': 'This discount code has reached its usage limit',
        'CUSTOMER_NOT_ELIGIBLE': 'This discount code is not available for your account',
    }

    def __init__(self, reason, message=None):
        self.reason = getattr(reason, 'value', reason)
        message = message or self.MESSAGES.get(self.reason, 'Invalid discount code')
        super().__init__(message, status_code=400, payload={'reason': self.reason})


class InventoryUnavailableError(BusinessLogicError):
    """Raised when committing an order would take inventory below zero."""
    def __init__(self, item_name, requested):
        self.item_name = item_name
        self.requested = requested
        message = f"Insufficient inventory for {item_name}: requested {requested}"
        super().__init__(message, status_code=409)


class UnauthorizedError(ShopError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access", status_code=403):
        super().__init__(message, status_code)

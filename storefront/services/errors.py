"""Domain errors raised by the checkout and payment services.

Routes translate these into HTTP responses; nothing below the route layer
knows about status codes.
"""


class CheckoutError(Exception):
    """Base class for every checkout/payment domain failure."""


class InvalidCheckoutRequest(CheckoutError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class InventoryConflict(CheckoutError):
    UNAVAILABLE = "unavailable"
    INSUFFICIENT_STOCK = "insufficient_stock"
    PRICE_CHANGED = "price_changed"

    def __init__(self, product_name: str, reason: str, message: str):
        super().__init__(message)
        self.product_name = product_name
        self.reason = reason


class DuplicateOrderNumber(CheckoutError):
    def __init__(self, order_number: str):
        super().__init__(f"Order number {order_number} already exists")
        self.order_number = order_number


class OrderNumberExhausted(CheckoutError):
    pass


class CheckoutRetriesExhausted(CheckoutError):
    pass


class PaymentGatewayError(CheckoutError):
    pass


class WebhookSignatureError(CheckoutError):
    pass


class OrderNotFound(CheckoutError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvalidStatusTransition(CheckoutError):
    pass

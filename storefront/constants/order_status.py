from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    CARD = "CARD"
    UPI = "UPI"
    COD = "COD"
    NETBANKING = "NETBANKING"

    @property
    def is_online(self) -> bool:
        return self is not PaymentMethod.COD


# Fulfilment lifecycle, driven by admin actions
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: [],
}

# Manual payment transitions; PENDING -> PAID/FAILED for online orders only
# happens through the Stripe webhook.
ALLOWED_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: [PaymentStatus.PAID],  # COD settled on delivery
    PaymentStatus.PAID: [PaymentStatus.REFUNDED],
    PaymentStatus.FAILED: [],
    PaymentStatus.REFUNDED: [],
}

# Timestamp column stamped the first time an order reaches the status
STATUS_TIMESTAMPS = {
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

from storefront.models.product import Product
from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.models.order_event import OrderEvent
from storefront.models.webhook_event import ProcessedWebhookEvent
from storefront.models.email import EmailLog, EmailKind, EmailStatus

# add ALL models here

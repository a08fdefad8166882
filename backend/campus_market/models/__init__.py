from campus_market.models.user import User
from campus_market.models.product import Product
from campus_market.models.cart import Cart, CartItem
from campus_market.models.order import Order, OrderItem
from campus_market.models.payment import Payment
from campus_market.models.dispute import Dispute, DisputeMessage
from campus_market.models.order_transition import OrderTransition
from campus_market.models.platform_event import PlatformEvent

__all__ = [
    "User",
    "Product",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "Payment",
    "Dispute",
    "DisputeMessage",
    "OrderTransition",
    "PlatformEvent",
]

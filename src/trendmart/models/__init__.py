# Re-export all models from a single entry point so the rest of the app
# can import cleanly:
#   from trendmart.models import User, Product, Order
#
# Importing all models here also ensures they are registered with Base.metadata
# before any call to Base.metadata.create_all().

from trendmart.models.cart import CartItem
from trendmart.models.order import (
    Address, Order, OrderItem, OrderStatus, Payment, PaymentMethod, PaymentStatus,
    ReturnRequest, ReturnStatus,
)
from trendmart.models.product import (
    Category, Color, Product, ProductImage, ProductVariant, Size, product_categories,
)
from trendmart.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Category",
    "Size",
    "Color",
    "Product",
    "ProductVariant",
    "ProductImage",
    "product_categories",
    "Address",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "ReturnRequest",
    "ReturnStatus",
    "CartItem",
]

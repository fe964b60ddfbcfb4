from trendmart.routes.auth import auth_bp
from trendmart.routes.cart import cart_bp
from trendmart.routes.orders import orders_bp
from trendmart.routes.products import products_bp
from trendmart.routes.returns import returns_bp

__all__ = ["auth_bp", "products_bp", "cart_bp", "orders_bp", "returns_bp"]

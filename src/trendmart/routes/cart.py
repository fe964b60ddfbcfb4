from flask import Blueprint, g

from trendmart.routes.utils import get_service, login_required, parse_body, success_response
from trendmart.schemas.cart_schemas import AddToCartRequest, CartResponse, UpdateCartItemRequest
from trendmart.services.cart_service import CartService

cart_bp = Blueprint("cart", __name__)


@cart_bp.route("", methods=["GET"])
@login_required
def get_cart():
    items = get_service(CartService).list_items(g.user_id)
    return success_response(CartResponse.from_items(items))


@cart_bp.route("/items", methods=["POST"])
@login_required
def add_cart_item():
    """Add a variant to the cart, or increase its quantity if already present."""
    body = parse_body(AddToCartRequest)
    items = get_service(CartService).add_item(g.user_id, body.product_variant_id, body.quantity)
    return success_response(CartResponse.from_items(items), "Item added to cart.", 201)


@cart_bp.route("/items/<int:variant_id>", methods=["PATCH"])
@login_required
def update_cart_item(variant_id: int):
    """Set the quantity of a cart item. Setting quantity to 0 removes it."""
    body = parse_body(UpdateCartItemRequest)
    items = get_service(CartService).update_item(g.user_id, variant_id, body.quantity)
    return success_response(CartResponse.from_items(items))


@cart_bp.route("/items/<int:variant_id>", methods=["DELETE"])
@login_required
def remove_cart_item(variant_id: int):
    items = get_service(CartService).remove_item(g.user_id, variant_id)
    return success_response(CartResponse.from_items(items), "Item removed from cart.")

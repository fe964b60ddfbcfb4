import logging

from flask import Blueprint, g, request

from trendmart.models.order import OrderStatus
from trendmart.routes.schemas import OrderListQuerySchema
from trendmart.routes.utils import (
    admin_required, get_service, is_admin, login_required, page_window, parse_body, success_response,
)
from trendmart.schemas.order_schemas import (
    OrderListResponse, OrderResponse, PlaceOrderRequest, UpdateOrderStatusRequest, VerifyPaymentRequest,
)
from trendmart.services.order_service import OrderService

logger = logging.getLogger(__name__)

orders_bp = Blueprint("orders", __name__)

_list_schema = OrderListQuerySchema()


@orders_bp.route("", methods=["POST"])
@login_required
def place_order():
    """
    Atomic order placement:
      1. Lock the ordered variants and check every line against stock
      2. Resolve the shipping address
      3. Create order, items and payment; decrement stock conditionally
      4. Remove the purchased variants from the cart
    Any failure rolls everything back. The store is emailed after commit.
    """
    body = parse_body(PlaceOrderRequest)
    order = get_service(OrderService).place_order(g.user_id, body)
    return success_response(OrderResponse.model_validate(order), "Order placed successfully.", 201)


@orders_bp.route("", methods=["GET"])
@login_required
def list_orders():
    """Customers see their own orders; admins see everyone's and can filter by status."""
    query = _list_schema.load(request.args)
    skip, take = page_window(query)
    status = OrderStatus(query["status"]) if query["status"] else None
    user_id = None if is_admin() else g.user_id

    orders, total = get_service(OrderService).list_orders(skip, take, status, user_id)
    return success_response(OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total_count=total,
    ))


@orders_bp.route("/<int:order_id>", methods=["GET"])
@login_required
def get_order(order_id: int):
    user_id = None if is_admin() else g.user_id
    order = get_service(OrderService).get_order(order_id, user_id=user_id)
    return success_response(OrderResponse.model_validate(order))


@orders_bp.route("/<int:order_id>/status", methods=["PATCH"])
@admin_required
def update_order_status(order_id: int):
    body = parse_body(UpdateOrderStatusRequest)
    order = get_service(OrderService).update_order_status(order_id, body.status)
    logger.info(f"Admin {g.user_id} set order {order_id} to {body.status.value}")
    return success_response(OrderResponse.model_validate(order))


@orders_bp.route("/<int:order_id>/payment/verify", methods=["POST"])
@admin_required
def verify_payment(order_id: int):
    body = parse_body(VerifyPaymentRequest)
    order = get_service(OrderService).verify_payment(order_id, body.approved)
    return success_response(OrderResponse.model_validate(order))

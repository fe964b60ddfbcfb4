from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from trendmart.core.config import ADDRESS_POLICY_OVERWRITE_LATEST, OrderConfig
from trendmart.core.exceptions import (
    BaseAPIException, BusinessLogicError, DatabaseError, EmptyCartError,
    InsufficientStockError, NotFoundError, UnauthorizedError, VariantNotFoundError,
)
from trendmart.db import Database
from trendmart.models.order import (
    Address, Order, OrderItem, OrderStatus, Payment, PaymentMethod, PaymentStatus,
)
from trendmart.models.product import ProductVariant
from trendmart.repositories.cart_repository import CartRepository
from trendmart.repositories.order_repository import OrderRepository
from trendmart.repositories.product_repository import ProductRepository
from trendmart.repositories.user_repository import UserRepository
from trendmart.schemas.common_schemas import Existing
from trendmart.schemas.order_schemas import PlaceOrderRequest
import logging

logger = logging.getLogger(__name__)

# Allowed admin-driven status moves. DELIVERED and CANCELLED are terminal.
ORDER_STATUS_TRANSITIONS = {
    OrderStatus.PENDING_PAYMENT: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

INITIAL_PAYMENT_STATUS = {
    PaymentMethod.MANUAL_UPLOAD: PaymentStatus.VERIFICATION_PENDING,
    PaymentMethod.STRIPE: PaymentStatus.PENDING,
}


class OrderService:
    """
    Order placement and order administration

    Responsibilities:
    - Place an order as one all-or-nothing transaction
    - Keep stock non-negative under concurrent checkouts
    - Drive order status and payment verification
    - Notify the store after an order commits
    """

    def __init__(self, database: Database, notifier, order_config: Optional[OrderConfig] = None):
        self.db = database
        self.notifier = notifier
        self.order_config = order_config or OrderConfig()

    def place_order(self, user_id: Optional[int], request: PlaceOrderRequest) -> Order:
        """
        Place one order for user_id.

        Business Rules:
        - Every line must be satisfiable; there is no partial fulfilment
        - Line prices are snapshotted from the variants read in this transaction
        - Stock is taken with a conditional atomic decrement
        - Purchased variants leave the user's cart
        - Notification runs after commit and can never fail the order
        """
        if not user_id:
            raise UnauthorizedError("You must be logged in to place an order")

        quantities = request.quantities_by_variant()
        if not quantities:
            raise EmptyCartError()

        logger.info(f"Placing order for user {user_id} with {len(quantities)} variant(s)")

        try:
            with self.db.transaction() as session:
                products = ProductRepository(session)
                orders = OrderRepository(session)
                users = UserRepository(session)
                carts = CartRepository(session)

                customer = users.get_by_id(user_id)
                if customer is None:
                    raise UnauthorizedError("Unknown user")

                variants = self._resolve_variants(products, quantities)
                self._check_stock(variants, quantities)

                order_total = sum(variants[vid].price * qty for vid, qty in quantities.items())

                address = self._resolve_shipping_address(users, user_id, request)

                order = Order(
                    user_id=user_id,
                    shipping_address=address,
                    order_total=order_total,
                    order_status=OrderStatus.PENDING_PAYMENT.value,
                )
                for variant_id, quantity in quantities.items():
                    order.items.append(OrderItem(
                        product_variant_id=variant_id,
                        quantity=quantity,
                        price_at_purchase=variants[variant_id].price,
                    ))
                order.payment = Payment(
                    amount=order_total,
                    payment_method=request.payment_method.value,
                    payment_status=INITIAL_PAYMENT_STATUS[request.payment_method].value,
                    manual_payment_screenshot_url=(
                        request.payment_screenshot_url
                        if request.payment_method == PaymentMethod.MANUAL_UPLOAD else None
                    ),
                )
                orders.add(order)
                orders.flush("PLACE_ORDER")

                for variant_id, quantity in quantities.items():
                    if not products.decrement_stock(variant_id, quantity):
                        # Someone else took the stock between our read and the update
                        available = products.get_stock(variant_id)
                        logger.warning(
                            f"Stock race lost on variant {variant_id}: "
                            f"available {available}, requested {quantity}"
                        )
                        raise InsufficientStockError(
                            variant_id, available, quantity, variants[variant_id].sku
                        )

                removed = carts.remove_variants(user_id, quantities.keys())

                order_id = order.id
                customer_name = customer.full_name

        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error placing order for user {user_id}: {str(e)}")
            raise DatabaseError(f"Failed to place order: {str(e)}", "PLACE_ORDER")

        logger.info(
            f"Placed order {order_id} for user {user_id}: total {order_total}, "
            f"{removed} cart item(s) cleared"
        )
        self._notify_order_placed(order_id, order_total, customer_name)
        return self.get_order(order_id)

    def get_order(self, order_id: int, user_id: Optional[int] = None) -> Order:
        """Full order graph; user_id restricts the lookup to that customer's orders"""
        try:
            with self.db.session() as session:
                order = OrderRepository(session).get_order(order_id, user_id=user_id)
        except SQLAlchemyError as e:
            logger.error(f"Database error fetching order {order_id}: {str(e)}")
            raise DatabaseError(f"Failed to fetch order: {str(e)}", "GET_ORDER")

        if order is None:
            raise NotFoundError("Order", str(order_id))
        return order

    def list_orders(
        self,
        skip: int = 0,
        take: int = 10,
        status: Optional[OrderStatus] = None,
        user_id: Optional[int] = None,
    ) -> Tuple[List[Order], int]:
        try:
            with self.db.session() as session:
                return OrderRepository(session).list_orders(
                    skip, take, status.value if status else None, user_id
                )
        except SQLAlchemyError as e:
            logger.error(f"Database error listing orders: {str(e)}")
            raise DatabaseError(f"Failed to list orders: {str(e)}", "LIST_ORDERS")

    def update_order_status(self, order_id: int, new_status: OrderStatus) -> Order:
        """
        Move an order along its lifecycle.

        Cancelling puts every line's quantity back on the variant's stock.
        """
        try:
            with self.db.transaction() as session:
                orders = OrderRepository(session)
                order = orders.get_order(order_id, for_update=True)
                if order is None:
                    raise NotFoundError("Order", str(order_id))

                current = OrderStatus(order.order_status)
                if new_status not in ORDER_STATUS_TRANSITIONS[current]:
                    raise BusinessLogicError(
                        f"Cannot change order status from {current.value} to {new_status.value}",
                        rule="order_status_transition",
                    )

                if new_status == OrderStatus.CANCELLED:
                    products = ProductRepository(session)
                    for item in order.items:
                        products.increment_stock(item.product_variant_id, item.quantity)
                    logger.info(f"Restored stock for {len(order.items)} line(s) of cancelled order {order_id}")

                order.order_status = new_status.value
                orders.flush("UPDATE_ORDER_STATUS")
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error updating order {order_id}: {str(e)}")
            raise DatabaseError(f"Failed to update order status: {str(e)}", "UPDATE_ORDER_STATUS")

        logger.info(f"Order {order_id} moved from {current.value} to {new_status.value}")
        return self.get_order(order_id)

    def verify_payment(self, order_id: int, approved: bool) -> Order:
        """Admin decision on a payment while the order awaits payment"""
        try:
            with self.db.transaction() as session:
                orders = OrderRepository(session)
                order = orders.get_order(order_id, for_update=True)
                if order is None:
                    raise NotFoundError("Order", str(order_id))
                if order.order_status != OrderStatus.PENDING_PAYMENT.value:
                    raise BusinessLogicError(
                        f"Payment can only be verified while the order is {OrderStatus.PENDING_PAYMENT.value}",
                        rule="payment_verification_state",
                    )
                if order.payment is None:
                    raise NotFoundError("Payment", str(order_id))

                if approved:
                    order.payment.payment_status = PaymentStatus.COMPLETED.value
                    order.order_status = OrderStatus.PROCESSING.value
                else:
                    order.payment.payment_status = PaymentStatus.FAILED.value
                orders.flush("VERIFY_PAYMENT")
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error verifying payment for order {order_id}: {str(e)}")
            raise DatabaseError(f"Failed to verify payment: {str(e)}", "VERIFY_PAYMENT")

        logger.info(f"Payment for order {order_id} {'approved' if approved else 'rejected'}")
        return self.get_order(order_id)

    def _resolve_variants(self, products: ProductRepository, quantities: Dict[int, int]) -> Dict[int, ProductVariant]:
        variants = products.get_variants_for_update(quantities.keys())
        missing = [
            vid for vid in quantities
            if vid not in variants or variants[vid].is_archived
        ]
        if missing:
            logger.warning(f"Order references unknown or archived variant(s): {sorted(missing)}")
            raise VariantNotFoundError(missing)
        return variants

    def _check_stock(self, variants: Dict[int, ProductVariant], quantities: Dict[int, int]) -> None:
        for variant_id, quantity in quantities.items():
            variant = variants[variant_id]
            if variant.stock < quantity:
                logger.warning(
                    f"Insufficient stock for variant {variant_id}: "
                    f"available {variant.stock}, requested {quantity}"
                )
                raise InsufficientStockError(variant_id, variant.stock, quantity, variant.sku)

    def _resolve_shipping_address(self, users: UserRepository, user_id: int, request: PlaceOrderRequest) -> Address:
        ref = request.address_ref
        if isinstance(ref, Existing):
            address = users.get_user_address(user_id, ref.id)
            if address is None:
                raise NotFoundError("Address", str(ref.id))
            if request.save_address and not address.is_default:
                users.clear_default_addresses(user_id, except_id=address.id)
                address.is_default = True
            return address

        payload = request.shipping_address.model_dump()

        if self.order_config.address_policy == ADDRESS_POLICY_OVERWRITE_LATEST:
            address = users.latest_address(user_id)
            if address is not None:
                for field, value in payload.items():
                    setattr(address, field, value)
                if request.save_address:
                    users.clear_default_addresses(user_id, except_id=address.id)
                address.is_default = request.save_address
                return address

        if request.save_address:
            users.clear_default_addresses(user_id)
        address = Address(user_id=user_id, is_default=request.save_address, **payload)
        users.add(address)
        return address

    def _notify_order_placed(self, order_id: int, order_total: int, customer_name: str) -> None:
        try:
            self.notifier.send_order_notification(
                order_id=order_id, order_total=order_total, customer_name=customer_name
            )
        except Exception:
            logger.exception(f"Order {order_id} was placed but the notification failed")

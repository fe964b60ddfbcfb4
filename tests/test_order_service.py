import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update

from trendmart.core.config import ADDRESS_POLICY_OVERWRITE_LATEST, OrderConfig
from trendmart.core.exceptions import (
    BusinessLogicError, EmptyCartError, InsufficientStockError, NotFoundError,
    UnauthorizedError, VariantNotFoundError,
)
from trendmart.models import CartItem, Order, OrderItem, OrderStatus, Payment, ProductVariant
from trendmart.repositories.product_repository import ProductRepository
from trendmart.schemas.order_schemas import PlaceOrderRequest
from trendmart.schemas.product_schemas import UpdateProductRequest
from trendmart.services.order_service import OrderService

from helpers import (
    addresses_of, count_rows, order_request, shipping_address, stock_of, variant_id, variant_input,
)


def test_order_takes_stock_and_snapshots_prices(order_service, customer_id, hoodie, database):
    """(M, Black) at 4999 with stock 2: ordering 2 leaves 0 and totals 9998."""
    vid = variant_id(hoodie, "M", "Black")

    order = order_service.place_order(customer_id, order_request([(vid, 2)]))

    assert order.order_total == 9998
    assert order.order_status == OrderStatus.PENDING_PAYMENT.value
    assert [(i.product_variant_id, i.quantity, i.price_at_purchase) for i in order.items] == [(vid, 2, 4999)]
    assert order.payment.amount == 9998
    assert order.payment.payment_status == "VERIFICATION_PENDING"
    assert order.payment.manual_payment_screenshot_url == "https://cdn.example.com/receipts/1.png"
    assert stock_of(database, vid) == 0


def test_order_against_exhausted_stock_fails(order_service, customer_id, other_customer_id, hoodie, database):
    vid = variant_id(hoodie, "M", "Black")
    order_service.place_order(customer_id, order_request([(vid, 2)]))

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.place_order(other_customer_id, order_request([(vid, 1)]))

    assert exc_info.value.available == 0
    assert exc_info.value.requested == 1
    assert exc_info.value.details == {"variant_id": vid, "available": 0, "requested": 1}
    assert count_rows(database, Order) == 1
    assert stock_of(database, vid) == 0


def test_total_equals_sum_of_line_extensions(order_service, customer_id, hoodie, database):
    medium = variant_id(hoodie, "M", "Black")
    large = variant_id(hoodie, "L", "Black")

    order = order_service.place_order(customer_id, order_request([(medium, 1), (large, 3)]))

    assert order.order_total == 4999 + 3 * 5999
    assert order.order_total == sum(i.quantity * i.price_at_purchase for i in order.items)
    assert order.payment.amount == order.order_total
    assert stock_of(database, medium) == 1
    assert stock_of(database, large) == 7


def test_one_unsatisfiable_line_rejects_whole_order(order_service, customer_id, hoodie, database):
    medium = variant_id(hoodie, "M", "Black")
    large = variant_id(hoodie, "L", "Black")

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.place_order(customer_id, order_request([(large, 1), (medium, 3)]))

    assert exc_info.value.variant_id == medium
    for model in (Order, OrderItem, Payment):
        assert count_rows(database, model) == 0
    assert stock_of(database, medium) == 2
    assert stock_of(database, large) == 10
    assert addresses_of(database, customer_id) == []


def test_unknown_variant_is_rejected(order_service, customer_id, hoodie, database):
    medium = variant_id(hoodie, "M", "Black")

    with pytest.raises(VariantNotFoundError) as exc_info:
        order_service.place_order(customer_id, order_request([(medium, 1), (9999, 1)]))

    assert exc_info.value.details["variant_ids"] == [9999]
    assert exc_info.value.status_code == 400
    assert count_rows(database, Order) == 0
    assert stock_of(database, medium) == 2


def test_archived_variant_cannot_be_ordered(order_service, product_service, customer_id, hoodie, catalog):
    medium = variant_id(hoodie, "M", "Black")
    product_service.update_product(hoodie.id, UpdateProductRequest(variants=[
        variant_input(catalog, "L", "Black", price=5999, stock=10),
    ]))

    with pytest.raises(VariantNotFoundError):
        order_service.place_order(customer_id, order_request([(medium, 1)]))


def test_empty_order_rejected_before_any_work(order_service, customer_id, database):
    with pytest.raises(EmptyCartError):
        order_service.place_order(customer_id, order_request([]))
    assert addresses_of(database, customer_id) == []


def test_anonymous_order_rejected(order_service, hoodie):
    with pytest.raises(UnauthorizedError):
        order_service.place_order(None, order_request([(variant_id(hoodie, "M", "Black"), 1)]))


def test_repeated_variant_lines_are_merged(order_service, customer_id, hoodie, database):
    vid = variant_id(hoodie, "M", "Black")

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.place_order(customer_id, order_request([(vid, 2), (vid, 1)]))
    assert exc_info.value.requested == 3

    order = order_service.place_order(customer_id, order_request([(vid, 1), (vid, 1)]))
    assert [(i.product_variant_id, i.quantity) for i in order.items] == [(vid, 2)]
    assert stock_of(database, vid) == 0


def test_sequential_orders_never_oversell(order_service, customer_id, hoodie, database):
    """Stock 10, five orders of 3: the first three fit, the rest fail in arrival order."""
    vid = variant_id(hoodie, "L", "Black")
    outcomes = []
    for _ in range(5):
        try:
            order_service.place_order(customer_id, order_request([(vid, 3)]))
            outcomes.append("ok")
        except InsufficientStockError:
            outcomes.append("insufficient")

    assert outcomes == ["ok", "ok", "ok", "insufficient", "insufficient"]
    assert stock_of(database, vid) == 1
    assert count_rows(database, Order) == 3


def test_stock_taken_between_read_and_decrement_aborts_order(
    order_service, customer_id, hoodie, database, monkeypatch
):
    """A writer that empties the variant after our read makes the conditional update miss."""
    vid = variant_id(hoodie, "M", "Black")
    original = ProductRepository.get_variants_for_update

    def read_then_concurrent_write(self, variant_ids):
        variants = original(self, variant_ids)
        self.session.execute(
            update(ProductVariant)
            .where(ProductVariant.id == vid)
            .values(stock=0)
            .execution_options(synchronize_session=False)
        )
        return variants

    monkeypatch.setattr(ProductRepository, "get_variants_for_update", read_then_concurrent_write)

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.place_order(customer_id, order_request([(vid, 2)]))

    assert exc_info.value.available == 0
    assert exc_info.value.requested == 2
    for model in (Order, OrderItem, Payment):
        assert count_rows(database, model) == 0
    assert stock_of(database, vid) >= 0


def test_purchased_variants_leave_the_cart(order_service, cart_service, customer_id, hoodie, database):
    medium = variant_id(hoodie, "M", "Black")
    large = variant_id(hoodie, "L", "Black")
    cart_service.add_item(customer_id, medium, 1)
    cart_service.add_item(customer_id, large, 2)

    order_service.place_order(customer_id, order_request([(medium, 1)]))

    remaining = cart_service.list_items(customer_id)
    assert [item.product_variant_id for item in remaining] == [large]
    assert count_rows(database, CartItem) == 1


def test_failed_order_keeps_the_cart(order_service, cart_service, customer_id, hoodie):
    medium = variant_id(hoodie, "M", "Black")
    cart_service.add_item(customer_id, medium, 2)

    with pytest.raises(InsufficientStockError):
        order_service.place_order(customer_id, order_request([(medium, 5)]))

    assert [item.quantity for item in cart_service.list_items(customer_id)] == [2]


def test_store_is_notified_after_commit(order_service, customer_id, hoodie, notifier):
    order = order_service.place_order(customer_id, order_request([(variant_id(hoodie, "M", "Black"), 1)]))

    assert notifier.order_notifications == [
        {"order_id": order.id, "order_total": 4999, "customer_name": "Hla Hla"}
    ]


def test_notification_failure_does_not_fail_the_order(order_service, customer_id, hoodie, notifier, database):
    notifier.fail_orders = True
    vid = variant_id(hoodie, "M", "Black")

    order = order_service.place_order(customer_id, order_request([(vid, 1)]))

    assert order.id is not None
    assert count_rows(database, Order) == 1
    assert stock_of(database, vid) == 1


def test_stripe_payment_starts_pending(order_service, customer_id, hoodie):
    request = order_request(
        [(variant_id(hoodie, "M", "Black"), 1)],
        payment_method="STRIPE",
        payment_screenshot_url=None,
    )

    order = order_service.place_order(customer_id, request)

    assert order.payment.payment_method == "STRIPE"
    assert order.payment.payment_status == "PENDING"
    assert order.payment.manual_payment_screenshot_url is None


def test_manual_payment_requires_screenshot():
    with pytest.raises(PydanticValidationError):
        PlaceOrderRequest.model_validate({
            "items": [{"product_variant_id": 1, "quantity": 1}],
            "shipping_address": shipping_address(),
            "payment_method": "MANUAL_UPLOAD",
        })


def test_exactly_one_address_source_required():
    base = {
        "items": [{"product_variant_id": 1, "quantity": 1}],
        "payment_method": "STRIPE",
    }
    with pytest.raises(PydanticValidationError):
        PlaceOrderRequest.model_validate(base)
    with pytest.raises(PydanticValidationError):
        PlaceOrderRequest.model_validate({**base, "shipping_address_id": 1, "shipping_address": shipping_address()})


class TestShippingAddress:

    def test_each_new_address_payload_creates_a_row(self, order_service, customer_id, hoodie, database):
        vid = variant_id(hoodie, "L", "Black")
        first = order_service.place_order(customer_id, order_request([(vid, 1)]))
        second = order_service.place_order(customer_id, order_request(
            [(vid, 1)], shipping_address=shipping_address(city="Mandalay")
        ))

        assert first.shipping_address.id != second.shipping_address.id
        assert order_service.get_order(first.id).shipping_address.city == "Yangon"
        assert [a.city for a in addresses_of(database, customer_id)] == ["Yangon", "Mandalay"]

    def test_save_address_moves_the_default(self, order_service, customer_id, hoodie, database):
        vid = variant_id(hoodie, "L", "Black")
        order_service.place_order(customer_id, order_request([(vid, 1)], save_address=True))
        order_service.place_order(customer_id, order_request(
            [(vid, 1)], shipping_address=shipping_address(city="Bago"), save_address=True
        ))

        defaults = [(a.city, a.is_default) for a in addresses_of(database, customer_id)]
        assert defaults == [("Yangon", False), ("Bago", True)]

    def test_saved_address_can_be_reused_by_id(self, order_service, customer_id, hoodie, database):
        vid = variant_id(hoodie, "L", "Black")
        first = order_service.place_order(customer_id, order_request([(vid, 1)]))

        second = order_service.place_order(customer_id, order_request(
            [(vid, 1)], shipping_address=None, shipping_address_id=first.shipping_address.id
        ))

        assert second.shipping_address.id == first.shipping_address.id
        assert len(addresses_of(database, customer_id)) == 1

    def test_foreign_address_id_is_not_found(self, order_service, customer_id, other_customer_id, hoodie, database):
        vid = variant_id(hoodie, "L", "Black")
        theirs = order_service.place_order(other_customer_id, order_request([(vid, 1)]))

        with pytest.raises(NotFoundError):
            order_service.place_order(customer_id, order_request(
                [(vid, 1)], shipping_address=None, shipping_address_id=theirs.shipping_address.id
            ))
        assert stock_of(database, vid) == 9

    def test_overwrite_latest_policy_updates_in_place(self, database, notifier, customer_id, hoodie):
        service = OrderService(database, notifier, OrderConfig(address_policy=ADDRESS_POLICY_OVERWRITE_LATEST))
        vid = variant_id(hoodie, "L", "Black")

        first = service.place_order(customer_id, order_request([(vid, 1)]))
        second = service.place_order(customer_id, order_request(
            [(vid, 1)], shipping_address=shipping_address(city="Mandalay"), save_address=True
        ))

        assert second.shipping_address.id == first.shipping_address.id
        rows = addresses_of(database, customer_id)
        assert [(a.city, a.is_default) for a in rows] == [("Mandalay", True)]


class TestOrderAdministration:

    def test_customer_only_sees_own_orders(self, order_service, customer_id, other_customer_id, hoodie):
        vid = variant_id(hoodie, "L", "Black")
        mine = order_service.place_order(customer_id, order_request([(vid, 1)]))
        order_service.place_order(other_customer_id, order_request([(vid, 1)]))

        assert order_service.get_order(mine.id, user_id=customer_id).id == mine.id
        with pytest.raises(NotFoundError):
            order_service.get_order(mine.id, user_id=other_customer_id)

        orders, total = order_service.list_orders(user_id=customer_id)
        assert total == 1
        assert [o.id for o in orders] == [mine.id]

    def test_list_orders_filters_by_status_and_pages(self, order_service, customer_id, hoodie):
        vid = variant_id(hoodie, "L", "Black")
        ids = [order_service.place_order(customer_id, order_request([(vid, 1)])).id for _ in range(3)]
        order_service.update_order_status(ids[0], OrderStatus.PROCESSING)

        processing, total = order_service.list_orders(status=OrderStatus.PROCESSING)
        assert total == 1 and [o.id for o in processing] == [ids[0]]

        page, total = order_service.list_orders(skip=0, take=2)
        assert total == 3
        assert [o.id for o in page] == [ids[2], ids[1]]

    def test_status_follows_lifecycle(self, order_service, customer_id, hoodie):
        order = order_service.place_order(customer_id, order_request([(variant_id(hoodie, "L", "Black"), 1)]))

        for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            order = order_service.update_order_status(order.id, status)
        assert order.order_status == "DELIVERED"

        with pytest.raises(BusinessLogicError):
            order_service.update_order_status(order.id, OrderStatus.CANCELLED)

    def test_shipping_cannot_skip_processing(self, order_service, customer_id, hoodie):
        order = order_service.place_order(customer_id, order_request([(variant_id(hoodie, "L", "Black"), 1)]))
        with pytest.raises(BusinessLogicError):
            order_service.update_order_status(order.id, OrderStatus.SHIPPED)

    def test_cancelling_restores_stock(self, order_service, customer_id, hoodie, database):
        medium = variant_id(hoodie, "M", "Black")
        large = variant_id(hoodie, "L", "Black")
        order = order_service.place_order(customer_id, order_request([(medium, 2), (large, 4)]))

        cancelled = order_service.update_order_status(order.id, OrderStatus.CANCELLED)

        assert cancelled.order_status == "CANCELLED"
        assert stock_of(database, medium) == 2
        assert stock_of(database, large) == 10

    def test_unknown_order_status_update(self, order_service):
        with pytest.raises(NotFoundError):
            order_service.update_order_status(404, OrderStatus.PROCESSING)

    def test_approved_payment_moves_order_to_processing(self, order_service, customer_id, hoodie):
        order = order_service.place_order(customer_id, order_request([(variant_id(hoodie, "L", "Black"), 1)]))

        verified = order_service.verify_payment(order.id, approved=True)

        assert verified.payment.payment_status == "COMPLETED"
        assert verified.order_status == "PROCESSING"
        with pytest.raises(BusinessLogicError):
            order_service.verify_payment(order.id, approved=True)

    def test_rejected_payment_is_marked_failed(self, order_service, customer_id, hoodie):
        order = order_service.place_order(customer_id, order_request([(variant_id(hoodie, "L", "Black"), 1)]))

        rejected = order_service.verify_payment(order.id, approved=False)

        assert rejected.payment.payment_status == "FAILED"
        assert rejected.order_status == "PENDING_PAYMENT"


def test_archiving_keeps_order_history(order_service, product_service, customer_id, hoodie, catalog):
    medium = variant_id(hoodie, "M", "Black")
    order = order_service.place_order(customer_id, order_request([(medium, 1)]))

    product_service.update_product(hoodie.id, UpdateProductRequest(variants=[
        variant_input(catalog, "L", "Black", price=7999, stock=10),
    ]))

    historical = order_service.get_order(order.id)
    item = historical.items[0]
    assert item.product_variant_id == medium
    assert item.price_at_purchase == 4999
    assert item.product_variant.is_archived is True
    assert item.product_variant.sku == "HOODIE-M-BLK"
    assert item.product_variant.size.value == "M"
    assert item.product_variant.product.name == "Essential Urban Hoodie"
    assert historical.order_total == 4999

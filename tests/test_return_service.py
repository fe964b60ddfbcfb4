import pytest

from trendmart.core.exceptions import BusinessLogicError, ConflictError, NotFoundError
from trendmart.models import OrderStatus, ReturnStatus

from helpers import order_request, stock_of, variant_id


@pytest.fixture
def delivered_order(order_service, customer_id, hoodie):
    order = order_service.place_order(customer_id, order_request([(variant_id(hoodie, "L", "Black"), 2)]))
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        order_service.update_order_status(order.id, status)
    return order


def test_request_and_approve_return_keeps_stock(return_service, delivered_order, customer_id, hoodie, database):
    vid = variant_id(hoodie, "L", "Black")
    assert stock_of(database, vid) == 8

    opened = return_service.request_return(customer_id, delivered_order.id, "  Wrong size  ")
    assert opened.status == ReturnStatus.REQUESTED.value
    assert opened.reason == "Wrong size"

    resolved = return_service.resolve_return(opened.id, approve=True)
    assert resolved.status == "APPROVED"
    assert resolved.resolved_at is not None
    assert stock_of(database, vid) == 8


def test_reject_return(return_service, delivered_order, customer_id):
    opened = return_service.request_return(customer_id, delivered_order.id, "Changed my mind")
    assert return_service.resolve_return(opened.id, approve=False).status == "REJECTED"

    with pytest.raises(BusinessLogicError):
        return_service.resolve_return(opened.id, approve=True)


def test_only_one_open_return_per_order(return_service, delivered_order, customer_id):
    return_service.request_return(customer_id, delivered_order.id, "Damaged seam")
    with pytest.raises(ConflictError):
        return_service.request_return(customer_id, delivered_order.id, "Still damaged")


def test_return_requires_delivered_own_order(return_service, order_service, customer_id, other_customer_id, hoodie,
                                              delivered_order):
    pending = order_service.place_order(customer_id, order_request([(variant_id(hoodie, "L", "Black"), 1)]))
    with pytest.raises(BusinessLogicError):
        return_service.request_return(customer_id, pending.id, "Not yet here")

    with pytest.raises(NotFoundError):
        return_service.request_return(other_customer_id, delivered_order.id, "Not mine")


def test_list_returns_scoped_to_user(return_service, delivered_order, customer_id, other_customer_id):
    return_service.request_return(customer_id, delivered_order.id, "Too small")

    mine, total = return_service.list_returns(user_id=customer_id)
    assert total == 1 and mine[0].order_id == delivered_order.id
    assert return_service.list_returns(user_id=other_customer_id) == ([], 0)
    assert return_service.list_returns(status=ReturnStatus.APPROVED)[1] == 0


def test_resolve_unknown_return(return_service):
    with pytest.raises(NotFoundError):
        return_service.resolve_return(999, approve=True)

from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from trendmart.models.order import Order, OrderItem, ReturnRequest, ReturnStatus
from trendmart.repositories.base import BaseRepository
from trendmart.repositories.product_repository import variant_detail_options
import logging

logger = logging.getLogger(__name__)


def order_detail_options():
    return (
        selectinload(Order.user),
        selectinload(Order.shipping_address),
        selectinload(Order.payment),
        selectinload(Order.items)
        .selectinload(OrderItem.product_variant)
        .options(*variant_detail_options()),
    )


class OrderRepository(BaseRepository[Order]):
    """Repository for orders, their items and payments"""

    @property
    def model(self):
        return Order

    def get_order(self, order_id: int, user_id: Optional[int] = None, for_update: bool = False) -> Optional[Order]:
        """
        Full order graph, optionally scoped to one customer.

        Archived variants are still loaded so historical orders always render.
        """
        query = select(Order).where(Order.id == order_id).options(*order_detail_options())
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        if for_update:
            query = query.with_for_update(of=Order)
        return self.session.execute(query).scalar_one_or_none()

    def list_orders(
        self,
        skip: int,
        take: int,
        status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Tuple[List[Order], int]:
        """Page of orders, newest first, plus the total matching count"""
        conditions = []
        if status:
            conditions.append(Order.order_status == status)
        if user_id is not None:
            conditions.append(Order.user_id == user_id)

        count_query = select(func.count()).select_from(Order).where(*conditions)
        total = self.session.execute(count_query).scalar_one()

        query = (
            select(Order)
            .where(*conditions)
            .options(*order_detail_options())
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(skip)
            .limit(take)
        )
        orders = list(self.session.execute(query).scalars().all())
        return orders, total


class ReturnRepository(BaseRepository[ReturnRequest]):
    """Repository for return requests"""

    @property
    def model(self):
        return ReturnRequest

    def get_open_return(self, order_id: int) -> Optional[ReturnRequest]:
        query = select(ReturnRequest).where(
            ReturnRequest.order_id == order_id,
            ReturnRequest.status == ReturnStatus.REQUESTED.value,
        )
        return self.session.execute(query).scalars().first()

    def list_returns(self, skip: int, take: int, status: Optional[str] = None,
                     user_id: Optional[int] = None) -> Tuple[List[ReturnRequest], int]:
        conditions = []
        if status:
            conditions.append(ReturnRequest.status == status)
        if user_id is not None:
            conditions.append(ReturnRequest.user_id == user_id)

        count_query = select(func.count()).select_from(ReturnRequest).where(*conditions)
        total = self.session.execute(count_query).scalar_one()

        query = (
            select(ReturnRequest)
            .where(*conditions)
            .order_by(ReturnRequest.created_at.desc(), ReturnRequest.id.desc())
            .offset(skip)
            .limit(take)
        )
        return list(self.session.execute(query).scalars().all()), total

from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import selectinload

from trendmart.models.cart import CartItem
from trendmart.repositories.base import BaseRepository
from trendmart.repositories.product_repository import variant_detail_options


class CartRepository(BaseRepository[CartItem]):
    """Repository for cart line items"""

    @property
    def model(self):
        return CartItem

    def list_items(self, user_id: int) -> List[CartItem]:
        query = (
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .options(selectinload(CartItem.product_variant).options(*variant_detail_options()))
            .order_by(CartItem.created_at, CartItem.id)
        )
        return list(self.session.execute(query).scalars().all())

    def get_item(self, user_id: int, variant_id: int, for_update: bool = False) -> Optional[CartItem]:
        query = select(CartItem).where(
            CartItem.user_id == user_id,
            CartItem.product_variant_id == variant_id,
        )
        if for_update:
            query = query.with_for_update()
        return self.session.execute(query).scalar_one_or_none()

    def insert_if_absent(self, user_id: int, variant_id: int, quantity: int) -> bool:
        """
        INSERT ... ON CONFLICT (user_id, product_variant_id) DO NOTHING.

        Returns False when a concurrent request created the same line first.
        """
        dialect = self.session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        statement = (
            insert(CartItem)
            .values(user_id=user_id, product_variant_id=variant_id, quantity=quantity)
            .on_conflict_do_nothing(index_elements=["user_id", "product_variant_id"])
        )
        return self.session.execute(statement).rowcount == 1

    def remove_variants(self, user_id: int, variant_ids: Iterable[int]) -> int:
        """Delete the user's cart rows for the given variants; returns rows removed"""
        ids = list(set(variant_ids))
        if not ids:
            return 0
        statement = (
            delete(CartItem)
            .where(CartItem.user_id == user_id, CartItem.product_variant_id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(statement).rowcount

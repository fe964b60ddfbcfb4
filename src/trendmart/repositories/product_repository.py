from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import selectinload

from trendmart.models.product import Category, Color, Product, ProductVariant, Size
from trendmart.repositories.base import BaseRepository
import logging

logger = logging.getLogger(__name__)


def variant_detail_options():
    """Loader options for everything a serialized variant touches"""
    return (
        selectinload(ProductVariant.size),
        selectinload(ProductVariant.color),
        selectinload(ProductVariant.product),
        selectinload(ProductVariant.images),
    )


class ProductRepository(BaseRepository[Product]):
    """Repository for products, their variants, images and lookup tables"""

    @property
    def model(self):
        return Product

    def get_product(self, product_id: int) -> Optional[Product]:
        """Product with categories and every variant (archived included)"""
        query = (
            select(Product)
            .where(Product.id == product_id)
            .options(
                selectinload(Product.categories),
                selectinload(Product.variants).options(*variant_detail_options()),
            )
        )
        return self.session.execute(query).scalar_one_or_none()

    def list_products(self, skip: int, take: int, active_only: bool = True) -> Tuple[List[Product], int]:
        """
        Page of products, newest first, plus the total count.

        active_only hides products whose variants are all archived.
        """
        conditions = []
        if active_only:
            conditions.append(Product.variants.any(ProductVariant.is_archived.is_(False)))

        count_query = select(func.count()).select_from(Product).where(*conditions)
        total = self.session.execute(count_query).scalar_one()

        query = (
            select(Product)
            .where(*conditions)
            .options(
                selectinload(Product.categories),
                selectinload(Product.variants).options(*variant_detail_options()),
            )
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset(skip)
            .limit(take)
        )
        products = list(self.session.execute(query).scalars().all())
        return products, total

    def get_variant(self, variant_id: int) -> Optional[ProductVariant]:
        query = (
            select(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .options(*variant_detail_options())
        )
        return self.session.execute(query).scalar_one_or_none()

    def get_variants_for_update(self, variant_ids: Iterable[int]) -> Dict[int, ProductVariant]:
        """
        Lock and load the given variants.

        Rows are locked in ascending id order so two checkouts touching the
        same variants cannot deadlock. SQLite ignores FOR UPDATE.
        """
        ids = sorted(set(variant_ids))
        if not ids:
            return {}
        query = (
            select(ProductVariant)
            .where(ProductVariant.id.in_(ids))
            .order_by(ProductVariant.id)
            .with_for_update()
        )
        return {variant.id: variant for variant in self.session.execute(query).scalars()}

    def get_variants_for_product(self, product_id: int) -> List[ProductVariant]:
        """All variants of a product, archived ones included, with images"""
        query = (
            select(ProductVariant)
            .where(ProductVariant.product_id == product_id)
            .options(selectinload(ProductVariant.images))
            .order_by(ProductVariant.id)
            .with_for_update()
        )
        return list(self.session.execute(query).scalars().all())

    def decrement_stock(self, variant_id: int, quantity: int) -> bool:
        """
        Atomically take quantity units off a variant's stock.

        Single conditional UPDATE -- no read-modify-write -- so concurrent
        orders cannot oversell. Returns False when the stock would go
        negative; nothing is changed in that case.
        """
        statement = (
            update(ProductVariant)
            .where(ProductVariant.id == variant_id, ProductVariant.stock >= quantity)
            .values(stock=ProductVariant.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        return result.rowcount == 1

    def increment_stock(self, variant_id: int, quantity: int) -> bool:
        statement = (
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .values(stock=ProductVariant.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        return result.rowcount == 1

    def get_stock(self, variant_id: int) -> int:
        query = select(ProductVariant.stock).where(ProductVariant.id == variant_id)
        return self.session.execute(query).scalar_one_or_none() or 0

    def find_variants_by_sku(self, skus: Iterable[str]) -> Dict[str, ProductVariant]:
        wanted = list(set(skus))
        if not wanted:
            return {}
        query = select(ProductVariant).where(ProductVariant.sku.in_(wanted))
        return {variant.sku: variant for variant in self.session.execute(query).scalars()}

    def get_categories(self, category_ids: Iterable[int]) -> List[Category]:
        ids = list(set(category_ids))
        if not ids:
            return []
        query = select(Category).where(Category.id.in_(ids)).order_by(Category.id)
        return list(self.session.execute(query).scalars().all())

    def missing_size_ids(self, size_ids: Iterable[int]) -> Set[int]:
        return self._missing_ids(Size, size_ids)

    def missing_color_ids(self, color_ids: Iterable[int]) -> Set[int]:
        return self._missing_ids(Color, color_ids)

    def _missing_ids(self, model, ids: Iterable[int]) -> Set[int]:
        wanted = set(ids)
        if not wanted:
            return set()
        query = select(model.id).where(model.id.in_(wanted))
        found = set(self.session.execute(query).scalars().all())
        return wanted - found

from typing import List

from sqlalchemy.exc import SQLAlchemyError

from trendmart.core.exceptions import (
    BaseAPIException, BusinessLogicError, DatabaseError, InsufficientStockError, NotFoundError,
)
from trendmart.db import Database
from trendmart.models.cart import CartItem
from trendmart.repositories.cart_repository import CartRepository
from trendmart.repositories.product_repository import ProductRepository
import logging

logger = logging.getLogger(__name__)


class CartService:
    """
    Shopping cart business logic service

    Responsibilities:
    - Enforce cart business rules
    - Check requested quantities against current stock
    - Keep one row per (user, variant)
    """

    def __init__(self, database: Database, max_quantity_per_item: int = 99):
        self.db = database
        self.max_quantity_per_item = max_quantity_per_item  # Business rule

    def list_items(self, user_id: int) -> List[CartItem]:
        logger.info(f"Fetching cart for user {user_id}")
        try:
            with self.db.session() as session:
                return CartRepository(session).list_items(user_id)
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving cart for user {user_id}: {str(e)}")
            raise DatabaseError(f"Failed to retrieve cart: {str(e)}", "GET_CART")

    def add_item(self, user_id: int, variant_id: int, quantity: int) -> List[CartItem]:
        """
        Add item to cart with business validation

        Business Rules:
        - Variant must exist and not be archived
        - Adding an item already in the cart increases its quantity
        - Resulting quantity may not exceed the per-item limit or current stock
        """
        logger.info(f"Adding item to cart - user: {user_id}, variant: {variant_id}, quantity: {quantity}")
        try:
            with self.db.transaction() as session:
                carts = CartRepository(session)
                variant = ProductRepository(session).get_variant(variant_id)
                if variant is None or variant.is_archived:
                    raise NotFoundError("Product variant", str(variant_id))

                item = carts.get_item(user_id, variant_id, for_update=True)
                inserted = False
                if item is None:
                    self._check_quantity(variant, quantity)
                    inserted = carts.insert_if_absent(user_id, variant_id, quantity)
                    if not inserted:
                        # A concurrent add created the line first; merge into it
                        logger.info(f"Cart line for user {user_id}, variant {variant_id} already exists; merging")
                        item = carts.get_item(user_id, variant_id, for_update=True)

                if not inserted:
                    new_quantity = item.quantity + quantity
                    self._check_quantity(variant, new_quantity)
                    item.quantity = new_quantity
                    carts.flush("ADD_CART_ITEM")
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error adding to cart for user {user_id}: {str(e)}")
            raise DatabaseError(f"Failed to add cart item: {str(e)}", "ADD_CART_ITEM")

        return self.list_items(user_id)

    def update_item(self, user_id: int, variant_id: int, quantity: int) -> List[CartItem]:
        """Set an item's quantity; 0 removes it"""
        if quantity == 0:
            return self.remove_item(user_id, variant_id)

        logger.info(f"Updating cart item - user: {user_id}, variant: {variant_id}, quantity: {quantity}")
        try:
            with self.db.transaction() as session:
                carts = CartRepository(session)
                item = carts.get_item(user_id, variant_id)
                if item is None:
                    raise NotFoundError("Cart item", str(variant_id))
                variant = ProductRepository(session).get_variant(variant_id)
                if variant is None or variant.is_archived:
                    raise NotFoundError("Product variant", str(variant_id))
                self._check_quantity(variant, quantity)
                item.quantity = quantity
                carts.flush("UPDATE_CART_ITEM")
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating cart for user {user_id}: {str(e)}")
            raise DatabaseError(f"Failed to update cart item: {str(e)}", "UPDATE_CART_ITEM")

        return self.list_items(user_id)

    def remove_item(self, user_id: int, variant_id: int) -> List[CartItem]:
        logger.info(f"Removing cart item - user: {user_id}, variant: {variant_id}")
        try:
            with self.db.transaction() as session:
                carts = CartRepository(session)
                item = carts.get_item(user_id, variant_id)
                if item is None:
                    raise NotFoundError("Cart item", str(variant_id))
                carts.delete(item)
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error removing cart item for user {user_id}: {str(e)}")
            raise DatabaseError(f"Failed to remove cart item: {str(e)}", "REMOVE_CART_ITEM")

        return self.list_items(user_id)

    def _check_quantity(self, variant, quantity: int) -> None:
        if quantity > self.max_quantity_per_item:
            raise BusinessLogicError(
                f"Maximum quantity per item is {self.max_quantity_per_item}",
                rule="max_quantity_per_item",
            )
        if quantity > variant.stock:
            raise InsufficientStockError(variant.id, variant.stock, quantity, variant.sku)

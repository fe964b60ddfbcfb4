from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Integer, UniqueConstraint
from sqlalchemy import ForeignKey
from sqlalchemy.orm import relationship

from trendmart.db import Base, BigIntPK


class CartItem(Base):
    """
    A single variant + quantity pair in a user's cart.

    quantity must be > 0 -- removing an item means deleting the row, not
    setting quantity to 0. Placing an order deletes the rows for every
    purchased variant.
    """

    __tablename__ = "cart_items"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    product_variant_id = Column(
        BigInteger, ForeignKey("product_variants.id"), nullable=False
    )
    quantity = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "product_variant_id", name="uq_cart_user_variant"),
        CheckConstraint("quantity > 0", name="ck_cart_item_quantity"),
    )

    product_variant = relationship("ProductVariant")

    @property
    def subtotal(self) -> int:
        return self.quantity * self.product_variant.price

    def __repr__(self) -> str:
        return (
            f"<CartItem id={self.id} variant_id={self.product_variant_id} "
            f"qty={self.quantity}>"
        )

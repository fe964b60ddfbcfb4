from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric,
    Table, Text, UniqueConstraint,
)
from sqlalchemy import BigInteger
from sqlalchemy.orm import relationship

from trendmart.db import Base, BigIntPK


product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", BigInteger, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", BigInteger, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Category(Base):
    """
    Two-level grouping: top-level categories (Women, Men, ...) and their
    sub-categories (Shoes, Hoodie, ...). parent_id is NULL for top level.
    """

    __tablename__ = "categories"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    parent_id = Column(BigInteger, ForeignKey("categories.id"), nullable=True)

    parent = relationship("Category", remote_side=[id], back_populates="children")
    children = relationship("Category", back_populates="parent")

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"


class Size(Base):
    __tablename__ = "sizes"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    value = Column(Text, nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Size id={self.id} value={self.value!r}>"


class Color(Base):
    __tablename__ = "colors"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)
    hex_code = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Color id={self.id} name={self.name!r}>"


class Product(Base):
    """
    A product is the top-level catalog entry (e.g. 'Classic Hoodie').
    Purchasable size/colour combinations live in ProductVariant.
    """

    __tablename__ = "products"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
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

    categories = relationship("Category", secondary=product_categories)
    # No delete-orphan cascade: variants are archived, never removed, because
    # order_items keep pointing at them.
    variants = relationship(
        "ProductVariant", back_populates="product", order_by="ProductVariant.id"
    )

    @property
    def active_variants(self):
        return [v for v in self.variants if not v.is_archived]

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"


class ProductVariant(Base):
    """
    A specific, purchasable size/colour of a product.

    (product_id, size_id, color_id) is unique -- reconciliation upserts on
    that key. price is an integer number of cents; $49.99 -> 4999.

    is_archived is a soft delete. Archived variants disappear from the
    storefront but stay referenceable by historical order items.
    The stock CHECK is the last line of defence against overselling.
    """

    __tablename__ = "product_variants"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(
        BigInteger, ForeignKey("products.id"), nullable=False
    )
    size_id = Column(BigInteger, ForeignKey("sizes.id"), nullable=False)
    color_id = Column(BigInteger, ForeignKey("colors.id"), nullable=False)
    sku = Column(Text, nullable=False, unique=True)
    price = Column(BigInteger, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    discount_percentage = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
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
        UniqueConstraint("product_id", "size_id", "color_id", name="uq_variant_product_size_color"),
        CheckConstraint("price >= 0", name="ck_variant_price"),
        CheckConstraint("stock >= 0", name="ck_variant_stock"),
    )

    product = relationship("Product", back_populates="variants")
    size = relationship("Size")
    color = relationship("Color")
    images = relationship(
        "ProductImage",
        back_populates="variant",
        cascade="all, delete-orphan",
        order_by="ProductImage.id",
    )

    @property
    def key(self):
        """Reconciliation key within a product."""
        return (self.size_id, self.color_id)

    @property
    def primary_image(self):
        return next((img for img in self.images if img.is_primary), None)

    def __repr__(self) -> str:
        return (
            f"<ProductVariant id={self.id} sku={self.sku!r} "
            f"stock={self.stock} archived={self.is_archived}>"
        )


class ProductImage(Base):
    """
    An image of one variant. At most one per variant should be primary; this
    is not enforced by the schema.
    """

    __tablename__ = "product_images"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_variant_id = Column(
        BigInteger, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False
    )
    image_url = Column(Text, nullable=False)
    alt_text = Column(Text, nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)

    variant = relationship("ProductVariant", back_populates="images")

    def __repr__(self) -> str:
        return f"<ProductImage id={self.id} primary={self.is_primary}>"

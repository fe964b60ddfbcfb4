from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, DateTime, Integer, Text
from sqlalchemy import ForeignKey
from sqlalchemy.orm import relationship

from trendmart.db import Base, BigIntPK


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    STRIPE = "STRIPE"
    MANUAL_UPLOAD = "MANUAL_UPLOAD"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    VERIFICATION_PENDING = "VERIFICATION_PENDING"


class ReturnStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def _in_check(column: str, enum_cls) -> str:
    values = ",".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class Address(Base):
    """
    A postal address belonging to a user.

    Orders reference their shipping address by id, so an address row that an
    order points at must not be rewritten if that order's history matters.
    """

    __tablename__ = "addresses"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    full_name = Column(Text, nullable=False)
    phone_number = Column(Text, nullable=False)
    address_line1 = Column(Text, nullable=False)
    address_line2 = Column(Text, nullable=True)
    city = Column(Text, nullable=False)
    state = Column(Text, nullable=True)
    postal_code = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="addresses")

    def __repr__(self) -> str:
        return f"<Address id={self.id} user_id={self.user_id} city={self.city!r}>"


class Order(Base):
    """
    A customer order.

    order_total is the sum of quantity * price_at_purchase over the items,
    computed once at placement in integer cents. Status is a CHECK-guarded
    Text column rather than a database ENUM type.
    """

    __tablename__ = "orders"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False)
    shipping_address_id = Column(BigInteger, ForeignKey("addresses.id"), nullable=False)
    order_total = Column(BigInteger, nullable=False)
    order_status = Column(Text, nullable=False, default=OrderStatus.PENDING_PAYMENT.value)
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
        CheckConstraint(_in_check("order_status", OrderStatus), name="ck_order_status"),
        CheckConstraint("order_total >= 0", name="ck_order_total"),
    )

    user = relationship("User")
    shipping_address = relationship("Address")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    payment = relationship(
        "Payment", back_populates="order", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def items_total(self) -> int:
        return sum(item.subtotal for item in self.items)

    def __repr__(self) -> str:
        return (
            f"<Order id={self.id} status={self.order_status!r} "
            f"order_total={self.order_total}>"
        )


class OrderItem(Base):
    """
    A single line of an order.

    price_at_purchase is snapshotted from the variant at placement time, so
    later catalog price changes never alter historical totals.
    """

    __tablename__ = "order_items"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(
        BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_variant_id = Column(
        BigInteger, ForeignKey("product_variants.id"), nullable=False
    )
    quantity = Column(Integer, nullable=False)
    price_at_purchase = Column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_item_quantity"),
        CheckConstraint("price_at_purchase >= 0", name="ck_item_price"),
    )

    order = relationship("Order", back_populates="items")
    product_variant = relationship("ProductVariant")

    @property
    def subtotal(self) -> int:
        return self.quantity * self.price_at_purchase

    def __repr__(self) -> str:
        return (
            f"<OrderItem id={self.id} variant_id={self.product_variant_id} "
            f"qty={self.quantity}>"
        )


class Payment(Base):
    """
    One payment record per order. amount always equals the order total.

    Manual uploads wait in VERIFICATION_PENDING until an admin checks the
    screenshot; Stripe payments stay PENDING (no gateway integration).
    """

    __tablename__ = "payments"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(
        BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    amount = Column(BigInteger, nullable=False)
    payment_method = Column(Text, nullable=False)
    payment_status = Column(Text, nullable=False, default=PaymentStatus.PENDING.value)
    stripe_payment_intent_id = Column(Text, nullable=True)
    manual_payment_screenshot_url = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(_in_check("payment_method", PaymentMethod), name="ck_payment_method"),
        CheckConstraint(_in_check("payment_status", PaymentStatus), name="ck_payment_status"),
        CheckConstraint("amount >= 0", name="ck_payment_amount"),
    )

    order = relationship("Order", back_populates="payment")

    def __repr__(self) -> str:
        return f"<Payment id={self.id} order_id={self.order_id} status={self.payment_status!r}>"


class ReturnRequest(Base):
    """
    A customer's request to return a delivered order.

    Approving a return never puts stock back on sale: returned goods may be
    damaged and are inspected outside this system.
    """

    __tablename__ = "return_requests"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=ReturnStatus.REQUESTED.value)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(_in_check("status", ReturnStatus), name="ck_return_status"),
    )

    order = relationship("Order")

    def __repr__(self) -> str:
        return f"<ReturnRequest id={self.id} order_id={self.order_id} status={self.status!r}>"

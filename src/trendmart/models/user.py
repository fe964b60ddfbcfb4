from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, Text
from sqlalchemy.orm import relationship

from trendmart.db import Base, BigIntPK


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"


class User(Base):
    """
    An admin or a storefront customer.

    Customers register through an emailed one-time code. Until the code is
    verified the row exists with otp_secret/otp_expires_at set and
    email_verified_at NULL, and a repeated sign-up simply refreshes the code.
    """

    __tablename__ = "users"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    email = Column(Text, nullable=False, unique=True)
    full_name = Column(Text, nullable=False)
    phone_number = Column(Text, nullable=True)
    password_hash = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default=UserRole.CUSTOMER.value)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    otp_secret = Column(Text, nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)
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
        CheckConstraint("role IN ('ADMIN','CUSTOMER')", name="ck_user_role"),
    )

    addresses = relationship(
        "Address", back_populates="user", order_by="Address.id.desc()"
    )

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

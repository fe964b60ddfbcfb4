from typing import Optional

from sqlalchemy import select, update

from trendmart.models.order import Address
from trendmart.models.user import User
from trendmart.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for users and their saved addresses"""

    @property
    def model(self):
        return User

    def get_by_email(self, email: str) -> Optional[User]:
        query = select(User).where(User.email == email)
        return self.session.execute(query).scalar_one_or_none()

    def get_user_address(self, user_id: int, address_id: int) -> Optional[Address]:
        """Address by id, only if it belongs to user_id"""
        query = select(Address).where(Address.id == address_id, Address.user_id == user_id)
        return self.session.execute(query).scalar_one_or_none()

    def latest_address(self, user_id: int) -> Optional[Address]:
        query = (
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(Address.id.desc())
            .limit(1)
        )
        return self.session.execute(query).scalar_one_or_none()

    def clear_default_addresses(self, user_id: int, except_id: Optional[int] = None) -> None:
        statement = (
            update(Address)
            .where(Address.user_id == user_id, Address.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        if except_id is not None:
            statement = statement.where(Address.id != except_id)
        self.session.execute(statement)

from abc import ABC, abstractmethod
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trendmart.core.exceptions import DatabaseError, NotFoundError
import logging

T = TypeVar('T')

logger = logging.getLogger(__name__)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository bound to one Session.

    Repositories never commit: the caller owns the transaction (see
    Database.transaction) so several repositories can take part in one
    all-or-nothing unit of work.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def model(self) -> Type[T]:
        """Mapped class the repository serves"""
        pass

    @property
    def resource_name(self) -> str:
        return self.model.__name__

    def get_by_id(self, entity_id: int) -> Optional[T]:
        return self.session.get(self.model, entity_id)

    def get_or_404(self, entity_id: int) -> T:
        entity = self.get_by_id(entity_id)
        if entity is None:
            raise NotFoundError(self.resource_name, str(entity_id))
        return entity

    def add(self, entity: T) -> T:
        self.session.add(entity)
        return entity

    def delete(self, entity: T) -> None:
        self.session.delete(entity)

    def flush(self, operation: str = "WRITE") -> None:
        """
        Push pending changes so generated ids and constraints are checked now.

        Raises:
            DatabaseError: on constraint violations or driver failures; the
            user-facing message never carries the SQL error text
        """
        try:
            self.session.flush()
        except IntegrityError as e:
            logger.error(f"Integrity constraint violation during {operation}: {str(e)}")
            raise DatabaseError(f"Data integrity violation: {str(e)}", operation)
        except SQLAlchemyError as e:
            logger.error(f"Flush failed during {operation}: {str(e)}")
            raise DatabaseError(f"Flush failed: {str(e)}", operation)

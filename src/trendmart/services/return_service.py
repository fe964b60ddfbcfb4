from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from trendmart.core.exceptions import (
    BaseAPIException, BusinessLogicError, ConflictError, DatabaseError, NotFoundError,
)
from trendmart.db import Database
from trendmart.models.order import OrderStatus, ReturnRequest, ReturnStatus
from trendmart.repositories.order_repository import OrderRepository, ReturnRepository
from trendmart.utils.date_utils import DateUtils
import logging

logger = logging.getLogger(__name__)


class ReturnService:
    """
    Return requests for delivered orders

    Approving a return never puts stock back: returned goods are inspected
    outside this system before they can be sold again.
    """

    def __init__(self, database: Database):
        self.db = database

    def request_return(self, user_id: int, order_id: int, reason: str) -> ReturnRequest:
        logger.info(f"Return requested by user {user_id} for order {order_id}")
        try:
            with self.db.transaction() as session:
                order = OrderRepository(session).get_order(order_id, user_id=user_id)
                if order is None:
                    raise NotFoundError("Order", str(order_id))
                if order.order_status != OrderStatus.DELIVERED.value:
                    raise BusinessLogicError(
                        "Only delivered orders can be returned", rule="return_requires_delivery"
                    )

                returns = ReturnRepository(session)
                if returns.get_open_return(order_id) is not None:
                    raise ConflictError("A return request is already open for this order", "order_id")

                return_request = returns.add(ReturnRequest(
                    order_id=order_id,
                    user_id=user_id,
                    reason=reason.strip(),
                    status=ReturnStatus.REQUESTED.value,
                ))
                returns.flush("REQUEST_RETURN")
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error requesting return for order {order_id}: {str(e)}")
            raise DatabaseError(f"Failed to request return: {str(e)}", "REQUEST_RETURN")

        logger.info(f"Return {return_request.id} opened for order {order_id}")
        return return_request

    def resolve_return(self, return_id: int, approve: bool) -> ReturnRequest:
        try:
            with self.db.transaction() as session:
                returns = ReturnRepository(session)
                return_request = returns.get_or_404(return_id)
                if return_request.status != ReturnStatus.REQUESTED.value:
                    raise BusinessLogicError(
                        f"Return {return_id} is already {return_request.status}",
                        rule="return_already_resolved",
                    )
                return_request.status = (ReturnStatus.APPROVED if approve else ReturnStatus.REJECTED).value
                return_request.resolved_at = DateUtils.now_utc()
                returns.flush("RESOLVE_RETURN")
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error resolving return {return_id}: {str(e)}")
            raise DatabaseError(f"Failed to resolve return: {str(e)}", "RESOLVE_RETURN")

        logger.info(f"Return {return_id} {return_request.status}")
        return return_request

    def list_returns(self, skip: int = 0, take: int = 10, status: Optional[ReturnStatus] = None,
                     user_id: Optional[int] = None) -> Tuple[List[ReturnRequest], int]:
        try:
            with self.db.session() as session:
                return ReturnRepository(session).list_returns(
                    skip, take, status.value if status else None, user_id
                )
        except SQLAlchemyError as e:
            logger.error(f"Database error listing returns: {str(e)}")
            raise DatabaseError(f"Failed to list returns: {str(e)}", "LIST_RETURNS")

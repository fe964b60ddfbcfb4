from flask import Blueprint, g, request

from trendmart.models.order import ReturnStatus
from trendmart.routes.schemas import ReturnListQuerySchema
from trendmart.routes.utils import (
    admin_required, get_service, is_admin, login_required, page_window, parse_body, success_response,
)
from trendmart.schemas.order_schemas import CreateReturnRequest, ResolveReturnRequest, ReturnRequestResponse
from trendmart.services.return_service import ReturnService

returns_bp = Blueprint("returns", __name__)

_list_schema = ReturnListQuerySchema()


@returns_bp.route("", methods=["POST"])
@login_required
def request_return():
    body = parse_body(CreateReturnRequest)
    return_request = get_service(ReturnService).request_return(g.user_id, body.order_id, body.reason)
    return success_response(
        ReturnRequestResponse.model_validate(return_request), "Return requested.", 201
    )


@returns_bp.route("", methods=["GET"])
@login_required
def list_returns():
    query = _list_schema.load(request.args)
    skip, take = page_window(query)
    status = ReturnStatus(query["status"]) if query["status"] else None
    user_id = None if is_admin() else g.user_id

    returns, total = get_service(ReturnService).list_returns(skip, take, status, user_id)
    return success_response({
        "returns": [ReturnRequestResponse.model_validate(r).model_dump(mode="json") for r in returns],
        "total_count": total,
    })


@returns_bp.route("/<int:return_id>/resolve", methods=["POST"])
@admin_required
def resolve_return(return_id: int):
    """Approve or reject a return. Stock is never restored here."""
    body = parse_body(ResolveReturnRequest)
    return_request = get_service(ReturnService).resolve_return(return_id, body.approve)
    return success_response(ReturnRequestResponse.model_validate(return_request))

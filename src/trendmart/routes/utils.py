from datetime import datetime, timezone
from functools import wraps
from typing import Optional, Tuple, Type, TypeVar

from flask import current_app, g, jsonify, request
from pydantic import BaseModel

from trendmart.core.config import Config
from trendmart.core.dependencies import DependencyContainer
from trendmart.core.exceptions import ForbiddenError, UnauthorizedError
from trendmart.models.user import UserRole
from trendmart.services.auth_service import AuthService

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

CONTAINER_KEY = "trendmart.container"


def success_response(data, message: Optional[str] = None, status: int = 200):
    """Consistent success response envelope."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    response = {
        "success": True,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if message:
        response["message"] = message
    return jsonify(response), status


def get_service(service_class: Type[T]) -> T:
    """Look a service up in this app's dependency container."""
    container: DependencyContainer = current_app.extensions[CONTAINER_KEY]
    return container.get(service_class)


def parse_body(model: Type[M]) -> M:
    """Validate the JSON body; pydantic errors become 400 via the app's handler."""
    return model.model_validate(request.get_json(silent=True) or {})


def _identity_from_header() -> dict:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Missing bearer token")
    return get_service(AuthService).decode_token(token.strip())


def login_required(view):
    """Resolve the bearer token into g.user_id / g.role or reply 401."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        identity = _identity_from_header()
        g.user_id = identity["user_id"]
        g.role = identity["role"]
        return view(*args, **kwargs)
    return wrapper


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapper(*args, **kwargs):
        if not is_admin():
            raise ForbiddenError("Admin access required")
        return view(*args, **kwargs)
    return wrapper


def is_admin() -> bool:
    return g.get("role") == UserRole.ADMIN.value


def page_window(query: dict) -> Tuple[int, int]:
    """(skip, take) from a loaded PageQuerySchema, capped at the configured page size"""
    api = get_service(Config).api
    take = query.get("take") or api.default_page_size
    return query["skip"], min(take, api.max_page_size)

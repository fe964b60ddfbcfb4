from typing import Any, Dict, List, Optional


class BaseAPIException(Exception):
    """
    Root of every error the API turns into a JSON response.

    Subclasses set status_code/error_code as class attributes. `message` is
    shown to the caller; `internal_message` is what gets logged and may carry
    storage details the caller must not see.
    """

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.internal_message = internal_message or message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            },
        }


# --------------------------------------------------------------------------- #
# 4xx: caller errors                                                            #
# --------------------------------------------------------------------------- #

class ValidationError(BaseAPIException):
    """Request body, query string or referenced lookup ids are invalid"""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, {"field_errors": field_errors} if field_errors else None)


class EmptyCartError(BaseAPIException):
    status_code = 400
    error_code = "EMPTY_CART"

    def __init__(self, message: str = "Cannot place an order with no items"):
        super().__init__(message)


class VariantNotFoundError(BaseAPIException):
    """Ordered variants are missing or archived, usually a stale storefront page"""

    status_code = 400
    error_code = "VARIANT_NOT_FOUND"

    def __init__(self, variant_ids: List[int]):
        ids = sorted(variant_ids)
        super().__init__(
            f"Product variant(s) not found: {', '.join(str(i) for i in ids)}",
            {"variant_ids": ids},
        )


class InsufficientStockError(BaseAPIException):
    status_code = 409
    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, variant_id: int, available: int, requested: int, sku: Optional[str] = None):
        super().__init__(
            f"Insufficient stock for variant {sku or variant_id}. "
            f"Available: {available}, requested: {requested}.",
            {"variant_id": variant_id, "available": available, "requested": requested},
        )
        self.variant_id = variant_id
        self.available = available
        self.requested = requested


class NotFoundError(BaseAPIException):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", resource_id: Optional[Any] = None):
        suffix = f" with ID: {resource_id}" if resource_id is not None else ""
        super().__init__(f"{resource} not found{suffix}")


class UnauthorizedError(BaseAPIException):
    """Missing, malformed or expired bearer token, or bad credentials"""

    status_code = 401
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(BaseAPIException):
    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Access forbidden"):
        super().__init__(message)


class ConflictError(BaseAPIException):
    status_code = 409
    error_code = "CONFLICT"

    def __init__(self, message: str = "Resource conflict", conflict_field: Optional[str] = None):
        super().__init__(message, {"conflict_field": conflict_field} if conflict_field else None)


class BusinessLogicError(BaseAPIException):
    """The request is well formed but the current state forbids it"""

    status_code = 422
    error_code = "BUSINESS_LOGIC_ERROR"

    def __init__(self, message: str, rule: Optional[str] = None):
        super().__init__(message, {"violated_rule": rule} if rule else None)


# --------------------------------------------------------------------------- #
# 5xx: our side; user-facing text never includes the cause                      #
# --------------------------------------------------------------------------- #

class ExternalServiceError(BaseAPIException):
    status_code = 503
    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service_name: str, message: str = "External service unavailable"):
        super().__init__(message, {"service": service_name})


class DatabaseError(BaseAPIException):
    error_code = "DATABASE_ERROR"

    def __init__(self, message: str = "Database operation failed", operation: Optional[str] = None):
        super().__init__(
            "An internal error occurred. Please try again later.",
            {"operation": operation} if operation else None,
            internal_message=message,
        )


class InternalServerError(BaseAPIException):
    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(
            "An internal server error occurred. Please try again later.",
            internal_message=message,
        )

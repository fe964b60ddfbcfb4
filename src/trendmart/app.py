import logging
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, jsonify
from marshmallow import ValidationError as MarshmallowValidationError
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from trendmart.core.config import Config, config as default_config
from trendmart.core.dependencies import DependencyContainer
from trendmart.core.exceptions import BaseAPIException, InternalServerError, ValidationError
from trendmart.db import Database
from trendmart.routes import auth_bp, cart_bp, orders_bp, products_bp, returns_bp
from trendmart.routes.utils import CONTAINER_KEY
from trendmart.services.auth_service import AuthService
from trendmart.services.cart_service import CartService
from trendmart.services.notification_service import EmailNotificationService
from trendmart.services.order_service import OrderService
from trendmart.services.product_service import ProductService
from trendmart.services.return_service import ReturnService

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def build_container(app_config: Config, database: Database, notifier) -> DependencyContainer:
    """Wire services to one Database handle and one notifier."""
    container = DependencyContainer()
    container.register_singleton(Config, app_config)
    container.register_singleton(Database, database)
    container.register_factory(
        OrderService, lambda: OrderService(database, notifier, app_config.orders)
    )
    container.register_factory(ProductService, lambda: ProductService(database))
    container.register_factory(
        CartService, lambda: CartService(database, app_config.orders.max_quantity_per_item)
    )
    container.register_factory(
        AuthService, lambda: AuthService(database, app_config.security, notifier)
    )
    container.register_factory(ReturnService, lambda: ReturnService(database))
    return container


def _field_errors_from_pydantic(exc: PydanticValidationError):
    return [
        {"field": ".".join(str(part) for part in err["loc"]) or "body", "message": err["msg"]}
        for err in exc.errors()
    ]


def _field_errors_from_marshmallow(exc: MarshmallowValidationError):
    errors = []
    for field, messages in exc.normalized_messages().items():
        if isinstance(messages, list):
            errors.extend({"field": field, "message": str(m)} for m in messages)
        else:
            errors.append({"field": field, "message": str(messages)})
    return errors


def create_app(
    app_config: Optional[Config] = None,
    database: Optional[Database] = None,
    notifier=None,
) -> Flask:
    """
    Application factory.

    The Database handle is created once here (unless a caller passes one in,
    as the tests do), shared by every request through the dependency
    container, and disposed when the process exits.
    """
    app_config = app_config or default_config
    app_config.validate()
    configure_logging(app_config.app.log_level)

    if database is None:
        database = Database(app_config.database)
    if notifier is None:
        notifier = EmailNotificationService(app_config.mail, app_config.orders)

    app = Flask(__name__)
    app.config["DEBUG"] = app_config.app.debug
    app.extensions[CONTAINER_KEY] = build_container(app_config, database, notifier)

    # ------------------------------------------------------------------ #
    # Blueprints, each domain registered under /api/v1/                    #
    # ------------------------------------------------------------------ #
    prefix = f"/api/{app_config.api.version}"
    app.register_blueprint(auth_bp,     url_prefix=f"{prefix}/auth")
    app.register_blueprint(products_bp, url_prefix=f"{prefix}/products")
    app.register_blueprint(cart_bp,     url_prefix=f"{prefix}/cart")
    app.register_blueprint(orders_bp,   url_prefix=f"{prefix}/orders")
    app.register_blueprint(returns_bp,  url_prefix=f"{prefix}/returns")

    # ------------------------------------------------------------------ #
    # Error handlers, consistent JSON error envelope                       #
    # ------------------------------------------------------------------ #
    @app.errorhandler(BaseAPIException)
    def api_error(e: BaseAPIException):
        if e.status_code >= 500:
            logger.error(f"{e.error_code}: {e.internal_message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(PydanticValidationError)
    def request_body_error(e: PydanticValidationError):
        error = ValidationError("Request validation failed", _field_errors_from_pydantic(e))
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(MarshmallowValidationError)
    def query_params_error(e: MarshmallowValidationError):
        error = ValidationError("Invalid query parameters", _field_errors_from_marshmallow(e))
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        return jsonify({
            "success": False,
            "error": {"code": e.name.upper().replace(" ", "_"), "message": e.description, "details": {}},
        }), e.code

    @app.errorhandler(Exception)
    def unexpected_error(e: Exception):
        logger.exception(f"Unhandled error: {e}")
        error = InternalServerError(str(e))
        return jsonify(error.to_dict()), error.status_code

    # ------------------------------------------------------------------ #
    # Health check                                                         #
    # ------------------------------------------------------------------ #
    @app.get("/health")
    def health():
        """Liveness + readiness probe. Returns 503 if DB is unreachable."""
        problem = database.ping()
        if problem is None:
            return jsonify({
                "status": "ok",
                "database": "reachable",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }), 200
        return jsonify({"status": "error", "database": "unreachable"}), 503

    return app


if __name__ == "__main__":
    from trendmart.wsgi import app as application

    application.run(
        host=default_config.app.host,
        port=default_config.app.port,
        debug=default_config.app.debug,
    )

import pytest

from trendmart.app import create_app
from trendmart.core.config import Config, DatabaseConfig, MailConfig, OrderConfig
from trendmart.db import Database
from trendmart.models import Color, Size, User, UserRole
from trendmart.schemas.product_schemas import CreateProductRequest
from trendmart.services.auth_service import AuthService
from trendmart.services.cart_service import CartService
from trendmart.services.order_service import OrderService
from trendmart.services.product_service import ProductService
from trendmart.services.return_service import ReturnService
from trendmart.utils.date_utils import DateUtils

from helpers import PASSWORD, RecordingNotifier, variant_input


@pytest.fixture
def app_config():
    cfg = Config()
    cfg.environment = "test"
    cfg.database = DatabaseConfig(url="sqlite://")
    cfg.mail = MailConfig()
    cfg.orders = OrderConfig()
    cfg.security.jwt_secret_key = "test-secret"
    cfg.security.password_hash_rounds = 4
    cfg.app.log_level = "WARNING"
    return cfg


@pytest.fixture
def database(app_config):
    db = Database(app_config.database)
    db.create_all()
    yield db
    db.drop_all()
    db.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def catalog(database):
    """Sizes M/L/XL and colors Black/White; returns name -> id maps."""
    with database.transaction() as session:
        sizes = [Size(value=v) for v in ("M", "L", "XL")]
        colors = [Color(name="Black", hex_code="#000000"), Color(name="White", hex_code="#FFFFFF")]
        session.add_all(sizes + colors)
        session.flush()
        return {
            "size": {s.value: s.id for s in sizes},
            "color": {c.name: c.id for c in colors},
        }


@pytest.fixture
def auth_service(database, app_config, notifier):
    return AuthService(database, app_config.security, notifier)


def _make_user(database, auth_service, email, role, full_name):
    with database.transaction() as session:
        user = User(
            email=email,
            full_name=full_name,
            phone_number="0912345678",
            password_hash=auth_service.hash_password(PASSWORD),
            role=role.value,
            email_verified_at=DateUtils.now_utc(),
        )
        session.add(user)
        session.flush()
        return user.id


@pytest.fixture
def customer_id(database, auth_service):
    return _make_user(database, auth_service, "hla@example.com", UserRole.CUSTOMER, "Hla Hla")


@pytest.fixture
def other_customer_id(database, auth_service):
    return _make_user(database, auth_service, "zaw@example.com", UserRole.CUSTOMER, "Zaw Zaw")


@pytest.fixture
def admin_id(database, auth_service):
    return _make_user(database, auth_service, "admin@example.com", UserRole.ADMIN, "Admin One")


@pytest.fixture
def product_service(database):
    return ProductService(database)


@pytest.fixture
def order_service(database, notifier):
    return OrderService(database, notifier, OrderConfig())


@pytest.fixture
def cart_service(database):
    return CartService(database)


@pytest.fixture
def return_service(database):
    return ReturnService(database)


@pytest.fixture
def hoodie(product_service, catalog):
    """Product with (M, Black) 4999 x2 and (L, Black) 5999 x10."""
    return product_service.create_product(CreateProductRequest(
        name="Essential Urban Hoodie",
        description="Cotton blend",
        variants=[
            variant_input(catalog, "M", "Black", price=4999, stock=2, sku="HOODIE-M-BLK"),
            variant_input(catalog, "L", "Black", price=5999, stock=10, sku="HOODIE-L-BLK"),
        ],
    ))


@pytest.fixture
def client(app_config, database, notifier):
    app = create_app(app_config, database=database, notifier=notifier)
    app.config["TESTING"] = True
    return app.test_client()

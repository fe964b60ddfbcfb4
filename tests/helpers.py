from sqlalchemy import func, select

from trendmart.models import Address, ProductVariant
from trendmart.schemas.order_schemas import PlaceOrderRequest

PASSWORD = "secret123"


class RecordingNotifier:
    """Stands in for the SMTP notifier and remembers what would have been sent."""

    def __init__(self):
        self.order_notifications = []
        self.otps = {}
        self.fail_orders = False
        self.fail_otps = False

    def send_order_notification(self, order_id, order_total, customer_name):
        if self.fail_orders:
            raise ConnectionError("SMTP server unreachable")
        self.order_notifications.append(
            {"order_id": order_id, "order_total": order_total, "customer_name": customer_name}
        )

    def send_otp(self, email, otp, ttl_minutes=10):
        if self.fail_otps:
            raise ConnectionError("SMTP server unreachable")
        self.otps[email] = otp


def variant_input(catalog, size, color, price=4999, stock=10, sku=None, images=None):
    return {
        "size_id": catalog["size"][size],
        "color_id": catalog["color"][color],
        "sku": sku,
        "price": price,
        "stock": stock,
        "images": images or [],
    }


def variant_id(product, size_value, color_name):
    for variant in product.variants:
        if variant.size.value == size_value and variant.color.name == color_name:
            return variant.id
    raise LookupError(f"no variant {size_value}/{color_name}")


def shipping_address(**overrides):
    address = {
        "full_name": "Hla Hla",
        "phone_number": "0912345678",
        "address_line1": "12 Bogyoke Road",
        "city": "Yangon",
        "postal_code": "11181",
    }
    address.update(overrides)
    return address


def order_request(lines, **overrides):
    payload = {
        "items": [{"product_variant_id": vid, "quantity": qty} for vid, qty in lines],
        "shipping_address": shipping_address(),
        "payment_method": "MANUAL_UPLOAD",
        "payment_screenshot_url": "https://cdn.example.com/receipts/1.png",
    }
    payload.update(overrides)
    return PlaceOrderRequest.model_validate(payload)


def stock_of(database, vid):
    with database.session() as session:
        return session.execute(select(ProductVariant.stock).where(ProductVariant.id == vid)).scalar_one()


def count_rows(database, model):
    with database.session() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


def addresses_of(database, user_id):
    with database.session() as session:
        return list(session.execute(
            select(Address).where(Address.user_id == user_id).order_by(Address.id)
        ).scalars())

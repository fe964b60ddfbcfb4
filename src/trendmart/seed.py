"""
Seed script -- populates the database with realistic development data.

Run with:
    python -m trendmart.seed

Lookup tables and the admin account are only inserted when missing, and the
sample products are skipped once any product exists, so the script can be
re-run safely. Drop the tables for a completely fresh state:
    python -m trendmart.seed --reset
"""

import sys

from sqlalchemy import func, select

from trendmart.core.config import Config, config as default_config
from trendmart.db import Database
from trendmart.models import Category, Color, Product, Size, User, UserRole
from trendmart.schemas.product_schemas import CreateProductRequest
from trendmart.services.auth_service import AuthService
from trendmart.services.product_service import ProductService
from trendmart.utils.date_utils import DateUtils

ADMINS = [
    {"full_name": "Admin One", "phone_number": "0912345678",
     "email": "admin1@trendmart.local", "password": "password1"},
]

COLORS = [
    ("Black", "#000000"), ("White", "#FFFFFF"), ("Red", "#FF0000"),
    ("Blue", "#0000FF"), ("Green", "#008000"), ("Yellow", "#FFFF00"),
    ("Gray", "#808080"), ("Pink", "#FFC0CB"), ("Navy", "#000080"),
    ("Maroon", "#800000"),
]

SIZES = [
    "US-6", "US-7", "US-8", "US-9", "US-10",
    "S", "M", "L", "XL", "XXL",
    "28", "30", "32", "34", "36",
    "One Size",
]

MAIN_CATEGORIES = ["Women", "Men", "Kids", "Unisex"]
SUB_CATEGORIES = ["Shoes", "Hoodie", "Pant", "Shirt", "Accessories", "Others"]

HOODIE_IMAGE = "https://cdn.trendmart.local/images/hoodie.jpg"
HOODIES = [
    ("Essential Urban Hoodie", "Black", 4999),
    ("Premium Fleece Hoodie", "Gray", 5999),
    ("Street Style Pullover", "Navy", 5499),
    ("Athletic Tech Hoodie", "Black", 6500),
    ("Minimalist Comfort Hoodie", "Maroon", 4999),
    ("Classic Logo Hoodie", "Blue", 5250),
]


def seed(database: Database, app_config: Config = default_config) -> None:
    auth = AuthService(database, app_config.security, notifier=None)

    with database.transaction() as session:
        # ------------------------------------------------------------------ #
        # Admins                                                               #
        # ------------------------------------------------------------------ #
        for admin in ADMINS:
            exists = session.execute(select(User).where(User.email == admin["email"])).scalar_one_or_none()
            if exists is None:
                session.add(User(
                    email=admin["email"],
                    full_name=admin["full_name"],
                    phone_number=admin["phone_number"],
                    password_hash=auth.hash_password(admin["password"]),
                    role=UserRole.ADMIN.value,
                    email_verified_at=DateUtils.now_utc(),
                ))
        print("  [+] Admin users seeded")

        # ------------------------------------------------------------------ #
        # Colors and sizes                                                     #
        # ------------------------------------------------------------------ #
        known_colors = set(session.execute(select(Color.name)).scalars())
        session.add_all(Color(name=name, hex_code=hex_code)
                        for name, hex_code in COLORS if name not in known_colors)
        known_sizes = set(session.execute(select(Size.value)).scalars())
        session.add_all(Size(value=value) for value in SIZES if value not in known_sizes)
        print("  [+] Colors and sizes seeded")

        # ------------------------------------------------------------------ #
        # Categories (two levels)                                              #
        # ------------------------------------------------------------------ #
        known_categories = set(session.execute(select(Category.name)).scalars())
        for main_name in MAIN_CATEGORIES:
            if main_name in known_categories:
                continue
            parent = Category(name=main_name)
            parent.children = [Category(name=f"{main_name} {sub}") for sub in SUB_CATEGORIES]
            session.add(parent)
        print("  [+] Categories seeded")

    # ------------------------------------------------------------------ #
    # Products, through the same path the admin API uses                   #
    # ------------------------------------------------------------------ #
    with database.session() as session:
        if session.execute(select(func.count()).select_from(Product)).scalar_one() > 0:
            print("  [=] Products already present, skipping")
            return
        size_ids = dict(session.execute(select(Size.value, Size.id)).all())
        color_ids = dict(session.execute(select(Color.name, Color.id)).all())
        hoodie_category = session.execute(
            select(Category.id).where(Category.name == "Men Hoodie")
        ).scalar_one()

    products = ProductService(database)
    for name, color, price in HOODIES:
        products.create_product(CreateProductRequest(
            name=name,
            description=f"{name} in {color.lower()}, cotton blend.",
            category_ids=[hoodie_category],
            variants=[
                {
                    "size_id": size_ids[size],
                    "color_id": color_ids[color],
                    "price": price,
                    "stock": 20,
                    "images": [{"image_url": HOODIE_IMAGE, "alt_text": name, "is_primary": True}],
                }
                for size in ("M", "L", "XL")
            ],
        ))
    print(f"  [+] {len(HOODIES)} products seeded")


if __name__ == "__main__":
    database = Database(default_config.database)
    try:
        if "--reset" in sys.argv:
            database.drop_all()
        database.create_all()
        print("Seeding database...")
        seed(database)
        print("Done.")
    finally:
        database.dispose()

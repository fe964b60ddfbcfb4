"""TrendMart back office: catalog, carts, orders, payments and returns."""

__version__ = "0.1.0"

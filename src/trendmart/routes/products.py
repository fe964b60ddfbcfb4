import logging

from flask import Blueprint, g, request

from trendmart.routes.schemas import PageQuerySchema, ProductQuerySchema
from trendmart.routes.utils import admin_required, get_service, page_window, parse_body, success_response
from trendmart.schemas.product_schemas import (
    CreateProductRequest, ProductListResponse, ProductResponse, UpdateProductRequest,
)
from trendmart.services.product_service import ProductService

logger = logging.getLogger(__name__)

products_bp = Blueprint("products", __name__)

_page_schema = PageQuerySchema()
_product_query_schema = ProductQuerySchema()


@products_bp.route("", methods=["GET"])
def list_products():
    """Storefront listing: products with at least one non-archived variant, newest first."""
    skip, take = page_window(_page_schema.load(request.args))
    products, total = get_service(ProductService).list_products(skip, take)
    return success_response(ProductListResponse(
        products=[ProductResponse.from_product(p) for p in products],
        total_count=total,
    ))


@products_bp.route("/<int:product_id>", methods=["GET"])
def get_product(product_id: int):
    """?include_archived=true returns archived variants too; admins only."""
    if _product_query_schema.load(request.args)["include_archived"]:
        return _get_product_with_archived(product_id)
    product = get_service(ProductService).get_product(product_id)
    return success_response(ProductResponse.from_product(product))


@admin_required
def _get_product_with_archived(product_id: int):
    product = get_service(ProductService).get_product(product_id, include_archived=True)
    return success_response(ProductResponse.from_product(product, include_archived=True))


@products_bp.route("", methods=["POST"])
@admin_required
def create_product():
    body = parse_body(CreateProductRequest)
    product = get_service(ProductService).create_product(body)
    logger.info(f"Admin {g.user_id} created product {product.id}")
    return success_response(
        ProductResponse.from_product(product), "Product created.", 201
    )


@products_bp.route("/<int:product_id>", methods=["PUT"])
@admin_required
def update_product(product_id: int):
    """
    Replace the product's variant set.

    Variants missing from the body are archived, not deleted, so past orders
    keep resolving them. The response lists only the current variants.
    """
    body = parse_body(UpdateProductRequest)
    product = get_service(ProductService).update_product(product_id, body)
    logger.info(f"Admin {g.user_id} reconciled product {product_id}")
    return success_response(ProductResponse.from_product(product))

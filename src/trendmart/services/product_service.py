from dataclasses import dataclass
from typing import List, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from trendmart.core.exceptions import (
    BaseAPIException, ConflictError, DatabaseError, NotFoundError, ValidationError,
)
from trendmart.db import Database
from trendmart.models.product import Product, ProductImage, ProductVariant
from trendmart.repositories.product_repository import ProductRepository
from trendmart.schemas.common_schemas import Existing
from trendmart.schemas.product_schemas import (
    CreateProductRequest, ProductImageInput, ProductVariantInput, UpdateProductRequest,
)
from trendmart.utils.validators import ValidationUtils
import logging

logger = logging.getLogger(__name__)


@dataclass
class ReconcileSummary:
    created: int = 0
    updated: int = 0
    archived: int = 0
    images_deleted: int = 0


class ProductService:
    """
    Product catalog business logic

    Responsibilities:
    - Serve products with their purchasable (non-archived) variants
    - Create products and converge their variant set on update
    - Archive variants instead of deleting them so order history survives
    """

    def __init__(self, database: Database):
        self.db = database

    def get_product(self, product_id: int, include_archived: bool = False) -> Product:
        """
        Get a product with its variants.

        Business Rules:
        - Customers only see products that still have an active variant
        - Admins (include_archived) see every product and variant
        """
        try:
            with self.db.session() as session:
                product = ProductRepository(session).get_product(product_id)
        except SQLAlchemyError as e:
            logger.error(f"Database error fetching product {product_id}: {str(e)}")
            raise DatabaseError(f"Failed to fetch product: {str(e)}", "GET_PRODUCT")

        if product is None:
            raise NotFoundError("Product", str(product_id))
        if not include_archived and not product.active_variants:
            raise NotFoundError("Product", str(product_id))
        return product

    def list_products(self, skip: int = 0, take: int = 10, include_archived: bool = False) -> Tuple[List[Product], int]:
        try:
            with self.db.session() as session:
                return ProductRepository(session).list_products(
                    skip, take, active_only=not include_archived
                )
        except SQLAlchemyError as e:
            logger.error(f"Database error listing products: {str(e)}")
            raise DatabaseError(f"Failed to list products: {str(e)}", "LIST_PRODUCTS")

    def create_product(self, request: CreateProductRequest) -> Product:
        logger.info(f"Creating product {request.name!r} with {len(request.variants)} variant(s)")
        try:
            with self.db.transaction() as session:
                products = ProductRepository(session)
                categories = self._resolve_categories(products, request.category_ids)
                self._check_lookups(products, request.variants)

                product = Product(
                    name=request.name.strip(),
                    description=request.description,
                    categories=categories,
                )
                products.add(product)
                products.flush("CREATE_PRODUCT")

                summary = self._reconcile_variants(products, product, request.variants)
                product_id = product.id
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error creating product: {str(e)}")
            raise DatabaseError(f"Failed to create product: {str(e)}", "CREATE_PRODUCT")

        logger.info(f"Created product {product_id} with {summary.created} variant(s)")
        return self.get_product(product_id, include_archived=True)

    def update_product(self, product_id: int, request: UpdateProductRequest) -> Product:
        """
        Converge a product's variants to the requested set.

        Business Rules:
        - Variants are matched on (size_id, color_id)
        - Missing variants are archived, never deleted
        - Re-sent archived variants are brought back
        - Images are matched by id, then by URL; leftovers are deleted
        - The whole update lands or none of it does
        """
        logger.info(f"Reconciling product {product_id} to {len(request.variants)} variant(s)")
        try:
            with self.db.transaction() as session:
                products = ProductRepository(session)
                product = products.get_by_id(product_id)
                if product is None:
                    raise NotFoundError("Product", str(product_id))

                if request.name is not None:
                    product.name = request.name.strip()
                if request.description is not None:
                    product.description = request.description
                if request.category_ids is not None:
                    product.categories = self._resolve_categories(products, request.category_ids)

                self._check_lookups(products, request.variants)
                summary = self._reconcile_variants(products, product, request.variants)
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error reconciling product {product_id}: {str(e)}")
            raise DatabaseError(f"Failed to update product: {str(e)}", "UPDATE_PRODUCT")

        logger.info(
            f"Product {product_id} reconciled: {summary.archived} archived, "
            f"{summary.updated} updated, {summary.created} created, "
            f"{summary.images_deleted} image(s) deleted"
        )
        return self.get_product(product_id, include_archived=True)

    def _reconcile_variants(
        self,
        products: ProductRepository,
        product: Product,
        desired: Sequence[ProductVariantInput],
    ) -> ReconcileSummary:
        summary = ReconcileSummary()
        current = {variant.key: variant for variant in products.get_variants_for_product(product.id)}
        desired_keys = {wanted.key for wanted in desired}

        self._check_sku_owners(products, current, desired)

        for key, variant in current.items():
            if key not in desired_keys and not variant.is_archived:
                variant.is_archived = True
                summary.archived += 1

        for wanted in desired:
            variant = current.get(wanted.key)
            if variant is None:
                variant = ProductVariant(
                    product_id=product.id,
                    size_id=wanted.size_id,
                    color_id=wanted.color_id,
                    sku=wanted.sku or ValidationUtils.generate_sku(),
                )
                products.add(variant)
                summary.created += 1
            else:
                if wanted.sku:
                    variant.sku = wanted.sku
                summary.updated += 1

            variant.is_archived = False
            variant.price = wanted.price
            variant.stock = wanted.stock
            variant.discount_percentage = wanted.discount_percentage
            summary.images_deleted += self._reconcile_images(variant, wanted.images)

        products.flush("RECONCILE_VARIANTS")
        return summary

    def _reconcile_images(self, variant: ProductVariant, desired: Sequence[ProductImageInput]) -> int:
        """Converge variant.images to desired; returns the number of images deleted"""
        current_by_id = {image.id: image for image in variant.images if image.id is not None}
        kept = []
        claimed = set()

        # Explicit ids first, so a URL match below cannot steal an image the
        # caller addressed by id.
        assignments = []
        for wanted in desired:
            ref = wanted.ref
            if isinstance(ref, Existing):
                image = current_by_id.get(ref.id)
                if image is None:
                    raise ValidationError(
                        f"Image {ref.id} does not belong to variant {variant.sku}",
                        field_errors=[{"field": "images.id", "message": "unknown image for this variant"}],
                    )
                claimed.add(image.id)
                assignments.append((wanted, image))
            else:
                assignments.append((wanted, None))

        for wanted, image in assignments:
            if image is None:
                image = next(
                    (img for img in variant.images
                     if img.id is not None and img.id not in claimed and img.image_url == wanted.image_url),
                    None,
                )
                if image is not None:
                    claimed.add(image.id)
                else:
                    image = ProductImage()
                    variant.images.append(image)
            image.image_url = wanted.image_url
            image.alt_text = wanted.alt_text
            image.is_primary = wanted.is_primary
            kept.append(image)

        stale = [img for img in variant.images if not any(img is k for k in kept)]
        for image in stale:
            variant.images.remove(image)
        return len(stale)

    def _check_lookups(self, products: ProductRepository, desired: Sequence[ProductVariantInput]) -> None:
        missing_sizes = products.missing_size_ids(wanted.size_id for wanted in desired)
        missing_colors = products.missing_color_ids(wanted.color_id for wanted in desired)
        field_errors = []
        if missing_sizes:
            field_errors.append({"field": "size_id", "message": f"unknown size id(s): {sorted(missing_sizes)}"})
        if missing_colors:
            field_errors.append({"field": "color_id", "message": f"unknown color id(s): {sorted(missing_colors)}"})
        if field_errors:
            logger.warning(f"Rejected variant set with unknown lookups: {field_errors}")
            raise ValidationError("Unknown size or color", field_errors=field_errors)

    def _check_sku_owners(self, products: ProductRepository, current: dict,
                          desired: Sequence[ProductVariantInput]) -> None:
        """A requested SKU may only belong to the variant at the same key"""
        owners = products.find_variants_by_sku(wanted.sku for wanted in desired if wanted.sku)
        for wanted in desired:
            if not wanted.sku or wanted.sku not in owners:
                continue
            owner = owners[wanted.sku]
            if owner is not current.get(wanted.key):
                raise ConflictError(f"SKU {wanted.sku} is already used by another variant", "sku")

    def _resolve_categories(self, products: ProductRepository, category_ids: Sequence[int]):
        categories = products.get_categories(category_ids)
        missing = set(category_ids) - {category.id for category in categories}
        if missing:
            raise ValidationError(
                "Unknown category",
                field_errors=[{"field": "category_ids", "message": f"unknown id(s): {sorted(missing)}"}],
            )
        return categories

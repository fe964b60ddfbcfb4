from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from trendmart.schemas.common_schemas import ORMModel, RowRef, ref_from_id
from trendmart.utils.validators import ValidationUtils

MAX_PRICE_CENTS = 99999999  # 999,999.99


class ProductImageInput(BaseModel):
    """Desired image of a variant; id present means 'keep/update that image'"""
    id: Optional[int] = Field(default=None, ge=1, description="Existing image id")
    image_url: str = Field(min_length=1, max_length=2048)
    alt_text: Optional[str] = Field(default=None, max_length=500)
    is_primary: bool = False

    @field_validator('image_url')
    @classmethod
    def validate_image_url(cls, v):
        if not ValidationUtils.validate_url(v):
            raise ValueError('image_url must be an http(s) URL')
        return v

    @property
    def ref(self) -> RowRef:
        return ref_from_id(self.id)


class ProductVariantInput(BaseModel):
    """Desired state of one (size, color) variant"""
    size_id: int = Field(ge=1)
    color_id: int = Field(ge=1)
    sku: Optional[str] = Field(default=None, description="Blank lets the system assign one")
    price: int = Field(ge=0, le=MAX_PRICE_CENTS, description="Price in cents")
    stock: int = Field(ge=0)
    discount_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    images: List[ProductImageInput] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "size_id": 2,
                "color_id": 1,
                "sku": "HOODIE-M-BLK",
                "price": 4999,
                "stock": 20,
                "discount_percentage": None,
                "images": [
                    {"image_url": "https://cdn.example.com/hoodie-black.jpg", "is_primary": True}
                ]
            }
        }
    )

    @field_validator('sku')
    @classmethod
    def normalize_sku(cls, v):
        return ValidationUtils.normalize_sku(v)

    @model_validator(mode='after')
    def check_images(self):
        if sum(1 for img in self.images if img.is_primary) > 1:
            raise ValueError('a variant can have at most one primary image')
        image_ids = [img.id for img in self.images if img.id is not None]
        if len(image_ids) != len(set(image_ids)):
            raise ValueError('image ids must not repeat within a variant')
        return self

    @property
    def key(self) -> Tuple[int, int]:
        return (self.size_id, self.color_id)


class _VariantSetRequest(BaseModel):
    variants: List[ProductVariantInput] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_unique_keys(self):
        keys = [v.key for v in self.variants]
        if len(keys) != len(set(keys)):
            raise ValueError('each (size_id, color_id) pair may appear only once')
        skus = [v.sku for v in self.variants if v.sku]
        if len(skus) != len(set(skus)):
            raise ValueError('variant SKUs must be unique')
        return self


class CreateProductRequest(_VariantSetRequest):
    name: str = Field(min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=5000)
    category_ids: List[int] = Field(default_factory=list)
    variants: List[ProductVariantInput] = Field(min_length=1)


class UpdateProductRequest(_VariantSetRequest):
    """
    Full desired variant set of a product.

    Variants left out are archived; name/description/categories are only
    touched when given.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=5000)
    category_ids: Optional[List[int]] = None


class SizeResponse(ORMModel):
    id: int
    value: str


class ColorResponse(ORMModel):
    id: int
    name: str
    hex_code: Optional[str] = None


class CategoryResponse(ORMModel):
    id: int
    name: str
    parent_id: Optional[int] = None


class ProductImageResponse(ORMModel):
    id: int
    image_url: str
    alt_text: Optional[str] = None
    is_primary: bool


class ProductVariantResponse(ORMModel):
    id: int
    sku: str
    price: int = Field(description="Price in cents")
    stock: int
    discount_percentage: Optional[float] = None
    is_archived: bool
    size: SizeResponse
    color: ColorResponse
    images: List[ProductImageResponse] = Field(default_factory=list)


class ProductResponse(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    categories: List[CategoryResponse] = Field(default_factory=list)
    variants: List[ProductVariantResponse] = Field(default_factory=list)

    @classmethod
    def from_product(cls, product, include_archived: bool = False) -> "ProductResponse":
        response = cls.model_validate(product)
        if not include_archived:
            response.variants = [v for v in response.variants if not v.is_archived]
        return response


class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    total_count: int

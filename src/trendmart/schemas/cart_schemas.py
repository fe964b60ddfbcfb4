from typing import List

from pydantic import BaseModel, Field

from trendmart.schemas.common_schemas import ORMModel
from trendmart.schemas.order_schemas import VariantSummaryResponse


class AddToCartRequest(BaseModel):
    """Request to add item to cart"""
    product_variant_id: int = Field(ge=1, description="Product variant to add")
    quantity: int = Field(ge=1, le=99, description="Quantity to add (1-99)")


class UpdateCartItemRequest(BaseModel):
    """Request to set a cart item's quantity; 0 removes the item"""
    quantity: int = Field(ge=0, le=99, description="New quantity (0 removes item)")


class CartItemResponse(ORMModel):
    id: int
    quantity: int
    subtotal: int
    product_variant: VariantSummaryResponse


class CartResponse(BaseModel):
    items: List[CartItemResponse]
    total: int = Field(description="Sum of line subtotals in cents")
    total_quantity: int

    @classmethod
    def from_items(cls, items) -> "CartResponse":
        lines = [CartItemResponse.model_validate(item) for item in items]
        return cls(
            items=lines,
            total=sum(line.subtotal for line in lines),
            total_quantity=sum(line.quantity for line in lines),
        )

from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from trendmart.models.order import OrderStatus, PaymentMethod
from trendmart.schemas.common_schemas import ORMModel, RowRef, ref_from_id
from trendmart.schemas.product_schemas import ColorResponse, ProductImageResponse, SizeResponse
from trendmart.utils.validators import ValidationUtils


class OrderLineInput(BaseModel):
    product_variant_id: int = Field(ge=1)
    quantity: int = Field(ge=1, le=999)


class ShippingAddressInput(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    phone_number: str = Field(min_length=1, max_length=32)
    address_line1: str = Field(min_length=1, max_length=500)
    address_line2: Optional[str] = Field(default=None, max_length=500)
    city: str = Field(min_length=1, max_length=200)
    state: Optional[str] = Field(default=None, max_length=200)
    postal_code: str = Field(min_length=1, max_length=20)

    @field_validator('full_name', 'address_line1', 'city')
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError('must not be blank')
        return v.strip()

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, v):
        if not ValidationUtils.validate_phone_number(v):
            raise ValueError('invalid phone number')
        return v.strip()

    @field_validator('postal_code')
    @classmethod
    def validate_postal_code(cls, v):
        if not ValidationUtils.validate_postal_code(v):
            raise ValueError('invalid postal code')
        return v.strip()


class PlaceOrderRequest(BaseModel):
    """
    Checkout payload.

    The shipping address is either a saved one (shipping_address_id) or a new
    one (shipping_address) -- exactly one of the two.
    """
    items: List[OrderLineInput] = Field(default_factory=list)
    shipping_address_id: Optional[int] = Field(default=None, ge=1)
    shipping_address: Optional[ShippingAddressInput] = None
    payment_method: PaymentMethod
    payment_screenshot_url: Optional[str] = Field(default=None, max_length=2048)
    save_address: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "items": [{"product_variant_id": 12, "quantity": 2}],
                "shipping_address": {
                    "full_name": "Hla Hla",
                    "phone_number": "0912345678",
                    "address_line1": "12 Bogyoke Road",
                    "city": "Yangon",
                    "postal_code": "11181"
                },
                "payment_method": "MANUAL_UPLOAD",
                "payment_screenshot_url": "https://cdn.example.com/receipts/abc.png",
                "save_address": True
            }
        }
    )

    @model_validator(mode='after')
    def check_address_and_payment(self):
        if (self.shipping_address_id is None) == (self.shipping_address is None):
            raise ValueError('provide exactly one of shipping_address_id or shipping_address')
        if self.payment_method == PaymentMethod.MANUAL_UPLOAD:
            if not self.payment_screenshot_url:
                raise ValueError('payment_screenshot_url is required for MANUAL_UPLOAD')
            if not ValidationUtils.validate_url(self.payment_screenshot_url):
                raise ValueError('payment_screenshot_url must be an http(s) URL')
        return self

    @property
    def address_ref(self) -> RowRef:
        return ref_from_id(self.shipping_address_id)

    def quantities_by_variant(self) -> Dict[int, int]:
        """Line quantities with repeated variants merged, in first-seen order"""
        merged: Dict[int, int] = OrderedDict()
        for line in self.items:
            merged[line.product_variant_id] = merged.get(line.product_variant_id, 0) + line.quantity
        return merged


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus


class VerifyPaymentRequest(BaseModel):
    approved: bool


class CreateReturnRequest(BaseModel):
    order_id: int = Field(ge=1)
    reason: str = Field(min_length=3, max_length=2000)


class ResolveReturnRequest(BaseModel):
    approve: bool


class CustomerSummaryResponse(ORMModel):
    id: int
    full_name: str
    email: str


class AddressResponse(ORMModel):
    id: int
    full_name: str
    phone_number: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: str
    is_default: bool


class ProductBriefResponse(ORMModel):
    id: int
    name: str


class VariantSummaryResponse(ORMModel):
    """Variant as seen from an order line or cart line; may be archived"""
    id: int
    sku: str
    price: int
    is_archived: bool
    size: SizeResponse
    color: ColorResponse
    product: ProductBriefResponse
    images: List[ProductImageResponse] = Field(default_factory=list)


class OrderItemResponse(ORMModel):
    id: int
    quantity: int
    price_at_purchase: int = Field(description="Unit price in cents captured at purchase")
    subtotal: int
    product_variant: VariantSummaryResponse


class PaymentResponse(ORMModel):
    id: int
    amount: int
    payment_method: PaymentMethod
    payment_status: str
    stripe_payment_intent_id: Optional[str] = None
    manual_payment_screenshot_url: Optional[str] = None
    created_at: datetime


class OrderResponse(ORMModel):
    id: int
    order_total: int = Field(description="Total in cents")
    order_status: OrderStatus
    created_at: datetime
    updated_at: datetime
    user: CustomerSummaryResponse
    shipping_address: AddressResponse
    items: List[OrderItemResponse]
    payment: Optional[PaymentResponse] = None


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total_count: int


class ReturnRequestResponse(ORMModel):
    id: int
    order_id: int
    user_id: int
    reason: str
    status: str
    created_at: datetime
    resolved_at: Optional[datetime] = None

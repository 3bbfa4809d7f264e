# cart_engine/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ColorIn(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=30)
    hex: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class ItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: str = Field(..., min_length=1, description="Catalog product id")
    quantity: int = Field(..., ge=1, le=10, description="Quantity between 1 and 10")
    size: str = Field(..., min_length=1, description="Size option of the product")
    color: ColorIn | None = None

    @field_validator("size")
    @classmethod
    def size_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Size is required")
        return v


class QuantityIn(BaseModel):
    """Schema for updating a line; 0 removes the line."""

    quantity: int = Field(..., ge=0, le=10, description="Quantity between 0 and 10")


class DiscountIn(BaseModel):
    code: str = Field(..., description="Discount code (2-20 characters)")

    @field_validator("code")
    @classmethod
    def code_length(cls, v: str) -> str:
        v = v.strip()
        if not 2 <= len(v) <= 20:
            raise ValueError("Discount code must be between 2 and 20 characters")
        return v


class ProductSummaryOut(BaseModel):
    id: str
    name: str
    price: Decimal
    images: List[str] = []
    in_stock: bool
    total_quantity: int


class ColorOut(BaseModel):
    name: str | None = None
    hex: str | None = None


class CartLineOut(BaseModel):
    id: str
    product_id: str
    quantity: int
    size: str
    color: ColorOut | None = None
    unit_price: Decimal
    line_total: Decimal
    added_at: datetime
    product: ProductSummaryOut | None = None


class DiscountOut(BaseModel):
    code: str
    amount: Decimal
    percentage: Decimal


class ShippingOut(BaseModel):
    cost: Decimal
    free_threshold: Decimal


class CartOut(BaseModel):
    """Priced cart with each line joined to its current catalog entry."""

    id: str
    owner_id: str
    items: List[CartLineOut]
    total_items: int
    discount: DiscountOut | None = None
    tax_rate: Decimal
    shipping: ShippingOut
    currency: str
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    shipping_cost: Decimal
    is_free_shipping: bool
    total: Decimal
    active: bool
    expires_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ErrorOut(BaseModel):
    success: bool = False
    kind: str
    message: str

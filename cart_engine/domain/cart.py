# cart_engine/domain/cart.py
"""
The cart document and its state transitions.

A cart belongs to exactly one owner and holds an ordered list of lines. Every
transition below finishes with an explicit `reprice`, so the derived money
fields are never stale once a method returns.
"""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pydantic import BaseModel, Field, computed_field

from cart_engine.domain.errors import InvalidQuantity, LineNotFound
from cart_engine.domain.pricing import ZERO, reprice
from cart_engine.utils.settings import (
    CART_CURRENCY,
    CART_FREE_SHIPPING_THRESHOLD,
    CART_SHIPPING_COST,
    CART_TAX_RATE,
    CART_TTL_SECONDS,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Color(BaseModel):
    name: str | None = None
    hex: str | None = None


class CartLine(BaseModel):
    id: str = Field(default_factory=_new_id)
    product_id: str
    quantity: int = Field(ge=1)
    size: str
    color: Color | None = None
    unit_price: Decimal
    line_total: Decimal = ZERO
    added_at: datetime = Field(default_factory=_utcnow)

    def matches(self, product_id: str, size: str, color: Color | None) -> bool:
        """Same product, size and colour name; a missing colour only matches a missing colour."""
        return (
            self.product_id == str(product_id)
            and self.size == size
            and _color_key(self.color) == _color_key(color)
        )

    def set_quantity(self, quantity: int) -> None:
        self.quantity = quantity
        self.line_total = self.unit_price * quantity


def _color_key(color: Color | None) -> str | None:
    return color.name if color is not None else None


class Discount(BaseModel):
    code: str
    amount: Decimal = ZERO
    percentage: Decimal = ZERO


class ShippingPolicy(BaseModel):
    cost: Decimal = CART_SHIPPING_COST
    free_threshold: Decimal = CART_FREE_SHIPPING_THRESHOLD


class Cart(BaseModel):
    id: str = Field(default_factory=_new_id)
    owner_id: str
    items: list[CartLine] = Field(default_factory=list)
    discount: Discount | None = None
    tax_rate: Decimal = CART_TAX_RATE
    shipping: ShippingPolicy = Field(default_factory=ShippingPolicy)
    currency: str = CART_CURRENCY

    # derived, written only by reprice()
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    is_free_shipping: bool = False
    total: Decimal = ZERO

    active: bool = True
    version: int = 1
    expires_at: datetime = Field(default_factory=lambda: _utcnow() + timedelta(seconds=CART_TTL_SECONDS))
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.items)

    @classmethod
    def create(cls, owner_id: str, shipping: ShippingPolicy | None = None) -> "Cart":
        cart = cls(owner_id=str(owner_id), shipping=shipping or ShippingPolicy())
        reprice(cart, now=cart.created_at)
        return cart

    def find_line(self, line_id: str) -> CartLine | None:
        return next((line for line in self.items if line.id == str(line_id)), None)

    # item transitions
    def add_item(
        self,
        product_id: str,
        quantity: int,
        size: str,
        color: Color | None,
        unit_price: Decimal,
        now: datetime | None = None,
    ) -> CartLine:
        if quantity is None or quantity <= 0:
            raise InvalidQuantity()

        existing = next((line for line in self.items if line.matches(product_id, size, color)), None)

        if existing:
            # keeps the price captured when the line was first added
            existing.set_quantity(existing.quantity + quantity)
            line = existing
        else:
            line = CartLine(
                product_id=str(product_id),
                quantity=quantity,
                size=size,
                color=color,
                unit_price=Decimal(unit_price),
                added_at=now or _utcnow(),
            )
            line.set_quantity(quantity)
            self.items.append(line)

        reprice(self, now)
        return line

    def update_item_quantity(self, line_id: str, quantity: int, now: datetime | None = None) -> CartLine | None:
        line = self.find_line(line_id)
        if line is None:
            raise LineNotFound()

        if quantity <= 0:
            self.items = [i for i in self.items if i.id != line.id]
            line = None
        else:
            line.set_quantity(quantity)

        reprice(self, now)
        return line

    def remove_item(self, line_id: str, now: datetime | None = None) -> bool:
        before = len(self.items)
        self.items = [i for i in self.items if i.id != str(line_id)]
        reprice(self, now)
        return len(self.items) != before

    def clear(self, now: datetime | None = None) -> None:
        self.items = []
        self.discount = None
        reprice(self, now)

    # discount & shipping
    def apply_discount(
        self,
        code: str,
        amount: Decimal = ZERO,
        percentage: Decimal = ZERO,
        now: datetime | None = None,
    ) -> None:
        self.discount = Discount(code=code, amount=Decimal(amount), percentage=Decimal(percentage))
        reprice(self, now)

    def remove_discount(self, now: datetime | None = None) -> None:
        self.discount = None
        reprice(self, now)

    def set_shipping_policy(
        self,
        cost: Decimal,
        free_threshold: Decimal = Decimal("500"),
        now: datetime | None = None,
    ) -> None:
        self.shipping = ShippingPolicy(cost=Decimal(cost), free_threshold=Decimal(free_threshold))
        reprice(self, now)

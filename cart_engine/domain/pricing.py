# cart_engine/domain/pricing.py
"""
Repricing of a cart.

`calculate_totals` is a pure function of the line items, discount, tax rate and
shipping policy. `reprice` writes its result onto a cart and pushes the expiry
forward; every mutation on `Cart` ends with a call to it.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, Iterable, NamedTuple

from cart_engine.utils.settings import CART_TTL_SECONDS

if TYPE_CHECKING:
    from cart_engine.domain.cart import Cart, CartLine, Discount, ShippingPolicy

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


class Totals(NamedTuple):
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    shipping_cost: Decimal
    is_free_shipping: bool
    total: Decimal


def to_cents(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def discount_amount_for(subtotal: Decimal, discount: Discount | None) -> Decimal:
    if discount is None:
        return ZERO
    # percentage wins whenever it is set, even if a flat amount is present too
    if discount.percentage > 0:
        return to_cents(subtotal * discount.percentage / Decimal(100))
    return to_cents(discount.amount)


def calculate_totals(
    items: Iterable[CartLine],
    discount: Discount | None,
    tax_rate: Decimal,
    shipping: ShippingPolicy,
) -> Totals:
    items = list(items)

    subtotal = sum((line.line_total for line in items), ZERO)
    discount_amount = discount_amount_for(subtotal, discount)
    discounted = max(ZERO, subtotal - discount_amount)

    tax = to_cents(discounted * tax_rate)

    is_free_shipping = discounted >= shipping.free_threshold
    if not items or is_free_shipping:
        shipping_cost = ZERO
    else:
        shipping_cost = to_cents(shipping.cost)

    total = discounted + tax + shipping_cost

    return Totals(
        subtotal=to_cents(subtotal),
        discount_amount=discount_amount,
        tax=tax,
        shipping_cost=shipping_cost,
        is_free_shipping=is_free_shipping,
        total=to_cents(total),
    )


def reprice(cart: Cart, now: datetime | None = None, ttl_seconds: int = CART_TTL_SECONDS) -> Totals:
    now = now or datetime.now(timezone.utc)

    totals = calculate_totals(cart.items, cart.discount, cart.tax_rate, cart.shipping)

    cart.subtotal = totals.subtotal
    cart.discount_amount = totals.discount_amount
    cart.tax = totals.tax
    cart.shipping_cost = totals.shipping_cost
    cart.is_free_shipping = totals.is_free_shipping
    cart.total = totals.total

    # active shoppers keep their cart, empty carts are left to expire
    if cart.items:
        cart.expires_at = now + timedelta(seconds=ttl_seconds)
    cart.updated_at = now

    return totals

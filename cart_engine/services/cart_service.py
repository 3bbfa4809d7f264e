# cart_engine/services/cart_service.py
import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from cart_engine.domain.cart import Cart, Color
from cart_engine.domain.errors import (
    CartNotFound,
    CatalogUnavailable,
    ConcurrencyConflict,
    InsufficientStock,
    InvalidDiscountCode,
    InvalidQuantity,
    ItemUnavailable,
    LineNotFound,
)
from cart_engine.repos.cart_repo import CartRepo
from cart_engine.services.discounts import DiscountResolver, StaticDiscountResolver
from cart_engine.services.lock_service import LockService
from cart_engine.services.product_client import Catalog, CatalogProduct
from cart_engine.utils.logging import get_logger
from cart_engine.utils.retry import conflict_retry
from cart_engine.utils.settings import CART_LOCK_TTL_SECONDS

logger = get_logger(__name__)


def _product_summary(product: CatalogProduct | None) -> Dict[str, Any] | None:
    if product is None:
        return None
    return {
        "id": product.id,
        "name": product.name,
        "price": product.price,
        "images": product.images,
        "in_stock": product.in_stock,
        "total_quantity": product.total_quantity,
    }


class CartService:
    """
    Use cases for the owner's cart.

    Queries (view) only read. Commands (add, update, remove, clear, discounts)
    run as one read-mutate-reprice-write unit: optionally under the owner's
    Redis lock, always with a version check, retried once on conflict.
    """

    def __init__(
        self,
        db: Session,
        catalog: Catalog,
        discounts: DiscountResolver | None = None,
        lock_service: LockService | None = None,
    ):
        self.repo = CartRepo(db)
        self.catalog = catalog
        self.discounts = discounts or StaticDiscountResolver()
        self.lock_service = lock_service

    # query
    def view_cart(self, owner_id: str) -> Dict[str, Any]:
        cart = self.repo.get_or_create_cart(owner_id)
        return self._view(cart)

    # commands
    def add_item(
        self,
        owner_id: str,
        product_id: str,
        quantity: int,
        size: str,
        color: Color | None = None,
    ) -> Dict[str, Any]:
        if quantity is None or quantity <= 0:
            raise InvalidQuantity()

        # validated before the cart is touched, a failing lookup writes nothing
        product = self.catalog.find_by_id(product_id)
        if product is None or not product.is_active:
            raise ItemUnavailable()

        option = product.size_option(size)
        if option is None or not option.in_stock or option.quantity < quantity:
            raise ItemUnavailable("Selected size is not available or insufficient stock")

        price = Decimal(product.price)

        cart = self._apply(
            owner_id,
            lambda c: c.add_item(product_id, quantity, size, color, price),
            create=True,
        )
        logger.info(f"Added {quantity} x product {product_id} ({size}) to cart {cart.id}")
        return self._view(cart)

    def update_item(self, owner_id: str, line_id: str, quantity: int) -> Dict[str, Any]:
        # stock is checked outside the owner lock, a line's product and size never change
        current = self.repo.get_active_cart(owner_id)
        if current is None:
            raise CartNotFound()
        # no transaction stays open across the catalog call
        self.repo.rollback()
        line = current.find_line(line_id)
        if line is None:
            raise LineNotFound()

        if quantity > 0:
            product = self.catalog.find_by_id(line.product_id)
            option = product.size_option(line.size) if product and product.is_active else None
            if option is None or option.quantity < quantity:
                raise InsufficientStock()

        def mutate(cart: Cart):
            # the line may have been removed since the stock check
            if cart.find_line(line_id) is None:
                raise LineNotFound()
            cart.update_item_quantity(line_id, quantity)

        cart = self._apply(owner_id, mutate)
        if quantity <= 0:
            logger.info(f"Line {line_id} removed from cart {cart.id} via quantity {quantity}")
        else:
            logger.info(f"Line {line_id} in cart {cart.id} set to quantity {quantity}")
        return self._view(cart)

    def remove_item(self, owner_id: str, line_id: str) -> Dict[str, Any]:
        cart = self._apply(owner_id, lambda c: c.remove_item(line_id))
        logger.info(f"Line {line_id} removed from cart {cart.id}")
        return self._view(cart)

    def clear_cart(self, owner_id: str) -> Dict[str, Any]:
        cart = self._apply(owner_id, lambda c: c.clear())
        logger.info(f"Cart {cart.id} cleared")
        return self._view(cart)

    def apply_discount(self, owner_id: str, code: str) -> Dict[str, Any]:
        def mutate(cart: Cart):
            terms = self.discounts.resolve(code)
            if terms is None:
                raise InvalidDiscountCode()
            cart.apply_discount(terms.code, terms.amount, terms.percentage)

        cart = self._apply(owner_id, mutate)
        logger.info(f"Discount {cart.discount.code} applied to cart {cart.id}")
        return self._view(cart)

    def remove_discount(self, owner_id: str) -> Dict[str, Any]:
        cart = self._apply(owner_id, lambda c: c.remove_discount())
        logger.info(f"Discount removed from cart {cart.id}")
        return self._view(cart)

    def set_shipping_policy(
        self,
        owner_id: str,
        cost: Decimal,
        free_threshold: Decimal = Decimal("500"),
    ) -> Dict[str, Any]:
        cart = self._apply(owner_id, lambda c: c.set_shipping_policy(cost, free_threshold))
        logger.info(f"Shipping policy of cart {cart.id} set to {cost} (free from {free_threshold})")
        return self._view(cart)

    # internals
    @conflict_retry()
    def _apply(self, owner_id: str, mutation: Callable[[Cart], Any], create: bool = False) -> Cart:
        with self._owner_lock(owner_id):
            if create:
                cart = self.repo.get_or_create_cart(owner_id)
            else:
                cart = self.repo.get_active_cart(owner_id)
                if cart is None:
                    raise CartNotFound()

            try:
                mutation(cart)
                self.repo.save_cart(cart)
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

            return cart

    @contextmanager
    def _owner_lock(self, owner_id: str):
        if self.lock_service is None:
            yield
            return

        token = uuid.uuid4().hex
        # waits up to the lock service's wait budget before giving up
        if not self.lock_service.acquire_cart_lock(owner_id, token, CART_LOCK_TTL_SECONDS):
            raise ConcurrencyConflict("Cart is being updated by another request")
        try:
            yield
        finally:
            self.lock_service.release_cart_lock(owner_id, token)

    def _lookup_for_view(self, product_id: str) -> CatalogProduct | None:
        try:
            return self.catalog.find_by_id(product_id)
        except CatalogUnavailable:
            logger.warning(f"Catalog unavailable, rendering product {product_id} without details")
            return None

    def _view(self, cart: Cart) -> Dict[str, Any]:
        """
        Cart plus a read-time join of each line with its current catalog entry.

        Runs after the write has committed, so a catalog failure here only
        degrades the response (`product: None`) and never fails the request.
        """
        products: Dict[str, CatalogProduct | None] = {}
        items = []
        for line in cart.items:
            if line.product_id not in products:
                products[line.product_id] = self._lookup_for_view(line.product_id)
            items.append({**line.model_dump(), "product": _product_summary(products[line.product_id])})

        data = cart.model_dump(exclude={"items"})
        data["items"] = items
        return data

# cart_engine/repos/cart_repo.py
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cart_engine.data.models.cart import CartModel
from cart_engine.domain.cart import Cart
from cart_engine.domain.errors import ConcurrencyConflict
from cart_engine.utils.logging import get_logger

logger = get_logger(__name__)

# kept as real columns, not inside the document
_COLUMN_FIELDS = {
    "id",
    "owner_id",
    "active",
    "version",
    "expires_at",
    "created_at",
    "updated_at",
    "total_items",
}


def to_document(cart: Cart) -> dict:
    return cart.model_dump(mode="json", exclude=_COLUMN_FIELDS)


def _aware(value: datetime) -> datetime:
    # sqlite hands timestamps back without tzinfo, they were written as UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def to_cart(row: CartModel) -> Cart:
    return Cart.model_validate(
        {
            **row.document,
            "id": row.id,
            "owner_id": row.owner_id,
            "active": row.active,
            "version": row.version,
            "expires_at": _aware(row.expires_at),
            "created_at": _aware(row.created_at),
            "updated_at": _aware(row.updated_at),
        }
    )


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_active_cart(self, owner_id: str) -> Cart | None:
        # always reload, the version read here guards the next write
        row = self.db.execute(
            select(CartModel)
            .where(
                CartModel.owner_id == str(owner_id),
                CartModel.active.is_(True),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        return to_cart(row) if row else None

    def get_or_create_cart(self, owner_id: str) -> Cart:
        existing = self.get_active_cart(owner_id)
        if existing:
            return existing

        cart = Cart.create(owner_id)
        self.db.add(
            CartModel(
                id=cart.id,
                owner_id=cart.owner_id,
                active=True,
                version=cart.version,
                expires_at=cart.expires_at,
                created_at=cart.created_at,
                updated_at=cart.updated_at,
                document=to_document(cart),
            )
        )

        try:
            self.db.commit()
        except IntegrityError:
            # another request created the owner's cart first, use theirs
            self.db.rollback()
            logger.info(f"Cart for owner {owner_id} created concurrently, re-fetching")
            existing = self.get_active_cart(owner_id)
            if existing is None:
                raise ConcurrencyConflict()
            return existing

        logger.info(f"Created cart {cart.id} for owner {owner_id}")
        return cart

    def update_cart_version(self, cart_id: str, old_version: int, new_data: dict) -> int:
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def save_cart(self, cart: Cart) -> Cart:
        """
        Compare-and-swap write of the whole document.

        Raises ConcurrencyConflict (after rolling back) when the stored version
        no longer matches the version the cart was read at.
        """
        rowcount = self.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "active": cart.active,
                "expires_at": cart.expires_at,
                "updated_at": cart.updated_at,
                "document": to_document(cart),
            },
        )

        if rowcount == 0:
            self.rollback()
            logger.warning(f"Version conflict on cart {cart.id} (read at version {cart.version})")
            raise ConcurrencyConflict()

        cart.version += 1
        return cart

    def deactivate_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.active.is_(True), CartModel.expires_at < now)
            .values(active=False, version=CartModel.version + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        result = self.db.execute(
            delete(CartModel)
            .where(CartModel.active.is_(False), CartModel.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

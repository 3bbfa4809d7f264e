# cart_engine/data/models/cart.py
from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, text

from cart_engine.data.database import Base


class CartModel(Base):
    """
    One row per cart document.

    The columns used for lookups, the expiry sweep and optimistic locking live
    outside the JSON document; everything else (lines, discount, pricing) is
    stored in `document`.
    """

    __tablename__ = "carts"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), nullable=False)

    active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    document = Column(JSON, nullable=False)

    __table_args__ = (
        # at most one active cart per owner
        Index(
            "uq_carts_active_owner",
            "owner_id",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active = 1"),
        ),
        Index("ix_carts_expires_at", "expires_at"),
        Index("ix_carts_owner_id", "owner_id"),
    )

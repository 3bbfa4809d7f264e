#import all models so SQLAlchemy registers them on Base.metadata

from cart_engine.data.models.cart import CartModel

__all__ = ["CartModel"]

# cart_engine/api/routers/carts.py
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from cart_engine.data.database import get_db
from cart_engine.domain.cart import Color
from cart_engine.domain.schemas import CartOut, DiscountIn, ErrorOut, ItemIn, QuantityIn
from cart_engine.services.cart_service import CartService
from cart_engine.services.discounts import StaticDiscountResolver
from cart_engine.services.lock_service import LockService
from cart_engine.services.product_client import ProductClient
from cart_engine.utils.settings import CART_LOCKS_ENABLED

router = APIRouter(
    prefix="/cart",
    tags=["cart"],
    responses={code: {"model": ErrorOut} for code in (400, 404, 409, 422, 503)},
)


def get_owner_id(x_user_id: str = Header(..., min_length=1)) -> str:
    # identity is resolved upstream, the header value is trusted as-is
    return x_user_id


def get_catalog():
    return ProductClient()


def get_discount_resolver():
    return StaticDiscountResolver()


def get_lock_service():
    return LockService() if CART_LOCKS_ENABLED else None


def get_service(
    db: Session = Depends(get_db),
    catalog=Depends(get_catalog),
    discounts=Depends(get_discount_resolver),
    lock_service=Depends(get_lock_service),
) -> CartService:
    return CartService(
        db=db,
        catalog=catalog,
        discounts=discounts,
        lock_service=lock_service,
    )


@router.get("", response_model=CartOut)
def view_cart(
    owner_id: str = Depends(get_owner_id),
    svc: CartService = Depends(get_service),
):
    return svc.view_cart(owner_id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    owner_id: str = Depends(get_owner_id),
    svc: CartService = Depends(get_service),
):
    color = Color(**payload.color.model_dump()) if payload.color else None
    return svc.add_item(
        owner_id=owner_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        size=payload.size,
        color=color,
    )


@router.put("/items/{line_id}", response_model=CartOut)
def update_item(
    line_id: str,
    payload: QuantityIn,
    owner_id: str = Depends(get_owner_id),
    svc: CartService = Depends(get_service),
):
    return svc.update_item(owner_id, line_id, payload.quantity)


@router.delete("/items/{line_id}", response_model=CartOut)
def remove_item(
    line_id: str,
    owner_id: str = Depends(get_owner_id),
    svc: CartService = Depends(get_service),
):
    return svc.remove_item(owner_id, line_id)


@router.delete("", response_model=CartOut)
def clear_cart(
    owner_id: str = Depends(get_owner_id),
    svc: CartService = Depends(get_service),
):
    return svc.clear_cart(owner_id)


@router.post("/discount", response_model=CartOut)
def apply_discount(
    payload: DiscountIn,
    owner_id: str = Depends(get_owner_id),
    svc: CartService = Depends(get_service),
):
    return svc.apply_discount(owner_id, payload.code)


@router.delete("/discount", response_model=CartOut)
def remove_discount(
    owner_id: str = Depends(get_owner_id),
    svc: CartService = Depends(get_service),
):
    return svc.remove_discount(owner_id)

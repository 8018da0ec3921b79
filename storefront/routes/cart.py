from __future__ import annotations

from fastapi import APIRouter, Depends

from ..db import retry_once, transaction
from ..models import CartItemIn, CartOut, CartQuantityIn, Role
from ..security import CurrentUser, require_role
from ..services import cart


router = APIRouter(prefix="/api/cart", tags=["cart"])

_shopper = require_role(Role.SHOPPER)


@router.get("", response_model=CartOut)
def view_cart(user: CurrentUser = Depends(_shopper)) -> CartOut:
    with transaction() as conn:
        return cart.view(conn, user.user_id)


@router.post("/items", response_model=CartOut)
def add_to_cart(req: CartItemIn, user: CurrentUser = Depends(_shopper)) -> CartOut:
    def _run() -> CartOut:
        with transaction() as conn:
            cart.add_item(conn, user.user_id, req.product_id, req.quantity)
            return cart.view(conn, user.user_id)

    return retry_once(_run)


@router.put("/items/{cart_line_id}", response_model=CartOut)
def update_cart_quantity(cart_line_id: int, req: CartQuantityIn, user: CurrentUser = Depends(_shopper)) -> CartOut:
    def _run() -> CartOut:
        with transaction() as conn:
            cart.update_quantity(conn, user.user_id, cart_line_id, req.quantity)
            return cart.view(conn, user.user_id)

    return retry_once(_run)


@router.delete("/items/{cart_line_id}", response_model=CartOut)
def remove_from_cart(cart_line_id: int, user: CurrentUser = Depends(_shopper)) -> CartOut:
    def _run() -> CartOut:
        with transaction() as conn:
            cart.remove_item(conn, user.user_id, cart_line_id)
            return cart.view(conn, user.user_id)

    return retry_once(_run)


@router.delete("", response_model=CartOut)
def clear_cart(user: CurrentUser = Depends(_shopper)) -> CartOut:
    def _run() -> CartOut:
        with transaction() as conn:
            cart.clear(conn, user.user_id)
            return cart.view(conn, user.user_id)

    return retry_once(_run)

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from ..db import retry_once, transaction
from ..models import OrderOut, Role
from ..security import CurrentUser, require_role
from ..services import orders


router = APIRouter(prefix="/api/orders", tags=["orders"])

_shopper = require_role(Role.SHOPPER)


@router.post("", response_model=OrderOut, status_code=201)
def place_order(user: CurrentUser = Depends(_shopper)) -> OrderOut:
    def _run() -> OrderOut:
        with transaction() as conn:
            return orders.place_order(conn, user.user_id)

    return retry_once(_run)


@router.get("", response_model=List[OrderOut])
def list_orders(limit: int = Query(50, ge=1, le=200), user: CurrentUser = Depends(_shopper)) -> List[OrderOut]:
    with transaction() as conn:
        return orders.list_orders(conn, user.user_id, limit=limit)


@router.get("/{order_id}", response_model=OrderOut)
def order_detail(order_id: int, user: CurrentUser = Depends(_shopper)) -> OrderOut:
    with transaction() as conn:
        return orders.get_order(conn, order_id, user.user_id)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: int, user: CurrentUser = Depends(_shopper)) -> OrderOut:
    def _run() -> OrderOut:
        with transaction() as conn:
            return orders.cancel_order(conn, order_id, user.user_id)

    return retry_once(_run)


@router.post("/{order_id}/pay", response_model=OrderOut)
def pay_order(order_id: int, user: CurrentUser = Depends(_shopper)) -> OrderOut:
    def _run() -> OrderOut:
        with transaction() as conn:
            return orders.mark_paid(conn, order_id, user.user_id)

    return retry_once(_run)

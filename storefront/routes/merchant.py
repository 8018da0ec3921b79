from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from ..db import retry_once, transaction
from ..models import CreateProductIn, OrderOut, OrderStatusIn, ProductOut, Role, ShipOrderIn, UpdateProductIn
from ..security import CurrentUser, require_role
from ..services import merchant_products, orders


router = APIRouter(prefix="/api/merchant", tags=["merchant"])

_merchant = require_role(Role.MERCHANT, Role.ADMIN)


@router.get("/orders", response_model=List[OrderOut])
def merchant_orders(limit: int = Query(100, ge=1, le=500), user: CurrentUser = Depends(_merchant)) -> List[OrderOut]:
    with transaction() as conn:
        return orders.list_merchant_orders(conn, user, limit=limit)


@router.post("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(order_id: int, req: OrderStatusIn, user: CurrentUser = Depends(_merchant)) -> OrderOut:
    def _run() -> OrderOut:
        with transaction() as conn:
            return orders.update_status(conn, order_id, req.status, user, tracking_number=req.tracking_number)

    return retry_once(_run)


@router.post("/orders/{order_id}/ship", response_model=OrderOut)
def mark_as_shipped(order_id: int, req: ShipOrderIn, user: CurrentUser = Depends(_merchant)) -> OrderOut:
    def _run() -> OrderOut:
        with transaction() as conn:
            return orders.mark_shipped(conn, order_id, req.tracking_number, user)

    return retry_once(_run)


@router.post("/orders/{order_id}/deliver", response_model=OrderOut)
def mark_as_delivered(order_id: int, user: CurrentUser = Depends(_merchant)) -> OrderOut:
    def _run() -> OrderOut:
        with transaction() as conn:
            return orders.mark_delivered(conn, order_id, user)

    return retry_once(_run)


@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(req: CreateProductIn, user: CurrentUser = Depends(_merchant)) -> ProductOut:
    def _run() -> ProductOut:
        with transaction() as conn:
            return merchant_products.create_product(conn, user, req)

    return retry_once(_run)


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(product_id: int, req: UpdateProductIn, user: CurrentUser = Depends(_merchant)) -> ProductOut:
    def _run() -> ProductOut:
        with transaction() as conn:
            return merchant_products.update_product(conn, user, product_id, req)

    return retry_once(_run)

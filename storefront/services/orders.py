"""Order workflow: cart to order, cancellation, and merchant-side status changes.

Order status follows a small state machine::

    Pending  -> Shipped | Cancelled
    Shipped  -> Delivered | Cancelled
    Delivered, Cancelled: terminal

Every mutation here expects to run inside ``storefront.db.transaction()``.
Product rows are locked with ``SELECT ... FOR UPDATE`` in ascending
``product_id`` order before stock is checked or changed, so two concurrent
checkouts cannot both pass the stock check for the same unit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..errors import EmptyCart, InvalidTransition, NotFound, OutOfStock, Unauthorized, ValidationFailed
from ..models import OrderLineOut, OrderOut, OrderStatus, PaymentStatus, ProductStatus
from ..security import CurrentUser


_log = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def is_terminal(status: OrderStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def check_transition(current: OrderStatus, new: OrderStatus) -> None:
    if not can_transition(current, new):
        _log.warning("rejected order status change %s -> %s", current.value, new.value)
        raise InvalidTransition(f"Cannot change order status from {current.value} to {new.value}")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _ts(x) -> Optional[str]:
    if x is None:
        return None
    if hasattr(x, "isoformat"):
        return x.isoformat()
    return str(x)


def _lock_products(conn, product_ids: Iterable[int]) -> Dict[int, tuple]:
    """Lock product rows in id order; returns ``{product_id: (price, stock, status)}``."""
    ids = sorted({int(pid) for pid in product_ids})
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT product_id, price, stock, status
            FROM storefront.products
            WHERE product_id = ANY(%s)
            ORDER BY product_id
            FOR UPDATE;
            """,
            (ids,),
        )
        rows = cur.fetchall()
    return {int(r[0]): (Decimal(r[1]), int(r[2]), str(r[3])) for r in rows}


def place_order(conn, user_id: int) -> OrderOut:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT product_id, quantity
            FROM storefront.cart_lines
            WHERE user_id = %s
            ORDER BY product_id
            FOR UPDATE;
            """,
            (int(user_id),),
        )
        cart_rows = [(int(r[0]), int(r[1])) for r in cur.fetchall()]

    if not cart_rows:
        raise EmptyCart()

    products = _lock_products(conn, (pid for pid, _ in cart_rows))

    total = Decimal("0")
    for pid, qty in cart_rows:
        price, stock, status = products.get(pid, (None, 0, ProductStatus.INACTIVE.value))
        if status != ProductStatus.ACTIVE.value:
            stock = 0
        if qty > stock:
            _log.warning("place_order rejected user=%s product=%s qty=%s stock=%s", user_id, pid, qty, stock)
            raise OutOfStock(pid, qty, stock)
        total += price * qty

    now = _utc_now()
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO storefront.order_headers (
                user_id, created_at, updated_at, total_amount, order_status, payment_status
            )
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING order_id;
            """,
            (
                int(user_id),
                now,
                now,
                total,
                OrderStatus.PENDING.value,
                PaymentStatus.UNPAID.value,
            ),
        )
        order_id = int(cur.fetchone()[0])

        cur.executemany(
            """
            INSERT INTO storefront.order_lines (order_id, product_id, quantity, unit_price)
            VALUES (%s, %s, %s, %s);
            """,
            [(order_id, pid, qty, products[pid][0]) for pid, qty in cart_rows],
        )
        cur.executemany(
            "UPDATE storefront.products SET stock = stock - %s WHERE product_id = %s;",
            [(qty, pid) for pid, qty in cart_rows],
        )
        cur.execute("DELETE FROM storefront.cart_lines WHERE user_id = %s;", (int(user_id),))

    _log.info(
        "order placed order_id=%s user=%s lines=%s units=%s total=%s",
        order_id,
        user_id,
        len(cart_rows),
        sum(qty for _, qty in cart_rows),
        total,
    )
    return get_order(conn, order_id, user_id)


def _restore_and_cancel(conn, order_id: int, current: OrderStatus) -> None:
    """Cancel an order whose header row is already locked by the caller."""
    if current == OrderStatus.CANCELLED:
        _log.warning("order %s already cancelled", order_id)
        raise InvalidTransition(f"Order {order_id} is already cancelled")
    check_transition(current, OrderStatus.CANCELLED)

    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT product_id, SUM(quantity)
            FROM storefront.order_lines
            WHERE order_id = %s
            GROUP BY product_id
            ORDER BY product_id;
            """,
            (int(order_id),),
        )
        restock = [(int(r[0]), int(r[1])) for r in cur.fetchall()]

    _lock_products(conn, (pid for pid, _ in restock))

    with conn.cursor() as cur:
        cur.executemany(
            "UPDATE storefront.products SET stock = stock + %s WHERE product_id = %s;",
            [(qty, pid) for pid, qty in restock],
        )
        cur.execute(
            """
            UPDATE storefront.order_headers
            SET order_status = %s, payment_status = %s, updated_at = %s
            WHERE order_id = %s;
            """,
            (OrderStatus.CANCELLED.value, PaymentStatus.REFUNDED.value, _utc_now(), int(order_id)),
        )

    _log.info("order cancelled order_id=%s restocked_units=%s", order_id, sum(q for _, q in restock))


def _lock_own_order(conn, order_id: int, user_id: int) -> tuple:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT order_status, payment_status
            FROM storefront.order_headers
            WHERE order_id = %s AND user_id = %s
            FOR UPDATE;
            """,
            (int(order_id), int(user_id)),
        )
        row = cur.fetchone()
    if row is None:
        raise NotFound(f"Order {order_id} not found")
    return OrderStatus(row[0]), PaymentStatus(row[1])


def cancel_order(conn, order_id: int, user_id: int) -> OrderOut:
    status, _ = _lock_own_order(conn, order_id, user_id)
    _restore_and_cancel(conn, order_id, status)
    return get_order(conn, order_id, user_id)


def mark_paid(conn, order_id: int, user_id: int) -> OrderOut:
    status, payment = _lock_own_order(conn, order_id, user_id)
    if status == OrderStatus.CANCELLED or payment != PaymentStatus.UNPAID:
        raise InvalidTransition(f"Order {order_id} cannot be paid (status={status.value}, payment={payment.value})")

    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE storefront.order_headers
            SET payment_status = %s, payment_date = %s, updated_at = %s
            WHERE order_id = %s;
            """,
            (PaymentStatus.PAID.value, _utc_now(), _utc_now(), int(order_id)),
        )
    _log.info("order paid order_id=%s", order_id)
    return get_order(conn, order_id, user_id)


def _lock_order_for_actor(conn, order_id: int, actor: CurrentUser) -> OrderStatus:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT order_status FROM storefront.order_headers WHERE order_id = %s FOR UPDATE;",
            (int(order_id),),
        )
        row = cur.fetchone()
        if row is None:
            raise NotFound(f"Order {order_id} not found")

        if not actor.is_admin:
            cur.execute(
                """
                SELECT 1
                FROM storefront.order_lines ol
                JOIN storefront.products p ON p.product_id = ol.product_id
                WHERE ol.order_id = %s AND p.merchant_id = %s
                LIMIT 1;
                """,
                (int(order_id), int(actor.user_id)),
            )
            if cur.fetchone() is None:
                raise Unauthorized(f"Order {order_id} contains none of your products")

    return OrderStatus(row[0])


def update_status(
    conn,
    order_id: int,
    new_status: OrderStatus,
    actor: CurrentUser,
    tracking_number: Optional[str] = None,
) -> OrderOut:
    current = _lock_order_for_actor(conn, order_id, actor)

    if new_status == OrderStatus.CANCELLED:
        _restore_and_cancel(conn, order_id, current)
        return get_order(conn, order_id)

    check_transition(current, new_status)

    tracking = (tracking_number or "").strip() or None
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE storefront.order_headers
            SET order_status = %s, tracking_number = COALESCE(%s, tracking_number), updated_at = %s
            WHERE order_id = %s;
            """,
            (new_status.value, tracking, _utc_now(), int(order_id)),
        )

    _log.info(
        "order status changed order_id=%s %s -> %s by user=%s",
        order_id,
        current.value,
        new_status.value,
        actor.user_id,
    )
    return get_order(conn, order_id)


def mark_shipped(conn, order_id: int, tracking_number: str, actor: CurrentUser) -> OrderOut:
    if not (tracking_number or "").strip():
        raise ValidationFailed("Tracking number is required to mark an order as shipped")
    return update_status(conn, order_id, OrderStatus.SHIPPED, actor, tracking_number=tracking_number)


def mark_delivered(conn, order_id: int, actor: CurrentUser) -> OrderOut:
    return update_status(conn, order_id, OrderStatus.DELIVERED, actor)


def _load_orders(conn, where: str, params: tuple, limit: Optional[int] = None) -> List[OrderOut]:
    sql = f"""
        SELECT order_id, user_id, created_at, total_amount, order_status,
               payment_status, tracking_number, payment_date
        FROM storefront.order_headers h
        WHERE {where}
        ORDER BY created_at DESC, order_id DESC
    """
    if limit is not None:
        sql += " LIMIT %s"
        params = params + (int(limit),)

    with conn.cursor() as cur:
        cur.execute(sql, params)
        headers = cur.fetchall()

        order_ids = [int(h[0]) for h in headers]
        lines_by_order: Dict[int, List[OrderLineOut]] = {oid: [] for oid in order_ids}

        if order_ids:
            cur.execute(
                """
                SELECT ol.order_id, ol.order_line_id, ol.product_id, p.name, ol.quantity, ol.unit_price
                FROM storefront.order_lines ol
                JOIN storefront.products p ON p.product_id = ol.product_id
                WHERE ol.order_id = ANY(%s)
                ORDER BY ol.order_id, ol.order_line_id;
                """,
                (order_ids,),
            )
            for r in cur.fetchall():
                unit_price = Decimal(r[5])
                lines_by_order[int(r[0])].append(
                    OrderLineOut(
                        order_line_id=int(r[1]),
                        product_id=int(r[2]),
                        product_name=str(r[3]),
                        quantity=int(r[4]),
                        unit_price=float(unit_price),
                        line_total=float(unit_price * int(r[4])),
                    )
                )

    return [
        OrderOut(
            order_id=int(h[0]),
            user_id=int(h[1]),
            created_at=_ts(h[2]) or "",
            total_amount=float(h[3]),
            order_status=OrderStatus(h[4]),
            payment_status=PaymentStatus(h[5]),
            tracking_number=h[6],
            payment_date=_ts(h[7]),
            lines=lines_by_order.get(int(h[0]), []),
        )
        for h in headers
    ]


def get_order(conn, order_id: int, user_id: Optional[int] = None) -> OrderOut:
    if user_id is None:
        found = _load_orders(conn, "h.order_id = %s", (int(order_id),))
    else:
        found = _load_orders(conn, "h.order_id = %s AND h.user_id = %s", (int(order_id), int(user_id)))
    if not found:
        raise NotFound(f"Order {order_id} not found")
    return found[0]


def list_orders(conn, user_id: int, limit: int = 50) -> List[OrderOut]:
    return _load_orders(conn, "h.user_id = %s", (int(user_id),), limit=limit)


def list_merchant_orders(conn, actor: CurrentUser, limit: int = 100) -> List[OrderOut]:
    if actor.is_admin:
        return _load_orders(conn, "TRUE", (), limit=limit)
    return _load_orders(
        conn,
        """
        EXISTS (
            SELECT 1
            FROM storefront.order_lines ol
            JOIN storefront.products p ON p.product_id = ol.product_id
            WHERE ol.order_id = h.order_id AND p.merchant_id = %s
        )
        """,
        (int(actor.user_id),),
        limit=limit,
    )

"""Per-user shopping cart backed by ``storefront.cart_lines``.

Adding to the cart only checks the requested quantity against the product's
current stock; stock itself is reserved when the order is placed, so an
abandoned cart never holds inventory.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from ..errors import NotFound, OutOfStock, TransactionFailure, ValidationFailed
from ..models import CartLineOut, CartOut, ProductStatus


_log = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _ts(x) -> str:
    if hasattr(x, "isoformat"):
        return x.isoformat()
    return str(x)


def _available_stock(conn, product_id: int) -> int:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT stock, status FROM storefront.products WHERE product_id = %s;",
            (int(product_id),),
        )
        row = cur.fetchone()
    if row is None or str(row[1]) != ProductStatus.ACTIVE.value:
        raise NotFound(f"Product {product_id} not found")
    return int(row[0])


def add_item(conn, user_id: int, product_id: int, quantity: int) -> int:
    """Add ``quantity`` units of a product, merging into an existing line. Returns the line id."""
    if quantity < 1:
        raise ValidationFailed("Quantity must be at least 1")

    stock = _available_stock(conn, product_id)
    now = _utc_now()

    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT cart_line_id, quantity
            FROM storefront.cart_lines
            WHERE user_id = %s AND product_id = %s
            FOR UPDATE;
            """,
            (int(user_id), int(product_id)),
        )
        existing = cur.fetchone()

        if existing is not None:
            combined = int(existing[1]) + int(quantity)
            if combined > stock:
                _log.warning("add_item rejected user=%s product=%s qty=%s stock=%s", user_id, product_id, combined, stock)
                raise OutOfStock(product_id, combined, stock)
            cur.execute(
                "UPDATE storefront.cart_lines SET quantity = %s, added_at = %s WHERE cart_line_id = %s;",
                (combined, now, int(existing[0])),
            )
            return int(existing[0])

        if quantity > stock:
            _log.warning("add_item rejected user=%s product=%s qty=%s stock=%s", user_id, product_id, quantity, stock)
            raise OutOfStock(product_id, quantity, stock)

        cur.execute(
            """
            INSERT INTO storefront.cart_lines (user_id, product_id, quantity, added_at)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (user_id, product_id) DO NOTHING
            RETURNING cart_line_id;
            """,
            (int(user_id), int(product_id), int(quantity), now),
        )
        row = cur.fetchone()

    if row is None:
        # another request inserted the same line between our SELECT and INSERT
        raise TransactionFailure("Concurrent cart update, please retry")
    return int(row[0])


def remove_item(conn, user_id: int, cart_line_id: int) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            "DELETE FROM storefront.cart_lines WHERE cart_line_id = %s AND user_id = %s;",
            (int(cart_line_id), int(user_id)),
        )
        return cur.rowcount > 0


def update_quantity(conn, user_id: int, cart_line_id: int, quantity: int) -> bool:
    """Set a line's quantity. Returns False when the line was removed instead."""
    if quantity < 1:
        remove_item(conn, user_id, cart_line_id)
        return False

    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT c.product_id, p.stock, p.status
            FROM storefront.cart_lines c
            JOIN storefront.products p ON p.product_id = c.product_id
            WHERE c.cart_line_id = %s AND c.user_id = %s
            FOR UPDATE OF c;
            """,
            (int(cart_line_id), int(user_id)),
        )
        row = cur.fetchone()
        if row is None:
            raise NotFound(f"Cart line {cart_line_id} not found")

        product_id, stock = int(row[0]), int(row[1])
        if str(row[2]) != ProductStatus.ACTIVE.value:
            raise NotFound(f"Product {product_id} not found")
        if quantity > stock:
            raise OutOfStock(product_id, quantity, stock)

        cur.execute(
            "UPDATE storefront.cart_lines SET quantity = %s, added_at = %s WHERE cart_line_id = %s;",
            (int(quantity), _utc_now(), int(cart_line_id)),
        )
    return True


def clear(conn, user_id: int) -> int:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM storefront.cart_lines WHERE user_id = %s;", (int(user_id),))
        return cur.rowcount


def view(conn, user_id: int) -> CartOut:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT c.cart_line_id, c.product_id, p.name, p.price, c.quantity, p.stock, c.added_at
            FROM storefront.cart_lines c
            JOIN storefront.products p ON p.product_id = c.product_id
            WHERE c.user_id = %s
            ORDER BY c.cart_line_id;
            """,
            (int(user_id),),
        )
        rows = cur.fetchall()

    lines = []
    total = Decimal("0")
    item_count = 0
    for r in rows:
        price = Decimal(r[3])
        qty = int(r[4])
        line_total = price * qty
        total += line_total
        item_count += qty
        lines.append(
            CartLineOut(
                cart_line_id=int(r[0]),
                product_id=int(r[1]),
                product_name=str(r[2]),
                unit_price=float(price),
                quantity=qty,
                stock=int(r[5]),
                line_total=float(line_total),
                added_at=_ts(r[6]),
            )
        )

    return CartOut(user_id=int(user_id), lines=lines, item_count=item_count, total=float(total))

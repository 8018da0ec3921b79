from __future__ import annotations

from typing import List

from ..errors import NotFound
from ..models import ProductStatus, WishlistItemOut
from .catalog import PRODUCT_COLUMNS, product_from_row


def add(conn, user_id: int, product_id: int) -> bool:
    with conn.cursor() as cur:
        cur.execute("SELECT status FROM storefront.products WHERE product_id = %s;", (int(product_id),))
        row = cur.fetchone()
        if row is None or str(row[0]) != ProductStatus.ACTIVE.value:
            raise NotFound(f"Product {product_id} not found")

        cur.execute(
            """
            INSERT INTO storefront.wishlist_items (user_id, product_id)
            VALUES (%s, %s)
            ON CONFLICT (user_id, product_id) DO NOTHING;
            """,
            (int(user_id), int(product_id)),
        )
        return cur.rowcount > 0


def remove(conn, user_id: int, product_id: int) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            "DELETE FROM storefront.wishlist_items WHERE user_id = %s AND product_id = %s;",
            (int(user_id), int(product_id)),
        )
        return cur.rowcount > 0


def list_items(conn, user_id: int) -> List[WishlistItemOut]:
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT {PRODUCT_COLUMNS}, w.added_at
            FROM storefront.wishlist_items w
            JOIN storefront.products p ON p.product_id = w.product_id
            LEFT JOIN storefront.subcategories s ON s.subcategory_id = p.subcategory_id
            WHERE w.user_id = %s AND p.status = %s
            ORDER BY w.added_at DESC, w.wishlist_item_id DESC;
            """,
            (int(user_id), ProductStatus.ACTIVE.value),
        )
        rows = cur.fetchall()

    out: List[WishlistItemOut] = []
    for r in rows:
        product = product_from_row(r)
        added_at = r[10].isoformat() if hasattr(r[10], "isoformat") else str(r[10])
        out.append(WishlistItemOut(**product.model_dump(), added_at=added_at))
    return out

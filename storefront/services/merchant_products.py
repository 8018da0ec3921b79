from __future__ import annotations

import logging

from ..errors import NotFound, Unauthorized
from ..models import CreateProductIn, ProductOut, UpdateProductIn
from ..security import CurrentUser
from . import catalog


_log = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = ("name", "description", "price", "stock", "status")


def create_product(conn, actor: CurrentUser, data: CreateProductIn) -> ProductOut:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT 1 FROM storefront.subcategories WHERE subcategory_id = %s;",
            (int(data.subcategory_id),),
        )
        if cur.fetchone() is None:
            raise NotFound(f"Subcategory {data.subcategory_id} not found")

        cur.execute(
            """
            INSERT INTO storefront.products (
                name, description, price, stock, subcategory_id, merchant_id, image_url
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING product_id;
            """,
            (
                data.name.strip(),
                data.description,
                data.price,
                int(data.stock),
                int(data.subcategory_id),
                int(actor.user_id),
                data.image_url,
            ),
        )
        product_id = int(cur.fetchone()[0])

    _log.info("product created product_id=%s merchant=%s stock=%s", product_id, actor.user_id, data.stock)
    return catalog.get(conn, product_id, include_inactive=True)


def update_product(conn, actor: CurrentUser, product_id: int, changes: UpdateProductIn) -> ProductOut:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT merchant_id FROM storefront.products WHERE product_id = %s FOR UPDATE;",
            (int(product_id),),
        )
        row = cur.fetchone()
        if row is None:
            raise NotFound(f"Product {product_id} not found")
        if not actor.is_admin and (row[0] is None or int(row[0]) != int(actor.user_id)):
            raise Unauthorized(f"Product {product_id} belongs to another merchant")

        values = changes.model_dump(exclude_none=True, mode="python")
        if "status" in values:
            values["status"] = changes.status.value
        cols = [c for c in _UPDATABLE_COLUMNS if c in values]
        if cols:
            assignments = ", ".join(f"{c} = %s" for c in cols)
            cur.execute(
                f"UPDATE storefront.products SET {assignments} WHERE product_id = %s;",
                tuple(values[c] for c in cols) + (int(product_id),),
            )
            _log.info("product updated product_id=%s fields=%s by user=%s", product_id, cols, actor.user_id)

    return catalog.get(conn, product_id, include_inactive=True)

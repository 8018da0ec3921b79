"""Read path over the product catalog."""

from __future__ import annotations

from typing import List, Optional

from ..errors import NotFound
from ..models import ProductOut, ProductStatus


PRODUCT_COLUMNS = """
    p.product_id, p.name, p.description, p.price, p.stock,
    p.subcategory_id, s.name, p.merchant_id, p.image_url, p.status
"""

PRODUCT_FROM = """
    storefront.products p
    LEFT JOIN storefront.subcategories s ON s.subcategory_id = p.subcategory_id
"""


def product_from_row(r) -> ProductOut:
    stock = int(r[4])
    return ProductOut(
        product_id=int(r[0]),
        name=str(r[1]),
        description=r[2],
        price=float(r[3]),
        stock=stock,
        in_stock=stock > 0,
        subcategory_id=int(r[5]),
        subcategory_name=r[6],
        merchant_id=int(r[7]) if r[7] is not None else None,
        image_url=str(r[8] or ""),
        status=str(r[9]),
    )


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def list_products(conn, subcategory_id: Optional[int] = None, query: Optional[str] = None) -> List[ProductOut]:
    where = ["p.status = %s"]
    params: list = [ProductStatus.ACTIVE.value]

    if subcategory_id is not None:
        where.append("p.subcategory_id = %s")
        params.append(int(subcategory_id))

    q = (query or "").strip()
    if q:
        pattern = _like_pattern(q)
        where.append("(p.name ILIKE %s ESCAPE '\\' OR COALESCE(p.description, '') ILIKE %s ESCAPE '\\')")
        params.extend([pattern, pattern])

    where_sql = " AND ".join(where)
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM {PRODUCT_FROM}
            WHERE {where_sql}
            ORDER BY p.product_id;
            """,
            tuple(params),
        )
        rows = cur.fetchall()

    return [product_from_row(r) for r in rows]


def search(conn, query: str) -> List[ProductOut]:
    return list_products(conn, query=query)


def get(conn, product_id: int, include_inactive: bool = False) -> ProductOut:
    """Single product by id. Inactive products are only visible with ``include_inactive``."""
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM {PRODUCT_FROM}
            WHERE p.product_id = %s;
            """,
            (int(product_id),),
        )
        row = cur.fetchone()

    if row is None or (not include_inactive and str(row[9]) != ProductStatus.ACTIVE.value):
        raise NotFound(f"Product {product_id} not found")
    return product_from_row(row)

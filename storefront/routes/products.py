from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Query

from ..db import transaction
from ..models import ProductOut
from ..services import catalog


router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=List[ProductOut])
def list_products(
    q: Optional[str] = Query(None, max_length=100),
    subcategory_id: Optional[int] = Query(None, ge=1),
) -> List[ProductOut]:
    with transaction() as conn:
        return catalog.list_products(conn, subcategory_id=subcategory_id, query=q)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int) -> ProductOut:
    with transaction() as conn:
        return catalog.get(conn, product_id)

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ..db import transaction
from ..models import Role, WishlistItemOut
from ..security import CurrentUser, require_role
from ..services import wishlist


router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])

_shopper = require_role(Role.SHOPPER)


@router.get("", response_model=List[WishlistItemOut])
def wishlist_list(user: CurrentUser = Depends(_shopper)) -> List[WishlistItemOut]:
    with transaction() as conn:
        return wishlist.list_items(conn, user.user_id)


@router.post("/{product_id}")
def wishlist_add(product_id: int, user: CurrentUser = Depends(_shopper)):
    with transaction() as conn:
        added = wishlist.add(conn, user.user_id, product_id)
    return {"detail": "Added" if added else "Already in wishlist"}


@router.delete("/{product_id}")
def wishlist_remove(product_id: int, user: CurrentUser = Depends(_shopper)):
    with transaction() as conn:
        removed = wishlist.remove(conn, user.user_id, product_id)
    return {"detail": "Removed" if removed else "Not in wishlist"}

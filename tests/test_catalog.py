from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront.db import transaction
from storefront.errors import NotFound, Unauthorized
from storefront.models import CreateProductIn, Role, UpdateProductIn
from storefront.security import CurrentUser
from storefront.services import catalog, merchant_products, wishlist


def test_search_is_case_insensitive_over_name_and_description(seed):
    tent = seed.product(stock=1, name="Alpine Tent", description="Two person shelter")
    stove = seed.product(stock=1, name="Camp Stove", description="Fits any TENT vestibule")
    seed.product(stock=1, name="Headlamp", description="Bright")

    with transaction() as conn:
        found = catalog.search(conn, "tent")
    assert [p.product_id for p in found] == [tent, stove]


def test_search_escapes_wildcards(seed):
    sale = seed.product(stock=1, name="50% off socks")
    seed.product(stock=1, name="Wool socks")

    with transaction() as conn:
        assert [p.product_id for p in catalog.search(conn, "50%")] == [sale]
        assert catalog.search(conn, "_") == []


def test_blank_search_lists_active_products(seed):
    a = seed.product(stock=0)
    b = seed.product(stock=3)
    hidden = seed.product(stock=3)
    seed.set_product(hidden, status="inactive")

    with transaction() as conn:
        listed = catalog.search(conn, "  ")
    assert [p.product_id for p in listed] == [a, b]
    assert [p.in_stock for p in listed] == [False, True]


def test_get_product(seed):
    product = seed.product(stock=2, price="3.99", name="Mug")
    with transaction() as conn:
        got = catalog.get(conn, product)
        with pytest.raises(NotFound):
            catalog.get(conn, 123456)
    assert got.name == "Mug"
    assert got.price == 3.99
    assert got.subcategory_name == "Tents"


def test_list_by_subcategory(seed):
    product = seed.product(stock=2)
    with transaction() as conn:
        assert [p.product_id for p in catalog.list_products(conn, subcategory_id=seed.subcategory())] == [product]
        assert catalog.list_products(conn, subcategory_id=seed.subcategory() + 1) == []


def test_wishlist_add_is_idempotent(seed):
    user = seed.user()
    product = seed.product(stock=2)

    with transaction() as conn:
        assert wishlist.add(conn, user, product) is True
        assert wishlist.add(conn, user, product) is False
        items = wishlist.list_items(conn, user)
    assert [i.product_id for i in items] == [product]
    assert items[0].added_at

    with transaction() as conn:
        assert wishlist.remove(conn, user, product) is True
        assert wishlist.remove(conn, user, product) is False
        assert wishlist.list_items(conn, user) == []


def test_wishlist_unknown_product(seed):
    user = seed.user()
    with pytest.raises(NotFound):
        with transaction() as conn:
            wishlist.add(conn, user, 98765)


def test_merchant_creates_and_restocks_product(seed):
    merchant = CurrentUser(user_id=seed.user(role="merchant"), role=Role.MERCHANT)
    data = CreateProductIn(name="Trail Pack", price=Decimal("59.90"), stock=4, subcategory_id=seed.subcategory())

    with transaction() as conn:
        created = merchant_products.create_product(conn, merchant, data)
        updated = merchant_products.update_product(
            conn, merchant, created.product_id, UpdateProductIn(stock=10, price=Decimal("49.90"))
        )

    assert created.merchant_id == merchant.user_id
    assert updated.stock == 10
    assert updated.price == 49.9
    assert updated.name == "Trail Pack"


def test_merchant_cannot_edit_foreign_product(seed):
    owner = seed.user(role="merchant")
    stranger = CurrentUser(user_id=seed.user(role="merchant"), role=Role.MERCHANT)
    product = seed.product(stock=1, merchant_id=owner)

    with pytest.raises(Unauthorized):
        with transaction() as conn:
            merchant_products.update_product(conn, stranger, product, UpdateProductIn(stock=0))
    assert seed.stock(product) == 1


def test_create_product_unknown_subcategory(seed):
    merchant = CurrentUser(user_id=seed.user(role="merchant"), role=Role.MERCHANT)
    with pytest.raises(NotFound):
        with transaction() as conn:
            merchant_products.create_product(
                conn, merchant, CreateProductIn(name="Ghost", price=Decimal("1.00"), subcategory_id=777)
            )


def test_negative_stock_is_rejected_by_validation():
    with pytest.raises(ValidationError):
        UpdateProductIn(stock=-1)
    with pytest.raises(ValidationError):
        CreateProductIn(name="X", price=Decimal("0"), subcategory_id=1)


def test_inactive_products_are_hidden_from_shoppers(seed):
    user = seed.user()
    merchant = CurrentUser(user_id=seed.user(role="merchant"), role=Role.MERCHANT)
    product = seed.product(stock=2, merchant_id=merchant.user_id)
    with transaction() as conn:
        wishlist.add(conn, user, product)

    with transaction() as conn:
        retired = merchant_products.update_product(conn, merchant, product, UpdateProductIn(status="inactive"))
    assert retired.status == "inactive"

    with transaction() as conn:
        with pytest.raises(NotFound):
            catalog.get(conn, product)
        assert catalog.get(conn, product, include_inactive=True).product_id == product
        assert wishlist.list_items(conn, user) == []

    with pytest.raises(NotFound):
        with transaction() as conn:
            wishlist.add(conn, seed.user(), product)

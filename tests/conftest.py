import os
import uuid
from decimal import Decimal

import psycopg
import pytest

os.environ.setdefault("JWT_SECRET", "storefront-test-secret-0123456789abcdef")

from storefront.config import PostgresConfig, schema_sql_path  # noqa: E402
from storefront.db import transaction  # noqa: E402
from storefront.run_sql import run_sql_file  # noqa: E402
from storefront.security import create_access_token  # noqa: E402


_TABLES = (
    "storefront.wishlist_items, storefront.order_lines, storefront.order_headers, "
    "storefront.cart_lines, storefront.products, storefront.subcategories, "
    "storefront.categories, storefront.app_users"
)


def _db_available() -> bool:
    try:
        with psycopg.connect(PostgresConfig().dsn(connect_timeout=2)) as conn:
            conn.execute("SELECT 1", prepare=False)
        return True
    except psycopg.OperationalError:
        return False


@pytest.fixture(scope="session")
def _schema():
    if not _db_available():
        pytest.skip("PostgreSQL not reachable; set PGHOST/PGPORT/PGDATABASE/PGUSER/PGPASSWORD to run database tests")
    run_sql_file(schema_sql_path(), stop_on_error=True)


@pytest.fixture
def seed(_schema):
    with transaction() as conn:
        conn.execute(f"TRUNCATE TABLE {_TABLES} RESTART IDENTITY CASCADE;", prepare=False)
    return Seed()


class Seed:
    """Inserts fixture rows directly and reads back state for assertions."""

    def __init__(self):
        self._subcategory_id = None

    def user(self, role: str = "shopper") -> int:
        with transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO storefront.app_users (email, display_name, password_hash, role)
                    VALUES (%s, %s, %s, %s)
                    RETURNING user_id;
                    """,
                    (f"{uuid.uuid4().hex[:10]}@example.com", f"Test {role}", "pbkdf2_sha256$1$AA==$AA==", role),
                )
                return int(cur.fetchone()[0])

    def subcategory(self) -> int:
        if self._subcategory_id is None:
            with transaction() as conn:
                with conn.cursor() as cur:
                    cur.execute("INSERT INTO storefront.categories (name) VALUES ('Outdoor') RETURNING category_id;")
                    category_id = int(cur.fetchone()[0])
                    cur.execute(
                        "INSERT INTO storefront.subcategories (category_id, name) VALUES (%s, 'Tents') RETURNING subcategory_id;",
                        (category_id,),
                    )
                    self._subcategory_id = int(cur.fetchone()[0])
        return self._subcategory_id

    def product(
        self,
        stock: int,
        price: str = "10.00",
        merchant_id: int | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> int:
        subcategory_id = self.subcategory()
        with transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO storefront.products (name, description, price, stock, subcategory_id, merchant_id)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING product_id;
                    """,
                    (name or f"Product {uuid.uuid4().hex[:6]}", description, Decimal(price), stock, subcategory_id, merchant_id),
                )
                return int(cur.fetchone()[0])

    def stock(self, product_id: int) -> int:
        with transaction() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT stock FROM storefront.products WHERE product_id = %s;", (product_id,))
                return int(cur.fetchone()[0])

    def set_product(self, product_id: int, **values) -> None:
        cols = ", ".join(f"{k} = %s" for k in values)
        with transaction() as conn:
            conn.execute(
                f"UPDATE storefront.products SET {cols} WHERE product_id = %s;",
                tuple(values.values()) + (product_id,),
            )

    def count(self, table: str, user_id: int | None = None) -> int:
        sql = f"SELECT COUNT(*) FROM storefront.{table}"
        params: tuple = ()
        if user_id is not None:
            sql += " WHERE user_id = %s"
            params = (user_id,)
        with transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return int(cur.fetchone()[0])


@pytest.fixture
def bearer():
    def _headers(user_id: int, role: str = "shopper") -> dict:
        return {"Authorization": f"Bearer {create_access_token(subject=str(user_id), role=role)}"}

    return _headers

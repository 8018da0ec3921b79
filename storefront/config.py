from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(_PROJECT_ROOT / ".env")

SCHEMA = "storefront"


@dataclass(frozen=True)
class PostgresConfig:
    host: str = os.getenv("PGHOST", "localhost")
    port: int = int(os.getenv("PGPORT", "5432"))
    database: str = os.getenv("PGDATABASE", "storefront")
    user: str = os.getenv("PGUSER", "storefront")
    password: str = os.getenv("PGPASSWORD", "storefront")

    def dsn(self, connect_timeout: int | None = None) -> str:
        dsn = (
            f"host={self.host} port={self.port} dbname={self.database} "
            f"user={self.user} password={self.password}"
        )
        if connect_timeout is not None:
            dsn += f" connect_timeout={int(connect_timeout)}"
        return dsn


def lock_timeout_ms() -> int:
    try:
        return max(0, int(os.getenv("STOREFRONT_LOCK_TIMEOUT_MS", "5000")))
    except ValueError:
        return 5000


def schema_sql_path() -> Path:
    return _PROJECT_ROOT / "sql" / "00_schema.sql"

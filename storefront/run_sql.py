from __future__ import annotations

import argparse
import logging
from pathlib import Path

import psycopg

from .config import PostgresConfig, schema_sql_path
from .db import get_conn


_log = logging.getLogger(__name__)


def run_sql_file(sql_path: Path, stop_on_error: bool = False, cfg: PostgresConfig | None = None) -> bool:
    sql = sql_path.read_text(encoding="utf-8")
    with get_conn(cfg) as conn:
        try:
            conn.execute(sql, prepare=False)
            conn.commit()
        except psycopg.Error as e:
            if stop_on_error:
                raise
            _log.error("Error running %s: %s", sql_path, e)
            return False
    return True


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    parser = argparse.ArgumentParser(description="Apply a SQL file to the storefront database")
    parser.add_argument("--sql", default=str(schema_sql_path()), help="Path to a .sql file")
    parser.add_argument("--stop-on-error", action="store_true", help="Stop execution on error")
    args = parser.parse_args()

    if run_sql_file(Path(args.sql), stop_on_error=args.stop_on_error):
        _log.info("Applied %s", args.sql)
    else:
        raise SystemExit(1)


if __name__ == "__main__":
    main()

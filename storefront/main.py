from __future__ import annotations

import logging
import uuid

import psycopg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from .errors import StorefrontError
from .routes.api_auth import router as api_auth_router
from .routes.cart import router as cart_router
from .routes.merchant import router as merchant_router
from .routes.orders import router as orders_router
from .routes.products import router as products_router
from .routes.wishlist import router as wishlist_router


app = FastAPI(title="Storefront API")

_log = logging.getLogger("storefront")
if not _log.handlers:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    _log.info("rid=%s method=%s path=%s status=%s", rid, request.method, request.url.path, response.status_code)
    return response


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.name})


@app.exception_handler(psycopg.OperationalError)
async def database_unavailable_handler(request: Request, exc: psycopg.OperationalError):
    _log.error("database unavailable: %s", exc)
    return JSONResponse(
        status_code=503,
        content={
            "detail": (
                "PostgreSQL connection failed. Set PGHOST/PGPORT/PGDATABASE/PGUSER/PGPASSWORD in .env "
                "and ensure PostgreSQL is running."
            )
        },
    )


@app.exception_handler(psycopg.errors.UndefinedTable)
@app.exception_handler(psycopg.errors.InvalidSchemaName)
async def schema_missing_handler(request: Request, exc: psycopg.Error):
    return JSONResponse(
        status_code=500,
        content={"detail": "Storefront tables not found. Run: python3 -m storefront.run_sql --sql sql/00_schema.sql"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_auth_router)
app.include_router(products_router)
app.include_router(cart_router)
app.include_router(wishlist_router)
app.include_router(orders_router)
app.include_router(merchant_router)


@app.get("/health")
def health():
    return {"status": "ok"}

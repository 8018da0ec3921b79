"""Typed failures raised by the storefront services.

Every error carries the HTTP status the API renders it with, so route
handlers never translate by hand and nothing is swallowed on the way out.
"""

from __future__ import annotations


class StorefrontError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def name(self) -> str:
        return type(self).__name__


class NotFound(StorefrontError):
    status_code = 404


class OutOfStock(StorefrontError):
    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class Unauthorized(StorefrontError):
    status_code = 403


class InvalidTransition(StorefrontError):
    status_code = 409


class TransactionFailure(StorefrontError):
    status_code = 503


class ValidationFailed(StorefrontError):
    status_code = 400


class EmptyCart(ValidationFailed):
    def __init__(self):
        super().__init__("Cart is empty")

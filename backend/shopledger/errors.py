# Overview: Error kinds shared by services and routes.

"""
Every failure a service can raise carries a machine-readable ``kind`` and the
HTTP status the API answers with. Anything that is not a ShopError is an
INTERNAL failure and is never described to the client beyond a generic message.
"""

from __future__ import annotations


class ShopError(Exception):
    """Base class for expected business failures."""

    kind = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(ShopError):
    """Missing product, sale, lender, return, batch or report."""

    kind = "NOT_FOUND"
    status_code = 404


class ValidationError(ShopError, ValueError):
    """400-level input problem."""

    kind = "VALIDATION"
    status_code = 400


class InsufficientStockError(ShopError):
    """The movement would drive current stock below zero."""

    kind = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"available {available}, requested {requested}",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
            },
        )


class ConflictError(ShopError):
    """409-level conflict: concurrent write retries exhausted, or a duplicate."""

    kind = "CONFLICT"
    status_code = 409

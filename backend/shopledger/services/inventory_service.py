# Overview: Service-layer operations for inventory; manual adjustments and read-only stock views.

from __future__ import annotations

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_REASONS, REASON_ADJUSTMENT
from ..validation import MAX_QUANTITY, parse_date_range, require_positive_int
from .concurrency import run_with_retry
from .ledger_service import apply_movement
from .pagination import paginate
from .unit_of_work import UnitOfWork
"""
Inventory Time Semantics

- All internal datetimes are UTC-naive (tzinfo=None).
- API accepts ISO-8601 with 'Z' or offsets; inputs are normalized to UTC-naive.
- Date range filters are inclusive on both ends.

Stock is never edited here directly: adjustments go through the ledger as
ADJUSTMENT movements, and everything else in this module only reads.
"""


def adjust_stock(
    *,
    product_id: int,
    movement_type: str,
    quantity,
    note: str | None = None,
    actor_user_id: int | None = None,
    uow: UnitOfWork | None = None,
) -> dict:
    """
    Manual stock correction (damage, shrinkage, found stock).

    movement_type IN adds quantity, OUT removes it. Returns the updated
    product and the movement written.
    """
    movement_type = (movement_type or "").upper()
    if movement_type not in (MOVEMENT_IN, MOVEMENT_OUT):
        raise ValidationError("type must be IN or OUT")
    qty = require_positive_int("quantity", quantity, maximum=MAX_QUANTITY)
    delta = qty if movement_type == MOVEMENT_IN else -qty

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            product, movement = apply_movement(
                uow.session,
                product_id=product_id,
                delta=delta,
                reason=REASON_ADJUSTMENT,
                reference_type="product",
                reference_id=product_id,
                actor_user_id=actor_user_id,
                note=note or "Manual stock adjustment",
            )
        return {"product": product.to_dict(), "movement": movement.to_dict()}

    return run_with_retry(_op, uow=uow)


def list_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    reason: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Movement history, newest first."""
    query = db.session.query(StockMovement)

    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type:
        movement_type = movement_type.upper()
        if movement_type not in (MOVEMENT_IN, MOVEMENT_OUT):
            raise ValidationError("type must be IN or OUT")
        query = query.filter(StockMovement.type == movement_type)
    if reason:
        reason = reason.upper()
        if reason not in MOVEMENT_REASONS:
            raise ValidationError(f"Unknown movement reason: {reason}")
        query = query.filter(StockMovement.reason == reason)

    start, end = parse_date_range(start_date, end_date)
    if start is not None:
        query = query.filter(StockMovement.created_at >= start)
    if end is not None:
        query = query.filter(StockMovement.created_at <= end)

    query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())

    def _row(mv: StockMovement) -> dict:
        data = mv.to_dict()
        data["product_name"] = mv.product.name if mv.product else None
        return data

    return paginate(query, page, per_page, serialize=_row)


def get_inventory_valuation() -> dict:
    """Stock value at cost and at selling price, in cents."""
    cost_value, selling_value, total_items, product_count = db.session.query(
        func.coalesce(func.sum(Product.current_stock * Product.cost_price_cents), 0),
        func.coalesce(func.sum(Product.current_stock * Product.selling_price_cents), 0),
        func.coalesce(func.sum(Product.current_stock), 0),
        func.count(Product.id),
    ).one()

    return {
        "cost_value_cents": int(cost_value),
        "selling_value_cents": int(selling_value),
        "potential_profit_cents": int(selling_value) - int(cost_value),
        "total_items": int(total_items),
        "product_count": int(product_count),
    }


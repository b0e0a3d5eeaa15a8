# Overview: Service-layer operations for purchase batches (additional stock); every stock effect goes through the ledger.

from __future__ import annotations

from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import AdditionalStock, Product
from ..models.inventory import (
    REASON_PURCHASE,
    REASON_PURCHASE_CORRECTION,
    REASON_PURCHASE_REVERSAL,
)
from ..validation import MAX_PRICE_CENTS, MAX_QUANTITY, require_id, require_positive_int
from shopledger.time_utils import iso_week, parse_iso_date, utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import BATCH, next_document_number
from .ledger_service import apply_movement
from .unit_of_work import UnitOfWork
"""
Purchase Batch Invariants

- Creating a batch posts one PURCHASE movement of +quantity.
- Changing a batch's quantity posts a PURCHASE_CORRECTION movement of
  (new - old); deleting it posts a PURCHASE_REVERSAL of -quantity. The batch
  and its movement commit together.
- A reversal that would drive stock negative (the goods were already sold)
  fails with INSUFFICIENT_STOCK and the batch stays.
- week_number / year are the ISO-8601 week of purchase_date.
"""

BATCH_TEXT_FIELDS = ("supplier", "invoice_number", "notes")


def _parse_purchase_date(value):
    if value is None or value == "":
        return utcnow().date()
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        raise ValidationError("purchase_date must be an ISO-8601 date")
    if parsed is None:
        raise ValidationError("purchase_date must be an ISO-8601 date")
    return parsed


def add_stock(*, data: dict, actor_user_id: int | None = None, uow: UnitOfWork | None = None) -> AdditionalStock:
    if not isinstance(data, dict):
        raise ValidationError("Invalid additional stock payload")
    product_id = require_id("product_id", data.get("product_id"))
    quantity = require_positive_int("quantity", data.get("quantity"), maximum=MAX_QUANTITY)
    cost_per_unit = require_positive_int("cost_per_unit_cents", data.get("cost_per_unit_cents"), maximum=MAX_PRICE_CENTS)
    purchase_date = _parse_purchase_date(data.get("purchase_date"))
    week_number, year = iso_week(purchase_date)

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            if not session.get(Product, product_id):
                raise NotFoundError(f"Product {product_id} not found")

            batch = AdditionalStock(
                batch_number=next_document_number(session, document_type=BATCH),
                product_id=product_id,
                quantity=quantity,
                cost_per_unit_cents=cost_per_unit,
                total_cost_cents=quantity * cost_per_unit,
                purchase_date=purchase_date,
                week_number=week_number,
                year=year,
                created_by_user_id=actor_user_id,
            )
            for field in BATCH_TEXT_FIELDS:
                setattr(batch, field, data.get(field) or None)
            session.add(batch)
            session.flush()

            apply_movement(
                session,
                product_id=product_id,
                delta=quantity,
                reason=REASON_PURCHASE,
                reference_type="additional_stock",
                reference_id=batch.id,
                actor_user_id=actor_user_id,
                note=f"Additional stock: {batch.supplier or 'Unknown supplier'}",
            )
        return batch

    return run_with_retry(_op, uow=uow)


def update_stock_batch(*, batch_id: int, data: dict, actor_user_id: int | None = None,
                       uow: UnitOfWork | None = None) -> AdditionalStock:
    """
    Edit a purchase batch.

    product_id cannot change; move stock between products with a reversal and
    a new batch instead.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid additional stock payload")
    if "product_id" in data:
        raise ValidationError("product_id cannot be changed on an existing batch")

    new_quantity = None
    if "quantity" in data:
        new_quantity = require_positive_int("quantity", data.get("quantity"), maximum=MAX_QUANTITY)
    new_cost = None
    if "cost_per_unit_cents" in data:
        new_cost = require_positive_int("cost_per_unit_cents", data.get("cost_per_unit_cents"), maximum=MAX_PRICE_CENTS)
    new_date = _parse_purchase_date(data.get("purchase_date")) if "purchase_date" in data else None

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            batch = lock_for_update(session.query(AdditionalStock).filter_by(id=batch_id)).first()
            if not batch:
                raise NotFoundError(f"Additional stock batch {batch_id} not found")

            old_quantity = batch.quantity
            if new_quantity is not None:
                batch.quantity = new_quantity
            if new_cost is not None:
                batch.cost_per_unit_cents = new_cost
            if new_date is not None:
                batch.purchase_date = new_date
                batch.week_number, batch.year = iso_week(new_date)
            for field in BATCH_TEXT_FIELDS:
                if field in data:
                    setattr(batch, field, data.get(field) or None)
            batch.total_cost_cents = batch.quantity * batch.cost_per_unit_cents
            session.flush()

            delta = batch.quantity - old_quantity
            if delta:
                apply_movement(
                    session,
                    product_id=batch.product_id,
                    delta=delta,
                    reason=REASON_PURCHASE_CORRECTION,
                    reference_type="additional_stock",
                    reference_id=batch.id,
                    actor_user_id=actor_user_id,
                    note=f"Batch {batch.batch_number} quantity {old_quantity} -> {batch.quantity}",
                )
        return batch

    return run_with_retry(_op, uow=uow)


def delete_stock_batch(*, batch_id: int, actor_user_id: int | None = None, uow: UnitOfWork | None = None) -> dict:
    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            batch = lock_for_update(session.query(AdditionalStock).filter_by(id=batch_id)).first()
            if not batch:
                raise NotFoundError(f"Additional stock batch {batch_id} not found")

            snapshot = batch.to_dict()
            apply_movement(
                session,
                product_id=batch.product_id,
                delta=-batch.quantity,
                reason=REASON_PURCHASE_REVERSAL,
                reference_type="additional_stock",
                reference_id=batch.id,
                actor_user_id=actor_user_id,
                note=f"Batch {batch.batch_number} deleted",
            )
            session.delete(batch)
        return snapshot

    return run_with_retry(_op, uow=uow)


def list_additional_stock(*, week_number=None, year=None) -> dict:
    """Purchase batches for one ISO week (defaults to the current week)."""
    if week_number is None or year is None:
        current_week, current_year = iso_week(utcnow().date())
        week_number = current_week if week_number is None else week_number
        year = current_year if year is None else year
    week_number = require_positive_int("week_number", week_number, maximum=53)
    year = require_positive_int("year", year, maximum=9999)

    query = (
        db.session.query(AdditionalStock)
        .filter(AdditionalStock.week_number == week_number, AdditionalStock.year == year)
    )
    batches = query.order_by(AdditionalStock.purchase_date.desc(), AdditionalStock.id.desc()).all()
    total_cost = query.with_entities(func.coalesce(func.sum(AdditionalStock.total_cost_cents), 0)).scalar()

    return {
        "week_number": week_number,
        "year": year,
        "additional_stock": [b.to_dict(include_product=True) for b in batches],
        "total_cost_cents": int(total_cost or 0),
        "total_items": len(batches),
    }

# Overview: Service-layer operations for sales; ledger debit, lender credit and payments in one transaction.

from __future__ import annotations

from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Lender, Payment, Product, Sale
from ..models.customers import LENDER_SUSPENDED
from ..models.inventory import REASON_SALE
from ..models.sales import PAYMENT_PAID, PAYMENT_PARTIAL, PAYMENT_STATUSES, PAYMENT_UNPAID
from ..validation import (
    MAX_AMOUNT_CENTS,
    MAX_PRICE_CENTS,
    MAX_QUANTITY,
    parse_date_range,
    require_id,
    require_non_negative_int,
    require_positive_int,
)
from .concurrency import lock_for_update, run_with_retry
from .document_service import ORDER, PAYMENT, SALE, next_document_number
from .ledger_service import apply_movement
from .pagination import paginate
from .unit_of_work import UnitOfWork
"""
Sale Invariants (authoritative)

- A sale, its SALE stock movement and the lender balance change commit
  together or not at all.
- amount_paid_cents + amount_due_cents == total_amount_cents after every write.
- amount_paid_cents only grows; amount_due_cents only shrinks and never drops below 0.
- payment_status is derived from the amounts:
    PAID    amount_due == 0
    UNPAID  amount_paid == 0
    PARTIAL otherwise
- A lender's current_debt_cents never drops below 0.
"""

PAYMENT_METHODS = ("CASH", "CARD", "MOBILE_MONEY", "BANK_TRANSFER", "CREDIT", "OTHER")


def _derive_status(amount_paid: int, amount_due: int) -> str:
    if amount_due <= 0:
        return PAYMENT_PAID
    if amount_paid <= 0:
        return PAYMENT_UNPAID
    return PAYMENT_PARTIAL


def _normalize_method(value: str | None) -> str:
    method = (value or "CASH").strip().upper()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    return method


def normalize_sale_input(data: dict) -> dict:
    """
    Validate one sale line before any database work.

    unit_price_cents may be omitted; it then defaults to the product's
    selling price inside the transaction.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid sale payload")

    product_id = require_id("product_id", data.get("product_id"))
    quantity = require_positive_int("quantity", data.get("quantity"), maximum=MAX_QUANTITY)

    unit_price = data.get("unit_price_cents")
    if unit_price is not None:
        unit_price = require_positive_int("unit_price_cents", unit_price, maximum=MAX_PRICE_CENTS)

    amount_paid = data.get("amount_paid_cents")
    if amount_paid is not None:
        amount_paid = require_non_negative_int("amount_paid_cents", amount_paid, maximum=MAX_AMOUNT_CENTS)

    status = data.get("payment_status")
    if status is not None:
        status = str(status).strip().upper()
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of {', '.join(PAYMENT_STATUSES)}")

    customer_id = data.get("customer_id")
    if customer_id is not None:
        customer_id = require_id("customer_id", customer_id)

    return {
        "product_id": product_id,
        "quantity": quantity,
        "unit_price_cents": unit_price,
        "customer_id": customer_id,
        "customer_name": (data.get("customer_name") or "").strip() or None,
        "payment_method": _normalize_method(data.get("payment_method")),
        "payment_status": status,
        "amount_paid_cents": amount_paid,
        "notes": data.get("notes"),
    }


def _create_sale_inner(
    session,
    line: dict,
    *,
    sold_by_user_id: int | None,
    order_number: str | None = None,
) -> Sale:
    """Create one sale inside the caller's transaction (no commit, no retry)."""
    product = session.get(Product, line["product_id"])
    if not product:
        raise NotFoundError(f"Product {line['product_id']} not found")

    unit_price = line["unit_price_cents"]
    if unit_price is None:
        unit_price = product.selling_price_cents
        if unit_price <= 0:
            raise ValidationError("unit_price_cents is required (product has no selling price)")

    quantity = line["quantity"]
    total = quantity * unit_price

    amount_paid = line["amount_paid_cents"]
    if amount_paid is None:
        amount_paid = total if line["payment_status"] == PAYMENT_PAID else 0
    if amount_paid > total:
        raise ValidationError(
            "amount_paid_cents cannot exceed the sale total",
            details={"total_amount_cents": total, "amount_paid_cents": amount_paid},
        )
    amount_due = total - amount_paid

    status = _derive_status(amount_paid, amount_due)
    if line["payment_status"] is not None and line["payment_status"] != status:
        raise ValidationError(
            f"payment_status {line['payment_status']} does not match the amounts (expected {status})",
            details={"expected": status},
        )

    lender = None
    if line["customer_id"] is not None:
        lender = lock_for_update(session.query(Lender).filter_by(id=line["customer_id"])).first()
        if not lender:
            raise NotFoundError(f"Lender {line['customer_id']} not found")
        if status != PAYMENT_PAID and lender.status == LENDER_SUSPENDED:
            raise ValidationError(f"Lender {lender.customer_code} is suspended and cannot buy on credit")

    sale = Sale(
        sale_number=next_document_number(session, document_type=SALE),
        order_number=order_number,
        product_id=product.id,
        quantity=quantity,
        unit_price_cents=unit_price,
        total_amount_cents=total,
        customer_id=lender.id if lender else None,
        customer_name=line["customer_name"] or (lender.name if lender else None),
        payment_method=line["payment_method"],
        payment_status=status,
        amount_paid_cents=amount_paid,
        amount_due_cents=amount_due,
        overpaid_cents=0,
        notes=line["notes"],
        sold_by_user_id=sold_by_user_id,
    )
    session.add(sale)
    session.flush()

    apply_movement(
        session,
        product_id=product.id,
        delta=-quantity,
        reason=REASON_SALE,
        reference_type="sale",
        reference_id=sale.id,
        actor_user_id=sold_by_user_id,
        note=f"Sale {sale.sale_number}",
    )

    if lender is not None and status != PAYMENT_PAID:
        lender.current_debt_cents += amount_due
        lender.total_purchased_cents += total
        session.flush()

    return sale


def create_sale(*, data: dict, sold_by_user_id: int | None = None, uow: UnitOfWork | None = None) -> Sale:
    line = normalize_sale_input(data)
    uow = uow or UnitOfWork()

    def _op():
        with uow:
            sale = _create_sale_inner(uow.session, line, sold_by_user_id=sold_by_user_id)
        return sale

    return run_with_retry(_op, uow=uow)


def create_bulk_sale(*, items, common: dict | None = None, sold_by_user_id: int | None = None,
                     uow: UnitOfWork | None = None) -> dict:
    """
    Sell several products as one order.

    common carries fields shared by every line (customer, payment method,
    notes) unless a line overrides them. All lines share one order number and
    one transaction: any failing line aborts the whole order.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    common = common or {}
    lines = [normalize_sale_input({**common, **item}) for item in items]

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            order_number = next_document_number(session, document_type=ORDER)
            sales = [
                _create_sale_inner(session, line, sold_by_user_id=sold_by_user_id, order_number=order_number)
                for line in lines
            ]
        return order_number, sales

    order_number, sales = run_with_retry(_op, uow=uow)
    return {
        "order_number": order_number,
        "sales": sales,
        "total_amount_cents": sum(s.total_amount_cents for s in sales),
    }


def _update_payment_inner(session, sale_id: int, amount: int, payment_method: str | None,
                          received_by_user_id: int | None) -> Sale:
    sale = lock_for_update(session.query(Sale).filter_by(id=sale_id)).first()
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    if sale.amount_due_cents <= 0:
        raise ValidationError(f"Sale {sale.sale_number} has nothing due")

    applied = min(amount, sale.amount_due_cents)
    overpaid = amount - applied

    sale.amount_paid_cents += applied
    sale.amount_due_cents = max(sale.total_amount_cents - sale.amount_paid_cents, 0)
    sale.overpaid_cents += overpaid
    sale.payment_status = PAYMENT_PAID if sale.amount_due_cents <= 0 else PAYMENT_PARTIAL
    if payment_method:
        sale.payment_method = payment_method

    if sale.customer_id is not None:
        lender = lock_for_update(session.query(Lender).filter_by(id=sale.customer_id)).first()
        if lender is not None:
            lender.current_debt_cents -= min(applied, lender.current_debt_cents)
            lender.total_paid_cents += applied
            session.add(Payment(
                payment_number=next_document_number(session, document_type=PAYMENT),
                lender_id=lender.id,
                sale_id=sale.id,
                amount_cents=applied,
                overpaid_cents=overpaid,
                payment_method=payment_method or sale.payment_method,
                reference=sale.sale_number,
                received_by_user_id=received_by_user_id,
            ))

    session.flush()
    return sale


def update_payment(*, sale_id: int, amount_cents, payment_method: str | None = None,
                   received_by_user_id: int | None = None, uow: UnitOfWork | None = None) -> Sale:
    """
    Record money received against a sale.

    Money beyond what is due is kept in overpaid_cents and never counted as
    paid, so amount_paid + amount_due == total still holds.
    """
    amount = require_positive_int("amount_cents", amount_cents, maximum=MAX_PRICE_CENTS)
    method = _normalize_method(payment_method) if payment_method else None

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            sale = _update_payment_inner(uow.session, sale_id, amount, method, received_by_user_id)
        return sale

    return run_with_retry(_op, uow=uow)


def get_sale(sale_id: int) -> dict:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    data = sale.to_dict()
    data["returns"] = [r.to_dict(include_related=False) for r in sale.returns]
    data["payments"] = [p.to_dict() for p in sale.payments]
    return data


def _filtered_sales(start_date=None, end_date=None):
    query = db.session.query(Sale)
    start, end = parse_date_range(start_date, end_date)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)
    return query


def list_sales(
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    status: str | None = None,
    customer_id: int | None = None,
    product_id: int | None = None,
    order_number: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = _filtered_sales(start_date, end_date)
    if status:
        status = status.upper()
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(PAYMENT_STATUSES)}")
        query = query.filter(Sale.payment_status == status)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if product_id is not None:
        query = query.filter(Sale.product_id == product_id)
    if order_number:
        query = query.filter(Sale.order_number == order_number)

    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    return paginate(query, page, per_page)


def get_sales_summary(*, start_date: str | None = None, end_date: str | None = None) -> dict:
    base = _filtered_sales(start_date, end_date)
    count, revenue, collected = base.with_entities(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_amount_cents), 0),
        func.coalesce(func.sum(Sale.amount_paid_cents), 0),
    ).one()
    pending = (
        base.filter(Sale.payment_status != PAYMENT_PAID)
        .with_entities(func.coalesce(func.sum(Sale.amount_due_cents), 0))
        .scalar()
    )
    return {
        "total_sales": int(count),
        "total_revenue_cents": int(revenue),
        "total_collected_cents": int(collected),
        "pending_payments_cents": int(pending or 0),
    }

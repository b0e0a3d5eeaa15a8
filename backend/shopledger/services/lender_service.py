# Overview: Service-layer operations for lenders (credit customers); master data, debt view and direct payments.

from __future__ import annotations

from sqlalchemy import func, or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Lender, Payment, Sale
from ..models.customers import LENDER_STATUSES
from ..validation import (
    MAX_PRICE_CENTS,
    ModelValidationPolicy,
    enforce_rules_lender,
    require_positive_int,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .document_service import CUSTOMER, PAYMENT, next_document_number
from .pagination import paginate
from .unit_of_work import UnitOfWork

LENDER_MUTABLE_FIELDS = {"name", "phone", "email", "address", "credit_limit_cents", "notes"}

LENDER_POLICY = ModelValidationPolicy(
    writable_fields=LENDER_MUTABLE_FIELDS,
    required_on_create={"name"},
)

RECENT_ACTIVITY = 20


def create_lender(*, payload: dict, uow: UnitOfWork | None = None) -> Lender:
    patch = validate_payload(model=Lender, payload=payload, policy=LENDER_POLICY, partial=False)
    enforce_rules_lender(patch)

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            lender = Lender(customer_code=next_document_number(session, document_type=CUSTOMER))
            for k, v in patch.items():
                setattr(lender, k, v)
            session.add(lender)
            session.flush()
        return lender

    return run_with_retry(_op, uow=uow)


def update_lender(*, lender_id: int, payload: dict, uow: UnitOfWork | None = None) -> Lender:
    """Balances and status are not writable here."""
    patch = validate_payload(model=Lender, payload=payload, policy=LENDER_POLICY, partial=True)
    enforce_rules_lender(patch)

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            lender = lock_for_update(uow.session.query(Lender).filter_by(id=lender_id)).first()
            if not lender:
                raise NotFoundError(f"Lender {lender_id} not found")
            for k, v in patch.items():
                setattr(lender, k, v)
        return lender

    return run_with_retry(_op, uow=uow)


def set_lender_status(*, lender_id: int, status: str, uow: UnitOfWork | None = None) -> Lender:
    status = (status or "").strip().upper()
    if status not in LENDER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(LENDER_STATUSES)}")

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            lender = lock_for_update(uow.session.query(Lender).filter_by(id=lender_id)).first()
            if not lender:
                raise NotFoundError(f"Lender {lender_id} not found")
            lender.status = status
        return lender

    return run_with_retry(_op, uow=uow)


def record_payment(
    *,
    lender_id: int,
    amount_cents,
    payment_method: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
    received_by_user_id: int | None = None,
    uow: UnitOfWork | None = None,
) -> Payment:
    """
    Direct payment against a lender's outstanding debt (not tied to a sale).

    Paying more than is owed is rejected rather than floored, so debt can
    never go negative and no money is silently dropped.
    """
    amount = require_positive_int("amount_cents", amount_cents, maximum=MAX_PRICE_CENTS)
    method = (payment_method or "CASH").strip().upper()

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            lender = lock_for_update(session.query(Lender).filter_by(id=lender_id)).first()
            if not lender:
                raise NotFoundError(f"Lender {lender_id} not found")
            if amount > lender.current_debt_cents:
                raise ValidationError(
                    "Payment exceeds the lender's current debt",
                    details={"current_debt_cents": lender.current_debt_cents, "amount_cents": amount},
                )

            lender.current_debt_cents -= amount
            lender.total_paid_cents += amount

            payment = Payment(
                payment_number=next_document_number(session, document_type=PAYMENT),
                lender_id=lender.id,
                amount_cents=amount,
                overpaid_cents=0,
                payment_method=method,
                reference=reference,
                notes=notes,
                received_by_user_id=received_by_user_id,
            )
            session.add(payment)
            session.flush()
        return payment

    return run_with_retry(_op, uow=uow)


def get_lender(lender_id: int) -> dict:
    lender = db.session.get(Lender, lender_id)
    if not lender:
        raise NotFoundError(f"Lender {lender_id} not found")

    sales = (
        db.session.query(Sale)
        .filter(Sale.customer_id == lender_id)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(RECENT_ACTIVITY)
        .all()
    )
    payments = (
        db.session.query(Payment)
        .filter(Payment.lender_id == lender_id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .limit(RECENT_ACTIVITY)
        .all()
    )
    data = lender.to_dict()
    data["recent_sales"] = [s.to_dict(include_related=False) for s in sales]
    data["recent_payments"] = [p.to_dict() for p in payments]
    return data


def list_lenders(
    *,
    search: str | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Lender)
    if status:
        status = status.upper()
        if status not in LENDER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(LENDER_STATUSES)}")
        query = query.filter(Lender.status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Lender.name.ilike(like),
                Lender.phone.ilike(like),
                Lender.email.ilike(like),
                Lender.customer_code.ilike(like),
            )
        )
    query = query.order_by(Lender.name.asc(), Lender.id.asc())
    return paginate(query, page, per_page)


def list_lenders_with_debt() -> dict:
    lenders = (
        db.session.query(Lender)
        .filter(Lender.current_debt_cents > 0)
        .order_by(Lender.current_debt_cents.desc(), Lender.id.asc())
        .all()
    )
    total = (
        db.session.query(func.coalesce(func.sum(Lender.current_debt_cents), 0))
        .filter(Lender.current_debt_cents > 0)
        .scalar()
    )
    return {
        "lenders": [l.to_dict() for l in lenders],
        "total_debt_cents": int(total or 0),
        "count": len(lenders),
    }

# Overview: Service-layer operations for returns; ledger credit plus the PENDING -> APPROVED -> COMPLETED lifecycle.

from __future__ import annotations

from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Return, Sale
from ..models.documents import RETURN_APPROVED, RETURN_COMPLETED, RETURN_PENDING, RETURN_STATUSES
from ..models.inventory import REASON_RETURN
from ..validation import (
    MAX_PRICE_CENTS,
    MAX_QUANTITY,
    parse_date_range,
    require_id,
    require_non_negative_int,
    require_positive_int,
)
from shopledger.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import RETURN, next_document_number
from .ledger_service import apply_movement
from .pagination import paginate
from .unit_of_work import UnitOfWork


class ReturnError(ValidationError):
    """Raised when a return violates quantity or lifecycle rules."""
    pass


# status -> the only status it may move to
ALLOWED_TRANSITIONS = {
    RETURN_PENDING: RETURN_APPROVED,
    RETURN_APPROVED: RETURN_COMPLETED,
}


def _returned_quantity(session, sale_id: int) -> int:
    return int(
        session.query(func.coalesce(func.sum(Return.quantity), 0))
        .filter(Return.sale_id == sale_id)
        .scalar()
    )


def create_return(*, data: dict, returned_by_user_id: int | None = None, uow: UnitOfWork | None = None) -> Return:
    """
    File a return against a sale.

    Stock goes back on the shelf immediately (RETURN movement) while the
    refund itself waits for approval and completion.

    Rules:
    - product_id defaults to the sale's product and must match it
    - quantity <= sale quantity minus everything already returned on that sale
    - refund_amount_cents defaults to unit price x quantity
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid return payload")
    sale_id = require_id("sale_id", data.get("sale_id"))
    quantity = require_positive_int("quantity", data.get("quantity"), maximum=MAX_QUANTITY)
    product_id = data.get("product_id")
    if product_id is not None:
        product_id = require_id("product_id", product_id)
    refund = data.get("refund_amount_cents")
    if refund is not None:
        refund = require_non_negative_int("refund_amount_cents", refund, maximum=MAX_PRICE_CENTS)

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            sale = lock_for_update(session.query(Sale).filter_by(id=sale_id)).first()
            if not sale:
                raise NotFoundError(f"Sale {sale_id} not found")
            if product_id is not None and product_id != sale.product_id:
                raise ReturnError(
                    "product_id does not match the sale",
                    details={"sale_product_id": sale.product_id, "product_id": product_id},
                )

            returnable = sale.quantity - _returned_quantity(session, sale.id)
            if quantity > returnable:
                raise ReturnError(
                    f"Cannot return {quantity}; only {returnable} left to return on {sale.sale_number}",
                    details={"returnable": returnable, "requested": quantity},
                )

            refund_amount = refund if refund is not None else sale.unit_price_cents * quantity

            ret = Return(
                return_number=next_document_number(session, document_type=RETURN),
                sale_id=sale.id,
                product_id=sale.product_id,
                quantity=quantity,
                reason=data.get("reason"),
                refund_amount_cents=refund_amount,
                refund_method=(data.get("refund_method") or None),
                notes=data.get("notes"),
                status=RETURN_PENDING,
                returned_by_user_id=returned_by_user_id,
            )
            session.add(ret)
            session.flush()

            apply_movement(
                session,
                product_id=sale.product_id,
                delta=quantity,
                reason=REASON_RETURN,
                reference_type="return",
                reference_id=ret.id,
                actor_user_id=returned_by_user_id,
                note=f"Return {ret.return_number} for {sale.sale_number}",
            )
        return ret

    return run_with_retry(_op, uow=uow)


def _transition(return_id: int, target: str, user_id: int | None, uow: UnitOfWork | None) -> Return:
    uow = uow or UnitOfWork()

    def _op():
        with uow:
            ret = lock_for_update(uow.session.query(Return).filter_by(id=return_id)).first()
            if not ret:
                raise NotFoundError(f"Return {return_id} not found")
            if ALLOWED_TRANSITIONS.get(ret.status) != target:
                raise ReturnError(
                    f"Cannot move return from {ret.status} to {target}",
                    details={"status": ret.status, "target": target},
                )
            ret.status = target
            now = utcnow()
            if target == RETURN_APPROVED:
                ret.approved_at = now
                ret.approved_by_user_id = user_id
            else:
                ret.completed_at = now
                ret.completed_by_user_id = user_id
        return ret

    return run_with_retry(_op, uow=uow)


def approve_return(return_id: int, user_id: int | None = None, uow: UnitOfWork | None = None) -> Return:
    return _transition(return_id, RETURN_APPROVED, user_id, uow)


def complete_return(return_id: int, user_id: int | None = None, uow: UnitOfWork | None = None) -> Return:
    return _transition(return_id, RETURN_COMPLETED, user_id, uow)


def get_return(return_id: int) -> Return:
    ret = db.session.get(Return, return_id)
    if not ret:
        raise NotFoundError(f"Return {return_id} not found")
    return ret


def list_returns(
    *,
    status: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Return)
    if status:
        status = status.upper()
        if status not in RETURN_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(RETURN_STATUSES)}")
        query = query.filter(Return.status == status)
    start, end = parse_date_range(start_date, end_date)
    if start is not None:
        query = query.filter(Return.created_at >= start)
    if end is not None:
        query = query.filter(Return.created_at <= end)

    query = query.order_by(Return.created_at.desc(), Return.id.desc())
    return paginate(query, page, per_page)

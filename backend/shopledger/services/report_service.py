# Overview: Service-layer operations for weekly stock reports; read-only snapshots of product stock.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, WeeklyStockReport
from ..models.documents import REPORT_CLOSED, REPORT_OPEN
from shopledger.time_utils import iso_week, parse_iso_date, utcnow, week_bounds
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate
from .unit_of_work import UnitOfWork
"""
Weekly report semantics

- One report per ISO week (week_number, year taken from start_date).
- opening_stock is captured when the report is created, closing_stock when it
  is closed; each maps str(product_id) -> current_stock at that moment.
- total_value_cents is SUM(current_stock * cost_price_cents) at the latest snapshot.
- While a report is OPEN its variance is computed against live stock and is
  flagged provisional.
- Reports never write products or movements.
"""


def _snapshot(session) -> tuple[dict, int]:
    rows = session.query(Product.id, Product.current_stock, Product.cost_price_cents).all()
    stock = {str(pid): qty for pid, qty, _ in rows}
    value = sum(qty * cost for _, qty, cost in rows)
    return stock, value


def _parse_required_date(name: str, value):
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")
    if parsed is None:
        raise ValidationError(f"{name} is required")
    return parsed


def _create_report_inner(session, start, end, notes, user_id) -> WeeklyStockReport:
    week_number, year = iso_week(start)
    existing = session.query(WeeklyStockReport.id).filter_by(week_number=week_number, year=year).first()
    if existing:
        raise ConflictError(
            f"Report already exists for week {week_number} of {year}",
            details={"report_id": existing[0], "week_number": week_number, "year": year},
        )

    opening, value = _snapshot(session)
    report = WeeklyStockReport(
        week_number=week_number,
        year=year,
        start_date=start,
        end_date=end,
        opening_stock=opening,
        closing_stock=None,
        total_value_cents=value,
        status=REPORT_OPEN,
        notes=notes,
        created_by_user_id=user_id,
    )
    try:
        with session.begin_nested():
            session.add(report)
    except IntegrityError:
        raise ConflictError(
            f"Report already exists for week {week_number} of {year}",
            details={"week_number": week_number, "year": year},
        )
    return report


def create_report(*, start_date, end_date, notes: str | None = None, user_id: int | None = None,
                  uow: UnitOfWork | None = None) -> WeeklyStockReport:
    start = _parse_required_date("start_date", start_date)
    end = _parse_required_date("end_date", end_date)
    if end < start:
        raise ValidationError("end_date must not be before start_date")

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            report = _create_report_inner(uow.session, start, end, notes, user_id)
        return report

    return run_with_retry(_op, uow=uow)


def close_report(*, report_id: int, notes: str | None = None, uow: UnitOfWork | None = None) -> WeeklyStockReport:
    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            report = lock_for_update(session.query(WeeklyStockReport).filter_by(id=report_id)).first()
            if not report:
                raise NotFoundError(f"Report {report_id} not found")
            if report.status == REPORT_CLOSED:
                raise ValidationError(f"Report {report_id} is already closed")

            closing, value = _snapshot(session)
            report.closing_stock = closing
            report.total_value_cents = value
            report.status = REPORT_CLOSED
            report.closed_at = utcnow()
            if notes:
                report.notes = notes
        return report

    return run_with_retry(_op, uow=uow)


def get_or_create_current_report(*, user_id: int | None = None, today=None,
                                 uow: UnitOfWork | None = None) -> WeeklyStockReport:
    """The report for the ISO week (Monday..Sunday) holding today."""
    today = today or utcnow().date()
    week_number, year = iso_week(today)
    report = db.session.query(WeeklyStockReport).filter_by(week_number=week_number, year=year).first()
    if report:
        return report

    start, end = week_bounds(today)
    try:
        return create_report(
            start_date=start.date(),
            end_date=end.date(),
            user_id=user_id,
            uow=uow,
        )
    except ConflictError:
        # Created concurrently by another request
        return db.session.query(WeeklyStockReport).filter_by(week_number=week_number, year=year).one()


def get_report(report_id: int) -> dict:
    report = db.session.get(WeeklyStockReport, report_id)
    if not report:
        raise NotFoundError(f"Report {report_id} not found")

    ids = {int(k) for k in (report.opening_stock or {})} | {int(k) for k in (report.closing_stock or {})}
    products = db.session.query(Product).filter(Product.id.in_(ids)).all() if ids else []

    data = report.to_dict()
    data["products"] = {
        str(p.id): {
            "id": p.id,
            "name": p.name,
            "cost_price_cents": p.cost_price_cents,
            "selling_price_cents": p.selling_price_cents,
        }
        for p in products
    }
    return data


def get_variance(report_id: int) -> dict:
    """
    Per-product stock change over the report's week, largest change first.

    variance = closing - opening; variance_value_cents = variance * cost price.
    """
    report = db.session.get(WeeklyStockReport, report_id)
    if not report:
        raise NotFoundError(f"Report {report_id} not found")

    provisional = report.status != REPORT_CLOSED
    opening = report.opening_stock or {}
    ids = {int(k) for k in opening}
    if not provisional:
        ids |= {int(k) for k in (report.closing_stock or {})}

    products = db.session.query(Product).filter(Product.id.in_(ids)).all() if ids else []

    rows = []
    for p in products:
        key = str(p.id)
        opening_qty = int(opening.get(key, 0))
        if provisional:
            closing_qty = p.current_stock
        else:
            closing_qty = int((report.closing_stock or {}).get(key, 0))
        variance = closing_qty - opening_qty
        rows.append({
            "product_id": p.id,
            "product_name": p.name,
            "opening": opening_qty,
            "closing": closing_qty,
            "variance": variance,
            "variance_value_cents": variance * p.cost_price_cents,
        })
    rows.sort(key=lambda r: (-abs(r["variance"]), r["product_id"]))

    return {
        "report": report.to_dict(),
        "provisional": provisional,
        "variances": rows,
    }


def list_reports(*, year=None, page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(WeeklyStockReport)
    if year is not None:
        query = query.filter(WeeklyStockReport.year == int(year))
    query = query.order_by(WeeklyStockReport.year.desc(), WeeklyStockReport.week_number.desc())
    return paginate(query, page, per_page)

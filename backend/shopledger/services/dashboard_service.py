# Overview: Service-layer read views for the dashboard; headline figures, sales chart and category values.

"""
Dashboard Service

Read-only aggregates over products, sales, returns and lenders. Nothing here
writes; every figure is in cents.

Periods are UTC. "This week" is the ISO week (Monday start), the same week
the stock reports use.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Lender, Product, Return, Sale
from ..models.documents import RETURN_PENDING
from shopledger.time_utils import utcnow, week_bounds

TOP_SELLING_DAYS = 30
TOP_SELLING_LIMIT = 5
RECENT_LIMIT = 10

CHART_PERIODS = ("week", "month", "year")
UNCATEGORIZED = "Uncategorized"


def _sales_since(start: datetime) -> dict:
    count, amount = db.session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_amount_cents), 0),
    ).filter(Sale.sale_date >= start).one()
    return {"count": int(count), "amount_cents": int(amount)}


def _top_selling(since: datetime) -> list[dict]:
    rows = (
        db.session.query(
            Sale.product_id,
            func.sum(Sale.quantity).label("qty"),
            func.sum(Sale.total_amount_cents).label("revenue"),
        )
        .filter(Sale.sale_date >= since)
        .group_by(Sale.product_id)
        .order_by(func.sum(Sale.quantity).desc(), Sale.product_id.asc())
        .limit(TOP_SELLING_LIMIT)
        .all()
    )
    products = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_([r.product_id for r in rows])).all()
    } if rows else {}
    return [
        {
            "product": products[r.product_id].to_dict() if r.product_id in products else None,
            "quantity_sold": int(r.qty or 0),
            "total_revenue_cents": int(r.revenue or 0),
        }
        for r in rows
    ]


def get_dashboard_stats() -> dict:
    now = utcnow()
    today = datetime(now.year, now.month, now.day)
    week_start, _ = week_bounds(today)
    month_start = datetime(now.year, now.month, 1)

    total_products, stock_value = db.session.query(
        func.count(Product.id),
        func.coalesce(func.sum(Product.current_stock * Product.cost_price_cents), 0),
    ).one()
    low_stock = db.session.query(Product).filter(Product.current_stock <= Product.reorder_level)
    pending_returns = db.session.query(func.count(Return.id)).filter(Return.status == RETURN_PENDING).scalar()
    total_debt = db.session.query(func.coalesce(func.sum(Lender.current_debt_cents), 0)).scalar()

    recent_sales = (
        db.session.query(Sale)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )
    low_stock_products = (
        low_stock.order_by(Product.current_stock.asc(), Product.id.asc()).limit(RECENT_LIMIT).all()
    )

    return {
        "overview": {
            "total_products": int(total_products),
            "total_stock_value_cents": int(stock_value),
            "low_stock_count": low_stock.count(),
            "pending_returns": int(pending_returns or 0),
            "total_debt_cents": int(total_debt or 0),
        },
        "sales": {
            "today": _sales_since(today),
            "this_week": _sales_since(week_start),
            "this_month": _sales_since(month_start),
        },
        "top_selling_products": _top_selling(now - timedelta(days=TOP_SELLING_DAYS)),
        "recent_sales": [s.to_dict() for s in recent_sales],
        "low_stock_products": [p.to_dict() for p in low_stock_products],
    }


def get_sales_chart(period: str | None = None) -> dict:
    """
    Sales totals per day (week, month) or per month (year).

    An unknown period falls back to week. Buckets with no sales are omitted.
    """
    period = (period or "week").lower()
    if period not in CHART_PERIODS:
        period = "week"

    now = utcnow()
    if period == "week":
        start = now - timedelta(days=7)
    elif period == "month":
        start = datetime(now.year, now.month, 1)
    else:
        start = datetime(now.year, 1, 1)
    key_format = "%Y-%m" if period == "year" else "%Y-%m-%d"

    rows = (
        db.session.query(Sale.sale_date, Sale.total_amount_cents)
        .filter(Sale.sale_date >= start)
        .order_by(Sale.sale_date.asc(), Sale.id.asc())
        .all()
    )

    buckets: dict[str, int] = {}
    for sale_date, amount in rows:
        key = sale_date.strftime(key_format)
        buckets[key] = buckets.get(key, 0) + int(amount)

    return {
        "period": period,
        "labels": list(buckets.keys()),
        "data": list(buckets.values()),
    }


def get_inventory_by_category() -> list[dict]:
    rows = (
        db.session.query(
            Product.category,
            func.coalesce(func.sum(Product.current_stock * Product.cost_price_cents), 0),
            func.count(Product.id),
        )
        .group_by(Product.category)
        .all()
    )
    result = [
        {"category": category or UNCATEGORIZED, "value_cents": int(value), "items": int(items)}
        for category, value, items in rows
    ]
    # NULL and "" both land in Uncategorized
    merged: dict[str, dict] = {}
    for row in result:
        if row["category"] in merged:
            merged[row["category"]]["value_cents"] += row["value_cents"]
            merged[row["category"]]["items"] += row["items"]
        else:
            merged[row["category"]] = row
    return sorted(merged.values(), key=lambda r: r["category"])

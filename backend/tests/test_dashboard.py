"""
Dashboard tests.

Verifies:
- headline figures over products, sales, returns and lender debt
- sales chart buckets and the period fallback
- inventory value per category
"""

from shopledger.services import dashboard_service, return_service, sales_service
from shopledger.time_utils import utcnow


def _seed(make_product, make_lender):
    rice = make_product(10, cost=1000, price=1500, category="Grain", name="Rice")
    matches = make_product(1, cost=500, price=1500, reorder_level=2, name="Matches")
    make_product(0, cost=200, price=400, category="Grain", name="Millet")
    lender = make_lender("Ama")

    cash = sales_service.create_sale(data={"product_id": rice.id, "quantity": 3, "payment_status": "PAID"})
    sales_service.create_sale(data={"product_id": matches.id, "quantity": 1, "customer_id": lender.id})
    return_service.create_return(data={"sale_id": cash.id, "quantity": 1})
    return rice, matches


class TestDashboardStats:

    def test_empty_shop(self, db_session):
        stats = dashboard_service.get_dashboard_stats()
        assert stats["overview"] == {
            "total_products": 0,
            "total_stock_value_cents": 0,
            "low_stock_count": 0,
            "pending_returns": 0,
            "total_debt_cents": 0,
        }
        assert stats["sales"]["today"] == {"count": 0, "amount_cents": 0}
        assert stats["top_selling_products"] == []

    def test_figures(self, db_session, make_product, make_lender):
        rice, matches = _seed(make_product, make_lender)

        stats = dashboard_service.get_dashboard_stats()
        assert stats["overview"] == {
            "total_products": 3,
            "total_stock_value_cents": 8 * 1000,
            "low_stock_count": 2,
            "pending_returns": 1,
            "total_debt_cents": 1500,
        }
        for period in ("today", "this_week", "this_month"):
            assert stats["sales"][period] == {"count": 2, "amount_cents": 6000}

        top = stats["top_selling_products"]
        assert [t["product"]["id"] for t in top] == [rice.id, matches.id]
        assert top[0]["quantity_sold"] == 3
        assert top[0]["total_revenue_cents"] == 4500

        assert [s["product_id"] for s in stats["recent_sales"]] == [matches.id, rice.id]
        assert [p["name"] for p in stats["low_stock_products"]] == ["Matches", "Millet"]


class TestSalesChart:

    def test_daily_buckets(self, db_session, make_product, make_lender):
        _seed(make_product, make_lender)
        today = utcnow().strftime("%Y-%m-%d")

        chart = dashboard_service.get_sales_chart("week")
        assert chart == {"period": "week", "labels": [today], "data": [6000]}
        assert dashboard_service.get_sales_chart("month")["data"] == [6000]

    def test_monthly_buckets(self, db_session, make_product, make_lender):
        _seed(make_product, make_lender)
        chart = dashboard_service.get_sales_chart("YEAR")
        assert chart["labels"] == [utcnow().strftime("%Y-%m")]
        assert chart["data"] == [6000]

    def test_unknown_period_falls_back_to_week(self, db_session):
        assert dashboard_service.get_sales_chart("decade") == {"period": "week", "labels": [], "data": []}


def test_inventory_by_category(db_session, make_product, make_lender):
    _seed(make_product, make_lender)
    make_product(2, cost=300, category="", name="Loose")

    assert dashboard_service.get_inventory_by_category() == [
        {"category": "Grain", "value_cents": 8000, "items": 2},
        {"category": "Uncategorized", "value_cents": 600, "items": 2},
    ]


class TestDashboardRoutes:

    def test_sales_role_can_read(self, client, sales_headers, make_product, make_lender):
        _seed(make_product, make_lender)

        stats = client.get("/api/dashboard/stats", headers=sales_headers)
        assert stats.status_code == 200
        assert stats.json["overview"]["total_products"] == 3

        chart = client.get("/api/dashboard/sales-chart?period=month", headers=sales_headers)
        assert chart.json["period"] == "month"

        categories = client.get("/api/dashboard/inventory-by-category", headers=sales_headers)
        assert categories.json["count"] == 2

    def test_requires_auth(self, client, db_session):
        assert client.get("/api/dashboard/stats").status_code == 401

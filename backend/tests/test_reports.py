"""
Weekly stock report tests.

Verifies:
- one report per ISO week; opening stock snapshot at creation
- closing snapshot on close; closing twice is rejected
- variance is provisional (live stock) while the report is open
- reports never write products or movements
"""

from datetime import date

import pytest

from shopledger.errors import ConflictError, NotFoundError, ValidationError
from shopledger.extensions import db
from shopledger.models import StockMovement, WeeklyStockReport
from shopledger.services import inventory_service, report_service


def _open(start="2024-03-04", end="2024-03-10", **kw):
    return report_service.create_report(start_date=start, end_date=end, **kw)


class TestCreateReport:

    def test_opening_snapshot(self, make_product):
        a = make_product(4, cost=100)
        b = make_product(0, cost=900)

        report = _open(notes="Week 10")

        assert (report.week_number, report.year) == (10, 2024)
        assert report.status == "OPEN"
        assert report.opening_stock == {str(a.id): 4, str(b.id): 0}
        assert report.total_value_cents == 400
        assert report.closing_stock is None
        assert db.session.query(StockMovement).count() == 0

    def test_duplicate_week_conflicts(self, product):
        first = _open()
        with pytest.raises(ConflictError) as exc:
            _open(start="2024-03-06", end="2024-03-10")
        assert exc.value.details["report_id"] == first.id
        assert db.session.query(WeeklyStockReport).count() == 1

    @pytest.mark.parametrize("start,end", [(None, "2024-03-10"), ("2024-03-04", None), ("March", "2024-03-10")])
    def test_dates_required(self, db_session, start, end):
        with pytest.raises(ValidationError):
            report_service.create_report(start_date=start, end_date=end)

    def test_end_before_start(self, db_session):
        with pytest.raises(ValidationError):
            _open(start="2024-03-10", end="2024-03-04")


class TestCloseAndVariance:

    def test_close_snapshots_closing_stock(self, make_product):
        a = make_product(10, cost=100)
        report = _open()
        inventory_service.adjust_stock(product_id=a.id, movement_type="OUT", quantity=3)

        report = report_service.close_report(report_id=report.id, notes="Counted")

        assert report.status == "CLOSED"
        assert report.closed_at is not None
        assert report.closing_stock == {str(a.id): 7}
        assert report.total_value_cents == 700
        assert report.notes == "Counted"

    def test_close_twice_rejected(self, product):
        report = _open()
        report_service.close_report(report_id=report.id)
        with pytest.raises(ValidationError):
            report_service.close_report(report_id=report.id)

    def test_provisional_variance_uses_live_stock(self, make_product):
        a = make_product(10, cost=100)
        b = make_product(5, cost=50)
        report = _open()
        inventory_service.adjust_stock(product_id=a.id, movement_type="OUT", quantity=4)
        inventory_service.adjust_stock(product_id=b.id, movement_type="IN", quantity=1)

        result = report_service.get_variance(report.id)

        assert result["provisional"] is True
        rows = {r["product_id"]: r for r in result["variances"]}
        assert rows[a.id]["opening"] == 10
        assert rows[a.id]["closing"] == 6
        assert rows[a.id]["variance"] == -4
        assert rows[a.id]["variance_value_cents"] == -400
        assert rows[b.id]["variance"] == 1
        # Largest absolute change first
        assert [r["product_id"] for r in result["variances"]] == [a.id, b.id]

    def test_closed_variance_is_frozen(self, make_product):
        a = make_product(10)
        report = _open()
        inventory_service.adjust_stock(product_id=a.id, movement_type="OUT", quantity=2)
        report_service.close_report(report_id=report.id)
        inventory_service.adjust_stock(product_id=a.id, movement_type="OUT", quantity=5)

        result = report_service.get_variance(report.id)
        assert result["provisional"] is False
        assert result["variances"][0]["closing"] == 8

    def test_get_report_has_product_map(self, make_product):
        a = make_product(3, name="Widget")
        report = _open()
        data = report_service.get_report(report.id)
        assert data["products"][str(a.id)]["name"] == "Widget"

        with pytest.raises(NotFoundError):
            report_service.get_report(999)
        with pytest.raises(NotFoundError):
            report_service.get_variance(999)
        with pytest.raises(NotFoundError):
            report_service.close_report(report_id=999)


class TestCurrentReport:

    def test_get_or_create_is_idempotent(self, product):
        today = date(2024, 3, 7)  # Thursday
        first = report_service.get_or_create_current_report(today=today)
        again = report_service.get_or_create_current_report(today=today)

        assert first.id == again.id
        assert first.start_date == date(2024, 3, 4)
        assert first.end_date == date(2024, 3, 10)
        assert db.session.query(WeeklyStockReport).count() == 1

    def test_list_reports_by_year(self, product):
        _open()
        _open(start="2023-12-25", end="2023-12-31")

        assert report_service.list_reports()["pagination"]["total"] == 2
        only_2024 = report_service.list_reports(year=2024)
        assert [r["week_number"] for r in only_2024["items"]] == [10]

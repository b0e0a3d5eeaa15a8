"""
Sale transaction tests.

Verifies:
- a sale debits stock through the ledger and numbers itself SALE-000001..
- a sale failing at the stock step leaves no sale, no movement, no lender change
- lender balances follow credit sales and payments
- amount_paid + amount_due == total after every payment
- bulk sales share one order number and fail as a whole
"""

import pytest

from shopledger.errors import InsufficientStockError, NotFoundError, ValidationError
from shopledger.extensions import db
from shopledger.models import Payment, Sale, StockMovement
from shopledger.services import sales_service

from conftest import reload


def _sell(product, quantity=1, **extra):
    data = {"product_id": product.id, "quantity": quantity, **extra}
    return sales_service.create_sale(data=data)


class TestCreateSale:

    def test_cash_sale_debits_stock(self, product):
        sale = _sell(product, 3, payment_status="PAID")

        assert sale.sale_number == "SALE-000001"
        assert sale.unit_price_cents == 1500  # product selling price
        assert sale.total_amount_cents == 4500
        assert sale.amount_paid_cents == 4500
        assert sale.amount_due_cents == 0
        assert sale.payment_status == "PAID"

        assert reload(product).current_stock == 7
        mv = db.session.query(StockMovement).filter_by(reference_type="sale", reference_id=sale.id).one()
        assert (mv.reason, mv.quantity, mv.quantity_before, mv.quantity_after) == ("SALE", -3, 10, 7)

    def test_sale_numbers_are_sequential(self, product):
        numbers = [_sell(product).sale_number for _ in range(3)]
        assert numbers == ["SALE-000001", "SALE-000002", "SALE-000003"]

    def test_whole_stock_then_one_more(self, product):
        _sell(product, 10, payment_status="PAID")
        assert reload(product).current_stock == 0

        with pytest.raises(InsufficientStockError):
            _sell(product, 1)

        assert reload(product).current_stock == 0
        assert db.session.query(Sale).count() == 1

    def test_failed_sale_leaves_no_trace(self, product, lender):
        with pytest.raises(InsufficientStockError):
            _sell(product, 11, customer_id=lender.id)

        assert db.session.query(Sale).count() == 0
        assert db.session.query(StockMovement).count() == 0
        lender = reload(lender)
        assert lender.current_debt_cents == 0
        assert lender.total_purchased_cents == 0
        assert reload(product).current_stock == 10

    def test_failed_sale_does_not_consume_a_number(self, product):
        with pytest.raises(InsufficientStockError):
            _sell(product, 50)
        assert _sell(product).sale_number == "SALE-000001"

    def test_partial_payment_status(self, product):
        sale = _sell(product, 2, unit_price_cents=1000, amount_paid_cents=500)
        assert sale.payment_status == "PARTIAL"
        assert sale.amount_due_cents == 1500

    def test_unpaid_by_default_without_amount(self, product):
        sale = _sell(product, 1)
        assert sale.payment_status == "UNPAID"
        assert sale.amount_paid_cents == 0
        assert sale.amount_due_cents == sale.total_amount_cents

    def test_overpaid_at_sale_time_rejected(self, product):
        with pytest.raises(ValidationError):
            _sell(product, 1, unit_price_cents=100, amount_paid_cents=101)

    def test_status_disagreeing_with_amounts_rejected(self, product):
        with pytest.raises(ValidationError):
            _sell(product, 1, payment_status="UNPAID", amount_paid_cents=1500)

    @pytest.mark.parametrize("patch", [
        {"quantity": 0},
        {"quantity": -1},
        {"quantity": 2.5},
        {"unit_price_cents": 0},
        {"payment_method": "BARTER"},
        {"payment_status": "MAYBE"},
    ])
    def test_input_validation(self, product, patch):
        with pytest.raises(ValidationError):
            _sell(product, **{"quantity": 1, **patch})
        assert reload(product).current_stock == 10

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(data={"product_id": 424242, "quantity": 1})


class TestCreditSales:

    def test_credit_sale_adds_debt(self, product, lender):
        sale = _sell(product, 2, customer_id=lender.id, amount_paid_cents=1000)

        assert sale.customer_name == lender.name
        lender = reload(lender)
        assert lender.current_debt_cents == 2000
        assert lender.total_purchased_cents == 3000

    def test_paid_sale_does_not_touch_lender(self, product, lender):
        _sell(product, 1, customer_id=lender.id, payment_status="PAID")
        lender = reload(lender)
        assert lender.current_debt_cents == 0
        assert lender.total_purchased_cents == 0

    def test_unknown_lender(self, product):
        with pytest.raises(NotFoundError):
            _sell(product, 1, customer_id=777)
        assert reload(product).current_stock == 10

    def test_suspended_lender_cannot_buy_on_credit(self, product, make_lender):
        suspended = make_lender("Late Payer", status="SUSPENDED")
        with pytest.raises(ValidationError):
            _sell(product, 1, customer_id=suspended.id)

        # Paying in full is still allowed
        sale = _sell(product, 1, customer_id=suspended.id, payment_status="PAID")
        assert sale.payment_status == "PAID"


class TestUpdatePayment:

    def test_partial_then_full(self, product):
        sale = _sell(product, 2, unit_price_cents=1000)

        sale = sales_service.update_payment(sale_id=sale.id, amount_cents=800)
        assert (sale.amount_paid_cents, sale.amount_due_cents, sale.payment_status) == (800, 1200, "PARTIAL")
        assert sale.amount_paid_cents + sale.amount_due_cents == sale.total_amount_cents

        sale = sales_service.update_payment(sale_id=sale.id, amount_cents=1200, payment_method="card")
        assert (sale.amount_paid_cents, sale.amount_due_cents, sale.payment_status) == (2000, 0, "PAID")
        assert sale.payment_method == "CARD"

    def test_overpayment_kept_apart(self, product):
        sale = _sell(product, 1, unit_price_cents=1000)

        sale = sales_service.update_payment(sale_id=sale.id, amount_cents=1500)
        assert sale.amount_paid_cents == 1000
        assert sale.amount_due_cents == 0
        assert sale.overpaid_cents == 500
        assert sale.payment_status == "PAID"

    def test_nothing_due(self, product):
        sale = _sell(product, 1, payment_status="PAID")
        with pytest.raises(ValidationError):
            sales_service.update_payment(sale_id=sale.id, amount_cents=100)

    @pytest.mark.parametrize("amount", [0, -5, None, "abc"])
    def test_amount_must_be_positive(self, product, amount):
        sale = _sell(product, 1)
        with pytest.raises(ValidationError):
            sales_service.update_payment(sale_id=sale.id, amount_cents=amount)

    def test_unknown_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.update_payment(sale_id=31337, amount_cents=1)

    def test_lender_payment_reduces_debt_and_records_payment(self, product, lender, sales_user):
        sale = _sell(product, 2, unit_price_cents=1000, customer_id=lender.id)
        assert reload(lender).current_debt_cents == 2000

        sales_service.update_payment(sale_id=sale.id, amount_cents=2500, received_by_user_id=sales_user.id)

        lender = reload(lender)
        assert lender.current_debt_cents == 0
        assert lender.total_paid_cents == 2000

        payment = db.session.query(Payment).one()
        assert payment.payment_number == "PAY-000001"
        assert payment.sale_id == sale.id
        assert payment.amount_cents == 2000
        assert payment.overpaid_cents == 500
        assert payment.received_by_user_id == sales_user.id

    def test_lender_debt_floor(self, product, lender):
        sale = _sell(product, 1, unit_price_cents=1000, customer_id=lender.id)
        # Debt settled elsewhere before the sale payment arrives
        lender = reload(lender)
        lender.current_debt_cents = 300
        db.session.commit()

        sales_service.update_payment(sale_id=sale.id, amount_cents=1000)
        assert reload(lender).current_debt_cents == 0


class TestBulkSale:

    def test_lines_share_order_number(self, make_product, lender):
        a = make_product(5, price=100)
        b = make_product(5, price=200)

        result = sales_service.create_bulk_sale(
            items=[{"product_id": a.id, "quantity": 2}, {"product_id": b.id, "quantity": 1}],
            common={"customer_id": lender.id, "payment_status": "PAID"},
        )

        assert result["order_number"] == "ORD-000001"
        assert [s.order_number for s in result["sales"]] == ["ORD-000001", "ORD-000001"]
        assert [s.sale_number for s in result["sales"]] == ["SALE-000001", "SALE-000002"]
        assert result["total_amount_cents"] == 400
        assert reload(a).current_stock == 3
        assert reload(b).current_stock == 4

    def test_one_bad_line_aborts_the_order(self, make_product):
        a = make_product(5)
        b = make_product(1)

        with pytest.raises(InsufficientStockError):
            sales_service.create_bulk_sale(
                items=[{"product_id": a.id, "quantity": 2}, {"product_id": b.id, "quantity": 2}],
            )

        assert reload(a).current_stock == 5
        assert reload(b).current_stock == 1
        assert db.session.query(Sale).count() == 0
        assert db.session.query(StockMovement).count() == 0

    def test_empty_items(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.create_bulk_sale(items=[])


class TestSalesQueries:

    def test_summary(self, product):
        _sell(product, 1, unit_price_cents=1000, payment_status="PAID")
        _sell(product, 2, unit_price_cents=1000, amount_paid_cents=500)

        summary = sales_service.get_sales_summary()
        assert summary == {
            "total_sales": 2,
            "total_revenue_cents": 3000,
            "total_collected_cents": 1500,
            "pending_payments_cents": 1500,
        }

    def test_list_filters(self, make_product, lender):
        a = make_product(10)
        b = make_product(10)
        _sell(a, 1, payment_status="PAID")
        _sell(b, 1, customer_id=lender.id)

        assert sales_service.list_sales()["pagination"]["total"] == 2
        unpaid = sales_service.list_sales(status="unpaid")
        assert [s["product_id"] for s in unpaid["items"]] == [b.id]
        assert sales_service.list_sales(customer_id=lender.id)["count"] == 1
        assert sales_service.list_sales(product_id=a.id)["items"][0]["product"]["id"] == a.id

        with pytest.raises(ValidationError):
            sales_service.list_sales(status="LATE")

    def test_get_sale_includes_returns_and_payments(self, product):
        sale = _sell(product, 1)
        data = sales_service.get_sale(sale.id)
        assert data["sale_number"] == sale.sale_number
        assert data["returns"] == []
        assert data["payments"] == []

        with pytest.raises(NotFoundError):
            sales_service.get_sale(999)

"""
Lender (credit customer) tests.

Verifies:
- sequential customer codes
- balance fields are not writable through create/update
- direct payments cannot exceed the outstanding debt
"""

import pytest

from shopledger.errors import NotFoundError, ValidationError
from shopledger.extensions import db
from shopledger.models import Payment
from shopledger.services import lender_service, sales_service

from conftest import reload


class TestLenderMasterData:

    def test_create_assigns_customer_codes(self, db_session):
        first = lender_service.create_lender(payload={"name": "Ama", "phone": "0241234567"})
        second = lender_service.create_lender(payload={"name": "Kofi", "credit_limit_cents": 50000})

        assert first.customer_code == "CUST-00001"
        assert second.customer_code == "CUST-00002"
        assert first.status == "ACTIVE"
        assert first.current_debt_cents == 0
        assert second.credit_limit_cents == 50000

    @pytest.mark.parametrize("payload", [
        {},
        {"name": ""},
        {"name": "X", "current_debt_cents": 0},
        {"name": "X", "status": "SUSPENDED"},
        {"name": "X", "credit_limit_cents": -1},
    ])
    def test_create_validation(self, db_session, payload):
        with pytest.raises(ValidationError):
            lender_service.create_lender(payload=payload)

    def test_update(self, lender):
        updated = lender_service.update_lender(lender_id=lender.id, payload={"phone": "555", "notes": "VIP"})
        assert updated.phone == "555"
        assert updated.notes == "VIP"

        with pytest.raises(ValidationError):
            lender_service.update_lender(lender_id=lender.id, payload={"total_paid_cents": 10})
        with pytest.raises(NotFoundError):
            lender_service.update_lender(lender_id=999, payload={"phone": "1"})

    def test_status_change(self, lender):
        assert lender_service.set_lender_status(lender_id=lender.id, status="suspended").status == "SUSPENDED"
        assert lender_service.set_lender_status(lender_id=lender.id, status="ACTIVE").status == "ACTIVE"
        with pytest.raises(ValidationError):
            lender_service.set_lender_status(lender_id=lender.id, status="BANNED")


class TestDirectPayments:

    def test_payment_reduces_debt(self, lender, product, manager_user):
        sales_service.create_sale(data={
            "product_id": product.id, "quantity": 2, "unit_price_cents": 1000, "customer_id": lender.id,
        })

        payment = lender_service.record_payment(
            lender_id=lender.id, amount_cents=1500, payment_method="mobile_money",
            reference="MM-1", received_by_user_id=manager_user.id,
        )

        assert payment.payment_number == "PAY-000001"
        assert payment.sale_id is None
        assert payment.payment_method == "MOBILE_MONEY"
        lender = reload(lender)
        assert lender.current_debt_cents == 500
        assert lender.total_paid_cents == 1500

    def test_payment_above_debt_rejected(self, lender):
        with pytest.raises(ValidationError) as exc:
            lender_service.record_payment(lender_id=lender.id, amount_cents=1)
        assert exc.value.details == {"current_debt_cents": 0, "amount_cents": 1}
        assert db.session.query(Payment).count() == 0

    @pytest.mark.parametrize("amount", [0, -100, None])
    def test_amount_must_be_positive(self, lender, amount):
        with pytest.raises(ValidationError):
            lender_service.record_payment(lender_id=lender.id, amount_cents=amount)

    def test_unknown_lender(self, db_session):
        with pytest.raises(NotFoundError):
            lender_service.record_payment(lender_id=3, amount_cents=100)


class TestLenderQueries:

    def test_with_debt(self, make_lender, product):
        owing = make_lender("Owing")
        make_lender("Clear")
        sales_service.create_sale(data={"product_id": product.id, "quantity": 1, "customer_id": owing.id})

        result = lender_service.list_lenders_with_debt()
        assert result["count"] == 1
        assert result["lenders"][0]["id"] == owing.id
        assert result["total_debt_cents"] == 1500

    def test_get_lender_with_history(self, lender, product):
        sale = sales_service.create_sale(data={"product_id": product.id, "quantity": 1, "customer_id": lender.id})
        sales_service.update_payment(sale_id=sale.id, amount_cents=500)

        data = lender_service.get_lender(lender.id)
        assert [s["id"] for s in data["recent_sales"]] == [sale.id]
        assert [p["amount_cents"] for p in data["recent_payments"]] == [500]

        with pytest.raises(NotFoundError):
            lender_service.get_lender(999)

    def test_search_and_status_filter(self, make_lender):
        make_lender("Akosua Mensah", phone="020111")
        make_lender("Yaw Boateng", status="SUSPENDED")

        assert lender_service.list_lenders(search="mensah")["count"] == 1
        assert lender_service.list_lenders(search="020111")["count"] == 1
        suspended = lender_service.list_lenders(status="suspended")
        assert [l["name"] for l in suspended["items"]] == ["Yaw Boateng"]

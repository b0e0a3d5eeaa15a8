from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


PAYMENT_PAID = "PAID"
PAYMENT_PARTIAL = "PARTIAL"
PAYMENT_UNPAID = "UNPAID"
PAYMENT_STATUSES = (PAYMENT_PAID, PAYMENT_PARTIAL, PAYMENT_UNPAID)


class Sale(db.Model):
    """
    Single-product sale.

    A bulk order is a set of Sale rows sharing one order_number.

    MONEY IDENTITY (holds after every write):
        amount_paid_cents + amount_due_cents == total_amount_cents

    overpaid_cents accumulates money tendered beyond what was due; it is
    recorded but never counted toward amount_paid_cents.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        db.Index("ix_sales_order_number", "order_number"),
        db.Index("ix_sales_status_date", "payment_status", "sale_date"),
        db.CheckConstraint("amount_due_cents >= 0", name="ck_sales_due_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "SALE-000123")
    sale_number = db.Column(db.String(64), nullable=False)
    order_number = db.Column(db.String(64), nullable=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("lenders.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    payment_method = db.Column(db.String(32), nullable=False, default="CASH")
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PAID, index=True)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_due_cents = db.Column(db.Integer, nullable=False, default=0)
    overpaid_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    sold_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("sales", lazy="dynamic"))
    customer = db.relationship("Lender", backref=db.backref("sales", lazy="dynamic"))
    sold_by = db.relationship("User", foreign_keys=[sold_by_user_id])

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_related: bool = True) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "order_number": self.order_number,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_amount_cents": self.total_amount_cents,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "amount_paid_cents": self.amount_paid_cents,
            "amount_due_cents": self.amount_due_cents,
            "overpaid_cents": self.overpaid_cents,
            "notes": self.notes,
            "sold_by_user_id": self.sold_by_user_id,
            "sale_date": to_utc_z(self.sale_date),
        }
        if include_related:
            data["product"] = self.product.to_dict() if self.product else None
            data["customer"] = self.customer.to_dict() if self.customer else None
            data["sold_by"] = self.sold_by.full_name if self.sold_by else None
        return data


class Payment(db.Model):
    """
    Money received from a lender.

    sale_id is set when the payment was taken against a specific sale
    (PATCH /api/sales/<id>/payment) and NULL for direct debt payments.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("payment_number", name="uq_payments_payment_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_number = db.Column(db.String(64), nullable=False)

    lender_id = db.Column(db.Integer, db.ForeignKey("lenders.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    overpaid_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(32), nullable=False, default="CASH")

    # Reference info (transfer reference, cheque number, etc.)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    lender = db.relationship("Lender", backref=db.backref("payments", lazy="dynamic"))
    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_number": self.payment_number,
            "lender_id": self.lender_id,
            "sale_id": self.sale_id,
            "amount_cents": self.amount_cents,
            "overpaid_cents": self.overpaid_cents,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "received_by_user_id": self.received_by_user_id,
            "payment_date": to_utc_z(self.payment_date),
        }

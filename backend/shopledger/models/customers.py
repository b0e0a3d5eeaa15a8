from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


LENDER_ACTIVE = "ACTIVE"
LENDER_SUSPENDED = "SUSPENDED"
LENDER_STATUSES = (LENDER_ACTIVE, LENDER_SUSPENDED)


class Lender(db.Model):
    """
    Credit customer ("lender") who may buy now and pay later.

    Balances are denormalized aggregates maintained by the sale and payment
    services inside the same transaction as the sale/payment itself:
    - current_debt_cents: outstanding amount, never negative
    - total_purchased_cents: sum of credit sale totals
    - total_paid_cents: sum of payments applied against the debt

    Clients never write these fields directly.
    """
    __tablename__ = "lenders"
    __table_args__ = (
        db.UniqueConstraint("customer_code", name="uq_lenders_customer_code"),
        db.Index("ix_lenders_status", "status"),
        db.CheckConstraint("current_debt_cents >= 0", name="ck_lenders_debt_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_code = db.Column(db.String(32), nullable=False)

    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=LENDER_ACTIVE)

    current_debt_cents = db.Column(db.Integer, nullable=False, default=0)
    total_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    total_purchased_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_code": self.customer_code,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "credit_limit_cents": self.credit_limit_cents,
            "status": self.status,
            "current_debt_cents": self.current_debt_cents,
            "total_paid_cents": self.total_paid_cents,
            "total_purchased_cents": self.total_purchased_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

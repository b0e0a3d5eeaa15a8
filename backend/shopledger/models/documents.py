from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


RETURN_PENDING = "PENDING"
RETURN_APPROVED = "APPROVED"
RETURN_COMPLETED = "COMPLETED"
RETURN_STATUSES = (RETURN_PENDING, RETURN_APPROVED, RETURN_COMPLETED)

REPORT_OPEN = "OPEN"
REPORT_CLOSED = "CLOSED"


class Return(db.Model):
    """
    Product return against an earlier sale.

    LIFECYCLE (forward only):
    1. PENDING: Return filed; stock already restored to the shelf
    2. APPROVED: Manager approved the refund
    3. COMPLETED: Refund handed over

    Approval and completion never touch stock.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("return_number", name="uq_returns_return_number"),
        db.Index("ix_returns_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "RET-000042")
    return_number = db.Column(db.String(64), nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.Text, nullable=True)
    refund_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    refund_method = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=RETURN_PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    returned_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    completed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    product = db.relationship("Product")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_related: bool = True) -> dict:
        data = {
            "id": self.id,
            "return_number": self.return_number,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "reason": self.reason,
            "refund_amount_cents": self.refund_amount_cents,
            "refund_method": self.refund_method,
            "notes": self.notes,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "returned_by_user_id": self.returned_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "completed_by_user_id": self.completed_by_user_id,
        }
        if include_related:
            data["sale_number"] = self.sale.sale_number if self.sale else None
            data["product"] = self.product.to_dict() if self.product else None
        return data


class WeeklyStockReport(db.Model):
    """
    Weekly stock snapshot.

    opening_stock / closing_stock map str(product_id) -> quantity at the time
    the snapshot was taken. Reports only read product state; they never post
    movements.
    """
    __tablename__ = "weekly_stock_reports"
    __table_args__ = (
        db.UniqueConstraint("year", "week_number", name="uq_weekly_stock_reports_week"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    week_number = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    opening_stock = db.Column(db.JSON, nullable=False, default=dict)
    closing_stock = db.Column(db.JSON, nullable=True)
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=REPORT_OPEN, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "week_number": self.week_number,
            "year": self.year,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "opening_stock": self.opening_stock or {},
            "closing_stock": self.closing_stock,
            "total_value_cents": self.total_value_cents,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
        }


class DocumentSequence(db.Model):
    """
    Atomic document sequences.

    WHY: Prevent race conditions when generating document numbers
    (sales, orders, returns, purchase batches, payments, customer codes).
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_doc_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class ActivityLog(db.Model):
    """Audit trail of user actions, written after the business commit."""
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_resource", "resource_type", "resource_id"),
        db.Index("ix_activity_logs_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    action = db.Column(db.String(64), nullable=False, index=True)
    resource_type = db.Column(db.String(64), nullable=True)
    resource_id = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)
    changes = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "description": self.description,
            "changes": self.changes,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }

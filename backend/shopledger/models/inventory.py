from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from shopledger.time_utils import to_utc_z


# Movement reasons. The sign of StockMovement.quantity carries the direction.
REASON_PURCHASE = "PURCHASE"
REASON_SALE = "SALE"
REASON_RETURN = "RETURN"
REASON_ADJUSTMENT = "ADJUSTMENT"
REASON_PURCHASE_CORRECTION = "PURCHASE_CORRECTION"
REASON_PURCHASE_REVERSAL = "PURCHASE_REVERSAL"

MOVEMENT_REASONS = (
    REASON_PURCHASE,
    REASON_SALE,
    REASON_RETURN,
    REASON_ADJUSTMENT,
    REASON_PURCHASE_CORRECTION,
    REASON_PURCHASE_REVERSAL,
)

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"


class Product(db.Model):
    """
    Product master data.

    STOCK OWNERSHIP:
    current_stock is a cached balance owned by the stock ledger. It is written
    only by ledger_service.apply_movement (one guarded UPDATE per movement);
    product create/update routes never accept it.

    initial_stock is the balance the product was created with and never changes.
    It lets the ledger be replayed: initial_stock + SUM(movement.quantity) must
    equal current_stock at all times.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category"),
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    unit = db.Column(db.String(32), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    initial_stock = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.reorder_level

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "barcode": self.barcode,
            "category": self.category,
            "unit": self.unit,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "current_stock": self.current_stock,
            "initial_stock": self.initial_stock,
            "reorder_level": self.reorder_level,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Immutable stock ledger entry.

    GUARANTEES:
    - Append-only (no updates, no deletes)
    - quantity is the signed stock delta; type is derived from its sign
    - quantity_after = quantity_before + quantity
    - reference_type/reference_id point at the record that caused the movement
      (sale, return, additional_stock, product)
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        db.CheckConstraint("quantity <> 0", name="ck_stock_movements_nonzero"),
        db.CheckConstraint("quantity_after >= 0", name="ck_stock_movements_after_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(3), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(32), nullable=False, index=True)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise RuntimeError("StockMovement records are immutable")


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise RuntimeError("StockMovement records are immutable and cannot be deleted")


class AdditionalStock(db.Model):
    """
    Purchase batch that added stock to a product.

    Each batch owns exactly one PURCHASE movement at creation. Quantity edits
    post PURCHASE_CORRECTION movements and deletion posts a PURCHASE_REVERSAL,
    so the ledger keeps explaining current_stock after the batch changes.
    """
    __tablename__ = "additional_stock"
    __table_args__ = (
        db.UniqueConstraint("batch_number", name="uq_additional_stock_batch_number"),
        db.Index("ix_additional_stock_week", "year", "week_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_number = db.Column(db.String(64), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    cost_per_unit_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)

    supplier = db.Column(db.String(255), nullable=True)
    invoice_number = db.Column(db.String(100), nullable=True)
    purchase_date = db.Column(db.Date, nullable=False)

    # ISO-8601 week of purchase_date
    week_number = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("additional_stock", lazy="dynamic"))

    def to_dict(self, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "batch_number": self.batch_number,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "cost_per_unit_cents": self.cost_per_unit_cents,
            "total_cost_cents": self.total_cost_cents,
            "supplier": self.supplier,
            "invoice_number": self.invoice_number,
            "purchase_date": self.purchase_date.isoformat() if self.purchase_date else None,
            "week_number": self.week_number,
            "year": self.year,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_product and self.product is not None:
            data["product"] = self.product.to_dict()
        return data

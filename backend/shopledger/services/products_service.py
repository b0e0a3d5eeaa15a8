# backend/shopledger/services/products_service.py
"""
Products Service

Product master data only. Stock is owned by the ledger:
- create_product seeds current_stock from initial_stock (no movement; the
  ledger replay starts from initial_stock)
- update_product never accepts current_stock / initial_stock
- delete_product refuses products that any ledger or document row points at
"""
from __future__ import annotations

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import AdditionalStock, Product, Return, Sale, StockMovement
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate
from .unit_of_work import UnitOfWork

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "barcode",
    "category",
    "unit",
    "cost_price_cents",
    "selling_price_cents",
    "reorder_level",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS | {"initial_stock"},
    required_on_create={"name", "selling_price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(writable_fields=PRODUCT_MUTABLE_FIELDS)

RECENT_MOVEMENTS = 20


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _check_barcode_free(session, barcode: str | None, *, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    query = session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError(f"Barcode already in use: {barcode}", details={"barcode": barcode})


def _new_product(session, patch: dict) -> Product:
    initial = patch.pop("initial_stock", None) or 0
    if not patch.get("barcode"):
        patch["barcode"] = None
    _check_barcode_free(session, patch.get("barcode"))

    p = Product(initial_stock=initial, current_stock=initial)
    apply_product_patch(p, patch)
    session.add(p)
    session.flush()
    return p


def create_product(*, payload: dict, uow: UnitOfWork | None = None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            product = _new_product(uow.session, dict(patch))
        return product

    return run_with_retry(_op, uow=uow)


def update_product(*, product_id: int, payload: dict, uow: UnitOfWork | None = None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)
    if "barcode" in patch and not patch["barcode"]:
        patch["barcode"] = None

    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            product = lock_for_update(session.query(Product).filter_by(id=product_id)).first()
            if not product:
                raise NotFoundError(f"Product {product_id} not found")
            if "barcode" in patch:
                _check_barcode_free(session, patch["barcode"], exclude_id=product_id)
            apply_product_patch(product, patch)
        return product

    return run_with_retry(_op, uow=uow)


def delete_product(*, product_id: int, uow: UnitOfWork | None = None) -> None:
    uow = uow or UnitOfWork()

    def _op():
        with uow:
            session = uow.session
            product = lock_for_update(session.query(Product).filter_by(id=product_id)).first()
            if not product:
                raise NotFoundError(f"Product {product_id} not found")

            references = {
                "stock_movements": session.query(StockMovement.id).filter_by(product_id=product_id).count(),
                "sales": session.query(Sale.id).filter_by(product_id=product_id).count(),
                "returns": session.query(Return.id).filter_by(product_id=product_id).count(),
                "additional_stock": session.query(AdditionalStock.id).filter_by(product_id=product_id).count(),
            }
            referenced = {k: v for k, v in references.items() if v}
            if referenced:
                raise ConflictError(
                    "Product has stock or sales history and cannot be deleted",
                    details=referenced,
                )
            session.delete(product)

    run_with_retry(_op, uow=uow)


def get_product(product_id: int) -> dict:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")

    movements = (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.id.desc())
        .limit(RECENT_MOVEMENTS)
        .all()
    )
    data = product.to_dict()
    data["recent_movements"] = [m.to_dict() for m in movements]
    return data


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    low_stock: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Product)

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Product.name.ilike(like),
                Product.description.ilike(like),
                Product.barcode.ilike(like),
            )
        )
    if category:
        query = query.filter(Product.category == category)
    if low_stock:
        query = query.filter(Product.current_stock <= Product.reorder_level)

    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page, per_page)


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.category.isnot(None), Product.category != "")
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [c for (c,) in rows]


def list_low_stock() -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(Product.current_stock <= Product.reorder_level)
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .all()
    )
    return [p.to_dict() for p in products]


def bulk_import(*, rows, uow: UnitOfWork | None = None) -> dict:
    """
    Import already-parsed product rows in one transaction.

    Every row is validated before anything is written; one bad row rejects
    the whole import. Rows whose barcode already exists (in the database or
    earlier in the same batch) are skipped, not updated.
    """
    if not isinstance(rows, list) or not rows:
        raise ValidationError("products must be a non-empty list")

    patches = []
    for index, row in enumerate(rows):
        try:
            patch = validate_payload(model=Product, payload=row, policy=PRODUCT_CREATE_POLICY, partial=False)
            enforce_rules_product(patch)
        except ValidationError as exc:
            raise ValidationError(f"Row {index + 1}: {exc.message}", details={"row": index + 1})
        patches.append(patch)

    uow = uow or UnitOfWork()

    def _op():
        imported = []
        skipped = []
        with uow:
            session = uow.session
            seen: set[str] = set()
            for patch in patches:
                barcode = patch.get("barcode") or None
                if barcode:
                    exists = session.query(Product.id).filter(Product.barcode == barcode).first()
                    if exists or barcode in seen:
                        skipped.append(barcode)
                        continue
                    seen.add(barcode)
                imported.append(_new_product(session, dict(patch)))
        return {
            "imported": len(imported),
            "skipped": len(skipped),
            "skipped_barcodes": skipped,
            "product_ids": [p.id for p in imported],
        }

    return run_with_retry(_op, uow=uow)

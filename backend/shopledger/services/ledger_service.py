# Overview: Service-layer operations for the stock ledger; the only writer of Product.current_stock.

from __future__ import annotations

from sqlalchemy import update

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_REASONS
"""
Stock Ledger Invariants (authoritative)

- Product.current_stock changes only through apply_movement.
- Every change appends exactly one StockMovement in the same DB transaction.
- StockMovement is append-only (ORM update/delete raise).
- movement.quantity is the signed delta; movement.type is IN for delta > 0, else OUT.
- movement.quantity_after == movement.quantity_before + movement.quantity.
- current_stock >= 0 at all times.
- For every product:
    current_stock == quantity_after of its latest movement (when one exists)
    current_stock == initial_stock + SUM(movement.quantity)

apply_movement does not commit and does not retry; the caller's unit of work
owns the transaction boundary.
"""


def apply_movement(
    session,
    *,
    product_id: int,
    delta: int,
    reason: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> tuple[Product, StockMovement]:
    """
    Apply a signed stock delta to a product and record the movement.

    The read-modify-write happens in one guarded UPDATE:

        UPDATE products
           SET current_stock = current_stock + :delta,
               version_id = version_id + 1
         WHERE id = :id AND current_stock + :delta >= 0

    so two transactions racing on the same product can never both pass the
    non-negativity check against the same stale balance.

    Raises:
        ValidationError: delta is zero / not an integer, or unknown reason
        NotFoundError: product does not exist
        InsufficientStockError: stock would become negative
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError("delta must be a non-zero integer")
    if reason not in MOVEMENT_REASONS:
        raise ValidationError(f"Unknown movement reason: {reason}")

    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.current_stock + delta >= 0)
        .values(
            current_stock=Product.current_stock + delta,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)

    if not result.rowcount:
        available = session.query(Product.current_stock).filter(Product.id == product_id).scalar()
        if available is None:
            raise NotFoundError(f"Product {product_id} not found")
        raise InsufficientStockError(product_id, available, -delta)

    product = (
        session.query(Product)
        .filter(Product.id == product_id)
        .populate_existing()
        .one()
    )
    after = product.current_stock

    movement = StockMovement(
        product_id=product_id,
        type=MOVEMENT_IN if delta > 0 else MOVEMENT_OUT,
        quantity=delta,
        quantity_before=after - delta,
        quantity_after=after,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note,
        created_by_user_id=actor_user_id,
    )
    session.add(movement)
    session.flush()  # ensures movement.id is assigned without committing
    return product, movement


def verify_product_ledger(product_id: int, session=None) -> dict:
    """
    Replay a product's movements and check both ledger invariants.

    Returns a dict with the observed figures and an ``ok`` flag; never raises
    for an inconsistent ledger (that is the finding, not an error).
    """
    session = session if session is not None else db.session
    product = session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")

    movements = (
        session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.id.asc())
        .all()
    )

    running = product.initial_stock
    chain_ok = True
    for mv in movements:
        if mv.quantity_before != running or mv.quantity_after != mv.quantity_before + mv.quantity:
            chain_ok = False
        running = mv.quantity_after

    movement_sum = sum(mv.quantity for mv in movements)
    expected = product.initial_stock + movement_sum
    last_after = movements[-1].quantity_after if movements else None

    sum_ok = expected == product.current_stock
    latest_ok = last_after is None or last_after == product.current_stock

    return {
        "product_id": product.id,
        "product_name": product.name,
        "initial_stock": product.initial_stock,
        "current_stock": product.current_stock,
        "movement_count": len(movements),
        "movement_sum": movement_sum,
        "expected_stock": expected,
        "last_quantity_after": last_after,
        "chain_ok": chain_ok,
        "ok": sum_ok and latest_ok and chain_ok,
    }


def verify_all_ledgers(session=None) -> dict:
    session = session if session is not None else db.session
    product_ids = [pid for (pid,) in session.query(Product.id).order_by(Product.id.asc()).all()]
    results = [verify_product_ledger(pid, session=session) for pid in product_ids]
    mismatches = [r for r in results if not r["ok"]]
    return {
        "checked": len(results),
        "ok": not mismatches,
        "mismatches": mismatches,
    }

# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/shopledger/routes/inventory.py
"""
Inventory API Routes

Read-only views of the stock ledger plus purchase batches
(additional stock), whose every stock effect is a ledger movement.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import ShopError
from ..http import audit, error_response, internal_error, json_body, page_args
from ..permissions import Action
from ..services import additional_stock_service, inventory_service, ledger_service
from ..services.activity_service import ACTION_CREATE, ACTION_DELETE, ACTION_UPDATE


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/valuation")
@require_auth
@require_permission(Action.VIEW_INVENTORY)
def valuation_route():
    try:
        return jsonify(inventory_service.get_inventory_valuation()), 200
    except Exception:
        return internal_error("Failed to compute valuation")


@inventory_bp.get("/movements")
@require_auth
@require_permission(Action.VIEW_INVENTORY)
def movements_route():
    try:
        page, per_page = page_args()
        result = inventory_service.list_movements(
            product_id=request.args.get("product_id", type=int),
            movement_type=request.args.get("type"),
            reason=request.args.get("reason"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list stock movements")


@inventory_bp.get("/verify")
@require_auth
@require_permission(Action.VIEW_INVENTORY)
def verify_route():
    """Replay the ledger; ?product_id= checks a single product."""
    try:
        product_id = request.args.get("product_id", type=int)
        if product_id is not None:
            return jsonify(ledger_service.verify_product_ledger(product_id)), 200
        return jsonify(ledger_service.verify_all_ledgers()), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to verify ledger")


@inventory_bp.post("/additional-stock")
@require_auth
@require_permission(Action.MANAGE_STOCK)
def add_stock_route():
    """
    Record a purchase batch.

    Request body:
    {
        "product_id": 1,
        "quantity": 5,
        "cost_per_unit_cents": 2000,
        "supplier": "Acme",          (optional)
        "invoice_number": "INV-9",   (optional)
        "purchase_date": "2024-03-04", (optional, default today)
        "notes": "..."               (optional)
    }
    """
    try:
        batch = additional_stock_service.add_stock(data=json_body(), actor_user_id=g.current_user.id)
        audit(
            ACTION_CREATE, "ADDITIONAL_STOCK", batch.id,
            f"Added {batch.quantity} units to product {batch.product_id} ({batch.batch_number})",
        )
        return jsonify({"additional_stock": batch.to_dict(include_product=True)}), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to add stock")


@inventory_bp.put("/additional-stock/<int:batch_id>")
@require_auth
@require_permission(Action.MANAGE_STOCK)
def update_stock_batch_route(batch_id: int):
    try:
        data = json_body()
        batch = additional_stock_service.update_stock_batch(
            batch_id=batch_id, data=data, actor_user_id=g.current_user.id,
        )
        audit(ACTION_UPDATE, "ADDITIONAL_STOCK", batch.id, f"Updated batch {batch.batch_number}", changes={"after": data})
        return jsonify({"additional_stock": batch.to_dict(include_product=True)}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update stock batch")


@inventory_bp.delete("/additional-stock/<int:batch_id>")
@require_auth
@require_permission(Action.MANAGE_STOCK)
def delete_stock_batch_route(batch_id: int):
    try:
        snapshot = additional_stock_service.delete_stock_batch(batch_id=batch_id, actor_user_id=g.current_user.id)
        audit(
            ACTION_DELETE, "ADDITIONAL_STOCK", batch_id,
            f"Deleted batch {snapshot['batch_number']}", changes={"before": snapshot},
        )
        return jsonify({"message": "Batch deleted", "additional_stock": snapshot}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete stock batch")

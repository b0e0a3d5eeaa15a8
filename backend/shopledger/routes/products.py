# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopledger/routes/products.py
"""
Product API Routes

Stock is not editable through product create/update. The only stock write
here is PATCH /<id>/update-stock, which posts an ADJUSTMENT movement through
the ledger.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import ShopError
from ..http import audit, error_response, internal_error, json_body, page_args
from ..permissions import Action
from ..services import inventory_service, products_service
from ..services.activity_service import ACTION_CREATE, ACTION_DELETE, ACTION_IMPORT, ACTION_STOCK_ADJUST, ACTION_UPDATE


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission(Action.VIEW_PRODUCTS)
def list_products_route():
    try:
        page, per_page = page_args()
        result = products_service.list_products(
            search=request.args.get("search"),
            category=request.args.get("category"),
            low_stock=request.args.get("low_stock", "").lower() in ("1", "true", "yes"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list products")


@products_bp.post("")
@require_auth
@require_permission(Action.MANAGE_PRODUCTS)
def create_product_route():
    try:
        product = products_service.create_product(payload=json_body())
        audit(ACTION_CREATE, "PRODUCT", product.id, f"Created product {product.name}")
        return jsonify({"product": product.to_dict()}), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create product")


@products_bp.get("/categories")
@require_auth
@require_permission(Action.VIEW_PRODUCTS)
def categories_route():
    try:
        return jsonify({"categories": products_service.list_categories()}), 200
    except Exception:
        return internal_error("Failed to list categories")


@products_bp.get("/low-stock")
@require_auth
@require_permission(Action.VIEW_PRODUCTS)
def low_stock_route():
    try:
        items = products_service.list_low_stock()
        return jsonify({"items": items, "count": len(items)}), 200
    except Exception:
        return internal_error("Failed to list low-stock products")


@products_bp.post("/bulk-import")
@require_auth
@require_permission(Action.MANAGE_PRODUCTS)
def bulk_import_route():
    """
    Request body: {"products": [{"name": ..., "selling_price_cents": ..., ...}, ...]}
    """
    try:
        result = products_service.bulk_import(rows=json_body().get("products"))
        audit(
            ACTION_IMPORT, "PRODUCT", None,
            f"Imported {result['imported']} products ({result['skipped']} skipped)",
        )
        return jsonify(result), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to import products")


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission(Action.VIEW_PRODUCTS)
def get_product_route(product_id: int):
    try:
        return jsonify({"product": products_service.get_product(product_id)}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load product")


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission(Action.MANAGE_PRODUCTS)
def update_product_route(product_id: int):
    try:
        data = json_body()
        product = products_service.update_product(product_id=product_id, payload=data)
        audit(ACTION_UPDATE, "PRODUCT", product.id, f"Updated product {product.name}", changes={"after": data})
        return jsonify({"product": product.to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update product")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission(Action.MANAGE_PRODUCTS)
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id=product_id)
        audit(ACTION_DELETE, "PRODUCT", product_id, f"Deleted product {product_id}")
        return jsonify({"message": "Product deleted"}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete product")


@products_bp.patch("/<int:product_id>/update-stock")
@require_auth
@require_permission(Action.MANAGE_STOCK)
def update_stock_route(product_id: int):
    """
    Manual stock adjustment.

    Request body:
    {
        "type": "IN" | "OUT",
        "quantity": 5,
        "note": "Damaged in storage"   (optional)
    }
    """
    try:
        data = json_body()
        result = inventory_service.adjust_stock(
            product_id=product_id,
            movement_type=data.get("type"),
            quantity=data.get("quantity"),
            note=data.get("note") or data.get("notes"),
            actor_user_id=g.current_user.id,
        )
        movement = result["movement"]
        audit(
            ACTION_STOCK_ADJUST, "PRODUCT", product_id,
            f"Stock {movement['type']} {abs(movement['quantity'])} "
            f"({movement['quantity_before']} -> {movement['quantity_after']})",
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update stock")

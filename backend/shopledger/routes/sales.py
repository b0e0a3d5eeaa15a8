# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopledger/routes/sales.py
"""
Sales API Routes

Every sale posts a SALE movement against the product's stock. A sale that
would drive stock negative is rejected with 409 INSUFFICIENT_STOCK.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import ShopError
from ..http import audit, error_response, internal_error, json_body, page_args
from ..permissions import Action
from ..services import sales_service
from ..services.activity_service import ACTION_CREATE, ACTION_PAYMENT


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
@require_permission(Action.MAKE_SALES)
def list_sales_route():
    try:
        page, per_page = page_args()
        result = sales_service.list_sales(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            product_id=request.args.get("product_id", type=int),
            order_number=request.args.get("order_number"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list sales")


@sales_bp.post("")
@require_auth
@require_permission(Action.MAKE_SALES)
def create_sale_route():
    """
    Request body:
    {
        "product_id": 1,
        "quantity": 2,
        "unit_price_cents": 1500,      (optional, defaults to the selling price)
        "customer_id": 3,              (optional, a lender)
        "customer_name": "Walk-in",    (optional)
        "payment_method": "CASH",      (optional)
        "amount_paid_cents": 3000,     (optional, 0 unless payment_status is PAID)
        "notes": "..."                 (optional)
    }
    """
    try:
        sale = sales_service.create_sale(data=json_body(), sold_by_user_id=g.current_user.id)
        audit(
            ACTION_CREATE, "SALE", sale.id,
            f"Sale {sale.sale_number}: {sale.quantity} x product {sale.product_id}",
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create sale")


@sales_bp.post("/bulk")
@require_auth
@require_permission(Action.MAKE_SALES)
def create_bulk_sale_route():
    """
    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}, ...],
        "customer_id": 3,          (optional, shared by every line)
        "payment_method": "CASH"   (optional, shared by every line)
    }
    """
    try:
        data = json_body()
        common = {k: v for k, v in data.items() if k != "items"}
        result = sales_service.create_bulk_sale(
            items=data.get("items"), common=common, sold_by_user_id=g.current_user.id,
        )
        audit(
            ACTION_CREATE, "SALE", None,
            f"Order {result['order_number']}: {len(result['sales'])} lines",
        )
        return jsonify({
            "order_number": result["order_number"],
            "sales": [s.to_dict() for s in result["sales"]],
            "total_amount_cents": result["total_amount_cents"],
        }), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create bulk sale")


@sales_bp.get("/summary")
@require_auth
@require_permission(Action.MAKE_SALES)
def sales_summary_route():
    try:
        result = sales_service.get_sales_summary(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to summarize sales")


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission(Action.MAKE_SALES)
def get_sale_route(sale_id: int):
    try:
        return jsonify({"sale": sales_service.get_sale(sale_id)}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load sale")


@sales_bp.patch("/<int:sale_id>/payment")
@require_auth
@require_permission(Action.MAKE_SALES)
def update_payment_route(sale_id: int):
    """
    Request body: {"amount_cents": 1000, "payment_method": "CASH" (optional)}
    """
    try:
        data = json_body()
        sale = sales_service.update_payment(
            sale_id=sale_id,
            amount_cents=data.get("amount_cents"),
            payment_method=data.get("payment_method"),
            received_by_user_id=g.current_user.id,
        )
        audit(
            ACTION_PAYMENT, "SALE", sale.id,
            f"Payment of {data.get('amount_cents')} on {sale.sale_number} ({sale.payment_status})",
        )
        return jsonify({"sale": sale.to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record payment")

# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/shopledger/routes/returns.py
"""
Returns API Routes

Lifecycle: PENDING -> APPROVED -> COMPLETED. Stock is restored when the
return is filed; the later steps only move the refund along.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import ShopError
from ..http import audit, error_response, internal_error, json_body, page_args
from ..permissions import Action
from ..services import return_service
from ..services.activity_service import ACTION_CREATE, ACTION_STATUS_CHANGE


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("")
@require_auth
@require_permission(Action.MANAGE_RETURNS)
def list_returns_route():
    try:
        page, per_page = page_args()
        result = return_service.list_returns(
            status=request.args.get("status"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list returns")


@returns_bp.post("")
@require_auth
@require_permission(Action.MANAGE_RETURNS)
def create_return_route():
    """
    Request body:
    {
        "sale_id": 1,
        "quantity": 1,
        "reason": "Damaged",           (optional)
        "refund_amount_cents": 1500,   (optional, defaults to unit price x quantity)
        "refund_method": "CASH",       (optional)
        "notes": "..."                 (optional)
    }
    """
    try:
        ret = return_service.create_return(data=json_body(), returned_by_user_id=g.current_user.id)
        audit(
            ACTION_CREATE, "RETURN", ret.id,
            f"Return {ret.return_number}: {ret.quantity} x product {ret.product_id}",
        )
        return jsonify({"return": ret.to_dict()}), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create return")


@returns_bp.get("/<int:return_id>")
@require_auth
@require_permission(Action.MANAGE_RETURNS)
def get_return_route(return_id: int):
    try:
        return jsonify({"return": return_service.get_return(return_id).to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load return")


@returns_bp.patch("/<int:return_id>/approve")
@require_auth
@require_permission(Action.MANAGE_RETURNS)
def approve_return_route(return_id: int):
    try:
        ret = return_service.approve_return(return_id, user_id=g.current_user.id)
        audit(ACTION_STATUS_CHANGE, "RETURN", ret.id, f"Approved return {ret.return_number}")
        return jsonify({"return": ret.to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to approve return")


@returns_bp.patch("/<int:return_id>/complete")
@require_auth
@require_permission(Action.MANAGE_RETURNS)
def complete_return_route(return_id: int):
    try:
        ret = return_service.complete_return(return_id, user_id=g.current_user.id)
        audit(ACTION_STATUS_CHANGE, "RETURN", ret.id, f"Completed return {ret.return_number}")
        return jsonify({"return": ret.to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to complete return")

# Overview: Flask API routes for lenders (credit customers); parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import ShopError
from ..http import audit, error_response, internal_error, json_body, page_args
from ..permissions import Action
from ..services import lender_service
from ..services.activity_service import ACTION_CREATE, ACTION_PAYMENT, ACTION_STATUS_CHANGE, ACTION_UPDATE


lenders_bp = Blueprint("lenders", __name__, url_prefix="/api/lenders")


@lenders_bp.get("")
@require_auth
@require_permission(Action.MANAGE_LENDERS)
def list_lenders_route():
    try:
        page, per_page = page_args()
        result = lender_service.list_lenders(
            search=request.args.get("search"),
            status=request.args.get("status"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list lenders")


@lenders_bp.post("")
@require_auth
@require_permission(Action.MANAGE_LENDERS)
def create_lender_route():
    try:
        lender = lender_service.create_lender(payload=json_body())
        audit(ACTION_CREATE, "LENDER", lender.id, f"Created lender {lender.customer_code} {lender.name}")
        return jsonify({"lender": lender.to_dict()}), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create lender")


@lenders_bp.get("/with-debt")
@require_auth
@require_permission(Action.MANAGE_LENDERS)
def lenders_with_debt_route():
    try:
        return jsonify(lender_service.list_lenders_with_debt()), 200
    except Exception:
        return internal_error("Failed to list lenders with debt")


@lenders_bp.get("/<int:lender_id>")
@require_auth
@require_permission(Action.MANAGE_LENDERS)
def get_lender_route(lender_id: int):
    try:
        return jsonify({"lender": lender_service.get_lender(lender_id)}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load lender")


@lenders_bp.put("/<int:lender_id>")
@require_auth
@require_permission(Action.MANAGE_LENDERS)
def update_lender_route(lender_id: int):
    try:
        data = json_body()
        lender = lender_service.update_lender(lender_id=lender_id, payload=data)
        audit(ACTION_UPDATE, "LENDER", lender.id, f"Updated lender {lender.customer_code}", changes={"after": data})
        return jsonify({"lender": lender.to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update lender")


@lenders_bp.patch("/<int:lender_id>/status")
@require_auth
@require_permission(Action.MANAGE_LENDERS)
def set_lender_status_route(lender_id: int):
    """Request body: {"status": "ACTIVE" | "SUSPENDED"}"""
    try:
        lender = lender_service.set_lender_status(lender_id=lender_id, status=json_body().get("status"))
        audit(ACTION_STATUS_CHANGE, "LENDER", lender.id, f"Lender {lender.customer_code} is now {lender.status}")
        return jsonify({"lender": lender.to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change lender status")


@lenders_bp.post("/<int:lender_id>/payment")
@require_auth
@require_permission(Action.MANAGE_LENDERS)
def record_payment_route(lender_id: int):
    """
    Request body:
    {
        "amount_cents": 5000,
        "payment_method": "CASH",   (optional)
        "reference": "...",         (optional)
        "notes": "..."              (optional)
    }
    """
    try:
        data = json_body()
        payment = lender_service.record_payment(
            lender_id=lender_id,
            amount_cents=data.get("amount_cents"),
            payment_method=data.get("payment_method"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            received_by_user_id=g.current_user.id,
        )
        audit(
            ACTION_PAYMENT, "LENDER", lender_id,
            f"Payment {payment.payment_number} of {payment.amount_cents}",
        )
        return jsonify({"payment": payment.to_dict()}), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record payment")

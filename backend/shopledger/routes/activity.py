# Overview: Flask API routes for the activity log (read-only).

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import ShopError
from ..http import error_response, internal_error, page_args
from ..permissions import Action
from ..services import activity_service


activity_bp = Blueprint("activity", __name__, url_prefix="/api/activity")


@activity_bp.get("/log")
@require_auth
@require_permission(Action.VIEW_ACTIVITY)
def activity_log_route():
    try:
        page, per_page = page_args()
        result = activity_service.list_activity(
            action=request.args.get("action"),
            resource_type=request.args.get("resource_type"),
            resource_id=request.args.get("resource_id", type=int),
            user_id=request.args.get("user_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            search=request.args.get("search"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list activity")


@activity_bp.get("/summary")
@require_auth
@require_permission(Action.VIEW_ACTIVITY)
def activity_summary_route():
    try:
        result = activity_service.get_activity_summary(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to summarize activity")


@activity_bp.get("/types")
@require_auth
@require_permission(Action.VIEW_ACTIVITY)
def activity_types_route():
    try:
        return jsonify(activity_service.list_activity_types()), 200
    except Exception:
        return internal_error("Failed to list activity types")


@activity_bp.get("/user/<int:user_id>")
@require_auth
@require_permission(Action.VIEW_ACTIVITY)
def user_activity_route(user_id: int):
    try:
        page, per_page = page_args()
        result = activity_service.list_activity(user_id=user_id, page=page, per_page=per_page)
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list user activity")


@activity_bp.get("/resource/<int:resource_id>")
@require_auth
@require_permission(Action.VIEW_ACTIVITY)
def resource_activity_route(resource_id: int):
    """
    History of one record. Ids are only unique per table, so pass
    ?resource_type=PRODUCT (SALE, LENDER, ...) to narrow it to one.
    """
    try:
        page, per_page = page_args()
        result = activity_service.list_activity(
            resource_id=resource_id,
            resource_type=request.args.get("resource_type"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list resource activity")

# Overview: Flask API routes for weekly stock reports; parses input and returns JSON responses.

# backend/shopledger/routes/reports.py
"""
Weekly Stock Report Routes

Reports are snapshots: opening stock when created, closing stock when closed.
They never change product stock.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import ShopError
from ..http import audit, error_response, internal_error, json_body, page_args
from ..permissions import Action
from ..services import additional_stock_service, report_service
from ..services.activity_service import ACTION_CREATE, ACTION_STATUS_CHANGE


reports_bp = Blueprint("reports", __name__, url_prefix="/api/stock-reports")


@reports_bp.get("")
@require_auth
@require_permission(Action.MANAGE_REPORTS)
def list_reports_route():
    try:
        page, per_page = page_args()
        result = report_service.list_reports(
            year=request.args.get("year", type=int), page=page, per_page=per_page,
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list reports")


@reports_bp.post("")
@require_auth
@require_permission(Action.MANAGE_REPORTS)
def create_report_route():
    """
    Request body: {"start_date": "2024-03-04", "end_date": "2024-03-10", "notes": "..."}
    """
    try:
        data = json_body()
        report = report_service.create_report(
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            notes=data.get("notes"),
            user_id=g.current_user.id,
        )
        audit(ACTION_CREATE, "STOCK_REPORT", report.id, f"Opened report for week {report.week_number}/{report.year}")
        return jsonify({"report": report.to_dict()}), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create report")


@reports_bp.get("/current")
@require_auth
@require_permission(Action.MANAGE_REPORTS)
def current_report_route():
    try:
        report = report_service.get_or_create_current_report(user_id=g.current_user.id)
        return jsonify({"report": report.to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load current report")


@reports_bp.get("/additional-stock")
@require_auth
@require_permission(Action.MANAGE_REPORTS)
def additional_stock_route():
    """Purchase batches for ?week_number=&year= (defaults to the current week)."""
    try:
        result = additional_stock_service.list_additional_stock(
            week_number=request.args.get("week_number", type=int),
            year=request.args.get("year", type=int),
        )
        return jsonify(result), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list additional stock")


@reports_bp.get("/<int:report_id>")
@require_auth
@require_permission(Action.MANAGE_REPORTS)
def get_report_route(report_id: int):
    try:
        return jsonify({"report": report_service.get_report(report_id)}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load report")


@reports_bp.get("/<int:report_id>/variance")
@require_auth
@require_permission(Action.MANAGE_REPORTS)
def report_variance_route(report_id: int):
    try:
        return jsonify(report_service.get_variance(report_id)), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to compute variance")


@reports_bp.patch("/<int:report_id>/close")
@require_auth
@require_permission(Action.MANAGE_REPORTS)
def close_report_route(report_id: int):
    try:
        report = report_service.close_report(report_id=report_id, notes=json_body().get("notes"))
        audit(ACTION_STATUS_CHANGE, "STOCK_REPORT", report.id, f"Closed report for week {report.week_number}/{report.year}")
        return jsonify({"report": report.to_dict()}), 200
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to close report")

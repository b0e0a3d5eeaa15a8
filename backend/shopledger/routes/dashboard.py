# Overview: Flask API routes for the dashboard; read-only aggregates for the home screen.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_permission
from ..http import internal_error
from ..permissions import Action
from ..services import dashboard_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_permission(Action.VIEW_INVENTORY)
def dashboard_stats_route():
    try:
        return jsonify(dashboard_service.get_dashboard_stats()), 200
    except Exception:
        return internal_error("Failed to compute dashboard stats")


@dashboard_bp.get("/sales-chart")
@require_auth
@require_permission(Action.VIEW_INVENTORY)
def sales_chart_route():
    """Query: ?period=week|month|year (default week)"""
    try:
        return jsonify(dashboard_service.get_sales_chart(request.args.get("period"))), 200
    except Exception:
        return internal_error("Failed to build sales chart")


@dashboard_bp.get("/inventory-by-category")
@require_auth
@require_permission(Action.VIEW_INVENTORY)
def inventory_by_category_route():
    try:
        categories = dashboard_service.get_inventory_by_category()
        return jsonify({"categories": categories, "count": len(categories)}), 200
    except Exception:
        return internal_error("Failed to compute inventory by category")

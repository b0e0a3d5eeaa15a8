# Overview: Small request/response helpers shared by the API routes.

from __future__ import annotations

from flask import current_app, g, jsonify, request

from .errors import ShopError, ValidationError
from .services.activity_service import log_activity


def error_response(exc: ShopError):
    """JSON body + status for an expected business failure."""
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(log_message: str):
    """Log the active exception with its traceback and answer with a bare 500."""
    current_app.logger.exception(log_message)
    return jsonify({"error": "INTERNAL", "message": "Internal server error"}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def page_args() -> tuple[int | None, int | None]:
    page = request.args.get("page", type=int)
    # Accept both per_page and limit
    per_page = request.args.get("per_page", type=int) or request.args.get("limit", type=int)
    return page, per_page


def client_ip() -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def audit(action: str, resource_type: str, resource_id: int | None, description: str,
          changes: dict | None = None) -> None:
    """Activity entry for the current user; runs after the business commit."""
    user = getattr(g, "current_user", None)
    log_activity(
        user_id=user.id if user is not None else None,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        description=description,
        changes=changes,
        ip_address=client_ip(),
    )

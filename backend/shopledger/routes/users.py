# Overview: Flask API routes for user administration (ADMIN only).

from flask import Blueprint, jsonify

from ..decorators import require_auth, require_permission
from ..errors import ShopError
from ..http import audit, error_response, internal_error, json_body
from ..permissions import Action
from ..services import auth_service
from ..services.activity_service import ACTION_CREATE


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission(Action.MANAGE_USERS)
def list_users_route():
    try:
        return jsonify({"users": auth_service.list_users()}), 200
    except Exception:
        return internal_error("Failed to list users")


@users_bp.post("")
@require_auth
@require_permission(Action.MANAGE_USERS)
def create_user_route():
    """
    Request body:
    {
        "username": "jane",
        "email": "jane@example.com",
        "password": "Str0ng!pass",
        "role": "SALES",            (ADMIN | MANAGER | SALES)
        "first_name": "Jane",       (optional)
        "last_name": "Doe"          (optional)
    }
    """
    try:
        data = json_body()
        user = auth_service.create_user(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or "SALES",
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )
        audit(ACTION_CREATE, "USER", user.id, f"Created user {user.username} ({user.role})")
        return jsonify({"user": user.to_dict()}), 201
    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create user")

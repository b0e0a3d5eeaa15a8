# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/shopledger/routes/auth.py
"""
Authentication API routes

- POST /api/auth/login   username (or email) + password -> bearer token
- POST /api/auth/logout  revokes the presented token
- GET  /api/auth/me      current user and the actions their role allows
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import ShopError
from ..http import audit, client_ip, error_response, internal_error, json_body
from ..permissions import permissions_for
from ..services import auth_service, session_service
from ..services.activity_service import ACTION_LOGIN, ACTION_LOGIN_FAILED, ACTION_LOGOUT, log_activity


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header (Bearer) for
    protected routes.
    """
    try:
        data = json_body()
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "VALIDATION", "message": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            # Wrong password for a real account; unknown names are not recorded
            known = auth_service.find_login_user(username)
            if known is not None:
                log_activity(
                    user_id=known.id,
                    action=ACTION_LOGIN_FAILED,
                    resource_type="USER",
                    resource_id=known.id,
                    description=f"Failed login attempt for user {username}",
                    ip_address=client_ip(),
                )
            return jsonify({"error": "UNAUTHORIZED", "message": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=client_ip(),
        )

        g.current_user = user
        audit(ACTION_LOGIN, "USER", user.id, f"{user.username} logged in")

        return jsonify({
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
            "user": user.to_dict(),
        }), 200

    except ShopError as e:
        return error_response(e)
    except Exception:
        return internal_error("Login failed")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.current_token)
        audit(ACTION_LOGOUT, "USER", g.current_user.id, f"{g.current_user.username} logged out")
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        return internal_error("Logout failed")


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": permissions_for(user.role),
    }), 200

# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import Action, has_permission, normalize_role
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.current_token: The plaintext bearer token (for logout)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "UNAUTHORIZED", "message": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "UNAUTHORIZED", "message": "Invalid or expired token"}), 401

        g.current_user = user
        g.current_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(action: Action):
    """
    Require the current user's role to allow an action.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "UNAUTHORIZED", "message": "Authentication required"}), 401

            role = normalize_role(g.current_user.role)
            if not has_permission(role, action):
                return jsonify({
                    "error": "FORBIDDEN",
                    "message": "Permission denied",
                    "details": {
                        "required_permission": Action(action).value,
                        "role": role.value if role else g.current_user.role,
                    },
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

# Overview: Request decorators for API routes (bearer auth and role gates).

from functools import wraps
from flask import request, jsonify, g

from .models import UserRole
from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid bearer session and set g.current_user.

    Returns:
    - 401 if the Authorization header is missing or not a Bearer token
    - 403 if the token is unknown, expired, revoked, or the account is inactive
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Access token required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 403

        g.current_user = user
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(role: UserRole):
    """
    Require the authenticated user to hold `role`. Apply after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Access token required"}), 401

            if g.current_user.role != role:
                label = "Admin" if role == UserRole.ADMIN else "Subscriber"
                return jsonify({"error": f"{label} access required"}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


require_admin = require_role(UserRole.ADMIN)
require_subscriber = require_role(UserRole.SUBSCRIBER)

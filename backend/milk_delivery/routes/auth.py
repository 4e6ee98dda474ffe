# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/milk_delivery/routes/auth.py
"""
Authentication API routes

- POST /api/auth/register  create a subscriber account and log in
- POST /api/auth/login     exchange email/password for a bearer token
- POST /api/auth/logout    revoke the presented token
- GET  /api/auth/me        the authenticated user

Admins are never created here; use `flask users create --role admin`.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, session_service
from ..validation import ConflictError, ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _issue_token(user):
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return session, token


@auth_bp.post("/register")
def register_route():
    """
    Request body:
    {
        "name": "Asha Rao",
        "email": "asha@example.com",
        "password": "milk2024a",
        "address": "12 Lake Road, Pune"
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        user = auth_service.register_subscriber(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            address=data.get("address"),
        )
        session, token = _issue_token(user)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Subscriber %s registered", user.id)
    return jsonify({
        "message": "User registered successfully",
        "token": token,
        "session": session.to_dict(),
        "user": user.to_dict(),
    }), 201


@auth_bp.post("/login")
def login_route():
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400
        if not isinstance(email, str) or not isinstance(password, str):
            return jsonify({"error": "email and password must be strings"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = _issue_token(user)

        return jsonify({
            "message": "Login successful",
            "token": token,
            "session": session.to_dict(),
            "user": user.to_dict(),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.auth_token, reason="User logout")
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200

# Overview: Flask API routes for a subscriber's own profile, history and stats.

# backend/milk_delivery/routes/users.py
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_subscriber
from ..models import User
from ..money import to_money
from ..services import auth_service, billing_service, order_service
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, ValidationError, parse_month_year, validate_payload

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/profile")
@require_auth
@require_subscriber
def get_profile_route():
    return jsonify({"user": g.current_user.to_profile_dict()}), 200


@users_bp.put("/profile")
@require_auth
@require_subscriber
def update_profile_route():
    """
    Request body (all optional):
    {
        "name": "Asha Rao",                  // at least 2 characters
        "address": "12 Lake Road, Pune"      // at least 10 characters
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=User, payload=payload, policy=PROFILE_POLICY, partial=True)
        user = auth_service.update_profile(
            g.current_user,
            name=patch.get("name"),
            address=patch.get("address"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "Profile updated successfully",
        "user": user.to_profile_dict(),
    }), 200


@users_bp.get("/deliveries")
@require_auth
@require_subscriber
def list_deliveries_route():
    """
    Delivery history, newest first.

    Filtered to one month only when both ?month= and ?year= are given.
    """
    month_raw = request.args.get("month")
    year_raw = request.args.get("year")

    try:
        month = year = None
        if month_raw and year_raw:
            month, year = parse_month_year(month_raw, year_raw, today=utcnow().date())
        deliveries = order_service.list_user_deliveries(g.current_user.id, month, year)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list user deliveries")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"deliveries": [d.to_dict() for d in deliveries]}), 200


@users_bp.get("/stats")
@require_auth
@require_subscriber
def stats_route():
    try:
        month, year = parse_month_year(
            request.args.get("month"),
            request.args.get("year"),
            today=utcnow().date(),
        )
        stats = order_service.user_monthly_stats(g.current_user.id, month, year)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to compute user stats")
        return jsonify({"error": "Internal server error"}), 500

    stats["totalAmount"] = to_money(stats["totalAmount"])
    return jsonify(stats), 200


@users_bp.get("/payments")
@require_auth
@require_subscriber
def list_payments_route():
    try:
        payments = billing_service.list_user_payments(g.current_user.id)
    except Exception:
        current_app.logger.exception("Failed to list user payments")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"payments": [p.to_dict() for p in payments]}), 200

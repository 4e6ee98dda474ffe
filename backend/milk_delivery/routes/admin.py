# Overview: Flask API routes for administrators: dashboard, listings and catalog pricing.

# backend/milk_delivery/routes/admin.py
"""
Admin routes. Every route requires an authenticated admin.

- GET  /api/admin/dashboard?month&year   monthly aggregates
- GET  /api/admin/users                  subscribers
- GET  /api/admin/deliveries?date&user_id
- GET  /api/admin/payments
- GET  /api/admin/milk-rates
- POST /api/admin/milk-rates             create catalog entry
- PUT  /api/admin/milk-rates/<id>        reprice catalog entry
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin, require_auth
from ..models import MilkRate
from ..services import catalog_service, reporting_service
from ..services.catalog_service import DuplicateQuantityError
from ..time_utils import parse_iso_date, utcnow
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_integer,
    enforce_rules_milk_rate,
    parse_month_year,
    validate_payload,
)

RATE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "price", "notes"},
    required_on_create={"quantity", "price"},
)

RATE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"price", "notes"},
    required_on_create={"price"},
)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/dashboard")
@require_auth
@require_admin
def dashboard_route():
    try:
        month, year = parse_month_year(
            request.args.get("month"),
            request.args.get("year"),
            today=utcnow().date(),
        )
        report = reporting_service.dashboard(month=month, year=year)
        return jsonify(report), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build admin dashboard")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    try:
        users = reporting_service.list_subscribers()
        return jsonify({"users": [u.to_dict() for u in users]}), 200
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/deliveries")
@require_auth
@require_admin
def list_deliveries_route():
    """
    Query params:
    - date: ISO-8601 date (optional)
    - user_id: int (optional)
    """
    try:
        delivery_date = parse_iso_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be a valid ISO-8601 date"}), 400

    user_id = None
    user_id_raw = request.args.get("user_id")
    if user_id_raw not in (None, ""):
        try:
            user_id = coerce_integer("user_id", user_id_raw)
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400

    try:
        deliveries = reporting_service.list_deliveries(delivery_date=delivery_date, user_id=user_id)
        return jsonify({"deliveries": [d.to_dict(include_user=True) for d in deliveries]}), 200
    except Exception:
        current_app.logger.exception("Failed to list deliveries")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/payments")
@require_auth
@require_admin
def list_payments_route():
    try:
        payments = reporting_service.list_payments()
        return jsonify({"payments": [p.to_dict(include_user=True) for p in payments]}), 200
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/milk-rates")
@require_auth
@require_admin
def list_milk_rates_route():
    try:
        rates = catalog_service.list_rates()
        return jsonify({"milkRates": [r.to_dict() for r in rates]}), 200
    except Exception:
        current_app.logger.exception("Failed to list milk rates")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/milk-rates")
@require_auth
@require_admin
def create_milk_rate_route():
    """
    Request body:
    {
        "quantity": 1000,   // required, ml, positive integer, unique
        "price": 50.00,     // required, >= 0
        "notes": "1L milk"  // optional
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=MilkRate, payload=payload, policy=RATE_CREATE_POLICY, partial=False)
        enforce_rules_milk_rate(patch)
        rate = catalog_service.create_rate(
            quantity=patch["quantity"],
            price=patch["price"],
            notes=patch.get("notes"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DuplicateQuantityError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create milk rate")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Milk rate %s created: %s ml at %s", rate.id, rate.quantity, rate.price)
    return jsonify({
        "message": "Milk rate created successfully",
        "milkRate": rate.to_dict(),
    }), 201


@admin_bp.put("/milk-rates/<int:rate_id>")
@require_auth
@require_admin
def update_milk_rate_route(rate_id: int):
    """
    Reprice a catalog entry. Existing deliveries keep their snapshot price.

    Request body:
    {
        "price": 27.50,     // required, >= 0
        "notes": "..."      // optional; send null to clear
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=MilkRate, payload=payload, policy=RATE_UPDATE_POLICY, partial=False)
        enforce_rules_milk_rate(patch)
        rate = catalog_service.update_rate(
            rate_id,
            price=patch["price"],
            notes=patch.get("notes"),
            notes_provided="notes" in patch,
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update milk rate")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Milk rate %s repriced to %s", rate.id, rate.price)
    return jsonify({
        "message": "Milk rate updated successfully",
        "milkRate": rate.to_dict(),
    }), 200

# Overview: Flask API routes for delivery orders; parses input and returns JSON responses.

# backend/milk_delivery/routes/deliveries.py
"""
Delivery ordering routes.

- GET  /api/deliveries/options  any authenticated user: the pricing catalog
- POST /api/deliveries/order    subscriber: book a slot
- PUT  /api/deliveries/<id>     subscriber: edit own delivery
- DELETE /api/deliveries/<id>   subscriber: cancel own delivery

Error mapping: validation, unknown milk option and booked slot -> 400;
a delivery that is missing or owned by someone else -> 404.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_subscriber
from ..models import Delivery
from ..services import catalog_service, order_service
from ..services.order_service import SlotAlreadyBookedError
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, validate_payload

ORDER_POLICY = ModelValidationPolicy(
    writable_fields={"milk_id", "delivery_time", "delivery_date"},
    required_on_create={"milk_id", "delivery_time", "delivery_date"},
)

deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


@deliveries_bp.get("/options")
@require_auth
def list_options_route():
    """Catalog entries ordered by ascending quantity."""
    try:
        rates = catalog_service.list_rates()
        return jsonify({"milkOptions": [r.to_dict() for r in rates]}), 200
    except Exception:
        current_app.logger.exception("Failed to list milk options")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.post("/order")
@require_auth
@require_subscriber
def place_order_route():
    """
    Place a delivery order.

    Request body:
    {
        "milk_id": 2,                  // required, catalog entry id
        "delivery_time": "morning",    // required, morning | evening
        "delivery_date": "2024-06-01"  // required, ISO-8601 date
    }
    """
    payload = request.get_json(silent=True) or {}
    user = g.current_user

    try:
        patch = validate_payload(model=Delivery, payload=payload, policy=ORDER_POLICY, partial=False)
        delivery = order_service.place_order(
            user_id=user.id,
            milk_id=patch["milk_id"],
            delivery_time=patch["delivery_time"],
            delivery_date=patch["delivery_date"],
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SlotAlreadyBookedError as e:
        current_app.logger.warning(
            "Rejected duplicate slot for user %s on %s %s",
            user.id, payload.get("delivery_date"), payload.get("delivery_time"),
        )
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "Delivery %s placed by user %s for %s %s",
        delivery.id, user.id, delivery.delivery_date.isoformat(), delivery.delivery_time.value,
    )
    return jsonify({
        "message": "Delivery order placed successfully",
        "delivery": delivery.to_dict(),
    }), 201


@deliveries_bp.put("/<int:delivery_id>")
@require_auth
@require_subscriber
def update_order_route(delivery_id: int):
    """
    Update one of the caller's deliveries.

    Any subset of milk_id / delivery_time / delivery_date may be sent.
    A new milk_id re-snapshots quantity and price.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Delivery, payload=payload, policy=ORDER_POLICY, partial=True)
        delivery = order_service.update_order(
            user_id=g.current_user.id,
            delivery_id=delivery_id,
            milk_id=patch.get("milk_id"),
            delivery_time=patch.get("delivery_time"),
            delivery_date=patch.get("delivery_date"),
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SlotAlreadyBookedError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update delivery")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "Delivery updated successfully",
        "delivery": delivery.to_dict(),
    }), 200


@deliveries_bp.delete("/<int:delivery_id>")
@require_auth
@require_subscriber
def cancel_order_route(delivery_id: int):
    try:
        order_service.cancel_order(user_id=g.current_user.id, delivery_id=delivery_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to cancel delivery")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Delivery %s cancelled by user %s", delivery_id, g.current_user.id)
    return jsonify({"message": "Delivery cancelled successfully"}), 200

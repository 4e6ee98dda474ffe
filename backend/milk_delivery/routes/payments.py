# Overview: Flask API routes for payments and outstanding balances.

# backend/milk_delivery/routes/payments.py
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_subscriber
from ..models import Payment
from ..services import billing_service
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_payment,
    parse_month_year,
    validate_payload,
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"amount", "payment_method", "notes", "idempotency_key"},
    required_on_create={"amount"},
)

IDEMPOTENCY_KEY_MAX_LENGTH = Payment.__table__.c.idempotency_key.type.length

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_auth
@require_subscriber
def record_payment_route():
    """
    Record a payment (status=paid, dated now).

    Request body:
    {
        "amount": 25.00,            // required, > 0, at most 2 decimals
        "payment_method": "upi",    // optional
        "notes": "June",            // optional
        "idempotency_key": "..."    // optional, or Idempotency-Key header
    }

    Returns 201 for a new payment, 200 when the idempotency key matched an
    earlier payment (that payment is returned as-is).
    """
    payload = request.get_json(silent=True) or {}
    user = g.current_user

    try:
        patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=False)
        enforce_rules_payment(patch)

        idempotency_key = request.headers.get("Idempotency-Key") or patch.get("idempotency_key")
        if idempotency_key is not None:
            idempotency_key = idempotency_key.strip() or None
        if idempotency_key and len(idempotency_key) > IDEMPOTENCY_KEY_MAX_LENGTH:
            raise ValidationError(f"idempotency_key exceeds max length {IDEMPOTENCY_KEY_MAX_LENGTH}")

        payment, created = billing_service.record_payment(
            user_id=user.id,
            amount=patch["amount"],
            payment_method=patch.get("payment_method"),
            notes=patch.get("notes"),
            idempotency_key=idempotency_key,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500

    if not created:
        return jsonify({
            "message": "Payment already recorded",
            "payment": payment.to_dict(),
        }), 200

    current_app.logger.info("Payment %s of %s recorded for user %s", payment.id, payment.amount, user.id)
    return jsonify({
        "message": "Payment recorded successfully",
        "payment": payment.to_dict(),
    }), 201


@payments_bp.get("/outstanding")
@require_auth
@require_subscriber
def outstanding_route():
    """
    Outstanding balance for a month (defaults to the current UTC month).

    Query params:
    - month: 1..12
    - year: four-digit year
    """
    try:
        month, year = parse_month_year(
            request.args.get("month"),
            request.args.get("year"),
            today=utcnow().date(),
        )
        balance = billing_service.outstanding_balance(g.current_user.id, month, year)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to compute outstanding balance")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(balance.to_dict()), 200

# Overview: Flask API routes for payment-provider webhooks.

"""
PayRex webhook

POST /api/webhooks/payrex/payment
    {"reference": "ORDER-100234", "status": "PAID", "amount": 450, "paidAt": "2026-10-19T08:00:00Z"}

Always answers 200 {"received": true} once the body is readable, even if
applying it fails: PayRex retries anything else, and an unknown or broken
notification would never succeed on retry. Failures are logged and sent on
signals.payment_webhook_failed.

Authenticity: when PAYREX_WEBHOOK_SECRET is set, the Payrex-Signature header
is verified and unsigned calls get 401. Without it the endpoint is open.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import webhook_service
from ..services.payrex_client import verify_webhook_signature
from ..validation import ValidationError, get_json_body


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.post("/payrex/payment")
def payrex_payment_webhook_route():
    webhook_secret = current_app.config.get("PAYREX_WEBHOOK_SECRET")
    if webhook_secret and not verify_webhook_signature(
        request.get_data(cache=True),
        request.headers.get("Payrex-Signature"),
        webhook_secret,
    ):
        current_app.logger.warning("Rejected PayRex webhook with invalid signature")
        return jsonify({"error": "Invalid signature"}), 401

    try:
        notification = webhook_service.parse_notification(get_json_body())
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    outcome = webhook_service.handle_payment_notification(
        notification.reference,
        notification.reported_status,
        amount=notification.amount,
        paid_at=notification.paid_at,
    )
    current_app.logger.info("PayRex webhook %s: %s", notification.reference, outcome)

    return jsonify({"received": True}), 200

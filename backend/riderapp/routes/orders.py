# Overview: Flask API routes for rider orders; parses input and returns JSON responses.

# backend/riderapp/routes/orders.py
"""
Rider Order API Routes

- GET   /api/rider/orders?status=            List own orders (newest first)
- GET   /api/rider/orders/:id                Order + payment + proof of delivery
- POST  /api/rider/orders/:id/verify         Compare scanned barcode
- PATCH /api/rider/orders/:id/status         Rider-requested status transition
- POST  /api/rider/orders/:id/payment-method CASH or QRPH
- POST  /api/rider/orders/:id/payment/qrph   Generate QRPH code (-> PAYMENT_PENDING)
- POST  /api/rider/orders/:id/proof          Attach proof of delivery

SECURITY:
- All routes require a rider bearer token
- The rider id always comes from the token, never from the request
- Orders of other riders answer 404, exactly like missing ones
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service
from ..services.order_service import (
    InvalidOrderStateError,
    OrderConflictError,
    OrderNotFoundError,
)
from ..services.payrex_client import PaymentProviderError, get_payment_provider
from ..validation import ConfigurationError, ValidationError, get_json_body, optional_str
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/rider/orders")


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        orders = order_service.list_orders(g.rider_id, status=request.args.get("status") or None)
        return jsonify([order.to_dict() for order in orders]), 200
    except Exception:
        current_app.logger.exception("Failed to fetch rider orders")
        return jsonify({"error": "Failed to fetch orders"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order_detail(order_id, g.rider_id)), 200
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch order")
        return jsonify({"error": "Failed to fetch order"}), 500


@orders_bp.post("/<int:order_id>/verify")
@require_auth
def verify_order_route(order_id: int):
    """
    Request body: {"scannedCode": "..."}

    A mismatch is a normal answer ({"verified": false}), not an error.
    """
    try:
        data = get_json_body()
        verified = order_service.verify_barcode(order_id, g.rider_id, optional_str(data, "scannedCode"))
        return jsonify({"verified": verified}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to verify order")
        return jsonify({"error": "Failed to verify order"}), 500


@orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_status_route(order_id: int):
    """
    Request body: {"status": "EN_ROUTE"}

    Error responses:
        400: status missing or transition not allowed from the current status
        404: order not found
        409: order kept changing under concurrent updates
    """
    try:
        data = get_json_body()
        order = order_service.request_status_change(order_id, g.rider_id, optional_str(data, "status"))
        return jsonify(order.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidOrderStateError as e:
        return jsonify({"error": str(e)}), 400
    except OrderConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Failed to update order status"}), 500


@orders_bp.post("/<int:order_id>/payment-method")
@require_auth
def set_payment_method_route(order_id: int):
    """Request body: {"method": "CASH" | "QRPH"}"""
    try:
        data = get_json_body()
        order = order_service.set_payment_method(order_id, g.rider_id, data.get("method"))
        return jsonify(order.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to set payment method")
        return jsonify({"error": "Failed to set payment method"}), 500


@orders_bp.post("/<int:order_id>/payment/qrph")
@require_auth
def initiate_qrph_route(order_id: int):
    """
    Generate a QRPH code for the order's COD amount and move the order to
    PAYMENT_PENDING.

    Response:
    {
        "paymentId": 12,
        "qrphPayload": {"qrString": "...", "amount": 450.0, "currency": "PHP", "reference": "ORDER-100234"}
    }

    Error responses:
        400: payment method is not QRPH (or order cannot take a payment)
        404: order not found
        502: PayRex unavailable
        500: PayRex not configured
    """
    try:
        currency = current_app.config.get("PAYMENT_CURRENCY", "PHP")
        payment = order_service.initiate_qrph_payment(
            order_id,
            g.rider_id,
            provider=get_payment_provider(),
            currency=currency,
        )
        return jsonify({
            "paymentId": payment.id,
            "qrphPayload": order_service.qrph_payload(payment, currency),
        }), 200
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidOrderStateError as e:
        return jsonify({"error": str(e)}), 400
    except PaymentProviderError as e:
        current_app.logger.error("QRPH generation failed for order %s: %s", order_id, e)
        return jsonify({"error": "Payment provider unavailable"}), 502
    except ConfigurationError as e:
        current_app.logger.error("%s", e)
        return jsonify({"error": "Server configuration error"}), 500
    except Exception:
        current_app.logger.exception("Failed to initiate QRPH payment")
        return jsonify({"error": "Failed to initiate QRPH payment"}), 500


@orders_bp.post("/<int:order_id>/proof")
@require_auth
def attach_proof_route(order_id: int):
    """Request body: {"photoUrl": "...", "customerName": "...", "signatureUrl": "..."}"""
    try:
        data = get_json_body()
        proof = order_service.attach_proof_of_delivery(
            order_id,
            g.rider_id,
            photo_url=optional_str(data, "photoUrl"),
            customer_name=optional_str(data, "customerName"),
            signature_url=optional_str(data, "signatureUrl"),
        )
        return jsonify(proof.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to attach proof of delivery")
        return jsonify({"error": "Failed to attach proof of delivery"}), 500

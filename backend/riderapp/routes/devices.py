# Overview: Flask API routes for rider device registration.

from flask import Blueprint, jsonify, g, current_app

from ..services import device_service
from ..validation import ValidationError, get_json_body, optional_str
from ..decorators import require_auth


devices_bp = Blueprint("devices", __name__, url_prefix="/api/rider/devices")


@devices_bp.post("/register")
@require_auth
def register_device_route():
    """
    Register (or refresh) the push token of the rider's phone.

    Request body:
    {
        "deviceToken": "fcm-token",
        "platform": "android"   (optional)
    }
    """
    try:
        data = get_json_body()
        device_service.register_device(
            rider_id=g.rider_id,
            device_token=optional_str(data, "deviceToken"),
            platform=optional_str(data, "platform"),
        )
        return jsonify({"success": True}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register rider device")
        return jsonify({"error": "Failed to register device"}), 500

# Overview: Flask API routes for rider auth; parses input and returns JSON responses.

# backend/riderapp/routes/auth.py
"""
Rider Authentication API routes

- POST /api/auth/register  name, phone, password -> 201 rider
- POST /api/auth/login     phone, password       -> 200 {token, rider}

Tokens expire after JWT_EXPIRES_HOURS (12h) and are sent back as
Authorization: Bearer <token>.
"""

from flask import Blueprint, jsonify, current_app

from ..services import auth_service
from ..services import token_service
from ..services.auth_service import AuthenticationError
from ..validation import ConfigurationError, ConflictError, ValidationError, get_json_body, require_fields


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration for riders.

    Error responses:
        400: name, phone or password missing
        409: phone already registered
    """
    try:
        data = get_json_body()
        require_fields(data, "name", "phone", "password")

        rider = auth_service.register_rider(
            name=str(data["name"]),
            phone=str(data["phone"]),
            password=str(data["password"]),
        )
        current_app.logger.info("Registered rider %s", rider.id)

        return jsonify(rider.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register rider")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate rider and issue a bearer token.

    Error responses:
        400: phone or password missing
        401: invalid credentials (unknown phone and wrong password look the same)
        500: JWT_SECRET not configured
    """
    try:
        data = get_json_body()
        require_fields(data, "phone", "password")

        rider = auth_service.authenticate(str(data["phone"]), str(data["password"]))

        token = token_service.issue_token(
            rider,
            current_app.config.get("JWT_SECRET"),
            expires_hours=current_app.config.get("JWT_EXPIRES_HOURS", token_service.DEFAULT_EXPIRES_HOURS),
        )

        return jsonify({
            "token": token,
            "rider": rider.to_dict(),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthenticationError:
        return jsonify({"error": "Invalid credentials"}), 401
    except ConfigurationError:
        current_app.logger.error("JWT_SECRET is not configured")
        return jsonify({"error": "Server configuration error"}), 500
    except Exception:
        current_app.logger.exception("Failed to login rider")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import token_service
from .services.token_service import InvalidTokenError
from .validation import ConfigurationError


def require_auth(f):
    """
    Require a valid rider bearer token.

    Sets g.rider (RiderContext) and g.rider_id for the route.

    Returns 401 if:
    - No Authorization header or not a Bearer scheme
    - Token signature invalid, expired or malformed

    Returns 500 if JWT_SECRET is not configured.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization") or ""
        scheme, _, token = auth_header.partition(" ")

        if scheme != "Bearer" or not token.strip():
            return jsonify({"error": "Unauthorized"}), 401

        try:
            context = token_service.decode_token(token.strip(), current_app.config.get("JWT_SECRET"))
        except ConfigurationError:
            current_app.logger.error("JWT_SECRET is not configured")
            return jsonify({"error": "Server configuration error"}), 500
        except InvalidTokenError as e:
            current_app.logger.info("Rejected bearer token on %s: %s", request.path, e)
            return jsonify({"error": "Invalid token"}), 401

        g.rider = context
        g.rider_id = context.rider_id

        return f(*args, **kwargs)

    return decorated_function

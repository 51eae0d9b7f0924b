# backend/riderapp/routes/system.py
"""
System health endpoints.

/health is the load balancer probe and never touches the database.
/health/details checks database connectivity for operators.
"""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run a trivial query and report latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    return jsonify({"status": "ok"})


@system_bp.get("/health/details")
def health_details():
    database = check_database_health()
    configured = {
        "jwt_secret": bool(current_app.config.get("JWT_SECRET")),
        "payrex_secret_api_key": bool(current_app.config.get("PAYREX_SECRET_API_KEY")),
        "payrex_webhook_secret": bool(current_app.config.get("PAYREX_WEBHOOK_SECRET")),
    }
    healthy = database["status"] == "healthy" and configured["jwt_secret"]
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database,
            "configuration": configured,
        },
    }), 200 if healthy else 503

# backend/rosterdesk/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Order, Registration

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with two cheap counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        order_count = db.session.query(Order).count()
        registration_count = db.session.query(Registration).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "orders": order_count,
                "registrations": registration_count,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_feed_config() -> dict:
    configured = all(current_app.config.get(k) for k in ("WC_URL", "WC_CONSUMER_KEY", "WC_CONSUMER_SECRET"))
    return {"status": "configured" if configured else "not_configured"}


@system_bp.get("/health")
def health():
    database = check_database_health()
    body = {
        "status": database["status"],
        "checks": {
            "database": database,
            "order_feed": check_feed_config(),
        },
    }
    return body, 200 if database["status"] == "healthy" else 503

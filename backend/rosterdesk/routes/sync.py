# Overview: Flask API routes for the manual sync buttons and sync diagnostics.

# backend/rosterdesk/routes/sync.py
"""
Sync API Routes

Both syncs are operator-triggered and never retried automatically: a
failed run answers with {"error", "kind", "details"} and the operator
clicks sync again. Responses are marked no-store so a browser never shows
a cached sync result.
"""
from flask import Blueprint, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import order_sync_service, registration_sync_service
from ..services.order_feed import open_order_feed


sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@sync_bp.post("/orders")
def sync_orders_route():
    """
    Pull every order and product from WooCommerce into the database.

    Returns:
        200: {"success": true, "message", "orderCount", "productCount"}
        502: feed unreachable / rejected credentials
        500: database write failed (nothing committed)
    """
    try:
        with open_order_feed() as feed:
            result = order_sync_service.sync_orders(feed)
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status, NO_STORE_HEADERS
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to sync orders")
        return {"error": "Failed to sync orders"}, 500, NO_STORE_HEADERS

    return {
        "success": True,
        "message": result.message,
        "orderCount": result.order_count,
        "productCount": result.product_count,
    }, 200, NO_STORE_HEADERS


@sync_bp.post("/registrations")
def sync_registrations_route():
    """
    Derive registrations from synced orders.

    Returns:
        200: {"success": true, "message", "synced"} (synced may be 0)
        500: database failure
    """
    try:
        synced = registration_sync_service.sync_registrations()
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status, NO_STORE_HEADERS
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to sync registrations")
        return {"error": "Failed to sync registrations"}, 500, NO_STORE_HEADERS

    message = f"Synced {synced} registrations" if synced else "No new registrations to sync"
    return {"success": True, "message": message, "synced": synced}, 200, NO_STORE_HEADERS


@sync_bp.get("/status")
def sync_status_route():
    """Compare the latest visible orders upstream with the stored ones."""
    try:
        with open_order_feed() as feed:
            report = order_sync_service.compare_recent_orders(feed)
    except ServiceError as e:
        return e.to_dict(), e.http_status, NO_STORE_HEADERS
    except Exception:
        current_app.logger.exception("Failed to compare orders")
        return {"error": "Failed to compare orders"}, 500, NO_STORE_HEADERS
    return report, 200, NO_STORE_HEADERS


@sync_bp.get("/orders/<int:order_id>/inspect")
def inspect_order_route(order_id: int):
    """Fetch one order straight from WooCommerce."""
    try:
        with open_order_feed() as feed:
            return order_sync_service.inspect_order(feed, order_id), 200
    except ServiceError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to inspect order %s", order_id)
        return {"error": "Failed to fetch order"}, 500

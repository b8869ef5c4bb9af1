# Overview: Flask API routes for programs, rosters and registration moves.

# backend/rosterdesk/routes/programs.py
"""
Program & Roster API Routes

DESIGN:
- Program names travel URL-encoded in the path (they contain spaces and "&")
- Remove/restore/transfer answer {"success": true, ...} or a specific error
- Transfer commits inside the service; a failed transfer reports that
  nothing was applied
"""
from flask import Blueprint, request, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import program_settings_service, roster_service
from ..services.concurrency import commit_or_rollback


programs_bp = Blueprint("programs", __name__, url_prefix="/api")


def _commit_or_error(action: str):
    """Commit the current unit of work; returns an error response or None."""
    try:
        commit_or_rollback()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to %s", action)
        return {"error": f"Failed to {action}"}, 500
    return None


# =============================================================================
# PROGRAMS & ROSTERS
# =============================================================================

@programs_bp.get("/programs")
def list_programs_route():
    """Query params: filter=active|all (default active)."""
    active_only = request.args.get("filter", "active") != "all"
    return {"programs": roster_service.list_programs(active_only=active_only)}, 200


@programs_bp.get("/programs/all-rosters")
def all_rosters_route():
    return roster_service.all_rosters(), 200


@programs_bp.get("/programs/<path:program_name>/roster")
def roster_route(program_name: str):
    include_inactive = request.args.get("show_removed", "true").lower() != "false"
    roster = roster_service.get_roster(program_name, include_inactive=include_inactive)
    roster["transfer_targets"] = roster_service.transfer_targets(program_name)
    roster["emails"] = roster_service.active_emails(program_name)
    return roster, 200


@programs_bp.post("/programs/<path:program_name>/registrations")
def add_registration_route(program_name: str):
    """
    Add a player manually.

    Request body:
    {
        "player_name": str,
        "player_email": str (optional),
        "player_phone": str (optional),
        "payment_method": str (optional, default "e-transfer"),
        "amount": "120.00" (optional),
        "notes": str (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        registration = roster_service.add_manual_registration(program_name, payload)
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status

    failed = _commit_or_error("add player")
    if failed:
        return failed
    return {"success": True, "registration": registration.to_dict()}, 201


# =============================================================================
# REGISTRATION ACTIONS
# =============================================================================

@programs_bp.patch("/registrations/<int:registration_id>")
def update_registration_route(registration_id: int):
    """Edit player_name / player_email / player_phone."""
    payload = request.get_json(silent=True) or {}
    try:
        registration = roster_service.update_player_contact(registration_id, payload)
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status

    failed = _commit_or_error("update player")
    if failed:
        return failed
    return {"success": True, "registration": registration.to_dict()}, 200


@programs_bp.post("/registrations/<int:registration_id>/remove")
def remove_registration_route(registration_id: int):
    try:
        registration = roster_service.remove_registration(registration_id)
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status

    failed = _commit_or_error("remove player")
    if failed:
        return failed
    return {"success": True, "registration": registration.to_dict()}, 200


@programs_bp.post("/registrations/<int:registration_id>/restore")
def restore_registration_route(registration_id: int):
    try:
        registration = roster_service.restore_registration(registration_id)
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status

    failed = _commit_or_error("restore player")
    if failed:
        return failed
    return {"success": True, "registration": registration.to_dict()}, 200


@programs_bp.post("/registrations/<int:registration_id>/transfer")
def transfer_registration_route(registration_id: int):
    """
    Move a player to another program.

    Request body: {"target_program": str}

    Returns:
        200: {"success": true, "message", "registration": <new row>}
        400: missing/same target
        404: unknown registration
        409: registration is not active
        500: move failed and was rolled back
    """
    data = request.get_json(silent=True) or {}
    try:
        moved = roster_service.transfer_registration(registration_id, data.get("target_program"))
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to move registration %s", registration_id)
        return {"error": "Failed to move player; no changes were applied"}, 500

    return {
        "success": True,
        "message": f"{moved.player_name} successfully moved to {moved.program_name}",
        "registration": moved.to_dict(),
    }, 200


# =============================================================================
# PROGRAM SETTINGS & COLORS
# =============================================================================

@programs_bp.get("/program-settings")
def list_settings_route():
    settings = program_settings_service.list_program_settings()
    return {"settings": [s.to_dict() for s in settings]}, 200


@programs_bp.post("/program-settings")
def upsert_setting_route():
    """
    Request body: {"program_name": str, and any of "status", "display_order",
    "start_date", "notes", "email_template"}
    """
    payload = dict(request.get_json(silent=True) or {})
    program_name = payload.pop("program_name", None)
    try:
        setting = program_settings_service.upsert_program_setting(program_name, payload)
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status

    failed = _commit_or_error("save program settings")
    if failed:
        return failed
    return {"success": True, "setting": setting.to_dict()}, 200


@programs_bp.get("/program-colors")
def list_colors_route():
    colors = program_settings_service.list_program_colors()
    return {"colors": [c.to_dict() for c in colors]}, 200


@programs_bp.post("/program-colors")
def set_color_route():
    data = request.get_json(silent=True) or {}
    try:
        color = program_settings_service.set_program_color(data.get("program_name"), data.get("color"))
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status

    failed = _commit_or_error("save program color")
    if failed:
        return failed
    return {"success": True, "color": color.to_dict()}, 200

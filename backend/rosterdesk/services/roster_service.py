# backend/rosterdesk/services/roster_service.py
"""
Roster / Transfer Manager.

STATE MACHINE (RegistrationStatus):
    active          -> removed           remove (soft delete)
    removed         -> active            restore
    active          -> transferred_out   transfer (plus a new active row at the target)
    transferred_out -> active            restore (the target row is left in place)

Every status change goes through _transition(); anything not in
ALLOWED_TRANSITIONS raises RosterError(kind="conflict").

TRANSFER ATOMICITY: the destination insert and the source status change
are flushed in the same transaction and committed once. If either write
fails the whole move is rolled back and TransferError says nothing was
applied, so an operator never sees "moved" for a half-done move.
"""
from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, KIND_PERSISTENCE
from ..extensions import db
from ..models import (
    Product,
    ProgramSetting,
    ProgramStatus,
    Registration,
    RegistrationSource,
    RegistrationStatus,
)
from ..time_utils import short_us_date
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload
from .concurrency import commit_or_rollback, lock_for_update
from .program_identity import (
    ProgramCategory,
    classify_program,
    is_actual_program,
    normalize_program_name,
    program_capacity,
    published_program_names,
)


ALLOWED_TRANSITIONS: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {
    RegistrationStatus.ACTIVE: frozenset({RegistrationStatus.REMOVED, RegistrationStatus.TRANSFERRED_OUT}),
    RegistrationStatus.REMOVED: frozenset({RegistrationStatus.ACTIVE}),
    RegistrationStatus.TRANSFERRED_OUT: frozenset({RegistrationStatus.ACTIVE}),
}

DEFAULT_MANUAL_PAYMENT_METHOD = "e-transfer"

ROSTER_PROGRAM_STATUSES = (ProgramStatus.OPEN_REGISTRATION, ProgramStatus.IN_PROGRESS)

MANUAL_REGISTRATION_POLICY = ModelValidationPolicy(
    writable_fields={"player_name", "player_email", "player_phone", "payment_method", "amount", "notes"},
    required_on_create={"player_name"},
)

CONTACT_POLICY = ModelValidationPolicy(
    writable_fields={"player_name", "player_email", "player_phone"},
)


class RosterError(ConflictError):
    pass


class TransferError(RosterError):
    """Raised when a move cannot be completed; the move is never half-applied."""
    kind = KIND_PERSISTENCE


def _get_registration(registration_id: int, *, lock: bool = False) -> Registration:
    query = db.session.query(Registration).filter_by(id=registration_id)
    if lock:
        query = lock_for_update(query)
    registration = query.first()
    if registration is None:
        raise NotFoundError(f"Registration {registration_id} not found")
    return registration


def _transition(registration: Registration, target: RegistrationStatus) -> None:
    current = RegistrationStatus(registration.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise RosterError(
            f"Cannot change registration {registration.id} from {current.value} to {target.value}"
        )
    registration.status = target


# =============================================================================
# QUERIES
# =============================================================================

def list_programs(active_only: bool = False) -> list[dict]:
    """
    Program names seen in registrations with total/active counts, by name.

    active_only keeps programs whose product is currently published.
    """
    counts: dict[str, dict] = {}
    for program_name, status in db.session.query(Registration.program_name, Registration.status).all():
        entry = counts.setdefault(program_name, {"count": 0, "active_count": 0})
        entry["count"] += 1
        if status == RegistrationStatus.ACTIVE:
            entry["active_count"] += 1

    published = published_program_names(db.session.query(Product).all())

    programs = []
    for name in sorted(counts):
        is_active = name in published
        if active_only and not is_active:
            continue
        programs.append({
            "name": name,
            "category": classify_program(name).value,
            "is_active": is_active,
            **counts[name],
        })
    return programs


def get_roster(program_name: str, include_inactive: bool = True) -> dict:
    program_name = normalize_program_name(program_name)
    query = db.session.query(Registration).filter(Registration.program_name == program_name)
    registrations = query.order_by(Registration.created_at.asc(), Registration.id.asc()).all()

    active = [r for r in registrations if r.status == RegistrationStatus.ACTIVE]
    shown = registrations if include_inactive else active
    return {
        "program_name": program_name,
        "registrations": [r.to_dict() for r in shown],
        "active_count": len(active),
        "removed_count": len(registrations) - len(active),
        "capacity": program_capacity(program_name),
    }


def active_emails(program_name: str) -> list[str]:
    program_name = normalize_program_name(program_name)
    rows = (
        db.session.query(Registration.player_email)
        .filter(
            Registration.program_name == program_name,
            Registration.status == RegistrationStatus.ACTIVE,
            Registration.player_email.isnot(None),
            Registration.player_email != "",
        )
        .order_by(Registration.created_at.asc(), Registration.id.asc())
        .all()
    )
    return [email for (email,) in rows]


def transfer_targets(program_name: str) -> list[str]:
    """Other (non-merchandise) program names a player can be moved to."""
    program_name = normalize_program_name(program_name)
    names = {name for (name,) in db.session.query(Registration.program_name).distinct().all()}
    return sorted(n for n in names if n != program_name and is_actual_program(n))


def all_rosters() -> dict:
    """
    Active players of every open/in-progress program, by start date,
    grouped into Beginner Hockey and Skills Development.
    """
    settings = (
        db.session.query(ProgramSetting)
        .filter(ProgramSetting.status.in_(ROSTER_PROGRAM_STATUSES))
        .all()
    )
    # Undated programs sort last
    settings.sort(key=lambda s: (s.start_date is None, s.start_date or date.max, s.program_name))

    names = [s.program_name for s in settings]
    players_by_program: dict[str, list[Registration]] = {name: [] for name in names}
    if names:
        rows = (
            db.session.query(Registration)
            .filter(
                Registration.status == RegistrationStatus.ACTIVE,
                Registration.program_name.in_(names),
            )
            .order_by(Registration.player_name.asc())
            .all()
        )
        for reg in rows:
            players_by_program[reg.program_name].append(reg)

    groups = {"beginner_hockey": [], "skills_development": []}
    for setting in settings:
        players = players_by_program[setting.program_name]
        capacity = program_capacity(setting.program_name)
        roster = {
            "program_name": setting.program_name,
            "start_date": setting.start_date.isoformat() if setting.start_date else None,
            "players": [p.to_dict() for p in players],
            "count": len(players),
            "capacity": capacity,
            "over_capacity": len(players) > capacity,
        }
        if classify_program(setting.program_name) == ProgramCategory.BEGINNER_HOCKEY:
            groups["beginner_hockey"].append(roster)
        else:
            groups["skills_development"].append(roster)
    return groups


# =============================================================================
# MUTATIONS
# =============================================================================

def add_manual_registration(program_name: str, payload: dict) -> Registration:
    """
    Add a player by hand (cash/e-transfer sign-ups).

    Raises:
        ValidationError: missing player_name or bad field
    """
    program_name = normalize_program_name(program_name)
    if not program_name:
        raise ValidationError("program_name is required")

    patch = validate_payload(model=Registration, payload=payload, policy=MANUAL_REGISTRATION_POLICY, partial=False)
    patch.setdefault("payment_method", DEFAULT_MANUAL_PAYMENT_METHOD)

    registration = Registration(
        program_name=program_name,
        order_id=None,
        source=RegistrationSource.MANUAL,
        status=RegistrationStatus.ACTIVE,
        **patch,
    )
    db.session.add(registration)
    db.session.flush()
    return registration


def update_player_contact(registration_id: int, payload: dict) -> Registration:
    patch = validate_payload(model=Registration, payload=payload, policy=CONTACT_POLICY, partial=True)
    if not patch:
        raise ValidationError("Nothing to update")
    registration = _get_registration(registration_id)
    for key, value in patch.items():
        setattr(registration, key, value)
    db.session.flush()
    return registration


def remove_registration(registration_id: int) -> Registration:
    """Soft delete (active -> removed). Can be restored."""
    registration = _get_registration(registration_id, lock=True)
    _transition(registration, RegistrationStatus.REMOVED)
    db.session.flush()
    return registration


def restore_registration(registration_id: int) -> Registration:
    """removed/transferred_out -> active. A transfer's destination row is kept."""
    registration = _get_registration(registration_id, lock=True)
    _transition(registration, RegistrationStatus.ACTIVE)
    db.session.flush()
    return registration


def transfer_registration(registration_id: int, target_program: str, *, on: date | None = None) -> Registration:
    """
    Move a player to another program.

    Creates an active source=transfer row at target_program carrying the
    player's contact, order, amount and payment details, and marks the
    original transferred_out. Both writes commit together.

    Returns:
        The new registration at target_program.

    Raises:
        NotFoundError: unknown registration
        ValidationError: empty target or same program
        RosterError: registration is not active
        TransferError: the writes failed; nothing was applied
    """
    target = normalize_program_name(target_program)
    if not target:
        raise ValidationError("target_program is required")

    source = _get_registration(registration_id, lock=True)
    if target == source.program_name:
        raise ValidationError(f"Registration {registration_id} is already in {target}")
    # Reject before writing anything
    if RegistrationStatus.TRANSFERRED_OUT not in ALLOWED_TRANSITIONS[RegistrationStatus(source.status)]:
        raise RosterError(
            f"Only active registrations can be moved (registration {registration_id} is {RegistrationStatus(source.status).value})"
        )

    on = on or date.today()
    moved = Registration(
        program_name=target,
        player_name=source.player_name,
        player_email=source.player_email,
        player_phone=source.player_phone,
        order_id=source.order_id,
        source=RegistrationSource.TRANSFER,
        payment_method=source.payment_method,
        amount=source.amount,
        payment_status=source.payment_status,
        status=RegistrationStatus.ACTIVE,
        notes=f'Transferred from "{source.program_name}" on {short_us_date(on)}',
    )
    source_program = source.program_name

    try:
        db.session.add(moved)
        db.session.flush()
        _transition(source, RegistrationStatus.TRANSFERRED_OUT)
        db.session.flush()
        commit_or_rollback()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.warning(
            "Transfer of registration %s to %s rolled back: %s", registration_id, target, e
        )
        raise TransferError(
            f"Could not move registration {registration_id} to {target}; no changes were applied",
            str(e.__cause__ or e),
        )

    current_app.logger.info(
        "Moved registration %s from %s to %s (new registration %s)",
        registration_id, source_program, target, moved.id,
    )
    return moved

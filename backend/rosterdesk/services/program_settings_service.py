# backend/rosterdesk/services/program_settings_service.py
"""
Program settings (status, order, start date, notes, e-mail text) and
program colors. Both are keyed by canonical program name and upserted.
"""
from __future__ import annotations

import re

from ..extensions import db
from ..models import ProgramColor, ProgramSetting
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .program_identity import normalize_program_name


COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

SETTING_POLICY = ModelValidationPolicy(
    writable_fields={"status", "display_order", "start_date", "notes", "email_template"},
)


def _program_key(program_name: str | None) -> str:
    name = normalize_program_name(program_name)
    if not name:
        raise ValidationError("program_name is required")
    return name


def list_program_settings() -> list[ProgramSetting]:
    return (
        db.session.query(ProgramSetting)
        .order_by(ProgramSetting.display_order.asc(), ProgramSetting.program_name.asc())
        .all()
    )


def get_program_setting(program_name: str) -> ProgramSetting | None:
    return db.session.query(ProgramSetting).filter_by(program_name=program_name).first()


def upsert_program_setting(program_name: str, payload: dict) -> ProgramSetting:
    """
    Create or update a program's settings; only keys present in payload change.
    """
    name = _program_key(program_name)
    patch = validate_payload(model=ProgramSetting, payload=payload, policy=SETTING_POLICY, partial=True)

    setting = get_program_setting(name)
    if setting is None:
        setting = ProgramSetting(program_name=name)
        db.session.add(setting)
    for key, value in patch.items():
        setattr(setting, key, value)
    db.session.flush()
    return setting


def list_program_colors() -> list[ProgramColor]:
    return db.session.query(ProgramColor).order_by(ProgramColor.program_name.asc()).all()


def set_program_color(program_name: str, color: str | None) -> ProgramColor:
    name = _program_key(program_name)
    color = (color or "").strip()
    if not COLOR_RE.match(color):
        raise ValidationError("color must be a hex color like #1a2b3c")

    row = db.session.query(ProgramColor).filter_by(program_name=name).first()
    if row is None:
        row = ProgramColor(program_name=name, color=color)
        db.session.add(row)
    else:
        row.color = color
    db.session.flush()
    return row

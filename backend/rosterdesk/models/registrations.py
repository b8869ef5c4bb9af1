from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z
from .enums import (
    PaymentStatus,
    ProgramStatus,
    RegistrationSource,
    RegistrationStatus,
    enum_column_type,
    enum_value,
)
from .orders import format_amount


class Registration(db.Model):
    """
    One player's enrollment in one program (the roster row).

    SOURCES:
    - order: derived from a synced order line item (order_id set)
    - manual: added by an operator (order_id NULL)
    - transfer: created at the destination program by a move; keeps the
      order_id of the registration it was moved from

    STATUS: active <-> removed, active <-> transferred_out. Rows are never
    hard-deleted so the transfer trail stays intact.

    No unique constraint on (order_id, program_name): a player moved away and
    back again legitimately holds two rows for the same pair. The derivation
    engine enforces "one derived row per pair" itself.
    """
    __tablename__ = "program_registrations"
    __table_args__ = (
        db.Index("ix_registrations_program_status", "program_name", "status"),
        db.Index("ix_registrations_order_program", "order_id", "program_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    program_name = db.Column(db.String(255), nullable=False)
    player_name = db.Column(db.String(255), nullable=False)
    player_email = db.Column(db.String(255), nullable=True)
    player_phone = db.Column(db.String(64), nullable=True)

    order_id = db.Column(db.Integer, nullable=True, index=True)
    source = db.Column(enum_column_type(RegistrationSource), nullable=False)
    payment_method = db.Column(db.String(64), nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=True)
    payment_status = db.Column(
        enum_column_type(PaymentStatus), nullable=False, default=PaymentStatus.PAID
    )
    status = db.Column(
        enum_column_type(RegistrationStatus), nullable=False, default=RegistrationStatus.ACTIVE
    )
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "program_name": self.program_name,
            "player_name": self.player_name,
            "player_email": self.player_email,
            "player_phone": self.player_phone,
            "order_id": self.order_id,
            "source": enum_value(self.source),
            "payment_method": self.payment_method,
            "amount": format_amount(self.amount),
            "payment_status": enum_value(self.payment_status),
            "status": enum_value(self.status),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProgramSetting(db.Model):
    """Operator-maintained metadata for a program, keyed by canonical name."""
    __tablename__ = "program_settings"
    __table_args__ = (
        db.UniqueConstraint("program_name", name="uq_program_settings_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    program_name = db.Column(db.String(255), nullable=False)
    status = db.Column(
        enum_column_type(ProgramStatus), nullable=False, default=ProgramStatus.OPEN_REGISTRATION
    )
    display_order = db.Column(db.Integer, nullable=False, default=0)
    start_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    email_template = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "program_name": self.program_name,
            "status": enum_value(self.status),
            "display_order": self.display_order,
            "start_date": to_iso_date(self.start_date),
            "notes": self.notes,
            "email_template": self.email_template,
            "updated_at": to_utc_z(self.updated_at),
        }


class ProgramColor(db.Model):
    __tablename__ = "program_colors"
    __table_args__ = (
        db.UniqueConstraint("program_name", name="uq_program_colors_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    program_name = db.Column(db.String(255), nullable=False)
    color = db.Column(db.String(7), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "program_name": self.program_name,
            "color": self.color,
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z
from .enums import CreditStatus, InstallmentStatus, enum_column_type, enum_value
from .orders import format_amount


class Installment(db.Model):
    """
    One scheduled partial payment against an order.

    The parent order's has_installments flag is denormalized from this table
    and maintained by installment_service on create/delete.
    """
    __tablename__ = "order_installments"
    __table_args__ = (
        db.Index("ix_installments_order_number", "order_id", "installment_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.order_id"), nullable=False, index=True)
    installment_number = db.Column(db.Integer, nullable=False)
    amount_due = db.Column(db.Numeric(10, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    due_date = db.Column(db.Date, nullable=True)
    paid_date = db.Column(db.Date, nullable=True)
    status = db.Column(
        enum_column_type(InstallmentStatus), nullable=False, default=InstallmentStatus.PENDING
    )
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "installment_number": self.installment_number,
            "amount_due": format_amount(self.amount_due),
            "amount_paid": format_amount(self.amount_paid),
            "due_date": to_iso_date(self.due_date),
            "paid_date": to_iso_date(self.paid_date),
            "status": enum_value(self.status),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Credit(db.Model):
    """
    Store-credit ledger entry for a player.

    LIFECYCLE: active -> used (one way, stamped with who/when/where).
    Credits never expire on their own.
    """
    __tablename__ = "customer_credits"
    __table_args__ = (
        db.Index("ix_credits_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    player_name = db.Column(db.String(255), nullable=False)
    player_email = db.Column(db.String(255), nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    reason = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(128), nullable=False)
    status = db.Column(
        enum_column_type(CreditStatus), nullable=False, default=CreditStatus.ACTIVE
    )

    used_by = db.Column(db.String(128), nullable=True)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    used_on_program = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "player_name": self.player_name,
            "player_email": self.player_email,
            "amount": format_amount(self.amount),
            "reason": self.reason,
            "created_by": self.created_by,
            "status": enum_value(self.status),
            "used_by": self.used_by,
            "used_at": to_utc_z(self.used_at),
            "used_on_program": self.used_on_program,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

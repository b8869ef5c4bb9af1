from __future__ import annotations

import enum

from ..extensions import db


class RegistrationStatus(str, enum.Enum):
    ACTIVE = "active"
    REMOVED = "removed"
    TRANSFERRED_OUT = "transferred_out"


class RegistrationSource(str, enum.Enum):
    ORDER = "order"
    MANUAL = "manual"
    TRANSFER = "transfer"


class PaymentStatus(str, enum.Enum):
    PAID = "paid"
    UNPAID = "unpaid"


class ProgramStatus(str, enum.Enum):
    OPEN_REGISTRATION = "open_registration"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class InstallmentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class CreditStatus(str, enum.Enum):
    ACTIVE = "active"
    USED = "used"


def enum_column_type(enum_cls: type[enum.Enum]) -> db.Enum:
    """Store the lowercase value (not the member name) as a plain VARCHAR."""
    return db.Enum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


def enum_value(value) -> str | None:
    if value is None:
        return None
    return value.value if isinstance(value, enum.Enum) else str(value)

"""
Installments and the orders.has_installments flag.
"""

from decimal import Decimal

import pytest

from rosterdesk.models import Installment, InstallmentStatus, Order
from rosterdesk.services import installment_service
from rosterdesk.services.installment_service import InstallmentError
from rosterdesk.validation import ValidationError


def _flag(db_session, order_id):
    db_session.expire_all()
    return db_session.query(Order).filter_by(order_id=order_id).one().has_installments


class TestInstallments:
    def test_first_installment_sets_flag(self, db_session, make_order):
        make_order(700)
        assert _flag(db_session, 700) is False

        installment = installment_service.save_installment(
            {"order_id": 700, "installment_number": 1, "amount_due": "60.00", "due_date": "2026-11-01"}
        )
        db_session.commit()

        assert _flag(db_session, 700) is True
        assert installment.amount_paid == Decimal("0.00")
        assert installment.status == InstallmentStatus.PENDING

    def test_deleting_last_installment_clears_flag(self, db_session, make_order):
        make_order(700)
        first = installment_service.save_installment({"order_id": 700, "installment_number": 1, "amount_due": "60.00"})
        second = installment_service.save_installment({"order_id": 700, "installment_number": 2, "amount_due": "60.00"})
        db_session.commit()

        assert installment_service.delete_installment(first.id) == 700
        db_session.commit()
        assert _flag(db_session, 700) is True

        installment_service.delete_installment(second.id)
        db_session.commit()
        assert _flag(db_session, 700) is False

    def test_update_marks_paid(self, db_session, make_order):
        make_order(700)
        installment = installment_service.save_installment(
            {"order_id": 700, "installment_number": 1, "amount_due": "60.00"}
        )
        db_session.commit()

        updated = installment_service.save_installment({
            "id": installment.id,
            "order_id": 700,
            "installment_number": 1,
            "amount_due": "60.00",
            "amount_paid": "60.00",
            "paid_date": "2026-11-02",
            "status": "paid",
        })
        db_session.commit()

        assert updated.id == installment.id
        assert updated.status == InstallmentStatus.PAID
        assert updated.amount_paid == Decimal("60.00")
        assert db_session.query(Installment).count() == 1

    def test_listed_in_installment_order(self, db_session, make_order):
        make_order(700)
        for number in (2, 1, 3):
            installment_service.save_installment({"order_id": 700, "installment_number": number, "amount_due": "20.00"})
        db_session.commit()

        assert [i.installment_number for i in installment_service.list_installments(700)] == [1, 2, 3]

    def test_unknown_order(self, db_session):
        with pytest.raises(InstallmentError) as exc:
            installment_service.save_installment({"order_id": 999, "installment_number": 1, "amount_due": "10.00"})
        assert exc.value.http_status == 404

    def test_required_fields(self, db_session, make_order):
        make_order(700)
        with pytest.raises(ValidationError) as exc:
            installment_service.save_installment({"order_id": 700})
        assert exc.value.message == "Missing required fields: amount_due, installment_number"

    def test_bad_status(self, db_session, make_order):
        make_order(700)
        with pytest.raises(ValidationError):
            installment_service.save_installment(
                {"order_id": 700, "installment_number": 1, "amount_due": "10.00", "status": "overdue"}
            )

    def test_delete_unknown(self, db_session):
        with pytest.raises(InstallmentError):
            installment_service.delete_installment(12345)

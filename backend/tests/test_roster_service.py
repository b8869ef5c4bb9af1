"""
Roster state machine, transfers and roster views.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from rosterdesk.errors import NotFoundError
from rosterdesk.models import ProgramSetting, ProgramStatus, Registration, RegistrationSource, RegistrationStatus
from rosterdesk.services import roster_service
from rosterdesk.services.roster_service import RosterError, TransferError
from rosterdesk.validation import ValidationError


class TestTransfer:
    def test_move_creates_destination_row(self, db_session, make_registration):
        source = make_registration("Power Skating 1.0", "Sam Skater", order_id=600, amount=Decimal("120.00"))
        before = db_session.query(Registration).count()

        moved = roster_service.transfer_registration(source.id, "Shooting 2.0", on=date(2026, 10, 19))

        assert db_session.query(Registration).count() == before + 1
        assert moved.program_name == "Shooting 2.0"
        assert moved.source == RegistrationSource.TRANSFER
        assert moved.status == RegistrationStatus.ACTIVE
        assert moved.order_id == 600
        assert moved.amount == Decimal("120.00")
        assert moved.player_email == "sam@example.com"
        assert moved.notes == 'Transferred from "Power Skating 1.0" on 10/19/2026'

        db_session.refresh(source)
        assert source.status == RegistrationStatus.TRANSFERRED_OUT

    def test_target_name_is_normalized(self, db_session, make_registration):
        source = make_registration("Power Skating 1.0")
        moved = roster_service.transfer_registration(source.id, "Shooting 2.0 - 3 SPOTS LEFT")
        assert moved.program_name == "Shooting 2.0"

    def test_same_program_rejected(self, db_session, make_registration):
        source = make_registration("Power Skating 1.0")
        with pytest.raises(ValidationError):
            roster_service.transfer_registration(source.id, "Power Skating 1.0 - FULL")

    @pytest.mark.parametrize("target", [None, "", "   "])
    def test_empty_target_rejected(self, db_session, make_registration, target):
        source = make_registration("Power Skating 1.0")
        with pytest.raises(ValidationError):
            roster_service.transfer_registration(source.id, target)

    def test_inactive_registration_cannot_move(self, db_session, make_registration):
        source = make_registration("Power Skating 1.0", status=RegistrationStatus.REMOVED)
        with pytest.raises(RosterError) as exc:
            roster_service.transfer_registration(source.id, "Shooting 2.0")
        assert exc.value.http_status == 409
        assert db_session.query(Registration).count() == 1

    def test_already_moved_registration_cannot_move_again(self, db_session, make_registration):
        source = make_registration("Power Skating 1.0")
        roster_service.transfer_registration(source.id, "Shooting 2.0")
        with pytest.raises(RosterError):
            roster_service.transfer_registration(source.id, "Puck Handling")

    def test_unknown_registration(self, db_session):
        with pytest.raises(NotFoundError):
            roster_service.transfer_registration(9999, "Shooting 2.0")

    def test_failed_move_applies_nothing(self, db_session, make_registration, monkeypatch):
        source = make_registration("Power Skating 1.0")
        source_id = source.id

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(roster_service, "commit_or_rollback", failing_commit)

        with pytest.raises(TransferError) as exc:
            roster_service.transfer_registration(source_id, "Shooting 2.0")

        assert "no changes were applied" in exc.value.message
        assert db_session.query(Registration).count() == 1
        assert db_session.get(Registration, source_id).status == RegistrationStatus.ACTIVE

    def test_locked_commit_is_reported_not_swallowed(self, db_session, make_registration, locked_commit):
        source = make_registration("Power Skating 1.0")
        source_id = source.id
        locked_commit()

        with pytest.raises(TransferError):
            roster_service.transfer_registration(source_id, "Shooting 2.0")

        assert locked_commit.failures == 1
        assert db_session.query(Registration).count() == 1
        assert db_session.query(Registration).filter_by(program_name="Shooting 2.0").count() == 0
        assert db_session.get(Registration, source_id).status == RegistrationStatus.ACTIVE

        # The operator retries once the lock clears
        moved = roster_service.transfer_registration(source_id, "Shooting 2.0")
        assert moved.program_name == "Shooting 2.0"
        assert db_session.get(Registration, source_id).status == RegistrationStatus.TRANSFERRED_OUT


class TestStatusChanges:
    def test_remove_and_restore(self, db_session, make_registration):
        registration = make_registration("Power Skating 1.0")

        roster_service.remove_registration(registration.id)
        assert registration.status == RegistrationStatus.REMOVED

        roster_service.restore_registration(registration.id)
        assert registration.status == RegistrationStatus.ACTIVE

    def test_remove_twice_is_a_conflict(self, db_session, make_registration):
        registration = make_registration("Power Skating 1.0")
        roster_service.remove_registration(registration.id)
        with pytest.raises(RosterError):
            roster_service.remove_registration(registration.id)

    def test_restore_active_is_a_conflict(self, db_session, make_registration):
        registration = make_registration("Power Skating 1.0")
        with pytest.raises(RosterError):
            roster_service.restore_registration(registration.id)

    def test_restore_after_transfer_keeps_destination(self, db_session, make_registration):
        source = make_registration("Power Skating 1.0")
        moved = roster_service.transfer_registration(source.id, "Shooting 2.0")

        roster_service.restore_registration(source.id)
        db_session.commit()

        assert db_session.get(Registration, source.id).status == RegistrationStatus.ACTIVE
        assert db_session.get(Registration, moved.id).status == RegistrationStatus.ACTIVE


class TestManualRegistrations:
    def test_add_player(self, db_session):
        registration = roster_service.add_manual_registration(
            "Puck Handling - 3 SPOTS LEFT",
            {"player_name": "  Alex Goalie ", "player_email": "alex@example.com", "amount": "95.50"},
        )

        assert registration.program_name == "Puck Handling"
        assert registration.player_name == "Alex Goalie"
        assert registration.source == RegistrationSource.MANUAL
        assert registration.order_id is None
        assert registration.payment_method == "e-transfer"
        assert registration.amount == Decimal("95.50")

    def test_player_name_required(self, db_session):
        with pytest.raises(ValidationError) as exc:
            roster_service.add_manual_registration("Puck Handling", {"player_email": "alex@example.com"})
        assert "player_name" in exc.value.message

    def test_unknown_field_rejected(self, db_session):
        with pytest.raises(ValidationError):
            roster_service.add_manual_registration("Puck Handling", {"player_name": "Alex", "status": "removed"})

    def test_update_contact(self, db_session, make_registration):
        registration = make_registration("Puck Handling")
        roster_service.update_player_contact(registration.id, {"player_phone": "555-0199", "player_email": ""})
        assert registration.player_phone == "555-0199"
        assert registration.player_email is None

    def test_update_contact_cannot_blank_name(self, db_session, make_registration):
        registration = make_registration("Puck Handling")
        with pytest.raises(ValidationError):
            roster_service.update_player_contact(registration.id, {"player_name": "  "})


class TestRosterViews:
    def test_roster_counts(self, db_session, make_registration):
        make_registration("Power Skating 1.0", "Ann Active")
        make_registration("Power Skating 1.0", "Rob Removed", status=RegistrationStatus.REMOVED)
        make_registration("Shooting 2.0", "Other Program")

        roster = roster_service.get_roster("Power Skating 1.0")

        assert roster["active_count"] == 1
        assert roster["removed_count"] == 1
        assert roster["capacity"] == 16
        assert len(roster["registrations"]) == 2
        assert len(roster_service.get_roster("Power Skating 1.0", include_inactive=False)["registrations"]) == 1

    def test_active_emails(self, db_session, make_registration):
        make_registration("Power Skating 1.0", "Ann Active")
        make_registration("Power Skating 1.0", "Rob Removed", status=RegistrationStatus.REMOVED)
        make_registration("Power Skating 1.0", "Nora Noemail", player_email=None)

        assert roster_service.active_emails("Power Skating 1.0") == ["ann@example.com"]

    def test_decorated_name_reads_the_same_roster(self, db_session):
        roster_service.add_manual_registration("Power Skating 1.0 - 60% FULL", {"player_name": "Ann Active", "player_email": "ann@example.com"})
        db_session.commit()

        roster = roster_service.get_roster("Power Skating 1.0 - 60% FULL")

        assert roster["program_name"] == "Power Skating 1.0"
        assert [r["player_name"] for r in roster["registrations"]] == ["Ann Active"]
        assert roster_service.active_emails("  Power Skating 1.0 - 60% FULL ") == ["ann@example.com"]

    def test_transfer_targets_exclude_merchandise(self, db_session, make_registration):
        make_registration("Power Skating 1.0")
        make_registration("Shooting 2.0")
        make_registration("Hockey Hoodie")

        assert roster_service.transfer_targets("Power Skating 1.0") == ["Shooting 2.0"]

    def test_list_programs_active_filter(self, db_session, make_registration, published):
        make_registration("Power Skating 1.0")
        make_registration("Power Skating 1.0", "Rob Removed", status=RegistrationStatus.REMOVED)
        make_registration("Shooting 2.0")
        published("Power Skating 1.0 - 60% FULL")
        published("Shooting 2.0", status="draft")

        active = roster_service.list_programs(active_only=True)
        everything = roster_service.list_programs(active_only=False)

        assert [p["name"] for p in active] == ["Power Skating 1.0"]
        assert active[0]["count"] == 2
        assert active[0]["active_count"] == 1
        assert [p["name"] for p in everything] == ["Power Skating 1.0", "Shooting 2.0"]

    def test_all_rosters_groups_and_capacity(self, db_session, make_registration):
        db_session.add_all([
            ProgramSetting(program_name="Beginner Hockey Goalie", status=ProgramStatus.IN_PROGRESS,
                           start_date=date(2026, 11, 1)),
            ProgramSetting(program_name="Power Skating 1.0", status=ProgramStatus.OPEN_REGISTRATION,
                           start_date=date(2026, 10, 1)),
            ProgramSetting(program_name="Shooting 2.0", status=ProgramStatus.COMPLETED),
        ])
        db_session.commit()
        for i in range(5):
            make_registration("Beginner Hockey Goalie", f"Goalie {i}")
        make_registration("Power Skating 1.0", "Ann Active")
        make_registration("Shooting 2.0", "Past Player")

        rosters = roster_service.all_rosters()

        [goalies] = rosters["beginner_hockey"]
        assert goalies["count"] == 5
        assert goalies["capacity"] == 4
        assert goalies["over_capacity"] is True
        assert [r["program_name"] for r in rosters["skills_development"]] == ["Power Skating 1.0"]
        assert rosters["skills_development"][0]["start_date"] == "2026-10-01"

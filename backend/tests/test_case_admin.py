"""
Tests for case administration.

1. Manual flag re-checks the monthly threshold (exactly 5 is refused)
2. Manual flag on an already-flagged victim writes nothing
3. Threat level edits log the acting admin; no-op edits log nothing
4. Perpetrator edits reject duplicate identifiers
5. High-risk highlight and evaluation notes
"""
import pytest
from datetime import datetime


def _insert_reports(db, victim_id, count, reported_at=None, identifier="bulk@x.com"):
    """Insert reports directly, bypassing the escalation rules."""
    from phishnet.models.db_models import (
        AttackTypeDB, IdentifierType, IncidentReportDB, PerpetratorDB, ReportStatus,
    )

    perp = db.query(PerpetratorDB).filter(PerpetratorDB.identifier == identifier).first()
    if perp is None:
        perp = PerpetratorDB(identifier=identifier, identifier_type=IdentifierType.EMAIL_ADDRESS)
        db.add(perp)
        db.flush()
    attack = db.query(AttackTypeDB).first()
    for _ in range(count):
        db.add(IncidentReportDB(
            victim_id=victim_id,
            perpetrator_id=perp.perpetrator_id,
            attack_type_id=attack.attack_type_id,
            date_reported=reported_at or datetime.now(),
            description="Inserted for test setup",
            status=ReportStatus.PENDING,
            version=1,
        ))
    db.commit()
    return perp


@pytest.fixture
def case_admin(db):
    from phishnet.services.lifecycle import CaseAdminService
    return CaseAdminService(db)


# =============================================================================
# TEST: MANUAL FLAG
# =============================================================================

class TestManualFlag:
    """Manual flag uses the same threshold as the automatic rule."""

    def test_exactly_five_incidents_is_refused(self, db, victim, admin, attack_types, case_admin):
        from phishnet.models.db_models import AccountStatus, VictimDB, VictimStatusLogDB
        from phishnet.models.lifecycle_models import OutcomeCode

        _insert_reports(db, victim.victim_id, 5)

        outcome = case_admin.flag_victim(victim.victim_id, admin.admin_id)

        assert outcome.success is False
        assert outcome.code == OutcomeCode.NOT_ENOUGH_INCIDENTS
        assert db.get(VictimDB, victim.victim_id).account_status == AccountStatus.ACTIVE
        assert db.query(VictimStatusLogDB).count() == 0

    def test_six_incidents_flags_with_admin(self, db, victim, admin, attack_types, case_admin):
        from phishnet.models.db_models import AccountStatus, VictimDB, VictimStatusLogDB

        _insert_reports(db, victim.victim_id, 6)

        outcome = case_admin.flag_victim(victim.victim_id, admin.admin_id)

        assert outcome.success is True
        assert outcome.audit_logged is True
        assert db.get(VictimDB, victim.victim_id).account_status == AccountStatus.FLAGGED
        log = db.query(VictimStatusLogDB).one()
        assert log.admin_id == admin.admin_id
        assert log.old_status == AccountStatus.ACTIVE

    def test_already_flagged_writes_nothing(self, db, victim, admin, attack_types, case_admin):
        from phishnet.models.db_models import AccountStatus, VictimStatusLogDB
        from phishnet.models.lifecycle_models import OutcomeCode

        victim.account_status = AccountStatus.FLAGGED
        db.commit()
        _insert_reports(db, victim.victim_id, 8)

        outcome = case_admin.flag_victim(victim.victim_id, admin.admin_id)

        assert outcome.code == OutcomeCode.ALREADY_FLAGGED
        assert db.query(VictimStatusLogDB).count() == 0

    def test_unknown_victim(self, admin, case_admin):
        from phishnet.exceptions import NotFoundError

        with pytest.raises(NotFoundError):
            case_admin.flag_victim(999, admin.admin_id)


# =============================================================================
# TEST: VICTIM STATUS
# =============================================================================

class TestVictimStatus:
    def test_unflag_is_logged(self, db, victim, admin, case_admin):
        from phishnet.models.db_models import AccountStatus, VictimStatusLogDB

        victim.account_status = AccountStatus.FLAGGED
        db.commit()

        outcome = case_admin.set_victim_status(victim.victim_id, "Active", admin.admin_id)

        assert outcome.success is True
        log = db.query(VictimStatusLogDB).one()
        assert (log.old_status, log.new_status) == (AccountStatus.FLAGGED, AccountStatus.ACTIVE)

    def test_same_status_is_no_change(self, db, victim, admin, case_admin):
        from phishnet.models.db_models import VictimStatusLogDB
        from phishnet.models.lifecycle_models import OutcomeCode

        outcome = case_admin.set_victim_status(victim.victim_id, "Active", admin.admin_id)

        assert outcome.code == OutcomeCode.NO_CHANGE
        assert db.query(VictimStatusLogDB).count() == 0

    def test_unknown_status_rejected(self, victim, admin, case_admin):
        from phishnet.exceptions import ValidationError

        with pytest.raises(ValidationError):
            case_admin.set_victim_status(victim.victim_id, "Banished", admin.admin_id)


# =============================================================================
# TEST: PERPETRATORS
# =============================================================================

class TestPerpetratorAdmin:
    def test_threat_level_update_logs_admin(self, db, victim, admin, attack_types, case_admin):
        from phishnet.models.db_models import PerpetratorDB, ThreatLevel, ThreatLevelLogDB

        perp = _insert_reports(db, victim.victim_id, 1)

        outcome = case_admin.update_threat_level(perp.perpetrator_id, "Suspected", admin.admin_id)

        assert outcome.success is True
        assert db.get(PerpetratorDB, perp.perpetrator_id).threat_level == ThreatLevel.SUSPECTED
        log = db.query(ThreatLevelLogDB).one()
        assert (log.old_threat_level, log.new_threat_level) == (ThreatLevel.UNDER_REVIEW, ThreatLevel.SUSPECTED)
        assert log.admin_id == admin.admin_id

    def test_same_level_is_no_change(self, db, victim, admin, attack_types, case_admin):
        from phishnet.models.db_models import ThreatLevelLogDB
        from phishnet.models.lifecycle_models import OutcomeCode

        perp = _insert_reports(db, victim.victim_id, 1)

        outcome = case_admin.update_threat_level(perp.perpetrator_id, "UnderReview", admin.admin_id)

        assert outcome.code == OutcomeCode.NO_CHANGE
        assert db.query(ThreatLevelLogDB).count() == 0

    def test_edit_without_level_change_is_not_logged(self, db, victim, admin, attack_types, case_admin):
        from phishnet.models.db_models import PerpetratorDB, ThreatLevelLogDB

        perp = _insert_reports(db, victim.victim_id, 1)

        outcome = case_admin.update_perpetrator(perp.perpetrator_id, admin.admin_id, associated_name="Fake Courier")

        assert outcome.success is True
        assert outcome.audit_logged is None
        assert db.get(PerpetratorDB, perp.perpetrator_id).associated_name == "Fake Courier"
        assert db.query(ThreatLevelLogDB).count() == 0

    def test_edit_with_level_change_is_logged(self, db, victim, admin, attack_types, case_admin):
        from phishnet.models.db_models import ThreatLevelLogDB

        perp = _insert_reports(db, victim.victim_id, 1)

        outcome = case_admin.update_perpetrator(perp.perpetrator_id, admin.admin_id, threat_level="Cleared")

        assert outcome.audit_logged is True
        assert db.query(ThreatLevelLogDB).count() == 1

    def test_duplicate_identifier_is_constraint_violation(self, db, victim, admin, attack_types, case_admin):
        from phishnet.exceptions import ConstraintViolationError
        from phishnet.models.db_models import PerpetratorDB

        _insert_reports(db, victim.victim_id, 1, identifier="taken@x.com")
        other = _insert_reports(db, victim.victim_id, 1, identifier="other@x.com")

        with pytest.raises(ConstraintViolationError):
            case_admin.update_perpetrator(other.perpetrator_id, admin.admin_id, identifier="taken@x.com")

        assert db.get(PerpetratorDB, other.perpetrator_id).identifier == "other@x.com"

    def test_high_risk_lists_unescalated_perpetrators(self, db, victims, admin, attack_types, case_admin):
        from phishnet.models.db_models import ThreatLevel

        hot = None
        for v in victims[:3]:
            hot = _insert_reports(db, v.victim_id, 1, identifier="hot@x.com")
        _insert_reports(db, victims[0].victim_id, 4, identifier="cold@x.com")

        assert [p.perpetrator_id for p in case_admin.list_high_risk_perpetrators()] == [hot.perpetrator_id]

        case_admin.update_threat_level(hot.perpetrator_id, ThreatLevel.MALICIOUS, admin.admin_id)
        assert case_admin.list_high_risk_perpetrators() == []


# =============================================================================
# TEST: EVALUATION NOTES
# =============================================================================

class TestEvaluationNotes:
    def test_notes_upsert(self, db, victim, admin, second_admin, attack_types, case_admin):
        from phishnet.models.db_models import IncidentReportDB

        _insert_reports(db, victim.victim_id, 1)
        incident_id = db.query(IncidentReportDB).one().incident_id

        case_admin.save_evaluation_notes(incident_id, "Headers look forged", admin.admin_id)
        case_admin.save_evaluation_notes(incident_id, "Confirmed spoofed sender", second_admin.admin_id)

        entry = case_admin.get_evaluation_notes(incident_id)
        assert entry.notes == "Confirmed spoofed sender"
        assert entry.admin_id == second_admin.admin_id

    def test_notes_for_missing_report(self, admin, case_admin):
        from phishnet.exceptions import NotFoundError

        with pytest.raises(NotFoundError):
            case_admin.save_evaluation_notes(31337, "n/a", admin.admin_id)

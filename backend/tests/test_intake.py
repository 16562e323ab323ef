"""
Tests for report intake and evidence submission.

1. Perpetrator upsert keeps one row per identifier
2. Constraint race on insert is retried once as an update
3. Input validation (identifier, description length, types)
4. Form-label aliases map to stored identifier types
5. Evidence starts Pending and must belong to the caller's incident
"""
import pytest
from datetime import datetime
from unittest.mock import patch


# =============================================================================
# TEST: PERPETRATOR UPSERT
# =============================================================================

class TestPerpetratorUpsert:
    """Tests for find-or-create by identifier."""

    def test_same_identifier_reuses_perpetrator(self, db, victims, file_report):
        """Two reports against one identifier share a single perpetrator row."""
        from phishnet.models.db_models import PerpetratorDB, ThreatLevel

        first = file_report(victims[0].victim_id, identifier="+63-917-555-0101", identifier_type="Phone Number")
        second = file_report(victims[1].victim_id, identifier="+63-917-555-0101", identifier_type="Phone Number")

        assert first.perpetrator_created is True
        assert second.perpetrator_created is False
        assert first.perpetrator_id == second.perpetrator_id
        assert db.query(PerpetratorDB).filter(PerpetratorDB.identifier == "+63-917-555-0101").count() == 1

        perp = db.get(PerpetratorDB, first.perpetrator_id)
        assert perp.threat_level == ThreatLevel.UNDER_REVIEW

    def test_existing_perpetrator_gets_last_incident_date_and_missing_name(self, db, victims, file_report):
        from phishnet.models.db_models import PerpetratorDB

        file_report(victims[0].victim_id, reported_at=datetime(2026, 3, 1, 9, 0))
        later = datetime(2026, 3, 2, 9, 0)
        result = file_report(victims[1].victim_id, reported_at=later, associated_name="Fake Bank Support")

        perp = db.get(PerpetratorDB, result.perpetrator_id)
        assert perp.last_incident_date == later
        assert perp.associated_name == "Fake Bank Support"

    def test_insert_conflict_retries_as_update(self, db, intake):
        """A concurrent insert of the same identifier falls back to updating it."""
        from phishnet.models.db_models import IdentifierType, PerpetratorDB, ThreatLevel

        existing = PerpetratorDB(
            identifier="race@example.com",
            identifier_type=IdentifierType.EMAIL_ADDRESS,
            threat_level=ThreatLevel.SUSPECTED,
        )
        db.add(existing)
        db.commit()

        # First lookup misses (as if the row landed after we checked)
        with patch.object(intake, "find_perpetrator", side_effect=[None, existing]):
            perp, created = intake.upsert_perpetrator("race@example.com", IdentifierType.EMAIL_ADDRESS)

        assert created is False
        assert perp.perpetrator_id == existing.perpetrator_id
        assert perp.threat_level == ThreatLevel.SUSPECTED
        assert db.query(PerpetratorDB).count() == 1

    def test_failed_retry_raises_constraint_violation(self, db, intake):
        from phishnet.exceptions import ConstraintViolationError
        from phishnet.models.db_models import IdentifierType, PerpetratorDB

        db.add(PerpetratorDB(identifier="race@example.com", identifier_type=IdentifierType.EMAIL_ADDRESS))
        db.commit()

        with patch.object(intake, "find_perpetrator", side_effect=[None, None]):
            with pytest.raises(ConstraintViolationError):
                intake.upsert_perpetrator("race@example.com", IdentifierType.EMAIL_ADDRESS)


# =============================================================================
# TEST: REPORT CREATION
# =============================================================================

class TestCreateIncidentReport:
    """Tests for create_incident_report."""

    def test_report_starts_pending_without_reviewer(self, db, victim, file_report):
        from phishnet.models.db_models import IncidentReportDB, ReportStatus

        result = file_report(victim.victim_id)
        report = db.get(IncidentReportDB, result.report_id)

        assert report.status == ReportStatus.PENDING
        assert report.admin_id is None
        assert report.version == 1
        assert result.notices == []
        assert result.warnings == []

    def test_blank_identifier_rejected(self, victim, file_report):
        from phishnet.exceptions import ValidationError

        with pytest.raises(ValidationError):
            file_report(victim.victim_id, identifier="   ")

    def test_short_description_rejected(self, victim, file_report):
        from phishnet.exceptions import ValidationError

        with pytest.raises(ValidationError, match="at least 10"):
            file_report(victim.victim_id, description="too short")

    def test_unknown_attack_type_not_found(self, victim, file_report):
        from phishnet.exceptions import NotFoundError

        with pytest.raises(NotFoundError):
            file_report(victim.victim_id, attack_type_name="Quantum Heist")

    def test_unknown_victim_not_found(self, file_report):
        from phishnet.exceptions import NotFoundError

        with pytest.raises(NotFoundError):
            file_report(9999)

    def test_form_label_alias_maps_to_stored_type(self, db, victim, file_report):
        from phishnet.models.db_models import IdentifierType, PerpetratorDB

        result = file_report(
            victim.victim_id, identifier="fakebank-login.example", identifier_type="Website URL / Domain"
        )
        perp = db.get(PerpetratorDB, result.perpetrator_id)
        assert perp.identifier_type == IdentifierType.WEBSITE_URL

    @pytest.mark.parametrize("label,expected", [
        ("Social Media Account / Username", "Social Media Account"),
        ("IP Address", "IP Address"),
        ("PHONE_NUMBER", "Phone Number"),
    ])
    def test_resolve_identifier_type(self, label, expected):
        from phishnet.services.lifecycle import resolve_identifier_type

        assert resolve_identifier_type(label).value == expected

    def test_unknown_identifier_type_rejected(self):
        from phishnet.exceptions import ValidationError
        from phishnet.services.lifecycle import resolve_identifier_type

        with pytest.raises(ValidationError):
            resolve_identifier_type("Carrier Pigeon")


# =============================================================================
# TEST: EVIDENCE SUBMISSION
# =============================================================================

class TestSubmitEvidence:
    """Tests for submit_evidence."""

    def test_evidence_starts_pending(self, db, victim, intake, file_report):
        from phishnet.models.db_models import EvidenceType, VerifiedStatus

        report = file_report(victim.victim_id)
        evidence = intake.submit_evidence(report.report_id, "Screenshot", "uploads/inbox.png")

        assert evidence.evidence_type == EvidenceType.SCREENSHOT
        assert evidence.verified_status == VerifiedStatus.PENDING
        assert evidence.admin_id is None
        assert evidence.file_path == "uploads/inbox.png"

    def test_evidence_on_someone_elses_incident_not_found(self, victims, intake, file_report):
        from phishnet.exceptions import NotFoundError

        report = file_report(victims[0].victim_id)
        with pytest.raises(NotFoundError):
            intake.submit_evidence(report.report_id, "Email", "uploads/mail.eml", victim_id=victims[1].victim_id)

    def test_unknown_evidence_type_rejected(self, victim, intake, file_report):
        from phishnet.exceptions import ValidationError

        report = file_report(victim.victim_id)
        with pytest.raises(ValidationError):
            intake.submit_evidence(report.report_id, "Hologram", "uploads/x.bin")

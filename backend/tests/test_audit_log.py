"""
Tests for the append-only audit logs.
"""
from datetime import datetime
from unittest.mock import patch

from sqlalchemy.exc import OperationalError


class TestAuditLogWriter:
    """Tests for AuditLogWriter."""

    def _perpetrator(self, db):
        from phishnet.models.db_models import IdentifierType, PerpetratorDB

        perp = PerpetratorDB(identifier="+63-998-765-4321", identifier_type=IdentifierType.PHONE_NUMBER)
        db.add(perp)
        db.commit()
        return perp

    def test_threat_level_change_is_appended(self, db, admin):
        from phishnet.models.db_models import ThreatLevel
        from phishnet.services.lifecycle import AuditLogWriter

        perp = self._perpetrator(db)
        writer = AuditLogWriter(db)

        entry = writer.log_threat_level_change(
            perp.perpetrator_id, ThreatLevel.UNDER_REVIEW, ThreatLevel.SUSPECTED, admin_id=admin.admin_id
        )

        assert entry is not None
        assert entry.log_id is not None
        assert entry.admin_id == admin.admin_id
        assert entry.change_date is not None

    def test_entries_are_never_deduplicated(self, db, victim):
        from phishnet.models.db_models import AccountStatus
        from phishnet.services.lifecycle import AuditLogWriter

        writer = AuditLogWriter(db)
        writer.log_victim_status_change(victim.victim_id, AccountStatus.ACTIVE, AccountStatus.FLAGGED)
        writer.log_victim_status_change(victim.victim_id, AccountStatus.ACTIVE, AccountStatus.FLAGGED)

        assert len(writer.list_victim_status_changes(victim.victim_id)) == 2

    def test_history_is_newest_first(self, db):
        from phishnet.models.db_models import ThreatLevel
        from phishnet.services.lifecycle import AuditLogWriter

        perp = self._perpetrator(db)
        writer = AuditLogWriter(db)
        writer.log_threat_level_change(perp.perpetrator_id, ThreatLevel.UNDER_REVIEW, ThreatLevel.SUSPECTED,
                                       changed_at=datetime(2026, 3, 1, 9, 0))
        writer.log_threat_level_change(perp.perpetrator_id, ThreatLevel.SUSPECTED, ThreatLevel.MALICIOUS,
                                       changed_at=datetime(2026, 3, 2, 9, 0))

        history = writer.list_threat_level_changes(perp.perpetrator_id)
        assert [h.new_threat_level for h in history] == [ThreatLevel.MALICIOUS, ThreatLevel.SUSPECTED]

    def test_write_failure_returns_none(self, db, victim):
        """A failed insert is swallowed and reported, not raised."""
        from phishnet.models.db_models import AccountStatus
        from phishnet.services.lifecycle import AuditLogWriter

        writer = AuditLogWriter(db)
        error = OperationalError("INSERT INTO victim_status_log", {}, Exception("disk full"))
        with patch.object(db, "commit", side_effect=error):
            entry = writer.log_victim_status_change(victim.victim_id, AccountStatus.ACTIVE, AccountStatus.FLAGGED)

        assert entry is None
        assert writer.list_victim_status_changes(victim.victim_id) == []

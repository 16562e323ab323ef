"""
Case Administration Service

Admin-side edits outside the review lifecycle: perpetrator threat levels and
details, victim account status (manual flag, unflag, suspend), evaluation
notes, and the high-risk perpetrator highlight.

Every state change commits first and then appends its audit row, the same
order the auto-escalation rules use. A failed audit write shows up as
audit_logged=False on the outcome.
"""
import logging
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import ConstraintViolationError, NotFoundError, ValidationError
from ...models.db_models import (
    AccountStatus,
    IdentifierType,
    IncidentReportDB,
    PerpetratorDB,
    ReportEvaluationNoteDB,
    ThreatLevel,
    VictimDB,
)
from ...models.lifecycle_models import OperationOutcome, OutcomeCode
from .audit_log import AuditLogWriter
from .escalation import (
    PERPETRATOR_VICTIM_THRESHOLD,
    count_incidents_this_month,
    perpetrator_window_start,
    should_flag_victim,
)
from .intake import resolve_identifier_type

logger = logging.getLogger(__name__)


def _coerce(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if value == member.value or str(value).upper() == member.name:
            return member
    raise ValidationError(f"Unknown {label}: {value}")


class CaseAdminService:
    """Administrator actions on perpetrators, victims and report notes."""

    def __init__(self, db: Session, audit: Optional[AuditLogWriter] = None):
        self.db = db
        self.audit = audit or AuditLogWriter(db)

    # =========================================================================
    # PERPETRATORS
    # =========================================================================

    def update_threat_level(
        self,
        perpetrator_id: int,
        new_level: Union[str, ThreatLevel],
        admin_id: int,
    ) -> OperationOutcome:
        """Set a perpetrator's threat level by hand and log it against the admin."""
        level = _coerce(ThreatLevel, new_level, "threat level")
        perpetrator = self.db.get(PerpetratorDB, perpetrator_id)
        if perpetrator is None:
            raise NotFoundError(f"Perpetrator #{perpetrator_id} not found")

        old_level = perpetrator.threat_level
        if old_level == level:
            return OperationOutcome.failed(
                perpetrator_id, OutcomeCode.NO_CHANGE,
                f"Perpetrator #{perpetrator_id} is already {level.value}",
            )

        perpetrator.threat_level = level
        self._commit()
        logger.info(f"Perpetrator #{perpetrator_id} threat level {old_level.value} -> {level.value} by admin #{admin_id}")

        logged = self.audit.log_threat_level_change(perpetrator_id, old_level, level, admin_id=admin_id) is not None
        return OperationOutcome.ok(
            perpetrator_id, f"Threat level updated to {level.value}", audit_logged=logged
        )

    def update_perpetrator(
        self,
        perpetrator_id: int,
        admin_id: int,
        identifier: Optional[str] = None,
        identifier_type: Union[str, IdentifierType, None] = None,
        associated_name: Optional[str] = None,
        threat_level: Union[str, ThreatLevel, None] = None,
    ) -> OperationOutcome:
        """
        Edit a perpetrator record. Only a threat-level change is audited.

        Raises:
            NotFoundError: unknown perpetrator.
            ValidationError: blank identifier or unknown enum value.
            ConstraintViolationError: identifier belongs to another perpetrator.
        """
        perpetrator = self.db.get(PerpetratorDB, perpetrator_id)
        if perpetrator is None:
            raise NotFoundError(f"Perpetrator #{perpetrator_id} not found")

        if identifier is not None:
            identifier = identifier.strip()
            if not identifier:
                raise ValidationError("Identifier is required.")
            perpetrator.identifier = identifier
        if identifier_type is not None:
            perpetrator.identifier_type = resolve_identifier_type(identifier_type)
        if associated_name is not None:
            perpetrator.associated_name = associated_name.strip() or None

        old_level = perpetrator.threat_level
        new_level = _coerce(ThreatLevel, threat_level, "threat level") if threat_level is not None else old_level
        perpetrator.threat_level = new_level

        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConstraintViolationError(
                f"Identifier {identifier!r} is already used by another perpetrator"
            ) from e
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info(f"Perpetrator #{perpetrator_id} updated by admin #{admin_id}")

        logged = None
        if new_level != old_level:
            logged = self.audit.log_threat_level_change(
                perpetrator_id, old_level, new_level, admin_id=admin_id
            ) is not None
        return OperationOutcome.ok(perpetrator_id, f"Perpetrator #{perpetrator_id} updated", audit_logged=logged)

    def list_high_risk_perpetrators(self, reference: Optional[datetime] = None) -> List[PerpetratorDB]:
        """
        Perpetrators at or over the distinct-victim threshold for the last 7
        days that have not been marked Malicious yet.
        """
        since = perpetrator_window_start(reference or datetime.now())
        victim_counts = self.db.query(
            IncidentReportDB.perpetrator_id,
            func.count(func.distinct(IncidentReportDB.victim_id)).label("victim_count"),
        ).filter(
            IncidentReportDB.date_reported >= since
        ).group_by(IncidentReportDB.perpetrator_id).subquery()

        return self.db.query(PerpetratorDB).join(
            victim_counts, victim_counts.c.perpetrator_id == PerpetratorDB.perpetrator_id
        ).filter(
            victim_counts.c.victim_count >= PERPETRATOR_VICTIM_THRESHOLD,
            PerpetratorDB.threat_level != ThreatLevel.MALICIOUS,
        ).order_by(victim_counts.c.victim_count.desc(), PerpetratorDB.perpetrator_id).all()

    # =========================================================================
    # VICTIMS
    # =========================================================================

    def flag_victim(self, victim_id: int, admin_id: int) -> OperationOutcome:
        """
        Manual flag. Re-checks the monthly threshold instead of trusting the
        caller; an unqualified victim is left unchanged.
        """
        victim = self.db.get(VictimDB, victim_id)
        if victim is None:
            raise NotFoundError(f"Victim #{victim_id} not found")

        if victim.account_status == AccountStatus.FLAGGED:
            return OperationOutcome.failed(
                victim_id, OutcomeCode.ALREADY_FLAGGED, f"Victim #{victim_id} is already flagged"
            )

        incident_count = count_incidents_this_month(self.db, victim_id)
        if not should_flag_victim(incident_count, victim.account_status):
            return OperationOutcome.failed(
                victim_id, OutcomeCode.NOT_ENOUGH_INCIDENTS,
                f"Not enough incidents to flag victim #{victim_id} ({incident_count} this month)",
            )

        return self._change_victim_status(victim, AccountStatus.FLAGGED, admin_id)

    def set_victim_status(
        self,
        victim_id: int,
        new_status: Union[str, AccountStatus],
        admin_id: int,
    ) -> OperationOutcome:
        """Unflag, suspend or reactivate a victim account."""
        status = _coerce(AccountStatus, new_status, "account status")
        victim = self.db.get(VictimDB, victim_id)
        if victim is None:
            raise NotFoundError(f"Victim #{victim_id} not found")
        if victim.account_status == status:
            return OperationOutcome.failed(
                victim_id, OutcomeCode.NO_CHANGE, f"Victim #{victim_id} is already {status.value}"
            )
        return self._change_victim_status(victim, status, admin_id)

    def _change_victim_status(self, victim: VictimDB, status: AccountStatus, admin_id: int) -> OperationOutcome:
        victim_id = victim.victim_id
        old_status = victim.account_status
        victim.account_status = status
        self._commit()
        logger.info(f"Victim #{victim_id} status {old_status.value} -> {status.value} by admin #{admin_id}")

        logged = self.audit.log_victim_status_change(victim_id, old_status, status, admin_id=admin_id) is not None
        return OperationOutcome.ok(victim_id, f"Victim #{victim_id} is now {status.value}", audit_logged=logged)

    # =========================================================================
    # EVALUATION NOTES
    # =========================================================================

    def save_evaluation_notes(self, incident_id: int, notes: str, admin_id: int) -> ReportEvaluationNoteDB:
        """Insert or replace the admin's notes on a report."""
        if self.db.get(IncidentReportDB, incident_id) is None:
            raise NotFoundError(f"Incident #{incident_id} not found")

        entry = self.db.get(ReportEvaluationNoteDB, incident_id)
        if entry is None:
            entry = ReportEvaluationNoteDB(incident_id=incident_id)
            self.db.add(entry)
        entry.notes = notes
        entry.admin_id = admin_id
        entry.last_updated = datetime.now()
        self._commit()
        return entry

    def get_evaluation_notes(self, incident_id: int) -> Optional[ReportEvaluationNoteDB]:
        return self.db.get(ReportEvaluationNoteDB, incident_id)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

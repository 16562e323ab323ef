"""
Intake Service

Victim-facing creation path: perpetrator upsert by identifier, incident
report insert, then the auto-escalation rules. Also evidence submission
against an existing report.

Order of writes on report creation:
1. Perpetrator upsert (commit)
2. Incident report insert as Pending (commit)
3. Escalation rules (best-effort, each commits on its own)
"""
import logging
from datetime import datetime
from typing import Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import is_connection_lost
from ...exceptions import (
    ConstraintViolationError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from ...models.db_models import (
    AttackTypeDB,
    EvidenceDB,
    EvidenceType,
    IdentifierType,
    IncidentReportDB,
    PerpetratorDB,
    ReportStatus,
    ThreatLevel,
    VerifiedStatus,
    VictimDB,
)
from ...models.lifecycle_models import IncidentCreationResult
from .audit_log import AuditLogWriter
from .escalation import EscalationRules

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10

# Labels shown on intake forms that differ from the stored value
IDENTIFIER_TYPE_ALIASES = {
    "Social Media Account / Username": IdentifierType.SOCIAL_MEDIA_ACCOUNT,
    "Website URL / Domain": IdentifierType.WEBSITE_URL,
}


def resolve_identifier_type(value: Union[str, IdentifierType, None]) -> IdentifierType:
    """Map a form label, stored value or enum name to an IdentifierType."""
    if isinstance(value, IdentifierType):
        return value
    if value is None or not str(value).strip():
        raise ValidationError("Identifier type is required.")

    label = str(value).strip()
    if label in IDENTIFIER_TYPE_ALIASES:
        return IDENTIFIER_TYPE_ALIASES[label]
    for member in IdentifierType:
        if label == member.value or label.upper() == member.name:
            return member
    raise ValidationError(f"Unknown identifier type: {label}")


def resolve_evidence_type(value: Union[str, EvidenceType, None]) -> EvidenceType:
    if isinstance(value, EvidenceType):
        return value
    label = (value or "").strip()
    for member in EvidenceType:
        if label == member.value or label.upper() == member.name:
            return member
    raise ValidationError(f"Unknown evidence type: {label or None}")


class IntakeService:
    """Creates incident reports and evidence submissions."""

    def __init__(self, db: Session, audit: Optional[AuditLogWriter] = None):
        self.db = db
        self.audit = audit or AuditLogWriter(db)
        self.rules = EscalationRules(db, self.audit)

    # =========================================================================
    # PERPETRATOR UPSERT
    # =========================================================================

    def find_perpetrator(self, identifier: str) -> Optional[PerpetratorDB]:
        return self.db.query(PerpetratorDB).filter(PerpetratorDB.identifier == identifier).first()

    def upsert_perpetrator(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        associated_name: Optional[str] = None,
        seen_at: Optional[datetime] = None,
    ) -> Tuple[PerpetratorDB, bool]:
        """
        Find-or-create a perpetrator by identifier.

        A concurrent insert of the same identifier surfaces as an
        IntegrityError; that case is retried exactly once as an update.

        Returns (perpetrator, created).
        """
        seen_at = seen_at or datetime.now()
        existing = self.find_perpetrator(identifier)
        if existing is not None:
            self._touch_perpetrator(existing, associated_name, seen_at)
            self.db.commit()
            return existing, False

        perpetrator = PerpetratorDB(
            identifier=identifier,
            identifier_type=identifier_type,
            associated_name=associated_name,
            threat_level=ThreatLevel.UNDER_REVIEW,
            last_incident_date=seen_at,
        )
        try:
            self.db.add(perpetrator)
            self.db.commit()
            logger.info(f"Created perpetrator #{perpetrator.perpetrator_id} for identifier {identifier!r}")
            return perpetrator, True
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Perpetrator insert for {identifier!r} hit a constraint, retrying as update: {e.orig}")

        try:
            existing = self.find_perpetrator(identifier)
            if existing is None:
                raise ConstraintViolationError(f"Could not insert or update perpetrator {identifier!r}")
            self._touch_perpetrator(existing, associated_name, seen_at)
            self.db.commit()
            return existing, False
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ConstraintViolationError(f"Perpetrator upsert retry failed for {identifier!r}: {e}") from e

    @staticmethod
    def _touch_perpetrator(perpetrator: PerpetratorDB, associated_name: Optional[str], seen_at: datetime) -> None:
        perpetrator.last_incident_date = seen_at
        if associated_name and not perpetrator.associated_name:
            perpetrator.associated_name = associated_name

    # =========================================================================
    # REPORT CREATION
    # =========================================================================

    def create_incident_report(
        self,
        victim_id: int,
        perpetrator_identifier: str,
        identifier_type: Union[str, IdentifierType],
        attack_type_name: str,
        description: str,
        associated_name: Optional[str] = None,
        acting_admin_id: Optional[int] = None,
        reported_at: Optional[datetime] = None,
    ) -> IncidentCreationResult:
        """
        File a new incident report and run auto-escalation.

        acting_admin_id is set when an administrator files on a victim's
        behalf; it becomes the actor on any escalation log rows.

        Raises:
            ValidationError: blank identifier, short description, bad type.
            NotFoundError: unknown victim or attack type.
            ConstraintViolationError: perpetrator upsert failed twice.
            StorageUnavailableError: connection lost.
        """
        identifier = (perpetrator_identifier or "").strip()
        description = (description or "").strip()
        name = (associated_name or "").strip() or None

        if not identifier:
            raise ValidationError("Identifier is required.")
        if not attack_type_name or not attack_type_name.strip():
            raise ValidationError("Please choose an attack type.")
        if len(description) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters.")
        id_type = resolve_identifier_type(identifier_type)

        reported_at = reported_at or datetime.now()

        try:
            victim = self.db.get(VictimDB, victim_id)
            if victim is None:
                raise NotFoundError(f"Victim #{victim_id} not found")
            attack_type = self.db.query(AttackTypeDB).filter(
                AttackTypeDB.attack_name == attack_type_name.strip()
            ).first()
            if attack_type is None:
                raise NotFoundError(f"Attack type {attack_type_name!r} not found")

            perpetrator, created = self.upsert_perpetrator(identifier, id_type, name, reported_at)

            report = IncidentReportDB(
                victim_id=victim.victim_id,
                perpetrator_id=perpetrator.perpetrator_id,
                attack_type_id=attack_type.attack_type_id,
                date_reported=reported_at,
                description=description,
                status=ReportStatus.PENDING,
                version=1,
            )
            self.db.add(report)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            if is_connection_lost(e):
                raise StorageUnavailableError(f"Database connection lost: {e}") from e
            raise

        logger.info(
            f"Incident #{report.incident_id} filed by victim #{victim_id} "
            f"against perpetrator #{perpetrator.perpetrator_id}"
        )

        notices, warnings = self.rules.run(report, acting_admin_id=acting_admin_id)

        return IncidentCreationResult(
            report_id=report.incident_id,
            perpetrator_id=report.perpetrator_id,
            perpetrator_created=created,
            notices=notices,
            warnings=warnings,
        )

    # =========================================================================
    # EVIDENCE SUBMISSION
    # =========================================================================

    def submit_evidence(
        self,
        incident_id: int,
        evidence_type: Union[str, EvidenceType],
        file_path: str,
        victim_id: Optional[int] = None,
        submitted_at: Optional[datetime] = None,
    ) -> EvidenceDB:
        """
        Attach a Pending evidence item to an incident.

        file_path is stored as given; the file is not checked. When victim_id
        is passed the incident must belong to that victim.
        """
        if not file_path or not file_path.strip():
            raise ValidationError("File path is required.")
        ev_type = resolve_evidence_type(evidence_type)

        report = self.db.get(IncidentReportDB, incident_id)
        if report is None or (victim_id is not None and report.victim_id != victim_id):
            raise NotFoundError(f"Incident #{incident_id} not found")

        evidence = EvidenceDB(
            incident_id=incident_id,
            evidence_type=ev_type,
            file_path=file_path.strip(),
            submission_date=submitted_at or datetime.now(),
            verified_status=VerifiedStatus.PENDING,
            admin_id=None,
            version=1,
        )
        try:
            self.db.add(evidence)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Evidence #{evidence.evidence_id} submitted for incident #{incident_id}, pending review")
        return evidence

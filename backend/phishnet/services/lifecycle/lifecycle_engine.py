"""
Lifecycle Engine

Drives every review transition for incident reports and evidence and fires
the matching side effects.

REPORTS (rejected reports stay visible to the victim):
- Pending -> Validated: set reviewer. No archival.
- Pending -> Rejected: archive snapshot (best-effort), then set status.
  The status write is the must-succeed step; a failed snapshot only warns.

EVIDENCE (rejected evidence leaves the active table):
- Pending -> Verified: set reviewer.
- Pending -> Rejected: archive snapshot (mandatory), then delete the row.
  If the snapshot fails the row is left untouched.

RESTORE: archive row -> live row with the archived status (see RecycleBinService).

Every bulk action processes IDs in input order and isolates failures per
item. Only StorageUnavailableError escapes a batch.
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import ensure_connection, is_connection_lost
from ...exceptions import NotFoundError, PhishNetError, StorageUnavailableError
from ...models.db_models import (
    EvidenceDB,
    IncidentReportDB,
    RecycleBinEvidenceDB,
    RecycleBinReportDB,
    ReportStatus,
    VerifiedStatus,
)
from ...models.lifecycle_models import BulkResult, OperationOutcome, OutcomeCode
from .recycle_bin import RecycleBinService

logger = logging.getLogger(__name__)


# =============================================================================
# TRANSITION CONFIGURATION
# =============================================================================
#
# Maps a target status to the statuses it may be entered from. Validated is
# terminal for reports; re-validating rewrites the same status. Rejection is
# only entered from Pending, so each rejected report has exactly one
# snapshot in the bin. Everything else must go back through a restore first.
#
# =============================================================================

REPORT_TRANSITIONS: Dict[ReportStatus, Set[ReportStatus]] = {
    ReportStatus.VALIDATED: {ReportStatus.PENDING, ReportStatus.VALIDATED},
    ReportStatus.REJECTED: {ReportStatus.PENDING},
}

EVIDENCE_TRANSITIONS: Dict[VerifiedStatus, Set[VerifiedStatus]] = {
    VerifiedStatus.VERIFIED: {VerifiedStatus.PENDING, VerifiedStatus.VERIFIED},
    VerifiedStatus.REJECTED: {VerifiedStatus.PENDING},
}


class LifecycleEngine:
    """
    Review-side orchestration over reports, evidence and the recycle bin.

    Exclusively owns writes to IncidentReport.status and
    Evidence.verified_status.
    """

    def __init__(self, db: Session, recycle_bin: Optional[RecycleBinService] = None):
        self.db = db
        self.recycle_bin = recycle_bin or RecycleBinService(db)

    # =========================================================================
    # REPORTS
    # =========================================================================

    def validate_report(self, report_id: int, admin_id: int) -> OperationOutcome:
        """Pending -> Validated. Repeating on a validated report rewrites it."""
        return self._guard(report_id, lambda: self._validate_report(report_id, admin_id))

    def reject_report(self, report_id: int, admin_id: int, reason: Optional[str] = None) -> OperationOutcome:
        """Archive a snapshot (best-effort) then mark the report Rejected."""
        return self._guard(report_id, lambda: self._reject_report(report_id, admin_id, reason))

    def validate_reports(self, report_ids: Iterable[int], admin_id: int) -> BulkResult:
        return self._bulk("Validated", "report", report_ids, lambda rid: self._validate_report(rid, admin_id))

    def reject_reports(self, report_ids: Iterable[int], admin_id: int, reason: Optional[str] = None) -> BulkResult:
        return self._bulk("Rejected", "report", report_ids, lambda rid: self._reject_report(rid, admin_id, reason))

    def _validate_report(self, report_id: int, admin_id: int) -> OperationOutcome:
        report = self._load_report(report_id)
        if report is None:
            return self._not_found("Report", report_id)
        return self._write_report_status(report, ReportStatus.VALIDATED, admin_id)

    def _reject_report(self, report_id: int, admin_id: int, reason: Optional[str]) -> OperationOutcome:
        report = self._load_report(report_id)
        if report is None:
            return self._not_found("Report", report_id)
        if report.status not in REPORT_TRANSITIONS[ReportStatus.REJECTED]:
            return self._invalid_transition("Report", report_id, report.status.value, ReportStatus.REJECTED.value)

        # Snapshot first; failure must not leave the report un-rejectable
        archived = False
        try:
            archived = self.recycle_bin.archive_report(report, admin_id, reason)
        except SQLAlchemyError as e:
            self.db.rollback()
            if is_connection_lost(e):
                raise StorageUnavailableError(f"Database connection lost: {e}") from e
            logger.warning(f"Error archiving report #{report_id}, rejecting without snapshot: {e}")
            report = self._load_report(report_id)
            if report is None:
                return self._not_found("Report", report_id)

        outcome = self._write_report_status(report, ReportStatus.REJECTED, admin_id)
        outcome.archived = archived
        return outcome

    def _write_report_status(self, report: IncidentReportDB, status: ReportStatus, admin_id: int) -> OperationOutcome:
        report_id = report.incident_id
        allowed_from = REPORT_TRANSITIONS[status]
        if report.status not in allowed_from:
            return self._invalid_transition("Report", report_id, report.status.value, status.value)

        # Status guard in the WHERE clause so a concurrent review can't be overwritten silently
        rows = self.db.query(IncidentReportDB).filter(
            IncidentReportDB.incident_id == report_id,
            IncidentReportDB.status.in_(list(allowed_from)),
        ).update(
            {
                IncidentReportDB.status: status,
                IncidentReportDB.admin_id: admin_id,
                IncidentReportDB.version: IncidentReportDB.version + 1,
            },
            synchronize_session=False,
        )
        if rows == 0:
            self.db.rollback()
            return OperationOutcome.failed(
                report_id, OutcomeCode.NO_ROWS_AFFECTED,
                f"Report #{report_id} changed or disappeared before it could be marked {status.value}",
            )
        self.db.commit()
        logger.info(f"Report #{report_id} marked {status.value} by admin #{admin_id}")
        return OperationOutcome.ok(report_id, f"Report #{report_id} {status.value.lower()}")

    # =========================================================================
    # EVIDENCE
    # =========================================================================

    def verify_evidence(self, evidence_id: int, admin_id: int) -> OperationOutcome:
        return self._guard(evidence_id, lambda: self._verify_evidence(evidence_id, admin_id))

    def reject_evidence(self, evidence_id: int, admin_id: int, reason: Optional[str] = None) -> OperationOutcome:
        """Archive a snapshot (mandatory) then delete the evidence row."""
        return self._guard(evidence_id, lambda: self._reject_evidence(evidence_id, admin_id, reason))

    def verify_evidence_items(self, evidence_ids: Iterable[int], admin_id: int) -> BulkResult:
        return self._bulk("Verified", "evidence item", evidence_ids, lambda eid: self._verify_evidence(eid, admin_id))

    def reject_evidence_items(self, evidence_ids: Iterable[int], admin_id: int, reason: Optional[str] = None) -> BulkResult:
        return self._bulk("Rejected", "evidence item", evidence_ids, lambda eid: self._reject_evidence(eid, admin_id, reason))

    def _verify_evidence(self, evidence_id: int, admin_id: int) -> OperationOutcome:
        evidence = self._load_evidence(evidence_id)
        if evidence is None:
            return self._not_found("Evidence", evidence_id)

        allowed_from = EVIDENCE_TRANSITIONS[VerifiedStatus.VERIFIED]
        if evidence.verified_status not in allowed_from:
            return self._invalid_transition("Evidence", evidence_id, evidence.verified_status.value, VerifiedStatus.VERIFIED.value)

        rows = self.db.query(EvidenceDB).filter(
            EvidenceDB.evidence_id == evidence_id,
            EvidenceDB.verified_status.in_(list(allowed_from)),
        ).update(
            {
                EvidenceDB.verified_status: VerifiedStatus.VERIFIED,
                EvidenceDB.admin_id: admin_id,
                EvidenceDB.version: EvidenceDB.version + 1,
            },
            synchronize_session=False,
        )
        if rows == 0:
            self.db.rollback()
            return OperationOutcome.failed(
                evidence_id, OutcomeCode.NO_ROWS_AFFECTED,
                f"Evidence #{evidence_id} changed or disappeared before it could be verified",
            )
        self.db.commit()
        logger.info(f"Evidence #{evidence_id} verified by admin #{admin_id}")
        return OperationOutcome.ok(evidence_id, f"Evidence #{evidence_id} verified")

    def _reject_evidence(self, evidence_id: int, admin_id: int, reason: Optional[str]) -> OperationOutcome:
        evidence = self._load_evidence(evidence_id)
        if evidence is None:
            return self._not_found("Evidence", evidence_id)
        if evidence.verified_status not in EVIDENCE_TRANSITIONS[VerifiedStatus.REJECTED]:
            return self._invalid_transition(
                "Evidence", evidence_id, evidence.verified_status.value, VerifiedStatus.REJECTED.value
            )

        # Snapshot must exist before the live row goes; both commit together
        try:
            archived = self.recycle_bin.archive_evidence(evidence, admin_id, reason, commit=False)
        except SQLAlchemyError as e:
            self.db.rollback()
            if is_connection_lost(e):
                raise StorageUnavailableError(f"Database connection lost: {e}") from e
            logger.error(f"Error archiving evidence #{evidence_id}, leaving it in place: {e}")
            return OperationOutcome.failed(
                evidence_id, OutcomeCode.ARCHIVE_FAILED,
                f"Evidence #{evidence_id} could not be archived: {e}", archived=False,
            )
        if not archived:
            self.db.rollback()
            return OperationOutcome.failed(
                evidence_id, OutcomeCode.ARCHIVE_FAILED,
                f"Evidence #{evidence_id} could not be archived", archived=False,
            )

        result = self.db.execute(delete(EvidenceDB).where(EvidenceDB.evidence_id == evidence_id))
        if result.rowcount == 0:
            self.db.rollback()
            return self._not_found("Evidence", evidence_id)
        self.db.commit()
        logger.info(f"Evidence #{evidence_id} rejected by admin #{admin_id} and moved to the recycle bin")
        return OperationOutcome.ok(evidence_id, f"Evidence #{evidence_id} rejected", archived=True)

    # =========================================================================
    # RESTORE
    # =========================================================================

    def restore_report(self, bin_id: int) -> OperationOutcome:
        return self._guard(bin_id, lambda: self._restore_report(bin_id))

    def restore_evidence(self, bin_id: int) -> OperationOutcome:
        return self._guard(bin_id, lambda: self._restore_evidence(bin_id))

    def restore_reports(self, bin_ids: Iterable[int]) -> BulkResult:
        return self._bulk("Restored", "report", bin_ids, self._restore_report)

    def restore_evidence_items(self, bin_ids: Iterable[int]) -> BulkResult:
        return self._bulk("Restored", "evidence item", bin_ids, self._restore_evidence)

    def _restore_report(self, bin_id: int) -> OperationOutcome:
        archived = self.recycle_bin.get_archived_report(bin_id)
        if archived is None:
            return self._not_found("Archived report bin", bin_id)
        incident_id = archived.incident_id
        self.recycle_bin.restore_report(archived)
        return OperationOutcome.ok(bin_id, f"Report #{incident_id} restored")

    def _restore_evidence(self, bin_id: int) -> OperationOutcome:
        archived = self.recycle_bin.get_archived_evidence(bin_id)
        if archived is None:
            return self._not_found("Archived evidence bin", bin_id)
        evidence_id = archived.evidence_id
        self.recycle_bin.restore_evidence(archived)
        return OperationOutcome.ok(bin_id, f"Evidence #{evidence_id} restored")

    # =========================================================================
    # READ PROJECTIONS
    # =========================================================================

    def list_pending_reports(self) -> List[IncidentReportDB]:
        """Reports awaiting review, oldest first."""
        return self.db.query(IncidentReportDB).filter(
            IncidentReportDB.status == ReportStatus.PENDING
        ).order_by(IncidentReportDB.date_reported, IncidentReportDB.incident_id).all()

    def list_pending_evidence(self) -> List[EvidenceDB]:
        """Evidence awaiting review, oldest first."""
        return self.db.query(EvidenceDB).filter(
            EvidenceDB.verified_status == VerifiedStatus.PENDING
        ).order_by(EvidenceDB.submission_date, EvidenceDB.evidence_id).all()

    def list_reports_for_victim(self, victim_id: int) -> List[IncidentReportDB]:
        """A victim's own reports (including rejected ones), newest first."""
        return self.db.query(IncidentReportDB).filter(
            IncidentReportDB.victim_id == victim_id
        ).order_by(IncidentReportDB.date_reported.desc(), IncidentReportDB.incident_id.desc()).all()

    def list_archived_reports(self) -> List[RecycleBinReportDB]:
        return self.recycle_bin.list_archived_reports()

    def list_archived_evidence(self, incident_id: Optional[int] = None) -> List[RecycleBinEvidenceDB]:
        """Archived evidence, optionally only the items rejected from one incident."""
        if incident_id is not None:
            return self.recycle_bin.list_archived_evidence_for_incident(incident_id)
        return self.recycle_bin.list_archived_evidence()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _load_report(self, report_id: int) -> Optional[IncidentReportDB]:
        return self.db.get(IncidentReportDB, report_id, populate_existing=True)

    def _load_evidence(self, evidence_id: int) -> Optional[EvidenceDB]:
        return self.db.get(EvidenceDB, evidence_id, populate_existing=True)

    @staticmethod
    def _not_found(label: str, item_id: int) -> OperationOutcome:
        error = NotFoundError(f"{label} #{item_id} not found")
        return OperationOutcome.failed(item_id, OutcomeCode.NOT_FOUND, error.message)

    @staticmethod
    def _invalid_transition(label: str, item_id: int, current: str, target: str) -> OperationOutcome:
        return OperationOutcome.failed(
            item_id, OutcomeCode.INVALID_TRANSITION,
            f"{label} #{item_id} cannot move from {current} to {target}",
        )

    def _guard(self, item_id: int, action: Callable[[], OperationOutcome]) -> OperationOutcome:
        """
        Run one item's action, converting per-item errors to a failed outcome.

        StorageUnavailableError propagates; everything narrower stays with
        the item that caused it.
        """
        try:
            return action()
        except StorageUnavailableError:
            raise
        except PhishNetError as e:
            logger.error(f"Item #{item_id} failed: {e.message}")
            return OperationOutcome.failed(item_id, OutcomeCode(e.kind), e.message)
        except SQLAlchemyError as e:
            self.db.rollback()
            if is_connection_lost(e):
                raise StorageUnavailableError(f"Database connection lost: {e}") from e
            logger.error(f"Item #{item_id} failed with a storage error: {e}")
            return OperationOutcome.failed(item_id, OutcomeCode.STORAGE_ERROR, str(e))

    def _bulk(
        self,
        verb: str,
        noun: str,
        item_ids: Iterable[int],
        action: Callable[[int], OperationOutcome],
    ) -> BulkResult:
        ensure_connection(self.db)
        result = BulkResult()
        for item_id in item_ids:
            result.add(self._guard(item_id, lambda: action(item_id)))
        logger.info(result.summary(verb, noun))
        return result

"""
Recycle Bin Service

Moves incident reports and evidence between the active tables and their
archive (recycle bin) tables.

- Archiving inserts a full snapshot plus rejection metadata. It never touches
  the active table; the lifecycle engine decides what happens to the live row.
- Restoring is the one multi-statement transaction in the system: existence
  check, insert-or-update of the live row, delete of the archive row. Either
  all of it commits or none of it does.

Once a restore commits, an original ID is in exactly one place: the active
table or the archive table.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import ConcurrentModificationError, PhishNetError, TransactionFailureError
from ...models.db_models import (
    EvidenceDB,
    EvidenceType,
    IncidentReportDB,
    RecycleBinEvidenceDB,
    RecycleBinReportDB,
    ReportStatus,
    VerifiedStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_REPORT_ARCHIVE_REASON = "Rejected from Pending Reports Review"
DEFAULT_EVIDENCE_ARCHIVE_REASON = "Rejected from Pending Evidence Review"


def _reason_or_default(reason: Optional[str], default: str) -> str:
    if reason is None or not reason.strip():
        return default
    return reason


class RecycleBinService:
    """
    Archive manager for reports and evidence.

    Archive methods raise SQLAlchemy errors to the caller, which owns the
    policy for whether archival is best-effort or mandatory. Restore methods
    wrap every failure in TransactionFailureError after rolling back.
    """

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # ARCHIVE
    # =========================================================================

    def archive_report(
        self,
        report: IncidentReportDB,
        rejecting_admin_id: int,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Insert a snapshot of a report into the recycle bin.

        The snapshot keeps the report's current status and reviewer so a
        restore can put the row back exactly as it was.
        """
        snapshot = RecycleBinReportDB(
            incident_id=report.incident_id,
            victim_id=report.victim_id,
            perpetrator_id=report.perpetrator_id,
            attack_type_id=report.attack_type_id,
            date_reported=report.date_reported,
            description=report.description,
            original_status=report.status.value if report.status else None,
            admin_assigned_id=report.admin_id,
            rejected_by_admin_id=rejecting_admin_id,
            archive_reason=_reason_or_default(reason, DEFAULT_REPORT_ARCHIVE_REASON),
            archived_at=datetime.now(),
            source_version=report.version or 1,
        )
        self.db.add(snapshot)
        self.db.commit()
        logger.info(f"Archived report #{snapshot.incident_id} as bin #{snapshot.bin_id}")
        return snapshot.bin_id is not None

    def archive_evidence(
        self,
        evidence: EvidenceDB,
        rejecting_admin_id: int,
        reason: Optional[str] = None,
        commit: bool = True,
    ) -> bool:
        """
        Insert a snapshot of an evidence item into the recycle bin.

        With commit=False the snapshot is only flushed, so the caller can
        delete the live row in the same transaction.
        """
        snapshot = RecycleBinEvidenceDB(
            evidence_id=evidence.evidence_id,
            incident_id=evidence.incident_id,
            evidence_type=evidence.evidence_type.value if evidence.evidence_type else None,
            file_path=evidence.file_path,
            submission_date=evidence.submission_date,
            original_status=evidence.verified_status.value if evidence.verified_status else None,
            admin_assigned_id=evidence.admin_id,
            rejected_by_admin_id=rejecting_admin_id,
            archive_reason=_reason_or_default(reason, DEFAULT_EVIDENCE_ARCHIVE_REASON),
            archived_at=datetime.now(),
            source_version=evidence.version or 1,
        )
        self.db.add(snapshot)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info(f"Archived evidence #{snapshot.evidence_id} as bin #{snapshot.bin_id}")
        return snapshot.bin_id is not None

    # =========================================================================
    # RESTORE (TRANSACTIONAL)
    # =========================================================================

    def restore_report(self, archived: RecycleBinReportDB) -> bool:
        """
        Put an archived report back into incident_reports.

        If the original ID is still live (the usual case, since rejected
        reports stay visible) the row is updated in place; otherwise it is
        re-inserted under its original ID. The archive row is removed in the
        same transaction.

        Raises:
            ConcurrentModificationError: live row was changed again after the
                snapshot was taken (e.g. re-reviewed by another admin).
            TransactionFailureError: any step failed; nothing was committed.
        """
        bin_id = archived.bin_id
        incident_id = archived.incident_id
        source_version = archived.source_version or 1

        values = {
            "victim_id": archived.victim_id,
            "perpetrator_id": archived.perpetrator_id,
            "attack_type_id": archived.attack_type_id,
            "admin_id": archived.admin_assigned_id,
            "date_reported": archived.date_reported or datetime.now(),
            "description": archived.description,
            "status": ReportStatus(archived.original_status) if archived.original_status else ReportStatus.PENDING,
        }

        try:
            current_version = self.db.execute(
                select(IncidentReportDB.version)
                .where(IncidentReportDB.incident_id == incident_id)
                .with_for_update()
            ).scalar_one_or_none()

            if current_version is not None:
                # Snapshot is taken just before the rejection write, hence +1
                if current_version > source_version + 1:
                    raise ConcurrentModificationError(
                        f"Report #{incident_id} changed after it was archived "
                        f"(version {current_version}, snapshot {source_version})"
                    )
                result = self.db.execute(
                    update(IncidentReportDB)
                    .where(IncidentReportDB.incident_id == incident_id)
                    .values(version=max(current_version, source_version) + 1, **values)
                )
                if result.rowcount == 0:
                    raise TransactionFailureError(f"Failed to update report #{incident_id}")
            else:
                self.db.execute(
                    insert(IncidentReportDB).values(
                        incident_id=incident_id, version=source_version + 1, **values
                    )
                )

            self._delete_bin_row(RecycleBinReportDB, bin_id)
            self.db.commit()
        except PhishNetError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransactionFailureError(f"Restore of report #{incident_id} rolled back: {e}") from e

        # Core statements bypass the identity map
        self.db.expire_all()
        logger.info(
            f"Restored report #{incident_id} from bin #{bin_id} "
            f"({'updated' if current_version is not None else 're-inserted'}, status {values['status'].value})"
        )
        return True

    def restore_evidence(self, archived: RecycleBinEvidenceDB) -> bool:
        """
        Put archived evidence back into evidence_uploads.

        Rejected evidence is deleted from the live table, so this normally
        re-inserts under the original ID. The parent incident must still
        exist; if it was deleted the foreign key fails and the restore rolls
        back.
        """
        bin_id = archived.bin_id
        evidence_id = archived.evidence_id
        source_version = archived.source_version or 1

        values = {
            "incident_id": archived.incident_id,
            "evidence_type": EvidenceType(archived.evidence_type) if archived.evidence_type else None,
            "file_path": archived.file_path,
            "submission_date": archived.submission_date or datetime.now(),
            "verified_status": VerifiedStatus(archived.original_status) if archived.original_status else VerifiedStatus.PENDING,
            "admin_id": archived.admin_assigned_id,
        }

        try:
            current_version = self.db.execute(
                select(EvidenceDB.version)
                .where(EvidenceDB.evidence_id == evidence_id)
                .with_for_update()
            ).scalar_one_or_none()

            if current_version is not None:
                if current_version > source_version + 1:
                    raise ConcurrentModificationError(
                        f"Evidence #{evidence_id} changed after it was archived "
                        f"(version {current_version}, snapshot {source_version})"
                    )
                result = self.db.execute(
                    update(EvidenceDB)
                    .where(EvidenceDB.evidence_id == evidence_id)
                    .values(version=max(current_version, source_version) + 1, **values)
                )
                if result.rowcount == 0:
                    raise TransactionFailureError(f"Failed to update evidence #{evidence_id}")
            else:
                self.db.execute(
                    insert(EvidenceDB).values(
                        evidence_id=evidence_id, version=source_version + 1, **values
                    )
                )

            self._delete_bin_row(RecycleBinEvidenceDB, bin_id)
            self.db.commit()
        except PhishNetError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransactionFailureError(f"Restore of evidence #{evidence_id} rolled back: {e}") from e

        self.db.expire_all()
        logger.info(f"Restored evidence #{evidence_id} from bin #{bin_id}")
        return True

    def _delete_bin_row(self, model, bin_id: int) -> None:
        result = self.db.execute(delete(model).where(model.bin_id == bin_id))
        if result.rowcount == 0:
            # Someone else restored it first; committing would duplicate the row
            raise TransactionFailureError(f"Archive entry bin #{bin_id} no longer exists")

    # =========================================================================
    # READS
    # =========================================================================

    def get_archived_report(self, bin_id: int) -> Optional[RecycleBinReportDB]:
        return self.db.get(RecycleBinReportDB, bin_id)

    def get_archived_evidence(self, bin_id: int) -> Optional[RecycleBinEvidenceDB]:
        return self.db.get(RecycleBinEvidenceDB, bin_id)

    def list_archived_reports(self) -> List[RecycleBinReportDB]:
        """All archived reports, most recently archived first."""
        return self.db.query(RecycleBinReportDB).order_by(
            RecycleBinReportDB.archived_at.desc(), RecycleBinReportDB.bin_id.desc()
        ).all()

    def list_archived_evidence(self) -> List[RecycleBinEvidenceDB]:
        """All archived evidence, most recently archived first."""
        return self.db.query(RecycleBinEvidenceDB).order_by(
            RecycleBinEvidenceDB.archived_at.desc(), RecycleBinEvidenceDB.bin_id.desc()
        ).all()

    def list_archived_evidence_for_incident(self, incident_id: int) -> List[RecycleBinEvidenceDB]:
        return self.db.query(RecycleBinEvidenceDB).filter(
            RecycleBinEvidenceDB.incident_id == incident_id
        ).order_by(RecycleBinEvidenceDB.archived_at.desc(), RecycleBinEvidenceDB.bin_id.desc()).all()

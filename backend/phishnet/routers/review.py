"""
PhishNet - Review Router
Admin review queues: validate/reject reports, verify/reject evidence, and the
recycle bin. Every action is bulk; a batch always answers 200 with per-ID
tallies unless the database itself is unreachable.
"""
from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..exceptions import StorageUnavailableError
from ..models.db_models import AdministratorDB, EvidenceDB, RecycleBinEvidenceDB, RecycleBinReportDB
from ..models.lifecycle_models import BulkResult
from ..services.lifecycle import LifecycleEngine
from .errors import to_http_exception
from .incidents import IncidentSummary, incident_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/review", tags=["review"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class BulkActionRequest(BaseModel):
    ids: List[int]
    reason: Optional[str] = None  # Archive reason for rejections


class OutcomeResponse(BaseModel):
    item_id: int
    success: bool
    code: str
    message: str
    archived: Optional[bool] = None
    audit_logged: Optional[bool] = None


class BulkActionResponse(BaseModel):
    succeeded: List[OutcomeResponse]
    failed: List[OutcomeResponse]
    success_count: int
    failure_count: int


class PendingEvidenceItem(BaseModel):
    evidence_id: int
    incident_id: int
    evidence_type: str
    file_path: str
    submission_date: datetime


class ArchivedReportItem(BaseModel):
    bin_id: int
    incident_id: int
    victim_id: Optional[int] = None
    perpetrator_id: Optional[int] = None
    date_reported: Optional[datetime] = None
    description: Optional[str] = None
    original_status: Optional[str] = None
    rejected_by_admin_id: int
    archive_reason: Optional[str] = None
    archived_at: datetime


class ArchivedEvidenceItem(BaseModel):
    bin_id: int
    evidence_id: int
    incident_id: Optional[int] = None
    evidence_type: Optional[str] = None
    file_path: Optional[str] = None
    submission_date: Optional[datetime] = None
    original_status: Optional[str] = None
    rejected_by_admin_id: int
    archive_reason: Optional[str] = None
    archived_at: datetime


def _run_bulk(action) -> BulkActionResponse:
    try:
        result: BulkResult = action()
    except StorageUnavailableError as e:
        logger.error(f"Bulk action aborted: {e.message}")
        raise to_http_exception(e)
    return BulkActionResponse(**result.to_dict())


def _pending_evidence_item(evidence: EvidenceDB) -> PendingEvidenceItem:
    return PendingEvidenceItem(
        evidence_id=evidence.evidence_id,
        incident_id=evidence.incident_id,
        evidence_type=evidence.evidence_type.value,
        file_path=evidence.file_path,
        submission_date=evidence.submission_date,
    )


def _archived_report_item(row: RecycleBinReportDB) -> ArchivedReportItem:
    return ArchivedReportItem(
        bin_id=row.bin_id,
        incident_id=row.incident_id,
        victim_id=row.victim_id,
        perpetrator_id=row.perpetrator_id,
        date_reported=row.date_reported,
        description=row.description,
        original_status=row.original_status,
        rejected_by_admin_id=row.rejected_by_admin_id,
        archive_reason=row.archive_reason,
        archived_at=row.archived_at,
    )


def _archived_evidence_item(row: RecycleBinEvidenceDB) -> ArchivedEvidenceItem:
    return ArchivedEvidenceItem(
        bin_id=row.bin_id,
        evidence_id=row.evidence_id,
        incident_id=row.incident_id,
        evidence_type=row.evidence_type,
        file_path=row.file_path,
        submission_date=row.submission_date,
        original_status=row.original_status,
        rejected_by_admin_id=row.rejected_by_admin_id,
        archive_reason=row.archive_reason,
        archived_at=row.archived_at,
    )


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/reports/pending", response_model=List[IncidentSummary])
async def list_pending_reports(
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Pending reports, oldest first."""
    return [incident_summary(r) for r in LifecycleEngine(db).list_pending_reports()]


@router.post("/reports/validate", response_model=BulkActionResponse)
async def validate_reports(
    request: BulkActionRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    engine = LifecycleEngine(db)
    return _run_bulk(lambda: engine.validate_reports(request.ids, admin.admin_id))


@router.post("/reports/reject", response_model=BulkActionResponse)
async def reject_reports(
    request: BulkActionRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Reject reports. They stay visible to the victim as Rejected; a snapshot
    goes to the recycle bin.
    """
    engine = LifecycleEngine(db)
    return _run_bulk(lambda: engine.reject_reports(request.ids, admin.admin_id, request.reason))


# =============================================================================
# EVIDENCE
# =============================================================================

@router.get("/evidence/pending", response_model=List[PendingEvidenceItem])
async def list_pending_evidence(
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Pending evidence, oldest first."""
    return [_pending_evidence_item(e) for e in LifecycleEngine(db).list_pending_evidence()]


@router.post("/evidence/verify", response_model=BulkActionResponse)
async def verify_evidence(
    request: BulkActionRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    engine = LifecycleEngine(db)
    return _run_bulk(lambda: engine.verify_evidence_items(request.ids, admin.admin_id))


@router.post("/evidence/reject", response_model=BulkActionResponse)
async def reject_evidence(
    request: BulkActionRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Reject evidence. It moves to the recycle bin and leaves the active table."""
    engine = LifecycleEngine(db)
    return _run_bulk(lambda: engine.reject_evidence_items(request.ids, admin.admin_id, request.reason))


# =============================================================================
# RECYCLE BIN
# =============================================================================

@router.get("/recycle-bin/reports", response_model=List[ArchivedReportItem])
async def list_archived_reports(
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return [_archived_report_item(r) for r in LifecycleEngine(db).list_archived_reports()]


@router.get("/recycle-bin/evidence", response_model=List[ArchivedEvidenceItem])
async def list_archived_evidence(
    incident_id: Optional[int] = None,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Pass incident_id to see only the evidence rejected from that report."""
    return [_archived_evidence_item(r) for r in LifecycleEngine(db).list_archived_evidence(incident_id)]


@router.post("/recycle-bin/reports/restore", response_model=BulkActionResponse)
async def restore_reports(
    request: BulkActionRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Restore archived reports by bin ID."""
    engine = LifecycleEngine(db)
    logger.info(f"Admin #{admin.admin_id} restoring report bins {request.ids}")
    return _run_bulk(lambda: engine.restore_reports(request.ids))


@router.post("/recycle-bin/evidence/restore", response_model=BulkActionResponse)
async def restore_evidence(
    request: BulkActionRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Restore archived evidence by bin ID."""
    engine = LifecycleEngine(db)
    logger.info(f"Admin #{admin.admin_id} restoring evidence bins {request.ids}")
    return _run_bulk(lambda: engine.restore_evidence_items(request.ids))

"""
PhishNet - Admin Router
Case administration: perpetrator threat levels, victim account status,
evaluation notes, and the audit log views.
"""
from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..exceptions import PhishNetError
from ..models.db_models import AdministratorDB, PerpetratorDB
from ..models.lifecycle_models import OperationOutcome
from ..services.lifecycle import AuditLogWriter, CaseAdminService
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class ThreatLevelRequest(BaseModel):
    threat_level: str


class PerpetratorUpdateRequest(BaseModel):
    """Only provided fields are changed."""
    identifier: Optional[str] = None
    identifier_type: Optional[str] = None
    associated_name: Optional[str] = None
    threat_level: Optional[str] = None


class VictimStatusRequest(BaseModel):
    status: str


class NotesRequest(BaseModel):
    notes: str


class OutcomeResponse(BaseModel):
    item_id: int
    success: bool
    code: str
    message: str
    audit_logged: Optional[bool] = None


class PerpetratorItem(BaseModel):
    perpetrator_id: int
    identifier: str
    identifier_type: str
    associated_name: Optional[str] = None
    threat_level: str
    last_incident_date: Optional[datetime] = None


class NotesResponse(BaseModel):
    incident_id: int
    notes: Optional[str] = None
    admin_id: Optional[int] = None
    last_updated: Optional[datetime] = None


class ThreatLevelLogItem(BaseModel):
    log_id: int
    perpetrator_id: int
    old_threat_level: Optional[str] = None
    new_threat_level: Optional[str] = None
    change_date: datetime
    admin_id: Optional[int] = None  # None = system


class VictimStatusLogItem(BaseModel):
    log_id: int
    victim_id: int
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    change_date: datetime
    admin_id: Optional[int] = None  # None = system


def _outcome_response(outcome: OperationOutcome) -> OutcomeResponse:
    return OutcomeResponse(
        item_id=outcome.item_id,
        success=outcome.success,
        code=outcome.code.value,
        message=outcome.message,
        audit_logged=outcome.audit_logged,
    )


def _perpetrator_item(perpetrator: PerpetratorDB) -> PerpetratorItem:
    return PerpetratorItem(
        perpetrator_id=perpetrator.perpetrator_id,
        identifier=perpetrator.identifier,
        identifier_type=perpetrator.identifier_type.value,
        associated_name=perpetrator.associated_name,
        threat_level=perpetrator.threat_level.value,
        last_incident_date=perpetrator.last_incident_date,
    )


def _enum_value(member) -> Optional[str]:
    return member.value if member is not None else None


# =============================================================================
# PERPETRATORS
# =============================================================================

@router.get("/perpetrators/high-risk", response_model=List[PerpetratorItem])
async def list_high_risk_perpetrators(
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Perpetrators with 3+ distinct victims this week that are not yet Malicious."""
    return [_perpetrator_item(p) for p in CaseAdminService(db).list_high_risk_perpetrators()]


@router.put("/perpetrators/{perpetrator_id}/threat-level", response_model=OutcomeResponse)
async def update_threat_level(
    perpetrator_id: int,
    request: ThreatLevelRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        outcome = CaseAdminService(db).update_threat_level(perpetrator_id, request.threat_level, admin.admin_id)
    except PhishNetError as e:
        raise to_http_exception(e)
    return _outcome_response(outcome)


@router.patch("/perpetrators/{perpetrator_id}", response_model=OutcomeResponse)
async def update_perpetrator(
    perpetrator_id: int,
    request: PerpetratorUpdateRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        outcome = CaseAdminService(db).update_perpetrator(
            perpetrator_id,
            admin.admin_id,
            identifier=request.identifier,
            identifier_type=request.identifier_type,
            associated_name=request.associated_name,
            threat_level=request.threat_level,
        )
    except PhishNetError as e:
        raise to_http_exception(e)
    return _outcome_response(outcome)


# =============================================================================
# VICTIMS
# =============================================================================

@router.post("/victims/{victim_id}/flag", response_model=OutcomeResponse)
async def flag_victim(
    victim_id: int,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Manual flag. Answers 200 with code NOT_ENOUGH_INCIDENTS or ALREADY_FLAGGED
    when the victim does not qualify.
    """
    try:
        outcome = CaseAdminService(db).flag_victim(victim_id, admin.admin_id)
    except PhishNetError as e:
        raise to_http_exception(e)
    return _outcome_response(outcome)


@router.put("/victims/{victim_id}/status", response_model=OutcomeResponse)
async def set_victim_status(
    victim_id: int,
    request: VictimStatusRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        outcome = CaseAdminService(db).set_victim_status(victim_id, request.status, admin.admin_id)
    except PhishNetError as e:
        raise to_http_exception(e)
    return _outcome_response(outcome)


# =============================================================================
# EVALUATION NOTES
# =============================================================================

@router.get("/reports/{incident_id}/notes", response_model=NotesResponse)
async def get_notes(
    incident_id: int,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    entry = CaseAdminService(db).get_evaluation_notes(incident_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No notes for this report")
    return NotesResponse(
        incident_id=entry.incident_id, notes=entry.notes,
        admin_id=entry.admin_id, last_updated=entry.last_updated,
    )


@router.put("/reports/{incident_id}/notes", response_model=NotesResponse)
async def save_notes(
    incident_id: int,
    request: NotesRequest,
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        entry = CaseAdminService(db).save_evaluation_notes(incident_id, request.notes, admin.admin_id)
    except PhishNetError as e:
        raise to_http_exception(e)
    return NotesResponse(
        incident_id=entry.incident_id, notes=entry.notes,
        admin_id=entry.admin_id, last_updated=entry.last_updated,
    )


# =============================================================================
# AUDIT LOGS (READ-ONLY)
# =============================================================================

@router.get("/logs/threat-level", response_model=List[ThreatLevelLogItem])
async def list_threat_level_log(
    perpetrator_id: Optional[int] = Query(None),
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    rows = AuditLogWriter(db).list_threat_level_changes(perpetrator_id)
    return [
        ThreatLevelLogItem(
            log_id=r.log_id,
            perpetrator_id=r.perpetrator_id,
            old_threat_level=_enum_value(r.old_threat_level),
            new_threat_level=_enum_value(r.new_threat_level),
            change_date=r.change_date,
            admin_id=r.admin_id,
        )
        for r in rows
    ]


@router.get("/logs/victim-status", response_model=List[VictimStatusLogItem])
async def list_victim_status_log(
    victim_id: Optional[int] = Query(None),
    admin: AdministratorDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    rows = AuditLogWriter(db).list_victim_status_changes(victim_id)
    return [
        VictimStatusLogItem(
            log_id=r.log_id,
            victim_id=r.victim_id,
            old_status=_enum_value(r.old_status),
            new_status=_enum_value(r.new_status),
            change_date=r.change_date,
            admin_id=r.admin_id,
        )
        for r in rows
    ]

"""
PhishNet - Incidents Router
Victim-facing report filing, report history and evidence upload.
"""
from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_victim
from ..database import get_db
from ..exceptions import PhishNetError
from ..models.db_models import IncidentReportDB, VictimDB
from ..services.lifecycle import IntakeService, LifecycleEngine
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/incidents", tags=["incidents"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class CreateIncidentRequest(BaseModel):
    perpetrator_identifier: str
    identifier_type: str  # Stored value or form label, e.g. "Website URL / Domain"
    attack_type: str
    description: str
    associated_name: Optional[str] = None


class NoticeResponse(BaseModel):
    notice_type: str
    subject_id: int
    old_value: str
    new_value: str
    count: int
    message: str
    audit_logged: bool


class CreateIncidentResponse(BaseModel):
    report_id: int
    perpetrator_id: int
    perpetrator_created: bool
    notices: List[NoticeResponse] = []
    warnings: List[str] = []


class IncidentSummary(BaseModel):
    incident_id: int
    perpetrator_identifier: Optional[str] = None
    attack_type: Optional[str] = None
    date_reported: datetime
    description: Optional[str] = None
    status: str


class SubmitEvidenceRequest(BaseModel):
    evidence_type: str
    file_path: str


class EvidenceResponse(BaseModel):
    evidence_id: int
    incident_id: int
    evidence_type: str
    file_path: str
    submission_date: datetime
    verified_status: str


def incident_summary(report: IncidentReportDB) -> IncidentSummary:
    return IncidentSummary(
        incident_id=report.incident_id,
        perpetrator_identifier=report.perpetrator.identifier if report.perpetrator else None,
        attack_type=report.attack_type.attack_name if report.attack_type else None,
        date_reported=report.date_reported,
        description=report.description,
        status=report.status.value,
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("", response_model=CreateIncidentResponse, status_code=status.HTTP_201_CREATED)
async def create_incident(
    request: CreateIncidentRequest,
    victim: VictimDB = Depends(require_victim),
    db: Session = Depends(get_db)
):
    """
    File a new incident report.

    The response carries any auto-escalation notices (perpetrator marked
    Malicious, account flagged) for the UI to show.
    """
    try:
        result = IntakeService(db).create_incident_report(
            victim_id=victim.victim_id,
            perpetrator_identifier=request.perpetrator_identifier,
            identifier_type=request.identifier_type,
            attack_type_name=request.attack_type,
            description=request.description,
            associated_name=request.associated_name,
        )
    except PhishNetError as e:
        raise to_http_exception(e)

    return CreateIncidentResponse(**result.to_dict())


@router.get("/mine", response_model=List[IncidentSummary])
async def list_my_incidents(
    victim: VictimDB = Depends(require_victim),
    db: Session = Depends(get_db)
):
    """
    The victim's own reports, newest first. Rejected reports are included.
    """
    reports = LifecycleEngine(db).list_reports_for_victim(victim.victim_id)
    return [incident_summary(r) for r in reports]


@router.post("/{incident_id}/evidence", response_model=EvidenceResponse, status_code=status.HTTP_201_CREATED)
async def submit_evidence(
    incident_id: int,
    request: SubmitEvidenceRequest,
    victim: VictimDB = Depends(require_victim),
    db: Session = Depends(get_db)
):
    """
    Attach evidence to one of the victim's reports. It starts Pending.
    """
    try:
        evidence = IntakeService(db).submit_evidence(
            incident_id, request.evidence_type, request.file_path, victim_id=victim.victim_id
        )
    except PhishNetError as e:
        raise to_http_exception(e)

    return EvidenceResponse(
        evidence_id=evidence.evidence_id,
        incident_id=evidence.incident_id,
        evidence_type=evidence.evidence_type.value,
        file_path=evidence.file_path,
        submission_date=evidence.submission_date,
        verified_status=evidence.verified_status.value,
    )

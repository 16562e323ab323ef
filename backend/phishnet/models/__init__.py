"""PhishNet - Data Models"""
from .db_models import (
    # Enums
    AccountStatus, AdminRole, IdentifierType, ThreatLevel, SeverityLevel,
    ReportStatus, EvidenceType, VerifiedStatus,
    # Live tables
    VictimDB, AdministratorDB, PerpetratorDB, AttackTypeDB,
    IncidentReportDB, EvidenceDB, ReportEvaluationNoteDB,
    # Archive tables
    RecycleBinReportDB, RecycleBinEvidenceDB,
    # Audit logs
    ThreatLevelLogDB, VictimStatusLogDB,
)
from .lifecycle_models import (
    OutcomeCode, NoticeType, OperationOutcome, BulkResult,
    EscalationNotice, IncidentCreationResult,
)

__all__ = [
    "AccountStatus", "AdminRole", "IdentifierType", "ThreatLevel", "SeverityLevel",
    "ReportStatus", "EvidenceType", "VerifiedStatus",
    "VictimDB", "AdministratorDB", "PerpetratorDB", "AttackTypeDB",
    "IncidentReportDB", "EvidenceDB", "ReportEvaluationNoteDB",
    "RecycleBinReportDB", "RecycleBinEvidenceDB",
    "ThreatLevelLogDB", "VictimStatusLogDB",
    "OutcomeCode", "NoticeType", "OperationOutcome", "BulkResult",
    "EscalationNotice", "IncidentCreationResult",
]

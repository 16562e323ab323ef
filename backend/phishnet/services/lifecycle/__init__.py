"""
PhishNet - Case Lifecycle

Review transitions, recycle bin, auto-escalation, audit logs, intake and
case administration.
"""
from .audit_log import AuditLogWriter
from .case_admin import CaseAdminService
from .escalation import (
    PERPETRATOR_VICTIM_THRESHOLD,
    PERPETRATOR_WINDOW_DAYS,
    VICTIM_MONTHLY_THRESHOLD,
    EscalationRules,
    count_distinct_victims,
    count_incidents_this_month,
)
from .intake import MIN_DESCRIPTION_LENGTH, IntakeService, resolve_identifier_type
from .lifecycle_engine import EVIDENCE_TRANSITIONS, REPORT_TRANSITIONS, LifecycleEngine
from .recycle_bin import (
    DEFAULT_EVIDENCE_ARCHIVE_REASON,
    DEFAULT_REPORT_ARCHIVE_REASON,
    RecycleBinService,
)

__all__ = [
    "AuditLogWriter",
    "CaseAdminService",
    "EscalationRules",
    "IntakeService",
    "LifecycleEngine",
    "RecycleBinService",
    "count_distinct_victims",
    "count_incidents_this_month",
    "resolve_identifier_type",
    "PERPETRATOR_VICTIM_THRESHOLD",
    "PERPETRATOR_WINDOW_DAYS",
    "VICTIM_MONTHLY_THRESHOLD",
    "MIN_DESCRIPTION_LENGTH",
    "REPORT_TRANSITIONS",
    "EVIDENCE_TRANSITIONS",
    "DEFAULT_REPORT_ARCHIVE_REASON",
    "DEFAULT_EVIDENCE_ARCHIVE_REASON",
]

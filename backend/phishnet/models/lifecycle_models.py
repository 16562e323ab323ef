"""
PhishNet - Lifecycle Result Models

Plain result objects returned by the lifecycle services. Single-item
operations return an OperationOutcome; bulk operations return a BulkResult
with per-ID success/failure tallies. Nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class OutcomeCode(str, Enum):
    """Result codes for single-item lifecycle and admin actions."""
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NO_ROWS_AFFECTED = "NO_ROWS_AFFECTED"
    ARCHIVE_FAILED = "ARCHIVE_FAILED"
    TRANSACTION_FAILURE = "TRANSACTION_FAILURE"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    VALIDATION = "VALIDATION"
    STORAGE_ERROR = "STORAGE_ERROR"
    ERROR = "ERROR"
    # Admin-side guards
    NO_CHANGE = "NO_CHANGE"
    NOT_ENOUGH_INCIDENTS = "NOT_ENOUGH_INCIDENTS"
    ALREADY_FLAGGED = "ALREADY_FLAGGED"


class NoticeType(str, Enum):
    """User-facing notices raised by auto-escalation."""
    PERPETRATOR_ESCALATED = "PERPETRATOR_ESCALATED"
    VICTIM_FLAGGED = "VICTIM_FLAGGED"


@dataclass
class OperationOutcome:
    """Result of one lifecycle action on one record."""
    item_id: int
    success: bool
    code: OutcomeCode = OutcomeCode.OK
    message: str = ""
    # Side-effect bookkeeping: archive snapshot / audit row written or not
    archived: Optional[bool] = None
    audit_logged: Optional[bool] = None

    @classmethod
    def ok(cls, item_id: int, message: str = "", **kwargs) -> "OperationOutcome":
        return cls(item_id=item_id, success=True, code=OutcomeCode.OK, message=message, **kwargs)

    @classmethod
    def failed(cls, item_id: int, code: OutcomeCode, message: str, **kwargs) -> "OperationOutcome":
        return cls(item_id=item_id, success=False, code=code, message=message, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "success": self.success,
            "code": self.code.value,
            "message": self.message,
            "archived": self.archived,
            "audit_logged": self.audit_logged,
        }


@dataclass
class BulkResult:
    """Per-ID tally for a bulk action. Input order is preserved in both lists."""
    succeeded: List[OperationOutcome] = field(default_factory=list)
    failed: List[OperationOutcome] = field(default_factory=list)

    def add(self, outcome: OperationOutcome) -> None:
        if outcome.success:
            self.succeeded.append(outcome)
        else:
            self.failed.append(outcome)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def succeeded_ids(self) -> List[int]:
        return [o.item_id for o in self.succeeded]

    @property
    def failed_ids(self) -> List[int]:
        return [o.item_id for o in self.failed]

    def summary(self, verb: str, noun: str) -> str:
        """Human-readable tally, e.g. 'Rejected 2 report(s). 1 report(s) failed.'"""
        message = f"{verb} {self.success_count} {noun}(s)."
        if self.failure_count:
            message += f" {self.failure_count} {noun}(s) failed."
        return message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": [o.to_dict() for o in self.succeeded],
            "failed": [o.to_dict() for o in self.failed],
            "success_count": self.success_count,
            "failure_count": self.failure_count,
        }


@dataclass
class EscalationNotice:
    """Something the caller should surface to the user after report creation."""
    notice_type: NoticeType
    subject_id: int
    old_value: str
    new_value: str
    count: int
    message: str
    audit_logged: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "notice_type": self.notice_type.value,
            "subject_id": self.subject_id,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "count": self.count,
            "message": self.message,
            "audit_logged": self.audit_logged,
        }


@dataclass
class IncidentCreationResult:
    """Output of report intake: the new report plus any escalation notices."""
    report_id: int
    perpetrator_id: int
    perpetrator_created: bool
    notices: List[EscalationNotice] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "perpetrator_id": self.perpetrator_id,
            "perpetrator_created": self.perpetrator_created,
            "notices": [n.to_dict() for n in self.notices],
            "warnings": list(self.warnings),
        }

"""
Auto-Escalation Rules

Counting + threshold logic run right after a new incident report commits.

SYSTEM-AUTHORITATIVE:
- Perpetrator escalation: 3+ distinct victims in the trailing 7 calendar days
  moves the perpetrator to Malicious.
- Victim flagging: more than 5 reports in the current calendar month flags
  the victim's account.

Both windows are anchored on the new report's own timestamp, so the report
that triggers a rule is counted by it. Escalation is best-effort relative to
report creation: a failed count or write becomes a warning, never a rollback
of the report.
"""
import logging
from datetime import datetime, time, timedelta
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    AccountStatus,
    IncidentReportDB,
    PerpetratorDB,
    ThreatLevel,
    VictimDB,
)
from ...models.lifecycle_models import EscalationNotice, NoticeType
from .audit_log import AuditLogWriter

logger = logging.getLogger(__name__)

# Fixed thresholds; not configurable at runtime
PERPETRATOR_VICTIM_THRESHOLD = 3  # Escalate at >= 3 distinct victims
PERPETRATOR_WINDOW_DAYS = 7
VICTIM_MONTHLY_THRESHOLD = 5  # Flag when count > 5, i.e. on the 6th report


# =============================================================================
# WINDOWS
# =============================================================================

def perpetrator_window_start(reference: datetime) -> datetime:
    """Midnight of the day PERPETRATOR_WINDOW_DAYS before the reference day."""
    return datetime.combine(reference.date() - timedelta(days=PERPETRATOR_WINDOW_DAYS), time.min)


def month_window(reference: datetime) -> Tuple[datetime, datetime]:
    """[start, end) of the calendar month containing the reference time."""
    start = datetime.combine(reference.date().replace(day=1), time.min)
    return start, start + relativedelta(months=1)


# =============================================================================
# COUNTS
# =============================================================================

def count_distinct_victims(db: Session, perpetrator_id: int, reference: Optional[datetime] = None) -> int:
    """Distinct victims reporting this perpetrator inside the 7-day window."""
    since = perpetrator_window_start(reference or datetime.now())
    return db.query(func.count(func.distinct(IncidentReportDB.victim_id))).filter(
        IncidentReportDB.perpetrator_id == perpetrator_id,
        IncidentReportDB.date_reported >= since,
    ).scalar() or 0


def count_incidents_this_month(db: Session, victim_id: int, reference: Optional[datetime] = None) -> int:
    """Reports filed by this victim in the calendar month of the reference time."""
    start, end = month_window(reference or datetime.now())
    return db.query(func.count(IncidentReportDB.incident_id)).filter(
        IncidentReportDB.victim_id == victim_id,
        IncidentReportDB.date_reported >= start,
        IncidentReportDB.date_reported < end,
    ).scalar() or 0


def should_escalate_perpetrator(victim_count: int, current_level: ThreatLevel) -> bool:
    return victim_count >= PERPETRATOR_VICTIM_THRESHOLD and current_level != ThreatLevel.MALICIOUS


def should_flag_victim(incident_count: int, current_status: AccountStatus) -> bool:
    return incident_count > VICTIM_MONTHLY_THRESHOLD and current_status != AccountStatus.FLAGGED


# =============================================================================
# RULES
# =============================================================================

class EscalationRules:
    """Applies both auto-escalation rules for a freshly committed report."""

    def __init__(self, db: Session, audit: Optional[AuditLogWriter] = None):
        self.db = db
        self.audit = audit or AuditLogWriter(db)

    def run(
        self,
        report: IncidentReportDB,
        acting_admin_id: Optional[int] = None,
    ) -> Tuple[List[EscalationNotice], List[str]]:
        """
        Run perpetrator escalation then victim flagging.

        Returns (notices, warnings). Never raises on storage errors.
        """
        notices: List[EscalationNotice] = []
        warnings: List[str] = []
        reference = report.date_reported
        perpetrator_id = report.perpetrator_id
        victim_id = report.victim_id

        try:
            notice = self.escalate_perpetrator(perpetrator_id, reference, acting_admin_id)
            if notice:
                notices.append(notice)
        except SQLAlchemyError as e:
            self.db.rollback()
            message = f"Perpetrator escalation skipped for perpetrator #{perpetrator_id}: {e}"
            logger.warning(message)
            warnings.append(message)

        try:
            notice = self.flag_victim(victim_id, reference, acting_admin_id)
            if notice:
                notices.append(notice)
        except SQLAlchemyError as e:
            self.db.rollback()
            message = f"Victim flagging skipped for victim #{victim_id}: {e}"
            logger.warning(message)
            warnings.append(message)

        return notices, warnings

    def escalate_perpetrator(
        self,
        perpetrator_id: int,
        reference: datetime,
        acting_admin_id: Optional[int] = None,
    ) -> Optional[EscalationNotice]:
        """Mark the perpetrator Malicious once it crosses the victim threshold."""
        victim_count = count_distinct_victims(self.db, perpetrator_id, reference)
        perpetrator = self.db.get(PerpetratorDB, perpetrator_id)
        if perpetrator is None or not should_escalate_perpetrator(victim_count, perpetrator.threat_level):
            return None

        old_level = perpetrator.threat_level
        perpetrator.threat_level = ThreatLevel.MALICIOUS
        self.db.commit()
        logger.info(
            f"Perpetrator #{perpetrator_id} escalated {old_level.value} -> Malicious "
            f"({victim_count} victims in {PERPETRATOR_WINDOW_DAYS} days)"
        )

        logged = self.audit.log_threat_level_change(
            perpetrator_id, old_level, ThreatLevel.MALICIOUS, admin_id=acting_admin_id
        ) is not None

        return EscalationNotice(
            notice_type=NoticeType.PERPETRATOR_ESCALATED,
            subject_id=perpetrator_id,
            old_value=old_level.value,
            new_value=ThreatLevel.MALICIOUS.value,
            count=victim_count,
            message=(
                f"Identifier: {perpetrator.identifier}\n"
                f"Now marked as MALICIOUS ({victim_count} victims in {PERPETRATOR_WINDOW_DAYS} days)"
            ),
            audit_logged=logged,
        )

    def flag_victim(
        self,
        victim_id: int,
        reference: datetime,
        admin_id: Optional[int] = None,
    ) -> Optional[EscalationNotice]:
        """Flag the victim's account once their monthly count passes the threshold."""
        incident_count = count_incidents_this_month(self.db, victim_id, reference)
        victim = self.db.get(VictimDB, victim_id)
        if victim is None or not should_flag_victim(incident_count, victim.account_status):
            return None

        old_status = victim.account_status
        victim.account_status = AccountStatus.FLAGGED
        self.db.commit()
        logger.info(
            f"Victim #{victim_id} auto-flagged {old_status.value} -> Flagged "
            f"({incident_count} incidents this month)"
        )

        logged = self.audit.log_victim_status_change(
            victim_id, old_status, AccountStatus.FLAGGED, admin_id=admin_id
        ) is not None

        return EscalationNotice(
            notice_type=NoticeType.VICTIM_FLAGGED,
            subject_id=victim_id,
            old_value=old_status.value,
            new_value=AccountStatus.FLAGGED.value,
            count=incident_count,
            message=(
                "Your account has been flagged for additional support.\n"
                f"Incidents reported this month: {incident_count}"
            ),
            audit_logged=logged,
        )

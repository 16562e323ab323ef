"""
Audit Log Writer

Append-only records of perpetrator threat-level changes and victim
account-status changes.

Core Principles:
1. Insert only. No updates, no deletes, no dedup.
2. admin_id is NULL only for system-triggered (auto-escalation) changes.
3. Best-effort: a failed log write is reported to the caller and logged as a
   warning, but never undoes the state change it documents. Callers commit
   the primary change before asking for the log entry.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    AccountStatus,
    ThreatLevel,
    ThreatLevelLogDB,
    VictimStatusLogDB,
)

logger = logging.getLogger(__name__)


class AuditLogWriter:
    """Writes and reads the threat-level and victim-status audit logs."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # WRITES
    # =========================================================================

    def log_threat_level_change(
        self,
        perpetrator_id: int,
        old_level: Optional[ThreatLevel],
        new_level: ThreatLevel,
        admin_id: Optional[int] = None,
        changed_at: Optional[datetime] = None,
    ) -> Optional[ThreatLevelLogDB]:
        """
        Append a threat-level change.

        Returns the committed row, or None if the write failed.
        """
        entry = ThreatLevelLogDB(
            perpetrator_id=perpetrator_id,
            old_threat_level=old_level,
            new_threat_level=new_level,
            change_date=changed_at or datetime.now(),
            admin_id=admin_id,
        )
        return self._append(entry, f"threat level {_value(old_level)} -> {_value(new_level)} for perpetrator #{perpetrator_id}")

    def log_victim_status_change(
        self,
        victim_id: int,
        old_status: Optional[AccountStatus],
        new_status: AccountStatus,
        admin_id: Optional[int] = None,
        changed_at: Optional[datetime] = None,
    ) -> Optional[VictimStatusLogDB]:
        """
        Append a victim account-status change.

        Returns the committed row, or None if the write failed.
        """
        entry = VictimStatusLogDB(
            victim_id=victim_id,
            old_status=old_status,
            new_status=new_status,
            change_date=changed_at or datetime.now(),
            admin_id=admin_id,
        )
        return self._append(entry, f"account status {_value(old_status)} -> {_value(new_status)} for victim #{victim_id}")

    def _append(self, entry, description: str):
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Audit log write failed ({description}): {e}")
            return None
        logger.info(f"Audit log: {description}")
        return entry

    # =========================================================================
    # READS
    # =========================================================================

    def list_threat_level_changes(self, perpetrator_id: Optional[int] = None) -> List[ThreatLevelLogDB]:
        """Threat-level history, newest first."""
        query = self.db.query(ThreatLevelLogDB)
        if perpetrator_id is not None:
            query = query.filter(ThreatLevelLogDB.perpetrator_id == perpetrator_id)
        return query.order_by(ThreatLevelLogDB.change_date.desc(), ThreatLevelLogDB.log_id.desc()).all()

    def list_victim_status_changes(self, victim_id: Optional[int] = None) -> List[VictimStatusLogDB]:
        """Victim-status history, newest first."""
        query = self.db.query(VictimStatusLogDB)
        if victim_id is not None:
            query = query.filter(VictimStatusLogDB.victim_id == victim_id)
        return query.order_by(VictimStatusLogDB.change_date.desc(), VictimStatusLogDB.log_id.desc()).all()


def _value(member) -> str:
    return member.value if member is not None else "None"

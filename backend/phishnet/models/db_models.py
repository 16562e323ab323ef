"""
PhishNet - SQLAlchemy ORM Models
Live case tables, recycle-bin archive tables, and append-only audit logs.
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class AccountStatus(str, Enum):
    """Victim account status."""
    ACTIVE = "Active"
    FLAGGED = "Flagged"
    SUSPENDED = "Suspended"


class AdminRole(str, Enum):
    """Administrator roles."""
    SYSTEM_ADMIN = "System Admin"
    CYBERSECURITY_STAFF = "Cybersecurity Staff"


class IdentifierType(str, Enum):
    """Kind of identifier a perpetrator is known by."""
    PHONE_NUMBER = "Phone Number"
    EMAIL_ADDRESS = "Email Address"
    SOCIAL_MEDIA_ACCOUNT = "Social Media Account"
    WEBSITE_URL = "Website URL"
    IP_ADDRESS = "IP Address"


class ThreatLevel(str, Enum):
    """Perpetrator risk classification."""
    UNDER_REVIEW = "UnderReview"
    SUSPECTED = "Suspected"
    MALICIOUS = "Malicious"
    CLEARED = "Cleared"


class SeverityLevel(str, Enum):
    """Attack type severity."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ReportStatus(str, Enum):
    """Incident report review status."""
    PENDING = "Pending"
    VALIDATED = "Validated"
    REJECTED = "Rejected"


class EvidenceType(str, Enum):
    """Kind of evidence artifact."""
    SCREENSHOT = "Screenshot"
    EMAIL = "Email"
    FILE = "File"
    CHAT_LOG = "Chat Log"


class VerifiedStatus(str, Enum):
    """Evidence review status."""
    PENDING = "Pending"
    VERIFIED = "Verified"
    REJECTED = "Rejected"


# =============================================================================
# ACCOUNTS
# =============================================================================

class VictimDB(Base):
    """Incident reporter account."""
    __tablename__ = "victims"

    victim_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    contact_email = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    account_status = Column(SQLEnum(AccountStatus), nullable=False, default=AccountStatus.ACTIVE)
    date_created = Column(DateTime, default=datetime.now)

    # Relationships
    reports = relationship("IncidentReportDB", back_populates="victim", passive_deletes=True)


class AdministratorDB(Base):
    """System administrator / cybersecurity staff account."""
    __tablename__ = "administrators"

    admin_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    role = Column(SQLEnum(AdminRole), nullable=False)
    contact_email = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    date_assigned = Column(DateTime, default=datetime.now)


# =============================================================================
# CASE ENTITIES
# =============================================================================

class PerpetratorDB(Base):
    """Threat actor keyed by its identifier (phone, email, handle, URL, IP)."""
    __tablename__ = "perpetrators"

    perpetrator_id = Column(Integer, primary_key=True, autoincrement=True)
    identifier = Column(String(255), unique=True, nullable=False, index=True)  # Natural key for upsert
    identifier_type = Column(SQLEnum(IdentifierType), nullable=False)
    associated_name = Column(String(100), nullable=True)
    threat_level = Column(SQLEnum(ThreatLevel), nullable=False, default=ThreatLevel.UNDER_REVIEW)
    last_incident_date = Column(DateTime, nullable=True)

    # Relationships
    reports = relationship("IncidentReportDB", back_populates="perpetrator", passive_deletes=True)


class AttackTypeDB(Base):
    """Static attack category lookup."""
    __tablename__ = "attack_types"

    attack_type_id = Column(Integer, primary_key=True, autoincrement=True)
    attack_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    severity_level = Column(SQLEnum(SeverityLevel), default=SeverityLevel.LOW)


class IncidentReportDB(Base):
    """
    Central case record: one victim, one perpetrator, one attack type.
    Status transitions are owned by the lifecycle engine.
    """
    __tablename__ = "incident_reports"

    incident_id = Column(Integer, primary_key=True, autoincrement=True)
    victim_id = Column(Integer, ForeignKey("victims.victim_id", ondelete="CASCADE"), nullable=False, index=True)
    perpetrator_id = Column(Integer, ForeignKey("perpetrators.perpetrator_id", ondelete="CASCADE"), nullable=False, index=True)
    attack_type_id = Column(Integer, ForeignKey("attack_types.attack_type_id"), nullable=False)
    admin_id = Column(Integer, ForeignKey("administrators.admin_id"), nullable=True)  # Reviewer

    date_reported = Column(DateTime, nullable=False, default=datetime.now, index=True)
    description = Column(Text, nullable=True)
    status = Column(SQLEnum(ReportStatus), nullable=False, default=ReportStatus.PENDING)

    # Revision counter bumped by every lifecycle write (optimistic restore check)
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    victim = relationship("VictimDB", back_populates="reports")
    perpetrator = relationship("PerpetratorDB", back_populates="reports")
    attack_type = relationship("AttackTypeDB")
    evidence = relationship("EvidenceDB", back_populates="incident", passive_deletes=True)


class EvidenceDB(Base):
    """Supporting artifact attached to an incident report."""
    __tablename__ = "evidence_uploads"

    evidence_id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, ForeignKey("incident_reports.incident_id", ondelete="CASCADE"), nullable=False, index=True)
    evidence_type = Column(SQLEnum(EvidenceType), nullable=False)
    file_path = Column(String(255), nullable=False)  # Opaque; never checked for existence
    submission_date = Column(DateTime, nullable=False, default=datetime.now)
    verified_status = Column(SQLEnum(VerifiedStatus), nullable=False, default=VerifiedStatus.PENDING)
    admin_id = Column(Integer, ForeignKey("administrators.admin_id"), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    # Relationships
    incident = relationship("IncidentReportDB", back_populates="evidence")


class ReportEvaluationNoteDB(Base):
    """Admin evaluation notes; one row per report, saved by upsert."""
    __tablename__ = "report_evaluation_notes"

    incident_id = Column(Integer, ForeignKey("incident_reports.incident_id", ondelete="CASCADE"), primary_key=True)
    notes = Column(Text, nullable=True)
    admin_id = Column(Integer, ForeignKey("administrators.admin_id"), nullable=True)
    last_updated = Column(DateTime, default=datetime.now, onupdate=datetime.now)


# =============================================================================
# RECYCLE BIN (ARCHIVE SNAPSHOTS)
# =============================================================================
#
# Archive rows carry their own bin_id. The original ID is kept as plain data
# (no foreign key) so the same record can be archived, restored and archived
# again, and so snapshots survive deletion of the original.
#
# =============================================================================

class RecycleBinReportDB(Base):
    """Snapshot of a rejected incident report."""
    __tablename__ = "recycle_bin_reports"

    bin_id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, nullable=False, index=True)
    victim_id = Column(Integer, nullable=True)
    perpetrator_id = Column(Integer, nullable=True)
    attack_type_id = Column(Integer, nullable=True)
    date_reported = Column(DateTime, nullable=True)
    description = Column(Text, nullable=True)

    original_status = Column(String(50), nullable=True)  # Status at archive time
    admin_assigned_id = Column(Integer, nullable=True)  # Reviewer before rejection
    rejected_by_admin_id = Column(Integer, nullable=False)
    archive_reason = Column(String(255), nullable=True)
    archived_at = Column(DateTime, nullable=False, default=datetime.now)
    source_version = Column(Integer, nullable=False, default=1)


class RecycleBinEvidenceDB(Base):
    """Snapshot of a rejected evidence item."""
    __tablename__ = "recycle_bin_evidence"

    bin_id = Column(Integer, primary_key=True, autoincrement=True)
    evidence_id = Column(Integer, nullable=False, index=True)
    incident_id = Column(Integer, nullable=True, index=True)
    evidence_type = Column(String(50), nullable=True)
    file_path = Column(String(255), nullable=True)
    submission_date = Column(DateTime, nullable=True)

    original_status = Column(String(50), nullable=True)
    admin_assigned_id = Column(Integer, nullable=True)
    rejected_by_admin_id = Column(Integer, nullable=False)
    archive_reason = Column(String(255), nullable=True)
    archived_at = Column(DateTime, nullable=False, default=datetime.now)
    source_version = Column(Integer, nullable=False, default=1)


# =============================================================================
# AUDIT LOGS (APPEND-ONLY)
# =============================================================================

class ThreatLevelLogDB(Base):
    """Immutable record of a perpetrator threat-level change."""
    __tablename__ = "threat_level_log"

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    perpetrator_id = Column(Integer, ForeignKey("perpetrators.perpetrator_id", ondelete="CASCADE"), nullable=False, index=True)
    old_threat_level = Column(SQLEnum(ThreatLevel), nullable=True)
    new_threat_level = Column(SQLEnum(ThreatLevel), nullable=True)
    change_date = Column(DateTime, nullable=False, default=datetime.now)
    admin_id = Column(Integer, ForeignKey("administrators.admin_id"), nullable=True)  # NULL = system


class VictimStatusLogDB(Base):
    """Immutable record of a victim account-status change."""
    __tablename__ = "victim_status_log"

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    victim_id = Column(Integer, ForeignKey("victims.victim_id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(SQLEnum(AccountStatus), nullable=True)
    new_status = Column(SQLEnum(AccountStatus), nullable=True)
    change_date = Column(DateTime, nullable=False, default=datetime.now)
    admin_id = Column(Integer, ForeignKey("administrators.admin_id"), nullable=True)  # NULL = system

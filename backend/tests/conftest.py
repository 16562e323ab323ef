"""
Shared fixtures: a fresh in-memory SQLite database per test, plus seeded
administrators, victims and attack types.
"""
from datetime import datetime

import pytest
from sqlalchemy.pool import StaticPool

from phishnet.database import build_engine, build_session_factory, init_db
from phishnet.models.db_models import (
    AccountStatus,
    AdminRole,
    AdministratorDB,
    AttackTypeDB,
    SeverityLevel,
    VictimDB,
)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = build_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def admin(db):
    admin = AdministratorDB(
        name="Jane Reviewer",
        role=AdminRole.CYBERSECURITY_STAFF,
        contact_email="jane@phishnet.org",
        password_hash="x",
    )
    db.add(admin)
    db.commit()
    return admin


@pytest.fixture
def second_admin(db):
    admin = AdministratorDB(
        name="Marco Reviewer",
        role=AdminRole.SYSTEM_ADMIN,
        contact_email="marco@phishnet.org",
        password_hash="x",
    )
    db.add(admin)
    db.commit()
    return admin


def make_victim(db, name: str) -> VictimDB:
    victim = VictimDB(
        name=name,
        contact_email=f"{name.lower().replace(' ', '.')}@example.com",
        password_hash="x",
        account_status=AccountStatus.ACTIVE,
    )
    db.add(victim)
    db.commit()
    return victim


@pytest.fixture
def victims(db):
    return [make_victim(db, f"Victim {i}") for i in range(1, 5)]


@pytest.fixture
def victim(victims):
    return victims[0]


@pytest.fixture
def attack_types(db):
    rows = [
        AttackTypeDB(attack_name="Phishing", description="Credential lure", severity_level=SeverityLevel.HIGH),
        AttackTypeDB(attack_name="Vishing", description="Voice call scam", severity_level=SeverityLevel.MEDIUM),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def intake(db, attack_types):
    from phishnet.services.lifecycle import IntakeService
    return IntakeService(db)


@pytest.fixture
def engine_service(db):
    from phishnet.services.lifecycle import LifecycleEngine
    return LifecycleEngine(db)


@pytest.fixture
def file_report(intake):
    """File a Phishing report; returns the IncidentCreationResult."""
    def _file(victim_id, identifier="scammer@fakebank.com", reported_at=None, **kwargs):
        return intake.create_incident_report(
            victim_id=victim_id,
            perpetrator_identifier=identifier,
            identifier_type=kwargs.pop("identifier_type", "Email Address"),
            attack_type_name=kwargs.pop("attack_type_name", "Phishing"),
            description=kwargs.pop("description", "Email asked me to verify my bank login."),
            reported_at=reported_at or datetime.now(),
            **kwargs,
        )
    return _file

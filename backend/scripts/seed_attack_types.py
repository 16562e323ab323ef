#!/usr/bin/env python3
"""
Attack Type Seed Script
Loads the standard attack categories victims choose from when filing a report.
Existing names are left alone, so the script can be re-run safely.

Usage:
    python -m scripts.seed_attack_types
"""
import sys
import os

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError
from phishnet.database import build_engine, build_session_factory, init_db
from phishnet.models.db_models import AttackTypeDB, SeverityLevel

ATTACK_TYPES = [
    ("Phishing", "Fraudulent attempt to obtain sensitive information by disguising as a trustworthy entity", SeverityLevel.HIGH),
    ("SMS Phishing (Smishing)", "Phishing attacks conducted via SMS text messages", SeverityLevel.HIGH),
    ("Email Spoofing", "Forged email headers to make messages appear from a different sender", SeverityLevel.MEDIUM),
    ("Social Engineering", "Manipulation technique to trick users into revealing confidential information", SeverityLevel.HIGH),
    ("Malware Distribution", "Distribution of malicious software through various channels", SeverityLevel.HIGH),
    ("Fake Website", "Fraudulent website designed to mimic legitimate sites to steal credentials", SeverityLevel.HIGH),
    ("Vishing", "Phishing attacks conducted via voice calls", SeverityLevel.MEDIUM),
    ("Credential Theft", "Unauthorized acquisition of user credentials", SeverityLevel.HIGH),
    ("Account Takeover", "Unauthorized access and control of user accounts", SeverityLevel.HIGH),
    ("Data Breach", "Unauthorized access to confidential data", SeverityLevel.HIGH),
]


def seed_attack_types(db) -> int:
    """Insert missing attack types. Returns how many were added."""
    existing = {name for (name,) in db.query(AttackTypeDB.attack_name).all()}
    added = 0
    for name, description, severity in ATTACK_TYPES:
        if name in existing:
            continue
        db.add(AttackTypeDB(attack_name=name, description=description, severity_level=severity))
        added += 1
    db.commit()
    return added


def main():
    engine = build_engine()
    init_db(engine)

    db = build_session_factory(engine)()
    try:
        added = seed_attack_types(db)
        print(f"Seeded {added} attack type(s); {len(ATTACK_TYPES) - added} already present.")
    except SQLAlchemyError as e:
        print(f"Error seeding attack types: {e}")
        db.rollback()
        sys.exit(1)
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    main()

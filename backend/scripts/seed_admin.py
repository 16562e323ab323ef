#!/usr/bin/env python3
"""
Administrator Seed Script
Creates an administrator account for the PhishNet review console.

Usage:
    python -m scripts.seed_admin <email> <name> <password> [role]

Example:
    python -m scripts.seed_admin admin@phishnet.org "Jane Cruz" securepassword123 "System Admin"
"""
import sys
import os

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError
from phishnet.database import build_engine, build_session_factory, init_db
from phishnet.models.db_models import AdministratorDB, AdminRole
from phishnet.auth import hash_password


def create_admin(email: str, name: str, password: str, role: AdminRole) -> bool:
    """Create an administrator in the database."""
    engine = build_engine()
    # Ensure tables exist
    init_db(engine)

    db = build_session_factory(engine)()
    try:
        existing = db.query(AdministratorDB).filter(AdministratorDB.contact_email == email).first()
        if existing:
            print(f"Error: Administrator '{email}' already exists.")
            return False

        admin = AdministratorDB(
            name=name,
            role=role,
            contact_email=email,
            password_hash=hash_password(password),
        )
        db.add(admin)
        db.commit()

        print("Administrator created successfully!")
        print(f"  ID: {admin.admin_id}")
        print(f"  Email: {email}")
        print(f"  Name: {name}")
        print(f"  Role: {role.value}")
        return True

    except SQLAlchemyError as e:
        print(f"Error creating administrator: {e}")
        db.rollback()
        return False
    finally:
        db.close()
        engine.dispose()


def main():
    if len(sys.argv) not in (4, 5):
        print(__doc__)
        sys.exit(1)

    email = sys.argv[1]
    name = sys.argv[2]
    password = sys.argv[3]

    # Basic validation
    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    try:
        role = AdminRole(sys.argv[4]) if len(sys.argv) == 5 else AdminRole.SYSTEM_ADMIN
    except ValueError:
        print(f"Error: Role must be one of: {', '.join(r.value for r in AdminRole)}")
        sys.exit(1)

    success = create_admin(email, name, password, role)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

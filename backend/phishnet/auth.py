"""
PhishNet - Authentication Utilities
Password hashing, JWT tokens, and auth dependencies for victims and administrators.

A token names its principal by role and table ID; the role picks the table
the ID is looked up in.
"""
import os
from datetime import datetime, timedelta
from typing import Optional, Tuple, Union

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .models.db_models import AdministratorDB, VictimDB

# Configuration
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "phishnet-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

ROLE_ADMIN = "admin"
ROLE_VICTIM = "victim"

PRINCIPAL_MODELS = {ROLE_ADMIN: AdministratorDB, ROLE_VICTIM: VictimDB}

Principal = Union[AdministratorDB, VictimDB]

# Bearer token security
security = HTTPBearer()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(principal: Principal) -> str:
    """Token for an administrator or victim; the role claim follows the account type."""
    if isinstance(principal, AdministratorDB):
        role, subject_id = ROLE_ADMIN, principal.admin_id
    else:
        role, subject_id = ROLE_VICTIM, principal.victim_id
    claims = {
        "sub": str(subject_id),
        "email": principal.contact_email,
        "role": role,
        "exp": datetime.utcnow() + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[Tuple[str, int]]:
    """(role, subject ID) for a valid token, None for anything unusable."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        role = payload.get("role")
        subject_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        return None
    if role not in PRINCIPAL_MODELS:
        return None
    return role, subject_id


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Principal:
    """Dependency to get the authenticated administrator or victim."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    claims = decode_token(credentials.credentials)
    if claims is None:
        raise credentials_exception

    role, subject_id = claims
    principal = db.get(PRINCIPAL_MODELS[role], subject_id)
    if principal is None:
        raise credentials_exception

    return principal


async def require_admin(
    principal: Principal = Depends(get_current_principal)
) -> AdministratorDB:
    """
    Dependency to require an administrator.
    The returned admin's ID is the acting admin for every review action.
    """
    if not isinstance(principal, AdministratorDB):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return principal


async def require_victim(
    principal: Principal = Depends(get_current_principal)
) -> VictimDB:
    """Dependency to require a victim account."""
    if not isinstance(principal, VictimDB):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Victim account required"
        )
    return principal

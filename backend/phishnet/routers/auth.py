"""
PhishNet - Authentication Router
Victim registration and login, administrator login.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import AccountStatus, AdministratorDB, VictimDB
from ..auth import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name is required')
        return v.strip()

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterResponse(BaseModel):
    victim_id: int
    message: str


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/victims/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_victim(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new victim account.
    """
    existing = db.query(VictimDB).filter(VictimDB.contact_email == request.email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    victim = VictimDB(
        name=request.name,
        contact_email=request.email,
        password_hash=hash_password(request.password),
        account_status=AccountStatus.ACTIVE,
    )
    db.add(victim)
    db.commit()

    logger.info(f"Victim registered: {request.email}")
    return RegisterResponse(victim_id=victim.victim_id, message="Account created successfully")


@router.post("/victims/login", response_model=TokenResponse)
async def login_victim(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate a victim and return a JWT token.
    """
    victim = db.query(VictimDB).filter(VictimDB.contact_email == request.email).first()

    if not victim or not verify_password(request.password, victim.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if victim.account_status == AccountStatus.SUSPENDED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account suspended"
        )

    access_token = create_access_token(victim)

    logger.info(f"Victim logged in: {request.email}")
    return TokenResponse(access_token=access_token)


@router.post("/admins/login", response_model=TokenResponse)
async def login_admin(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate an administrator and return a JWT token.
    """
    admin = db.query(AdministratorDB).filter(AdministratorDB.contact_email == request.email).first()

    if not admin or not verify_password(request.password, admin.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(admin)

    logger.info(f"Administrator logged in: {request.email}")
    return TokenResponse(access_token=access_token)

"""
Authentication router
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from exceptions import AuthError, ConflictError, PermissionDeniedError, ValidationError
from models import User
from schemas import UserLogin, UserRegister, UserResponse, PasswordChange, Token
from auth import verify_password, get_password_hash, create_user_token, get_current_user
from services.profiles import get_or_create_profile

logger = logging.getLogger(__name__)

router = APIRouter()

def _user_payload(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump()

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """
    Register a new customer account and return a token
    """
    if db.query(User).filter(User.email == user_data.email).first():
        raise ConflictError("Email already registered")
    if user_data.phone and db.query(User).filter(User.phone == user_data.phone).first():
        raise ConflictError("Phone number already registered")

    new_user = User(
        full_name=user_data.full_name,
        email=user_data.email,
        phone=user_data.phone,
        location=user_data.location,
        role="customer",
        password_hash=get_password_hash(user_data.password),
        is_active=True
    )
    try:
        db.add(new_user)
        db.flush()
        get_or_create_profile(db, new_user.user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(new_user)

    logger.info(f"New user registered: {new_user.email}")
    return {
        "message": "User registered successfully",
        "access_token": create_user_token(new_user),
        "token_type": "bearer",
        "user": _user_payload(new_user)
    }

@router.post("/login")
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Authenticate user and return JWT token
    """
    user = db.query(User).filter(User.email == credentials.email).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Failed login attempt for {credentials.email}")
        raise AuthError("Incorrect email or password")

    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")

    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)

    return {
        "access_token": create_user_token(user),
        "token_type": "bearer",
        "user": _user_payload(user)
    }

@router.get("/me")
async def get_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get current user info with profile summary
    """
    profile = get_or_create_profile(db, current_user.user_id)
    db.commit()
    data = _user_payload(current_user)
    data["profile"] = {
        "total_swaps": profile.total_swaps,
        "total_amount_spent": float(profile.total_amount_spent or 0),
        "plastic_recycled_kg": float(profile.plastic_recycled_kg or 0),
        "co2_saved_kg": float(profile.co2_saved_kg or 0),
        "current_points": profile.current_points
    }
    return data

@router.post("/refresh", response_model=Token)
async def refresh_token(current_user: User = Depends(get_current_user)):
    """
    Issue a fresh token for a still-valid one
    """
    return Token(access_token=create_user_token(current_user))

@router.post("/change-password")
async def change_password(
    password_data: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not verify_password(password_data.current_password, current_user.password_hash):
        raise ValidationError("Current password is incorrect", field="current_password")

    current_user.password_hash = get_password_hash(password_data.new_password)
    db.commit()
    logger.info(f"Password changed for user {current_user.user_id}")
    return {"message": "Password changed successfully"}

"""
Authentication utilities

Bearer JWTs carry the user id in ``sub`` plus the email and role at issue
time. The role claim is informational; permissions are always checked
against the user row loaded for the request.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from exceptions import AuthError, PermissionDeniedError
from models import User
from schemas import TokenData

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Missing credentials are reported as 401 by get_current_user
security = HTTPBearer(auto_error=False)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a JWT with an ``exp`` claim (defaults to the configured lifetime)"""
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {**claims, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)

def create_user_token(user: User) -> str:
    return create_access_token({
        "sub": str(user.user_id),
        "email": user.email,
        "role": user.role
    })

def decode_token(token: str) -> Optional[TokenData]:
    """Return the token claims, or None for a bad signature, expiry or missing subject"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        subject = payload.get("sub")
        if subject is None:
            return None
        return TokenData(user_id=int(subject), email=payload.get("email"), role=payload.get("role"))
    except (JWTError, ValueError):
        return None

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get the current authenticated user"""
    if credentials is None:
        raise AuthError("Access token required")

    token_data = decode_token(credentials.credentials)
    if token_data is None:
        raise AuthError("Invalid or expired token")

    user = db.query(User).filter(User.user_id == token_data.user_id).first()
    if user is None:
        raise AuthError("User not found")

    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")

    return user

def require_roles(*roles: str):
    """Dependency factory to require specific roles"""
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise PermissionDeniedError(
                "Insufficient permissions",
                context={"required_roles": list(roles), "role": current_user.role}
            )
        return current_user
    return role_checker

def ensure_owner_or_staff(current_user: User, owner_id: int) -> None:
    """Customers may only touch their own records"""
    if current_user.role == "customer" and current_user.user_id != owner_id:
        raise PermissionDeniedError()

def ensure_owner_or_admin(current_user: User, owner_id: int) -> None:
    """Account records: only the account holder or an admin"""
    if current_user.role != "admin" and current_user.user_id != owner_id:
        raise PermissionDeniedError()

# Role-based dependencies
get_admin = require_roles("admin")
get_manager = require_roles("station_manager", "admin")

"""Reusable FastAPI dependencies for auth, database access and the engine."""
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .auth import decode_token, email_from_claims
from .config import get_settings
from .database import get_db
from .engine import BookingEngine
from .models import RoleEnum, User
from .store import BookingStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_engine(db: Session = Depends(get_db)) -> BookingEngine:
    settings = get_settings()
    return BookingEngine(BookingStore(db), monthly_capacity_hours=settings.monthly_capacity_hours)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    engine: BookingEngine = Depends(get_engine),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    email = email_from_claims(decode_token(credentials.credentials))
    if get_settings().auto_provision_users:
        return engine.get_or_create_user(email)
    user = engine.store.get_user_by_email(email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


def allow_roles(*roles: RoleEnum) -> Callable[[User], User]:
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return dependency


require_admin = allow_roles(RoleEnum.ADMIN)


def is_admin(user: User) -> bool:
    return user.role == RoleEnum.ADMIN


def ensure_owner_or_admin(user: User, owner_id: str) -> None:
    if not is_admin(user) and user.id != owner_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

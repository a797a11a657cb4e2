from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User, UserRole
from .logging_config import user_id_var
from .security import verify_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def _resolve_user(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session
) -> Optional[User]:
    if credentials is None:
        return None

    payload = verify_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        return None

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user or not user.is_active:
        return None

    user_id_var.set(user.id)
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Caller identity from the bearer token issued upstream"""
    user = _resolve_user(credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required"
        )
    return current_user


def require_provider_or_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role not in (UserRole.PROVIDER.value, UserRole.ADMIN.value):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Provider or administrator access required"
        )
    return current_user

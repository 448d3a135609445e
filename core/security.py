# core/security.py
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlmodel import Session, select

from core.database import get_session
from core.config import settings
from models.models import User


# ========================================
# 🔑 JWT CONFIG
# ========================================
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM or "HS256"

# Tokens are issued by the sign-in service; this API only reads them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def decode_token(token: str) -> dict:
    """Decode JWT and return payload."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ========================================
# 👤 Current user / current team hint
# ========================================
def get_current_user(token: str = Depends(oauth2_scheme), session: Session = Depends(get_session)) -> User:
    """Extract user from token and load the (non-deleted) record from DB."""
    payload = decode_token(token)
    user_id = payload.get("user_id")
    email = payload.get("sub")

    if not (user_id or email):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = None
    if user_id:
        user = session.exec(
            select(User).where(User.id == user_id, User.deleted_at.is_(None))
        ).first()
    if not user and email:
        user = session.exec(
            select(User).where(User.email == email, User.deleted_at.is_(None))
        ).first()

    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return user


def get_current_team_hint(x_current_team: Optional[int] = Header(default=None)) -> Optional[int]:
    """Team the client last selected in the team switcher, if any."""
    return x_current_team

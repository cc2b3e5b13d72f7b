"""
Receptor Engine - Authentication Utilities
JWT bearer tokens carrying the user id and the office (tenant) id.

Tokens are issued by the office's identity provider; this service only
decodes them. create_access_token exists for scripts and tests.
"""
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

# Configuration
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "receptor-engine-secret-key-change-in-production")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_HOURS = 24

# Bearer token security
security = HTTPBearer()


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller. Every query is scoped to office_id."""
    user_id: str
    office_id: str
    email: Optional[str] = None


def create_access_token(user_id: str, office_id: str, email: Optional[str] = None) -> str:
    """Create a JWT access token with the office claim."""
    expire = datetime.utcnow() + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode = {
        "sub": user_id,
        "office_id": office_id,
        "email": email,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token (signature and expiry)."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    Dependency to get the current authenticated user.
    Rejects tokens without a user id or an office id.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    office_id = payload.get("office_id")
    if not user_id:
        raise credentials_exception
    if not office_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not assigned to an office",
        )

    return CurrentUser(user_id=user_id, office_id=office_id, email=payload.get("email"))

"""
Bearer token authentication

Tokens are HS256 JWTs carrying the user id. Session handling lives
outside this service; routes only need to know who is calling.
"""

from datetime import datetime, timedelta
from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from pydantic import BaseModel
import structlog

from .config import get_settings


logger = structlog.get_logger(__name__)

# JWT Security
security = HTTPBearer(auto_error=False)


class User(BaseModel):
    user_id: str
    email: Optional[str] = None


class AuthenticationError(HTTPException):
    """Custom authentication error"""
    def __init__(self, detail: str = "Please sign in"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token for a user"""
    settings = get_settings()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "sub": user.user_id,
        "email": user.email,
        "iat": datetime.utcnow(),
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> User:
    """Verify and decode JWT token"""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning("JWT token verification failed", error=str(e))
        raise AuthenticationError("Invalid token")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Invalid token payload")
    return User(user_id=user_id, email=payload.get("email"))


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[User]:
    """Resolve the calling user, or None for anonymous requests"""
    if credentials is None:
        return None

    user = verify_token(credentials.credentials)
    request.state.current_user = user
    return user


async def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise AuthenticationError()
    return user

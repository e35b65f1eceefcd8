from datetime import datetime, timedelta, timezone
import logging
import secrets

from jose import JWTError, jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from app.core.config import settings
from app.db.mongo import get_db
from app.models.base import parse_object_id
from app.repositories.user_repo import UserRepository
from app.models.user import CurrentUser

logger = logging.getLogger(__name__)

security = HTTPBearer()

def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create JWT access token. Issuing tokens is the accounts service's job; this is for tooling and tests."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": user_id,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp())
    }

    return jwt.encode(
        payload,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM
    )

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db = Depends(get_db)
) -> CurrentUser:
    """Get current user from JWT token."""
    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
        user_id: str = payload.get("sub")
        if user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token"
            )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    user_oid = parse_object_id(user_id)
    user = None
    if user_oid is not None:
        user_repo = UserRepository(db)
        user = await user_repo.get_user_by_id(user_oid)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return CurrentUser(id=str(user.id), name=user.name)

async def require_operator(x_operator_token: str | None = Header(default=None)) -> None:
    """Guard for scheduler-only endpoints. An empty OPERATOR_TOKEN leaves them open."""
    if not settings.OPERATOR_TOKEN:
        logger.warning("OPERATOR_TOKEN is not set; operator endpoint is unauthenticated")
        return

    if x_operator_token is None or not secrets.compare_digest(x_operator_token, settings.OPERATOR_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid operator token"
        )

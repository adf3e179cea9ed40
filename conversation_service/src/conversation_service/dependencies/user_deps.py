from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..clients.user_directory import DatabaseUserDirectory, UserInfo
from ..db import get_db
from ..logging_config import logger
from ..security import AuthError, decode_user_token, user_id_from_claims

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserInfo:
    """
    Decode the bearer token locally and resolve the caller in the user directory.

    Suspended non-admin accounts are refused.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        raise credentials_exception

    try:
        claims = decode_user_token(credentials.credentials)
        user_id = user_id_from_claims(claims)
    except AuthError as e:
        logger.warning(f"JWT validation error: {e}")
        raise credentials_exception

    user = await DatabaseUserDirectory(db).get_user(user_id)
    if user is None:
        raise credentials_exception
    if user.is_suspended():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Account suspended until {user.suspended_until.isoformat()}",
        )
    return user

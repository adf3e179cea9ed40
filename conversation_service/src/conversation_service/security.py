"""
User token handling.

Tokens are issued by the auth service and verified locally with the shared
secret; the conversation service never calls out to validate them.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from jose import JWTError, jwt

from .config import settings
from .logging_config import logger

SUBJECT_CLAIMS = ("sub", "id", "user_id")


class AuthError(Exception):
    pass


@dataclass(frozen=True)
class TokenConfig:
    secret: str
    algorithm: str
    issuer: Optional[str] = None
    audience: Optional[str] = None

    @classmethod
    def for_users(cls) -> "TokenConfig":
        return cls(
            secret=settings.USER_JWT_SECRET_KEY,
            algorithm=settings.USER_JWT_ALGORITHM,
            issuer=settings.USER_JWT_ISSUER or None,
            audience=settings.USER_JWT_AUDIENCE or None,
        )


def parse_bearer(
    headers: Mapping[str, str], query_params: Optional[Mapping[str, Any]] = None
) -> Optional[str]:
    """Token from `Authorization: Bearer <token>`, else the `token` query parameter."""
    scheme, _, credentials = (headers.get("authorization") or "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    token = query_params.get("token") if query_params is not None else None
    return token if isinstance(token, str) and token else None


def decode_jwt(token: str, config: TokenConfig) -> dict:
    """Verify signature and expiry; issuer/audience only when configured."""
    try:
        return jwt.decode(
            token,
            config.secret,
            algorithms=[config.algorithm],
            issuer=config.issuer,
            audience=config.audience,
            options={
                "verify_iss": config.issuer is not None,
                "verify_aud": config.audience is not None,
            },
        )
    except JWTError as e:
        raise AuthError(str(e))


def decode_user_token(token: str) -> dict:
    try:
        return decode_jwt(token, TokenConfig.for_users())
    except AuthError as err:
        logger.debug("JWT validation failed: %s", err)
        raise


def user_id_from_claims(claims: Mapping[str, Any]) -> str:
    for claim in SUBJECT_CLAIMS:
        if claims.get(claim):
            return str(claims[claim])
    raise AuthError("Token has no subject")


def create_user_token(user_id: str, expires_in_seconds: int = 3600, **claims: Any) -> str:
    """Issue a user token signed with the configured secret.

    Token issuance belongs to the auth service; this exists for scripts and tests.
    """
    config = TokenConfig.for_users()
    payload: dict = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds),
        **claims,
    }
    if config.issuer:
        payload["iss"] = config.issuer
    if config.audience:
        payload["aud"] = config.audience
    return jwt.encode(payload, config.secret, algorithm=config.algorithm)

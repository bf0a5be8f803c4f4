import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET, SERVICE_NAME
from .errors import Unauthorized

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    sub: str,
    email: str,
    roles: list[str],
    expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
) -> str:
    """Staff token for the manager and vendor consoles, issued by this service."""
    now = datetime.now(timezone.utc)
    claims = {
        "iss": SERVICE_NAME,
        "sub": sub,
        "email": email,
        "roles": [str(r).upper() for r in roles],
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], issuer=SERVICE_NAME)
    except ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except JWTError:
        raise Unauthorized("Invalid token")

    if not claims.get("sub"):
        raise Unauthorized("Token subject missing")
    return claims


def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """
    Bearer claims of the calling manager or vendor. The subject and roles are
    kept on request.state for the access log.
    """
    if creds is None or creds.scheme.lower() != "bearer" or not creds.credentials:
        raise Unauthorized("Missing Bearer token")

    try:
        claims = decode_access_token(creds.credentials)
    except Unauthorized as e:
        logger.warning(f"Rejected token on {request.method} {request.url.path}: {e.message}")
        raise

    request.state.user_sub = claims["sub"]
    request.state.user_roles = claims.get("roles")
    return claims

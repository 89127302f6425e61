"""Authentication utilities.

Sessions are issued by the managed auth provider as HS256 JWTs. This
service only verifies them: the ``sub`` claim is the user id.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, HTTPException, Request, status
from jose import JWTError, jwt

from mindsy.config import get_settings

settings = get_settings()


@dataclass
class AuthenticatedUser:
    """The caller resolved from a session token."""

    id: str
    email: Optional[str] = None
    role: Optional[str] = None


def decode_session_token(token: str) -> Optional[AuthenticatedUser]:
    """Verify a session token. Returns None if it is invalid or expired."""
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None
    return AuthenticatedUser(id=user_id, email=payload.get("email"), role=payload.get("role"))


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    expires_in_minutes: int = 60,
) -> str:
    """
    Issue a token shaped like the auth provider's.
    Used by local tooling and tests.
    """
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "aud": settings.auth_jwt_audience,
        "role": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_in_minutes)).timestamp()),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


class SessionAuth:
    """Dependency resolving the current user from the ``Authorization`` header."""

    async def __call__(
        self,
        request: Request,
        authorization: Optional[str] = Header(None),
    ) -> AuthenticatedUser:
        if not authorization:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
            )
        if not authorization.startswith("Bearer "):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authorization scheme. Use 'Bearer <token>'",
            )

        user = decode_session_token(authorization[7:])
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired session",
            )

        # Store in request state for the rate limiter
        request.state.user = user
        return user


require_user = SessionAuth()

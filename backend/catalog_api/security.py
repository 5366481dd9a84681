"""Bearer token authentication for user and admin routes."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .dependencies import get_app_state
from .errors import AuthError, PermissionDeniedError
from .settings import CatalogSettings
from .state import AppState

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(slots=True, frozen=True)
class CurrentUser:
    """Identity carried by a verified bearer token."""

    id: str
    role: str = "user"
    username: str | None = None


def create_access_token(
    settings: CatalogSettings,
    *,
    user_id: str,
    role: str = "user",
    username: str | None = None,
    expires_in: timedelta = timedelta(hours=12),
) -> str:
    """Sign a token the API will accept; used by the CLI and tests."""

    if not settings.jwt_secret:
        raise AuthError("Authentication is not configured")
    now = datetime.now(timezone.utc)
    claims: dict[str, object] = {"sub": user_id, "role": role, "iat": now, "exp": now + expires_in}
    if username:
        claims["username"] = username
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: CatalogSettings, token: str) -> CurrentUser:
    """Verify ``token`` and return the identity it carries."""

    if not settings.jwt_secret:
        raise AuthError("Authentication is not configured")
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        raise AuthError("Invalid or expired token") from exc
    subject = claims.get("sub")
    if not subject:
        raise AuthError("Token has no subject")
    return CurrentUser(
        id=str(subject),
        role=str(claims.get("role") or "user"),
        username=claims.get("username"),
    )


def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    app_state: AppState = Depends(get_app_state),
) -> CurrentUser:
    """Resolve the calling user or answer 401."""

    if credentials is None or not credentials.credentials:
        raise AuthError("Authentication required")
    return decode_access_token(app_state.settings, credentials.credentials)


def require_admin(
    user: CurrentUser = Depends(require_user),
    app_state: AppState = Depends(get_app_state),
) -> CurrentUser:
    """Resolve the calling admin or answer 403 for other roles."""

    if user.role not in app_state.settings.admin_roles:
        raise PermissionDeniedError("Admin privileges required")
    return user

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from groupledger.core.errors import AuthenticationError, AuthorizationError
from groupledger.core.security import decode_access_token

security = HTTPBearer(auto_error=False)

ADMIN_ROLES = ("admin", "super_admin")


@dataclass(frozen=True)
class Principal:
    """Caller identity as asserted by the identity provider's token."""

    sub: str
    email: Optional[str] = None
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def _principal_from_token(token: str) -> Optional[Principal]:
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    sub = payload.get("sub")
    if not sub:
        return None
    return Principal(sub=str(sub), email=payload.get("email"), role=payload.get("role") or "user")


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal:
    if creds is None:
        raise AuthenticationError("Missing bearer token")

    principal = _principal_from_token(creds.credentials)
    if principal is None:
        raise AuthenticationError("Invalid or expired token")
    return principal


def require_admin(principal: Principal = Depends(get_current_user)) -> Principal:
    if not principal.is_admin:
        raise AuthorizationError("Admin role required")
    return principal

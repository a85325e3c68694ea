from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from stivans.config import Settings
from stivans.database import get_session
from stivans.dependencies.common import get_app_settings
from stivans.errors import AuthError, ForbiddenError
from stivans.models.profile import Profile
from stivans.utils.token import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"
CUSTOMER_ROLE = "customer"


@dataclass(frozen=True)
class CallerIdentity:
    """Verified caller. Built once per request by the auth guard."""

    user_id: str
    role: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> CallerIdentity:
    if credentials is None or not credentials.credentials:
        raise AuthError("Missing bearer token")

    payload = decode_access_token(credentials.credentials, settings)
    if payload is None:
        raise AuthError("Invalid or expired session")

    user_id = payload.get("sub") or payload.get("user_id")
    if user_id is None:
        raise AuthError("Invalid token payload")

    user_id = str(user_id)
    profile = session.get(Profile, user_id)

    # users without a profile row yet are plain customers
    role = profile.role if profile else CUSTOMER_ROLE
    email = (profile.email if profile else None) or payload.get("email")

    return CallerIdentity(user_id=user_id, role=role, email=email)


def require_admin(
    identity: CallerIdentity = Depends(get_current_identity),
) -> CallerIdentity:
    if not identity.is_admin:
        raise ForbiddenError()
    return identity


def ensure_admin(identity: CallerIdentity):
    if identity is None or not identity.is_admin:
        raise ForbiddenError()

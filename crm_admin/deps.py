# crm_admin/deps.py
from __future__ import annotations

import logging
from typing import Callable, Iterable

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from crm_admin.core.database import get_db
from crm_admin.core.errors import AuthenticationError, PermissionDenied
from crm_admin.integrations.identity_provider import IdentityProviderClient
from crm_admin.integrations.omnistack import OmniStackGateway
from crm_admin.models.client import Client
from crm_admin.models.user import User
from crm_admin.services.auth import decode_access_token
from crm_admin.services.staff_provisioning import GatewayFactory

# Swagger "Authorize" (OAuth2 password flow) calls this endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

logger = logging.getLogger(__name__)


def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Reads the bearer JWT and returns the matching local user."""
    if not token:
        raise AuthenticationError()
    try:
        payload = decode_access_token(token)
    except ValueError:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")

    user = db.query(User).filter(User.id == str(user_id)).first()
    if not user:
        raise AuthenticationError("User not found")

    request.state.user = user
    return user


def get_current_client(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Client:
    client = db.query(Client).filter(Client.id == user.client_id).first() if user.client_id else None
    if not client:
        raise PermissionDenied("User is not linked to a client")
    return client


def require_role(roles: Iterable[str]):
    allowed = {role.strip().upper() for role in roles}

    def _dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        if (user.role or "").upper() not in allowed:
            logger.warning(
                "Access denied (role_denied): user_id=%s user_role=%s endpoint=%s %s",
                user.id,
                user.role,
                request.method,
                request.url.path,
            )
            raise PermissionDenied("Insufficient permissions")
        return user

    return _dependency


def get_gateway_factory() -> GatewayFactory:
    return OmniStackGateway


def get_identity_provider_factory() -> Callable[[], IdentityProviderClient]:
    return IdentityProviderClient

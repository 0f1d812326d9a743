from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from crm_admin.core.database import get_db
from crm_admin.core.errors import NotFound, PermissionDenied, ValidationError
from crm_admin.deps import get_current_user
from crm_admin.models.client import Client
from crm_admin.models.user import User

router = APIRouter(prefix="/api/client", tags=["clients"])

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.get("/gateway-api-key")
def get_gateway_api_key(
    response: Response,
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not client_id:
        raise ValidationError("Client ID required")
    if user.client_id != client_id and (user.role or "").upper() != "ADMIN":
        logger.warning("gateway key access denied user_id=%s client_id=%s", user.id, client_id)
        raise PermissionDenied()

    client = db.query(Client).filter(Client.id == client_id).first()
    if not client or not client.omni_gateway_api_key:
        raise NotFound("API key not found")

    response.headers.update(NO_CACHE_HEADERS)
    return {"apiKey": client.omni_gateway_api_key}

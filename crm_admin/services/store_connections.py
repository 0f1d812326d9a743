from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from crm_admin.core.errors import NotFound, ValidationError
from crm_admin.models.client import Client
from crm_admin.services.staff_provisioning import GatewayFactory, get_staff_or_404

logger = logging.getLogger(__name__)

STORE_ACTIONS = {"connect", "disconnect"}


def update_store_connection(db: Session, *, staff_id: str, store_id: str, action: str) -> list[dict[str, Any]]:
    if action not in STORE_ACTIONS:
        raise ValidationError("Action must be 'connect' or 'disconnect'")

    staff = get_staff_or_404(db, staff_id)
    documents = dict(staff.documents or {})
    connections = list(documents.get("storeConnections") or [])

    if action == "connect":
        connections.append({"storeId": store_id, "connectedAt": datetime.now(timezone.utc).isoformat()})
    else:
        for index, connection in enumerate(connections):
            if connection.get("storeId") == store_id:
                del connections[index]
                break

    documents["storeConnections"] = connections
    staff.documents = documents
    db.commit()
    logger.info("store connection updated staff_id=%s store_id=%s action=%s", staff_id, store_id, action)
    return connections


def connect_store_upstream(
    db: Session,
    *,
    staff_id: str,
    store_id: str,
    gateway_factory: GatewayFactory,
) -> None:
    staff = get_staff_or_404(db, staff_id)
    client = db.query(Client).filter(Client.id == staff.client_id).first()
    if not client or not client.omni_gateway_api_key:
        raise NotFound("Client API key not found")

    gateway_factory(client.omni_gateway_api_key).connect_store(staff.id, store_id)
    logger.info("staff connected to store upstream staff_id=%s store_id=%s", staff_id, store_id)

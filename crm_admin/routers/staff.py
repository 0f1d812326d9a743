from __future__ import annotations

import math
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from crm_admin.core.database import get_db
from crm_admin.core.errors import ValidationError
from crm_admin.deps import get_current_client, get_gateway_factory, get_identity_provider_factory
from crm_admin.integrations.identity_provider import IdentityProviderClient
from crm_admin.models.client import Client
from crm_admin.models.staff import Staff
from crm_admin.schemas.staff import (
    CommunicationCreate,
    ConnectStoreRequest,
    StaffCreate,
    StaffUpdate,
    StoreConnectionRequest,
    serialize_communication,
    serialize_staff,
)
from crm_admin.services import staff_communications, staff_provisioning, store_connections
from crm_admin.services.staff_provisioning import GatewayFactory, StaffCreateCommand

router = APIRouter(prefix="/api/staff", tags=["staff"])


@router.get("")
def list_staff(
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None),
    department_id: Optional[str] = Query(default=None, alias="departmentId"),
    role: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    if not client_id:
        raise ValidationError("Client ID required")

    filters = [Staff.client_id == client_id]
    clean_search = (search or "").strip()
    if clean_search:
        pattern = f"%{clean_search.lower()}%"
        filters.append(
            or_(
                func.lower(Staff.first_name).like(pattern),
                func.lower(Staff.last_name).like(pattern),
                func.lower(Staff.email).like(pattern),
                func.lower(Staff.employee_id).like(pattern),
            )
        )
    if department_id:
        filters.append(Staff.department_id == department_id)
    if role:
        filters.append(Staff.role == role)
    if status:
        filters.append(Staff.status == status)

    total = db.query(func.count(Staff.id)).filter(*filters).scalar() or 0
    items = (
        db.query(Staff)
        .options(selectinload(Staff.department), selectinload(Staff.client))
        .filter(*filters)
        .order_by(Staff.created_at.desc(), Staff.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "items": [serialize_staff(entry) for entry in items],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit),
    }


@router.post("")
def create_staff(
    payload: StaffCreate,
    db: Session = Depends(get_db),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
    identity_provider_factory: Callable[[], IdentityProviderClient] = Depends(get_identity_provider_factory),
):
    command = StaffCreateCommand(
        client_id=payload.client_id,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        date_of_join=payload.date_of_join,
        email=payload.email.strip().lower() if payload.email else None,
        phone=payload.phone,
        password=payload.password,
        communication_preferences=(
            payload.communication_preferences.model_dump() if payload.communication_preferences else None
        ),
        can_access_app=payload.can_access_app,
        department_id=payload.department_id,
        role=payload.role.value,
        sub_role=payload.sub_role,
        status=payload.status.value,
        notes=payload.notes,
        address=payload.address,
        emergency_contact=payload.emergency_contact,
        avatar=payload.avatar,
        performance_score=payload.performance_score,
    )
    staff = staff_provisioning.create_staff(
        db,
        command,
        gateway_factory=gateway_factory,
        identity_provider_factory=identity_provider_factory,
    )
    return serialize_staff(staff)


@router.post("/store-connection")
def update_store_connection(payload: StoreConnectionRequest, db: Session = Depends(get_db)):
    store_connections.update_store_connection(
        db,
        staff_id=payload.staff_id,
        store_id=payload.store_id,
        action=payload.action,
    )
    return {"success": True}


@router.post("/connect-store")
def connect_store(
    payload: ConnectStoreRequest,
    db: Session = Depends(get_db),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
):
    store_connections.connect_store_upstream(
        db,
        staff_id=payload.staff_id,
        store_id=payload.store_id,
        gateway_factory=gateway_factory,
    )
    return {"success": True}


@router.get("/{staff_id}")
def get_staff(staff_id: str, db: Session = Depends(get_db)):
    return serialize_staff(staff_provisioning.get_staff_or_404(db, staff_id))


@router.put("/{staff_id}")
def update_staff(staff_id: str, payload: StaffUpdate, db: Session = Depends(get_db)):
    staff = staff_provisioning.update_staff(db, staff_id, payload.changes())
    return serialize_staff(staff)


@router.delete("/{staff_id}")
def delete_staff(
    staff_id: str,
    db: Session = Depends(get_db),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
):
    staff_provisioning.delete_staff(db, staff_id, gateway_factory=gateway_factory)
    return {"message": "Staff member deleted successfully"}


@router.get("/{staff_id}/communications")
def list_staff_communications(
    staff_id: str,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    communications = staff_communications.list_communications(
        db,
        staff_id,
        client_id=client.id,
        client_type=client.client_type,
    )
    return [serialize_communication(entry) for entry in communications]


@router.post("/{staff_id}/communications")
def send_staff_communication(
    staff_id: str,
    payload: CommunicationCreate,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    communication = staff_communications.send_communication(
        db,
        staff_id,
        client_id=client.id,
        client_type=client.client_type,
        communication_type=payload.type,
        subject=payload.subject,
        message=payload.message,
    )
    return serialize_communication(communication)

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from crm_admin.core.database import get_db
from crm_admin.core.errors import NotFound, ValidationError
from crm_admin.models.client import Client
from crm_admin.models.department import Department
from crm_admin.models.staff import Staff
from crm_admin.schemas.department import DepartmentCreate
from crm_admin.schemas.staff import serialize_department

router = APIRouter(prefix="/api/departments", tags=["departments"])

logger = logging.getLogger(__name__)


@router.get("")
def list_departments(
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    db: Session = Depends(get_db),
):
    if not client_id:
        raise ValidationError("Client ID required")

    staff_counts = dict(
        db.query(Staff.department_id, func.count(Staff.id))
        .filter(Staff.client_id == client_id, Staff.department_id.isnot(None))
        .group_by(Staff.department_id)
        .all()
    )
    departments = (
        db.query(Department)
        .filter(Department.client_id == client_id, Department.is_active.is_(True))
        .order_by(Department.name.asc())
        .all()
    )
    return [
        {**serialize_department(department), "staffCount": staff_counts.get(department.id, 0)}
        for department in departments
    ]


@router.post("")
def create_department(payload: DepartmentCreate, db: Session = Depends(get_db)):
    client = db.query(Client).filter(Client.id == payload.client_id).first()
    if not client:
        raise NotFound("Client not found")

    department = Department(
        client_id=client.id,
        name=payload.name.strip(),
        code=payload.code.strip().upper(),
        description=payload.description,
        is_active=True,
    )
    db.add(department)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("department create failed client_id=%s", client.id)
        raise
    db.refresh(department)
    return serialize_department(department)

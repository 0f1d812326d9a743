"""Staff communications for booking clients.

EMAIL and SMS entries are stored with status SENT as a record of outreach;
nothing is handed to a mail or SMS provider.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from crm_admin.core.errors import PermissionDenied, ValidationError
from crm_admin.models.client import ClientType
from crm_admin.models.staff import Staff
from crm_admin.models.staff_communication import StaffCommunication
from crm_admin.services.staff_provisioning import get_staff_or_404

logger = logging.getLogger(__name__)

COMMUNICATION_TYPES = {"EMAIL", "SMS", "NOTE"}
DEFAULT_NOTE_SUBJECT = "Staff Note"
DEFAULT_SUBJECT = "No Subject"


def _authorized_staff(db: Session, staff_id: str, *, client_id: str, client_type: Optional[ClientType]) -> Staff:
    if client_type != ClientType.BOOKING:
        raise PermissionDenied()
    staff = get_staff_or_404(db, staff_id)
    if staff.client_id != client_id:
        raise PermissionDenied()
    return staff


def list_communications(
    db: Session,
    staff_id: str,
    *,
    client_id: str,
    client_type: Optional[ClientType],
) -> list[StaffCommunication]:
    staff = _authorized_staff(db, staff_id, client_id=client_id, client_type=client_type)
    return list(staff.communications)


def send_communication(
    db: Session,
    staff_id: str,
    *,
    client_id: str,
    client_type: Optional[ClientType],
    communication_type: Optional[str],
    message: Optional[str],
    subject: Optional[str] = None,
) -> StaffCommunication:
    staff = _authorized_staff(db, staff_id, client_id=client_id, client_type=client_type)

    if not communication_type or not message:
        raise ValidationError("Type and message are required")
    if communication_type not in COMMUNICATION_TYPES:
        raise ValidationError(f"Unsupported communication type: {communication_type}")
    if communication_type in {"EMAIL", "SMS"} and not subject:
        raise ValidationError("Subject is required for communications")

    if communication_type != "NOTE":
        preferences = staff.communication_preferences
        if not preferences:
            raise ValidationError("Staff member has no communication preferences set")
        if communication_type == "EMAIL" and not preferences.get("email"):
            raise ValidationError("Staff member has not opted in for email communications")
        if communication_type == "SMS" and not preferences.get("sms"):
            raise ValidationError("Staff member has not opted in for SMS communications")

    communication = StaffCommunication(
        staff_id=staff.id,
        type=communication_type,
        subject=subject or (DEFAULT_NOTE_SUBJECT if communication_type == "NOTE" else DEFAULT_SUBJECT),
        message=message,
        status="SENT",
        sent_at=datetime.now(timezone.utc),
    )
    db.add(communication)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(communication)

    logger.info("staff communication recorded staff_id=%s type=%s id=%s", staff.id, communication_type, communication.id)
    return communication

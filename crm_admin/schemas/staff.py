from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from crm_admin.models.staff import Staff, StaffRole, StaffStatus
from crm_admin.models.staff_communication import StaffCommunication


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommunicationPreferences(CamelModel):
    email: bool = False
    sms: bool = False


def _parse_datetime(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


class StaffCreate(CamelModel):
    client_id: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=40)
    password: Optional[str] = Field(default=None, max_length=200)
    communication_preferences: Optional[CommunicationPreferences] = None
    can_access_app: bool = False
    date_of_join: datetime
    department_id: Optional[str] = None
    role: StaffRole = StaffRole.STAFF
    sub_role: Optional[str] = None
    status: StaffStatus = StaffStatus.ACTIVE
    notes: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    avatar: Optional[str] = None
    performance_score: Optional[float] = None

    @field_validator("date_of_join", mode="before")
    @classmethod
    def parse_date_of_join(cls, value: Any) -> Any:
        return _parse_datetime(value)

    @field_validator("email", "phone", "password", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class StaffUpdate(CamelModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=40)
    communication_preferences: Optional[CommunicationPreferences] = None
    can_access_app: Optional[bool] = None
    date_of_join: Optional[datetime] = None
    department_id: Optional[str] = None
    role: Optional[StaffRole] = None
    sub_role: Optional[str] = None
    status: Optional[StaffStatus] = None
    notes: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    avatar: Optional[str] = None
    performance_score: Optional[float] = None

    @field_validator("date_of_join", mode="before")
    @classmethod
    def parse_date_of_join(cls, value: Any) -> Any:
        return _parse_datetime(value)

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True, mode="python")
        for key in ("first_name", "last_name", "date_of_join", "role", "status", "can_access_app"):
            if key in data and data[key] is None:
                del data[key]
        for key in ("role", "status"):
            if key in data:
                data[key] = getattr(self, key).value
        return data


class StoreConnectionRequest(CamelModel):
    staff_id: str = Field(..., min_length=1)
    store_id: str = Field(..., min_length=1)
    action: str = Field(..., pattern="^(connect|disconnect)$")


class ConnectStoreRequest(CamelModel):
    staff_id: str = Field(..., min_length=1)
    store_id: str = Field(..., min_length=1)


class CommunicationCreate(CamelModel):
    type: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


def serialize_department(department) -> Optional[dict[str, Any]]:
    if department is None:
        return None
    return {
        "id": department.id,
        "name": department.name,
        "code": department.code,
        "description": department.description,
        "isActive": department.is_active,
    }


def serialize_staff(staff: Staff) -> dict[str, Any]:
    client = staff.client
    return {
        "id": staff.id,
        "clientId": staff.client_id,
        "departmentId": staff.department_id,
        "employeeId": staff.employee_id,
        "firstName": staff.first_name,
        "lastName": staff.last_name,
        "email": staff.email,
        "phone": staff.phone,
        "role": staff.role,
        "subRole": staff.sub_role,
        "status": staff.status,
        "dateOfJoin": staff.date_of_join,
        "canAccessApp": staff.can_access_app,
        "performanceScore": staff.performance_score,
        "communicationPreferences": staff.communication_preferences,
        "documents": staff.documents or {},
        "notes": staff.notes,
        "address": staff.address,
        "emergencyContact": staff.emergency_contact,
        "avatar": staff.avatar,
        "createdAt": staff.created_at,
        "updatedAt": staff.updated_at,
        "department": serialize_department(staff.department),
        "client": {"id": client.id, "name": client.name, "type": client.type} if client else None,
    }


def serialize_communication(communication: StaffCommunication) -> dict[str, Any]:
    return {
        "id": communication.id,
        "staffId": communication.staff_id,
        "type": communication.type,
        "subject": communication.subject,
        "message": communication.message,
        "status": communication.status,
        "sentAt": communication.sent_at,
    }

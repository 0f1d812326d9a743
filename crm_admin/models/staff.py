import enum
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from crm_admin.core.database import Base


class StaffRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SUPERVISOR = "SUPERVISOR"
    CONTRACTOR = "CONTRACTOR"
    SALES = "SALES"
    STAFF = "STAFF"
    SUPPORT = "SUPPORT"
    # booking (MetroSuites)
    CLEANER = "CLEANER"
    MAINTENANCE = "MAINTENANCE"
    RECEPTIONIST = "RECEPTIONIST"
    PROPERTY_MANAGER = "PROPERTY_MANAGER"


class StaffStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    ON_LEAVE = "ON_LEAVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String, primary_key=True, default=lambda: uuid4().hex)
    client_id = Column(String, ForeignKey("clients.id"), nullable=False, index=True)
    department_id = Column(String, ForeignKey("departments.id"), nullable=True, index=True)

    employee_id = Column(String(20), unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    phone = Column(String(40), nullable=True)

    role = Column(String(30), nullable=False, default=StaffRole.STAFF.value)
    sub_role = Column(String, nullable=True)
    status = Column(String(20), nullable=False, default=StaffStatus.ACTIVE.value)
    date_of_join = Column(DateTime(timezone=True), nullable=False)
    can_access_app = Column(Boolean, nullable=False, default=False)
    performance_score = Column(Float, nullable=True)

    # {"email": bool, "sms": bool}
    communication_preferences = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    # {"externalIds": {"omnistack": ..., "supabase": ...}, "storeConnections": [...]}
    documents = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)

    notes = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    emergency_contact = Column(String, nullable=True)
    avatar = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="staff")
    department = relationship("Department", back_populates="staff")
    communications = relationship(
        "StaffCommunication",
        back_populates="staff",
        cascade="all, delete-orphan",
        order_by="StaffCommunication.sent_at.desc()",
    )

    @property
    def external_ids(self) -> dict:
        return dict((self.documents or {}).get("externalIds") or {})

from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from crm_admin.core.database import Base


class StaffCommunication(Base):
    __tablename__ = "staff_communications"

    id = Column(String, primary_key=True, default=lambda: uuid4().hex)
    staff_id = Column(String, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(10), nullable=False)  # EMAIL | SMS | NOTE
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="SENT")
    meta = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    staff = relationship("Staff", back_populates="communications")

import enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import relationship

from crm_admin.core.database import Base


class ClientType(str, enum.Enum):
    BOOKING = "BOOKING"
    SAAS = "SAAS"
    VENUEBOOST = "VENUEBOOST"
    PIXELBREEZE = "PIXELBREEZE"
    QYTETARET = "QYTETARET"
    STUDIO = "STUDIO"


class Client(Base):
    __tablename__ = "clients"

    id = Column(String, primary_key=True, default=lambda: uuid4().hex)
    name = Column(String, nullable=False, default="")
    # ClientType value; BOOKING is the MetroSuites-style tenant
    type = Column(String(30), nullable=False, default=ClientType.SAAS.value)
    omni_gateway_api_key = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    staff = relationship("Staff", back_populates="client")
    departments = relationship("Department", back_populates="client")

    @property
    def client_type(self) -> ClientType | None:
        try:
            return ClientType(self.type)
        except ValueError:
            return None

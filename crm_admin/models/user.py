from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import JSONB

from crm_admin.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: uuid4().hex)
    client_id = Column(String, ForeignKey("clients.id"), nullable=True, index=True)

    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=True)
    supabase_id = Column(String, nullable=True, index=True)

    role = Column(String(20), nullable=False, default="STAFF")  # ADMIN | SALES | STAFF
    # {"supabase": ..., "omnistack": ...}
    external_ids = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    communication_preferences = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

from __future__ import annotations

from typing import Optional

from pydantic import Field

from crm_admin.schemas.staff import CamelModel


class DepartmentCreate(CamelModel):
    client_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    code: str = Field(..., min_length=1, max_length=40)
    description: Optional[str] = None

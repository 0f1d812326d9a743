from __future__ import annotations

from fastapi import APIRouter, Depends

from crm_admin.core.metrics import request_metrics
from crm_admin.deps import require_role
from crm_admin.models.user import User

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def endpoint_metrics(_user: User = Depends(require_role(["ADMIN"]))):
    return {"endpoints": request_metrics.snapshot()}


@router.get("/clients")
def client_metrics(_user: User = Depends(require_role(["ADMIN"]))):
    return {"clients": request_metrics.snapshot_per_client()}

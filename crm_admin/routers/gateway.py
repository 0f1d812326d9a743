from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from crm_admin.core.errors import NotFound
from crm_admin.deps import get_current_client, get_gateway_factory
from crm_admin.integrations.omnistack import LIST_ENDPOINTS, OmniStackGateway
from crm_admin.models.client import Client
from crm_admin.services.staff_provisioning import GatewayFactory

router = APIRouter(prefix="/api/gateway", tags=["gateway"])


def get_client_gateway(
    client: Client = Depends(get_current_client),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
) -> OmniStackGateway:
    if not client.omni_gateway_api_key:
        raise NotFound("Client API key not found")
    return gateway_factory(client.omni_gateway_api_key)


def _list_params(
    page: Optional[int] = Query(default=None, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    search: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    from_date: Optional[str] = Query(default=None, alias="fromDate"),
    to_date: Optional[str] = Query(default=None, alias="toDate"),
) -> dict:
    return {
        "page": page,
        "limit": limit,
        "search": search,
        "status": status,
        "fromDate": from_date,
        "toDate": to_date,
    }


@router.get("/dashboard")
def dashboard_summary(
    params: dict = Depends(_list_params),
    gateway: OmniStackGateway = Depends(get_client_gateway),
):
    return gateway.get_dashboard_summary(params)


@router.get("/businesses/{business_id}")
def get_business(business_id: str, gateway: OmniStackGateway = Depends(get_client_gateway)):
    return gateway.get_business(business_id)


@router.get("/tickets/{ticket_id}")
def get_ticket(ticket_id: str, gateway: OmniStackGateway = Depends(get_client_gateway)):
    return gateway.get_ticket(ticket_id)


@router.get("/reports/{report_id}")
def get_report(report_id: str, gateway: OmniStackGateway = Depends(get_client_gateway)):
    return gateway.get_report(report_id)


@router.get("/{resource}")
def list_resource(
    resource: str,
    params: dict = Depends(_list_params),
    gateway: OmniStackGateway = Depends(get_client_gateway),
):
    if resource not in LIST_ENDPOINTS:
        raise NotFound(f"Unknown gateway resource: {resource}")
    return gateway.list_resource(resource, params)

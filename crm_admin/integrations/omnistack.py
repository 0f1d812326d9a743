from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from crm_admin.core.config import EXTERNAL_HTTP_TIMEOUT_SECONDS, OMNISTACK_GATEWAY_URL
from crm_admin.core.errors import ConfigurationError, ExternalServiceError
from crm_admin.integrations.http import build_query, response_json

logger = logging.getLogger(__name__)

REGISTRATION_SOURCE_MANUAL = "manual"

# resource name -> gateway path for the read-only list endpoints
LIST_ENDPOINTS = {
    "businesses": "/businesses",
    "clients": "/clients",
    "client-apps": "/client-apps",
    "subscriptions": "/subscriptions",
    "products": "/subscriptions/products",
    "promotions": "/promotions",
    "discounts": "/discounts",
    "tickets": "/tickets/support/all",
    "reports": "/reports",
}


class OmniStackGateway:
    """Client for the OmniStack gateway, scoped to one client's API key."""

    INTEGRATION_NAME = "omnistack"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout: float = EXTERNAL_HTTP_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Missing gateway API key")
        self.api_key = api_key
        self.base_url = (base_url if base_url is not None else OMNISTACK_GATEWAY_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key, "Content-Type": "application/json"}

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        if not self.base_url:
            raise ConfigurationError("Missing OMNISTACK_GATEWAY_URL")

        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                return client.request(method, url, headers=self._headers(), params=build_query(params), json=json)
        except httpx.HTTPError as exc:
            logger.warning("gateway request failed method=%s path=%s error=%s", method, path, exc)
            raise ExternalServiceError(
                f"Gateway request failed: {exc}",
                service=self.INTEGRATION_NAME,
            ) from exc

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        response = self._send(method, path, params=params, json=json)
        if not response.is_success:
            raise _gateway_error(method, path, response)
        return response_json(response)

    # users

    def create_user(
        self,
        *,
        name: str,
        surname: str,
        email: str,
        password: str,
        external_ids: Mapping[str, Any],
        registration_source: str = REGISTRATION_SOURCE_MANUAL,
    ) -> dict[str, Any]:
        payload = {
            "name": name,
            "surname": surname,
            "email": email,
            "password": password,
            "registrationSource": registration_source,
            "external_ids": dict(external_ids),
        }
        data = self._request("POST", "/users", json=payload) or {}
        user_id = data.get("_id") or data.get("id")
        if not user_id:
            raise ExternalServiceError("Gateway returned no user id", service=self.INTEGRATION_NAME)
        logger.info("gateway user created email=%s external_id=%s", email, user_id)
        return {**data, "_id": str(user_id)}

    def delete_user(self, external_id: str) -> None:
        response = self._send("DELETE", f"/users/{external_id}")
        if response.status_code == 404:
            # already gone upstream
            logger.info("gateway user already deleted external_id=%s", external_id)
            return
        if not response.is_success:
            raise _gateway_error("DELETE", f"/users/{external_id}", response)
        logger.info("gateway user deleted external_id=%s", external_id)

    def connect_store(self, user_id: str, store_id: str) -> Any:
        return self._request("POST", "/users/connect-store", json={"userId": user_id, "storeId": store_id})

    # read-only pass-through

    def list_resource(self, resource: str, params: Mapping[str, Any] | None = None) -> Any:
        path = LIST_ENDPOINTS.get(resource)
        if path is None:
            raise ValueError(f"Unknown gateway resource: {resource}")
        return self._request("GET", path, params=params)

    def get_business(self, business_id: str) -> Any:
        return self._request("GET", f"/businesses/{business_id}")

    def get_ticket(self, ticket_id: str) -> Any:
        return self._request("GET", f"/tickets/support/{ticket_id}")

    def get_report(self, report_id: str) -> Any:
        return self._request("GET", f"/reports/{report_id}")

    def get_dashboard_summary(self, params: Mapping[str, Any] | None = None) -> Any:
        return self._request("GET", "/staffluent-dashboard/summary", params=params)


def _gateway_error(method: str, path: str, response: httpx.Response) -> ExternalServiceError:
    data = response_json(response)
    message = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("error")
    return ExternalServiceError(
        f"Gateway {method} {path} failed ({response.status_code}): {message or response.text}",
        service=OmniStackGateway.INTEGRATION_NAME,
        upstream_status=response.status_code,
        body_text=response.text,
    )

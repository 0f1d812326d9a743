from __future__ import annotations

import logging
from typing import Any

import httpx

from crm_admin.core.config import EXTERNAL_HTTP_TIMEOUT_SECONDS, SUPABASE_SERVICE_KEY, SUPABASE_URL
from crm_admin.core.errors import ConfigurationError, ExternalServiceError
from crm_admin.integrations.http import response_json

logger = logging.getLogger(__name__)


class IdentityProviderClient:
    """Supabase admin API; only user creation is consumed."""

    INTEGRATION_NAME = "supabase"

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        *,
        timeout: float = EXTERNAL_HTTP_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url if base_url is not None else SUPABASE_URL).rstrip("/")
        self.service_key = service_key if service_key is not None else SUPABASE_SERVICE_KEY
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }

    def create_user(self, email: str, password: str) -> dict[str, Any]:
        if not self.base_url or not self.service_key:
            raise ConfigurationError("Missing identity provider configuration (SUPABASE_URL / SUPABASE_SERVICE_KEY)")

        url = f"{self.base_url}/auth/v1/admin/users"
        payload = {"email": email, "password": password, "email_confirm": True}

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, headers=self._headers(), json=payload)
        except httpx.HTTPError as exc:
            logger.warning("identity provider request failed email=%s error=%s", email, exc)
            raise ExternalServiceError(
                f"Failed to create identity provider user: {exc}",
                service=self.INTEGRATION_NAME,
            ) from exc

        data = response_json(response) or {}
        if not response.is_success:
            message = data.get("msg") or data.get("message") or data.get("error_description") or response.text
            raise ExternalServiceError(
                f"Failed to create identity provider user: {message}",
                service=self.INTEGRATION_NAME,
                upstream_status=response.status_code,
                body_text=response.text,
            )

        user = data.get("user") if isinstance(data.get("user"), dict) else data
        if not user.get("id"):
            raise ExternalServiceError(
                "Identity provider returned no user id",
                service=self.INTEGRATION_NAME,
                upstream_status=response.status_code,
                body_text=response.text,
            )

        logger.info("identity provider user created email=%s", email)
        return {"id": str(user["id"]), "email": user.get("email", email)}

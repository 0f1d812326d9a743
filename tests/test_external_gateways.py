import json

import httpx
import pytest

from crm_admin.core.errors import ConfigurationError, ExternalServiceError
from crm_admin.integrations.identity_provider import IdentityProviderClient
from crm_admin.integrations.omnistack import OmniStackGateway


def _gateway(handler) -> OmniStackGateway:
    return OmniStackGateway(
        "sk_test",
        base_url="https://gateway.test/api",
        transport=httpx.MockTransport(handler),
    )


def test_create_user_posts_payload_with_api_key_header():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("x-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"_id": "6650f0", "email": "jane@x.com"})

    result = _gateway(handler).create_user(
        name="Jane",
        surname="Doe",
        email="jane@x.com",
        password="p@ss",
        external_ids={"staffId": "staff-1"},
    )

    assert result["_id"] == "6650f0"
    assert seen["url"] == "https://gateway.test/api/users"
    assert seen["api_key"] == "sk_test"
    assert seen["body"] == {
        "name": "Jane",
        "surname": "Doe",
        "email": "jane@x.com",
        "password": "p@ss",
        "registrationSource": "manual",
        "external_ids": {"staffId": "staff-1"},
    }


def test_create_user_error_keeps_upstream_status_and_body():
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "Email already registered"})

    with pytest.raises(ExternalServiceError) as exc:
        _gateway(handler).create_user(
            name="Jane",
            surname="Doe",
            email="jane@x.com",
            password="p@ss",
            external_ids={"staffId": "staff-1"},
        )

    assert exc.value.upstream_status == 409
    assert "Email already registered" in exc.value.message
    assert "Email already registered" in exc.value.body_text


def test_delete_user_treats_404_as_already_deleted():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        return httpx.Response(404, json={"message": "User not found"})

    _gateway(handler).delete_user("6650f0")

    assert calls == [("DELETE", "/api/users/6650f0")]


def test_delete_user_raises_on_server_error():
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(ExternalServiceError):
        _gateway(handler).delete_user("6650f0")


def test_transport_failure_becomes_external_service_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExternalServiceError):
        _gateway(handler).list_resource("businesses")


def test_list_resource_drops_empty_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"data": [], "total": 0})

    _gateway(handler).list_resource("products", {"page": 1, "search": "", "status": None, "active": True})

    assert seen["path"] == "/api/subscriptions/products"
    assert seen["params"] == {"page": "1", "active": "true"}


def test_gateway_requires_api_key():
    with pytest.raises(ConfigurationError):
        OmniStackGateway("", base_url="https://gateway.test/api")


def test_gateway_requires_base_url():
    gateway = OmniStackGateway("sk_test", base_url="")

    with pytest.raises(ConfigurationError):
        gateway.get_business("b-1")


def test_identity_provider_create_user_uses_service_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["apikey"] = request.headers.get("apikey")
        seen["authorization"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"user": {"id": "supa-123", "email": "jane@x.com"}})

    client = IdentityProviderClient(
        "https://project.supabase.co",
        "service-key",
        transport=httpx.MockTransport(handler),
    )

    assert client.create_user("jane@x.com", "p@ss") == {"id": "supa-123", "email": "jane@x.com"}
    assert seen["url"] == "https://project.supabase.co/auth/v1/admin/users"
    assert seen["apikey"] == "service-key"
    assert seen["authorization"] == "Bearer service-key"
    assert seen["body"] == {"email": "jane@x.com", "password": "p@ss", "email_confirm": True}


def test_identity_provider_error_is_external_service_error():
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"msg": "A user with this email address has already been registered"})

    client = IdentityProviderClient(
        "https://project.supabase.co",
        "service-key",
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(ExternalServiceError) as exc:
        client.create_user("jane@x.com", "p@ss")

    assert exc.value.upstream_status == 422
    assert "already been registered" in exc.value.message


def test_identity_provider_without_configuration_raises():
    client = IdentityProviderClient("", "")

    with pytest.raises(ConfigurationError):
        client.create_user("jane@x.com", "p@ss")

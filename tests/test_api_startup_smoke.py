from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/staff",
    "/api/staff/{staff_id}",
    "/api/staff/{staff_id}/communications",
    "/api/staff/store-connection",
    "/api/staff/connect-store",
    "/api/departments",
    "/api/client/gateway-api-key",
    "/api/gateway/{resource}",
    "/api/gateway/dashboard",
    "/api/subscription-plans",
    "/api/auth/login",
    "/api/auth/token",
    "/internal/metrics",
}


def test_api_startup_and_router_registration(monkeypatch):
    from crm_admin import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health_response = client.get("/health")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health_response.json() == {"status": "healthy"}
    assert openapi_response.status_code == 200

    paths = set(main.app.openapi()["paths"])
    assert REQUIRED_ROUTES.issubset(paths)

import json
import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from crm_admin.core.errors import ValidationError, register_exception_handlers
from crm_admin.core.logging_setup import JsonFormatter
from crm_admin.core.metrics import InMemoryRequestMetrics, request_metrics
from crm_admin.core.request_context import (
    bind_request_context,
    current_request_context,
    reset_request_context,
)
from crm_admin.middleware.observability import ObservabilityMiddleware


def _build_client() -> TestClient:
    app = FastAPI()
    app.add_middleware(ObservabilityMiddleware)
    register_exception_handlers(app)

    @app.get("/ping")
    def ping():
        return {"ok": True}

    @app.get("/broken")
    def broken():
        raise ValidationError("bad input")

    return TestClient(app)


def test_request_id_is_generated_and_echoed():
    client = _build_client()

    generated = client.get("/ping")
    echoed = client.get("/ping", headers={"X-Request-ID": "req-123"})

    assert generated.headers["X-Request-ID"]
    assert echoed.headers["X-Request-ID"] == "req-123"


def test_metrics_record_errors_per_endpoint_and_client():
    request_metrics.reset()
    client = _build_client()

    client.get("/ping", params={"clientId": "C1"})
    client.get("/broken", headers={"X-Client-ID": "C1"})

    snapshot = request_metrics.snapshot()
    assert snapshot["GET /ping"]["total_requests"] == 1
    assert snapshot["GET /broken"]["error_count"] == 1
    assert request_metrics.snapshot_per_client()["C1"]["total_requests"] == 2


def test_endpoint_metric_average():
    metrics = InMemoryRequestMetrics()
    metrics.observe("/api/staff", "POST", 200, 10.0)
    metrics.observe("/api/staff", "POST", 500, 30.0)

    entry = metrics.snapshot()["POST /api/staff"]
    assert entry["avg_duration_ms"] == 20.0
    assert entry["error_count"] == 1
    assert metrics.snapshot_per_client() == {}


def test_json_formatter_masks_secrets_and_carries_context():
    formatter = JsonFormatter("%(message)s")
    bindings = bind_request_context(request_id="req-9", client_id="C1", user_id="u-1")
    try:
        record = logging.LogRecord(
            name="crm_admin.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="calling gateway x-api-key=%s password=%s",
            args=("sk_live_123", "hunter2"),
            exc_info=None,
        )
        payload = json.loads(formatter.format(record))
    finally:
        reset_request_context(bindings)

    assert "sk_live_123" not in payload["message"]
    assert "hunter2" not in payload["message"]
    assert payload["request_id"] == "req-9"
    assert payload["client_id"] == "C1"
    assert payload["user_id"] == "u-1"


def test_mask_hides_bearer_tokens():
    masked = JsonFormatter.mask("Authorization: Bearer abc.def.ghi")

    assert "abc.def.ghi" not in masked
    assert masked.endswith("***")


def test_nested_bindings_restore_outer_values():
    outer = bind_request_context(request_id="req-outer", client_id="C1")
    inner = bind_request_context(client_id="C2", user_id="u-2")

    assert current_request_context() == {"request_id": "req-outer", "client_id": "C2", "user_id": "u-2"}

    reset_request_context(inner)
    assert current_request_context() == {"request_id": "req-outer", "client_id": "C1", "user_id": None}

    reset_request_context(outer)
    assert current_request_context() == {"request_id": None, "client_id": None, "user_id": None}


def test_request_context_is_cleared_after_each_request():
    client = _build_client()

    client.get("/ping", params={"clientId": "C1"}, headers={"X-Request-ID": "req-42"})

    assert current_request_context() == {"request_id": None, "client_id": None, "user_id": None}

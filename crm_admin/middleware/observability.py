from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from crm_admin.core.metrics import request_metrics
from crm_admin.core.request_context import bind_request_context, reset_request_context

logger = logging.getLogger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        bindings = bind_request_context(request_id=request_id, client_id=_extract_client_id(request))

        status_code = 500
        endpoint = request.url.path
        method = request.method
        response = None

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            client_id = _extract_client_id(request)
            user_id = _extract_user_id(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            request_metrics.observe(
                endpoint=endpoint,
                method=method,
                status_code=status_code,
                duration_ms=duration_ms,
                client_id=client_id,
            )

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "client_id": client_id,
                    "user_id": user_id,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if response is not None:
                response.headers["X-Request-ID"] = request_id

            reset_request_context(bindings)


def _extract_client_id(request: Request) -> str | None:
    client_id = request.query_params.get("clientId")
    if client_id:
        return client_id
    header_client = request.headers.get("X-Client-ID")
    if header_client:
        return header_client
    user = getattr(request.state, "user", None)
    if user is not None and getattr(user, "client_id", None):
        return str(user.client_id)
    return None


def _extract_user_id(request: Request) -> str | None:
    user = getattr(request.state, "user", None)
    if user is None:
        return None
    user_id = getattr(user, "id", None)
    return str(user_id) if user_id is not None else None

"""Per-request identifiers picked up by the JSON log formatter.

The observability middleware binds values when a request starts and resets
its bindings in reverse order once the response is done, so nothing leaks
into the next request served by the same worker.
"""
from __future__ import annotations

from contextvars import ContextVar, Token

CONTEXT_FIELDS = ("request_id", "client_id", "user_id")

_CONTEXT: dict[str, ContextVar[str | None]] = {
    field: ContextVar(field, default=None) for field in CONTEXT_FIELDS
}

Bindings = list[tuple[str, Token]]


def bind_request_context(**values: str | None) -> Bindings:
    bindings: Bindings = []
    for field, value in values.items():
        if value is not None:
            bindings.append((field, _CONTEXT[field].set(value)))
    return bindings


def reset_request_context(bindings: Bindings) -> None:
    for field, token in reversed(bindings):
        _CONTEXT[field].reset(token)


def current_request_context() -> dict[str, str | None]:
    return {field: var.get() for field, var in _CONTEXT.items()}

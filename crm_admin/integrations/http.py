from __future__ import annotations

from typing import Any, Mapping


def build_query(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Drops empty values and renders booleans the way the gateways expect ("true"/"false")."""
    query: dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        else:
            query[key] = str(value)
    return query


def response_json(response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}

from __future__ import annotations

from typing import Any

import httpx

from pdv_sync.core.errors import (
    ConflictError,
    ExternalServiceError,
    NetworkError,
    RemoteValidationError,
)

_TRANSIENT_STATUS = frozenset({408, 425, 429})
_CONFLICT_STATUS = frozenset({409, 412})


def _response_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_detail(response: httpx.Response) -> str:
    body = _response_json(response)
    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if value:
                return str(value)
    text = response.text.strip()
    return text[:200] if text else response.reason_phrase


def extract_server_snapshot(response: httpx.Response) -> dict[str, Any]:
    """Versión actual del servidor incluida en una respuesta 409/412."""
    body = _response_json(response)
    if not isinstance(body, dict):
        return {}
    for key in ("current", "server_data", "data"):
        value = body.get(key)
        if isinstance(value, dict):
            return value
    detail = body.get("detail")
    if isinstance(detail, dict):
        return extract_nested_snapshot(detail)
    return {key: value for key, value in body.items() if key not in ("detail", "message", "error")}


def extract_nested_snapshot(detail: dict[str, Any]) -> dict[str, Any]:
    for key in ("current", "server_data"):
        value = detail.get(key)
        if isinstance(value, dict):
            return value
    return {}


def classify_response(response: httpx.Response, operation: str) -> Exception:
    status_code = response.status_code
    detail = _error_detail(response)
    if status_code in _CONFLICT_STATUS:
        return ConflictError(
            f"Conflicto de versión en {operation}: {detail}",
            server_data=extract_server_snapshot(response),
            status_code=status_code,
        )
    if status_code in _TRANSIENT_STATUS or status_code >= 500:
        return NetworkError(
            f"Servicio de catálogo no disponible en {operation} ({status_code}): {detail}",
            status_code=status_code,
        )
    if 400 <= status_code < 500:
        return RemoteValidationError(
            f"El catálogo rechazó {operation} ({status_code}): {detail}",
            status_code=status_code,
        )
    return ExternalServiceError(f"Respuesta inesperada en {operation} ({status_code})", status_code=status_code)


def map_http_exception(ex: Exception, operation: str) -> Exception:
    if isinstance(ex, ExternalServiceError):
        return ex
    if isinstance(ex, httpx.HTTPStatusError):
        return classify_response(ex.response, operation)
    if isinstance(ex, httpx.TimeoutException):
        return NetworkError(f"Tiempo de espera agotado en {operation}")
    if isinstance(ex, httpx.TransportError):
        return NetworkError(f"Sin conexión con el catálogo en {operation}: {ex}")
    if isinstance(ex, (ConnectionError, TimeoutError)):
        return NetworkError(f"Sin conexión con el catálogo en {operation}: {ex}")
    return ExternalServiceError(f"Error inesperado en {operation}: {ex}")

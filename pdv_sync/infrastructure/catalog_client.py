from __future__ import annotations

import logging
from typing import Any

import httpx

from pdv_sync.domain.models import PullResult
from pdv_sync.infrastructure.catalog_errors import classify_response, map_http_exception

logger = logging.getLogger(__name__)

PRODUCT_ENDPOINT = "/api/v1/products"
PRODUCT_SYNC_ENDPOINT = "/api/v1/sync/products"
DEFAULT_TIMEOUT_SECONDS = 10.0


class HttpCatalogClient:
    """Cliente REST del catálogo remoto: CRUD de productos y pull incremental.

    Todas las fallas se traducen a la taxonomía de ``pdv_sync.core.errors``;
    los llamadores nunca ven excepciones de httpx.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds, connect=min(timeout_seconds, 5.0)),
            transport=transport,
        )
        self._calls_count = 0

    @property
    def calls_count(self) -> int:
        return self._calls_count

    async def create_product(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", PRODUCT_ENDPOINT, "create_product", json=payload)

    async def update_product(self, product_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", f"{PRODUCT_ENDPOINT}/{product_id}", "update_product", json=payload)

    async def delete_product(self, product_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"{PRODUCT_ENDPOINT}/{product_id}", "delete_product")

    async def pull_changes(self, since: str) -> PullResult:
        body = await self._request("GET", PRODUCT_SYNC_ENDPOINT, "pull_changes", params={"last_sync": since})
        updated = body.get("updated_products") or []
        deleted = body.get("deleted_products") or []
        return PullResult(
            updated_entities=tuple(item for item in updated if isinstance(item, dict)),
            deleted_entity_ids=tuple(str(item) for item in deleted),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        self._calls_count += 1
        logger.debug("catalog_request method=%s path=%s", method, path)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise map_http_exception(exc, operation) from exc
        if response.is_error:
            raise classify_response(response, operation)
        if response.status_code == 204 or not response.content:
            return {"success": True}
        try:
            body = response.json()
        except ValueError as exc:
            raise map_http_exception(exc, operation) from exc
        return body if isinstance(body, dict) else {"data": body}

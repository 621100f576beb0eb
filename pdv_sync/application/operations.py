from __future__ import annotations

from typing import Any

from pdv_sync.domain.models import CreateProduct, DeleteProduct, ProductOperation, UpdateProduct, is_local_id
from pdv_sync.domain.ports import CatalogRemotePort, EntityMirrorPort


def _creation_payload(payload: dict[str, Any]) -> dict[str, Any]:
    # Los ids locales solo identifican la mutación; el servidor asigna el suyo.
    if is_local_id(payload.get("id")):
        return {key: value for key, value in payload.items() if key != "id"}
    return dict(payload)


async def dispatch_operation(remote: CatalogRemotePort, operation: ProductOperation) -> dict[str, Any]:
    if isinstance(operation, CreateProduct):
        return await remote.create_product(_creation_payload(operation.payload))
    if isinstance(operation, UpdateProduct):
        return await remote.update_product(operation.entity_id, operation.payload)
    if isinstance(operation, DeleteProduct):
        result = await remote.delete_product(operation.entity_id)
        return result or {"success": True}
    raise TypeError(f"Operación de catálogo no soportada: {type(operation).__name__}")


def apply_to_mirror(
    mirror: EntityMirrorPort,
    operation: ProductOperation,
    result: Any,
) -> None:
    """Refleja en la copia local el efecto de una operación ya aceptada por el servidor."""
    if isinstance(operation, DeleteProduct):
        mirror.delete(operation.entity_id)
        return
    if isinstance(result, dict) and result.get("id") not in (None, ""):
        mirror.upsert(result)
        return
    entity_id = operation.entity_id if isinstance(operation, UpdateProduct) else operation.payload.get("id")
    if entity_id in (None, "") or is_local_id(entity_id):
        # Sin id de servidor no hay clave estable para la copia local.
        return
    mirror.upsert({**operation.payload, "id": entity_id})

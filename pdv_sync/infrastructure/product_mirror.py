from __future__ import annotations

from typing import Any

from pdv_sync.infrastructure.kv_store_sqlite import SQLiteKeyValueStore

PRODUCT_KEY_PREFIX = "product_"


def product_key(entity_id: object) -> str:
    return f"{PRODUCT_KEY_PREFIX}{entity_id}"


class ProductMirror:
    """Copia local de productos remotos, una clave ``product_<id>`` por entidad."""

    def __init__(self, kv_store: SQLiteKeyValueStore) -> None:
        self._kv = kv_store

    def get(self, entity_id: object) -> dict[str, Any] | None:
        return self._kv.get(product_key(entity_id))

    def upsert(self, entity: dict[str, Any]) -> None:
        if entity.get("id") in (None, ""):
            raise ValueError("No se puede reflejar un producto sin id")
        self._kv.set(product_key(entity["id"]), entity)

    def delete(self, entity_id: object) -> None:
        self._kv.delete(product_key(entity_id))

    def list_ids(self) -> list[str]:
        return [key[len(PRODUCT_KEY_PREFIX):] for key in self._kv.keys(PRODUCT_KEY_PREFIX)]

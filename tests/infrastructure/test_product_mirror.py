from __future__ import annotations

import pytest

from pdv_sync.infrastructure.product_mirror import ProductMirror, product_key


def test_upsert_stores_under_product_prefix(mirror: ProductMirror, kv_store) -> None:
    mirror.upsert({"id": 7, "name": "Guaraná", "updated_at": "2024-01-01T00:00:00Z"})

    assert product_key(7) == "product_7"
    assert kv_store.get("product_7")["name"] == "Guaraná"
    assert mirror.get("7")["name"] == "Guaraná"


def test_upsert_without_id_is_rejected(mirror: ProductMirror) -> None:
    with pytest.raises(ValueError):
        mirror.upsert({"name": "Sem id"})


def test_delete_and_list_ids(mirror: ProductMirror, kv_store) -> None:
    mirror.upsert({"id": "1"})
    mirror.upsert({"id": "2"})
    kv_store.set("sync_queue", [])

    mirror.delete("1")
    mirror.delete("does-not-exist")

    assert mirror.get("1") is None
    assert mirror.list_ids() == ["2"]

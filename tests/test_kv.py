import dataclasses

import pytest

from pathlab.db import kv
from pathlab.db.kv import JsonFileStore, MemoryStore, SqliteStore, make_store
from pathlab.services.cart import Cart


@pytest.fixture(params=["memory", "file", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    if request.param == "file":
        return JsonFileStore(tmp_path / "carts" / "web.json")
    return SqliteStore(str(tmp_path / "kv.db"), "web")


class TestStores:
    def test_missing_key(self, any_store):
        assert any_store.get("pathology_cart") is None

    def test_set_get_overwrite_delete(self, any_store):
        any_store.set("pathology_cart", "[]")
        any_store.set("pathology_cart", '[{"id": "T1"}]')
        assert any_store.get("pathology_cart") == '[{"id": "T1"}]'

        any_store.delete("pathology_cart")
        assert any_store.get("pathology_cart") is None

    def test_delete_missing_key_is_noop(self, any_store):
        any_store.delete("nothing")
        assert any_store.get("nothing") is None

    def test_cart_survives_new_store_instance(self, tmp_path, cbc, full_body):
        path = tmp_path / "profile.json"
        cart = Cart(JsonFileStore(path))
        cart.add_test(cbc)
        cart.add_package(full_body)

        again = Cart(JsonFileStore(path))
        assert again.items == cart.items


class TestSqliteNamespaces:
    def test_profiles_do_not_share_slots(self, tmp_path):
        db_path = str(tmp_path / "kv.db")
        a = SqliteStore(db_path, "tg:1")
        b = SqliteStore(db_path, "tg:2")
        a.set("pathology_cart", "[1]")
        assert b.get("pathology_cart") is None


class TestJsonFileStore:
    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "web.json"
        path.write_text("{{{", encoding="utf-8")
        assert JsonFileStore(path).get("pathology_cart") is None


class TestMakeStore:
    def test_backends(self, tmp_path, monkeypatch):
        base = dataclasses.replace(kv.settings, db_path=str(tmp_path / "a.db"), storage_dir=str(tmp_path))

        monkeypatch.setattr(kv, "settings", dataclasses.replace(base, storage_backend="sqlite"))
        assert isinstance(make_store("web"), SqliteStore)

        monkeypatch.setattr(kv, "settings", dataclasses.replace(base, storage_backend="file"))
        store = make_store("tg:42")
        assert isinstance(store, JsonFileStore)
        assert store.path.name == "tg_42.json"

        monkeypatch.setattr(kv, "settings", dataclasses.replace(base, storage_backend="memory"))
        assert isinstance(make_store("web"), MemoryStore)

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setattr(kv, "settings", dataclasses.replace(kv.settings, storage_backend="redis"))
        with pytest.raises(RuntimeError):
            make_store("web")

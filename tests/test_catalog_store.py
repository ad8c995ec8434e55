"""Tests for CatalogStore."""

import json
from decimal import Decimal

import pytest

from printpos.catalog_store import CatalogStore
from printpos.config import Settings
from printpos.errors import (
    CatalogExistsError,
    CatalogNotFoundError,
    InvalidSchemaVersionError,
    ProductNotFoundError,
)


class TestCatalogStore:
    """Tests for CatalogStore class."""

    def test_init_creates_empty_catalog(self, temp_dir):
        store = CatalogStore(temp_dir)
        catalog = store.init()

        assert store.exists()
        assert catalog.products == []
        assert json.loads(store.catalog_path.read_text())["schema_version"] == 1

    def test_init_with_catalog(self, temp_dir, catalog):
        store = CatalogStore(temp_dir)
        store.init(catalog)

        loaded = store.load()
        assert loaded.to_dict() == catalog.to_dict()

    def test_init_without_force_raises(self, temp_dir, catalog):
        store = CatalogStore(temp_dir)
        store.init(catalog)

        with pytest.raises(CatalogExistsError):
            store.init()

    def test_init_force_overwrites(self, temp_dir, catalog):
        store = CatalogStore(temp_dir)
        store.init(catalog)
        store.init(force=True)

        assert store.load().products == []

    def test_load_not_found_raises(self, temp_dir):
        store = CatalogStore(temp_dir)

        with pytest.raises(CatalogNotFoundError) as exc_info:
            store.load()
        assert "printpos init" in str(exc_info.value)

    def test_unsupported_schema_version_raises(self, temp_dir):
        store = CatalogStore(temp_dir)
        store.catalog_path.write_text(json.dumps({"schema_version": 99, "products": []}))

        with pytest.raises(InvalidSchemaVersionError):
            store.load()

    def test_save_leaves_no_temp_files(self, temp_dir, catalog):
        store = CatalogStore(temp_dir)
        store.init(catalog)

        assert [p.name for p in temp_dir.iterdir()] == ["catalog.json"]


class TestProductLookup:
    @pytest.fixture
    def store(self, temp_dir, catalog):
        store = CatalogStore(temp_dir)
        store.init(catalog)
        return store

    def test_get_product(self, store):
        product = store.get_product("spanduk")
        assert product.name == "Spanduk Flexi"
        assert product.variants[0].price == Decimal("45000")

    def test_get_product_not_found(self, store):
        with pytest.raises(ProductNotFoundError):
            store.get_product("mug")

    def test_list_excludes_inactive(self, store):
        ids = [p.id for p in store.list_products()]
        assert "arsip" not in ids
        assert "stiker" in ids

    def test_list_includes_inactive_on_request(self, store):
        ids = [p.id for p in store.list_products(include_inactive=True)]
        assert "arsip" in ids

    def test_finishing_lookups(self, store):
        assert store.get_finishing("mata-ayam").name == "Mata Ayam"
        assert store.get_finishing("emboss") is None
        assert store.find_finishing_by_name("Laminasi Doff").id == "lam-doff"


class TestSettings:
    def test_data_dir_from_environment(self, temp_dir, monkeypatch):
        monkeypatch.setenv("PRINTPOS_DATA_DIR", str(temp_dir))
        store = CatalogStore()
        assert store.catalog_path == temp_dir / "catalog.json"

    def test_blank_values_fall_back_to_defaults(self):
        settings = Settings.from_env({"PRINTPOS_MACHINE_ID": "  ", "PRINTPOS_LOG_LEVEL": "debug"})
        assert settings.machine_id == "A"
        assert settings.order_prefix == "JGL"
        assert settings.log_level == "DEBUG"

"""Catalog storage for printpos."""

import json
import logging
import os
import tempfile
from pathlib import Path

from .config import Settings
from .errors import (
    CatalogExistsError,
    CatalogNotFoundError,
    InvalidSchemaVersionError,
    ProductNotFoundError,
)
from .models import Catalog, FinishingOption, Product

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
CATALOG_FILE = "catalog.json"


class CatalogStore:
    """Reads and writes the product and finishing catalog."""

    def __init__(self, data_dir: Path | None = None):
        """
        Initialize CatalogStore.

        Args:
            data_dir: Override data directory (for testing).
        """
        self.data_dir = data_dir or Settings.from_env().data_dir
        self.catalog_path = self.data_dir / CATALOG_FILE

    def exists(self) -> bool:
        """Check if the catalog file exists."""
        return self.catalog_path.exists()

    def load(self) -> Catalog:
        """
        Load the catalog from disk.

        Raises:
            CatalogNotFoundError: If the catalog doesn't exist.
            InvalidSchemaVersionError: If schema version is unsupported.
        """
        if not self.exists():
            raise CatalogNotFoundError(str(self.catalog_path))

        with open(self.catalog_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)

        return Catalog.from_dict(data)

    def save(self, catalog: Catalog) -> None:
        """
        Save the catalog to disk atomically.

        Uses write-to-temp-then-rename for atomicity.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)

        data = {"schema_version": SCHEMA_VERSION, **catalog.to_dict()}
        fd, temp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".catalog_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(temp_path, self.catalog_path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise
        logger.info(
            "Saved catalog: %d product(s), %d finishing(s)",
            len(catalog.products), len(catalog.finishings),
        )

    def init(self, catalog: Catalog | None = None, force: bool = False) -> Catalog:
        """
        Create the catalog file.

        Args:
            catalog: Initial contents (defaults to an empty catalog).
            force: If True, overwrite an existing catalog.

        Raises:
            CatalogExistsError: If the catalog exists and force=False.
        """
        if self.exists() and not force:
            raise CatalogExistsError(str(self.catalog_path))

        catalog = catalog or Catalog()
        self.save(catalog)
        return catalog

    def list_products(self, include_inactive: bool = False) -> list[Product]:
        catalog = self.load()
        if include_inactive:
            return catalog.products
        return [p for p in catalog.products if p.is_active]

    def get_product(self, product_id: str) -> Product:
        """
        Get a product by ID.

        Raises:
            ProductNotFoundError: If the product doesn't exist.
        """
        product = self.load().product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def get_finishing(self, finishing_id: str) -> FinishingOption | None:
        return self.load().finishing(finishing_id)

    def find_finishing_by_name(self, name: str) -> FinishingOption | None:
        """Name lookup for older items that reference finishings by name only."""
        return self.load().finishing_by_name(name)

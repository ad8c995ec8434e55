"""Pytest fixtures for printpos tests."""

import copy
import json
import tempfile
from pathlib import Path

import pytest

from printpos.models import Catalog

CATALOG_DATA = {
    "products": [
        {
            "id": "stiker",
            "name": "Stiker Vinyl",
            "pricing_model": "UNIT",
            "base_price": 25000,
            "category": "PRINT",
            "variants": [
                {"label": "Glossy", "price": 25000},
                {"label": "Doff", "price": 27500},
            ],
        },
        {
            "id": "banner-roll",
            "name": "Banner Roll",
            "pricing_model": "LINEAR",
            "base_price": 20000,
            "category": "BANNER",
        },
        {
            "id": "spanduk",
            "name": "Spanduk Flexi",
            "pricing_model": "AREA",
            "base_price": 25000,
            "category": "BANNER",
            "variants": [{"label": "Flexi Korea", "price": 45000}],
        },
        {
            "id": "poster",
            "name": "Poster",
            "pricing_model": "MATRIX",
            "category": "PRINT",
            "variants": [
                {"label": "Art Paper", "price_list": {"A3": 15000, "A4": 8000}},
                {"label": "Photo Paper", "price_list": {"A3": 20000}},
            ],
        },
        {
            "id": "poster-lama",
            "name": "Poster (lama)",
            "pricing_model": "MATRIX",
            "prices": {"A3": 12000, "A2": 22000},
        },
        {
            "id": "kartu-nama",
            "name": "Kartu Nama",
            "pricing_model": "ADVANCED",
            "base_price": 2000,
            "category": "PRINT",
            "advanced_features": {
                "wholesale_rules": [
                    {"min": 1, "max": 499, "price": 2000},
                    {"min": 500, "max": None, "price": 1000},
                ],
            },
        },
        {
            "id": "kaos",
            "name": "Kaos Sablon",
            "pricing_model": "ADVANCED",
            "category": "APPAREL",
            "advanced_features": {
                "min_order": 12,
                "wholesale_rules": [
                    {"min": 12, "max": 23, "price": 85000},
                    {"min": 24, "max": None, "price": 75000},
                ],
                "finishing_groups": [
                    {
                        "id": "sablon",
                        "title": "Sablon",
                        "type": "radio",
                        "required": True,
                        "price_mode": "PER_UNIT",
                        "options": [
                            {"label": "1 Warna", "price": 0},
                            {"label": "Full Color", "price": 10000},
                        ],
                    },
                    {
                        "id": "extra",
                        "title": "Extra",
                        "type": "checkbox",
                        "price_mode": "PER_JOB",
                        "options": [
                            {"label": "Desain", "price": 50000},
                            {"label": "Packing", "price": 20000, "min_qty": 24},
                        ],
                    },
                    {
                        "id": "nama",
                        "title": "Nama Punggung",
                        "type": "text_input",
                        "price_add": 15000,
                    },
                ],
            },
        },
        {
            "id": "arsip",
            "name": "Produk Lama",
            "pricing_model": "UNIT",
            "base_price": 5000,
            "is_active": False,
        },
        {
            "id": "gratis",
            "name": "Sample Gratis",
            "pricing_model": "UNIT",
            "base_price": 0,
        },
    ],
    "finishings": [
        {"id": "lam-doff", "name": "Laminasi Doff", "price": 1500, "per_unit": True, "category": "PRINT"},
        {"id": "mata-ayam", "name": "Mata Ayam", "price": 10000, "per_unit": False, "category": "BANNER"},
        {
            "id": "potong",
            "name": "Potong Kiss Cut",
            "price": 500,
            "per_unit": True,
            "category": "PRINT",
            "min_qty": 10,
        },
    ],
}


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def catalog_data():
    """Raw catalog JSON, safe to mutate."""
    return copy.deepcopy(CATALOG_DATA)


@pytest.fixture
def catalog(catalog_data):
    """Sample catalog covering every pricing model."""
    return Catalog.from_dict(catalog_data)


@pytest.fixture
def catalog_file(temp_dir, catalog_data):
    """Sample catalog written to a JSON file."""
    path = temp_dir / "catalog-source.json"
    path.write_text(json.dumps(catalog_data))
    return path

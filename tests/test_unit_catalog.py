import sys
import os
import pytest

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.insert(0, project_root)

from solarquote_engine.catalog import (
    find_by_id, resolve_item, items_in_category, catalog_from_records, low_stock_items
)
from solarquote_engine.catalog_definitions import DEFAULT_INVENTORY
from solarquote_engine.models import ProductCategory


@pytest.fixture
def default_catalog():
    return catalog_from_records(DEFAULT_INVENTORY)


def test_default_inventory_loads_every_row(default_catalog):
    assert len(default_catalog) == len(DEFAULT_INVENTORY)
    assert {item.category for item in default_catalog} == set(ProductCategory)


@pytest.mark.parametrize("item_id", ["", None, "does-not-exist"])
def test_missing_ids_resolve_to_zero_item(default_catalog, item_id):
    assert find_by_id(default_catalog, item_id) is None
    resolved = resolve_item(default_catalog, item_id)
    assert resolved.found is False
    assert resolved.price == 0
    assert resolved.power == 0
    assert resolved.capacity == 0
    assert resolved.name == ""


def test_resolve_item_fills_missing_attributes(default_catalog):
    mounting = resolve_item(default_catalog, "m1")
    assert mounting.found is True
    assert mounting.price == 120
    assert mounting.power == 0
    assert mounting.capacity == 0


def test_resolve_item_rejects_other_category(default_catalog):
    assert resolve_item(default_catalog, "p1", ProductCategory.INVERTER).found is False
    assert resolve_item(default_catalog, "p1", ProductCategory.PANEL).power == 440


def test_items_in_category_keeps_catalog_order(default_catalog):
    panels = items_in_category(default_catalog, ProductCategory.PANEL)
    assert [p.id for p in panels] == ["p1", "p2", "p3"]


def test_catalog_from_records_coerces_bad_values():
    catalog = catalog_from_records([
        {"id": "x1", "name": "Odd", "category": "PANEL", "price": "abc", "power": None, "quantity": "7"},
        {"name": "No id", "category": "PANEL", "price": 100},
        {"id": "x2", "name": "Unknown category", "category": "GADGET", "price": 10},
    ])
    assert [item.id for item in catalog] == ["x1", "x2"]
    assert catalog[0].price == 0.0
    assert catalog[0].power is None
    assert catalog[0].quantity == 7
    assert catalog[1].category == ProductCategory.ADDONS


def test_low_stock_items():
    catalog = catalog_from_records([
        {"id": "a", "name": "Low", "category": "PANEL", "quantity": 2, "min_quantity": 5},
        {"id": "b", "name": "At minimum", "category": "PANEL", "quantity": 5, "min_quantity": 5},
        {"id": "c", "name": "Plenty", "category": "PANEL", "quantity": 50, "min_quantity": 5},
    ])
    assert [item.id for item in low_stock_items(catalog)] == ["a", "b"]

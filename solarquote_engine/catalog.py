import logging
from solarquote_engine.models import CatalogItem, ResolvedItem, ProductCategory, coerce_enum
from solarquote_engine.utils import to_number

catalog_logger = logging.getLogger('catalog')

NOT_FOUND = ResolvedItem()


def find_by_id(catalog, item_id):
    """Returns the catalog item with `item_id`, or None. An empty id means "no component"."""
    if not item_id:
        return None
    return next((item for item in catalog if item.id == item_id), None)


def items_in_category(catalog, category):
    """Catalog items of one category, in catalog order."""
    return [item for item in catalog if item.category == category]


def resolve_item(catalog, item_id, category=None) -> ResolvedItem:
    """
    Resolves a component reference to a ResolvedItem with numeric fields guaranteed.
    Unset ids, unknown ids and ids of another category all resolve to the zero item.
    """
    item = find_by_id(catalog, item_id)
    if item is None or (category is not None and item.category != category):
        return NOT_FOUND
    return ResolvedItem(
        item_id=item.id,
        name=item.name or "",
        price=to_number(item.price),
        power=to_number(item.power),
        capacity=to_number(item.capacity),
        phases=item.phases,
        found=True,
    )


def catalog_from_records(records):
    """
    Builds CatalogItem objects from plain inventory rows.
    Missing or invalid numbers become 0 (or None for optional attributes); rows without an id are skipped.
    """
    catalog = []
    for record in records or []:
        item_id = record.get("id")
        if not item_id:
            catalog_logger.warning(f"Skipping inventory row without id: {record.get('name', '')!r}")
            continue

        power = record.get("power")
        capacity = record.get("capacity")
        phases = record.get("phases")
        catalog.append(CatalogItem(
            id=str(item_id),
            name=record.get("name", ""),
            category=coerce_enum(ProductCategory, record.get("category"), ProductCategory.ADDONS),
            price=to_number(record.get("price")),
            power=to_number(power) if power is not None else None,
            capacity=to_number(capacity) if capacity is not None else None,
            phases=int(to_number(phases)) if phases is not None else None,
            unit=record.get("unit", "szt."),
            quantity=int(to_number(record.get("quantity"))),
            min_quantity=int(to_number(record.get("min_quantity"))),
            warranty=record.get("warranty", ""),
        ))
    return catalog


def low_stock_items(catalog):
    """Items at or below their minimum stock level."""
    return [item for item in catalog if item.quantity <= item.min_quantity]

"""
Freezing wizard configurations into offers, and turning accepted offers into
installation records for the downstream installation pipeline.
"""

import logging
from dataclasses import replace
from datetime import datetime
from solarquote_engine.catalog import resolve_item
from solarquote_engine.models import (
    QuoteConfiguration, Offer, OfferStatus, MountSurface, ConsumptionMode,
    ProductCategory, SalespersonMarginSettings
)
from solarquote_engine.offer_calculator_logic import resolve_annual_consumption
from solarquote_engine.utils import to_number

offers_logger = logging.getLogger('offers')

INSTALLATION_STATUS_AUDIT = "AUDIT"
HEAT_PUMP_KEYWORDS = ("pompa", "heat")


def build_offer_name(result, configuration) -> str:
    surface = "Roof" if configuration.mount_surface == MountSurface.ROOF else "Ground"
    return f"PV Installation {result.system_power_kw:.2f} kWp ({surface})"


def freeze_offer(configuration, result, now=None, offer_id=None) -> Offer:
    """
    Snapshots the configuration and the derived price into an Offer.
    In bill mode the derived yearly consumption is written into the snapshot.
    """
    now = now or datetime.now()
    if configuration.consumption_mode == ConsumptionMode.BILL_AMOUNT:
        configuration = configuration.with_changes(consumption_kwh=resolve_annual_consumption(configuration))

    offer = Offer(
        id=offer_id or str(int(now.timestamp() * 1000)),
        name=build_offer_name(result, configuration),
        date_created=now.isoformat(),
        final_price=result.total_system_price,
        calculator_state=configuration.to_dict(),
        applied_markup=result.applied_markup,
        personal_markup=result.personal_markup,
    )
    offers_logger.info(f"Offer {offer.id} frozen: '{offer.name}' at {offer.final_price:.2f} PLN")
    return offer


def configuration_from_offer(offer) -> QuoteConfiguration:
    """Re-opens a saved offer in the wizard. Derived values are recomputed, never read from the offer."""
    return QuoteConfiguration.from_dict(offer.calculator_state)


def accept_offer(offer) -> Offer:
    offers_logger.info(f"Offer {offer.id} accepted.")
    return replace(offer, status=OfferStatus.ACCEPTED)


def build_installation_seed(offer, catalog_items, address="", existing_notes=None) -> dict:
    """
    Installation record created (or updated) when an offer is accepted.
    Component names are empty for components missing from the catalog; sizes are 0.
    """
    configuration = configuration_from_offer(offer)
    panel = resolve_item(catalog_items, configuration.panel_id, ProductCategory.PANEL)
    inverter = resolve_item(catalog_items, configuration.inverter_id, ProductCategory.INVERTER)
    storage = resolve_item(catalog_items, configuration.storage_id, ProductCategory.ENERGY_STORAGE)
    mounting = resolve_item(catalog_items, configuration.mounting_system_id, ProductCategory.ACCESSORIES)

    system_size_kw = panel.power * max(0, int(to_number(configuration.panel_count))) / 1000.0
    storage_size_kw = storage.capacity * max(0, int(to_number(configuration.storage_count)))

    offer_note = f"Accepted offer: {offer.name}"
    notes = f"{existing_notes}\n{offer_note}" if existing_notes else offer_note

    return {
        "address": address,
        "price": offer.final_price,
        "system_size_kw": system_size_kw,
        "status": INSTALLATION_STATUS_AUDIT,
        "panel_model": panel.name,
        "inverter_model": inverter.name,
        "storage_model": storage.name,
        "storage_size_kw": storage_size_kw,
        "mounting_system": mounting.name,
        "trench_length": to_number(configuration.trench_length_m),
        "commission_value": offer.personal_markup,
        "notes": notes,
    }


def deal_commission(installation, margin_settings=None) -> float:
    """
    Salesperson commission for one installation.
    Uses the commission saved at acceptance; older records fall back to the current margins
    for each product type the installation contains.
    """
    if installation.get("commission_value") is not None:
        return to_number(installation["commission_value"])

    settings = margin_settings or SalespersonMarginSettings()
    notes = (installation.get("notes") or "").lower()
    commission = 0.0
    if to_number(installation.get("system_size_kw")) > 0:
        commission += to_number(settings.margin_pv)
    if to_number(installation.get("storage_size_kw")) > 0:
        commission += to_number(settings.margin_storage)
    if any(keyword in notes for keyword in HEAT_PUMP_KEYWORDS):
        commission += to_number(settings.margin_heat)
    return commission

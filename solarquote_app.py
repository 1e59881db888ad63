import streamlit as st
import logging
import copy
from solarquote_engine.catalog import catalog_from_records, low_stock_items
from solarquote_engine.catalog_definitions import (
    DEFAULT_INVENTORY, DEFAULT_SALESPERSON_SETTINGS, DEFAULT_PRICING_TIERS,
    DEFAULT_ORG_PRICING_SETTINGS, DEFAULT_CUSTOMERS
)
from solarquote_engine.models import QuoteConfiguration, PricingTier, ConnectionRule, SalespersonMarginSettings, coerce_enum
from solarquote_engine.offers import configuration_from_offer, accept_offer, build_installation_seed, deal_commission
from solarquote_engine.ui_offer_wizard_screen import display_offer_wizard_screen

LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
app_logger = logging.getLogger('solarquote_app')

st.set_page_config(page_title="☀️ Solarquote Offer Wizard")


# --- Runtime settings (secrets.toml overrides the defaults) ---
def load_app_settings():
    settings = {
        "org_pricing": dict(DEFAULT_ORG_PRICING_SETTINGS),
        "connection_rule": ConnectionRule.INVERTER_ADDITIVE,
    }
    try:
        if st.secrets.get("ORG_MARKUP_TYPE"):
            settings["org_pricing"]["markup_type"] = st.secrets.get("ORG_MARKUP_TYPE")
        if st.secrets.get("ORG_MARKUP_VALUE") is not None:
            settings["org_pricing"]["markup_value"] = float(st.secrets.get("ORG_MARKUP_VALUE"))
        if st.secrets.get("CONNECTION_RULE"):
            settings["connection_rule"] = coerce_enum(
                ConnectionRule, st.secrets.get("CONNECTION_RULE"), ConnectionRule.INVERTER_ADDITIVE)
    except Exception as e:
        app_logger.warning(f"Secrets not loaded, using default pricing settings: {e}")
    return settings


# --- Session State Initialization ---
if 'quote_config' not in st.session_state:
    st.session_state.quote_config = QuoteConfiguration()
if 'form_version' not in st.session_state:
    st.session_state.form_version = 0
if 'inventory_records' not in st.session_state:
    st.session_state.inventory_records = copy.deepcopy(DEFAULT_INVENTORY)
if 'customers' not in st.session_state:
    st.session_state.customers = copy.deepcopy(DEFAULT_CUSTOMERS)
if 'saved_offers' not in st.session_state:
    st.session_state.saved_offers = []  # [{"customer_id": ..., "offer": Offer}]
if 'installations' not in st.session_state:
    st.session_state.installations = []
if 'salesperson_id' not in st.session_state:
    st.session_state.salesperson_id = "sales1"


def start_new_offer():
    st.session_state.quote_config = QuoteConfiguration()
    st.session_state.form_version += 1


def handle_accept_offer(entry):
    """Marks the offer accepted and creates (or updates) the customer's installation."""
    offer = accept_offer(entry["offer"])
    entry["offer"] = offer

    customer = next((c for c in st.session_state.customers if c["id"] == entry["customer_id"]), {})
    existing = next((i for i in st.session_state.installations if i["customer_id"] == entry["customer_id"]), None)
    catalog = catalog_from_records(st.session_state.inventory_records)
    seed = build_installation_seed(offer, catalog, customer.get("address", ""),
                                   existing.get("notes") if existing else None)
    if existing:
        existing.update(seed)
    else:
        st.session_state.installations.append({"customer_id": entry["customer_id"], **seed})
    app_logger.info(f"Installation seeded for customer {entry['customer_id']} from offer {offer.id}")


def display_sidebar(salesperson_settings):
    with st.sidebar:
        st.subheader("☀️ Solarquote Sales Assistant")
        salespeople = list(DEFAULT_SALESPERSON_SETTINGS.keys())
        st.session_state.salesperson_id = st.selectbox(
            "Salesperson", salespeople, index=salespeople.index(st.session_state.salesperson_id),
            key="sidebar_salesperson")

        if st.button("Start New Offer", icon=":material/add:", use_container_width=True, key="sidebar_new_offer"):
            start_new_offer()
            st.rerun()

        st.markdown("---")
        st.subheader("Saved Offers")
        if not st.session_state.saved_offers:
            st.caption("No offers saved yet.")
        for index, entry in enumerate(st.session_state.saved_offers):
            offer = entry["offer"]
            with st.expander(f"{offer.name} ({offer.status.value})"):
                st.write(f"**Price:** {offer.final_price:,.2f} PLN")
                col1, col2 = st.columns(2)
                if col1.button("Edit", key=f"edit_offer_{index}", use_container_width=True):
                    st.session_state.quote_config = configuration_from_offer(offer)
                    st.session_state.form_version += 1
                    st.rerun()
                if col2.button("Accept", key=f"accept_offer_{index}", use_container_width=True,
                               disabled=offer.status.value == "ACCEPTED"):
                    handle_accept_offer(entry)
                    st.rerun()

        if st.session_state.installations:
            st.markdown("---")
            commission = sum(deal_commission(i, salesperson_settings) for i in st.session_state.installations)
            st.metric("Pending commission", f"{commission:,.2f} PLN")

        low_stock = low_stock_items(catalog_from_records(st.session_state.inventory_records))
        if low_stock:
            st.warning(f"{len(low_stock)} inventory item(s) at or below minimum stock.", icon="📦")


# ====== Main App ======
if __name__ == "__main__":
    app_settings = load_app_settings()
    salesperson_id = st.session_state.salesperson_id
    salesperson_settings = DEFAULT_SALESPERSON_SETTINGS[salesperson_id]
    is_higher_pricing_tier = coerce_enum(
        PricingTier, DEFAULT_PRICING_TIERS.get(salesperson_id), PricingTier.STANDARD) == PricingTier.HIGHER

    display_sidebar(SalespersonMarginSettings(**salesperson_settings))
    display_offer_wizard_screen(
        st.session_state.inventory_records,
        salesperson_settings,
        app_settings["org_pricing"],
        is_higher_pricing_tier,
        app_settings["connection_rule"],
    )

import logging
import streamlit as st
import pandas as pd
import plotly.graph_objects as go
from solarquote_engine.catalog import catalog_from_records, items_in_category
from solarquote_engine.catalog_definitions import DEFAULT_CUSTOMERS
from solarquote_engine.loan_calculator import (
    compute_loan_payment, first_payment_date, amortization_schedule, compare_loan_to_bill
)
from solarquote_engine.models import (
    QuoteConfiguration, ClientDraft, Tariff, ConsumptionMode, MountSurface, RoofSlope,
    Orientation, TaxRelief, ProductCategory, ConnectionRule,
    SalespersonMarginSettings, OrgPricingSettings, MarkupType, coerce_enum
)
from solarquote_engine.offer_calculator_logic import (
    compute_offer, auto_select_components, validate_configuration, projection_to_dataframe
)
from solarquote_engine.offers import freeze_offer
from solarquote_engine.utils import TOOLTIPS, generate_progress_bar_markdown, is_dual_rate_tariff
from solarquote_engine.wizard import WIZARD_STEPS, FIRST_STEP, LAST_STEP, blocking_reason, next_step, previous_step

ui_logger = logging.getLogger('offer_wizard_ui')

ROOF_MATERIALS = ["DACHOWKA", "BLACHODACHOWKA", "BLACHA_TRAPEZOWA", "PAPA", "GONT"]
BILLING_PERIODS = [1, 2, 6, 12]


@st.cache_data
def cached_compute_offer(config_dict, inventory_records, salesperson_settings_dict, org_settings_dict,
                         is_higher_pricing_tier, connection_rule_value):
    """Recomputes the offer; cached on the plain-value snapshot of every input."""
    return compute_offer(
        QuoteConfiguration.from_dict(config_dict),
        catalog_from_records(inventory_records),
        SalespersonMarginSettings(**salesperson_settings_dict),
        OrgPricingSettings(
            markup_type=coerce_enum(MarkupType, org_settings_dict.get("markup_type"), MarkupType.PERCENT),
            markup_value=org_settings_dict.get("markup_value", 0),
        ),
        is_higher_pricing_tier,
        ConnectionRule(connection_rule_value),
    )


def _widget_key(name):
    """Widget keys are versioned so that loading another configuration resets every input."""
    return f"{name}_{st.session_state.get('form_version', 0)}"


def _reset_widgets():
    st.session_state.form_version = st.session_state.get('form_version', 0) + 1


def _item_selectbox(label, items, current_id, key, allow_none=False, help=None):
    names = {item.id: f"{item.name} ({item.price:,.0f} PLN)" for item in items}
    options = ([""] if allow_none else []) + list(names.keys())
    if not options:
        st.warning(f"No items available for '{label}' in the inventory.")
        return current_id
    index = options.index(current_id) if current_id in options else 0
    return st.selectbox(label, options=options, index=index, key=_widget_key(key),
                        format_func=lambda item_id: names.get(item_id, "None"), help=help)


# --- Step 1: Client ---
def render_client_step(config, catalog):
    st.subheader("👤 Client")
    client_mode = st.radio("Client", ["Existing client", "New client"], horizontal=True,
                           index=1 if config.is_new_client else 0, key=_widget_key("client_mode"),
                           help=TOOLTIPS["client_select"])
    if client_mode == "New client":
        draft = config.new_client
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Full name", value=draft.name, key=_widget_key("new_client_name"))
            phone = st.text_input("Phone", value=draft.phone, key=_widget_key("new_client_phone"))
        with col2:
            address = st.text_input("Address", value=draft.address, key=_widget_key("new_client_address"))
            email = st.text_input("Email", value=draft.email, key=_widget_key("new_client_email"))
        return {"is_new_client": True,
                "new_client": ClientDraft(name=name, address=address, phone=phone, email=email)}

    customers = {c["id"]: c["name"] for c in st.session_state.get("customers", DEFAULT_CUSTOMERS)}
    options = ["ANON"] + list(customers.keys())
    client_id = st.selectbox("Customer", options=options,
                             index=options.index(config.client_id) if config.client_id in options else 0,
                             format_func=lambda cid: customers.get(cid, "Anonymous offer"),
                             key=_widget_key("client_id"))
    return {"is_new_client": False, "client_id": client_id}


# --- Step 2: Energy ---
def render_energy_step(config, catalog):
    st.subheader("⚡ Energy Profile")
    changes = {}
    col1, col2 = st.columns(2)
    with col1:
        tariffs = [t.value for t in Tariff]
        changes["tariff"] = Tariff(st.selectbox("Tariff", tariffs, index=tariffs.index(config.tariff.value),
                                                key=_widget_key("tariff"), help=TOOLTIPS["tariff"]))
        changes["phases"] = st.radio("Phases", [1, 3], index=0 if config.phases == 1 else 1, horizontal=True,
                                     key=_widget_key("phases"))
        changes["connection_power_kw"] = st.number_input(
            "Connection power (kW)", min_value=0.0, value=float(config.connection_power_kw), step=0.5,
            key=_widget_key("connection_power_kw"), help=TOOLTIPS["connection_power"])
    with col2:
        modes = {ConsumptionMode.ANNUAL_KWH: "Yearly consumption (kWh)", ConsumptionMode.BILL_AMOUNT: "Electricity bill"}
        mode = st.radio("Consumption input", list(modes.keys()), format_func=modes.get, horizontal=True,
                        index=list(modes.keys()).index(config.consumption_mode),
                        key=_widget_key("consumption_mode"), help=TOOLTIPS["consumption_mode"])
        changes["consumption_mode"] = mode
        if mode == ConsumptionMode.ANNUAL_KWH:
            changes["consumption_kwh"] = st.number_input(
                "Yearly consumption (kWh)", min_value=0.0, value=float(config.consumption_kwh), step=100.0,
                key=_widget_key("consumption_kwh"))
        else:
            changes["current_bill_amount"] = st.number_input(
                "Bill amount (PLN)", min_value=0.0, value=float(config.current_bill_amount), step=10.0,
                key=_widget_key("current_bill_amount"))
            changes["billing_period_months"] = st.selectbox(
                "Billing period (months)", BILLING_PERIODS,
                index=BILLING_PERIODS.index(config.billing_period_months)
                if config.billing_period_months in BILLING_PERIODS else 0,
                key=_widget_key("billing_period_months"))
        changes["price_per_kwh"] = st.number_input(
            "Energy price (PLN/kWh)", min_value=0.0, value=float(config.price_per_kwh), step=0.01,
            key=_widget_key("price_per_kwh"))

    if is_dual_rate_tariff(changes["tariff"]):
        off1, off2 = st.columns(2)
        changes["price_off_peak"] = off1.number_input(
            "Off-peak price (PLN/kWh)", min_value=0.0,
            value=float(config.price_off_peak if config.price_off_peak is not None else 0.65), step=0.01,
            key=_widget_key("price_off_peak"))
        changes["percent_off_peak"] = off2.slider(
            "Off-peak share (%)", 0, 100,
            int(config.percent_off_peak if config.percent_off_peak is not None else 40),
            key=_widget_key("percent_off_peak"), help=TOOLTIPS["percent_off_peak"])
    return changes


# --- Step 3: Components ---
def render_components_step(config, catalog):
    st.subheader("🔆 Components")
    if st.button("Auto-select components", icon=":material/auto_fix_high:", key="auto_select_btn",
                 help=TOOLTIPS["auto_select"]):
        patch = auto_select_components(config, catalog)
        if patch:
            st.session_state.quote_config = config.with_changes(**patch)
            _reset_widgets()
            st.rerun()
        st.warning("The inventory has no panels to select from.")

    changes = {}
    col1, col2 = st.columns(2)
    with col1:
        changes["panel_id"] = _item_selectbox("Panel", items_in_category(catalog, ProductCategory.PANEL),
                                              config.panel_id, "panel_id")
        changes["panel_count"] = st.number_input("Panel count", min_value=0, value=int(config.panel_count), step=1,
                                                 key=_widget_key("panel_count"))
        changes["inverter_id"] = _item_selectbox("Inverter", items_in_category(catalog, ProductCategory.INVERTER),
                                                 config.inverter_id, "inverter_id")
    with col2:
        changes["storage_id"] = _item_selectbox("Energy storage",
                                                items_in_category(catalog, ProductCategory.ENERGY_STORAGE),
                                                config.storage_id, "storage_id", allow_none=True)
        changes["storage_count"] = st.number_input("Storage sets", min_value=1, value=max(1, int(config.storage_count)),
                                                   step=1, key=_widget_key("storage_count"),
                                                   disabled=not changes["storage_id"])
    return changes


def render_connection_power_check(config, result):
    """Shows the connection power check; returns the acknowledgment change, if any."""
    c1, c2, c3 = st.columns(3)
    c1.metric("System power", f"{result.system_power_kw:.2f} kWp")
    c2.metric("Inverter", f"{result.inverter_power_kw:.1f} kW")
    c3.metric("Storage", f"{result.storage_capacity_kwh:.2f} kWh" if result.storage_capacity_kwh > 0 else "N/A")

    if not result.exceeds_connection_power:
        return {}
    st.error(f"System power ({result.power_to_check:.2f} kW) exceeds the client's connection power "
             f"({config.connection_power_kw} kW)!", icon="⚠️")
    accepted = st.checkbox("I accept the risk and will apply for a connection power increase",
                           value=config.connection_power_warning_accepted,
                           key=_widget_key("connection_power_warning_accepted"),
                           help=TOOLTIPS["connection_power_warning"])
    return {"connection_power_warning_accepted": accepted}


# --- Step 4: Mounting & Add-ons ---
def render_mounting_step(config, catalog):
    st.subheader("🏗️ Mounting & Add-ons")
    changes = {}
    col1, col2 = st.columns(2)
    with col1:
        surfaces = {MountSurface.ROOF: "Roof", MountSurface.GROUND: "Ground"}
        surface = st.radio("Installation type", list(surfaces.keys()), format_func=surfaces.get, horizontal=True,
                           index=list(surfaces.keys()).index(config.mount_surface), key=_widget_key("mount_surface"))
        changes["mount_surface"] = surface
        if surface == MountSurface.ROOF:
            slopes = {RoofSlope.PITCHED: "Pitched", RoofSlope.FLAT: "Flat"}
            changes["roof_slope"] = st.radio(
                "Roof slope", list(slopes.keys()), format_func=slopes.get, horizontal=True,
                index=0 if config.roof_slope != RoofSlope.FLAT else 1, key=_widget_key("roof_slope"))
            changes["roof_material"] = st.selectbox(
                "Roof material", ROOF_MATERIALS,
                index=ROOF_MATERIALS.index(config.roof_material) if config.roof_material in ROOF_MATERIALS else 0,
                key=_widget_key("roof_material"))
        else:
            changes["trench_length_m"] = st.number_input(
                "Trench length (m)", min_value=0.0, value=float(config.trench_length_m), step=1.0,
                key=_widget_key("trench_length_m"), help=TOOLTIPS["trench_length"])
    with col2:
        changes["mounting_system_id"] = _item_selectbox(
            "Mounting system", items_in_category(catalog, ProductCategory.ACCESSORIES),
            config.mounting_system_id, "mounting_system_id", allow_none=True)
        orientations = {Orientation.SOUTH: "South", Orientation.EAST_WEST: "East-West"}
        changes["orientation"] = st.radio("Orientation", list(orientations.keys()), format_func=orientations.get,
                                          horizontal=True, index=list(orientations.keys()).index(config.orientation),
                                          key=_widget_key("orientation"))
        changes["has_ems"] = st.checkbox("EMS", value=config.has_ems, key=_widget_key("has_ems"),
                                         help=TOOLTIPS["has_ems"])
        changes["has_ups"] = st.checkbox("UPS backup", value=config.has_ups, key=_widget_key("has_ups"),
                                         help=TOOLTIPS["has_ups"])
    return changes


# --- Step 5: Financials ---
def render_financials_step(config, catalog):
    st.subheader("💰 Subsidies & Tax Relief")
    changes = {}
    col1, col2 = st.columns(2)
    with col1:
        changes["subsidy_pv"] = st.checkbox("PV subsidy", value=config.subsidy_pv, key=_widget_key("subsidy_pv"),
                                            help=TOOLTIPS["subsidy_pv"])
        changes["subsidy_storage"] = st.checkbox("Storage subsidy", value=config.subsidy_storage,
                                                 key=_widget_key("subsidy_storage"), disabled=not config.has_storage,
                                                 help=TOOLTIPS["subsidy_storage"])
    with col2:
        reliefs = {TaxRelief.NONE: "None", TaxRelief.RATE_12: "12%", TaxRelief.RATE_32: "32%"}
        changes["tax_relief"] = st.radio("Tax relief", list(reliefs.keys()), format_func=reliefs.get,
                                         horizontal=True, index=list(reliefs.keys()).index(config.tax_relief),
                                         key=_widget_key("tax_relief"), help=TOOLTIPS["tax_relief"])
    return changes


def display_financial_results(config, result):
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("System price", f"{result.total_system_price:,.2f} PLN")
    m2.metric("Subsidies", f"{result.total_subsidies:,.2f} PLN")
    m3.metric("Tax return", f"{result.tax_return:,.2f} PLN")
    m4.metric("Net investment", f"{result.net_investment:,.2f} PLN")

    if result.limited_by_cap_pv:
        st.caption("PV subsidy limited to 50% of the PV cost.")
    if result.limited_by_cap_storage:
        st.caption("Storage subsidy limited to 50% of the storage cost.")
    if result.is_cash_positive:
        st.success("Incentives exceed the system price: the client starts with a positive balance.", icon="🎉")

    st.metric("Payback", f"Year {result.payback_year}" if result.payback_year else "Not within 20 years")

    # --- 20-year balance chart ---
    projection_df = projection_to_dataframe(result.chart_data)
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=projection_df.index, y=projection_df["Balance (PLN)"], name="Cumulative balance",
        marker_color=["#2E8B57" if v >= 0 else "#DC143C" for v in projection_df["Balance (PLN)"]]
    ))
    fig.add_trace(go.Scatter(x=projection_df.index, y=projection_df["Savings (PLN)"], name="Yearly savings",
                             mode="lines+markers", line=dict(color="orange")))
    if result.payback_year:
        fig.add_vline(x=result.payback_year, line_dash="dash", line_color="green",
                      annotation_text=f"Payback: Year {result.payback_year}")
    fig.update_layout(title_text="20-Year Investment Balance", xaxis_title="Year", yaxis_title="PLN")
    st.plotly_chart(fig, use_container_width=True)

    display_loan_calculator(result)


def display_loan_calculator(result):
    with st.expander("🏦 Loan Calculator"):
        l1, l2, l3 = st.columns(3)
        term_months = l1.number_input("Term (months)", min_value=1, max_value=240, value=120, step=12,
                                      key="loan_term_months")
        rate = l2.number_input("Interest rate (%/year)", min_value=0.0, max_value=30.0, value=9.0, step=0.1,
                               key="loan_rate")
        deferment = l3.number_input("Deferment (months)", min_value=0, max_value=12, value=0, step=1,
                                    key="loan_deferment", help=TOOLTIPS["loan_deferment"])

        installment = compute_loan_payment(result.total_system_price, term_months, rate)
        st.metric("Monthly installment", f"{installment:,.2f} PLN")
        st.caption(f"First payment: {first_payment_date(deferment).strftime('%Y-%m-%d')}")

        comparison = compare_loan_to_bill(result.total_system_price, result.net_investment,
                                          result.monthly_bill, term_months, rate)
        comparison_df = pd.DataFrame([
            {"Financed amount": label.title(),
             "Installment (PLN)": values["installment"],
             "Current bill (PLN)": result.monthly_bill,
             "Difference (PLN)": values["difference"],
             "% of bill": values["percent_of_bill"]}
            for label, values in comparison.items()
        ])
        st.dataframe(comparison_df, hide_index=True, use_container_width=True)

        schedule_df = amortization_schedule(result.total_system_price, term_months, rate)
        if not schedule_df.empty:
            st.dataframe(schedule_df.style.format(
                {"Payment": "{:,.2f}", "Interest": "{:,.2f}", "Principal": "{:,.2f}", "Remaining Balance": "{:,.2f}"}
            ), hide_index=True, use_container_width=True)


# --- Step 6: Summary ---
def display_summary(config, result):
    st.subheader("📋 Offer Summary")
    client = config.new_client.name if config.is_new_client else config.client_id
    st.write(f"**Client:** {client}")
    st.write(f"**System:** {result.system_power_kw:.2f} kWp, {result.panel.name or 'no panel'} x {config.panel_count}")
    st.write(f"**Inverter:** {result.inverter.name or 'N/A'}")
    st.write(f"**Storage:** {result.storage.name or 'N/A'}")

    costs = result.costs
    cost_df = pd.DataFrame({
        "Item": ["Panels", "Inverter", "Storage", "Mounting", "Trench", "Labor", "EMS", "UPS", "Markups"],
        "Amount (PLN)": [costs.cost_panels, costs.cost_inverter, costs.cost_storage, costs.cost_mounting,
                         costs.cost_trench, costs.cost_labor, costs.cost_ems, costs.cost_ups,
                         result.applied_markup + result.personal_markup],
    })
    st.dataframe(cost_df.style.format({"Amount (PLN)": "{:,.2f}"}), hide_index=True, use_container_width=True)
    st.metric("Final price", f"{result.total_system_price:,.2f} PLN")

    if st.button("Save Offer", type="primary", icon=":material/save:", use_container_width=True,
                 key="save_offer_btn"):
        offer = freeze_offer(config, result)
        customer_id = config.client_id
        if config.is_new_client:
            customer_id = f"c{len(st.session_state.customers) + 1}"
            st.session_state.customers.append({"id": customer_id, "name": config.new_client.name,
                                               "address": config.new_client.address})
        st.session_state.saved_offers.append({"customer_id": customer_id, "offer": offer})
        st.session_state.quote_config = QuoteConfiguration()
        _reset_widgets()
        st.toast(f"Offer saved: {offer.name}", icon="✅")
        st.rerun()


INPUT_STEP_RENDERERS = {
    1: render_client_step,
    2: render_energy_step,
    3: render_components_step,
    4: render_mounting_step,
    5: render_financials_step,
}


def display_offer_wizard_screen(inventory_records, salesperson_settings, org_settings, is_higher_pricing_tier,
                                connection_rule=ConnectionRule.INVERTER_ADDITIVE):
    st.title("☀️ PV Offer Wizard")
    config = st.session_state.quote_config

    st.markdown(generate_progress_bar_markdown(WIZARD_STEPS, config.step), unsafe_allow_html=True)
    st.markdown("---")

    catalog = catalog_from_records(inventory_records)
    renderer = INPUT_STEP_RENDERERS.get(config.step)
    if renderer:
        changes = renderer(config, catalog)
        if changes:
            config = config.with_changes(**changes)
            st.session_state.quote_config = config

    result = cached_compute_offer(
        config.to_dict(), inventory_records, salesperson_settings,
        org_settings, is_higher_pricing_tier, connection_rule.value
    )

    if config.step == 3:
        acknowledgment = render_connection_power_check(config, result)
        if acknowledgment:
            config = config.with_changes(**acknowledgment)
            st.session_state.quote_config = config
    elif config.step == 5:
        display_financial_results(config, result)
    elif config.step == 6:
        display_summary(config, result)

    errors, warnings = validate_configuration(config)
    for message in errors:
        st.error(message)
    if config.step >= 3:
        for message in warnings:
            st.warning(message)

    # Navigation
    st.markdown("---")
    reason = blocking_reason(config.step, config, result)
    if reason and config.step < LAST_STEP:
        st.info(reason)
    nav_col1, nav_col2 = st.columns(2)
    with nav_col1:
        if st.button("⬅️ Back", use_container_width=True, disabled=config.step == FIRST_STEP, key="wizard_back"):
            st.session_state.quote_config = previous_step(config)
            st.rerun()
    with nav_col2:
        if config.step < LAST_STEP:
            label = "Accept the risk first" if config.step == 3 and reason else "Next ➡️"
            if st.button(label, type="primary", use_container_width=True, disabled=reason is not None,
                         key="wizard_next"):
                st.session_state.quote_config = next_step(config, result)
                ui_logger.info(f"Wizard moved to step {st.session_state.quote_config.step}")
                st.rerun()

    return result

import math
import logging
import numpy as np
import pandas as pd
from solarquote_engine.catalog import items_in_category, resolve_item
from solarquote_engine.models import (
    ConsumptionMode, MountSurface, ProductCategory, MarkupType, ConnectionRule,
    SalespersonMarginSettings, OrgPricingSettings, CostBreakdown, MarkupBreakdown,
    SubsidyBreakdown, YearProjection, FinancialResult
)
from solarquote_engine.utils import (
    DEFAULT_PANEL_WATTS, OVERSIZING_FACTOR, STORAGE_RATIO_DUAL_TARIFF, STORAGE_RATIO_SINGLE_TARIFF,
    DEFAULT_MOUNTING_PRICE_PER_PANEL, BASE_LABOR_FEE, LABOR_PER_PANEL, EMS_COST, UPS_COST,
    SUBSIDY_CAP_PV, SUBSIDY_CAP_STORAGE, SUBSIDY_SHARE_LIMIT, TAX_RELIEF_RATES,
    PROJECTION_YEARS, BILL_INFLATION_RATE, SPECIFIC_YIELD_KWH_PER_KWP,
    BASE_EFFICIENCY_RATIO, STORAGE_EFFICIENCY_BONUS, EMS_EFFICIENCY_BONUS,
    to_number, is_dual_rate_tariff, estimate_annual_consumption_from_bill, annual_bill_from_bill_amount
)

calculator_logger = logging.getLogger('offer_calculator')


def _count(value) -> int:
    """Non-negative integer count from a possibly malformed input."""
    return max(0, int(to_number(value)))


# --- Consumption & tariff helpers ---
def resolve_annual_consumption(configuration) -> float:
    """Yearly kWh, derived from the bill in BILL_AMOUNT mode."""
    if configuration.consumption_mode == ConsumptionMode.BILL_AMOUNT:
        return float(estimate_annual_consumption_from_bill(
            configuration.current_bill_amount,
            configuration.billing_period_months,
            configuration.price_per_kwh,
        ))
    return to_number(configuration.consumption_kwh)


def calculate_effective_price(configuration) -> float:
    """
    Price per kWh used for bill and savings valuation.
    Dual-rate tariffs blend peak and off-peak prices by the off-peak share when both are known.
    """
    peak_price = to_number(configuration.price_per_kwh)
    if (is_dual_rate_tariff(configuration.tariff)
            and configuration.price_off_peak is not None
            and configuration.percent_off_peak is not None):
        off_peak_share = min(max(to_number(configuration.percent_off_peak) / 100.0, 0.0), 1.0)
        off_peak_price = to_number(configuration.price_off_peak)
        return peak_price * (1 - off_peak_share) + off_peak_price * off_peak_share
    return peak_price


def calculate_current_annual_bill(configuration, annual_consumption_kwh, effective_price) -> float:
    if configuration.consumption_mode == ConsumptionMode.BILL_AMOUNT:
        return annual_bill_from_bill_amount(configuration.current_bill_amount, configuration.billing_period_months)
    return annual_consumption_kwh * effective_price


# --- Auto-Selection ---
def _is_phase_compatible(inverter, phases) -> bool:
    if phases == 1:
        return inverter.phases == 1
    return inverter.phases == 3 or inverter.phases is None


def auto_select_components(configuration, catalog_items) -> dict:
    """
    Suggests panels, inverter and storage for the client's consumption.
    Returns a patch for the configuration; an empty dict when the catalog has no panels.
    """
    panels = items_in_category(catalog_items, ProductCategory.PANEL)
    if not panels:
        calculator_logger.warning("Auto-selection skipped: no panels in the catalog.")
        return {}

    consumption_kwh = resolve_annual_consumption(configuration)
    required_kwp = (consumption_kwh / 1000.0) * OVERSIZING_FACTOR

    panel = panels[0]
    panel_kw = (to_number(panel.power) or DEFAULT_PANEL_WATTS) / 1000.0
    panel_count = max(0, math.ceil(required_kwp / panel_kw))

    inverters = items_in_category(catalog_items, ProductCategory.INVERTER)
    compatible = [inv for inv in inverters if _is_phase_compatible(inv, int(to_number(configuration.phases, 3)))]
    if compatible:
        # min() keeps the first item among equally close ones
        inverter = min(compatible, key=lambda inv: abs(to_number(inv.power) - required_kwp))
    else:
        inverter = inverters[0] if inverters else None

    storage_target_kwh = required_kwp * (
        STORAGE_RATIO_DUAL_TARIFF if is_dual_rate_tariff(configuration.tariff) else STORAGE_RATIO_SINGLE_TARIFF
    )
    # Only the first storage unit is considered; without a capacity no storage is suggested
    storage_items = items_in_category(catalog_items, ProductCategory.ENERGY_STORAGE)
    storage = storage_items[0] if storage_items and to_number(storage_items[0].capacity) > 0 else None
    storage_count = max(1, round(storage_target_kwh / to_number(storage.capacity))) if storage else 1

    patch = {
        "consumption_kwh": consumption_kwh,
        "panel_id": panel.id,
        "panel_count": panel_count,
        "inverter_id": inverter.id if inverter else "",
        "storage_id": storage.id if storage else "",
        "storage_count": storage_count,
        "connection_power_warning_accepted": False,
    }
    calculator_logger.info(
        f"Auto-selected {panel_count} x {panel.id} ({required_kwp:.2f} kWp target), "
        f"inverter {patch['inverter_id'] or '-'}, storage {patch['storage_id'] or '-'} x {storage_count}."
    )
    return patch


# --- Cost Aggregator ---
def aggregate_costs(configuration, catalog_items, salesperson_settings=None) -> CostBreakdown:
    settings = salesperson_settings or SalespersonMarginSettings()
    panel_count = _count(configuration.panel_count)

    panel = resolve_item(catalog_items, configuration.panel_id, ProductCategory.PANEL)
    inverter = resolve_item(catalog_items, configuration.inverter_id, ProductCategory.INVERTER)
    storage = resolve_item(catalog_items, configuration.storage_id, ProductCategory.ENERGY_STORAGE)
    mounting = resolve_item(catalog_items, configuration.mounting_system_id, ProductCategory.ACCESSORIES)

    mounting_price = mounting.price if mounting.found and mounting.price > 0 else DEFAULT_MOUNTING_PRICE_PER_PANEL
    storage_count = _count(configuration.storage_count) if configuration.has_storage else 0

    cost_trench = 0.0
    if configuration.mount_surface == MountSurface.GROUND:
        billable_meters = max(0.0, to_number(configuration.trench_length_m) - to_number(settings.trench_free_meters))
        cost_trench = billable_meters * to_number(settings.trench_rate_per_meter)

    return CostBreakdown(
        cost_panels=panel.price * panel_count,
        cost_inverter=inverter.price,
        cost_storage=storage.price * storage_count,
        cost_mounting=mounting_price * panel_count,
        cost_trench=cost_trench,
        cost_labor=BASE_LABOR_FEE + LABOR_PER_PANEL * panel_count,
        cost_ems=EMS_COST if configuration.has_ems else 0.0,
        cost_ups=UPS_COST if configuration.has_ups else 0.0,
    )


# --- Markup Layer ---
def apply_markups(configuration, costs, salesperson_settings=None, org_settings=None,
                  is_higher_pricing_tier=False) -> MarkupBreakdown:
    """
    Organization markup (higher pricing tier only) on the cost subtotal, plus the
    salesperson's flat margins for the PV and storage parts actually sold.
    """
    settings = salesperson_settings or SalespersonMarginSettings()
    org = org_settings or OrgPricingSettings()

    applied_markup = 0.0
    if is_higher_pricing_tier:
        subtotal = costs.cost_pv_total + costs.cost_storage_total
        if org.markup_type == MarkupType.PERCENT:
            applied_markup = subtotal * (to_number(org.markup_value) / 100.0)
        else:
            applied_markup = to_number(org.markup_value)

    personal_margin_pv = to_number(settings.margin_pv) if _count(configuration.panel_count) > 0 else 0.0
    personal_margin_storage = to_number(settings.margin_storage) if configuration.has_storage else 0.0

    return MarkupBreakdown(
        applied_markup=applied_markup,
        personal_markup=personal_margin_pv + personal_margin_storage,
        personal_margin_pv=personal_margin_pv,
        personal_margin_storage=personal_margin_storage,
    )


def calculate_total_system_price(costs, markups) -> float:
    return costs.cost_pv_total + costs.cost_storage_total + markups.applied_markup + markups.personal_markup


# --- Subsidy Calculator ---
def calculate_subsidies(configuration, costs, markups) -> SubsidyBreakdown:
    """
    Each subsidy is the smaller of its fixed ceiling and half of the marked-up category cost.
    The organization markup counts towards the PV base only.
    """
    subsidy_pv, limited_by_cap_pv = 0.0, False
    if configuration.subsidy_pv:
        pv_base = costs.cost_pv_total + markups.applied_markup + markups.personal_margin_pv
        cap = pv_base * SUBSIDY_SHARE_LIMIT
        subsidy_pv = min(SUBSIDY_CAP_PV, cap)
        limited_by_cap_pv = cap < SUBSIDY_CAP_PV

    subsidy_storage, limited_by_cap_storage = 0.0, False
    if configuration.subsidy_storage and configuration.has_storage:
        storage_base = costs.cost_storage_total + markups.personal_margin_storage
        cap = storage_base * SUBSIDY_SHARE_LIMIT
        subsidy_storage = min(SUBSIDY_CAP_STORAGE, cap)
        limited_by_cap_storage = cap < SUBSIDY_CAP_STORAGE

    return SubsidyBreakdown(
        subsidy_pv=subsidy_pv,
        subsidy_storage=subsidy_storage,
        limited_by_cap_pv=limited_by_cap_pv,
        limited_by_cap_storage=limited_by_cap_storage,
    )


# --- Tax Relief & Net Investment ---
def calculate_tax_return(total_system_price, tax_relief) -> float:
    rate = TAX_RELIEF_RATES.get(getattr(tax_relief, "value", tax_relief), 0.0)
    return total_system_price * rate


def resolve_net_investment(total_system_price, tax_return, total_subsidies) -> float:
    """Not floored at zero: a negative value means incentives exceed the price."""
    return total_system_price - tax_return - total_subsidies


# --- ROI Projector ---
def calculate_efficiency_ratio(has_storage, has_ems) -> float:
    """Share of production value that offsets the bill, clamped to [0, 1]."""
    ratio = BASE_EFFICIENCY_RATIO
    if has_storage:
        ratio += STORAGE_EFFICIENCY_BONUS
    if has_ems:
        ratio += EMS_EFFICIENCY_BONUS
    return min(max(ratio, 0.0), 1.0)


def project_roi(net_investment, current_annual_bill, system_power_kw, effective_price, efficiency_ratio,
                years=PROJECTION_YEARS):
    """
    Year-by-year cumulative balance, starting from the negative net investment.
    Bills grow with BILL_INFLATION_RATE; yearly savings never exceed that year's bill.
    Returns (chart_data, payback_year); payback_year is None if the balance never turns non-negative.
    """
    year_numbers = np.arange(1, years + 1)
    yearly_bills = current_annual_bill * (1 + BILL_INFLATION_RATE) ** (year_numbers - 1)
    production_value = system_power_kw * SPECIFIC_YIELD_KWH_PER_KWP * effective_price * efficiency_ratio
    yearly_savings = np.minimum(yearly_bills, production_value)
    balances = -net_investment + np.cumsum(yearly_savings)

    chart_data = tuple(
        YearProjection(year=int(year), balance=float(balance), savings=float(savings))
        for year, balance, savings in zip(year_numbers, balances, yearly_savings)
    )
    reached = np.flatnonzero(balances >= 0)
    payback_year = int(year_numbers[reached[0]]) if reached.size else None
    return chart_data, payback_year


def projection_to_dataframe(chart_data) -> pd.DataFrame:
    """Chart data as a DataFrame indexed by year, for tables and plotting."""
    df = pd.DataFrame(
        [{"Year": p.year, "Balance (PLN)": p.balance, "Savings (PLN)": p.savings} for p in chart_data],
        columns=["Year", "Balance (PLN)", "Savings (PLN)"]
    )
    return df.set_index("Year")


# --- Connection power check ---
def calculate_power_to_check(system_power_kw, inverter_power_kw,
                             connection_rule=ConnectionRule.INVERTER_ADDITIVE) -> float:
    """
    Power compared against the grid connection limit.
    INVERTER_ADDITIVE adds the inverter power to the array when the inverter is larger;
    MAX_OF_BOTH takes the larger of the two.
    """
    if connection_rule == ConnectionRule.MAX_OF_BOTH:
        return max(inverter_power_kw, system_power_kw)
    if inverter_power_kw > system_power_kw:
        return inverter_power_kw + system_power_kw
    return system_power_kw


# --- Input validation (UI boundary) ---
def validate_configuration(configuration):
    """Check configuration invariants. Returns (errors, warnings) as lists of messages."""
    errors = []
    warnings = []

    if to_number(configuration.panel_count) < 0:
        errors.append("Panel count cannot be negative.")
    if configuration.has_storage and to_number(configuration.storage_count) < 1:
        errors.append("Storage count must be at least 1 when storage is selected.")
    if configuration.consumption_mode == ConsumptionMode.BILL_AMOUNT:
        if to_number(configuration.current_bill_amount) < 0:
            errors.append("Bill amount cannot be negative.")
        if to_number(configuration.billing_period_months) <= 0:
            errors.append("Billing period must be at least one month.")
    elif to_number(configuration.consumption_kwh) < 0:
        errors.append("Yearly consumption cannot be negative.")
    if to_number(configuration.price_per_kwh) < 0:
        errors.append("Energy price cannot be negative.")
    if to_number(configuration.connection_power_kw) < 0:
        errors.append("Connection power cannot be negative.")
    if configuration.mount_surface == MountSurface.GROUND and to_number(configuration.trench_length_m) < 0:
        errors.append("Trench length cannot be negative.")

    if is_dual_rate_tariff(configuration.tariff):
        if configuration.price_off_peak is None or configuration.percent_off_peak is None:
            warnings.append("Dual-rate tariff without off-peak price or share: the flat price is used.")
        elif not 0 <= to_number(configuration.percent_off_peak) <= 100:
            errors.append("Off-peak share must be between 0 and 100%.")

    if configuration.subsidy_storage and not configuration.has_storage:
        warnings.append("Storage subsidy is elected but no storage is selected; it has no effect.")
    if not configuration.panel_id:
        warnings.append("No panel selected.")

    return errors, warnings


# --- Main orchestrator ---
def compute_offer(configuration, catalog_items, salesperson_settings=None, org_settings=None,
                  is_higher_pricing_tier=False, connection_rule=ConnectionRule.INVERTER_ADDITIVE) -> FinancialResult:
    """
    Re-derives every financial output of an offer from scratch.
    Pure and total: missing components contribute zero and malformed numbers are treated as 0.
    """
    settings = salesperson_settings or SalespersonMarginSettings()

    panel = resolve_item(catalog_items, configuration.panel_id, ProductCategory.PANEL)
    inverter = resolve_item(catalog_items, configuration.inverter_id, ProductCategory.INVERTER)
    storage = resolve_item(catalog_items, configuration.storage_id, ProductCategory.ENERGY_STORAGE)

    # 1. Costs, markups and price
    costs = aggregate_costs(configuration, catalog_items, settings)
    markups = apply_markups(configuration, costs, settings, org_settings, is_higher_pricing_tier)
    total_system_price = calculate_total_system_price(costs, markups)

    # 2. Incentives
    subsidies = calculate_subsidies(configuration, costs, markups)
    tax_return = calculate_tax_return(total_system_price, configuration.tax_relief)
    net_investment = resolve_net_investment(total_system_price, tax_return, subsidies.total_subsidies)

    # 3. Energy profile
    panel_count = _count(configuration.panel_count)
    system_power_kw = panel.power * panel_count / 1000.0
    storage_capacity_kwh = storage.capacity * _count(configuration.storage_count) if configuration.has_storage else 0.0
    annual_consumption_kwh = resolve_annual_consumption(configuration)
    effective_price = calculate_effective_price(configuration)
    current_annual_bill = calculate_current_annual_bill(configuration, annual_consumption_kwh, effective_price)
    efficiency_ratio = calculate_efficiency_ratio(configuration.has_storage, configuration.has_ems)

    # 4. ROI projection
    chart_data, payback_year = project_roi(
        net_investment, current_annual_bill, system_power_kw, effective_price, efficiency_ratio
    )

    # 5. Connection power
    power_to_check = calculate_power_to_check(system_power_kw, inverter.power, connection_rule)
    exceeds_connection_power = power_to_check > to_number(configuration.connection_power_kw)

    calculator_logger.debug(
        f"Offer recomputed: price={total_system_price:.2f}, subsidies={subsidies.total_subsidies:.2f}, "
        f"net={net_investment:.2f}, payback={payback_year}, power_to_check={power_to_check:.2f} kW"
    )

    return FinancialResult(
        total_system_price=total_system_price,
        subsidy_pv=subsidies.subsidy_pv,
        subsidy_storage=subsidies.subsidy_storage,
        total_subsidies=subsidies.total_subsidies,
        limited_by_cap_pv=subsidies.limited_by_cap_pv,
        limited_by_cap_storage=subsidies.limited_by_cap_storage,
        tax_return=tax_return,
        net_investment=net_investment,
        chart_data=chart_data,
        payback_year=payback_year,
        exceeds_connection_power=exceeds_connection_power,
        power_to_check=power_to_check,
        system_power_kw=system_power_kw,
        inverter_power_kw=inverter.power,
        storage_capacity_kwh=storage_capacity_kwh,
        effective_price_per_kwh=effective_price,
        efficiency_ratio=efficiency_ratio,
        annual_consumption_kwh=annual_consumption_kwh,
        current_annual_bill=current_annual_bill,
        monthly_bill=current_annual_bill / 12.0,
        costs=costs,
        markups=markups,
        panel=panel,
        inverter=inverter,
        storage=storage,
    )

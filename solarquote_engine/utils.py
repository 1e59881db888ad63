import math

# --- Important Constants ---
DEFAULT_PRICE_PER_KWH = 1.15  # PLN/kWh, used when a bill has to be converted without a price
DEFAULT_PANEL_WATTS = 400  # Fallback for panels without a rated power (auto-selection only)

OVERSIZING_FACTOR = 1.2  # 20% margin over yearly consumption when sizing the array
STORAGE_RATIO_DUAL_TARIFF = 1.1  # kWh of storage per kWp on G12-style tariffs
STORAGE_RATIO_SINGLE_TARIFF = 0.7

# Installation costs (PLN)
DEFAULT_MOUNTING_PRICE_PER_PANEL = 120
BASE_LABOR_FEE = 1500
LABOR_PER_PANEL = 100
EMS_COST = 1500  # Energy management system add-on
UPS_COST = 2500  # Battery backup add-on
DEFAULT_TRENCH_RATE_PER_METER = 100

# "Moj Prad" subsidy ceilings, each also capped at 50% of the marked-up category cost
SUBSIDY_CAP_PV = 7000
SUBSIDY_CAP_STORAGE = 16000
SUBSIDY_SHARE_LIMIT = 0.5

# Thermo-modernisation tax relief tiers
TAX_RELIEF_RATES = {
    "NONE": 0.0,
    "12": 0.12,
    "32": 0.32,
}

# ROI projection assumptions
PROJECTION_YEARS = 20
BILL_INFLATION_RATE = 0.08
SPECIFIC_YIELD_KWH_PER_KWP = 1000  # Flat yield, no geographic or seasonal adjustment
BASE_EFFICIENCY_RATIO = 0.6  # Share of production value that offsets the bill
STORAGE_EFFICIENCY_BONUS = 0.2
EMS_EFFICIENCY_BONUS = 0.05

DUAL_RATE_TARIFFS = ("G12", "G12w", "C12a", "C12b")


# --- Static Tooltips / Helper Texts ---
TOOLTIPS = {
    # --- Step 1: Client ---
    "client_select": "Pick an existing customer or create a new client draft. A new client needs at least a name.",

    # --- Step 2: Energy ---
    "tariff": "Dual-rate tariffs (G12, G12w, C12a, C12b) blend the day and night prices using the night share below.",
    "consumption_mode": "Enter the yearly consumption directly, or a recent bill and its billing period to estimate it.",
    "connection_power": "The connection power from the grid agreement. The system's power is checked against it.",
    "percent_off_peak": "Share of consumption billed at the off-peak (night) price, 0-100%.",

    # --- Step 3: Components ---
    "auto_select": "Suggests panels, inverter and storage for the consumption above. Every field can be changed afterwards.",
    "connection_power_warning": "The system exceeds the connection power. Accept the risk explicitly to continue.",

    # --- Step 4: Mounting & Add-ons ---
    "trench_length": "Only billed for ground-mounted systems, at the salesperson's per-meter trench rate.",
    "has_ems": "Energy management system. Adds 1,500 PLN and raises the self-consumption estimate.",
    "has_ups": "Battery backup (UPS). Adds 2,500 PLN.",

    # --- Step 5: Financials ---
    "subsidy_pv": "PV subsidy: up to 7,000 PLN, never more than 50% of the PV part of the price.",
    "subsidy_storage": "Storage subsidy: up to 16,000 PLN, never more than 50% of the storage part of the price. Requires storage.",
    "tax_relief": "Tax relief computed from the full gross price.",
    "loan_deferment": "Deferment only moves the first payment date; the installment is not recalculated.",
}


# --- Progress Badge Utility ---
def generate_progress_bar_markdown(step_flow_map, current_step, final_step_completed=False):
    """
    Generates markdown for the wizard progress bar with completed, current, and future steps highlighted.
    """
    current_step_num = step_flow_map.get(current_step, (0, ''))[0]
    if final_step_completed:
        current_step_num = len(step_flow_map) + 1

    progress_display_list = []
    for step_key, (step_num, step_name) in step_flow_map.items():
        if step_num < current_step_num:
            progress_display_list.append(f":green-badge[:material/task_alt: {step_num}: {step_name}]")
        elif step_key == current_step:
            progress_display_list.append(f":violet-badge[:material/screen_record: {step_num}: {step_name}]")
        else:
            progress_display_list.append(f":grey-badge[:material/radio_button_partial: {step_num}: {step_name}]")

    return " **--** ".join(progress_display_list)


def to_number(value, default=0.0):
    """Coerces a possibly missing or malformed numeric input to float."""
    if value is None:
        return default
    try:
        number = float(value)
    except (ValueError, TypeError):
        return default
    if math.isnan(number):
        return default
    return number


def is_dual_rate_tariff(tariff) -> bool:
    return getattr(tariff, "value", tariff) in DUAL_RATE_TARIFFS


# --- Consumption estimate from an electricity bill ---
def estimate_annual_consumption_from_bill(bill_amount, billing_period_months, price_per_kwh):
    """
    Converts a bill covering `billing_period_months` into a yearly kWh estimate.
    Formula: round((bill / period) * 12 / price)
    """
    bill = to_number(bill_amount)
    period = to_number(billing_period_months) or 1
    if period <= 0:
        period = 1
    price = to_number(price_per_kwh)
    if price <= 0:
        price = DEFAULT_PRICE_PER_KWH

    annual_bill = (bill / period) * 12
    return round(annual_bill / price)


def annual_bill_from_bill_amount(bill_amount, billing_period_months):
    """Yearly bill implied by one bill and its billing period (months)."""
    bill = to_number(bill_amount)
    period = to_number(billing_period_months) or 1
    if period <= 0:
        period = 1
    return (bill / period) * 12

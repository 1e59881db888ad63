"""
Typed data model for the offer wizard: configuration, catalog items,
salesperson/org settings, and the derived financial result.
"""

import logging
from dataclasses import dataclass, field, asdict, replace, fields
from enum import Enum
from typing import Optional, Tuple
from solarquote_engine.utils import DEFAULT_TRENCH_RATE_PER_METER
from solarquote_engine.wizard import clamp_step

models_logger = logging.getLogger('models')


class Tariff(str, Enum):
    G11 = "G11"
    G12 = "G12"
    G12W = "G12w"
    C11 = "C11"
    C12A = "C12a"
    C12B = "C12b"


class ConsumptionMode(str, Enum):
    ANNUAL_KWH = "ANNUAL_KWH"
    BILL_AMOUNT = "BILL_AMOUNT"


class MountSurface(str, Enum):
    ROOF = "ROOF"
    GROUND = "GROUND"


class RoofSlope(str, Enum):
    FLAT = "FLAT"
    PITCHED = "PITCHED"


class Orientation(str, Enum):
    SOUTH = "SOUTH"
    EAST_WEST = "EAST_WEST"


class TaxRelief(str, Enum):
    NONE = "NONE"
    RATE_12 = "12"
    RATE_32 = "32"


class ProductCategory(str, Enum):
    PANEL = "PANEL"
    INVERTER = "INVERTER"
    ENERGY_STORAGE = "ENERGY_STORAGE"
    ACCESSORIES = "ACCESSORIES"  # Mounting systems
    ADDONS = "ADDONS"


class PricingTier(str, Enum):
    """Salesperson classification; HIGHER triggers the organization-level markup."""
    STANDARD = "1"
    HIGHER = "2"


class MarkupType(str, Enum):
    PERCENT = "PERCENT"
    FIXED = "FIXED"


class OfferStatus(str, Enum):
    DRAFT = "DRAFT"
    ACCEPTED = "ACCEPTED"


class ConnectionRule(str, Enum):
    """How inverter power counts against the connection limit."""
    INVERTER_ADDITIVE = "INVERTER_ADDITIVE"
    MAX_OF_BOTH = "MAX_OF_BOTH"


def coerce_enum(enum_cls, value, default):
    """Returns `value` as an `enum_cls` member, or `default` if it is not a valid member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        models_logger.warning(f"Unknown {enum_cls.__name__} value {value!r}, using {default.value!r}.")
        return default


@dataclass(frozen=True)
class ClientDraft:
    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""


@dataclass(frozen=True)
class QuoteConfiguration:
    """Everything the salesperson enters in the wizard. Replaced, never mutated, between steps."""
    step: int = 1

    # Step 1: Client
    client_id: str = "ANON"
    is_new_client: bool = False
    new_client: ClientDraft = field(default_factory=ClientDraft)

    # Step 2: Energy
    tariff: Tariff = Tariff.G11
    phases: int = 3
    consumption_mode: ConsumptionMode = ConsumptionMode.ANNUAL_KWH
    consumption_kwh: float = 4000
    current_bill_amount: float = 400
    billing_period_months: int = 1
    connection_power_kw: float = 14
    price_per_kwh: float = 1.15
    price_off_peak: Optional[float] = 0.65
    percent_off_peak: Optional[float] = 40

    # Step 3: Core components
    panel_id: str = ""
    panel_count: int = 10
    inverter_id: str = ""
    storage_id: str = ""
    storage_count: int = 1
    connection_power_warning_accepted: bool = False

    # Step 4: Mounting & add-ons
    mount_surface: MountSurface = MountSurface.ROOF
    roof_slope: Optional[RoofSlope] = RoofSlope.PITCHED
    roof_material: Optional[str] = "DACHOWKA"
    trench_length_m: float = 0
    mounting_system_id: str = ""
    orientation: Orientation = Orientation.SOUTH
    has_ems: bool = False
    has_ups: bool = False

    # Step 5: Financials
    subsidy_pv: bool = True
    subsidy_storage: bool = True
    tax_relief: TaxRelief = TaxRelief.NONE

    @property
    def has_storage(self) -> bool:
        return bool(self.storage_id)

    def with_changes(self, **changes):
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Plain snapshot (enums as their values) for offers and caching keys."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

    @classmethod
    def from_dict(cls, data: dict):
        """Hydrates a configuration from a snapshot. Unknown keys are ignored, missing keys take defaults."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "step" in values:
            values["step"] = clamp_step(values["step"])

        if isinstance(values.get("new_client"), dict):
            draft_keys = {f.name for f in fields(ClientDraft)}
            values["new_client"] = ClientDraft(**{k: v for k, v in values["new_client"].items() if k in draft_keys})

        enum_fields = {
            "tariff": (Tariff, Tariff.G11),
            "consumption_mode": (ConsumptionMode, ConsumptionMode.ANNUAL_KWH),
            "mount_surface": (MountSurface, MountSurface.ROOF),
            "orientation": (Orientation, Orientation.SOUTH),
            "tax_relief": (TaxRelief, TaxRelief.NONE),
        }
        for name, (enum_cls, default) in enum_fields.items():
            if name in values:
                values[name] = coerce_enum(enum_cls, values[name], default)
        if values.get("roof_slope") is not None:
            values["roof_slope"] = coerce_enum(RoofSlope, values["roof_slope"], RoofSlope.PITCHED)

        return cls(**values)


@dataclass(frozen=True)
class CatalogItem:
    """An inventory entry. `power` is W for panels and kW for inverters/storage."""
    id: str
    name: str
    category: ProductCategory
    price: float = 0.0
    power: Optional[float] = None
    capacity: Optional[float] = None  # kWh
    phases: Optional[int] = None
    unit: str = "szt."
    quantity: int = 0
    min_quantity: int = 0
    warranty: str = ""


@dataclass(frozen=True)
class ResolvedItem:
    """A catalog lookup with guaranteed numeric fields; missing items contribute zero."""
    item_id: str = ""
    name: str = ""
    price: float = 0.0
    power: float = 0.0
    capacity: float = 0.0
    phases: Optional[int] = None
    found: bool = False


@dataclass(frozen=True)
class SalespersonMarginSettings:
    """Flat PLN margins per offer category plus the salesperson's trench pricing."""
    margin_pv: float = 0.0
    margin_storage: float = 0.0
    margin_hybrid: float = 0.0  # PV + storage sold together (reported, not applied by the PV calculator)
    margin_heat: float = 0.0
    trench_rate_per_meter: float = DEFAULT_TRENCH_RATE_PER_METER
    trench_free_meters: float = 0.0


@dataclass(frozen=True)
class OrgPricingSettings:
    markup_type: MarkupType = MarkupType.PERCENT
    markup_value: float = 0.0


@dataclass(frozen=True)
class CostBreakdown:
    cost_panels: float = 0.0
    cost_inverter: float = 0.0
    cost_storage: float = 0.0
    cost_mounting: float = 0.0
    cost_trench: float = 0.0
    cost_labor: float = 0.0
    cost_ems: float = 0.0
    cost_ups: float = 0.0

    @property
    def cost_pv_total(self) -> float:
        return (self.cost_panels + self.cost_inverter + self.cost_mounting + self.cost_labor
                + self.cost_trench + self.cost_ems + self.cost_ups)

    @property
    def cost_storage_total(self) -> float:
        return self.cost_storage


@dataclass(frozen=True)
class MarkupBreakdown:
    applied_markup: float = 0.0  # Organization markup (higher pricing tier only)
    personal_markup: float = 0.0
    personal_margin_pv: float = 0.0
    personal_margin_storage: float = 0.0


@dataclass(frozen=True)
class SubsidyBreakdown:
    subsidy_pv: float = 0.0
    subsidy_storage: float = 0.0
    limited_by_cap_pv: bool = False
    limited_by_cap_storage: bool = False

    @property
    def total_subsidies(self) -> float:
        return self.subsidy_pv + self.subsidy_storage


@dataclass(frozen=True)
class YearProjection:
    year: int
    balance: float  # Cumulative balance at the end of the year
    savings: float  # Savings during the year


@dataclass(frozen=True)
class FinancialResult:
    total_system_price: float
    subsidy_pv: float
    subsidy_storage: float
    total_subsidies: float
    limited_by_cap_pv: bool
    limited_by_cap_storage: bool
    tax_return: float
    net_investment: float
    chart_data: Tuple[YearProjection, ...]
    payback_year: Optional[int]  # None when the balance never turns non-negative
    exceeds_connection_power: bool
    power_to_check: float
    system_power_kw: float
    inverter_power_kw: float
    storage_capacity_kwh: float
    effective_price_per_kwh: float
    efficiency_ratio: float
    annual_consumption_kwh: float
    current_annual_bill: float
    monthly_bill: float
    costs: CostBreakdown
    markups: MarkupBreakdown
    panel: ResolvedItem
    inverter: ResolvedItem
    storage: ResolvedItem

    @property
    def applied_markup(self) -> float:
        return self.markups.applied_markup

    @property
    def personal_markup(self) -> float:
        return self.markups.personal_markup

    @property
    def is_cash_positive(self) -> bool:
        """Incentives alone exceed the price."""
        return self.net_investment < 0


@dataclass(frozen=True)
class Offer:
    id: str
    name: str
    date_created: str
    final_price: float
    calculator_state: dict
    applied_markup: float = 0.0
    personal_markup: float = 0.0
    status: OfferStatus = OfferStatus.DRAFT

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data

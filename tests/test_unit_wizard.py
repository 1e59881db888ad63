import sys
import os
import pytest

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.insert(0, project_root)

from solarquote_engine.catalog import catalog_from_records
from solarquote_engine.catalog_definitions import DEFAULT_INVENTORY
from solarquote_engine.models import QuoteConfiguration, ClientDraft, Tariff, TaxRelief, RoofSlope
from solarquote_engine.offer_calculator_logic import compute_offer
from solarquote_engine.wizard import can_proceed, blocking_reason, next_step, previous_step, clamp_step


@pytest.fixture
def catalog():
    return catalog_from_records(DEFAULT_INVENTORY)


@pytest.fixture
def oversized_config():
    """30 x 440 W = 13.2 kWp with a 15 kW inverter: 28.2 kW against a 14 kW connection."""
    return QuoteConfiguration(step=3, panel_id="p1", panel_count=30, inverter_id="i5", connection_power_kw=14)


def test_step_three_blocked_until_risk_accepted(oversized_config, catalog):
    result = compute_offer(oversized_config, catalog)
    assert result.exceeds_connection_power is True
    assert can_proceed(3, oversized_config, result) is False
    assert "28.20 kW" in blocking_reason(3, oversized_config, result)
    assert next_step(oversized_config, result).step == 3

    accepted = oversized_config.with_changes(connection_power_warning_accepted=True)
    assert can_proceed(3, accepted, result) is True
    assert next_step(accepted, result).step == 4


def test_other_steps_ignore_connection_power(oversized_config, catalog):
    result = compute_offer(oversized_config, catalog)
    assert can_proceed(4, oversized_config.with_changes(step=4), result) is True


def test_new_client_needs_a_name():
    config = QuoteConfiguration(step=1, is_new_client=True, new_client=ClientDraft(name="  "))
    assert can_proceed(1, config, None) is False
    named = config.with_changes(new_client=ClientDraft(name="Anna Nowak"))
    assert can_proceed(1, named, None) is True


@pytest.mark.parametrize("step, expected", [(-3, 1), (0, 1), (4, 4), (6, 6), (9, 6), ("5", 5), ("x", 1), (None, 1)])
def test_clamp_step(step, expected):
    assert clamp_step(step) == expected


def test_navigation_stays_in_range():
    assert previous_step(QuoteConfiguration(step=1)).step == 1
    assert next_step(QuoteConfiguration(step=6), None).step == 6


def test_configuration_snapshot_round_trip():
    config = QuoteConfiguration(tariff=Tariff.C12A, tax_relief=TaxRelief.RATE_32, roof_slope=RoofSlope.FLAT,
                                new_client=ClientDraft(name="Jan", email="jan@example.com"))
    assert QuoteConfiguration.from_dict(config.to_dict()) == config


def test_configuration_from_dict_tolerates_bad_values():
    config = QuoteConfiguration.from_dict({"tariff": "X99", "unknown_field": 1, "panel_count": 4})
    assert config.tariff == Tariff.G11
    assert config.panel_count == 4


@pytest.mark.parametrize("stored_step, expected", [("abc", 1), ("4", 4), (99, 6), (None, 1)])
def test_configuration_from_dict_normalises_step(stored_step, expected):
    config = QuoteConfiguration.from_dict({"step": stored_step})
    assert config.step == expected
    assert next_step(config, None).step == min(expected + 1, 6)

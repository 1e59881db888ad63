from streamlit.testing.v1 import AppTest
import sys, os

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.insert(0, project_root)

from solarquote_engine.models import QuoteConfiguration, OfferStatus

APP_PATH = os.path.join(project_root, "solarquote_app.py")


def _button(at, label):
    return next((b for b in at.button if b.label == label), None)


def test_wizard_starts_on_client_step():
    at = AppTest.from_file(APP_PATH).run()

    assert not at.exception
    assert "PV Offer Wizard" in at.title[0].value
    assert at.session_state.quote_config.step == 1
    assert _button(at, "⬅️ Back").disabled


def test_next_moves_to_energy_step():
    at = AppTest.from_file(APP_PATH).run()
    _button(at, "Next ➡️").click().run()

    assert not at.exception
    assert at.session_state.quote_config.step == 2
    assert any(s.value == "⚡ Energy Profile" for s in at.subheader)


def test_connection_power_gate_blocks_until_accepted():
    """
    30 x 440 W panels with a 15 kW inverter exceed a 14 kW connection;
    the wizard stays on step 3 until the risk is accepted.
    """
    at = AppTest.from_file(APP_PATH)
    at.session_state["quote_config"] = QuoteConfiguration(
        step=3, panel_id="p1", panel_count=30, inverter_id="i5", connection_power_kw=14
    )
    at.run()

    assert not at.exception
    blocked = _button(at, "Accept the risk first")
    assert blocked is not None
    assert blocked.disabled

    at.checkbox(key="connection_power_warning_accepted_0").check().run()
    assert at.session_state.quote_config.connection_power_warning_accepted is True

    next_button = _button(at, "Next ➡️")
    assert next_button is not None
    assert not next_button.disabled
    next_button.click().run()
    assert at.session_state.quote_config.step == 4


def test_save_and_accept_offer():
    at = AppTest.from_file(APP_PATH)
    at.session_state["quote_config"] = QuoteConfiguration(
        step=6, client_id="c1", panel_id="p2", panel_count=10, inverter_id="i2"
    )
    at.run()

    assert not at.exception
    _button(at, "Save Offer").click().run()

    assert len(at.session_state.saved_offers) == 1
    saved = at.session_state.saved_offers[0]
    assert saved["customer_id"] == "c1"
    assert saved["offer"].name == "PV Installation 4.35 kWp (Roof)"
    assert at.session_state.quote_config.step == 1

    at.button(key="accept_offer_0").click().run()

    assert at.session_state.saved_offers[0]["offer"].status == OfferStatus.ACCEPTED
    assert len(at.session_state.installations) == 1
    installation = at.session_state.installations[0]
    assert installation["status"] == "AUDIT"
    assert installation["address"] == "ul. Sloneczna 5, Krakow"

import sys
import os
import pytest
import pandas as pd

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.insert(0, project_root)

from solarquote_engine.loan_calculator import (
    compute_loan_payment, first_payment_date, amortization_schedule, compare_loan_to_bill
)


def test_reference_annuity_payment():
    assert compute_loan_payment(100000, 120, 9.0) == pytest.approx(1266.76, abs=0.5)


@pytest.mark.parametrize("principal, months", [(12000, 12), (50000, 120), (7, 3)])
def test_zero_interest_splits_principal_evenly(principal, months):
    assert compute_loan_payment(principal, months, 0) == principal / months


@pytest.mark.parametrize("principal, months, rate", [(12000, 12, 5.0), (50000, 120, 9.0), (1000, 6, 0.1)])
def test_interest_never_lowers_total_repayment(principal, months, rate):
    assert compute_loan_payment(principal, months, rate) * months >= principal


@pytest.mark.parametrize("principal, months", [(0, 120), (-500, 120), (10000, 0), (10000, -12)])
def test_no_installment_without_principal_or_term(principal, months):
    assert compute_loan_payment(principal, months, 9.0) == 0.0


def test_malformed_inputs_do_not_raise():
    assert compute_loan_payment(None, "abc", None) == 0.0


@pytest.mark.parametrize("deferment, expected", [
    (0, "2025-01-31"),
    (1, "2025-02-28"),
    (6, "2025-07-31"),
])
def test_first_payment_date(deferment, expected):
    assert first_payment_date(deferment, pd.Timestamp("2025-01-31")) == pd.Timestamp(expected)


def test_amortization_schedule_pays_off_principal():
    schedule = amortization_schedule(100000, 120, 9.0)
    assert len(schedule) == 120
    assert schedule["Principal"].sum() == pytest.approx(100000, abs=0.01)
    assert schedule["Remaining Balance"].iloc[-1] == pytest.approx(0, abs=0.01)
    assert schedule["Interest"].iloc[0] == pytest.approx(750)  # 100000 x 0.75%


def test_amortization_schedule_empty_without_loan():
    schedule = amortization_schedule(0, 120, 9.0)
    assert schedule.empty
    assert list(schedule.columns) == ["Month", "Payment", "Interest", "Principal", "Remaining Balance"]


def test_compare_loan_to_bill():
    comparison = compare_loan_to_bill(total_system_price=12000, net_investment=6000, monthly_bill=150,
                                      term_months=120, annual_rate_percent=0)
    assert comparison["gross"]["installment"] == pytest.approx(100)
    assert comparison["gross"]["difference"] == pytest.approx(50)
    assert comparison["gross"]["is_cheaper_than_bill"] is True
    assert comparison["net"]["installment"] == pytest.approx(50)
    assert comparison["net"]["percent_of_bill"] == pytest.approx(100 / 3)


def test_compare_loan_to_bill_without_bill():
    comparison = compare_loan_to_bill(12000, 6000, 0, 120, 9.0)
    assert comparison["gross"]["percent_of_bill"] is None
    assert comparison["gross"]["is_cheaper_than_bill"] is False

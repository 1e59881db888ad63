import logging
import pandas as pd
from solarquote_engine.utils import to_number

loan_logger = logging.getLogger('loan_calculator')


def compute_loan_payment(principal, term_months, annual_rate_percent) -> float:
    """
    Monthly installment of a fixed-rate annuity loan.
    Formula: P * r * (1 + r)^n / ((1 + r)^n - 1), with r = annual % / 12 / 100.
    Zero interest splits the principal evenly; no term or no principal means no installment.
    """
    principal = to_number(principal)
    n = int(to_number(term_months))
    if n <= 0 or principal <= 0:
        return 0.0

    r = to_number(annual_rate_percent) / 12 / 100
    if r == 0:
        return principal / n
    growth = (1 + r) ** n
    return principal * r * growth / (growth - 1)


def first_payment_date(deferment_months, today=None) -> pd.Timestamp:
    """Date of the first installment. Deferment only shifts the date, it never changes the installment."""
    start = pd.Timestamp(today) if today is not None else pd.Timestamp.today()
    return start.normalize() + pd.DateOffset(months=max(0, int(to_number(deferment_months))))


def amortization_schedule(principal, term_months, annual_rate_percent) -> pd.DataFrame:
    """Month-by-month split of each installment into interest and principal."""
    columns = ["Month", "Payment", "Interest", "Principal", "Remaining Balance"]
    payment = compute_loan_payment(principal, term_months, annual_rate_percent)
    if payment <= 0:
        return pd.DataFrame(columns=columns)

    r = to_number(annual_rate_percent) / 12 / 100
    balance = to_number(principal)
    rows = []
    for month in range(1, int(to_number(term_months)) + 1):
        interest = balance * r
        principal_part = payment - interest
        balance = max(0.0, balance - principal_part)
        rows.append([month, payment, interest, principal_part, balance])

    return pd.DataFrame(rows, columns=columns)


def compare_loan_to_bill(total_system_price, net_investment, monthly_bill, term_months, annual_rate_percent):
    """
    Compares the installment (on the gross price and on the net investment after incentives)
    against the client's current monthly electricity bill.
    """
    monthly_bill = to_number(monthly_bill)
    results = {}
    for label, principal in (("gross", total_system_price), ("net", net_investment)):
        installment = compute_loan_payment(principal, term_months, annual_rate_percent)
        difference = monthly_bill - installment
        results[label] = {
            "installment": installment,
            "difference": difference,
            "is_cheaper_than_bill": installment < monthly_bill,
            "percent_of_bill": (installment / monthly_bill) * 100 if monthly_bill > 0 else None,
        }

    loan_logger.debug(
        f"Loan vs bill: gross installment {results['gross']['installment']:.2f}, "
        f"net installment {results['net']['installment']:.2f}, monthly bill {monthly_bill:.2f}"
    )
    return results

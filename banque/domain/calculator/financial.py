"""Loan calculation functions.

Amortizing-loan maths used by the credit ratios, the financing table of
the committee report and the outstanding capital tracked in monitoring.
"""

from __future__ import annotations

import numpy_financial as npf


def calculate_monthly_payment(
    principal: float,
    annual_rate_pct: float,
    duration_months: int,
) -> float:
    """Calculate monthly loan payment (principal + interest only).

    Args:
        principal: Loan amount in €
        annual_rate_pct: Annual interest rate as percentage (e.g., 4.0 for 4%)
        duration_months: Loan term in months

    Returns:
        Monthly payment amount in €
    """
    if principal <= 0 or duration_months <= 0:
        return 0.0

    monthly_rate = (annual_rate_pct / 100.0) / 12.0

    if monthly_rate <= 0:
        return principal / duration_months

    return float(-npf.pmt(monthly_rate, duration_months, principal))


def calculate_insurance(
    principal: float,
    annual_insurance_pct: float,
) -> float:
    """Calculate monthly borrower insurance premium.

    Args:
        principal: Initial loan amount in €
        annual_insurance_pct: Annual insurance rate as percentage

    Returns:
        Monthly insurance amount in €
    """
    if principal <= 0:
        return 0.0
    return (principal * (annual_insurance_pct / 100.0)) / 12.0


def calculate_total_monthly_payment(
    principal: float,
    annual_rate_pct: float,
    duration_months: int,
    annual_insurance_pct: float = 0.36,
) -> tuple[float, float, float]:
    """Calculate complete monthly payment breakdown.

    Returns:
        Tuple of (P&I payment, insurance, total payment)
    """
    pmt_pi = calculate_monthly_payment(principal, annual_rate_pct, duration_months)
    pmt_ins = calculate_insurance(principal, annual_insurance_pct)
    return pmt_pi, pmt_ins, pmt_pi + pmt_ins


def calculate_credit_cost(
    principal: float,
    annual_rate_pct: float,
    duration_months: int,
    annual_insurance_pct: float = 0.36,
) -> float:
    """Total interest plus insurance paid over the loan term, in €."""
    if principal <= 0 or duration_months <= 0:
        return 0.0
    _, _, total = calculate_total_monthly_payment(
        principal, annual_rate_pct, duration_months, annual_insurance_pct
    )
    return max(0.0, total * duration_months - principal)


def calculate_remaining_balance(
    principal: float,
    annual_rate_pct: float,
    duration_months: int,
    months_paid: int,
) -> float:
    """Calculate outstanding capital after N monthly payments.

    Args:
        principal: Initial loan amount in €
        annual_rate_pct: Annual interest rate %
        duration_months: Original loan term in months
        months_paid: Number of months already paid

    Returns:
        Remaining balance in €
    """
    if months_paid >= duration_months:
        return 0.0

    if months_paid <= 0:
        return principal

    monthly_rate = (annual_rate_pct / 100.0) / 12.0

    if monthly_rate <= 0:
        return principal * (1 - months_paid / duration_months)

    payment = npf.pmt(monthly_rate, duration_months, principal)
    return max(0.0, float(-npf.fv(monthly_rate, months_paid, payment, principal)))

"""Calculator modules for banque."""

from .alerts import compute_alerts
from .financial import (
    calculate_credit_cost,
    calculate_insurance,
    calculate_monthly_payment,
    calculate_remaining_balance,
    calculate_total_monthly_payment,
)
from .ratios import compute_credit_ratios, guarantee_coverage_pct
from .rentabilite import (
    classify_rental,
    classify_resale,
    compute_all,
    compute_rentabilite,
    compute_scenarios,
    compute_stress_tests,
    form_to_input,
    input_from_dossier,
)
from .scoring import (
    append_score_history,
    build_risk_analysis_patch,
    build_verdict_text,
    compute_input_hash,
    compute_smart_score,
    detect_score_drop,
    resolve_risk_items,
)

__all__ = [
    # Financial
    "calculate_monthly_payment",
    "calculate_insurance",
    "calculate_total_monthly_payment",
    "calculate_credit_cost",
    "calculate_remaining_balance",
    # Rentabilite
    "form_to_input",
    "input_from_dossier",
    "classify_resale",
    "classify_rental",
    "compute_rentabilite",
    "compute_scenarios",
    "compute_stress_tests",
    "compute_all",
    # Ratios
    "compute_credit_ratios",
    "guarantee_coverage_pct",
    # SmartScore
    "compute_smart_score",
    "compute_input_hash",
    "append_score_history",
    "detect_score_drop",
    "resolve_risk_items",
    "build_risk_analysis_patch",
    "build_verdict_text",
    "compute_alerts",
]

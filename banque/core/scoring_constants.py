"""Scoring constants - single source of truth for thresholds and weights.

This module provides the named configuration used by the profitability
decision rules and the SmartScore engine: decision thresholds, pillar
weight table, grade cut-points, verdict cut-points and missing-data penalties.
"""

from typing import TypedDict

from banque.core.exceptions import ConfigurationError


class PillarConfig(TypedDict):
    """Type definition for one SmartScore pillar."""
    label: str
    weight: int            # max points, all weights sum to 100
    missing_severity: str  # severity of the MissingDataItem raised when empty


# Profitability decision thresholds (percentages and euros)
DECISION_THRESHOLDS = {
    # Resale (revente)
    "go_margin_pct": 15.0,
    "go_gross_margin_eur": 30_000.0,
    "go_annualized_pct": 20.0,
    "reserves_margin_pct": 10.0,
    "reserves_annualized_pct": 15.0,
    # Rental (location)
    "go_gross_yield_pct": 5.0,
    "min_monthly_cashflow": 0.0,
}

# Scenario and stress multipliers
SCENARIO_FACTORS = {
    "optimistic": {"resale": 1.03, "works": 0.95},
    "pessimistic": {"resale": 0.95, "works": 1.10},
}

STRESS_FACTORS = {
    "resale_minus_5": {"resale": 0.95},
    "works_plus_10": {"works": 1.10},
}

# Pillar table - order is the display and tie-break order
PILLARS: dict[str, PillarConfig] = {
    "documentation": {"label": "Documentation", "weight": 15, "missing_severity": "warn"},
    "garanties": {"label": "Garanties & Sûretés", "weight": 15, "missing_severity": "warn"},
    "emprunteur": {"label": "Identification emprunteur", "weight": 15, "missing_severity": "blocker"},
    "projet": {"label": "Données projet", "weight": 10, "missing_severity": "blocker"},
    "ratios": {"label": "Ratios financiers", "weight": 20, "missing_severity": "blocker"},
    "risques": {"label": "Risques", "weight": 15, "missing_severity": "warn"},
    "marche": {"label": "Marché", "weight": 10, "missing_severity": "info"},
}

# Grade cut-points on the 0-100 score (E = everything below D)
GRADE_THRESHOLDS = {
    "A": 80,
    "B": 65,
    "C": 50,
    "D": 35,
}

# Verdict cut-points (applied only when no blocker is open)
VERDICT_THRESHOLDS = {
    "favorable": 65,
    "favorable_sous_conditions": 45,
}

# Points removed per missing data item, by severity
MISSING_PENALTY_POINTS = {
    "blocker": 5,
    "warn": 2,
    "info": 0,
}

MAX_RECOMMENDATIONS = 8
MAX_DRIVERS = 3
SCORE_HISTORY_LIMIT = 50
ENGINE_VERSION = "banque.smartscore.v3"


def validate_pillars(pillars: dict[str, PillarConfig]) -> bool:
    """Validate that pillar weights sum to 100 and severities are known.

    Args:
        pillars: Pillar table to validate

    Returns:
        True if valid, raises ConfigurationError otherwise
    """
    total = sum(p["weight"] for p in pillars.values())
    if total != 100:
        raise ConfigurationError(f"Pillar weights must sum to 100, got {total}")

    unknown = {p["missing_severity"] for p in pillars.values()} - set(MISSING_PENALTY_POINTS)
    if unknown:
        raise ConfigurationError(f"Unknown missing severities: {sorted(unknown)}")

    return True

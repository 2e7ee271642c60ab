"""Profitability engine.

Pure functions turning budget and revenue inputs into profitability metrics
and a GO / GO_WITH_RESERVES / NO_GO decision. Scenarios and stress tests are
independent full re-runs of :func:`compute_rentabilite` on perturbed inputs.

Internal computation keeps full precision; published metrics are rounded to
2 decimals. Malformed inputs never raise: they parse to 0.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from banque.core.formatting import format_eur, format_pct, parse_number_fr, round2
from banque.core.scoring_constants import DECISION_THRESHOLDS, SCENARIO_FACTORS, STRESS_FACTORS
from banque.domain.models import (
    Decision,
    Dossier,
    RentabiliteInput,
    RentabiliteResult,
    RentabiliteScenarios,
    RentabiliteSnapshot,
    RentabiliteStressTests,
    Strategy,
)

# Form fields parsed as fr-FR numbers
NUMERIC_FIELDS = (
    "prix_achat",
    "frais_notaire_pct",
    "budget_travaux",
    "frais_divers",
    "duree_mois",
    "surface",
    "prix_revente_cible",
    "loyer_mensuel",
    "charges_mensuelles",
    "taxe_fonciere_annuelle",
    "tmi_pct",
    "flat_tax_pct",
    "apport",
)

_TRUTHY = {"1", "true", "oui", "yes", "on"}


def _parse_flag(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUTHY
    return bool(raw)


def _parse_strategy(raw: Any) -> Strategy:
    try:
        return Strategy(raw)
    except ValueError:
        return Strategy.REVENTE


def form_to_input(form: Mapping[str, Any]) -> RentabiliteInput:
    """Build a frozen input from user-entered (fr-FR formatted) form values.

    Args:
        form: Field name -> raw value ("200 000 €", "8 %", 12, None...)

    Returns:
        RentabiliteInput with every unparsable number set to 0
    """
    values: dict[str, Any] = {name: parse_number_fr(form.get(name)) for name in NUMERIC_FIELDS}
    values["strategy"] = _parse_strategy(form.get("strategy"))
    values["use_flat_tax"] = _parse_flag(form.get("use_flat_tax", False))
    return RentabiliteInput(**values)


def input_from_dossier(dossier: Dossier) -> RentabiliteInput | None:
    """Profitability input from the dossier's analysis section.

    Returns None when no purchase price has been entered.
    """
    analyse = dossier.analyse
    if analyse is None or analyse.budget is None or not analyse.budget.prix_achat:
        return None

    budget = analyse.budget
    revenus = analyse.revenus
    calendrier = analyse.calendrier
    duree = 0.0
    if calendrier is not None:
        duree = float(calendrier.duree_operation_mois or calendrier.duree_travaux_mois or 0)
    if not duree and dossier.origination and dossier.origination.duree:
        duree = float(dossier.origination.duree)

    values: dict[str, Any] = {
        "prix_achat": budget.prix_achat,
        "frais_notaire_pct": budget.frais_notaire_pct or 0.0,
        "budget_travaux": budget.budget_travaux or 0.0,
        "frais_divers": budget.frais_divers or 0.0,
        "apport": budget.apport or 0.0,
        "duree_mois": duree,
    }
    if analyse.bien is not None and analyse.bien.surface:
        values["surface"] = analyse.bien.surface
    if revenus is not None:
        values.update(
            strategy=revenus.strategie or Strategy.REVENTE,
            prix_revente_cible=revenus.prix_revente_cible or 0.0,
            loyer_mensuel=revenus.loyer_mensuel or 0.0,
            charges_mensuelles=revenus.charges_mensuelles or 0.0,
            taxe_fonciere_annuelle=revenus.taxe_fonciere_annuelle or 0.0,
            tmi_pct=revenus.tmi_pct or 0.0,
            flat_tax_pct=revenus.flat_tax_pct or 0.0,
            use_flat_tax=revenus.use_flat_tax,
        )
    return RentabiliteInput(**values)


def _resale_metrics(inp: RentabiliteInput, cout_total: float) -> tuple[float, float, float, float]:
    """Gross margin, margin %, ROI % and annualized return %."""
    marge_brute = inp.prix_revente_cible - cout_total
    marge_pct = marge_brute / cout_total * 100.0 if cout_total > 0 else 0.0
    roi_pct = marge_brute / inp.apport * 100.0 if inp.apport > 0 else 0.0
    annualise_pct = marge_pct * (12.0 / inp.duree_mois) if inp.duree_mois > 0 else 0.0
    return marge_brute, marge_pct, roi_pct, annualise_pct


def classify_resale(
    marge_pct: float,
    marge_brute: float,
    annualise_pct: float,
) -> tuple[Decision, list[str]]:
    """Resale decision tier and the reasons behind it.

    GO requires every GO threshold. GO_WITH_RESERVES requires the margin or
    the annualized return to reach its reserves floor. Both conditions only
    tighten as the metrics decrease, so the tier is monotone in the resale
    price.
    """
    t = DECISION_THRESHOLDS
    failing = []
    if marge_pct < t["go_margin_pct"]:
        failing.append(f"Marge {format_pct(marge_pct)} < {t['go_margin_pct']:g} %")
    if marge_brute < t["go_gross_margin_eur"]:
        failing.append(f"Marge brute {format_eur(marge_brute)} < {format_eur(t['go_gross_margin_eur'])}")
    if annualise_pct < t["go_annualized_pct"]:
        failing.append(
            f"Rendement annualisé {format_pct(annualise_pct)} < {t['go_annualized_pct']:g} %"
        )

    if not failing:
        return Decision.GO, [
            f"Marge ≥ {t['go_margin_pct']:g} %",
            f"Marge brute ≥ {format_eur(t['go_gross_margin_eur'])}",
            f"Rendement annualisé ≥ {t['go_annualized_pct']:g} %",
        ]

    if marge_pct >= t["reserves_margin_pct"] or annualise_pct >= t["reserves_annualized_pct"]:
        return Decision.GO_WITH_RESERVES, failing

    if marge_pct < t["reserves_margin_pct"]:
        failing.append(f"Marge < {t['reserves_margin_pct']:g} %")
    if annualise_pct < t["reserves_annualized_pct"]:
        failing.append(f"Rendement annualisé < {t['reserves_annualized_pct']:g} %")
    return Decision.NO_GO, failing


def classify_rental(cashflow_mensuel: float, rendement_brut_pct: float) -> tuple[Decision, list[str]]:
    """Rental decision tier: cashflow first, then gross yield."""
    t = DECISION_THRESHOLDS
    reasons = []
    cashflow_ok = cashflow_mensuel >= t["min_monthly_cashflow"]
    yield_ok = rendement_brut_pct >= t["go_gross_yield_pct"]

    reasons.append("Cashflow positif" if cashflow_ok else f"Cashflow négatif ({format_eur(cashflow_mensuel)}/mois)")
    if yield_ok:
        reasons.append(f"Rendement brut ≥ {t['go_gross_yield_pct']:g} %")
    else:
        reasons.append(f"Rendement brut {format_pct(rendement_brut_pct)} < {t['go_gross_yield_pct']:g} %")

    if cashflow_ok and yield_ok:
        return Decision.GO, reasons
    if cashflow_ok:
        return Decision.GO_WITH_RESERVES, reasons
    return Decision.NO_GO, reasons


def compute_rentabilite(inp: RentabiliteInput) -> RentabiliteResult:
    """Compute profitability metrics and decision for one input.

    Args:
        inp: Frozen budget and revenue inputs

    Returns:
        RentabiliteResult with metrics rounded to 2 decimals
    """
    frais_notaire = inp.prix_achat * inp.frais_notaire_pct / 100.0
    cout_total = inp.prix_achat + frais_notaire + inp.budget_travaux + inp.frais_divers

    marge_brute = marge_pct = roi_pct = annualise_pct = 0.0
    cashflow_mensuel = rendement_brut_pct = 0.0

    if inp.strategy == Strategy.REVENTE:
        marge_brute, marge_pct, roi_pct, annualise_pct = _resale_metrics(inp, cout_total)
        decision, reasons = classify_resale(marge_pct, marge_brute, annualise_pct)
    else:
        loyer_annuel = inp.loyer_mensuel * 12.0
        charges_annuelles = inp.charges_mensuelles * 12.0 + inp.taxe_fonciere_annuelle
        revenu_net = loyer_annuel - charges_annuelles
        taux_pct = inp.flat_tax_pct if inp.use_flat_tax else inp.tmi_pct
        impot = max(0.0, revenu_net * taux_pct / 100.0)
        cashflow_mensuel = (revenu_net - impot) / 12.0
        rendement_brut_pct = loyer_annuel / inp.prix_achat * 100.0 if inp.prix_achat > 0 else 0.0

        if inp.prix_revente_cible > 0:
            marge_brute, marge_pct, roi_pct, annualise_pct = _resale_metrics(inp, cout_total)
        decision, reasons = classify_rental(cashflow_mensuel, rendement_brut_pct)

    return RentabiliteResult(
        frais_notaire=round2(frais_notaire),
        cout_total=round2(cout_total),
        marge_brute=round2(marge_brute),
        marge_pct=round2(marge_pct),
        roi_pct=round2(roi_pct),
        rendement_annualise_pct=round2(annualise_pct),
        cashflow_mensuel=round2(cashflow_mensuel),
        rendement_brut_pct=round2(rendement_brut_pct),
        decision=decision,
        reasons=reasons,
    )


def _perturb(inp: RentabiliteInput, factors: Mapping[str, float]) -> RentabiliteInput:
    update = {}
    if "resale" in factors:
        update["prix_revente_cible"] = inp.prix_revente_cible * factors["resale"]
    if "works" in factors:
        update["budget_travaux"] = inp.budget_travaux * factors["works"]
    return inp.model_copy(update=update)


def compute_scenarios(inp: RentabiliteInput) -> RentabiliteScenarios:
    """Base, optimistic and pessimistic cases."""
    return RentabiliteScenarios(
        base=compute_rentabilite(inp),
        optimiste=compute_rentabilite(_perturb(inp, SCENARIO_FACTORS["optimistic"])),
        pessimiste=compute_rentabilite(_perturb(inp, SCENARIO_FACTORS["pessimistic"])),
    )


def compute_stress_tests(inp: RentabiliteInput) -> RentabiliteStressTests:
    """Resale price -5 % alone, works budget +10 % alone."""
    return RentabiliteStressTests(
        revente_moins_5=compute_rentabilite(_perturb(inp, STRESS_FACTORS["resale_minus_5"])),
        travaux_plus_10=compute_rentabilite(_perturb(inp, STRESS_FACTORS["works_plus_10"])),
    )


def compute_all(inp: RentabiliteInput) -> RentabiliteSnapshot:
    """Scenarios and stress tests for one input."""
    return RentabiliteSnapshot(
        input=inp,
        scenarios=compute_scenarios(inp),
        stress_tests=compute_stress_tests(inp),
    )

"""Credit ratios computed from the dossier and the profitability result.

Percentages are whole percentages (120.0 means 120 %). A ratio whose inputs
are missing is None rather than 0.
"""

from __future__ import annotations

from banque.core.formatting import round2
from banque.core.settings import get_settings
from banque.domain.calculator.financial import calculate_total_monthly_payment
from banque.domain.models import CreditRatios, Dossier, RentabiliteResult


def _opt(value: float | None) -> float | None:
    return None if value is None else round2(value)


def guarantee_coverage_pct(dossier: Dossier) -> float | None:
    """Guarantee coverage of the requested loan, as a whole percentage.

    Returns None when the loan amount or the coverage is missing.
    """
    montant = dossier.origination.montant_demande if dossier.origination else None
    couverture = dossier.garanties.total_coverage() if dossier.garanties else 0.0
    if not montant or montant <= 0 or couverture <= 0:
        return None
    return round2(couverture / montant * 100.0)


def compute_credit_ratios(
    dossier: Dossier,
    rentabilite: RentabiliteResult | None = None,
    *,
    default_rate_pct: float | None = None,
    insurance_pct: float | None = None,
) -> CreditRatios:
    """Compute LTV, LTC, payment, DSTI, DSCR, yield, margin and coverage.

    Args:
        dossier: Dossier to read origination, analysis and guarantees from
        rentabilite: Base-case profitability result, when computed
        default_rate_pct: Rate used when the dossier carries none (settings default)
        insurance_pct: Annual borrower insurance % (settings default)

    Returns:
        CreditRatios with None for every ratio lacking inputs
    """
    settings = get_settings()
    orig = dossier.origination
    analyse = dossier.analyse
    budget = analyse.budget if analyse else None
    revenus = analyse.revenus if analyse else None
    bien = analyse.bien if analyse else None

    montant = orig.montant_demande if orig and orig.montant_demande else None
    duree = orig.duree if orig and orig.duree else None
    rate = orig.taux_annuel_pct if orig and orig.taux_annuel_pct is not None else None
    if rate is None:
        rate = default_rate_pct if default_rate_pct is not None else settings.default_interest_rate_pct
    insurance = insurance_pct if insurance_pct is not None else settings.default_insurance_pct

    mensualite = None
    if montant and duree:
        _, _, mensualite = calculate_total_monthly_payment(montant, rate, duree, insurance)

    if rentabilite is not None and rentabilite.cout_total > 0:
        cout_total = rentabilite.cout_total
    elif budget is not None and budget.cout_total() > 0:
        cout_total = budget.cout_total()
    else:
        cout_total = None

    valeur = None
    if bien is not None and bien.valeur_estimee:
        valeur = bien.valeur_estimee
    elif budget is not None and budget.prix_achat:
        valeur = budget.prix_achat

    ltv = montant / valeur * 100.0 if montant and valeur else None
    ltc = montant / cout_total * 100.0 if montant and cout_total else None

    dsti = None
    if mensualite and revenus is not None and revenus.revenus_mensuels:
        dsti = ((revenus.charges_existantes or 0.0) + mensualite) / revenus.revenus_mensuels * 100.0

    loyer = revenus.loyer_mensuel if revenus is not None else None
    dscr = loyer / mensualite if mensualite and loyer else None

    rendement = None
    if rentabilite is not None and rentabilite.rendement_brut_pct > 0:
        rendement = rentabilite.rendement_brut_pct
    elif loyer and budget is not None and budget.prix_achat:
        rendement = loyer * 12.0 / budget.prix_achat * 100.0

    marge = None
    if rentabilite is not None and (rentabilite.marge_brute != 0 or rentabilite.marge_pct != 0):
        marge = rentabilite.marge_pct

    return CreditRatios(
        montant_pret=montant,
        taux_annuel_pct=rate if mensualite is not None else None,
        mensualite=_opt(mensualite),
        cout_total=_opt(cout_total),
        ltv_pct=_opt(ltv),
        ltc_pct=_opt(ltc),
        dsti_pct=_opt(dsti),
        dscr=_opt(dscr),
        rendement_brut_pct=_opt(rendement),
        marge_pct=_opt(marge),
        couverture_garanties_pct=guarantee_coverage_pct(dossier),
    )

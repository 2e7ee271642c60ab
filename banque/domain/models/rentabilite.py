"""Profitability (rentabilité) data models.

Inputs are built once from user-entered strings and then frozen; results are
pure functions of their inputs and only ever recomputed, never edited.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from .base import FrozenModel


class Strategy(str, Enum):
    """Exit strategy of the financed operation."""

    REVENTE = "revente"
    LOCATION = "location"


class Decision(str, Enum):
    """Profitability decision tier, ordered NO_GO < GO_WITH_RESERVES < GO."""

    NO_GO = "NO_GO"
    GO_WITH_RESERVES = "GO_WITH_RESERVES"
    GO = "GO"

    @property
    def rank(self) -> int:
        return _DECISION_RANK[self]


_DECISION_RANK = {
    Decision.NO_GO: 0,
    Decision.GO_WITH_RESERVES: 1,
    Decision.GO: 2,
}


class RentabiliteInput(FrozenModel):
    """Flat numeric budget and revenue inputs (BudgetInputs)."""

    strategy: Strategy = Field(default=Strategy.REVENTE, description="Exit strategy")

    # Acquisition
    prix_achat: float = Field(default=0.0, description="Purchase price in €")
    frais_notaire_pct: float = Field(default=0.0, description="Notary fees as % of purchase price")
    budget_travaux: float = Field(default=0.0, description="Works budget in €")
    frais_divers: float = Field(default=0.0, description="Miscellaneous fees in €")
    duree_mois: float = Field(default=0.0, description="Operation duration in months")
    surface: float = Field(default=0.0, description="Surface in m²")

    # Exit and revenues
    prix_revente_cible: float = Field(default=0.0, description="Target resale price in €")
    loyer_mensuel: float = Field(default=0.0, description="Monthly rent in €")
    charges_mensuelles: float = Field(default=0.0, description="Monthly charges in €")
    taxe_fonciere_annuelle: float = Field(default=0.0, description="Annual property tax in €")

    # Taxation
    tmi_pct: float = Field(default=0.0, description="Marginal tax bracket %")
    flat_tax_pct: float = Field(default=0.0, description="Flat tax %")
    use_flat_tax: bool = Field(default=False, description="Tax rental income at the flat rate")

    apport: float = Field(default=0.0, description="Cash contribution in €")


class RentabiliteResult(FrozenModel):
    """Derived profitability metrics, rounded to 2 decimals."""

    frais_notaire: float = 0.0
    cout_total: float = 0.0
    marge_brute: float = 0.0
    marge_pct: float = 0.0
    roi_pct: float = 0.0
    rendement_annualise_pct: float = 0.0
    cashflow_mensuel: float = 0.0
    rendement_brut_pct: float = 0.0
    decision: Decision = Decision.NO_GO
    reasons: list[str] = Field(default_factory=list)


class RentabiliteScenarios(FrozenModel):
    """Base case plus the optimistic and pessimistic variants."""

    base: RentabiliteResult
    optimiste: RentabiliteResult
    pessimiste: RentabiliteResult


class RentabiliteStressTests(FrozenModel):
    """Single-variable perturbations of the base case."""

    revente_moins_5: RentabiliteResult
    travaux_plus_10: RentabiliteResult


class RentabiliteSnapshot(FrozenModel):
    """Everything computed from one input, as stored in the analysis section."""

    input: RentabiliteInput
    scenarios: RentabiliteScenarios
    stress_tests: RentabiliteStressTests

    @property
    def base(self) -> RentabiliteResult:
        return self.scenarios.base


class CreditRatios(FrozenModel):
    """Lender ratios; None when the inputs of a ratio are missing."""

    montant_pret: float | None = Field(None, description="Loan amount in €")
    taux_annuel_pct: float | None = Field(None, description="Annual rate used for the payment")
    mensualite: float | None = Field(None, description="Monthly payment incl. insurance in €")
    cout_total: float | None = Field(None, description="Total operation cost in €")
    ltv_pct: float | None = Field(None, description="Loan to value %")
    ltc_pct: float | None = Field(None, description="Loan to cost %")
    dsti_pct: float | None = Field(None, description="Debt service to income %")
    dscr: float | None = Field(None, description="Debt service coverage ratio")
    rendement_brut_pct: float | None = Field(None, description="Gross yield %")
    marge_pct: float | None = Field(None, description="Margin %")
    couverture_garanties_pct: float | None = Field(None, description="Guarantee coverage of the loan %")

    def has_any(self) -> bool:
        """True when at least one ratio could be computed."""
        return any(
            v is not None
            for v in (
                self.mensualite,
                self.ltv_pct,
                self.ltc_pct,
                self.dsti_pct,
                self.dscr,
                self.rendement_brut_pct,
                self.marge_pct,
            )
        )

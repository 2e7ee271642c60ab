"""Unit tests for banque.domain.calculator.rentabilite module."""

import pytest
from pydantic import ValidationError

from banque.domain.calculator.rentabilite import (
    classify_rental,
    classify_resale,
    compute_all,
    compute_rentabilite,
    compute_scenarios,
    compute_stress_tests,
    form_to_input,
    input_from_dossier,
)
from banque.domain.models import Decision, Dossier, RentabiliteInput, Strategy


def resale_input(**overrides):
    values = dict(
        strategy=Strategy.REVENTE,
        prix_achat=200000,
        frais_notaire_pct=0,
        budget_travaux=30000,
        frais_divers=5000,
        prix_revente_cible=270000,
        duree_mois=12,
        apport=50000,
    )
    values.update(overrides)
    return RentabiliteInput(**values)


def rental_input(**overrides):
    values = dict(
        strategy=Strategy.LOCATION,
        prix_achat=150000,
        loyer_mensuel=900,
        charges_mensuelles=100,
        taxe_fonciere_annuelle=1200,
        tmi_pct=30,
    )
    values.update(overrides)
    return RentabiliteInput(**values)


class TestFormToInput:
    """Tests for building inputs from fr-FR form strings."""

    def test_parses_locale_strings(self, boundary_form):
        inp = form_to_input(boundary_form)
        assert inp.prix_achat == 200000
        assert inp.budget_travaux == 30000
        assert inp.prix_revente_cible == 270000
        assert inp.strategy == Strategy.REVENTE

    def test_garbage_becomes_zero(self):
        inp = form_to_input({"prix_achat": "n/a", "duree_mois": None})
        assert inp.prix_achat == 0.0
        assert inp.duree_mois == 0.0

    def test_unknown_strategy_defaults_to_resale(self):
        assert form_to_input({"strategy": "viager"}).strategy == Strategy.REVENTE

    def test_flat_tax_flag(self):
        assert form_to_input({"use_flat_tax": "oui"}).use_flat_tax is True
        assert form_to_input({"use_flat_tax": "non"}).use_flat_tax is False

    def test_input_is_frozen(self, boundary_form):
        inp = form_to_input(boundary_form)
        with pytest.raises(ValidationError):
            inp.prix_achat = 1


class TestResaleComputation:
    """Tests for the resale branch."""

    def test_boundary_case(self, boundary_form):
        """Margin just under 15 % lands in the reserves tier."""
        result = compute_rentabilite(form_to_input(boundary_form))
        assert result.cout_total == 235000
        assert result.marge_brute == 35000
        assert result.marge_pct == 14.89
        assert result.roi_pct == 70
        assert result.rendement_annualise_pct == 14.89
        assert result.decision == Decision.GO_WITH_RESERVES

    def test_notary_fees_enter_total_cost(self):
        """8 % notary fees on 200 000 € add 16 000 € to the cost."""
        result = compute_rentabilite(resale_input(frais_notaire_pct=8))
        assert result.frais_notaire == 16000
        assert result.cout_total == 251000
        assert result.marge_brute == 19000
        assert result.decision == Decision.NO_GO

    def test_go(self):
        result = compute_rentabilite(resale_input(prix_revente_cible=300000, duree_mois=6))
        assert result.decision == Decision.GO
        assert len(result.reasons) == 3

    def test_no_go_lists_failing_thresholds(self):
        result = compute_rentabilite(resale_input(prix_revente_cible=240000))
        assert result.decision == Decision.NO_GO
        assert any("Marge < 10" in r for r in result.reasons)
        assert any("Marge brute" in r for r in result.reasons)

    def test_zero_cost_and_contribution(self):
        """Divisions by zero resolve to 0 instead of raising."""
        result = compute_rentabilite(RentabiliteInput(prix_revente_cible=100000))
        assert result.marge_pct == 0
        assert result.roi_pct == 0
        assert result.rendement_annualise_pct == 0

    def test_zero_duration(self):
        result = compute_rentabilite(resale_input(duree_mois=0))
        assert result.rendement_annualise_pct == 0
        assert result.marge_pct == 14.89


class TestClassifyResale:
    """Tests for the resale decision tiers."""

    def test_annualized_alone_gives_reserves(self):
        decision, _ = classify_resale(8.0, 20000, 16.0)
        assert decision == Decision.GO_WITH_RESERVES

    def test_high_margin_low_gross_is_reserves(self):
        """Margin above 15 % but gross margin under 30 000 € is not GO."""
        decision, reasons = classify_resale(20.0, 25000, 40.0)
        assert decision == Decision.GO_WITH_RESERVES
        assert len(reasons) == 1

    def test_below_floors(self):
        decision, _ = classify_resale(9.99, 50000, 14.99)
        assert decision == Decision.NO_GO


class TestRentalComputation:
    """Tests for the rental branch."""

    def test_positive_cashflow_and_yield(self):
        result = compute_rentabilite(rental_input())
        # (10800 - 2400) * 0.7 / 12
        assert result.cashflow_mensuel == 490
        assert result.rendement_brut_pct == 7.2
        assert result.decision == Decision.GO

    def test_flat_tax_selected_by_flag(self):
        result = compute_rentabilite(rental_input(use_flat_tax=True, flat_tax_pct=17.2, tmi_pct=45))
        assert result.cashflow_mensuel == round(8400 * (1 - 0.172) / 12, 2)

    def test_low_yield_is_reserves(self):
        result = compute_rentabilite(rental_input(loyer_mensuel=500))
        assert result.rendement_brut_pct == 4
        assert result.decision == Decision.GO_WITH_RESERVES

    def test_negative_cashflow_untaxed(self):
        """A loss is not taxed and the case is NO_GO."""
        result = compute_rentabilite(rental_input(loyer_mensuel=500, charges_mensuelles=600))
        assert result.cashflow_mensuel == -200
        assert result.decision == Decision.NO_GO

    def test_resale_metrics_when_price_given(self):
        result = compute_rentabilite(rental_input(prix_revente_cible=180000, duree_mois=24))
        assert result.marge_brute == 30000
        assert result.marge_pct == 20

    def test_classify_rental(self):
        assert classify_rental(0.0, 5.0)[0] == Decision.GO
        assert classify_rental(-0.01, 9.0)[0] == Decision.NO_GO


class TestScenarios:
    """Scenarios and stress tests are full re-runs of the same computation."""

    def test_scenarios_match_manual_reruns(self):
        base = resale_input()
        scenarios = compute_scenarios(base)
        optimistic = base.model_copy(update={"prix_revente_cible": 270000 * 1.03, "budget_travaux": 30000 * 0.95})
        pessimistic = base.model_copy(update={"prix_revente_cible": 270000 * 0.95, "budget_travaux": 30000 * 1.10})
        assert scenarios.base == compute_rentabilite(base)
        assert scenarios.optimiste == compute_rentabilite(optimistic)
        assert scenarios.pessimiste == compute_rentabilite(pessimistic)

    def test_scenario_decisions(self):
        scenarios = compute_scenarios(resale_input())
        assert scenarios.optimiste.cout_total == 233500
        assert scenarios.optimiste.decision == Decision.GO_WITH_RESERVES
        assert scenarios.pessimiste.decision == Decision.NO_GO

    def test_stress_tests_single_variable(self):
        stress = compute_stress_tests(resale_input())
        assert stress.revente_moins_5.cout_total == 235000
        assert stress.revente_moins_5.marge_brute == 21500
        assert stress.travaux_plus_10.cout_total == 238000
        assert stress.travaux_plus_10.marge_brute == 32000

    def test_compute_all(self):
        snapshot = compute_all(resale_input())
        assert snapshot.base.decision == Decision.GO_WITH_RESERVES
        assert snapshot.input.prix_achat == 200000


class TestInputFromDossier:
    def test_reads_analysis_sections(self, sample_dossier):
        inp = input_from_dossier(sample_dossier)
        assert inp.prix_achat == 200000
        assert inp.frais_notaire_pct == 8
        assert inp.duree_mois == 12
        assert inp.prix_revente_cible == 320000
        assert inp.surface == 120

    def test_falls_back_to_loan_duration(self, sample_dossier_data):
        del sample_dossier_data["analyse"]["calendrier"]
        inp = input_from_dossier(Dossier.model_validate(sample_dossier_data))
        assert inp.duree_mois == 24

    def test_none_without_price(self):
        assert input_from_dossier(Dossier(id="x")) is None

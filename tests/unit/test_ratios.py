"""Unit tests for banque.domain.calculator.ratios module."""

import pytest

from banque.domain.calculator import compute_all, input_from_dossier
from banque.domain.calculator.financial import calculate_total_monthly_payment
from banque.domain.calculator.ratios import compute_credit_ratios, guarantee_coverage_pct
from banque.domain.models import Dossier


class TestGuaranteeCoverage:
    """Coverage is a whole percentage of the requested loan."""

    def test_sum_of_items(self, sample_dossier):
        # (200 000 + 40 000) / 180 000
        assert guarantee_coverage_pct(sample_dossier) == 133.33

    def test_declared_total_wins(self, sample_dossier_data):
        sample_dossier_data["garanties"]["couverture_totale"] = 90000
        assert guarantee_coverage_pct(Dossier.model_validate(sample_dossier_data)) == 50.0

    def test_none_without_loan(self, sample_dossier_data):
        del sample_dossier_data["origination"]["montant_demande"]
        assert guarantee_coverage_pct(Dossier.model_validate(sample_dossier_data)) is None

    def test_none_without_guarantees(self):
        dossier = Dossier(id="x", origination={"montant_demande": 100000})
        assert guarantee_coverage_pct(dossier) is None


class TestComputeCreditRatios:
    """Tests for lender ratio computation."""

    def test_sample_dossier(self, sample_dossier):
        ratios = compute_credit_ratios(sample_dossier, insurance_pct=0.36)
        assert ratios.montant_pret == 180000
        assert ratios.taux_annuel_pct == 4.5
        assert ratios.ltv_pct == 85.71  # appraised value 210 000
        assert ratios.ltc_pct == 71.71  # cost 251 000
        assert ratios.couverture_garanties_pct == 133.33
        _, _, expected = calculate_total_monthly_payment(180000, 4.5, 24, 0.36)
        assert ratios.mensualite == pytest.approx(expected, abs=0.01)

    def test_margin_from_profitability(self, sample_dossier):
        base = compute_all(input_from_dossier(sample_dossier)).base
        ratios = compute_credit_ratios(sample_dossier, base)
        assert ratios.marge_pct == base.marge_pct
        assert ratios.cout_total == 251000

    def test_missing_inputs_are_none(self):
        ratios = compute_credit_ratios(Dossier(id="x"))
        assert not ratios.has_any()
        assert ratios.mensualite is None
        assert ratios.ltv_pct is None

    def test_default_rate_used(self):
        dossier = Dossier(id="x", origination={"montant_demande": 120000, "duree": 120})
        ratios = compute_credit_ratios(dossier, default_rate_pct=0.0, insurance_pct=0.0)
        assert ratios.taux_annuel_pct == 0.0
        assert ratios.mensualite == 1000.0

    def test_dsti_and_dscr(self):
        dossier = Dossier(
            id="x",
            origination={"montant_demande": 120000, "duree": 120, "taux_annuel_pct": 0},
            analyse={
                "budget": {"prix_achat": 150000},
                "revenus": {"revenus_mensuels": 4000, "charges_existantes": 200, "loyer_mensuel": 900},
            },
        )
        ratios = compute_credit_ratios(dossier, insurance_pct=0.0)
        assert ratios.dsti_pct == 30.0  # (200 + 1000) / 4000
        assert ratios.dscr == 0.9
        assert ratios.rendement_brut_pct == 7.2
        assert ratios.ltv_pct == 80.0  # falls back to the purchase price

"""Committee report generation.

:func:`generate_structured_report` is pure assembly of the dossier, the
profitability run and the SmartScore into one frozen report.
:class:`ReportGenerator` runs the whole pipeline against the store and
writes the results back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from banque.core.logging import get_logger
from banque.domain.calculator import (
    append_score_history,
    build_risk_analysis_patch,
    build_verdict_text,
    calculate_credit_cost,
    compute_alerts,
    compute_all,
    compute_credit_ratios,
    compute_smart_score,
    guarantee_coverage_pct,
    input_from_dossier,
    resolve_risk_items,
)
from banque.domain.calculator.scoring import PRET_TYPE_LABELS
from banque.domain.lifecycle import advance
from banque.domain.models import (
    CompanyBorrower,
    CreditRatios,
    Dossier,
    DossierStatus,
    MarketData,
    PersonBorrower,
    RentabiliteResult,
    RentabiliteSnapshot,
    ReportState,
    RiskAnalysis,
    RiskItem,
    SmartScoreResult,
    StructuredReport,
    TableRow,
    classify_report,
    now_iso,
)
from banque.domain.models.report import (
    ReportBorrower,
    ReportDocumentItem,
    ReportDocuments,
    ReportGuaranteeItem,
    ReportGuarantees,
    ReportMeta,
    ReportProject,
    ReportRentabilite,
    ReportRiskItem,
    ReportRisks,
    ReportVerdict,
)

if TYPE_CHECKING:
    from banque.application.services.snapshot_store import SnapshotStore

log = get_logger(__name__)

RISK_LEVELS = ("faible", "moyen", "eleve", "tres_eleve")

SCENARIO_LABELS = {
    "base": "Base",
    "optimiste": "Optimiste",
    "pessimiste": "Pessimiste",
}

STRESS_LABELS = {
    "revente_moins_5": "Prix de revente -5 %",
    "travaux_plus_10": "Travaux +10 %",
}


# --- Sections ---

def _borrower_section(dossier: Dossier) -> ReportBorrower:
    emp = dossier.borrower
    if isinstance(emp, PersonBorrower):
        identite = " ".join(p for p in (emp.prenom, emp.nom) if p) or "Non renseigné"
    elif isinstance(emp, CompanyBorrower):
        identite = emp.raison_sociale or "Non renseigné"
    else:
        return ReportBorrower(type="inconnu", identite="Non renseigné")

    details = {
        name: str(value)
        for name, value in emp.model_dump(exclude={"type"}).items()
        if value not in (None, "")
    }
    return ReportBorrower(type=emp.type, identite=identite, details=details)


def _project_section(dossier: Dossier) -> ReportProject:
    orig = dossier.origination
    if orig is None:
        return ReportProject()
    type_pret = orig.type_pret or ""
    return ReportProject(
        montant=orig.montant_demande,
        duree=orig.duree,
        taux_annuel_pct=orig.taux_annuel_pct,
        type_pret=type_pret,
        type_pret_label=PRET_TYPE_LABELS.get(type_pret, type_pret or "Non renseigné"),
        adresse=orig.adresse_projet or "",
        commune=" ".join(p for p in (orig.code_postal, orig.commune) if p),
        notes=orig.notes or "",
    )


def _budget_rows(dossier: Dossier, base: RentabiliteResult | None) -> list[TableRow]:
    budget = dossier.analyse.budget if dossier.analyse else None
    if budget is None:
        return []
    rows = [
        TableRow(label="Prix d'acquisition", value=budget.prix_achat, unit="€"),
        TableRow(label="Frais de notaire", value=budget.frais_notaire_pct, unit="%"),
    ]
    if base is not None:
        rows.append(TableRow(label="Frais de notaire (montant)", value=base.frais_notaire, unit="€"))
    rows += [
        TableRow(label="Budget travaux", value=budget.budget_travaux, unit="€"),
        TableRow(label="Frais divers", value=budget.frais_divers, unit="€"),
        TableRow(label="Coût total", value=base.cout_total if base else budget.cout_total(), unit="€"),
        TableRow(label="Apport", value=budget.apport, unit="€"),
    ]
    return rows


def _financing_rows(dossier: Dossier, ratios: CreditRatios) -> list[TableRow]:
    orig = dossier.origination
    if orig is None:
        return []
    rows = [
        TableRow(label="Montant demandé", value=orig.montant_demande, unit="€"),
        TableRow(label="Durée", value=orig.duree, unit="mois"),
        TableRow(label="Taux annuel", value=ratios.taux_annuel_pct, unit="%"),
        TableRow(label="Mensualité (assurance incluse)", value=ratios.mensualite, unit="€"),
    ]
    if orig.montant_demande and orig.duree and ratios.taux_annuel_pct is not None:
        cost = calculate_credit_cost(orig.montant_demande, ratios.taux_annuel_pct, orig.duree)
        rows.append(TableRow(label="Coût du crédit", value=round(cost, 2), unit="€"))
    rows += [
        TableRow(label="LTV", value=ratios.ltv_pct, unit="%"),
        TableRow(label="LTC", value=ratios.ltc_pct, unit="%"),
        TableRow(label="Taux d'effort", value=ratios.dsti_pct, unit="%"),
        TableRow(label="DSCR", value=ratios.dscr),
    ]
    return rows


def _revenue_rows(dossier: Dossier, base: RentabiliteResult | None) -> list[TableRow]:
    revenus = dossier.analyse.revenus if dossier.analyse else None
    if revenus is None:
        return []
    rows = [
        TableRow(label="Stratégie", value=revenus.strategie.value if revenus.strategie else None),
        TableRow(label="Prix de revente cible", value=revenus.prix_revente_cible, unit="€"),
        TableRow(label="Loyer mensuel", value=revenus.loyer_mensuel, unit="€"),
        TableRow(label="Charges mensuelles", value=revenus.charges_mensuelles, unit="€"),
        TableRow(label="Taxe foncière", value=revenus.taxe_fonciere_annuelle, unit="€/an"),
        TableRow(label="Revenus mensuels emprunteur", value=revenus.revenus_mensuels, unit="€"),
        TableRow(label="Charges existantes", value=revenus.charges_existantes, unit="€"),
    ]
    if base is not None and base.cashflow_mensuel:
        rows.append(TableRow(label="Cashflow mensuel net", value=base.cashflow_mensuel, unit="€"))
    return [r for r in rows if r.value is not None]


def _market_rows(market: MarketData | None) -> list[TableRow]:
    if market is None:
        return []
    rows = [
        TableRow(label="Prix médian au m²", value=market.prix_m2_median, unit="€"),
        TableRow(label="Indice de demande", value=market.demand_index, unit="/100"),
        TableRow(label="Ventes comparables", value=market.comps_count),
        TableRow(label="Délai d'absorption", value=market.absorption_months, unit="mois"),
        TableRow(label="Évolution des prix (12 mois)", value=market.evolution_pct, unit="%"),
        TableRow(label="Tension", value=market.tension),
    ]
    return [r for r in rows if r.value is not None]


def _result_rows(label: str, result: RentabiliteResult) -> list[TableRow]:
    rows = [TableRow(label=f"{label} : décision", value=result.decision.value)]
    if result.cashflow_mensuel or result.rendement_brut_pct:
        rows += [
            TableRow(label=f"{label} : cashflow mensuel", value=result.cashflow_mensuel, unit="€"),
            TableRow(label=f"{label} : rendement brut", value=result.rendement_brut_pct, unit="%"),
        ]
    if result.marge_brute or result.marge_pct:
        rows += [
            TableRow(label=f"{label} : marge brute", value=result.marge_brute, unit="€"),
            TableRow(label=f"{label} : marge", value=result.marge_pct, unit="%"),
            TableRow(label=f"{label} : rendement annualisé", value=result.rendement_annualise_pct, unit="%"),
        ]
    return rows


def _rentabilite_section(financial: RentabiliteSnapshot | None) -> ReportRentabilite:
    if financial is None:
        return ReportRentabilite()
    scenarios = [
        row
        for name, label in SCENARIO_LABELS.items()
        for row in _result_rows(label, getattr(financial.scenarios, name))
    ]
    stress = [
        row
        for name, label in STRESS_LABELS.items()
        for row in _result_rows(label, getattr(financial.stress_tests, name))
    ]
    base = financial.base
    return ReportRentabilite(decision=base.decision, reasons=base.reasons, scenarios=scenarios, stress_tests=stress)


def _risks_section(risk_items: list[RiskItem], score: SmartScoreResult) -> ReportRisks:
    counts = {level: 0 for level in RISK_LEVELS}
    for r in risk_items:
        counts[r.niveau] = counts.get(r.niveau, 0) + 1
    return ReportRisks(
        items=[
            ReportRiskItem(categorie=r.categorie, label=r.label, niveau=r.niveau, statut=r.statut)
            for r in risk_items
        ],
        counts_by_level=counts,
        global_level=build_risk_analysis_patch(score)["global_level"],
    )


def _guarantees_section(dossier: Dossier) -> ReportGuarantees:
    gar = dossier.garanties
    if gar is None:
        return ReportGuarantees()
    return ReportGuarantees(
        items=[
            ReportGuaranteeItem(
                type=g.type,
                description=g.description or g.label,
                valeur=g.valeur_estimee,
                rang=g.rang,
                statut=g.statut,
            )
            for g in gar.items
        ],
        couverture=gar.total_coverage(),
        ratio_pct=guarantee_coverage_pct(dossier),
        commentaire=gar.commentaire or "",
    )


def _documents_section(dossier: Dossier) -> ReportDocuments:
    docs = dossier.documents
    if docs is None:
        return ReportDocuments()
    return ReportDocuments(
        items=[
            ReportDocumentItem(nom=d.nom or d.id, type=d.type, statut=d.statut, commentaire=d.commentaire)
            for d in docs.items
        ],
        total=len(docs.items),
        completeness_pct=round(docs.completude(), 2),
        missing=[d.nom or d.id for d in docs.items if not d.is_received],
    )


def generate_structured_report(
    dossier: Dossier,
    financial: RentabiliteSnapshot | None,
    score: SmartScoreResult,
    *,
    market: MarketData | None = None,
    risk_analysis: RiskAnalysis | None = None,
    ratios: CreditRatios | None = None,
    generated_at: str | None = None,
) -> StructuredReport:
    """Assemble the committee report.

    Args:
        dossier: Dossier being decided
        financial: Profitability run (scenarios and stress tests), if any
        score: SmartScore result
        market: Market module of the snapshot
        risk_analysis: Risk-analysis module, listed when the dossier has no
            risks of its own (as in scoring)
        ratios: Credit ratios (computed from the dossier otherwise)
        generated_at: Report timestamp (defaults to now)

    Returns:
        Frozen StructuredReport
    """
    base = financial.base if financial is not None else None
    if ratios is None:
        ratios = compute_credit_ratios(dossier, base)

    return StructuredReport(
        generated_at=generated_at or now_iso(),
        meta=ReportMeta(
            dossier_id=dossier.id,
            dossier_label=dossier.label,
            reference=dossier.reference,
            status=dossier.status.value,
        ),
        emprunteur=_borrower_section(dossier),
        projet=_project_section(dossier),
        budget=_budget_rows(dossier, base),
        financement=_financing_rows(dossier, ratios),
        revenus=_revenue_rows(dossier, base),
        marche=_market_rows(market),
        ratios=ratios,
        risques=_risks_section(resolve_risk_items(dossier, risk_analysis), score),
        garanties=_guarantees_section(dossier),
        documents=_documents_section(dossier),
        smartscore=score,
        rentabilite=_rentabilite_section(financial),
        verdict=ReportVerdict(
            verdict=score.verdict.value,
            narrative=build_verdict_text(score),
            missing=score.missing,
            mandatory_actions=score.mandatory_actions,
        ),
    )


def report_state(dossier: Dossier | None) -> ReportState:
    """Validity of the report stored under a dossier."""
    if dossier is None:
        return ReportState.NOT_GENERATED
    return classify_report(dossier.report, dossier.report_generated)


class ReportGenerator:
    """Runs profitability, scoring and report assembly for the active dossier."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    def generate(self, dossier_id: str, generated_at: str | None = None) -> StructuredReport | None:
        """Generate, persist and return the committee report.

        Returns None when ``dossier_id`` is not the active dossier.
        """
        snap = self.store.read()
        dossier = snap.dossier
        if dossier is None or snap.active_id() != dossier_id:
            log.warning("dossier_guard_rejected", action="generate_report", dossier_id=dossier_id,
                        active_dossier_id=snap.active_id())
            return None

        at = generated_at or now_iso()
        stored = dossier.analyse.rentabilite if dossier.analyse else None
        inp = stored.input if stored is not None else input_from_dossier(dossier)
        financial = compute_all(inp) if inp is not None else None
        base = financial.base if financial is not None else None

        ratios = compute_credit_ratios(dossier, base)
        score = compute_smart_score(
            dossier,
            rentabilite=base,
            market=snap.market,
            risk_analysis=snap.risk_analysis,
            ratios=ratios,
            generated_at=at,
        )
        report = generate_structured_report(
            dossier,
            financial,
            score,
            market=snap.market,
            risk_analysis=snap.risk_analysis,
            ratios=ratios,
            generated_at=at,
        )

        update = {
            "id": dossier_id,
            "report": report.to_payload(),
            "report_generated": True,
            "status": advance(dossier.status, DossierStatus.COMITE),
        }
        if financial is not None:
            update["analyse"] = {"rentabilite": financial}
        self.store.upsert_dossier(update)

        history = append_score_history(snap.smart_score.history if snap.smart_score else [], score)
        self.store.patch_smart_score(dossier_id, {
            "score": score.score,
            "grade": score.grade,
            "verdict": score.verdict.value,
            "result": score,
            "history": history,
        })
        self.store.patch_risk_analysis(dossier_id, build_risk_analysis_patch(score))

        self.store.append_event(
            dossier_id,
            "report_generated",
            "Rapport comité généré",
            f"Score {score.score}/100 ({score.grade}), {score.verdict.value}",
        )
        for alert in compute_alerts(score, ratios, dossier_id, history, at):
            self.store.upsert_alert(dossier_id, alert)

        log.info(
            "report_generated",
            dossier_id=dossier_id,
            score=score.score,
            grade=score.grade,
            verdict=score.verdict.value,
        )
        return report

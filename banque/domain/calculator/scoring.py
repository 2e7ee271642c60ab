"""SmartScore engine.

Pillar-weighted credit scoring that tolerates missing data. Each pillar
computes a 0-100 raw sub-score from its own rules and earns points in
proportion to its weight. A pillar without data earns nothing and emits a
MissingDataItem; missing items also cost penalty points. The result is
deterministic: identical inputs give identical scores and texts, and the
only clock read is the ``generated_at`` default.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from typing import Any, NamedTuple

from banque.core.formatting import format_eur, round2
from banque.core.scoring_constants import (
    ENGINE_VERSION,
    GRADE_THRESHOLDS,
    MAX_DRIVERS,
    MAX_RECOMMENDATIONS,
    MISSING_PENALTY_POINTS,
    PILLARS,
    SCORE_HISTORY_LIMIT,
    VERDICT_THRESHOLDS,
)
from banque.domain.calculator.ratios import compute_credit_ratios
from banque.domain.models import (
    CompanyBorrower,
    CreditRatios,
    Dossier,
    Driver,
    MarketData,
    MissingDataItem,
    MissingPenalty,
    PersonBorrower,
    PillarResult,
    RentabiliteResult,
    RiskAnalysis,
    RiskItem,
    ScoreHistoryEntry,
    Severity,
    SmartScoreResult,
    Verdict,
    now_iso,
)

PRET_TYPE_LABELS = {
    "promotion": "Promotion immobilière",
    "logement": "Logement",
    "marchand": "Marchand de biens",
    "investissement": "Investissement locatif",
    "rehabilitation": "Réhabilitation",
    "autre": "Autre",
}


class PillarScore(NamedTuple):
    raw: float
    reasons: list[str]
    actions: list[str]
    has_data: bool


class ScoringContext(NamedTuple):
    """Everything the pillar scorers read."""

    dossier: Dossier
    ratios: CreditRatios
    risk_items: list[RiskItem]
    market: MarketData | None


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# --- Pillar scorers ---

def score_documentation(ctx: ScoringContext) -> PillarScore:
    docs = ctx.dossier.documents
    items = docs.items if docs else []
    if not items:
        return PillarScore(
            0.0,
            ["Aucun document enregistré"],
            ["Ajouter les pièces justificatives requises"],
            False,
        )

    reasons: list[str] = []
    actions: list[str] = []
    completude = docs.completude()
    refused = sum(1 for d in items if d.statut == "refuse")
    pending = sum(1 for d in items if d.statut == "attendu")

    raw = completude - refused * 10
    if refused:
        reasons.append(f"{refused} document(s) refusé(s)")
        actions.append("Corriger et retransmettre les documents refusés")
    if pending:
        actions.append("Compléter les documents en attente")

    if completude >= 100:
        reasons.append(f"{len(items)} document(s), tous reçus ou validés")
    elif completude >= 50:
        reasons.append(f"Complétude partielle : {round(completude)} %")
    else:
        reasons.append(f"Complétude faible : {round(completude)} %")
        actions.append("Compléter le dossier documentaire")

    return PillarScore(_clamp(raw), reasons, actions, True)


def score_garanties(ctx: ScoringContext) -> PillarScore:
    gar = ctx.dossier.garanties
    items = gar.items if gar else []
    if not items and not (gar and gar.couverture_totale):
        return PillarScore(
            0.0,
            ["Aucune garantie enregistrée"],
            ["Constituer au minimum une sûreté réelle (hypothèque) ou personnelle (caution)"],
            False,
        )

    reasons: list[str] = []
    actions: list[str] = []
    ratio = ctx.ratios.couverture_garanties_pct

    if ratio is None:
        raw = 20.0
        reasons.append("Ratio garanties/prêt incalculable (montant du prêt manquant)")
        actions.append("Renseigner le montant du prêt pour calculer le ratio de couverture")
    else:
        reasons.append(f"Ratio garanties/prêt : {round(ratio)} %")
        if ratio >= 120:
            raw = 100.0
            reasons.append("Couverture excellente (≥ 120 %)")
        elif ratio >= 100:
            raw = 80.0
            reasons.append("Couverture suffisante (≥ 100 %)")
        elif ratio >= 70:
            raw = 52.0
            reasons.append("Couverture partielle (70-99 %)")
            actions.append("Renforcer les garanties pour atteindre 100 % de couverture")
        elif ratio >= 50:
            raw = 32.0
            reasons.append("Couverture faible (50-69 %)")
            actions.append("Garanties complémentaires nécessaires")
        else:
            raw = 12.0
            reasons.append("Couverture critique (< 50 %)")
            actions.append("Exiger des garanties complémentaires avant tout engagement")

    if len({g.type for g in items}) >= 3:
        raw += 5
        reasons.append("Diversification des garanties (+5)")

    return PillarScore(_clamp(raw), reasons, actions, True)


def score_emprunteur(ctx: ScoringContext) -> PillarScore:
    emp = ctx.dossier.borrower
    if emp is None:
        return PillarScore(
            0.0,
            ["Emprunteur non renseigné"],
            ["Saisir les données d'identification de l'emprunteur"],
            False,
        )

    reasons: list[str] = []
    actions: list[str] = []
    raw = 0.0
    has_contact = bool(emp.email or emp.telephone)

    if isinstance(emp, PersonBorrower):
        reasons.append("Personne physique")
        if emp.prenom and emp.nom:
            raw += 40
            reasons.append("Identité complète")
        else:
            actions.append("Compléter prénom et nom")
        if has_contact:
            raw += 30
            reasons.append("Coordonnées renseignées")
        else:
            actions.append("Ajouter email ou téléphone")
        if emp.date_naissance and emp.adresse:
            raw += 30
            reasons.append("Informations complémentaires fournies")
        else:
            actions.append("Compléter date de naissance et adresse")
    elif isinstance(emp, CompanyBorrower):
        reasons.append("Personne morale")
        if emp.raison_sociale:
            raw += 25
            reasons.append("Raison sociale renseignée")
        else:
            actions.append("Saisir la raison sociale")
        if emp.siren_siret:
            raw += 25
            reasons.append("SIREN/SIRET fourni")
        else:
            actions.append("Fournir le numéro SIREN/SIRET")
        if emp.forme_juridique:
            raw += 25
            reasons.append(f"Forme juridique : {emp.forme_juridique}")
        else:
            actions.append("Préciser la forme juridique")
        if has_contact:
            raw += 25
            reasons.append("Coordonnées disponibles")
        else:
            actions.append("Ajouter des coordonnées de contact")

    return PillarScore(_clamp(raw), reasons, actions, True)


def score_projet(ctx: ScoringContext) -> PillarScore:
    orig = ctx.dossier.origination
    if orig is None or not (orig.montant_demande or orig.duree or orig.type_pret or orig.adresse_projet):
        return PillarScore(
            0.0,
            ["Aucune donnée de projet"],
            ["Renseigner les informations du projet (montant, durée, type de prêt)"],
            False,
        )

    reasons: list[str] = []
    actions: list[str] = []
    raw = 0.0
    montant = orig.montant_demande or 0.0
    duree = orig.duree or 0

    if montant > 0:
        raw += 27
        reasons.append(f"Montant : {format_eur(montant)}")
    else:
        actions.append("Renseigner le montant du prêt")

    if duree > 0:
        raw += 27
        reasons.append(f"Durée : {duree} mois")
    else:
        actions.append("Renseigner la durée du prêt")

    if orig.type_pret and orig.type_pret != "autre":
        raw += 27
        reasons.append(f"Type : {PRET_TYPE_LABELS.get(orig.type_pret, orig.type_pret)}")
    else:
        raw += 7
        reasons.append("Type de prêt non qualifié")
        actions.append("Préciser le type de prêt")

    if orig.adresse_projet:
        raw += 19
        reasons.append("Adresse projet renseignée")
    else:
        actions.append("Ajouter l'adresse du projet")

    if montant > 500_000 and 0 < duree < 12:
        raw -= 20
        reasons.append("Montant élevé avec durée courte")
        actions.append("Évaluer le risque de tension de trésorerie, envisager un allongement")

    return PillarScore(_clamp(raw), reasons, actions, True)


def score_ratios(ctx: ScoringContext) -> PillarScore:
    k = ctx.ratios
    if not k.has_any():
        return PillarScore(
            0.0,
            ["Ratios non calculables (données insuffisantes)"],
            ["Compléter budget et revenus pour calculer les ratios"],
            False,
        )

    reasons: list[str] = []
    actions: list[str] = []
    raw = 50.0

    if k.ltv_pct is not None:
        if k.ltv_pct <= 60:
            raw += 15
            reasons.append(f"LTV excellent : {k.ltv_pct} %")
        elif k.ltv_pct <= 75:
            raw += 10
            reasons.append(f"LTV bon : {k.ltv_pct} %")
        elif k.ltv_pct <= 85:
            raw += 5
            reasons.append(f"LTV acceptable : {k.ltv_pct} %")
        else:
            raw -= 5
            reasons.append(f"LTV élevé : {k.ltv_pct} %")
            actions.append("LTV > 85 % : renforcer l'apport ou les garanties")

    if k.dsti_pct is not None:
        if k.dsti_pct <= 33:
            raw += 10
            reasons.append(f"Taux d'effort maîtrisé : {k.dsti_pct} %")
        elif k.dsti_pct <= 45:
            raw += 3
            reasons.append(f"Taux d'effort élevé : {k.dsti_pct} %")
            actions.append("Taux d'effort > 33 % : attention au reste à vivre")
        else:
            raw -= 10
            reasons.append(f"Taux d'effort excessif : {k.dsti_pct} %")
            actions.append("Taux d'effort > 45 % : dépassement du seuil HCSF")

    if k.marge_pct is not None:
        if k.marge_pct >= 20:
            raw += 15
            reasons.append(f"Marge forte : {k.marge_pct} %")
        elif k.marge_pct >= 10:
            raw += 8
            reasons.append(f"Marge correcte : {k.marge_pct} %")
        elif k.marge_pct >= 0:
            reasons.append(f"Marge faible : {k.marge_pct} %")
            actions.append("Optimiser les coûts ou revoir le prix de sortie")
        else:
            raw -= 15
            reasons.append(f"Marge négative : {k.marge_pct} %")
            actions.append("Opération déficitaire : revoir le montage")

    if k.dscr is not None:
        if k.dscr >= 1.5:
            raw += 10
            reasons.append(f"DSCR solide : {k.dscr}")
        elif k.dscr >= 1.2:
            raw += 5
            reasons.append(f"DSCR acceptable : {k.dscr}")
        else:
            raw -= 10
            reasons.append(f"DSCR insuffisant : {k.dscr}")
            actions.append("DSCR < 1,2 : capacité de remboursement trop juste")

    if k.rendement_brut_pct is not None:
        if k.rendement_brut_pct >= 7:
            raw += 5
            reasons.append(f"Rendement brut : {k.rendement_brut_pct} %")
        elif k.rendement_brut_pct < 3:
            raw -= 3
            reasons.append(f"Rendement brut faible : {k.rendement_brut_pct} %")

    if k.ltc_pct is not None and k.ltc_pct > 90:
        raw -= 5
        reasons.append(f"LTC élevé : {k.ltc_pct} %")
        actions.append("Financement > 90 % du coût total")

    if k.mensualite is not None and k.dsti_pct is None and k.dscr is None:
        raw += 3
        reasons.append(f"Mensualité calculée : {format_eur(k.mensualite)}/mois")

    return PillarScore(_clamp(raw), reasons, actions, True)


def score_risques(ctx: ScoringContext) -> PillarScore:
    items = ctx.risk_items
    if not items:
        return PillarScore(
            0.0,
            ["Analyse de risques absente"],
            ["Réaliser l'analyse des risques du site (Géorisques)"],
            False,
        )

    reasons: list[str] = []
    actions: list[str] = []
    high = [r for r in items if r.is_high]
    medium = [r for r in items if r.is_medium]
    unknown = [r for r in items if r.statut == "inconnu"]

    raw = 100.0 - len(high) * 15 - len(medium) * 5 - len(unknown) * 3

    if high:
        reasons.append(f"{len(high)} risque(s) élevé(s) : {', '.join(r.label or r.categorie for r in high)}")
        actions.append("Vérifier les risques élevés et prévoir les mesures de mitigation")
    if medium:
        reasons.append(f"{len(medium)} risque(s) modéré(s)")
    if unknown:
        reasons.append(f"{len(unknown)} risque(s) non évalué(s)")
        actions.append("Évaluer les risques restés inconnus")
    if not high and not medium:
        reasons.append("Aucun risque majeur identifié")

    return PillarScore(_clamp(raw), reasons, actions, True)


def score_marche(ctx: ScoringContext) -> PillarScore:
    m = ctx.market
    if m is None or not (m.prix_m2_median or m.demand_index or m.comps_count):
        return PillarScore(
            0.0,
            ["Données marché absentes"],
            ["Enrichir avec les données marché (DVF, INSEE)"],
            False,
        )

    reasons: list[str] = []
    actions: list[str] = []
    raw = 40.0

    if m.prix_m2_median:
        raw += 15
        reasons.append(f"Prix médian : {format_eur(m.prix_m2_median)}/m²")
    if m.demand_index:
        raw += 10
        if m.demand_index > 70:
            reasons.append(f"Forte demande ({m.demand_index:g}/100)")
        elif m.demand_index > 40:
            reasons.append(f"Demande modérée ({m.demand_index:g}/100)")
        else:
            raw -= 5
            reasons.append(f"Demande faible ({m.demand_index:g}/100)")
    if m.comps_count and m.comps_count >= 10:
        raw += 5
        reasons.append(f"{m.comps_count} ventes comparables")
    if m.absorption_months:
        if m.absorption_months < 6:
            raw += 5
            reasons.append("Absorption rapide (< 6 mois)")
        elif m.absorption_months > 18:
            raw -= 5
            reasons.append("Absorption lente (> 18 mois)")
            actions.append("Marché peu liquide : prévoir des délais de commercialisation")
    if m.evolution_pct:
        if m.evolution_pct > 3:
            raw += 5
            reasons.append(f"Prix en hausse : +{m.evolution_pct:g} %")
        elif m.evolution_pct < -3:
            raw -= 5
            reasons.append(f"Prix en baisse : {m.evolution_pct:g} %")
    if m.sources:
        raw += 5
        reasons.append(f"Sources : {', '.join(m.sources)}")

    return PillarScore(_clamp(raw), reasons, actions, True)


PILLAR_SCORERS: dict[str, Callable[[ScoringContext], PillarScore]] = {
    "documentation": score_documentation,
    "garanties": score_garanties,
    "emprunteur": score_emprunteur,
    "projet": score_projet,
    "ratios": score_ratios,
    "risques": score_risques,
    "marche": score_marche,
}


# --- Missing data ---

def collect_missing(dossier: Dossier, pillars: list[PillarResult]) -> list[MissingDataItem]:
    """Missing pillars plus the field-level required inputs."""
    missing = [
        MissingDataItem(
            key=f"pillar.{p.key}",
            label=p.label,
            severity=Severity(PILLARS[p.key]["missing_severity"]),
        )
        for p in pillars
        if not p.has_data
    ]

    orig = dossier.origination
    budget = dossier.analyse.budget if dossier.analyse else None
    if not (orig and orig.montant_demande):
        missing.append(MissingDataItem(
            key="origination.montant_demande", label="Montant demandé", severity=Severity.BLOCKER,
        ))
    if not (budget and budget.prix_achat):
        missing.append(MissingDataItem(
            key="analyse.budget.prix_achat", label="Prix d'acquisition", severity=Severity.BLOCKER,
        ))
    if not (orig and orig.duree):
        missing.append(MissingDataItem(
            key="origination.duree", label="Durée du prêt", severity=Severity.WARN,
        ))
    return missing


def _grade(score: int) -> str:
    for grade, threshold in GRADE_THRESHOLDS.items():
        if score >= threshold:
            return grade
    return "E"


def _verdict(score: int, has_blocker: bool) -> Verdict:
    if has_blocker:
        return Verdict.DONNEES_INSUFFISANTES
    if score >= VERDICT_THRESHOLDS["favorable"]:
        return Verdict.FAVORABLE
    if score >= VERDICT_THRESHOLDS["favorable_sous_conditions"]:
        return Verdict.FAVORABLE_SOUS_CONDITIONS
    return Verdict.DEFAVORABLE


def _drivers(pillars: list[PillarResult], raw_average: float) -> tuple[list[Driver], list[Driver]]:
    scored = []
    for p in pillars:
        if not p.has_data:
            continue
        delta = p.points - p.max_points * raw_average / 100.0
        scored.append((round2(delta), p))

    ups = sorted((s for s in scored if s[0] > 0), key=lambda s: -s[0])[:MAX_DRIVERS]
    downs = sorted((s for s in scored if s[0] < 0), key=lambda s: s[0])[:MAX_DRIVERS]

    def build(delta: float, p: PillarResult, direction: str) -> Driver:
        return Driver(
            key=p.key,
            label=p.label,
            direction=direction,
            delta=delta,
            impact=f"{p.points}/{p.max_points} pts",
        )

    return [build(d, p, "up") for d, p in ups], [build(d, p, "down") for d, p in downs]


def _recommendations(pillars: list[PillarResult], mandatory: list[str]) -> list[str]:
    ordered = sorted(
        enumerate(pillars),
        key=lambda ip: (ip[1].points / ip[1].max_points if ip[1].max_points else 1.0, ip[0]),
    )
    recommendations = list(mandatory)
    for _, p in ordered:
        recommendations.extend(p.actions)
    return list(dict.fromkeys(recommendations))[:MAX_RECOMMENDATIONS]


def compute_input_hash(payload: Any) -> str:
    """sha256 of the canonical JSON of ``payload``."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# Dossier fields that do not influence the score
_VOLATILE_FIELDS: dict[str, Any] = {
    "status": True,
    "created_at": True,
    "updated_at": True,
    "decided_at": True,
    "report": True,
    "report_generated": True,
    "decision": True,
    "monitoring": True,
    "analyse": {"rentabilite": True},
}


def _hash_payload(dossier: Dossier, ctx: ScoringContext, rentabilite: RentabiliteResult | None) -> dict[str, Any]:
    return {
        "dossier": dossier.model_dump(mode="json", exclude=_VOLATILE_FIELDS, exclude_none=True),
        "ratios": ctx.ratios.model_dump(mode="json", exclude_none=True),
        "risks": [r.model_dump(mode="json", exclude_none=True) for r in ctx.risk_items],
        "market": ctx.market.model_dump(mode="json", exclude={"updated_at"}, exclude_none=True) if ctx.market else None,
        "rentabilite": rentabilite.model_dump(mode="json") if rentabilite else None,
    }


def resolve_risk_items(dossier: Dossier, risk_analysis: RiskAnalysis | None = None) -> list[RiskItem]:
    """Risks of the dossier, or those of the risk-analysis module when it has none."""
    if dossier.risques or risk_analysis is None:
        return list(dossier.risques)
    return list(risk_analysis.items)


def compute_smart_score(
    dossier: Dossier,
    *,
    rentabilite: RentabiliteResult | None = None,
    market: MarketData | None = None,
    risk_analysis: RiskAnalysis | None = None,
    ratios: CreditRatios | None = None,
    generated_at: str | None = None,
) -> SmartScoreResult:
    """Score a dossier on the configured pillars.

    Args:
        dossier: Dossier to score
        rentabilite: Base-case profitability result, when computed
        market: Market module of the snapshot
        risk_analysis: Risk-analysis module; its items are used when the
            dossier has no risk list of its own
        ratios: Precomputed credit ratios (computed from the dossier otherwise)
        generated_at: Generation timestamp (defaults to now)

    Returns:
        SmartScoreResult
    """
    if ratios is None:
        ratios = compute_credit_ratios(dossier, rentabilite)
    ctx = ScoringContext(
        dossier=dossier,
        ratios=ratios,
        risk_items=resolve_risk_items(dossier, risk_analysis),
        market=market,
    )

    pillars: list[PillarResult] = []
    for key, cfg in PILLARS.items():
        result = PILLAR_SCORERS[key](ctx)
        raw = round2(result.raw)
        pillars.append(PillarResult(
            key=key,
            label=cfg["label"],
            points=round(raw * cfg["weight"] / 100.0),
            max_points=cfg["weight"],
            raw_score=raw,
            has_data=result.has_data,
            reasons=result.reasons,
            actions=result.actions,
        ))

    missing = collect_missing(dossier, pillars)
    penalties = [
        MissingPenalty(key=m.key, label=m.label, severity=m.severity, points=MISSING_PENALTY_POINTS[m.severity.value])
        for m in missing
    ]
    total_penalty = sum(p.points for p in penalties)

    score = int(_clamp(sum(p.points for p in pillars) - total_penalty))
    blockers = [f"Donnée bloquante manquante : {m.label}" for m in missing if m.severity == Severity.BLOCKER]
    mandatory = [f"Renseigner en priorité : {m.label}" for m in missing if m.severity == Severity.BLOCKER]

    with_data = [p.raw_score for p in pillars if p.has_data]
    raw_average = round2(sum(with_data) / len(with_data)) if with_data else 0.0
    drivers_up, drivers_down = _drivers(pillars, raw_average)

    return SmartScoreResult(
        score=score,
        grade=_grade(score),
        verdict=_verdict(score, bool(blockers)),
        pillars=pillars,
        drivers_up=drivers_up,
        drivers_down=drivers_down,
        missing=missing,
        missing_penalties=penalties,
        total_missing_penalty=total_penalty,
        blockers=blockers,
        mandatory_actions=mandatory,
        recommendations=_recommendations(pillars, mandatory),
        raw_average=raw_average,
        input_hash=compute_input_hash(_hash_payload(dossier, ctx, rentabilite)),
        engine_version=ENGINE_VERSION,
        generated_at=generated_at or now_iso(),
    )


# --- History and downstream patches ---

def append_score_history(
    history: list[ScoreHistoryEntry] | None,
    result: SmartScoreResult,
    limit: int = SCORE_HISTORY_LIMIT,
) -> list[ScoreHistoryEntry]:
    """Append a result to the history, skipping an unchanged input hash."""
    entries = list(history or [])
    if entries and entries[-1].input_hash == result.input_hash:
        return entries
    entries.append(ScoreHistoryEntry(
        score=result.score,
        grade=result.grade,
        computed_at=result.generated_at,
        input_hash=result.input_hash,
    ))
    return entries[-limit:]


def detect_score_drop(history: list[ScoreHistoryEntry] | None, threshold: int = 10) -> dict[str, int] | None:
    """Drop between the last two entries when it reaches ``threshold`` points."""
    if not history or len(history) < 2:
        return None
    previous, current = history[-2], history[-1]
    drop = previous.score - current.score
    if drop < threshold:
        return None
    return {"previous_score": previous.score, "current_score": current.score, "drop": drop}


def build_risk_analysis_patch(result: SmartScoreResult) -> dict[str, Any]:
    """Patch for the risk-analysis module derived from the risk pillar."""
    pillar = result.pillar("risques")
    if pillar is None or not pillar.has_data:
        level = "unknown"
    elif pillar.raw_score >= 70:
        level = "faible"
    elif pillar.raw_score >= 45:
        level = "modere"
    else:
        level = "eleve"
    return {
        "global_level": level,
        "summary": " · ".join(pillar.reasons) if pillar else "Non évalué",
        "score_risque": pillar.raw_score if pillar and pillar.has_data else 0.0,
        "last_computed_at": result.generated_at,
    }


def build_verdict_text(result: SmartScoreResult) -> str:
    """Committee narrative explaining the verdict."""
    lines = [f"Score {result.score}/100 ({result.grade}), verdict : {result.verdict.value}."]

    strong = [p for p in result.pillars if p.has_data and p.raw_score >= 70]
    if strong:
        lines.append("Points forts : " + ", ".join(f"{p.label} ({p.raw_score:g})" for p in strong) + ".")

    weak = [p for p in result.pillars if p.has_data and p.raw_score < 45]
    if weak:
        lines.append("Vigilance : " + ", ".join(f"{p.label} ({p.raw_score:g})" for p in weak) + ".")

    if result.missing:
        labels = ", ".join(m.label for m in result.missing)
        lines.append(f"Données manquantes : {labels} (pénalité -{result.total_missing_penalty} pts).")

    if result.blockers:
        lines.append("Bloquants : " + " ; ".join(result.blockers) + ".")

    return "\n".join(lines)

"""Monitoring alerts derived from a SmartScore result and credit ratios."""

from __future__ import annotations

from banque.domain.calculator.scoring import detect_score_drop
from banque.domain.models import (
    CreditRatios,
    MonitoringAlert,
    ScoreHistoryEntry,
    Severity,
    SmartScoreResult,
    now_iso,
)

WEAK_PILLAR_CRITICAL = 30
WEAK_PILLAR_WARNING = 50
LTV_CRITICAL_PCT = 90
DSTI_WARNING_PCT = 45
SCORE_DROP_POINTS = 10


def _alert(dossier_id: str, rule: str, severity: str, title: str, message: str, at: str) -> MonitoringAlert:
    # Ids are stable per rule so a rerun updates instead of duplicating
    return MonitoringAlert(
        id=f"score-{rule}",
        dossier_id=dossier_id,
        severity=severity,
        rule_key=rule,
        title=title,
        message=message,
        created_at=at,
        updated_at=at,
    )


def compute_alerts(
    score: SmartScoreResult,
    ratios: CreditRatios | None,
    dossier_id: str,
    history: list[ScoreHistoryEntry] | None = None,
    generated_at: str | None = None,
) -> list[MonitoringAlert]:
    """Critical and warning alerts for a freshly computed score.

    Args:
        score: SmartScore result
        ratios: Credit ratios used for the score
        dossier_id: Dossier the alerts belong to
        history: Score history including the current entry
        generated_at: Alert timestamp (defaults to now)

    Returns:
        Alerts sorted critical first
    """
    at = generated_at or now_iso()
    alerts: list[MonitoringAlert] = []

    for item in score.missing:
        if item.severity == Severity.BLOCKER:
            alerts.append(_alert(
                dossier_id, f"missing-{item.key}", "critical",
                "Donnée bloquante manquante", item.label, at,
            ))

    for p in score.pillars:
        if not p.has_data:
            continue
        if p.raw_score < WEAK_PILLAR_CRITICAL:
            alerts.append(_alert(
                dossier_id, f"pillar-{p.key}", "critical",
                f"{p.label} critique", f"Sous-score {p.raw_score:g}/100", at,
            ))
        elif p.raw_score < WEAK_PILLAR_WARNING:
            alerts.append(_alert(
                dossier_id, f"pillar-{p.key}", "warning",
                f"{p.label} fragile", f"Sous-score {p.raw_score:g}/100", at,
            ))

    if ratios is not None:
        if ratios.ltv_pct is not None and ratios.ltv_pct > LTV_CRITICAL_PCT:
            alerts.append(_alert(
                dossier_id, "ltv", "critical",
                "LTV excessif", f"LTV {ratios.ltv_pct:g} % > {LTV_CRITICAL_PCT} %", at,
            ))
        if ratios.marge_pct is not None and ratios.marge_pct < 0:
            alerts.append(_alert(
                dossier_id, "marge", "critical",
                "Marge négative", f"Marge {ratios.marge_pct:g} %", at,
            ))
        if ratios.dscr is not None and ratios.dscr < 1:
            alerts.append(_alert(
                dossier_id, "dscr", "critical",
                "DSCR < 1", f"Les loyers ne couvrent pas la mensualité (DSCR {ratios.dscr:g})", at,
            ))
        if ratios.dsti_pct is not None and ratios.dsti_pct > DSTI_WARNING_PCT:
            alerts.append(_alert(
                dossier_id, "dsti", "warning",
                "Taux d'effort élevé", f"Taux d'effort {ratios.dsti_pct:g} % > {DSTI_WARNING_PCT} %", at,
            ))

    drop = detect_score_drop(history, SCORE_DROP_POINTS)
    if drop:
        alerts.append(_alert(
            dossier_id, "drop", "warning",
            "Baisse du score",
            f"{drop['previous_score']} → {drop['current_score']} (-{drop['drop']} pts)",
            at,
        ))

    return sorted(alerts, key=lambda a: 0 if a.severity == "critical" else 1)

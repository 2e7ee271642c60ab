"""Dossier lifecycle rules.

The state machine is advisory. Saving origination data sets ``origination``
from any status, the other sections only push the status forward, a
committee decision forces ``decision``, and any status may still be set by
hand. Nothing here blocks a mutation.
"""

from __future__ import annotations

from banque.domain.models import CommitteeDecision, DossierStatus

STATUS_ORDER: tuple[DossierStatus, ...] = (
    DossierStatus.BROUILLON,
    DossierStatus.ORIGINATION,
    DossierStatus.ANALYSE,
    DossierStatus.COMITE,
    DossierStatus.DECISION,
    DossierStatus.MONITORING,
    DossierStatus.CLOTURE,
)

# Status reached by saving a dossier section
SECTION_STATUS: dict[str, DossierStatus] = {
    "origination": DossierStatus.ORIGINATION,
    "analyse": DossierStatus.ANALYSE,
    "risques": DossierStatus.ANALYSE,
    "garanties": DossierStatus.ANALYSE,
    "documents": DossierStatus.ANALYSE,
    "monitoring": DossierStatus.MONITORING,
}

# Sections whose save sets their status outright, earlier or not
RESET_SECTIONS: frozenset[str] = frozenset({"origination"})

STATUS_LABELS: dict[DossierStatus, str] = {
    DossierStatus.BROUILLON: "Brouillon",
    DossierStatus.ORIGINATION: "Origination",
    DossierStatus.ANALYSE: "Analyse",
    DossierStatus.COMITE: "Comité",
    DossierStatus.DECISION: "Décision rendue",
    DossierStatus.MONITORING: "Suivi",
    DossierStatus.CLOTURE: "Clôturé",
}


def status_rank(status: DossierStatus | str) -> int:
    return STATUS_ORDER.index(DossierStatus(status))


def advance(current: DossierStatus | str, target: DossierStatus | str) -> DossierStatus:
    """Move forward to ``target`` unless ``current`` is already past it."""
    current = DossierStatus(current)
    target = DossierStatus(target)
    return target if status_rank(target) > status_rank(current) else current


def status_after_sections(current: DossierStatus | str, sections: list[str]) -> DossierStatus:
    """Status after saving the given dossier sections."""
    status = DossierStatus(current)
    for section in RESET_SECTIONS.intersection(sections):
        status = SECTION_STATUS[section]
    for section in sections:
        target = SECTION_STATUS.get(section)
        if target is not None and section not in RESET_SECTIONS:
            status = advance(status, target)
    return status


def is_rendered(decision: CommitteeDecision | str | None) -> bool:
    """True for any committee verdict other than pending."""
    if decision is None:
        return False
    return CommitteeDecision(decision) != CommitteeDecision.EN_ATTENTE

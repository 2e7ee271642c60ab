"""Structured committee report.

A report is an immutable, timestamped artifact. It is superseded by
regeneration and never edited in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field

from .base import FrozenModel
from .rentabilite import CreditRatios, Decision
from .smartscore import MissingDataItem, SmartScoreResult


class ReportState(str, Enum):
    """Validity of the report persisted under a dossier."""

    NOT_GENERATED = "not_generated"
    VALID = "valid"
    INVALID = "invalid"


class ReportMeta(FrozenModel):
    dossier_id: str
    dossier_label: str
    reference: str | None = None
    status: str


class ReportBorrower(FrozenModel):
    type: str = Field(..., description="personne_physique, personne_morale or inconnu")
    identite: str
    details: dict[str, str] = Field(default_factory=dict)


class ReportProject(FrozenModel):
    montant: float | None = None
    duree: int | None = None
    taux_annuel_pct: float | None = None
    type_pret: str = ""
    type_pret_label: str = "Non renseigné"
    adresse: str = ""
    commune: str = ""
    notes: str = ""


class TableRow(FrozenModel):
    """One labelled line of a report table."""

    label: str
    value: float | str | None = None
    unit: str = ""


class ReportRiskItem(FrozenModel):
    categorie: str
    label: str
    niveau: str
    statut: str


class ReportRisks(FrozenModel):
    items: list[ReportRiskItem] = Field(default_factory=list)
    counts_by_level: dict[str, int] = Field(default_factory=dict)
    global_level: str | None = None


class ReportGuaranteeItem(FrozenModel):
    type: str
    description: str
    valeur: float | None = None
    rang: int | None = None
    statut: str = ""


class ReportGuarantees(FrozenModel):
    items: list[ReportGuaranteeItem] = Field(default_factory=list)
    couverture: float = 0.0
    ratio_pct: float | None = Field(None, description="Coverage of the loan, whole percentage")
    commentaire: str = ""


class ReportDocumentItem(FrozenModel):
    nom: str
    type: str
    statut: str
    commentaire: str | None = None


class ReportDocuments(FrozenModel):
    items: list[ReportDocumentItem] = Field(default_factory=list)
    total: int = 0
    completeness_pct: float = 0.0
    missing: list[str] = Field(default_factory=list)


class ReportRentabilite(FrozenModel):
    decision: Decision | None = None
    reasons: list[str] = Field(default_factory=list)
    scenarios: list[TableRow] = Field(default_factory=list)
    stress_tests: list[TableRow] = Field(default_factory=list)


class ReportVerdict(FrozenModel):
    verdict: str
    narrative: str
    missing: list[MissingDataItem] = Field(default_factory=list)
    mandatory_actions: list[str] = Field(default_factory=list)


class StructuredReport(FrozenModel):
    """Point-in-time decision artifact handed to the committee."""

    generated_at: str
    meta: ReportMeta
    emprunteur: ReportBorrower
    projet: ReportProject
    budget: list[TableRow] = Field(default_factory=list)
    financement: list[TableRow] = Field(default_factory=list)
    revenus: list[TableRow] = Field(default_factory=list)
    marche: list[TableRow] = Field(default_factory=list)
    ratios: CreditRatios
    risques: ReportRisks
    garanties: ReportGuarantees
    documents: ReportDocuments
    smartscore: SmartScoreResult
    rentabilite: ReportRentabilite
    verdict: ReportVerdict

    def tables(self) -> dict[str, list[TableRow]]:
        """Labelled tables in display order."""
        return {
            "budget": self.budget,
            "financement": self.financement,
            "revenus": self.revenus,
            "marche": self.marche,
            "scenarios": self.rentabilite.scenarios,
            "stress_tests": self.rentabilite.stress_tests,
        }


def classify_report(report: Any, flagged: bool = False) -> ReportState:
    """Classify a persisted report payload (or model).

    Args:
        report: StructuredReport, raw dict payload or None
        flagged: Whether the owning dossier claims a report was generated

    Returns:
        VALID when the report carries a non-empty generation timestamp and a
        populated meta block, NOT_GENERATED when there is neither report nor
        flag, INVALID otherwise.
    """
    if isinstance(report, StructuredReport):
        report = report.to_payload()

    if not report:
        return ReportState.INVALID if flagged else ReportState.NOT_GENERATED

    if not isinstance(report, dict):
        return ReportState.INVALID

    generated_at = report.get("generatedAt", report.get("generated_at"))
    meta = report.get("meta")
    if isinstance(generated_at, str) and generated_at.strip() and isinstance(meta, dict) and meta:
        return ReportState.VALID
    return ReportState.INVALID

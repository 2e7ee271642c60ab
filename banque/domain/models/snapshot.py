"""Persisted snapshot and its auxiliary modules.

The snapshot is the single versioned record of the Banque vertical: one
active dossier plus the modules computed around it. A missing module means
"not yet computed", never an error.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field

from banque.core.exceptions import UnknownModuleError

from .base import CamelModel
from .dossier import CommitteeDecision, Dossier, GuaranteeItem, RiskItem
from .smartscore import ScoreHistoryEntry, SmartScoreResult

SNAPSHOT_VERSION = "1.0.0"


class ModuleKey(str, Enum):
    """Fixed set of addressable snapshot modules (persisted names)."""

    RISK_ANALYSIS = "riskAnalysis"
    GUARANTEES = "guarantees"
    DOCUMENTS = "documents"
    COMMITTEE = "committee"
    MONITORING = "monitoring"
    SMART_SCORE = "smartScore"
    MARKET = "market"

    @classmethod
    def coerce(cls, value: Any) -> ModuleKey:
        """Accept a ModuleKey, its persisted name or its attribute name."""
        if isinstance(value, cls):
            return value
        for key in cls:
            if value in (key.value, key.attr):
                return key
        raise UnknownModuleError(value)

    @property
    def attr(self) -> str:
        """Attribute name on Snapshot."""
        return _MODULE_ATTRS[self]


_MODULE_ATTRS = {
    ModuleKey.RISK_ANALYSIS: "risk_analysis",
    ModuleKey.GUARANTEES: "guarantees",
    ModuleKey.DOCUMENTS: "documents",
    ModuleKey.COMMITTEE: "committee",
    ModuleKey.MONITORING: "monitoring",
    ModuleKey.SMART_SCORE: "smart_score",
    ModuleKey.MARKET: "market",
}


class RiskAnalysis(CamelModel):
    global_level: str | None = Field(None, description="faible, modere, eleve or unknown")
    summary: str | None = None
    score_risque: float | None = None
    items: list[RiskItem] = Field(default_factory=list)
    last_computed_at: str | None = None
    updated_at: str | None = None


class GuaranteesModule(CamelModel):
    requested: list[GuaranteeItem] = Field(default_factory=list)
    obtained: list[GuaranteeItem] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    updated_at: str | None = None

    def compute_gaps(self) -> list[str]:
        """Requested guarantees not (yet) obtained."""
        obtained_ids = {g.id for g in self.obtained if g.statut == "obtenue"}
        return [
            f"{g.label or g.id} ({g.type}) : non obtenue"
            for g in self.requested
            if g.id not in obtained_ids
        ]


class DocumentsModule(CamelModel):
    required: list[str] = Field(default_factory=list, description="Required document ids")
    received: list[str] = Field(default_factory=list, description="Received document ids")
    missing: list[str] = Field(default_factory=list)
    updated_at: str | None = None

    def compute_missing(self) -> list[str]:
        received = set(self.received)
        return [r for r in self.required if r not in received]


class Committee(CamelModel):
    decision: CommitteeDecision = CommitteeDecision.EN_ATTENTE
    conditions: list[str] = Field(default_factory=list)
    note: str | None = None
    committee_date: str | None = None
    updated_at: str | None = None


class MonitoringAlert(CamelModel):
    """Append-only log entry (audit event or monitoring alert)."""

    id: str
    dossier_id: str
    severity: str = Field(default="info", description="info, warning or critical")
    rule_key: str = "event"
    title: str = ""
    message: str = ""
    created_at: str | None = None
    updated_at: str | None = None
    acknowledged_at: str | None = None


class MonitoringModule(CamelModel):
    alerts: list[MonitoringAlert] = Field(default_factory=list)
    rules_config: list[dict[str, Any]] = Field(default_factory=list)
    last_run_at: str | None = None
    updated_at: str | None = None


class SmartScoreModule(CamelModel):
    score: int | None = None
    grade: str | None = None
    verdict: str | None = None
    result: SmartScoreResult | None = None
    history: list[ScoreHistoryEntry] = Field(default_factory=list)
    updated_at: str | None = None


class MarketData(CamelModel):
    prix_m2_median: float | None = Field(None, ge=0, description="Median price per m² in €")
    demand_index: float | None = Field(None, ge=0, le=100, description="Demand index 0-100")
    comps_count: int | None = Field(None, ge=0, description="Number of comparable sales")
    absorption_months: float | None = Field(None, ge=0)
    evolution_pct: float | None = Field(None, description="12-month price change %")
    tension: str | None = None
    sources: list[str] = Field(default_factory=list)
    updated_at: str | None = None


MODULE_MODELS: dict[ModuleKey, type[CamelModel]] = {
    ModuleKey.RISK_ANALYSIS: RiskAnalysis,
    ModuleKey.GUARANTEES: GuaranteesModule,
    ModuleKey.DOCUMENTS: DocumentsModule,
    ModuleKey.COMMITTEE: Committee,
    ModuleKey.MONITORING: MonitoringModule,
    ModuleKey.SMART_SCORE: SmartScoreModule,
    ModuleKey.MARKET: MarketData,
}


class Snapshot(CamelModel):
    """Versioned container of the active dossier and its modules."""

    version: str = SNAPSHOT_VERSION
    updated_at: str | None = None
    dossier: Dossier | None = None
    active_dossier_id: str | None = None

    risk_analysis: RiskAnalysis | None = None
    guarantees: GuaranteesModule | None = None
    documents: DocumentsModule | None = None
    committee: Committee | None = None
    monitoring: MonitoringModule | None = None
    smart_score: SmartScoreModule | None = None
    market: MarketData | None = None

    model_config = {"extra": "ignore"}

    def active_id(self) -> str | None:
        """Active dossier id, falling back to the stored dossier's id."""
        if self.active_dossier_id:
            return self.active_dossier_id
        return self.dossier.id if self.dossier else None

    def module(self, key: ModuleKey | str) -> CamelModel | None:
        return getattr(self, ModuleKey.coerce(key).attr)

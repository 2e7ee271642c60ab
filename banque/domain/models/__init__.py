"""Data models for banque."""

from .base import CamelModel, FrozenModel, now_iso
from .dossier import (
    Analyse,
    Bien,
    Borrower,
    Budget,
    Calendrier,
    CommitteeDecision,
    CompanyBorrower,
    DecisionRecord,
    DocumentItem,
    Documents,
    Dossier,
    DossierStatus,
    Garanties,
    GuaranteeItem,
    MonitoringSection,
    Origination,
    PersonBorrower,
    Revenus,
    RiskItem,
)
from .rentabilite import (
    CreditRatios,
    Decision,
    RentabiliteInput,
    RentabiliteResult,
    RentabiliteScenarios,
    RentabiliteSnapshot,
    RentabiliteStressTests,
    Strategy,
)
from .report import ReportState, StructuredReport, TableRow, classify_report
from .smartscore import (
    Driver,
    MissingDataItem,
    MissingPenalty,
    PillarResult,
    ScoreHistoryEntry,
    Severity,
    SmartScoreResult,
    Verdict,
)
from .snapshot import (
    MODULE_MODELS,
    SNAPSHOT_VERSION,
    Committee,
    DocumentsModule,
    GuaranteesModule,
    MarketData,
    ModuleKey,
    MonitoringAlert,
    MonitoringModule,
    RiskAnalysis,
    SmartScoreModule,
    Snapshot,
)

__all__ = [
    "CamelModel",
    "FrozenModel",
    "now_iso",
    # Dossier
    "Dossier",
    "DossierStatus",
    "CommitteeDecision",
    "Origination",
    "PersonBorrower",
    "CompanyBorrower",
    "Borrower",
    "Analyse",
    "Budget",
    "Revenus",
    "Bien",
    "Calendrier",
    "RiskItem",
    "GuaranteeItem",
    "Garanties",
    "DocumentItem",
    "Documents",
    "DecisionRecord",
    "MonitoringSection",
    # Rentabilité
    "Strategy",
    "Decision",
    "RentabiliteInput",
    "RentabiliteResult",
    "RentabiliteScenarios",
    "RentabiliteStressTests",
    "RentabiliteSnapshot",
    "CreditRatios",
    # SmartScore
    "Severity",
    "Verdict",
    "MissingDataItem",
    "MissingPenalty",
    "PillarResult",
    "Driver",
    "ScoreHistoryEntry",
    "SmartScoreResult",
    # Report
    "ReportState",
    "StructuredReport",
    "TableRow",
    "classify_report",
    # Snapshot
    "Snapshot",
    "SNAPSHOT_VERSION",
    "ModuleKey",
    "MODULE_MODELS",
    "RiskAnalysis",
    "GuaranteesModule",
    "DocumentsModule",
    "Committee",
    "MonitoringAlert",
    "MonitoringModule",
    "SmartScoreModule",
    "MarketData",
]

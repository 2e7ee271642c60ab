"""Application services."""

from .report_generator import ReportGenerator, generate_structured_report, report_state
from .snapshot_store import SNAPSHOT_EVENT, ChangeBus, SnapshotChanged, SnapshotStore
from .workflow import DossierGuardResult, DossierWorkflow, resolve_dossier

__all__ = [
    "SnapshotStore",
    "ChangeBus",
    "SnapshotChanged",
    "SNAPSHOT_EVENT",
    "DossierWorkflow",
    "DossierGuardResult",
    "resolve_dossier",
    "ReportGenerator",
    "generate_structured_report",
    "report_state",
]

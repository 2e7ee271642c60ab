"""Export services for committee reports.

The exporter is the boundary to document rendering: it receives a finished,
valid report and produces a downloadable artifact on disk.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
import unicodedata
from datetime import datetime
from pathlib import Path
from typing import Any, NamedTuple

import pandas as pd

from banque.core.exceptions import InvalidReportError
from banque.core.logging import get_logger
from banque.core.settings import get_settings
from banque.domain.models import ReportState, StructuredReport, classify_report

log = get_logger(__name__)


class DossierDisplay(NamedTuple):
    """Display information printed on the artifact."""

    label: str
    reference: str | None = None


def _slug(text: str) -> str:
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^A-Za-z0-9]+", "-", ascii_text).strip("-").lower() or "dossier"


class DocumentExporter(ABC):
    """Base exporter: validates the report and names the output file."""

    extension = "txt"

    def __init__(self, output_dir: str | Path | None = None):
        """Initialize exporter.

        Args:
            output_dir: Directory where artifacts are written
                (settings.report_output_dir by default).
        """
        self.output_dir = Path(output_dir) if output_dir is not None else get_settings().report_output_dir

    def _ensure_dir(self) -> None:
        if not self.output_dir.exists():
            self.output_dir.mkdir(parents=True, exist_ok=True)
            log.info("created_output_directory", path=str(self.output_dir))

    def _filepath(self, display: DossierDisplay) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        name = _slug(display.reference or display.label)
        filepath = self.output_dir / f"rapport_{name}_{timestamp}.{self.extension}"
        counter = 1
        while filepath.exists():
            filepath = self.output_dir / f"rapport_{name}_{timestamp}_{counter}.{self.extension}"
            counter += 1
        return filepath

    def export(self, report: StructuredReport | dict[str, Any], display: DossierDisplay) -> Path:
        """Write the artifact for a valid report.

        Raises:
            InvalidReportError: If the report lacks its timestamp or meta block

        Returns:
            Path to the written file
        """
        state = classify_report(report)
        if state != ReportState.VALID:
            raise InvalidReportError(f"Report cannot be exported (state: {state.value})")
        if isinstance(report, dict):
            report = StructuredReport.model_validate(report)

        self._ensure_dir()
        filepath = self._filepath(display)
        try:
            self._write(report, display, filepath)
        except OSError as e:
            log.error("report_export_failed", path=str(filepath), error=str(e))
            raise
        log.info("report_exported", path=str(filepath), format=self.extension, label=display.label)
        return filepath

    @abstractmethod
    def _write(self, report: StructuredReport, display: DossierDisplay, filepath: Path) -> None:
        """Write the artifact to ``filepath``."""


class JsonReportExporter(DocumentExporter):
    """Report payload with a metadata header, as pretty-printed JSON."""

    extension = "json"

    def _write(self, report: StructuredReport, display: DossierDisplay, filepath: Path) -> None:
        payload = {
            "metadata": {
                "timestamp": datetime.now().isoformat(),
                "label": display.label,
                "reference": display.reference,
                "generatedAt": report.generated_at,
            },
            "report": report.to_payload(),
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)


class CsvReportExporter(DocumentExporter):
    """Report tables flattened to one CSV (section, label, value, unit)."""

    extension = "csv"

    def to_frame(self, report: StructuredReport) -> pd.DataFrame:
        rows = [
            {"section": section, "label": row.label, "value": row.value, "unit": row.unit}
            for section, table in report.tables().items()
            for row in table
        ]
        rows += [
            {"section": "smartscore", "label": p.label, "value": p.raw_score, "unit": "/100"}
            for p in report.smartscore.pillars
        ]
        rows.append({"section": "smartscore", "label": "Score global", "value": report.smartscore.score, "unit": "/100"})
        return pd.DataFrame(rows, columns=["section", "label", "value", "unit"])

    def _write(self, report: StructuredReport, display: DossierDisplay, filepath: Path) -> None:
        self.to_frame(report).to_csv(filepath, sep=";", index=False, encoding="utf-8")

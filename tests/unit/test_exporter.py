"""Unit tests for banque.services.exporter module."""

import json

import pandas as pd
import pytest

from banque.application.services.report_generator import generate_structured_report
from banque.core.exceptions import InvalidReportError
from banque.domain.calculator import compute_all, compute_smart_score, input_from_dossier
from banque.services.exporter import CsvReportExporter, DocumentExporter, DossierDisplay, JsonReportExporter

AT = "2026-03-01T10:00:00+00:00"


@pytest.fixture
def report(sample_dossier):
    financial = compute_all(input_from_dossier(sample_dossier))
    score = compute_smart_score(sample_dossier, rentabilite=financial.base, generated_at=AT)
    return generate_structured_report(sample_dossier, financial, score, generated_at=AT)


@pytest.fixture
def display():
    return DossierDisplay(label="Immeuble rue Victor Hugo", reference="DOSS-2026-0042")


class TestJsonReportExporter:
    """Tests for the JSON artifact."""

    def test_export(self, tmp_path, report, display):
        path = JsonReportExporter(tmp_path / "out").export(report, display)
        assert path.exists()
        assert path.name.startswith("rapport_doss-2026-0042_")
        assert path.suffix == ".json"

        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["metadata"]["label"] == "Immeuble rue Victor Hugo"
        assert data["metadata"]["generatedAt"] == AT
        assert data["report"]["meta"]["dossierId"] == "dossier-001"

    def test_accepts_payload_dict(self, tmp_path, report, display):
        path = JsonReportExporter(tmp_path).export(report.to_payload(), display)
        assert path.exists()

    def test_repeated_exports_do_not_overwrite(self, tmp_path, report, display):
        exporter = JsonReportExporter(tmp_path)
        paths = {exporter.export(report, display) for _ in range(5)}
        assert len(paths) == 5
        assert all(p.exists() for p in paths)

    def test_slug_from_label(self, tmp_path, report):
        path = JsonReportExporter(tmp_path).export(report, DossierDisplay(label="Résidence Été"))
        assert path.name.startswith("rapport_residence-ete_")

    @pytest.mark.parametrize(
        "payload",
        [
            {"meta": {"dossierId": "x"}},
            {"generatedAt": "", "meta": {"dossierId": "x"}},
            {"generatedAt": AT, "meta": {}},
            {},
        ],
    )
    def test_invalid_report_rejected(self, tmp_path, display, payload):
        with pytest.raises(InvalidReportError):
            JsonReportExporter(tmp_path).export(payload, display)
        assert list(tmp_path.iterdir()) == []


class TestCsvReportExporter:
    """Tests for the flattened CSV artifact."""

    def test_to_frame(self, report):
        df = CsvReportExporter().to_frame(report)
        assert list(df.columns) == ["section", "label", "value", "unit"]
        assert set(df["section"]) >= {"budget", "financement", "scenarios", "stress_tests", "smartscore"}
        total = df[(df["section"] == "smartscore") & (df["label"] == "Score global")]
        assert total["value"].iloc[0] == report.smartscore.score

    def test_export(self, tmp_path, report, display):
        path = CsvReportExporter(tmp_path).export(report, display)
        assert path.suffix == ".csv"
        df = pd.read_csv(path, sep=";")
        assert len(df) == len(CsvReportExporter().to_frame(report))
        budget = df[df["section"] == "budget"]
        assert "Coût total" in set(budget["label"])


class TestDocumentExporter:
    def test_base_class_is_abstract(self, tmp_path):
        with pytest.raises(TypeError):
            DocumentExporter(tmp_path)

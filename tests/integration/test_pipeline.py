"""Integration tests for the lending pipeline.

Tests the complete flow from dossier creation → section saves → report
generation → export → committee decision → deletion, on file storage.
"""

import json

import pytest

from banque.application.services import DossierWorkflow, ReportGenerator, SnapshotStore
from banque.application.services.report_generator import report_state
from banque.domain.models import DossierStatus, ModuleKey, ReportState, Snapshot
from banque.services import JsonFileBackend
from banque.services.exporter import DossierDisplay, JsonReportExporter

AT = "2026-03-01T10:00:00+00:00"


class TestLendingPipeline:
    """End-to-end flow over the JSON file backend."""

    @pytest.fixture
    def store(self, tmp_path):
        return SnapshotStore(JsonFileBackend(tmp_path / "storage"), key="banque.snapshot")

    @pytest.fixture
    def workflow(self, store):
        return DossierWorkflow(store)

    @pytest.fixture
    def filled_dossier(self, workflow, sample_dossier_data):
        """Dossier entered section by section, as a user would."""
        data = sample_dossier_data
        dossier = workflow.create_dossier(data["label"], dossier_id=data["id"])
        workflow.save_origination(dossier.id, data["origination"])
        workflow.save_analysis(dossier.id, data["analyse"])
        workflow.save_risks(dossier.id, data["risques"])
        workflow.save_guarantees(dossier.id, data["garanties"]["items"])
        workflow.save_documents(dossier.id, data["documents"]["items"])
        return dossier

    def test_sections_accumulate(self, store, filled_dossier):
        """Each save keeps the sibling sections."""
        dossier = store.get_dossier()
        assert dossier.origination.emprunteur.raison_sociale == "SCI Les Tilleuls"
        assert dossier.analyse.budget.prix_achat == 200000
        assert dossier.analyse.rentabilite.base.cout_total == 251000
        assert len(dossier.risques) == 2
        assert len(dossier.garanties.items) == 2
        assert len(dossier.documents.items) == 3
        assert dossier.status == DossierStatus.ANALYSE

    def test_persisted_on_disk(self, tmp_path, filled_dossier):
        path = tmp_path / "storage" / "banque.snapshot.json"
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["activeDossierId"] == "dossier-001"
        assert data["dossier"]["origination"]["montantDemande"] == 180000
        assert data["documents"]["missing"] == ["d3"]

    def test_reload_from_disk(self, tmp_path, store, filled_dossier):
        reopened = SnapshotStore(JsonFileBackend(tmp_path / "storage"), key="banque.snapshot")
        assert reopened.read().dossier == store.read().dossier

    def test_report_and_decision(self, tmp_path, store, workflow, filled_dossier):
        report = ReportGenerator(store).generate(filled_dossier.id, generated_at=AT)
        dossier = store.get_dossier()
        assert report_state(dossier) == ReportState.VALID
        assert dossier.status == DossierStatus.COMITE

        path = JsonReportExporter(tmp_path / "reports").export(
            dossier.report,
            DossierDisplay(label=dossier.label, reference=dossier.reference),
        )
        assert path.exists()

        assert workflow.record_committee_decision(filled_dossier.id, "accord", conditions=["Hypothèque 1er rang"])
        snap = store.read()
        assert snap.dossier.status == DossierStatus.DECISION
        assert snap.committee.decision.value == "accord"
        # The report survives the decision
        assert snap.dossier.report["generatedAt"] == report.generated_at

    def test_second_window_sees_changes(self, tmp_path, store, workflow, filled_dossier):
        """Two stores on one directory: the other one is notified."""
        other = SnapshotStore(JsonFileBackend(tmp_path / "storage"), key="banque.snapshot")
        seen = []
        other.on_change(seen.append)
        workflow.save_origination(filled_dossier.id, {"notes": "Visite faite"})
        assert seen
        assert seen[-1].dossier.origination.notes == "Visite faite"

    def test_switching_dossier(self, store, workflow, filled_dossier):
        workflow.create_dossier("Autre opération", dossier_id="dossier-002")
        snap = store.read()
        assert snap.active_dossier_id == "dossier-002"
        assert snap.documents is None
        # The previous dossier can no longer be written
        assert workflow.save_origination(filled_dossier.id, {"notes": "trop tard"}) is None

    def test_deletion_cascade(self, store, filled_dossier):
        ReportGenerator(store).generate(filled_dossier.id, generated_at=AT)
        assert store.remove_dossier("unknown") is False
        assert store.read().dossier is not None

        assert store.remove_dossier(filled_dossier.id) is True
        snap = store.read()
        assert snap.dossier is None
        assert all(snap.module(key) is None for key in ModuleKey)
        assert snap == Snapshot(updated_at=snap.updated_at)

"""Unit tests for banque.application.services.snapshot_store module."""

import pytest

from banque.application.services.snapshot_store import (
    SNAPSHOT_EVENT,
    SnapshotStore,
    deep_merge,
    make_reference,
)
from banque.core.exceptions import StorageError, UnknownModuleError
from banque.domain.models import (
    CommitteeDecision,
    DossierStatus,
    ModuleKey,
    MonitoringAlert,
    Snapshot,
)
from banque.services import InMemoryBackend

SHARED_KEY = "test.banque.shared"


class FailingBackend(InMemoryBackend):
    """Backend whose writes always fail (quota exceeded, disabled storage)."""

    def set_item(self, key, value, origin=None):
        raise StorageError(key, "quota exceeded")


class TestDeepMerge:
    def test_nested_dicts_merge(self):
        merged = deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}}

    def test_lists_replaced(self):
        assert deep_merge({"a": [1, 2]}, {"a": [3]}) == {"a": [3]}

    def test_changed_type_tag_replaces(self):
        merged = deep_merge(
            {"e": {"type": "personne_physique", "nom": "Durand"}},
            {"e": {"type": "personne_morale", "raison_sociale": "SCI"}},
        )
        assert merged == {"e": {"type": "personne_morale", "raison_sociale": "SCI"}}


class TestReadWrite:
    """Tests for snapshot persistence."""

    def test_empty_by_default(self, store):
        snap = store.read()
        assert snap.dossier is None
        assert snap.version == "1.0.0"

    def test_round_trip(self, store, sample_dossier):
        written = store.write(Snapshot(dossier=sample_dossier, active_dossier_id=sample_dossier.id))
        assert written.updated_at is not None
        assert store.read() == written

    def test_persisted_layout_is_camel_case(self, store, backend, active_dossier):
        raw = backend.raw(store.key)
        assert '"activeDossierId"' in raw
        assert '"montantDemande"' in raw
        assert '"updatedAt"' in raw

    def test_read_returns_copy(self, store, active_dossier):
        snap = store.read()
        snap.dossier.label = "Modifié"
        assert store.read().dossier.label == active_dossier.label

    def test_corrupt_payload_reads_empty(self, store, backend):
        backend.set_item(store.key, "{not json")
        assert store.read() == Snapshot()

    def test_persist_failure_keeps_session_state(self):
        """A failed write still updates the state and still notifies."""
        store = SnapshotStore(FailingBackend(), key=SHARED_KEY)
        seen = []
        store.on_change(seen.append)
        dossier = store.upsert_dossier({"id": "d1", "label": "Sans stockage"})
        assert dossier is not None
        assert store.read().dossier.label == "Sans stockage"
        assert len(seen) == 1


class TestUpsertDossier:
    """Tests for dossier creation and deep-merge updates."""

    def test_create(self, store, sample_dossier_data):
        dossier = store.upsert_dossier(sample_dossier_data)
        assert dossier.id == "dossier-001"
        assert dossier.created_at is not None
        assert dossier.reference == make_reference("dossier-001", dossier.created_at)
        assert store.read().active_dossier_id == "dossier-001"

    def test_generated_id(self, store):
        dossier = store.upsert_dossier({"label": "Nouveau"})
        assert dossier.id
        assert store.is_active(dossier.id)

    def test_partial_update_merges(self, store, active_dossier):
        updated = store.upsert_dossier({"origination": {"montant_demande": 190000}})
        assert updated.origination.montant_demande == 190000
        assert updated.origination.duree == 24
        assert updated.origination.emprunteur.raison_sociale == "SCI Les Tilleuls"

    def test_borrower_variant_switch(self, store, active_dossier):
        updated = store.upsert_dossier({
            "origination": {"emprunteur": {"type": "personne_physique", "prenom": "Jeanne", "nom": "Durand"}},
        })
        assert updated.origination.emprunteur.type == "personne_physique"
        assert updated.origination.emprunteur.nom == "Durand"

    def test_origination_save_advances_status(self, store):
        dossier = store.upsert_dossier({"id": "d1", "origination": {"montant_demande": 100000}})
        assert dossier.status == DossierStatus.ORIGINATION
        dossier = store.upsert_dossier({"analyse": {"budget": {"prix_achat": 120000}}})
        assert dossier.status == DossierStatus.ANALYSE

    def test_origination_save_reenters_origination(self, store, active_dossier):
        store.update_status(active_dossier.id, DossierStatus.DECISION)
        dossier = store.upsert_dossier({"origination": {"notes": "RAS"}})
        assert dossier.status == DossierStatus.ORIGINATION

    def test_other_sections_never_move_back(self, store, active_dossier):
        store.update_status(active_dossier.id, DossierStatus.COMITE)
        dossier = store.upsert_dossier({"garanties": {"commentaire": "RAS"}})
        assert dossier.status == DossierStatus.COMITE

    def test_new_dossier_drops_previous_modules(self, store, active_dossier):
        store.patch_market(active_dossier.id, {"prix_m2_median": 4000})
        store.upsert_dossier({"id": "other", "label": "Autre"})
        snap = store.read()
        assert snap.market is None
        assert snap.active_dossier_id == "other"

    def test_audit_events(self, store, active_dossier):
        store.upsert_dossier({"label": "Renommé"})
        rules = [a.rule_key for a in store.read().monitoring.alerts]
        assert rules == ["dossier_created", "dossier_updated"]

    def test_invalid_data_rejected(self, store, active_dossier):
        assert store.upsert_dossier({"origination": {"montant_demande": -5}}) is None
        assert store.read().dossier.origination.montant_demande == 180000


class TestGuard:
    """Mutations addressed to a non-active dossier are dropped."""

    def test_patch_other_dossier_is_noop(self, store, backend, active_dossier):
        before = backend.raw(store.key)
        assert store.patch_documents("someone-else", {"required": ["a"]}) is False
        assert backend.raw(store.key) == before

    def test_no_active_dossier(self, store):
        assert store.patch_market("d1", {"prix_m2_median": 1}) is False
        assert store.read() == Snapshot()

    def test_unknown_module_raises(self, store, active_dossier):
        with pytest.raises(UnknownModuleError):
            store.patch_module(active_dossier.id, "portfolio", {})

    def test_module_key_by_attribute_name(self, store, active_dossier):
        assert store.patch_module(active_dossier.id, "smart_score", {"score": 70})
        assert store.read_module(ModuleKey.SMART_SCORE).score == 70


class TestPatchModule:
    """Tests for module patches and derived fields."""

    def test_documents_missing(self, store, active_dossier):
        store.patch_documents(active_dossier.id, {"required": ["a", "b", "c"], "received": ["b"]})
        assert store.read().documents.missing == ["a", "c"]

    def test_shallow_merge(self, store, active_dossier):
        store.patch_documents(active_dossier.id, {"required": ["a", "b"]})
        store.patch_documents(active_dossier.id, {"received": ["a"]})
        docs = store.read().documents
        assert docs.required == ["a", "b"]
        assert docs.missing == ["b"]

    def test_guarantee_gaps(self, store, active_dossier):
        store.patch_guarantees(active_dossier.id, {
            "requested": [
                {"id": "g1", "type": "hypotheque", "label": "Hypothèque"},
                {"id": "g2", "type": "caution", "label": "Caution"},
            ],
            "obtained": [{"id": "g1", "type": "hypotheque", "statut": "obtenue"}],
        })
        assert store.read().guarantees.gaps == ["Caution (caution) : non obtenue"]

    def test_risk_analysis_stamped(self, store, active_dossier):
        store.patch_risk_analysis(active_dossier.id, {"global_level": "faible"})
        risk = store.read().risk_analysis
        assert risk.last_computed_at is not None
        assert risk.updated_at is not None

    def test_rendered_committee_decision(self, store, active_dossier):
        store.patch_committee(active_dossier.id, {"decision": CommitteeDecision.ACCORD})
        snap = store.read()
        assert snap.dossier.status == DossierStatus.DECISION
        assert snap.dossier.decided_at is not None
        assert snap.monitoring.alerts[-1].rule_key == "decision_recorded"

    def test_pending_decision_keeps_status(self, store, active_dossier):
        store.patch_committee(active_dossier.id, {"note": "En cours d'instruction"})
        assert store.read().dossier.status == active_dossier.status

    def test_invalid_patch_rejected(self, store, active_dossier):
        assert store.patch_market(active_dossier.id, {"demand_index": 250}) is False
        assert store.read().market is None


class TestMonitoringLog:
    """Tests for the audit/alert log."""

    def test_append_event(self, store, active_dossier):
        assert store.append_event(active_dossier.id, "note", "Note ajoutée", "Appel client")
        assert store.read().monitoring.alerts[-1].title == "Note ajoutée"

    def test_upsert_alert_replaces_same_id(self, store, active_dossier):
        alert = MonitoringAlert(id="score-ltv", dossier_id=active_dossier.id, severity="critical", title="LTV")
        store.upsert_alert(active_dossier.id, alert)
        store.upsert_alert(active_dossier.id, alert.model_copy(update={"message": "LTV 95 %"}))
        matching = [a for a in store.read().monitoring.alerts if a.id == "score-ltv"]
        assert len(matching) == 1
        assert matching[0].message == "LTV 95 %"

    def test_acknowledge_and_remove(self, store, active_dossier):
        store.upsert_alert(active_dossier.id, {"id": "a1", "dossier_id": active_dossier.id, "title": "Test"})
        assert store.acknowledge_alert(active_dossier.id, "a1")
        assert [a for a in store.read().monitoring.alerts if a.id == "a1"][0].acknowledged_at
        assert store.remove_alert(active_dossier.id, "a1")
        assert not store.remove_alert(active_dossier.id, "a1")

    def test_monitoring_config(self, store, active_dossier):
        rules = [{"rule_key": "ltv", "threshold": 90}]
        assert store.patch_monitoring_config(active_dossier.id, rules)
        assert store.read().monitoring.rules_config == rules

    def test_guarded(self, store, active_dossier):
        assert store.append_event("ghost", "note", "Note") is False


class TestRemoval:
    """Tests for deletion and clearing."""

    def test_remove_active_cascades(self, store, active_dossier):
        store.patch_market(active_dossier.id, {"prix_m2_median": 4000})
        store.patch_documents(active_dossier.id, {"required": ["a"]})
        assert store.remove_dossier(active_dossier.id)
        snap = store.read()
        assert snap.dossier is None
        assert snap.active_dossier_id is None
        assert all(snap.module(key) is None for key in ModuleKey)

    def test_remove_other_is_noop(self, store, backend, active_dossier):
        before = backend.raw(store.key)
        assert store.remove_dossier("ghost") is False
        assert backend.raw(store.key) == before

    def test_clear_module(self, store, active_dossier):
        store.patch_market(active_dossier.id, {"prix_m2_median": 4000})
        store.clear_module("market")
        assert store.read().market is None
        assert store.read().dossier is not None

    def test_clear(self, store, active_dossier):
        store.clear()
        assert store.read().dossier is None


class TestOnChange:
    """Tests for change subscriptions."""

    def test_local_notification(self, store):
        seen = []
        store.on_change(seen.append)
        store.upsert_dossier({"id": "d1"})
        assert len(seen) == 1
        assert seen[0].dossier.id == "d1"

    def test_idempotent_subscription(self, store):
        seen = []
        first = store.on_change(seen.append)
        second = store.on_change(seen.append)
        assert first is second
        store.upsert_dossier({"id": "d1"})
        assert len(seen) == 1

    def test_disposer_removes_both(self, store):
        dispose = store.on_change(lambda snap: None)
        assert store.bus.handler_count("local") == 1
        assert store.bus.handler_count("remote") == 1
        dispose()
        assert store.bus.handler_count("local") == 0
        assert store.bus.handler_count("remote") == 0

    def test_remote_notification(self, backend):
        """A second store on the same backend re-reads on change."""
        writer = SnapshotStore(backend, key=SHARED_KEY)
        reader = SnapshotStore(backend, key=SHARED_KEY)
        events, seen = [], []
        reader.bus.subscribe("remote", events.append)
        reader.on_change(seen.append)
        writer.upsert_dossier({"id": "d1", "label": "Partagé"})
        assert events[0].name == SNAPSHOT_EVENT
        assert events[0].key == SHARED_KEY
        assert events[0].snapshot is None
        assert seen[0].dossier.label == "Partagé"

    def test_other_key_ignored(self, backend):
        reader = SnapshotStore(backend, key=SHARED_KEY)
        seen = []
        reader.on_change(seen.append)
        backend.set_item("another.key", "{}")
        assert seen == []

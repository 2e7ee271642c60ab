"""Dossier workflow service.

Section saves of the lending workflow as thin, guarded wrappers over the
snapshot store, plus the navigation guard that resolves which dossier a
screen works on.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from banque.application.services.snapshot_store import SnapshotStore
from banque.core.logging import get_logger
from banque.domain.calculator import calculate_remaining_balance, compute_all, input_from_dossier
from banque.domain.lifecycle import is_rendered
from banque.domain.models import (
    CommitteeDecision,
    Dossier,
    DocumentItem,
    GuaranteeItem,
    RiskItem,
    now_iso,
)
from banque.domain.required_documents import get_required_documents

log = get_logger(__name__)

DOSSIER_SELECTION = "dossier_selection"


@dataclass(frozen=True)
class DossierGuardResult:
    """Resolved dossier id, or where to send the user instead."""

    dossier_id: str | None
    redirect_to: str | None = None

    @property
    def ok(self) -> bool:
        return self.dossier_id is not None


def resolve_dossier(store: SnapshotStore, nav_dossier_id: str | None = None) -> DossierGuardResult:
    """Dossier a screen should work on.

    The navigation id wins when it is the active dossier; otherwise the
    store's active id is used. With neither, the caller is redirected to
    dossier selection.
    """
    active = store.read().active_id()
    if nav_dossier_id and nav_dossier_id == active:
        return DossierGuardResult(dossier_id=nav_dossier_id)
    if nav_dossier_id:
        log.info("dossier_nav_mismatch", nav_dossier_id=nav_dossier_id, active_dossier_id=active)
    if active:
        return DossierGuardResult(dossier_id=active)
    return DossierGuardResult(dossier_id=None, redirect_to=DOSSIER_SELECTION)


def _items(values: list[Any]) -> list[Any]:
    return [v.model_dump() if hasattr(v, "model_dump") else dict(v) for v in values]


class DossierWorkflow:
    """Guarded section saves for the active dossier."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    def _section(self, dossier_id: str, section: str, data: Any) -> Dossier | None:
        if not self.store.is_active(dossier_id):
            log.warning("dossier_guard_rejected", action=f"save_{section}", dossier_id=dossier_id)
            return None
        return self.store.upsert_dossier({"id": dossier_id, section: data})

    def create_dossier(self, label: str = "Sans nom", dossier_id: str | None = None, **sections: Any) -> Dossier | None:
        """Start a new dossier and make it active."""
        return self.store.upsert_dossier({"id": dossier_id or uuid.uuid4().hex, "label": label, **sections})

    def save_origination(self, dossier_id: str, origination: Mapping[str, Any]) -> Dossier | None:
        return self._section(dossier_id, "origination", origination)

    def save_analysis(self, dossier_id: str, analyse: Mapping[str, Any]) -> Dossier | None:
        """Save the analysis inputs and refresh the stored profitability run."""
        dossier = self._section(dossier_id, "analyse", analyse)
        if dossier is None or "rentabilite" in analyse:
            return dossier
        inp = input_from_dossier(dossier)
        if inp is None:
            return dossier
        return self.store.upsert_dossier({"id": dossier_id, "analyse": {"rentabilite": compute_all(inp)}})

    def save_risks(self, dossier_id: str, risques: list[RiskItem | Mapping[str, Any]]) -> Dossier | None:
        """Replace the risk list and mirror it into the risk-analysis module."""
        dossier = self._section(dossier_id, "risques", _items(risques))
        if dossier is not None:
            self.store.patch_risk_analysis(dossier_id, {"items": _items(risques)})
        return dossier

    def save_guarantees(
        self,
        dossier_id: str,
        items: list[GuaranteeItem | Mapping[str, Any]],
        commentaire: str | None = None,
    ) -> Dossier | None:
        """Replace the guarantees and refresh the requested/obtained module."""
        garanties: dict[str, Any] = {"items": _items(items)}
        if commentaire is not None:
            garanties["commentaire"] = commentaire
        dossier = self._section(dossier_id, "garanties", garanties)
        if dossier is not None and dossier.garanties is not None:
            self.store.patch_guarantees(dossier_id, {
                "requested": _items(dossier.garanties.items),
                "obtained": _items([g for g in dossier.garanties.items if g.statut == "obtenue"]),
            })
        return dossier

    def save_documents(self, dossier_id: str, items: list[DocumentItem | Mapping[str, Any]]) -> Dossier | None:
        """Replace the document checklist and refresh required/received ids."""
        dossier = self._section(dossier_id, "documents", {"items": _items(items)})
        if dossier is not None and dossier.documents is not None:
            docs = dossier.documents.items
            self.store.patch_documents(dossier_id, {
                "required": [d.id for d in docs],
                "received": [d.id for d in docs if d.is_received],
            })
        return dossier

    def init_document_checklist(self, dossier_id: str, project_type: str | None = None) -> Dossier | None:
        """Seed the checklist with the documents required for the project type.

        Documents already present keep their status.
        """
        dossier = self.store.get_dossier()
        if dossier is None or not self.store.is_active(dossier_id):
            log.warning("dossier_guard_rejected", action="init_document_checklist", dossier_id=dossier_id)
            return None
        if project_type is None and dossier.origination is not None:
            project_type = dossier.origination.type_projet

        existing = {d.id: d for d in (dossier.documents.items if dossier.documents else [])}
        items = [
            existing.get(req.id) or DocumentItem(id=req.id, nom=req.label, type=req.category)
            for req in get_required_documents(project_type)
        ]
        required_ids = {i.id for i in items}
        items.extend(d for d_id, d in existing.items() if d_id not in required_ids)
        return self.save_documents(dossier_id, items)

    def record_committee_decision(
        self,
        dossier_id: str,
        avis: CommitteeDecision | str,
        conditions: list[str] | None = None,
        commentaire: str | None = None,
        **terms: Any,
    ) -> bool:
        """Record the committee verdict on the dossier and the committee module.

        A rendered verdict moves the dossier to ``decision``.
        """
        avis = CommitteeDecision(avis)
        committee_date = terms.pop("date_comite", None) or now_iso()
        decision = {
            "avis": avis,
            "conditions": list(conditions or []),
            "commentaire": commentaire,
            "date_comite": committee_date,
            **terms,
        }
        if self._section(dossier_id, "decision", decision) is None:
            return False
        applied = self.store.patch_committee(dossier_id, {
            "decision": avis,
            "conditions": list(conditions or []),
            "note": commentaire,
            "committee_date": committee_date,
        })
        if applied and is_rendered(avis):
            log.info("committee_decision_saved", dossier_id=dossier_id, avis=avis.value)
        return applied

    def save_monitoring(
        self,
        dossier_id: str,
        months_paid: int | None = None,
        impayes: int | None = None,
        commentaire: str | None = None,
    ) -> Dossier | None:
        """Record the follow-up of a granted loan and move the dossier to ``monitoring``.

        With ``months_paid``, the outstanding capital is computed from the
        granted terms (the requested ones when the committee set none).
        """
        dossier = self.store.get_dossier()
        if dossier is None or not self.store.is_active(dossier_id):
            log.warning("dossier_guard_rejected", action="save_monitoring", dossier_id=dossier_id)
            return None

        monitoring: dict[str, Any] = {}
        if impayes is not None:
            monitoring["impayes"] = impayes
        if commentaire is not None:
            monitoring["commentaire"] = commentaire
        if months_paid is not None:
            decision = dossier.decision
            orig = dossier.origination
            principal = (decision.montant_accorde if decision else None) or (orig.montant_demande if orig else None)
            rate = (decision.taux_pct if decision else None) or (orig.taux_annuel_pct if orig else None) or 0.0
            duration = (decision.duree if decision else None) or (orig.duree if orig else None)
            if principal and duration:
                monitoring["capital_restant_du"] = round(
                    calculate_remaining_balance(principal, rate, duration, months_paid), 2
                )
            else:
                log.info("monitoring_terms_missing", dossier_id=dossier_id)
        return self._section(dossier_id, "monitoring", monitoring)

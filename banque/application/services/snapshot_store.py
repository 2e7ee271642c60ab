"""Snapshot store service.

Owns the persisted Banque snapshot: reads and writes it through an injectable
storage backend, applies guarded mutations to the active dossier and its
modules, keeps the audit log, and publishes change events.

Every mutation is a read-modify-write of the whole snapshot. A mutation
addressed to a dossier other than the active one is logged and dropped
without touching storage.
"""

from __future__ import annotations

import uuid
import zlib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from banque.core.exceptions import StorageError
from banque.core.logging import get_logger
from banque.core.settings import get_settings
from banque.domain.lifecycle import SECTION_STATUS, is_rendered, status_after_sections
from banque.domain.models import (
    MODULE_MODELS,
    CamelModel,
    Dossier,
    DossierStatus,
    ModuleKey,
    MonitoringAlert,
    MonitoringModule,
    Snapshot,
    now_iso,
)
from banque.services.storage import JsonFileBackend, StorageBackend

log = get_logger(__name__)

SNAPSHOT_EVENT = "mimmoza:banque:snapshot"

Source = Literal["local", "remote"]


@dataclass(frozen=True)
class SnapshotChanged:
    """Change notification. Local events carry the snapshot, remote ones the key."""

    name: str
    source: Source
    key: str
    snapshot: Snapshot | None = None


Handler = Callable[[SnapshotChanged], None]


class ChangeBus:
    """In-process publish/subscribe keyed by event source."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def subscribe(self, topic: Source, handler: Handler) -> Callable[[], None]:
        handlers = self._handlers.setdefault(topic, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: SnapshotChanged) -> None:
        for handler in list(self._handlers.get(event.source, [])):
            handler(event)

    def handler_count(self, topic: Source) -> int:
        return len(self._handlers.get(topic, []))


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def _as_patch(partial: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    """Snake-case dict of the fields a caller actually provided."""
    if isinstance(partial, BaseModel):
        return {name: _plain(getattr(partial, name)) for name in partial.model_fields_set}
    return {k: _plain(v) for k, v in partial.items()}


def deep_merge(base: dict[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` into a copy of ``base``.

    Dicts merge recursively, lists and scalars are replaced. A dict whose
    ``type`` tag changes is replaced wholesale.
    """
    merged = dict(base)
    for key, value in patch.items():
        old = merged.get(key)
        if isinstance(old, dict) and isinstance(value, Mapping):
            if "type" in old and "type" in value and old["type"] != value["type"]:
                merged[key] = dict(value)
            else:
                merged[key] = deep_merge(old, value)
        else:
            merged[key] = value
    return merged


# Top-level dossier fields replaced rather than merged
REPLACED_FIELDS = frozenset({"report"})


def make_reference(dossier_id: str, created_at: str) -> str:
    """Display reference ``DOSS-<year>-<nnnn>``, stable for a given id."""
    return f"DOSS-{created_at[:4]}-{zlib.crc32(dossier_id.encode('utf-8')) % 10000:04d}"


def _new_event(dossier_id: str, rule_key: str, title: str, message: str = "", severity: str = "info") -> MonitoringAlert:
    at = now_iso()
    return MonitoringAlert(
        id=f"evt-{uuid.uuid4().hex[:12]}",
        dossier_id=dossier_id,
        severity=severity,
        rule_key=rule_key,
        title=title,
        message=message,
        created_at=at,
        updated_at=at,
    )


def _with_alerts(snap: Snapshot, alerts: list[MonitoringAlert]) -> None:
    monitoring = snap.monitoring or MonitoringModule()
    snap.monitoring = monitoring.model_copy(update={"alerts": alerts, "updated_at": now_iso()})


class SnapshotStore:
    """Guarded access to the persisted snapshot."""

    def __init__(
        self,
        backend: StorageBackend | None = None,
        key: str | None = None,
        bus: ChangeBus | None = None,
    ):
        """Initialize store.

        Args:
            backend: Storage backend (JSON files under settings.storage_dir by default)
            key: Storage key (settings.snapshot_key by default)
            bus: Change bus (a private one by default)
        """
        settings = get_settings()
        self.backend = backend if backend is not None else JsonFileBackend(settings.storage_dir)
        self.key = key or settings.snapshot_key
        self.bus = bus or ChangeBus()
        # Last written state when persistence failed
        self._pending: Snapshot | None = None
        self._callbacks: dict[Callable[[Snapshot], None], Callable[[], None]] = {}
        self._detach = self.backend.subscribe(self._on_backend_change, owner=self)

    def close(self) -> None:
        """Stop listening to the backend."""
        self._detach()

    # --- Read / write ---

    def read(self) -> Snapshot:
        """Current snapshot (a deep copy); empty when absent or unreadable."""
        if self._pending is not None:
            return self._pending.model_copy(deep=True)
        try:
            raw = self.backend.get_item(self.key)
        except (StorageError, OSError) as e:
            log.warning("snapshot_read_failed", key=self.key, error=str(e))
            return Snapshot()
        if not raw:
            return Snapshot()
        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError as e:
            log.warning("snapshot_read_corrupt", key=self.key, error_count=e.error_count())
            return Snapshot()

    def write(self, snapshot: Snapshot) -> Snapshot:
        """Stamp, persist and announce a snapshot.

        A persistence failure is logged; the written state is still served by
        :meth:`read` and the change event still fires.
        """
        stamped = snapshot.model_copy(update={"updated_at": now_iso()}, deep=True)
        payload = stamped.model_dump_json(by_alias=True, exclude_none=True)
        try:
            self.backend.set_item(self.key, payload, origin=self)
            self._pending = None
        except (StorageError, OSError) as e:
            log.error("snapshot_persist_failed", key=self.key, error=str(e))
            self._pending = stamped.model_copy(deep=True)

        self.bus.publish(SnapshotChanged(
            name=SNAPSHOT_EVENT,
            source="local",
            key=self.key,
            snapshot=stamped.model_copy(deep=True),
        ))
        return stamped

    def _on_backend_change(self, key: str) -> None:
        if key != self.key:
            return
        self._pending = None
        self.bus.publish(SnapshotChanged(name=SNAPSHOT_EVENT, source="remote", key=key))

    def on_change(self, callback: Callable[[Snapshot], None]) -> Callable[[], None]:
        """Call ``callback(snapshot)`` on local and remote changes.

        Registering the same callback twice returns the existing disposer.
        """
        if callback in self._callbacks:
            return self._callbacks[callback]

        def on_local(event: SnapshotChanged) -> None:
            callback(event.snapshot if event.snapshot is not None else self.read())

        def on_remote(event: SnapshotChanged) -> None:
            callback(self.read())

        unsubscribe_local = self.bus.subscribe("local", on_local)
        unsubscribe_remote = self.bus.subscribe("remote", on_remote)

        def dispose() -> None:
            unsubscribe_local()
            unsubscribe_remote()
            self._callbacks.pop(callback, None)

        self._callbacks[callback] = dispose
        return dispose

    # --- Guard ---

    def is_active(self, dossier_id: str | None) -> bool:
        active = self.read().active_id()
        return bool(dossier_id) and dossier_id == active

    def _guard(self, snap: Snapshot, dossier_id: str | None, action: str) -> bool:
        active = snap.active_id()
        if dossier_id and active and dossier_id == active:
            return True
        log.warning("dossier_guard_rejected", action=action, dossier_id=dossier_id, active_dossier_id=active)
        return False

    # --- Dossier ---

    def get_dossier(self) -> Dossier | None:
        return self.read().dossier

    def upsert_dossier(self, partial: Mapping[str, Any] | Dossier) -> Dossier | None:
        """Deep-merge a partial dossier into the active one.

        Args:
            partial: Snake-case dict or Dossier. Without ``id`` the active
                dossier is updated (a new one is created when none exists).

        Returns:
            The stored Dossier, or None when the merged data is invalid
        """
        patch = _as_patch(partial)
        snap = self.read()
        current = snap.dossier
        now = now_iso()

        dossier_id = patch.get("id") or snap.active_id() or uuid.uuid4().hex
        created = current is None or current.id != dossier_id
        if created:
            base: dict[str, Any] = {
                "id": dossier_id,
                "created_at": now,
                "reference": make_reference(dossier_id, now),
            }
            # A different dossier does not inherit the previous one's modules
            snap = Snapshot()
        else:
            base = current.model_dump()

        merged = deep_merge(base, patch)
        for name in REPLACED_FIELDS & patch.keys():
            merged[name] = patch[name]
        merged["id"] = dossier_id
        merged["updated_at"] = now
        if "status" not in patch:
            sections = [name for name in patch if name in SECTION_STATUS]
            merged["status"] = status_after_sections(merged.get("status") or DossierStatus.BROUILLON, sections)

        try:
            dossier = Dossier.model_validate(merged)
        except ValidationError as e:
            log.warning("dossier_upsert_invalid", dossier_id=dossier_id, error_count=e.error_count())
            return None

        snap.dossier = dossier
        snap.active_dossier_id = dossier.id

        if created:
            event = _new_event(dossier.id, "dossier_created", "Dossier créé", dossier.label)
            log.info("dossier_created", dossier_id=dossier.id, reference=dossier.reference)
        else:
            sections = ", ".join(sorted(k for k in patch if k not in ("id", "updated_at")))
            event = _new_event(dossier.id, "dossier_updated", "Dossier mis à jour", sections)
        _with_alerts(snap, [*(snap.monitoring.alerts if snap.monitoring else []), event])

        self.write(snap)
        return dossier

    def update_status(self, dossier_id: str, status: DossierStatus | str) -> bool:
        """Set the lifecycle status by hand (any status is allowed)."""
        snap = self.read()
        if not self._guard(snap, dossier_id, "update_status") or snap.dossier is None:
            return False
        new_status = DossierStatus(status)
        old_status = snap.dossier.status
        snap.dossier = snap.dossier.model_copy(update={"status": new_status, "updated_at": now_iso()})
        event = _new_event(dossier_id, "status_changed", "Statut modifié", f"{old_status.value} → {new_status.value}")
        _with_alerts(snap, [*(snap.monitoring.alerts if snap.monitoring else []), event])
        self.write(snap)
        return True

    def remove_dossier(self, dossier_id: str) -> bool:
        """Delete the active dossier and every module; no-op for any other id."""
        snap = self.read()
        if not dossier_id or snap.active_id() != dossier_id:
            log.info("dossier_remove_ignored", dossier_id=dossier_id, active_dossier_id=snap.active_id())
            return False
        self.write(Snapshot())
        log.info("dossier_removed", dossier_id=dossier_id)
        return True

    def clear(self) -> None:
        """Reset to an empty snapshot."""
        self.write(Snapshot())

    # --- Modules ---

    def read_module(self, key: ModuleKey | str) -> CamelModel | None:
        return self.read().module(key)

    def clear_module(self, key: ModuleKey | str) -> None:
        module_key = ModuleKey.coerce(key)
        snap = self.read()
        setattr(snap, module_key.attr, None)
        self.write(snap)

    def patch_module(
        self,
        dossier_id: str,
        key: ModuleKey | str,
        partial: Mapping[str, Any] | BaseModel,
    ) -> bool:
        """Shallow-merge ``partial`` into a module of the active dossier.

        Raises:
            UnknownModuleError: If ``key`` is not a ModuleKey

        Returns:
            True when the patch was applied
        """
        module_key = ModuleKey.coerce(key)
        snap = self.read()
        if not self._guard(snap, dossier_id, f"patch_{module_key.attr}"):
            return False

        now = now_iso()
        current = snap.module(module_key)
        data = current.model_dump() if current is not None else {}
        data.update(_as_patch(partial))
        data["updated_at"] = now
        if module_key == ModuleKey.RISK_ANALYSIS and not data.get("last_computed_at"):
            data["last_computed_at"] = now

        try:
            module = MODULE_MODELS[module_key].model_validate(data)
        except ValidationError as e:
            log.warning("module_patch_invalid", module=module_key.value, dossier_id=dossier_id, error_count=e.error_count())
            return False

        if module_key == ModuleKey.DOCUMENTS:
            module = module.model_copy(update={"missing": module.compute_missing()})
        elif module_key == ModuleKey.GUARANTEES:
            module = module.model_copy(update={"gaps": module.compute_gaps()})
        setattr(snap, module_key.attr, module)

        event = None
        if module_key == ModuleKey.COMMITTEE and is_rendered(module.decision) and snap.dossier is not None:
            snap.dossier = snap.dossier.model_copy(update={
                "status": DossierStatus.DECISION,
                "decided_at": now,
                "updated_at": now,
            })
            event = _new_event(dossier_id, "decision_recorded", "Décision du comité", module.decision.value)
            log.info("decision_recorded", dossier_id=dossier_id, decision=module.decision.value)
        elif module_key != ModuleKey.MONITORING:
            event = _new_event(dossier_id, "module_updated", "Module mis à jour", module_key.value)
        if event is not None:
            _with_alerts(snap, [*(snap.monitoring.alerts if snap.monitoring else []), event])

        self.write(snap)
        return True

    def patch_risk_analysis(self, dossier_id: str, partial: Mapping[str, Any] | BaseModel) -> bool:
        return self.patch_module(dossier_id, ModuleKey.RISK_ANALYSIS, partial)

    def patch_guarantees(self, dossier_id: str, partial: Mapping[str, Any] | BaseModel) -> bool:
        return self.patch_module(dossier_id, ModuleKey.GUARANTEES, partial)

    def patch_documents(self, dossier_id: str, partial: Mapping[str, Any] | BaseModel) -> bool:
        return self.patch_module(dossier_id, ModuleKey.DOCUMENTS, partial)

    def patch_committee(self, dossier_id: str, partial: Mapping[str, Any] | BaseModel) -> bool:
        return self.patch_module(dossier_id, ModuleKey.COMMITTEE, partial)

    def patch_smart_score(self, dossier_id: str, partial: Mapping[str, Any] | BaseModel) -> bool:
        return self.patch_module(dossier_id, ModuleKey.SMART_SCORE, partial)

    def patch_market(self, dossier_id: str, partial: Mapping[str, Any] | BaseModel) -> bool:
        return self.patch_module(dossier_id, ModuleKey.MARKET, partial)

    # --- Monitoring log ---

    def _update_alerts(
        self,
        dossier_id: str,
        action: str,
        update: Callable[[list[MonitoringAlert]], list[MonitoringAlert] | None],
    ) -> bool:
        snap = self.read()
        if not self._guard(snap, dossier_id, action):
            return False
        alerts = update(list(snap.monitoring.alerts if snap.monitoring else []))
        if alerts is None:
            return False
        _with_alerts(snap, alerts)
        self.write(snap)
        return True

    def append_event(
        self,
        dossier_id: str,
        rule_key: str,
        title: str,
        message: str = "",
        severity: str = "info",
    ) -> bool:
        """Append an audit event to the monitoring log."""
        event = _new_event(dossier_id, rule_key, title, message, severity)
        return self._update_alerts(dossier_id, "append_event", lambda alerts: [*alerts, event])

    def upsert_alert(self, dossier_id: str, alert: MonitoringAlert | Mapping[str, Any]) -> bool:
        """Insert an alert, or update the one with the same id."""
        data = _as_patch(alert)
        data["dossier_id"] = dossier_id
        try:
            incoming = MonitoringAlert.model_validate(data)
        except ValidationError as e:
            log.warning("alert_invalid", dossier_id=dossier_id, error_count=e.error_count())
            return False
        now = now_iso()

        def update(alerts: list[MonitoringAlert]) -> list[MonitoringAlert]:
            for i, existing in enumerate(alerts):
                if existing.id == incoming.id:
                    alerts[i] = incoming.model_copy(update={
                        "created_at": existing.created_at or now,
                        "updated_at": now,
                        "acknowledged_at": existing.acknowledged_at,
                    })
                    return alerts
            return [*alerts, incoming.model_copy(update={"created_at": incoming.created_at or now, "updated_at": now})]

        return self._update_alerts(dossier_id, "upsert_alert", update)

    def acknowledge_alert(self, dossier_id: str, alert_id: str) -> bool:
        def update(alerts: list[MonitoringAlert]) -> list[MonitoringAlert] | None:
            for i, existing in enumerate(alerts):
                if existing.id == alert_id:
                    alerts[i] = existing.model_copy(update={"acknowledged_at": now_iso()})
                    return alerts
            return None

        return self._update_alerts(dossier_id, "acknowledge_alert", update)

    def remove_alert(self, dossier_id: str, alert_id: str) -> bool:
        def update(alerts: list[MonitoringAlert]) -> list[MonitoringAlert] | None:
            kept = [a for a in alerts if a.id != alert_id]
            return kept if len(kept) != len(alerts) else None

        return self._update_alerts(dossier_id, "remove_alert", update)

    def patch_monitoring_config(self, dossier_id: str, rules_config: list[dict[str, Any]]) -> bool:
        """Replace the monitoring rules configuration."""
        return self.patch_module(dossier_id, ModuleKey.MONITORING, {"rules_config": rules_config})

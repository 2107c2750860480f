"""Alert Manager.

Owns the per-patient alert lifecycle: idempotent creation, one-way
acknowledgement, dismissal, and publication of new alerts on the live
feed. Writes for one patient are serialized with a per-patient lock;
different patients never wait on each other.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, datetime

from medrefer_ddi.core.audit import AuditAction, log_alert_event
from medrefer_ddi.core.exceptions import AlertNotFoundError, ValidationError
from medrefer_ddi.services.alert_feed import AlertFeed, AlertSubscription
from medrefer_ddi.services.alert_store import AlertStore, InMemoryAlertStore, drug_pair_key
from medrefer_ddi.services.interaction_types import (
    DrugInteraction,
    DrugInteractionAlert,
    InteractionSeverity,
    parse_severity,
    severity_rank,
)
from medrefer_ddi.services.notifications import AlertNotifier, LoggingAlertNotifier

logger = logging.getLogger(__name__)


def _require_id(value: str, what: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{what} must not be empty")
    return str(value).strip()


class AlertManager:
    """Per-patient drug interaction alerts.

    Usage:
        manager = AlertManager()
        alert = await manager.raise_alert("patient-1", interaction)
        await manager.acknowledge_alert(alert.id, "dr.smith", notes="Reviewed")
    """

    def __init__(
        self,
        store: AlertStore | None = None,
        feed: AlertFeed | None = None,
        notifier: AlertNotifier | None = None,
        min_severity: InteractionSeverity | str = InteractionSeverity.MODERATE,
    ) -> None:
        self.store: AlertStore = store if store is not None else InMemoryAlertStore()
        self.feed = feed if feed is not None else AlertFeed()
        self.notifier: AlertNotifier = notifier if notifier is not None else LoggingAlertNotifier()
        self.min_severity = parse_severity(min_severity)
        self._patient_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def initialize(self) -> None:
        await self.store.initialize()

    @asynccontextmanager
    async def _patient_lock(self, patient_id: str) -> AsyncIterator[None]:
        """Hold the patient's write lock; the entry is dropped once unused."""
        lock = self._patient_locks.get(patient_id)
        if lock is None:
            lock = self._patient_locks[patient_id] = asyncio.Lock()
        self._lock_users[patient_id] = self._lock_users.get(patient_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[patient_id] -= 1
            if self._lock_users[patient_id] == 0:
                del self._lock_users[patient_id]
                del self._patient_locks[patient_id]

    def qualifies(self, interaction: DrugInteraction, min_severity: InteractionSeverity | None = None) -> bool:
        """Whether an interaction is severe enough to raise an alert."""
        threshold = min_severity if min_severity is not None else self.min_severity
        return severity_rank(interaction.severity) >= severity_rank(threshold)

    async def get_patient_alerts(self, patient_id: str) -> list[DrugInteractionAlert]:
        """All alerts for a patient, acknowledged or not, most recent first."""
        patient_id = _require_id(patient_id, "patient_id")
        return await self.store.list_for_patient(patient_id)

    async def raise_alert(self, patient_id: str, interaction: DrugInteraction) -> DrugInteractionAlert:
        """Create an alert unless an open one exists for the same drug pair.

        Returns:
            The new alert, or the existing open alert for this patient and pair.
        """
        patient_id = _require_id(patient_id, "patient_id")
        drug_pair = drug_pair_key(interaction)

        async with self._patient_lock(patient_id):
            existing = await self.store.find_open(patient_id, drug_pair)
            if existing is not None:
                logger.debug(f"Open alert {existing.id} already covers {drug_pair} for patient_id={patient_id}")
                return existing

            alert = DrugInteractionAlert(patient_id=patient_id, interaction=interaction)
            # A stored alert is always published, even if the caller is cancelled
            task = asyncio.ensure_future(self._store_and_publish(alert))
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                await asyncio.wait({task})
                if not task.cancelled() and task.exception() is None:
                    self._announce(alert, drug_pair)
                raise

        self._announce(alert, drug_pair)
        return alert

    async def _store_and_publish(self, alert: DrugInteractionAlert) -> None:
        await self.store.add(alert)
        # Published while holding the lock to keep per-patient order
        self.feed.publish(alert)

    def _announce(self, alert: DrugInteractionAlert, drug_pair: str) -> None:
        log_alert_event(
            AuditAction.ALERT_RAISED,
            alert_id=alert.id,
            patient_id=alert.patient_id,
            details={"drug_pair": drug_pair, "severity": alert.interaction.severity.value},
        )
        self._notify(alert)

    async def raise_alerts(
        self,
        patient_id: str,
        interactions: Iterable[DrugInteraction],
        min_severity: InteractionSeverity | str | None = None,
    ) -> list[DrugInteractionAlert]:
        """Raise alerts for every interaction at or above the minimum severity."""
        threshold = parse_severity(min_severity) if min_severity is not None else self.min_severity
        alerts = []
        for interaction in interactions:
            if self.qualifies(interaction, threshold):
                alerts.append(await self.raise_alert(patient_id, interaction))
        return alerts

    async def acknowledge_alert(
        self,
        alert_id: str,
        acknowledged_by: str,
        notes: str | None = None,
    ) -> DrugInteractionAlert:
        """Mark an alert acknowledged.

        Acknowledging twice is allowed: the first acknowledgement's user
        and time are kept and only the notes are updated when given.

        Raises:
            AlertNotFoundError: If the alert id is unknown.
            ValidationError: If ``acknowledged_by`` is empty.
        """
        alert_id = _require_id(alert_id, "alert_id")
        acknowledged_by = _require_id(acknowledged_by, "acknowledged_by")

        alert = await self.store.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)

        async with self._patient_lock(alert.patient_id):
            current = await self.store.get(alert_id)
            if current is None:
                raise AlertNotFoundError(alert_id)

            if current.acknowledged:
                if notes is None or notes == current.notes:
                    return current
                updated = replace(current, notes=notes)
            else:
                updated = replace(
                    current,
                    acknowledged=True,
                    acknowledged_by=acknowledged_by,
                    acknowledged_at=datetime.now(UTC),
                    notes=notes if notes is not None else current.notes,
                )
            await self.store.update(updated)

        log_alert_event(
            AuditAction.ALERT_ACKNOWLEDGED,
            alert_id=alert_id,
            patient_id=updated.patient_id,
            user_id=acknowledged_by,
            details={"notes": notes} if notes else None,
        )
        return updated

    async def dismiss_alert(self, alert_id: str) -> DrugInteractionAlert:
        """Deactivate an alert so it no longer counts as open.

        Raises:
            AlertNotFoundError: If the alert id is unknown.
        """
        alert_id = _require_id(alert_id, "alert_id")
        alert = await self.store.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)

        async with self._patient_lock(alert.patient_id):
            current = await self.store.get(alert_id)
            if current is None:
                raise AlertNotFoundError(alert_id)
            if not current.is_active:
                return current
            updated = replace(current, is_active=False)
            await self.store.update(updated)

        log_alert_event(AuditAction.ALERT_DISMISSED, alert_id=alert_id, patient_id=updated.patient_id)
        return updated

    def subscribe(self, patient_id: str | None = None) -> AlertSubscription:
        """Subscribe to newly raised alerts, optionally for one patient."""
        return self.feed.subscribe(patient_id)

    def _notify(self, alert: DrugInteractionAlert) -> None:
        try:
            self.notifier.notify(alert)
        except Exception as e:
            logger.warning(f"Alert notification failed for alert {alert.id}: {e}")

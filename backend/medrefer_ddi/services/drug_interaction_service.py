"""Drug Interaction Service.

Engine boundary used by the API and any other consumer. Every public
operation is bounded by a timeout and returns a ``Result``; engine
errors never escape as exceptions, and a failed check is never
reported as "no interactions".
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from threading import Lock
from typing import Any, TypeVar

from medrefer_ddi.core.audit import AuditAction, log_audit
from medrefer_ddi.core.config import settings
from medrefer_ddi.core.exceptions import (
    DrugInteractionEngineError,
    ErrorKind,
    OperationTimeoutError,
    ValidationError,
)
from medrefer_ddi.core.result import Result
from medrefer_ddi.services.alert_feed import AlertFeed, AlertSubscription
from medrefer_ddi.services.alert_manager import AlertManager
from medrefer_ddi.services.alert_store import AlertStore, InMemoryAlertStore, SqlAlchemyAlertStore
from medrefer_ddi.services.interaction_checker import InteractionChecker
from medrefer_ddi.services.interaction_types import (
    DrugInteraction,
    DrugInteractionAlert,
    Medication,
    PatientProfile,
)
from medrefer_ddi.services.knowledge_base import InteractionKnowledgeBase
from medrefer_ddi.services.notifications import get_default_notifier
from medrefer_ddi.services.patient_records import (
    InMemoryPatientRecords,
    MedicationRepository,
    PatientRepository,
)
from medrefer_ddi.services.risk_assessment import RiskAssessment, assess_risk

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DrugInteractionService:
    """Facade over knowledge base, checker, alert manager and risk aggregator.

    Usage:
        service = DrugInteractionService()
        await service.initialize()
        result = await service.check_medication_list_interactions("p-1", medications)
        if result.is_success:
            for interaction in result.data:
                print(interaction.drug_a, interaction.drug_b, interaction.severity)
        else:
            print(result.error_kind, result.error_message)
    """

    def __init__(
        self,
        knowledge_base: InteractionKnowledgeBase | None = None,
        alert_manager: AlertManager | None = None,
        medication_repository: MedicationRepository | None = None,
        patient_repository: PatientRepository | None = None,
        timeout: float | None = None,
    ) -> None:
        self.knowledge_base = knowledge_base if knowledge_base is not None else InteractionKnowledgeBase()
        self.checker = InteractionChecker(self.knowledge_base)
        self.alert_manager = alert_manager if alert_manager is not None else AlertManager(
            min_severity=settings.alert_min_severity,
        )
        records = InMemoryPatientRecords()
        self.medication_repository: MedicationRepository = (
            medication_repository if medication_repository is not None else records
        )
        self.patient_repository: PatientRepository | None = (
            patient_repository if patient_repository is not None else (records if medication_repository is None else None)
        )
        self.timeout = timeout if timeout is not None else settings.operation_timeout_seconds
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def alert_stream(self) -> AlertFeed:
        """Global feed of newly raised alerts."""
        return self.alert_manager.feed

    def subscribe(self, patient_id: str | None = None) -> AlertSubscription:
        """Subscribe to new alerts, optionally filtered to one patient."""
        return self.alert_manager.subscribe(patient_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            count = await asyncio.to_thread(self.knowledge_base.load)
            await self.alert_manager.initialize()
            self._initialized = True
            logger.info(f"DrugInteractionService initialized with {count} interactions")

    async def initialize(self, timeout: float | None = None) -> Result[dict[str, Any]]:
        """Load the knowledge base and connect the alert store. Idempotent."""

        async def _init() -> dict[str, Any]:
            await self._ensure_initialized()
            return self.knowledge_base.get_stats()

        return await self._run("initialize", _init, timeout, require_init=False)

    def close(self) -> None:
        """Close all feed subscriptions."""
        self.alert_manager.feed.close()

    async def _run(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        timeout: float | None,
        require_init: bool = True,
    ) -> Result[T]:
        bound = timeout if timeout is not None else self.timeout

        async def _call() -> T:
            if require_init:
                await self._ensure_initialized()
            return await func()

        try:
            data = await asyncio.wait_for(_call(), bound)
            return Result.success(data)
        except TimeoutError:
            logger.warning(f"{operation} timed out after {bound}s")
            return Result.from_error(OperationTimeoutError(f"{operation} exceeded {bound}s"))
        except DrugInteractionEngineError as e:
            log_level = logging.INFO if e.kind in (ErrorKind.NOT_FOUND, ErrorKind.VALIDATION_ERROR) else logging.ERROR
            logger.log(log_level, f"{operation} failed ({e.kind.value}): {e.message}")
            return Result.from_error(e)
        except Exception as e:
            logger.exception(f"Unexpected error during {operation}: {e}")
            log_audit(
                AuditAction.ERROR,
                resource_type="drug_interaction_engine",
                details={"operation": operation, "error": str(e)},
                success=False,
            )
            return Result.failure(ErrorKind.UNAVAILABLE, f"Failed to {operation.replace('_', ' ')}: {e}")

    # ------------------------------------------------------------------
    # Interaction checks
    # ------------------------------------------------------------------

    async def _load_context(
        self, patient_id: str, medications: list[Medication] | None = None
    ) -> tuple[list[Medication], PatientProfile | None]:
        # Records are only read for medications the caller did not supply
        if medications is None:
            medications = await self.medication_repository.get_patient_medications(patient_id)
        profile = None
        if self.patient_repository is not None:
            profile = await self.patient_repository.get_patient_profile(patient_id)
        return medications, profile

    async def check_medication_interactions(
        self,
        patient_id: str,
        new_medication: Medication,
        current_medications: list[Medication] | None = None,
        raise_alerts: bool = True,
        timeout: float | None = None,
    ) -> Result[list[DrugInteraction]]:
        """Check a new medication against the patient's current medications.

        Current medications come from the medication repository unless
        ``current_medications`` is given. Qualifying interactions are
        raised as alerts unless ``raise_alerts`` is False.
        """

        async def _check() -> list[DrugInteraction]:
            _validate_patient_id(patient_id)
            medications, profile = await self._load_context(patient_id, current_medications)
            interactions = await asyncio.to_thread(
                self.checker.check_new_medication, patient_id, medications, new_medication, profile
            )
            if raise_alerts:
                await self.alert_manager.raise_alerts(patient_id, interactions)
            log_audit(
                AuditAction.INTERACTION_CHECK,
                resource_type="medication",
                resource_id=new_medication.id,
                patient_id=patient_id,
                details={"new_medication": new_medication.name, "interactions_found": len(interactions)},
            )
            return interactions

        return await self._run("check_medication_interactions", _check, timeout)

    async def check_medication_list_interactions(
        self,
        patient_id: str,
        medications: list[Medication],
        raise_alerts: bool = True,
        timeout: float | None = None,
    ) -> Result[list[DrugInteraction]]:
        """Check every pair in a medication list (full patient review)."""

        async def _check() -> list[DrugInteraction]:
            _validate_patient_id(patient_id)
            profile = None
            if self.patient_repository is not None:
                profile = await self.patient_repository.get_patient_profile(patient_id)
            interactions = await asyncio.to_thread(
                self.checker.check_medication_list, patient_id, medications, profile
            )
            if raise_alerts:
                await self.alert_manager.raise_alerts(patient_id, interactions)
            log_audit(
                AuditAction.INTERACTION_CHECK,
                resource_type="medication_list",
                patient_id=patient_id,
                details={"medications": len(medications), "interactions_found": len(interactions)},
            )
            return interactions

        return await self._run("check_medication_list_interactions", _check, timeout)

    async def get_interaction_details(
        self,
        drug_a: str,
        drug_b: str,
        timeout: float | None = None,
    ) -> Result[DrugInteraction | None]:
        """Known interaction between two drugs; success with None if there is none."""

        async def _lookup() -> DrugInteraction | None:
            return self.knowledge_base.lookup(drug_a, drug_b)

        return await self._run("get_interaction_details", _lookup, timeout)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def get_patient_alerts(
        self,
        patient_id: str,
        timeout: float | None = None,
    ) -> Result[list[DrugInteractionAlert]]:
        """All alerts for a patient, most recent first."""
        return await self._run(
            "get_patient_alerts",
            lambda: self.alert_manager.get_patient_alerts(patient_id),
            timeout,
        )

    async def acknowledge_alert(
        self,
        alert_id: str,
        acknowledged_by: str,
        notes: str | None = None,
        timeout: float | None = None,
    ) -> Result[DrugInteractionAlert]:
        """Acknowledge an alert; NotFound if the id is unknown."""
        return await self._run(
            "acknowledge_alert",
            lambda: self.alert_manager.acknowledge_alert(alert_id, acknowledged_by, notes),
            timeout,
        )

    async def dismiss_alert(
        self,
        alert_id: str,
        timeout: float | None = None,
    ) -> Result[DrugInteractionAlert]:
        """Deactivate an alert; NotFound if the id is unknown."""
        return await self._run(
            "dismiss_alert",
            lambda: self.alert_manager.dismiss_alert(alert_id),
            timeout,
        )

    # ------------------------------------------------------------------
    # Risk and maintenance
    # ------------------------------------------------------------------

    async def assess_patient_risk(
        self,
        patient_id: str,
        medications: list[Medication] | None = None,
        timeout: float | None = None,
    ) -> Result[RiskAssessment]:
        """Risk score, tier and recommendations for a patient.

        Uses the supplied medications, or the patient's current ones from
        the medication repository. No alerts are raised.
        """

        async def _assess() -> RiskAssessment:
            _validate_patient_id(patient_id)
            current, profile = await self._load_context(patient_id, medications)
            interactions = await asyncio.to_thread(
                self.checker.check_medication_list, patient_id, current, profile
            )
            alerts = await self.alert_manager.get_patient_alerts(patient_id)
            return assess_risk(interactions, [alert for alert in alerts if alert.is_active])

        return await self._run("assess_patient_risk", _assess, timeout)

    async def update_interaction_database(self, timeout: float | None = None) -> Result[dict[str, Any]]:
        """Reload interaction data without restarting the service."""

        async def _reload() -> dict[str, Any]:
            try:
                await asyncio.to_thread(self.knowledge_base.reload)
            except DrugInteractionEngineError as e:
                log_audit(
                    AuditAction.KNOWLEDGE_BASE_RELOAD,
                    resource_type="interaction_knowledge_base",
                    details={"error": e.message},
                    success=False,
                )
                raise
            stats = self.knowledge_base.get_stats()
            log_audit(
                AuditAction.KNOWLEDGE_BASE_RELOAD,
                resource_type="interaction_knowledge_base",
                details={"total_interactions": stats["total_interactions"], "version": stats["version"]},
            )
            return stats

        return await self._run("update_interaction_database", _reload, timeout)

    def get_stats(self) -> dict[str, Any]:
        """Knowledge base statistics plus feed state."""
        stats: dict[str, Any] = {
            "initialized": self._initialized,
            "alert_subscribers": self.alert_manager.feed.subscriber_count,
        }
        if self.knowledge_base.is_loaded:
            stats["knowledge_base"] = self.knowledge_base.get_stats()
        return stats


def _validate_patient_id(patient_id: str) -> None:
    if patient_id is None or not str(patient_id).strip():
        raise ValidationError("patient_id must not be empty")


def build_alert_store() -> AlertStore:
    """Alert store selected by ``settings.alert_store_backend``."""
    if settings.alert_store_backend == "database":
        from medrefer_ddi.core.database import get_session_maker

        return SqlAlchemyAlertStore(get_session_maker())
    return InMemoryAlertStore()


# Singleton instance and lock
_drug_interaction_service: DrugInteractionService | None = None
_drug_interaction_lock = Lock()


def get_drug_interaction_service() -> DrugInteractionService:
    """Get the singleton DrugInteractionService instance.

    Returns:
        The singleton DrugInteractionService instance.
    """
    global _drug_interaction_service

    if _drug_interaction_service is None:
        with _drug_interaction_lock:
            if _drug_interaction_service is None:
                logger.info("Creating singleton DrugInteractionService instance")
                _drug_interaction_service = DrugInteractionService(
                    alert_manager=AlertManager(
                        store=build_alert_store(),
                        feed=AlertFeed(max_pending=settings.alert_feed_max_pending),
                        notifier=get_default_notifier(),
                        min_severity=settings.alert_min_severity,
                    ),
                )

    return _drug_interaction_service


def reset_drug_interaction_service() -> None:
    """Reset the singleton instance (for testing)."""
    global _drug_interaction_service
    with _drug_interaction_lock:
        if _drug_interaction_service is not None:
            _drug_interaction_service.close()
        _drug_interaction_service = None

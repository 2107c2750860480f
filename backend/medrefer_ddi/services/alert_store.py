"""Persistence backends for drug interaction alerts."""

import logging
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medrefer_ddi.core.exceptions import AlertStoreUnavailableError
from medrefer_ddi.models.drug_interaction_alert import DrugInteractionAlertRecord
from medrefer_ddi.services.interaction_types import DrugInteraction, DrugInteractionAlert

logger = logging.getLogger(__name__)


def drug_pair_key(interaction: DrugInteraction) -> str:
    """Storage key for the unordered drug pair of an interaction."""
    a, b = interaction.pair_key
    return f"{a}|{b}"


class AlertStore(Protocol):
    """Backing storage used by the alert manager.

    Implementations need not be safe for concurrent writers to the same
    patient; the alert manager serializes those.
    """

    async def initialize(self) -> None: ...

    async def add(self, alert: DrugInteractionAlert) -> None: ...

    async def update(self, alert: DrugInteractionAlert) -> None: ...

    async def get(self, alert_id: str) -> DrugInteractionAlert | None: ...

    async def list_for_patient(self, patient_id: str) -> list[DrugInteractionAlert]: ...

    async def find_open(self, patient_id: str, drug_pair: str) -> DrugInteractionAlert | None: ...


class InMemoryAlertStore:
    """Process-local alert store."""

    def __init__(self) -> None:
        self._alerts: dict[str, DrugInteractionAlert] = {}
        self._by_patient: dict[str, list[str]] = {}

    async def initialize(self) -> None:
        return None

    async def add(self, alert: DrugInteractionAlert) -> None:
        self._alerts[alert.id] = alert
        self._by_patient.setdefault(alert.patient_id, []).append(alert.id)

    async def update(self, alert: DrugInteractionAlert) -> None:
        if alert.id not in self._alerts:
            self._by_patient.setdefault(alert.patient_id, []).append(alert.id)
        self._alerts[alert.id] = alert

    async def get(self, alert_id: str) -> DrugInteractionAlert | None:
        return self._alerts.get(alert_id)

    async def list_for_patient(self, patient_id: str) -> list[DrugInteractionAlert]:
        # Insertion order breaks created_at ties
        ids = self._by_patient.get(patient_id, [])
        indexed = [(self._alerts[alert_id].created_at, i, self._alerts[alert_id]) for i, alert_id in enumerate(ids)]
        indexed.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [alert for _, _, alert in indexed]

    async def find_open(self, patient_id: str, drug_pair: str) -> DrugInteractionAlert | None:
        for alert_id in self._by_patient.get(patient_id, []):
            alert = self._alerts[alert_id]
            if alert.is_open and drug_pair_key(alert.interaction) == drug_pair:
                return alert
        return None

    def __len__(self) -> int:
        return len(self._alerts)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on read
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def record_to_alert(record: DrugInteractionAlertRecord) -> DrugInteractionAlert:
    """Convert an ORM row into the domain alert."""
    return DrugInteractionAlert(
        id=record.id,
        patient_id=record.patient_id,
        interaction=DrugInteraction.from_dict(record.interaction),
        created_at=_aware(record.created_at) or datetime.now(UTC),
        is_active=record.is_active,
        acknowledged=record.acknowledged,
        acknowledged_by=record.acknowledged_by,
        acknowledged_at=_aware(record.acknowledged_at),
        notes=record.notes,
    )


def _apply(record: DrugInteractionAlertRecord, alert: DrugInteractionAlert) -> None:
    record.patient_id = alert.patient_id
    record.drug_pair = drug_pair_key(alert.interaction)
    record.severity = alert.interaction.severity.value
    record.interaction = alert.interaction.to_dict()
    record.is_active = alert.is_active
    record.acknowledged = alert.acknowledged
    record.acknowledged_by = alert.acknowledged_by
    record.acknowledged_at = alert.acknowledged_at
    record.notes = alert.notes


class SqlAlchemyAlertStore:
    """Alert store backed by the ``drug_interaction_alerts`` table.

    Usage:
        store = SqlAlchemyAlertStore(get_session_maker())
        await store.initialize()
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def initialize(self) -> None:
        # Connectivity check only; the schema is managed by Alembic
        try:
            async with self._session_maker() as session:
                await session.execute(select(DrugInteractionAlertRecord.id).limit(1))
        except SQLAlchemyError as e:
            raise AlertStoreUnavailableError(f"Alert store unavailable: {e}") from e

    async def add(self, alert: DrugInteractionAlert) -> None:
        record = DrugInteractionAlertRecord(id=alert.id, created_at=alert.created_at)
        _apply(record, alert)
        try:
            async with self._session_maker() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise AlertStoreUnavailableError(f"Failed to persist alert {alert.id}: {e}") from e

    async def update(self, alert: DrugInteractionAlert) -> None:
        try:
            async with self._session_maker() as session:
                record = await session.get(DrugInteractionAlertRecord, alert.id)
                if record is None:
                    record = DrugInteractionAlertRecord(id=alert.id, created_at=alert.created_at)
                    session.add(record)
                _apply(record, alert)
                await session.commit()
        except SQLAlchemyError as e:
            raise AlertStoreUnavailableError(f"Failed to update alert {alert.id}: {e}") from e

    async def get(self, alert_id: str) -> DrugInteractionAlert | None:
        try:
            async with self._session_maker() as session:
                record = await session.get(DrugInteractionAlertRecord, alert_id)
                return record_to_alert(record) if record is not None else None
        except SQLAlchemyError as e:
            raise AlertStoreUnavailableError(f"Failed to read alert {alert_id}: {e}") from e

    async def list_for_patient(self, patient_id: str) -> list[DrugInteractionAlert]:
        stmt = (
            select(DrugInteractionAlertRecord)
            .where(DrugInteractionAlertRecord.patient_id == patient_id)
            .order_by(DrugInteractionAlertRecord.created_at.desc())
        )
        try:
            async with self._session_maker() as session:
                records = (await session.execute(stmt)).scalars().all()
                return [record_to_alert(record) for record in records]
        except SQLAlchemyError as e:
            raise AlertStoreUnavailableError(f"Failed to list alerts for patient {patient_id}: {e}") from e

    async def find_open(self, patient_id: str, drug_pair: str) -> DrugInteractionAlert | None:
        stmt = (
            select(DrugInteractionAlertRecord)
            .where(
                DrugInteractionAlertRecord.patient_id == patient_id,
                DrugInteractionAlertRecord.drug_pair == drug_pair,
                DrugInteractionAlertRecord.acknowledged.is_(False),
                DrugInteractionAlertRecord.is_active.is_(True),
            )
            .order_by(DrugInteractionAlertRecord.created_at.desc())
            .limit(1)
        )
        try:
            async with self._session_maker() as session:
                record = (await session.execute(stmt)).scalars().first()
                return record_to_alert(record) if record is not None else None
        except SQLAlchemyError as e:
            raise AlertStoreUnavailableError(f"Failed to query open alerts for patient {patient_id}: {e}") from e

"""Tests for alert persistence backends."""

from collections.abc import AsyncGenerator
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from medrefer_ddi.core.database import init_db
from medrefer_ddi.core.exceptions import AlertStoreUnavailableError
from medrefer_ddi.services.alert_store import (
    InMemoryAlertStore,
    SqlAlchemyAlertStore,
    drug_pair_key,
)
from medrefer_ddi.services.interaction_types import DrugInteractionAlert


@pytest.fixture
async def sql_store(tmp_path: Path) -> AsyncGenerator[SqlAlchemyAlertStore, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'alerts.db'}")
    await init_db(engine)
    store = SqlAlchemyAlertStore(async_sessionmaker(engine, expire_on_commit=False))
    await store.initialize()
    yield store
    await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
async def store(request, sql_store):
    if request.param == "memory":
        return InMemoryAlertStore()
    return sql_store


def test_drug_pair_key_is_order_independent(warfarin_aspirin):
    reversed_pair = replace(warfarin_aspirin, drug_a="Aspirin", drug_b="WARFARIN")
    assert drug_pair_key(warfarin_aspirin) == drug_pair_key(reversed_pair) == "aspirin|warfarin"


class TestAlertStore:
    """Behaviour shared by every alert store."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, store, warfarin_aspirin):
        alert = DrugInteractionAlert(patient_id="patient-1", interaction=warfarin_aspirin)
        await store.add(alert)

        loaded = await store.get(alert.id)

        assert loaded.id == alert.id
        assert loaded.patient_id == "patient-1"
        assert loaded.interaction == warfarin_aspirin
        assert loaded.created_at.tzinfo is not None
        assert loaded.is_open

    @pytest.mark.asyncio
    async def test_get_unknown(self, store):
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_update(self, store, warfarin_aspirin):
        alert = DrugInteractionAlert(patient_id="patient-1", interaction=warfarin_aspirin)
        await store.add(alert)
        acknowledged_at = datetime.now(UTC)

        await store.update(replace(
            alert,
            acknowledged=True,
            acknowledged_by="dr.smith",
            acknowledged_at=acknowledged_at,
            notes="ok",
        ))

        loaded = await store.get(alert.id)
        assert loaded.acknowledged
        assert loaded.acknowledged_by == "dr.smith"
        assert loaded.acknowledged_at == acknowledged_at
        assert loaded.notes == "ok"

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, store, warfarin_aspirin):
        now = datetime.now(UTC)
        older = DrugInteractionAlert(
            patient_id="patient-1", interaction=warfarin_aspirin, created_at=now - timedelta(minutes=5)
        )
        newer = DrugInteractionAlert(patient_id="patient-1", interaction=warfarin_aspirin, created_at=now)
        other = DrugInteractionAlert(patient_id="patient-2", interaction=warfarin_aspirin)
        for alert in (older, other, newer):
            await store.add(alert)

        alerts = await store.list_for_patient("patient-1")

        assert [a.id for a in alerts] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_find_open(self, store, warfarin_aspirin):
        alert = DrugInteractionAlert(patient_id="patient-1", interaction=warfarin_aspirin)
        await store.add(alert)

        found = await store.find_open("patient-1", "aspirin|warfarin")

        assert found.id == alert.id
        assert await store.find_open("patient-2", "aspirin|warfarin") is None
        assert await store.find_open("patient-1", "digoxin|furosemide") is None

    @pytest.mark.asyncio
    async def test_find_open_ignores_closed_alerts(self, store, warfarin_aspirin):
        acknowledged = DrugInteractionAlert(
            patient_id="patient-1", interaction=warfarin_aspirin, acknowledged=True, acknowledged_by="dr.smith"
        )
        dismissed = DrugInteractionAlert(patient_id="patient-1", interaction=warfarin_aspirin, is_active=False)
        await store.add(acknowledged)
        await store.add(dismissed)

        assert await store.find_open("patient-1", "aspirin|warfarin") is None


class TestSqlAlchemyAlertStore:
    """SQL specific behaviour."""

    @pytest.mark.asyncio
    async def test_missing_table_is_unavailable(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        store = SqlAlchemyAlertStore(async_sessionmaker(engine, expire_on_commit=False))
        try:
            with pytest.raises(AlertStoreUnavailableError):
                await store.initialize()
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_interaction_stored_as_snapshot(self, sql_store, warfarin_aspirin):
        alert = DrugInteractionAlert(patient_id="patient-1", interaction=warfarin_aspirin)
        await sql_store.add(alert)
        loaded = await sql_store.get(alert.id)
        assert loaded.interaction.description == warfarin_aspirin.description
        assert loaded.interaction.severity == warfarin_aspirin.severity

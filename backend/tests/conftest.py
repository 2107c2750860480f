"""Pytest configuration and fixtures for backend tests."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from medrefer_ddi.main import app
from medrefer_ddi.services.alert_manager import AlertManager
from medrefer_ddi.services.drug_interaction_service import (
    DrugInteractionService,
    reset_drug_interaction_service,
)
from medrefer_ddi.services.interaction_types import (
    DrugInteraction,
    InteractionSeverity,
    Medication,
)
from medrefer_ddi.services.knowledge_base import InteractionKnowledgeBase


@pytest.fixture
def knowledge_base() -> InteractionKnowledgeBase:
    """Loaded knowledge base with curated and fixture data."""
    kb = InteractionKnowledgeBase()
    kb.load()
    return kb


@pytest.fixture
def warfarin_aspirin() -> DrugInteraction:
    return DrugInteraction(
        drug_a="warfarin",
        drug_b="aspirin",
        severity=InteractionSeverity.MAJOR,
        description="Increased bleeding risk",
        mechanism="Both drugs affect blood clotting mechanisms",
    )


@pytest.fixture
def medication_factory():
    """Build medications with unique ids for a patient."""
    counter = {"n": 0}

    def _make(name: str, patient_id: str = "patient-1", **kwargs) -> Medication:
        counter["n"] += 1
        return Medication(id=f"med-{counter['n']}", patient_id=patient_id, name=name, **kwargs)

    return _make


@pytest.fixture
def service() -> DrugInteractionService:
    """Fresh engine with in-memory alerts and patient records."""
    return DrugInteractionService(alert_manager=AlertManager())


@pytest.fixture
def missing_fixture(tmp_path: Path) -> Path:
    return tmp_path / "does-not-exist.json"


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client against a fresh engine singleton.

    ASGITransport does not run the lifespan, so the engine initializes
    lazily on first request.
    """
    reset_drug_interaction_service()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    reset_drug_interaction_service()

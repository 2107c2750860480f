"""Tests for the interaction check API."""

import time

import pytest
from httpx import AsyncClient

from medrefer_ddi.api.dependencies import get_service
from medrefer_ddi.main import app
from medrefer_ddi.services.alert_manager import AlertManager
from medrefer_ddi.services.drug_interaction_service import DrugInteractionService
from medrefer_ddi.services.knowledge_base import InteractionKnowledgeBase

API = "/api/v1"


class BrokenKnowledgeBase(InteractionKnowledgeBase):
    def load(self) -> int:
        raise RuntimeError("fixture store offline")


class SlowKnowledgeBase(InteractionKnowledgeBase):
    def load(self) -> int:
        time.sleep(0.3)
        return super().load()


@pytest.fixture
def override_service():
    """Swap the engine behind the API for one test."""

    def _override(service: DrugInteractionService) -> None:
        app.dependency_overrides[get_service] = lambda: service

    yield _override
    app.dependency_overrides.clear()


class TestCheckMedicationList:
    """Test POST /patients/{id}/interactions/check-list."""

    @pytest.mark.asyncio
    async def test_major_interaction(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check-list",
            json={"medications": [{"name": "Warfarin"}, {"name": "Aspirin"}]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["patient_id"] == "patient-1"
        assert data["total_interactions"] == 1
        assert data["interactions"][0]["severity"] == "major"

    @pytest.mark.asyncio
    async def test_sorted_most_severe_first(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check-list",
            json={
                "medications": [
                    {"name": "omeprazole"},
                    {"name": "clopidogrel"},
                    {"name": "sildenafil"},
                    {"name": "nitroglycerin"},
                ],
                "raise_alerts": False,
            },
        )
        severities = [i["severity"] for i in response.json()["interactions"]]
        assert severities == ["contraindicated", "moderate"]

    @pytest.mark.asyncio
    async def test_blank_name_is_422(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check-list",
            json={"medications": [{"name": "   "}, {"name": "Aspirin"}]},
        )
        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_missing_name_is_422(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check-list",
            json={"medications": [{"dosage": "5 mg"}]},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unavailable_is_503(self, client: AsyncClient, override_service) -> None:
        override_service(DrugInteractionService(
            knowledge_base=BrokenKnowledgeBase(),
            alert_manager=AlertManager(),
        ))
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check-list",
            json={"medications": [{"name": "Warfarin"}, {"name": "Aspirin"}]},
        )
        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "unavailable"

    @pytest.mark.asyncio
    async def test_timeout_is_504(self, client: AsyncClient, override_service) -> None:
        override_service(DrugInteractionService(
            knowledge_base=SlowKnowledgeBase(),
            alert_manager=AlertManager(),
            timeout=0.05,
        ))
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check-list",
            json={"medications": [{"name": "Warfarin"}, {"name": "Aspirin"}]},
        )
        assert response.status_code == 504
        time.sleep(0.3)


class TestCheckNewMedication:
    """Test POST /patients/{id}/interactions/check."""

    @pytest.mark.asyncio
    async def test_no_known_interaction(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check",
            json={"medication": {"name": "Metformin"}, "current_medications": [{"name": "Lisinopril"}]},
        )
        assert response.status_code == 200
        assert response.json()["interactions"] == []

    @pytest.mark.asyncio
    async def test_against_supplied_list(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check",
            json={"medication": {"name": "Coumadin"}, "current_medications": [{"name": "Advil"}]},
        )
        data = response.json()
        assert data["total_interactions"] == 1
        assert data["interactions"][0]["drug_a"] == "warfarin"

    @pytest.mark.asyncio
    async def test_without_record_medications(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/patients/patient-1/interactions/check",
            json={"medication": {"name": "Aspirin"}},
        )
        assert response.status_code == 200
        assert response.json()["total_interactions"] == 0


class TestLookup:
    """Test GET /interactions/lookup."""

    @pytest.mark.asyncio
    async def test_found(self, client: AsyncClient) -> None:
        response = await client.get(
            f"{API}/interactions/lookup", params={"drug_a": "aspirin", "drug_b": "warfarin"}
        )
        data = response.json()
        assert data["found"] is True
        assert data["interaction"]["severity"] == "major"

    @pytest.mark.asyncio
    async def test_not_found(self, client: AsyncClient) -> None:
        response = await client.get(
            f"{API}/interactions/lookup", params={"drug_a": "metformin", "drug_b": "lisinopril"}
        )
        assert response.status_code == 200
        assert response.json() == {
            "drug_a": "metformin",
            "drug_b": "lisinopril",
            "found": False,
            "interaction": None,
        }

    @pytest.mark.asyncio
    async def test_self_pair_is_422(self, client: AsyncClient) -> None:
        response = await client.get(
            f"{API}/interactions/lookup", params={"drug_a": "aspirin", "drug_b": "ASPIRIN"}
        )
        assert response.status_code == 422


class TestRiskAndReload:
    """Test risk assessment and knowledge base reload endpoints."""

    @pytest.mark.asyncio
    async def test_risk_for_medication_list(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/patients/patient-1/risk",
            json={"medications": [{"name": "Warfarin"}, {"name": "Aspirin"}]},
        )
        data = response.json()
        assert data["score"] == pytest.approx(0.6)
        assert data["level"] == "high"
        assert data["highest_severity"] == "major"
        assert "Consider alternative medications for major interactions" in data["recommendations"]

    @pytest.mark.asyncio
    async def test_risk_for_current_medications(self, client: AsyncClient) -> None:
        response = await client.get(f"{API}/patients/patient-1/risk")
        data = response.json()
        assert data["score"] == 0.0
        assert data["level"] == "low"

    @pytest.mark.asyncio
    async def test_reload(self, client: AsyncClient) -> None:
        response = await client.post(f"{API}/interactions/reload")
        assert response.status_code == 200
        assert response.json()["version"] >= 1

"""Tests for health and root API endpoints."""

import pytest
from httpx import AsyncClient

from medrefer_ddi.main import app


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_returns_healthy_status(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "medrefer-ddi"
        assert data["version"] == "0.1.0"
        assert "T" in data["timestamp"]


class TestReadyEndpoint:
    """Test readiness endpoint."""

    @pytest.mark.asyncio
    async def test_initializing_before_first_use(self, client: AsyncClient) -> None:
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "initializing"

    @pytest.mark.asyncio
    async def test_ready_after_knowledge_base_loads(self, client: AsyncClient) -> None:
        await client.get("/api/v1/interactions/lookup", params={"drug_a": "warfarin", "drug_b": "aspirin"})

        data = (await client.get("/ready")).json()

        assert data["status"] == "ready"
        assert data["engine"]["knowledge_base"]["total_interactions"] > 0
        assert data["redis"] is None


class TestRootEndpoint:
    """Test root endpoint."""

    @pytest.mark.asyncio
    async def test_root_returns_service_info(self, client: AsyncClient) -> None:
        response = await client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert "Drug Interaction" in data["service"]
        assert data["docs"] == "/docs"
        assert data["health"] == "/health"


class TestAPIMetadata:
    """Test API metadata and configuration."""

    def test_app_version(self) -> None:
        assert app.version == "0.1.0"

    def test_routes_under_api_prefix(self) -> None:
        paths = {getattr(route, "path", None) for route in app.routes}
        assert "/api/v1/patients/{patient_id}/interactions/check" in paths
        assert "/api/v1/alerts/stream" in paths

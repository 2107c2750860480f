"""Tests for the alert API and live alert stream."""

import json

import pytest
from fastapi.responses import StreamingResponse
from httpx import AsyncClient

from medrefer_ddi.api.alerts import alert_stream, stream_alert_events
from medrefer_ddi.services.alert_feed import AlertFeed
from medrefer_ddi.services.interaction_types import DrugInteractionAlert

API = "/api/v1"


async def _raise_warfarin_aspirin(client: AsyncClient, patient_id: str = "patient-1") -> None:
    response = await client.post(
        f"{API}/patients/{patient_id}/interactions/check-list",
        json={"medications": [{"name": "Warfarin"}, {"name": "Aspirin"}]},
    )
    assert response.status_code == 200


async def _first_alert(client: AsyncClient, patient_id: str = "patient-1") -> dict:
    response = await client.get(f"{API}/patients/{patient_id}/alerts")
    return response.json()["alerts"][0]


class TestListAlerts:
    """Test GET /patients/{id}/alerts."""

    @pytest.mark.asyncio
    async def test_no_alerts(self, client: AsyncClient) -> None:
        response = await client.get(f"{API}/patients/patient-1/alerts")
        assert response.status_code == 200
        assert response.json() == {
            "patient_id": "patient-1",
            "total": 0,
            "unacknowledged": 0,
            "alerts": [],
        }

    @pytest.mark.asyncio
    async def test_check_raises_one_alert(self, client: AsyncClient) -> None:
        await _raise_warfarin_aspirin(client)
        await _raise_warfarin_aspirin(client)

        data = (await client.get(f"{API}/patients/patient-1/alerts")).json()

        assert data["total"] == 1
        assert data["unacknowledged"] == 1
        alert = data["alerts"][0]
        assert alert["interaction"]["severity"] == "major"
        assert alert["acknowledged"] is False
        assert alert["is_active"] is True

    @pytest.mark.asyncio
    async def test_alerts_are_per_patient(self, client: AsyncClient) -> None:
        await _raise_warfarin_aspirin(client, "patient-1")
        data = (await client.get(f"{API}/patients/patient-2/alerts")).json()
        assert data["total"] == 0


class TestAcknowledgeAlert:
    """Test POST /alerts/{id}/acknowledge."""

    @pytest.mark.asyncio
    async def test_acknowledge(self, client: AsyncClient) -> None:
        await _raise_warfarin_aspirin(client)
        alert = await _first_alert(client)

        response = await client.post(
            f"{API}/alerts/{alert['id']}/acknowledge",
            json={"acknowledged_by": "dr.smith", "notes": "INR monitoring ordered"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["acknowledged"] is True
        assert data["acknowledged_by"] == "dr.smith"
        assert data["notes"] == "INR monitoring ordered"
        listing = (await client.get(f"{API}/patients/patient-1/alerts")).json()
        assert listing["unacknowledged"] == 0

    @pytest.mark.asyncio
    async def test_acknowledge_twice(self, client: AsyncClient) -> None:
        await _raise_warfarin_aspirin(client)
        alert = await _first_alert(client)
        url = f"{API}/alerts/{alert['id']}/acknowledge"

        first = (await client.post(url, json={"acknowledged_by": "dr.smith"})).json()
        second = await client.post(url, json={"acknowledged_by": "dr.jones"})

        assert second.status_code == 200
        assert second.json()["acknowledged_by"] == "dr.smith"
        assert second.json()["acknowledged_at"] == first["acknowledged_at"]

    @pytest.mark.asyncio
    async def test_unknown_alert_is_404(self, client: AsyncClient) -> None:
        response = await client.post(
            f"{API}/alerts/no-such-alert/acknowledge",
            json={"acknowledged_by": "dr.smith"},
        )
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_missing_acknowledged_by_is_422(self, client: AsyncClient) -> None:
        await _raise_warfarin_aspirin(client)
        alert = await _first_alert(client)
        response = await client.post(f"{API}/alerts/{alert['id']}/acknowledge", json={})
        assert response.status_code == 422


class TestDismissAlert:
    """Test POST /alerts/{id}/dismiss."""

    @pytest.mark.asyncio
    async def test_dismiss(self, client: AsyncClient) -> None:
        await _raise_warfarin_aspirin(client)
        alert = await _first_alert(client)

        response = await client.post(f"{API}/alerts/{alert['id']}/dismiss")

        assert response.status_code == 200
        assert response.json()["is_active"] is False

    @pytest.mark.asyncio
    async def test_unknown_alert_is_404(self, client: AsyncClient) -> None:
        response = await client.post(f"{API}/alerts/no-such-alert/dismiss")
        assert response.status_code == 404


class TestAlertStream:
    """Test the server-sent alert stream."""

    @pytest.mark.asyncio
    async def test_stream_events(self, warfarin_aspirin) -> None:
        feed = AlertFeed()
        subscription = feed.subscribe("patient-1")
        events = stream_alert_events(subscription, keepalive=0.01)

        assert await events.__anext__() == ": keepalive\n\n"

        alert = DrugInteractionAlert(patient_id="patient-1", interaction=warfarin_aspirin)
        feed.publish(alert)
        chunk = await events.__anext__()

        event_line, data_line, _, _ = chunk.split("\n")
        assert event_line == "event: alert"
        payload = json.loads(data_line.removeprefix("data: "))
        assert payload["id"] == alert.id
        assert payload["interaction"]["severity"] == "major"

        subscription.close()
        with pytest.raises(StopAsyncIteration):
            await events.__anext__()
        assert feed.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_stream_endpoint_subscribes(self, service) -> None:
        response = await alert_stream(service, patient_id="patient-1")

        assert isinstance(response, StreamingResponse)
        assert response.media_type == "text/event-stream"
        assert service.alert_stream.subscriber_count == 1

        service.close()
        assert service.alert_stream.subscriber_count == 0

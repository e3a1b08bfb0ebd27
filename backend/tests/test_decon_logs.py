"""
Integration tests for decontamination logs on spill incidents.
"""

import uuid
import pytest
from sqlalchemy import select
from backend.app.core.exceptions import ExternalServiceError
from backend.app.models.audit_log import AuditLog


async def _incident(client, headers, vehicle):
    response = await client.post("/v1/spill-incidents/driver-log", json={
        "vehicle_id": str(vehicle.id),
        "spill_type": "Septage",
        "location_description": "Hwy 71 shoulder",
        "cause_description": "Hose coupling failed"
    }, headers=headers)
    assert response.status_code == 201
    return response.json()["id"]


def _decon(**overrides):
    body = {
        "vehicle_areas": ["Hose reel", "Rear bumper"],
        "location_type": "field",
        "ppe_items": ["Nitrile gloves", "Tyvek suit"],
        "decon_methods": ["Pressure wash", "Disinfectant"],
        "post_inspection_status": "pass",
        "inspector_signature": "Dana Driver"
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_decon_log(client, driver_headers, vehicle, session_factory):
    incident_id = await _incident(client, driver_headers, vehicle)

    response = await client.post(
        f"/v1/spill-incidents/{incident_id}/decon-logs",
        json=_decon(latitude=30.27, longitude=-97.74),
        headers=driver_headers
    )

    assert response.status_code == 201
    data = response.json()
    assert data["vehicle_id"] == str(vehicle.id)
    assert data["vehicle_areas"] == ["Hose reel", "Rear bumper"]
    assert data["weather_conditions"] == "clear sky"
    assert data["weather_details"].endswith("Austin, TX")
    assert data["inspector_clerk_id"] == "user_driver1"
    assert data["inspector_role"] == "driver"
    assert data["performed_by_clerk"] == "user_driver1"
    assert data["follow_up_required"] is False

    listed = await client.get(f"/v1/spill-incidents/{incident_id}/decon-logs", headers=driver_headers)
    assert [log["id"] for log in listed.json()] == [data["id"]]

    async with session_factory() as session:
        log = (await session.execute(
            select(AuditLog).where(AuditLog.action == "DECON_LOGGED")
        )).scalar_one()
    assert log.meta_data["incident_id"] == incident_id
    assert log.meta_data["post_inspection_status"] == "pass"


@pytest.mark.asyncio
async def test_entered_weather_is_kept(client, admin_headers, driver_headers, vehicle, edge_functions, monkeypatch):
    incident_id = await _incident(client, driver_headers, vehicle)

    async def fail_if_called(latitude, longitude):
        raise AssertionError("weather should not be looked up")

    monkeypatch.setattr(edge_functions, "get_current_weather", fail_if_called)

    response = await client.post(
        f"/v1/spill-incidents/{incident_id}/decon-logs",
        json=_decon(weather_conditions="Light rain", latitude=30.27, longitude=-97.74),
        headers=admin_headers
    )

    assert response.status_code == 201
    assert response.json()["weather_conditions"] == "Light rain"
    assert response.json()["inspector_role"] == "admin"


@pytest.mark.asyncio
async def test_weather_failure_does_not_block_log(client, driver_headers, vehicle, edge_functions, monkeypatch):
    incident_id = await _incident(client, driver_headers, vehicle)

    async def unavailable(latitude, longitude):
        raise ExternalServiceError("get-current-weather", "Weather lookup failed")

    monkeypatch.setattr(edge_functions, "get_current_weather", unavailable)

    response = await client.post(
        f"/v1/spill-incidents/{incident_id}/decon-logs",
        json=_decon(latitude=30.27, longitude=-97.74),
        headers=driver_headers
    )

    assert response.status_code == 201
    assert response.json()["weather_conditions"] is None


@pytest.mark.asyncio
async def test_required_fields(client, driver_headers, vehicle):
    incident_id = await _incident(client, driver_headers, vehicle)

    response = await client.post(
        f"/v1/spill-incidents/{incident_id}/decon-logs",
        json=_decon(vehicle_areas=[" "], inspector_signature=""),
        headers=driver_headers
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION_REQUIRED"
    assert response.json()["details"]["missing_fields"] == ["vehicle_areas", "inspector_signature"]


@pytest.mark.asyncio
async def test_failed_inspection_needs_a_photo(client, driver_headers, vehicle):
    incident_id = await _incident(client, driver_headers, vehicle)

    response = await client.post(
        f"/v1/spill-incidents/{incident_id}/decon-logs",
        json=_decon(post_inspection_status="fail", follow_up_required=True),
        headers=driver_headers
    )
    assert response.status_code == 422
    assert response.json()["details"]["missing_fields"] == ["photos"]

    response = await client.post(
        f"/v1/spill-incidents/{incident_id}/decon-logs",
        json=_decon(
            post_inspection_status="fail",
            follow_up_required=True,
            photos=["https://storage.test/incident-photos/residue.jpg"]
        ),
        headers=driver_headers
    )
    assert response.status_code == 201
    assert response.json()["follow_up_required"] is True


@pytest.mark.asyncio
async def test_other_drivers_cannot_see_decon_logs(client, driver_headers, other_driver_headers, vehicle):
    incident_id = await _incident(client, driver_headers, vehicle)

    created = await client.post(
        f"/v1/spill-incidents/{incident_id}/decon-logs", json=_decon(), headers=other_driver_headers
    )
    listed = await client.get(f"/v1/spill-incidents/{incident_id}/decon-logs", headers=other_driver_headers)

    assert created.status_code == 403
    assert listed.status_code == 403


@pytest.mark.asyncio
async def test_unknown_incident_or_log(client, admin_headers, driver_headers, vehicle):
    response = await client.post(
        f"/v1/spill-incidents/{uuid.uuid4()}/decon-logs", json=_decon(), headers=admin_headers
    )
    assert response.status_code == 404

    incident_id = await _incident(client, driver_headers, vehicle)
    response = await client.get(
        f"/v1/spill-incidents/{incident_id}/decon-logs/{uuid.uuid4()}", headers=admin_headers
    )
    assert response.status_code == 404

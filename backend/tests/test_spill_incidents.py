"""
Integration tests for spill incident reporting.

Office reports, driver quick logs, driver scoping, photo uploads and export.
"""

import pytest
from sqlalchemy import select
from backend.app.models.audit_log import AuditLog


def _incident_payload(vehicle, **overrides):
    payload = {
        "vehicle_id": str(vehicle.id),
        "spill_type": "Hydraulic fluid",
        "location_description": "Yard bay 2",
        "cause_description": "Burst hose on the boom",
        "severity": "moderate",
        "volume_estimate": 3.5,
        "cleanup_actions": ["Absorbent material applied", "Authorities notified"],
        "regulatory_notification_required": True,
        "witnesses": [{"name": "Lee Ortiz", "contact_info": "555-0102"}],
        "photo_urls": ["https://cdn.example.com/spill-1.jpg"]
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def driver_incident(client, driver_headers, vehicle):
    response = await client.post("/v1/spill-incidents/driver-log", json={
        "vehicle_id": str(vehicle.id),
        "spill_type": "Diesel",
        "location_description": "I-35 northbound, mile 212",
        "cause_description": "Loose fuel cap"
    }, headers=driver_headers)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_office_report(client, admin_headers, vehicle, edge_functions, session_factory):
    response = await client.post(
        "/v1/spill-incidents", json=_incident_payload(vehicle), headers=admin_headers
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "open"
    assert data["severity"] == "moderate"
    assert data["authorities_notified"] is True
    assert data["witnesses_present"] is True
    assert data["driver_id"] == "user_admin1"
    assert [w["name"] for w in data["witnesses"]] == ["Lee Ortiz"]
    assert [p["photo_type"] for p in data["photos"]] == ["general"]

    assert edge_functions.notified[0]["incident_id"] == data["id"]

    async with session_factory() as session:
        result = await session.execute(select(AuditLog).where(AuditLog.action == "INCIDENT_REPORTED"))
        log = result.scalar_one()
    assert log.entity_id == data["id"]
    assert log.actor_id == "user_admin1"


@pytest.mark.asyncio
async def test_report_requires_core_fields(client, admin_headers, vehicle):
    response = await client.post(
        "/v1/spill-incidents",
        json=_incident_payload(vehicle, cause_description="  ", spill_type=None),
        headers=admin_headers
    )

    assert response.status_code == 422
    assert response.json()["details"]["missing_fields"] == ["spill_type", "cause_description"]


@pytest.mark.asyncio
async def test_driver_log_defaults(driver_incident):
    assert driver_incident["status"] == "pending_review"
    assert driver_incident["severity"] == "minor"
    assert driver_incident["responsible_party"] == "unknown"
    assert driver_incident["driver_id"] == "user_driver1"


@pytest.mark.asyncio
async def test_staff_cannot_use_driver_log(client, admin_headers, vehicle):
    response = await client.post("/v1/spill-incidents/driver-log", json={
        "vehicle_id": str(vehicle.id),
        "spill_type": "Diesel",
        "location_description": "Yard",
        "cause_description": "Overfill"
    }, headers=admin_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_drivers_only_see_their_own_incidents(
    client, driver_headers, other_driver_headers, admin_headers, driver_incident
):
    own = await client.get("/v1/spill-incidents", headers=driver_headers)
    other = await client.get("/v1/spill-incidents", headers=other_driver_headers)
    staff = await client.get("/v1/spill-incidents", headers=admin_headers)

    assert own.json()["total"] == 1
    assert other.json()["total"] == 0
    assert staff.json()["total"] == 1

    response = await client.get(f"/v1/spill-incidents/{driver_incident['id']}", headers=other_driver_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_status_update_and_summary(client, admin_headers, vehicle, driver_incident):
    await client.post("/v1/spill-incidents", json=_incident_payload(vehicle), headers=admin_headers)

    summary = await client.get("/v1/spill-incidents/summary", headers=admin_headers)
    assert summary.json()["total"] == 2
    assert summary.json()["by_status"]["pending_review"] == 1
    assert summary.json()["regulatory_pending"] == 1

    response = await client.patch(
        f"/v1/spill-incidents/{driver_incident['id']}/status",
        json={"status": "under_investigation"},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "under_investigation"

    # Status change invalidates the cached summary
    summary = await client.get("/v1/spill-incidents/summary", headers=admin_headers)
    assert summary.json()["by_status"]["pending_review"] == 0
    assert summary.json()["by_status"]["under_investigation"] == 1


@pytest.mark.asyncio
async def test_photo_upload_skips_failed_files(client, driver_headers, driver_incident, storage):
    response = await client.post(
        f"/v1/spill-incidents/{driver_incident['id']}/photos",
        files=[
            ("files", ("cap.jpg", b"\xff\xd8jpeg-bytes", "image/jpeg")),
            ("files", ("broken.jpg", b"fail-bytes", "image/jpeg")),
        ],
        headers=driver_headers
    )

    assert response.status_code == 201
    data = response.json()
    assert data["failed"] == ["broken.jpg"]
    assert len(data["uploaded"]) == 1
    assert data["uploaded"][0]["photo_url"].startswith(
        f"http://storage.test/storage/v1/object/public/incident-photos/{driver_incident['id']}/"
    )
    assert len(storage.objects) == 1

    incident = await client.get(f"/v1/spill-incidents/{driver_incident['id']}", headers=driver_headers)
    assert len(incident.json()["photos"]) == 1


@pytest.mark.asyncio
async def test_export(client, admin_headers, vehicle):
    await client.post("/v1/spill-incidents", json=_incident_payload(vehicle), headers=admin_headers)

    csv_response = await client.get("/v1/spill-incidents/export", headers=admin_headers)
    assert csv_response.status_code == 200
    lines = csv_response.text.strip().splitlines()
    assert lines[0].split(",")[:3] == ["id", "incident_date", "license_plate"]
    assert "TX-4821" in lines[1]

    json_response = await client.get("/v1/spill-incidents/export", params={"format": "json"}, headers=admin_headers)
    rows = json_response.json()
    assert rows[0]["cleanup_actions"] == "Absorbent material applied; Authorities notified"
    assert rows[0]["witness_count"] == 1


@pytest.mark.asyncio
async def test_export_is_staff_only(client, driver_headers):
    response = await client.get("/v1/spill-incidents/export", headers=driver_headers)
    assert response.status_code == 403

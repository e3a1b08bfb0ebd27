"""
Integration tests for maintenance records, dashboards and cache invalidation.
"""

import pytest
from datetime import date, timedelta
from sqlalchemy import select, func
from backend.app.domain.maintenance.status_buckets import company_today
from backend.app.models.enums import MaintenanceStatus
from backend.app.models.maintenance import MaintenanceRecord, MaintenanceVendor


@pytest.fixture
def today():
    return company_today()


async def _seed(db_session, vehicle, scheduled, status=MaintenanceStatus.SCHEDULED, **fields):
    record = MaintenanceRecord(
        vehicle_id=vehicle.id,
        description=fields.pop("description", "Oil change"),
        scheduled_date=scheduled,
        status=status,
        **fields,
    )
    db_session.add(record)
    await db_session.commit()
    return record


# Creation

@pytest.mark.asyncio
async def test_create_record(client, admin_headers, vehicle, today):
    response = await client.post("/v1/maintenance/records", json={
        "vehicle_id": str(vehicle.id),
        "scheduled_date": today.isoformat(),
        "cost": 189.5,
        "maintenance_type": "Brake inspection",
        "priority": "normal"
    }, headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["priority"] == "medium"
    assert data["description"] == "Brake inspection"
    assert data["license_plate"] == "TX-4821"
    assert data["vehicle_name"] == "Ford F-550 - Pumper 3"


@pytest.mark.asyncio
async def test_missing_required_fields_write_nothing(client, admin_headers, vehicle, session_factory, today):
    response = await client.post("/v1/maintenance/records", json={
        "vehicle_id": str(vehicle.id),
        "scheduled_date": today.isoformat(),
        "description": "Tire rotation"
    }, headers=admin_headers)

    assert response.status_code == 422
    data = response.json()
    assert data["error_code"] == "ERR_VALIDATION_REQUIRED"
    assert data["details"]["missing_fields"] == ["cost"]

    async with session_factory() as session:
        count = (await session.execute(select(func.count(MaintenanceRecord.id)))).scalar()
    assert count == 0


@pytest.mark.asyncio
async def test_unknown_vehicle_is_not_found(client, admin_headers, today):
    response = await client.post("/v1/maintenance/records", json={
        "vehicle_id": "5b0e4e1c-3a3f-4c4e-9d51-000000000000",
        "scheduled_date": today.isoformat(),
        "cost": 10
    }, headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_recurring_service_by_months(client, admin_headers, vehicle, db_session):
    vendor = MaintenanceVendor(name="Lone Star Diesel", is_active=True)
    db_session.add(vendor)
    await db_session.commit()

    response = await client.post("/v1/maintenance/records/recurring", json={
        "vehicle_id": str(vehicle.id),
        "start_date": "2024-03-01",
        "estimated_cost": 120,
        "interval_type": "months",
        "interval_value": 3,
        "task_type_name": "Oil Change",
        "vendor_id": str(vendor.id)
    }, headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["next_service_date"] == "2024-05-30"
    assert data["next_service_mileage"] is None
    assert data["notification_trigger_type"] == "date_based"
    assert data["vendor_name"] == "Lone Star Diesel"
    assert data["description"] == "Oil Change"


@pytest.mark.asyncio
async def test_recurring_service_by_miles_uses_odometer(client, admin_headers, vehicle):
    response = await client.post("/v1/maintenance/records/recurring", json={
        "vehicle_id": str(vehicle.id),
        "start_date": "2024-03-01",
        "estimated_cost": 80,
        "interval_type": "miles",
        "interval_value": 5000,
        "vendor_id": "internal"
    }, headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["next_service_mileage"] == 53200
    assert data["next_service_date"] is None
    assert data["notification_trigger_type"] == "mileage_based"
    assert data["vendor_id"] is None


@pytest.mark.asyncio
async def test_recurring_service_requires_interval(client, admin_headers, vehicle):
    response = await client.post("/v1/maintenance/records/recurring", json={
        "vehicle_id": str(vehicle.id),
        "start_date": "2024-03-01",
        "estimated_cost": 80
    }, headers=admin_headers)

    assert response.status_code == 422
    assert response.json()["details"]["missing_fields"] == ["interval_type", "interval_value"]


# Access control

@pytest.mark.asyncio
async def test_drivers_cannot_manage_maintenance(client, driver_headers):
    response = await client.get("/v1/maintenance/records", headers=driver_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_FORBIDDEN"


@pytest.mark.asyncio
async def test_missing_token_is_rejected(client):
    response = await client.get("/v1/maintenance/kpis")
    assert response.status_code in (401, 403)


# Cache invalidation

@pytest.mark.asyncio
async def test_mutations_invalidate_cached_lists(client, admin_headers, vehicle, mock_redis, today):
    response = await client.get("/v1/maintenance/records", headers=admin_headers)
    assert response.json()["total"] == 0

    kpis = await client.get("/v1/maintenance/kpis", headers=admin_headers)
    assert kpis.json()["due_today"] == 0

    await client.post("/v1/maintenance/records", json={
        "vehicle_id": str(vehicle.id),
        "scheduled_date": today.isoformat(),
        "cost": 55
    }, headers=admin_headers)

    for key in ("maintenance-records", "maintenance-kpis", "overdue-maintenance", "upcoming-maintenance"):
        assert mock_redis.store[f"qc:gen:{key}"] == "1"

    response = await client.get("/v1/maintenance/records", headers=admin_headers)
    assert response.json()["total"] == 1

    kpis = await client.get("/v1/maintenance/kpis", headers=admin_headers)
    assert kpis.json()["due_today"] == 1


@pytest.mark.asyncio
async def test_cached_list_is_served_until_invalidated(client, admin_headers, vehicle, db_session, today):
    await client.get("/v1/maintenance/records", headers=admin_headers)

    # Written behind the API's back, so the cached page stays current
    await _seed(db_session, vehicle, today)

    response = await client.get("/v1/maintenance/records", headers=admin_headers)
    assert response.json()["total"] == 0


# Dashboards and buckets

@pytest.mark.asyncio
async def test_kpis(client, admin_headers, vehicle, db_session, today):
    await _seed(db_session, vehicle, today - timedelta(days=3))
    await _seed(db_session, vehicle, today)
    await _seed(db_session, vehicle, today + timedelta(days=3), MaintenanceStatus.IN_PROGRESS)
    await _seed(db_session, vehicle, today - timedelta(days=5), MaintenanceStatus.CANCELLED)
    await _seed(
        db_session, vehicle, today, MaintenanceStatus.COMPLETED,
        completed_date=today, cost=200, total_cost=250,
    )
    await _seed(
        db_session, vehicle, today, MaintenanceStatus.COMPLETED,
        completed_date=today, parts_cost=30, labor_cost=20,
    )

    response = await client.get("/v1/maintenance/kpis", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {
        "past_due": 1,
        "due_this_week": 2,
        "due_today": 1,
        "in_progress": 1,
        "ytd_spend": 300.0,
    }


@pytest.mark.asyncio
async def test_bucket_filters_overlap_for_today(client, admin_headers, vehicle, db_session, today):
    dated_today = await _seed(db_session, vehicle, today)
    await _seed(db_session, vehicle, today + timedelta(days=10))
    await _seed(db_session, vehicle, today - timedelta(days=1))
    await _seed(db_session, vehicle, today, MaintenanceStatus.COMPLETED, completed_date=today)

    scheduled = await client.get("/v1/maintenance/records", params={"bucket": "scheduled"}, headers=admin_headers)
    due_today = await client.get("/v1/maintenance/records", params={"bucket": "due_today"}, headers=admin_headers)
    overdue = await client.get("/v1/maintenance/records", params={"bucket": "overdue"}, headers=admin_headers)
    completed = await client.get("/v1/maintenance/records", params={"bucket": "completed"}, headers=admin_headers)

    assert scheduled.json()["total"] == 2
    assert [r["id"] for r in due_today.json()["items"]] == [str(dated_today.id)]
    assert overdue.json()["total"] == 1
    assert completed.json()["total"] == 1


@pytest.mark.asyncio
async def test_search_matches_license_plate(client, admin_headers, vehicle, db_session, today):
    await _seed(db_session, vehicle, today, description="DOT annual inspection")

    by_plate = await client.get("/v1/maintenance/records", params={"search": "tx-48"}, headers=admin_headers)
    by_text = await client.get("/v1/maintenance/records", params={"search": "annual"}, headers=admin_headers)
    no_match = await client.get("/v1/maintenance/records", params={"search": "transmission"}, headers=admin_headers)

    assert by_plate.json()["total"] == 1
    assert by_text.json()["total"] == 1
    assert no_match.json()["total"] == 0


@pytest.mark.asyncio
async def test_overdue_and_upcoming_lists(client, admin_headers, vehicle, db_session, today):
    oldest = await _seed(db_session, vehicle, today - timedelta(days=20))
    await _seed(db_session, vehicle, today - timedelta(days=2))
    soon = await _seed(db_session, vehicle, today + timedelta(days=1))
    await _seed(db_session, vehicle, today + timedelta(days=30))

    overdue = await client.get("/v1/maintenance/overdue", headers=admin_headers)
    upcoming = await client.get("/v1/maintenance/upcoming", headers=admin_headers)

    assert [r["id"] for r in overdue.json()][0] == str(oldest.id)
    assert len(overdue.json()) == 2
    assert [r["id"] for r in upcoming.json()] == [str(soon.id)]


@pytest.mark.asyncio
async def test_vehicle_overview(client, admin_headers, vehicle, db_session, today):
    await _seed(db_session, vehicle, today - timedelta(days=4))
    await _seed(db_session, vehicle, today + timedelta(days=2))
    await _seed(db_session, vehicle, today, MaintenanceStatus.COMPLETED, completed_date=today, cost=75)

    response = await client.get(f"/v1/maintenance/vehicles/{vehicle.id}/overview", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["past_due_count"] == 1
    assert data["due_this_week_count"] == 1
    assert data["ytd_cost"] == 75.0
    assert len(data["recent_completed"]) == 1


# Status changes

@pytest.mark.asyncio
async def test_complete_and_reopen(client, admin_headers, vehicle, db_session, today):
    record = await _seed(db_session, vehicle, today - timedelta(days=1), cost=90)

    response = await client.post(
        f"/v1/maintenance/records/{record.id}/complete",
        json={"total_cost": 112.4},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["completed_date"] == today.isoformat()
    assert response.json()["total_cost"] == 112.4

    again = await client.post(f"/v1/maintenance/records/{record.id}/complete", headers=admin_headers)
    assert again.status_code == 409

    response = await client.post(f"/v1/maintenance/records/{record.id}/reopen", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "scheduled"
    assert response.json()["completed_date"] is None

    again = await client.post(f"/v1/maintenance/records/{record.id}/reopen", headers=admin_headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_patch_to_completed_stamps_date(client, admin_headers, vehicle, db_session, today):
    record = await _seed(db_session, vehicle, today)

    response = await client.patch(
        f"/v1/maintenance/records/{record.id}",
        json={"status": "completed", "notes": "Done early"},
        headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["completed_date"] == today.isoformat()
    assert response.json()["notes"] == "Done early"


@pytest.mark.asyncio
async def test_patch_rejects_null_for_required_columns(client, admin_headers, vehicle, db_session, session_factory, today):
    record = await _seed(db_session, vehicle, today)

    for field in ("scheduled_date", "vehicle_id", "status", "priority", "description"):
        response = await client.patch(
            f"/v1/maintenance/records/{record.id}", json={field: None}, headers=admin_headers
        )
        assert response.status_code == 422, field
        assert response.json()["error_code"] == "ERR_VALIDATION"

    async with session_factory() as session:
        stored = await session.get(MaintenanceRecord, record.id)
    assert stored.scheduled_date == today
    assert stored.vehicle_id == vehicle.id


@pytest.mark.asyncio
async def test_patch_to_unknown_vehicle_or_vendor_is_not_found(client, admin_headers, vehicle, db_session, today):
    record = await _seed(db_session, vehicle, today)

    response = await client.patch(
        f"/v1/maintenance/records/{record.id}",
        json={"vehicle_id": "00000000-0000-0000-0000-000000000001"},
        headers=admin_headers
    )
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"

    response = await client.patch(
        f"/v1/maintenance/records/{record.id}",
        json={"vendor_id": "00000000-0000-0000-0000-000000000002"},
        headers=admin_headers
    )
    assert response.status_code == 404

    # Clearing an optional reference is allowed
    response = await client.patch(
        f"/v1/maintenance/records/{record.id}", json={"vendor_id": None, "notes": None}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["vendor_id"] is None


@pytest.mark.asyncio
async def test_delete_record(client, admin_headers, vehicle, db_session, mock_redis, today):
    record = await _seed(db_session, vehicle, today)

    # Warm the cached list and KPIs
    response = await client.get("/v1/maintenance/records", headers=admin_headers)
    assert response.json()["total"] == 1
    kpis = await client.get("/v1/maintenance/kpis", headers=admin_headers)
    assert kpis.json()["due_today"] == 1

    keys = ("maintenance-records", "maintenance-kpis", "overdue-maintenance", "upcoming-maintenance")
    before = {key: int(mock_redis.store.get(f"qc:gen:{key}") or 0) for key in keys}

    response = await client.delete(f"/v1/maintenance/records/{record.id}", headers=admin_headers)
    assert response.status_code == 204

    for key in keys:
        assert int(mock_redis.store[f"qc:gen:{key}"]) == before[key] + 1

    response = await client.get("/v1/maintenance/records", headers=admin_headers)
    assert response.json()["total"] == 0
    kpis = await client.get("/v1/maintenance/kpis", headers=admin_headers)
    assert kpis.json()["due_today"] == 0

    response = await client.get(f"/v1/maintenance/records/{record.id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_export_csv(client, admin_headers, vehicle, db_session, today):
    await _seed(db_session, vehicle, today, cost=42)

    response = await client.get("/v1/maintenance/records/export", headers=admin_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("scheduled_date,completed_date,vehicle,license_plate")
    assert "TX-4821" in lines[1]

"""
Integration tests for spill kit inspections, restock requests and expirations.
"""

import pytest
from datetime import timedelta
from backend.app.domain.maintenance.status_buckets import company_today
from backend.app.models.enums import ItemConditionStatus, KitCompletionStatus
from backend.app.schemas.spill_kit import ItemCondition
from backend.app.services.spill_kit_service import evaluate_kit


def _items(template):
    pads, gloves, drain_cover = template.items
    return str(pads.id), str(gloves.id), str(drain_cover.id)


async def _record(client, headers, vehicle, conditions, **extra):
    body = {"vehicle_id": str(vehicle.id), "item_conditions": conditions}
    body.update(extra)
    return await client.post("/v1/spill-kits/checks", json=body, headers=headers)


# Scoring

@pytest.mark.asyncio
async def test_evaluate_kit_statuses(spill_kit_template):
    pads, gloves, drain_cover = _items(spill_kit_template)
    missing = ItemCondition(status=ItemConditionStatus.MISSING)
    low = ItemCondition(status=ItemConditionStatus.LOW)
    expired = ItemCondition(status=ItemConditionStatus.EXPIRED)

    assert evaluate_kit(spill_kit_template, {})[0] == KitCompletionStatus.COMPLIANT
    assert evaluate_kit(spill_kit_template, {gloves: low})[0] == KitCompletionStatus.WARNING
    assert evaluate_kit(spill_kit_template, {gloves: low, drain_cover: expired})[0] == KitCompletionStatus.PARTIAL
    assert evaluate_kit(spill_kit_template, {drain_cover: missing})[0] == KitCompletionStatus.PARTIAL
    assert evaluate_kit(spill_kit_template, {pads: missing, gloves: low})[0] == KitCompletionStatus.FAILED


@pytest.mark.asyncio
async def test_evaluate_kit_ignores_items_not_on_template(spill_kit_template):
    status, missing_items, stored = evaluate_kit(
        spill_kit_template, {"not-an-item": ItemCondition(status=ItemConditionStatus.MISSING)}
    )

    assert status == KitCompletionStatus.COMPLIANT
    assert missing_items == []
    assert "not-an-item" not in stored
    assert len(stored) == 3


# Checks

@pytest.mark.asyncio
async def test_compliant_check(client, driver_headers, vehicle, spill_kit_template):
    response = await _record(client, driver_headers, vehicle, {})

    assert response.status_code == 201
    data = response.json()
    assert data["completion_status"] == "compliant"
    assert data["has_kit"] is True
    assert data["template_id"] == str(spill_kit_template.id)
    assert data["restock_request_id"] is None
    assert data["checked_by_clerk"] == "user_driver1"
    assert data["next_check_due"] == (company_today() + timedelta(days=30)).isoformat()


@pytest.mark.asyncio
async def test_missing_critical_item_fails_and_requests_restock(
    client, driver_headers, admin_headers, vehicle, spill_kit_template
):
    pads, gloves, _ = _items(spill_kit_template)
    response = await _record(client, driver_headers, vehicle, {
        pads: {"status": "missing"},
        gloves: {"status": "low", "actual_quantity": 1},
    })

    data = response.json()
    assert data["completion_status"] == "failed"
    assert data["has_kit"] is False
    assert data["missing_items"] == [{"name": "Absorbent pads", "quantity": 20}]
    assert data["item_conditions"][gloves]["item_name"] == "Nitrile gloves"
    assert data["restock_request_id"] is not None

    requests = await client.get("/v1/spill-kits/restock-requests", headers=admin_headers)
    assert [r["id"] for r in requests.json()] == [data["restock_request_id"]]
    assert requests.json()[0]["status"] == "pending"
    assert requests.json()[0]["priority"] == "normal"


@pytest.mark.asyncio
async def test_restock_request_can_be_suppressed(client, driver_headers, admin_headers, vehicle, spill_kit_template):
    pads, _, _ = _items(spill_kit_template)
    response = await _record(
        client, driver_headers, vehicle, {pads: {"status": "missing"}}, generate_restock_request=False
    )

    assert response.json()["restock_request_id"] is None
    requests = await client.get("/v1/spill-kits/restock-requests", headers=admin_headers)
    assert requests.json() == []


@pytest.mark.asyncio
async def test_check_without_template_is_rejected(client, driver_headers, vehicle):
    response = await _record(client, driver_headers, vehicle, {})

    assert response.status_code == 422
    assert response.json()["details"]["missing_fields"] == ["template_id"]


@pytest.mark.asyncio
async def test_restock_workflow(client, driver_headers, admin_headers, vehicle, spill_kit_template):
    pads, _, _ = _items(spill_kit_template)
    check = await _record(client, driver_headers, vehicle, {pads: {"status": "missing"}})
    request_id = check.json()["restock_request_id"]

    assigned = await client.patch(
        f"/v1/spill-kits/restock-requests/{request_id}",
        json={"assigned_to": "yard-crew"},
        headers=admin_headers
    )
    assert assigned.status_code == 200
    assert assigned.json()["status"] == "in_progress"
    assert assigned.json()["completed_at"] is None

    completed = await client.patch(
        f"/v1/spill-kits/restock-requests/{request_id}",
        json={"status": "completed"},
        headers=admin_headers
    )
    assert completed.json()["status"] == "completed"
    assert completed.json()["completed_at"] is not None


@pytest.mark.asyncio
async def test_restock_status_cannot_be_cleared(client, driver_headers, admin_headers, vehicle, spill_kit_template):
    pads, _, _ = _items(spill_kit_template)
    check = await _record(client, driver_headers, vehicle, {pads: {"status": "missing"}})
    request_id = check.json()["restock_request_id"]

    response = await client.patch(
        f"/v1/spill-kits/restock-requests/{request_id}",
        json={"status": None},
        headers=admin_headers
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"

    # Nullable fields may still be cleared
    cleared = await client.patch(
        f"/v1/spill-kits/restock-requests/{request_id}",
        json={"assigned_to": None, "notes": None},
        headers=admin_headers
    )
    assert cleared.status_code == 200
    assert cleared.json()["status"] == "pending"
    assert cleared.json()["assigned_to"] is None


@pytest.mark.asyncio
async def test_soft_deleted_check_disappears(client, driver_headers, admin_headers, vehicle, spill_kit_template):
    check = (await _record(client, driver_headers, vehicle, {})).json()

    forbidden = await client.delete(f"/v1/spill-kits/checks/{check['id']}", headers=driver_headers)
    assert forbidden.status_code == 403

    response = await client.delete(f"/v1/spill-kits/checks/{check['id']}", headers=admin_headers)
    assert response.status_code == 204

    assert (await client.get(f"/v1/spill-kits/checks/{check['id']}", headers=admin_headers)).status_code == 404
    listing = await client.get("/v1/spill-kits/checks", headers=admin_headers)
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_expiration_report_uses_latest_check(client, driver_headers, admin_headers, vehicle, spill_kit_template):
    pads, gloves, _ = _items(spill_kit_template)
    today = company_today()

    await _record(client, driver_headers, vehicle, {
        pads: {"expiration_date": (today + timedelta(days=90)).isoformat()},
        gloves: {"expiration_date": (today - timedelta(days=1)).isoformat()},
    })
    await _record(client, driver_headers, vehicle, {
        gloves: {"expiration_date": (today + timedelta(days=10)).isoformat()},
    })

    response = await client.get("/v1/spill-kits/expirations", headers=admin_headers)

    assert response.status_code == 200
    report = response.json()
    assert report["expired_count"] == 0
    assert report["expiring_soon_count"] == 1
    assert [(e["item_name"], e["status"]) for e in report["items"]] == [
        ("Nitrile gloves", "expiring_soon"),
        ("Absorbent pads", "ok"),
    ]
    assert report["items"][0]["days_until_expiration"] == 10


# Templates and weather

@pytest.mark.asyncio
async def test_templates(client, driver_headers, vehicle, spill_kit_template):
    listing = await client.get("/v1/spill-kits/templates", headers=driver_headers)
    assert [t["name"] for t in listing.json()] == ["Standard Truck Kit"]
    assert [i["item_name"] for i in listing.json()[0]["items"]] == ["Absorbent pads", "Nitrile gloves", "Drain cover"]

    for_vehicle = await client.get(f"/v1/spill-kits/templates/for-vehicle/{vehicle.id}", headers=driver_headers)
    assert for_vehicle.json()["id"] == str(spill_kit_template.id)


@pytest.mark.asyncio
async def test_weather(client, driver_headers):
    response = await client.get(
        "/v1/spill-kits/weather", params={"latitude": 30.27, "longitude": -97.74}, headers=driver_headers
    )

    assert response.status_code == 200
    assert response.json()["city"] == "Austin"

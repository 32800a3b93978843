import uuid

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_school_header_required(client: AsyncClient, seed) -> None:
    response = await client.get("/api/v1/fee-catalog/categories")
    assert response.status_code == 400

    response = await client.get("/api/v1/fee-catalog/categories", headers={"X-School-Id": "not-a-uuid"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_tuition_flow_over_http(client: AsyncClient, seed) -> None:
    headers = {**seed.headers(), "X-User-Id": str(uuid.uuid4())}

    response = await client.post("/api/v1/fee-catalog/categories", json={"name": "Tuition"}, headers=headers)
    assert response.status_code == 201
    category_id = response.json()["id"]

    response = await client.post("/api/v1/fee-catalog/categories", json={"name": " TUITION "}, headers=headers)
    assert response.status_code == 409

    response = await client.post(
        "/api/v1/fee-catalog/types",
        json={"name": "monthly_tuition", "display_name": "Monthly Tuition", "fee_category_id": category_id},
        headers=headers,
    )
    assert response.status_code == 201
    fee_type_id = response.json()["id"]
    assert response.json()["name"] == "MONTHLY_TUITION"

    response = await client.post(
        "/api/v1/fee-catalog/concession-types", json={"title": "Sibling"}, headers=headers
    )
    assert response.status_code == 201
    concession_type_id = response.json()["id"]

    response = await client.post(
        "/api/v1/fees/assign",
        json={"student_ids": [str(seed.students[0].id)], "fee_type_id": fee_type_id, "amount": "5000"},
        headers=headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["created"] == 1
    row_id = body["row_ids"][0]

    response = await client.post(f"/api/v1/fees/rows/{row_id}/payments", json={"amount": "2000"}, headers=headers)
    assert response.status_code == 201
    assert response.json()["row"]["status"] == "PartiallyPaid"

    response = await client.post(
        f"/api/v1/fees/rows/{row_id}/concessions",
        json={"concession_type_id": concession_type_id, "amount": "1000"},
        headers=headers,
    )
    assert response.status_code == 201
    assert float(response.json()["row"]["assigned_amount"]) == 4000

    response = await client.post(
        f"/api/v1/fees/rows/{row_id}/concessions",
        json={"concession_type_id": concession_type_id, "amount": "2500"},
        headers=headers,
    )
    assert response.status_code == 400

    response = await client.post(f"/api/v1/fees/rows/{row_id}/payments", json={"amount": "5000"}, headers=headers)
    assert response.status_code == 201
    data = response.json()
    assert data["row"]["status"] == "Paid"
    assert float(data["row"]["paid_amount"]) == 4000
    assert float(data["clamped_amount"]) == 3000

    response = await client.delete(f"/api/v1/fees/rows/{row_id}", headers=headers)
    assert response.status_code == 409

    response = await client.delete(f"/api/v1/fee-catalog/categories/{category_id}", headers=headers)
    assert response.status_code == 409
    assert "1" in response.json()["detail"]

    response = await client.get(
        f"/api/v1/fees/students/{seed.students[0].id}/balance", headers=headers
    )
    assert response.status_code == 200
    assert float(response.json()["outstanding"]) == 0

    response = await client.get("/api/v1/fees/rows", params={"status": "Paid"}, headers=headers)
    assert [r["id"] for r in response.json()] == [row_id]


@pytest.mark.asyncio
async def test_rows_are_invisible_to_other_schools(client: AsyncClient, seed) -> None:
    headers = seed.headers()
    category = await client.post(
        "/api/v1/fee-catalog/categories", json={"name": "Transport", "default_amount": "800"}, headers=headers
    )
    response = await client.post(
        "/api/v1/fees/assign",
        json={"class_id": str(seed.school_class.id), "fee_category_ids": [category.json()["id"]]},
        headers=headers,
    )
    assert response.json()["created"] == 3
    row_id = response.json()["row_ids"][0]

    foreign = {"X-School-Id": str(seed.other_school.id)}
    assert (await client.get(f"/api/v1/fees/rows/{row_id}", headers=foreign)).status_code == 404
    response = await client.post(f"/api/v1/fees/rows/{row_id}/payments", json={"amount": "10"}, headers=foreign)
    assert response.status_code == 404
    assert (await client.get("/api/v1/fees/rows", headers=foreign)).json() == []


@pytest.mark.asyncio
async def test_invalid_assignment_request_is_422(client: AsyncClient, seed) -> None:
    response = await client.post(
        "/api/v1/fees/assign",
        json={"class_id": str(seed.school_class.id)},
        headers=seed.headers(),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_edit_and_delete_over_http(client: AsyncClient, seed) -> None:
    headers = seed.headers()
    category = await client.post(
        "/api/v1/fee-catalog/categories", json={"name": "Library", "default_amount": "300"}, headers=headers
    )
    assigned = await client.post(
        "/api/v1/fees/assign",
        json={"student_ids": [str(seed.students[1].id)], "fee_category_ids": [category.json()["id"]]},
        headers=headers,
    )
    row_id = assigned.json()["row_ids"][0]

    response = await client.patch(
        f"/api/v1/fees/rows/{row_id}", json={"assigned_amount": "-5"}, headers=headers
    )
    assert response.status_code == 400

    response = await client.patch(
        f"/api/v1/fees/rows/{row_id}", json={"assigned_amount": "350", "due_date": "2026-01-10"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["due_date"] == "2026-01-10"
    assert response.json()["version"] == 2

    assert (await client.delete(f"/api/v1/fees/rows/{row_id}", headers=headers)).status_code == 204
    assert (await client.get(f"/api/v1/fees/rows/{row_id}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_pending_count_and_payment_methods_over_http(client: AsyncClient, seed) -> None:
    headers = seed.headers()
    category = await client.post(
        "/api/v1/fee-catalog/categories", json={"name": "Sports", "default_amount": "250"}, headers=headers
    )
    assigned = await client.post(
        "/api/v1/fees/assign",
        json={"class_id": str(seed.school_class.id), "fee_category_ids": [category.json()["id"]]},
        headers=headers,
    )
    row_id = assigned.json()["row_ids"][0]
    student_id = str(seed.students[0].id)

    response = await client.get(f"/api/v1/fees/students/{student_id}/pending-count", headers=headers)
    assert response.json() == {"student_id": student_id, "pending_count": 1}
    assert (await client.get("/api/v1/fees/pending-count", headers=headers)).json()["pending_count"] == 3
    foreign = {"X-School-Id": str(seed.other_school.id)}
    response = await client.get(f"/api/v1/fees/students/{student_id}/pending-count", headers=foreign)
    assert response.status_code == 404

    response = await client.post(
        f"/api/v1/fees/rows/{row_id}/payments", json={"amount": "250", "payment_mode": "Cash"}, headers=headers
    )
    assert response.status_code == 400

    method = await client.post("/api/v1/fee-catalog/payment-methods", json={"name": "Cash"}, headers=headers)
    assert method.status_code == 201
    response = await client.post(
        f"/api/v1/fees/rows/{row_id}/payments", json={"amount": "1000000000000"}, headers=headers
    )
    assert response.status_code == 400
    response = await client.post(
        f"/api/v1/fees/rows/{row_id}/payments", json={"amount": "250", "payment_mode": "CASH"}, headers=headers
    )
    assert response.status_code == 201
    assert response.json()["payment"]["payment_mode"] == "Cash"

    response = await client.get(f"/api/v1/fees/students/{student_id}/pending-count", headers=headers)
    assert response.json()["pending_count"] == 0
    response = await client.delete(f"/api/v1/fee-catalog/payment-methods/{method.json()['id']}", headers=headers)
    assert response.status_code == 409

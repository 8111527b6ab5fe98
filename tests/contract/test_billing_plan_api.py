"""Contract tests for billing plan endpoints."""

from datetime import date

import pytest


@pytest.fixture
async def generated_plan(client, deployment):
    response = await client.post(
        f"/billing-plans/deployment/{deployment.id}/generate",
        headers={"X-Actor": "ops"},
    )
    assert response.status_code == 200
    return response.json()


class TestBillingPlanEndpoints:
    async def test_generate_response_shape(self, generated_plan, deployment):
        plan = generated_plan

        assert plan["deploymentId"] == deployment.id
        assert plan["status"] == "PENDING"
        assert plan["reviewStatus"] == "NORMAL"
        assert plan["totalAmount"] == 81000
        assert len(plan["items"]) == 41
        first = plan["items"][0]
        assert first["billingMonth"] == "2025-01"
        assert first["category"] == "SERVICE_FEE"
        assert first["isProrated"] is True
        assert first["proratedDays"] == 16
        assert first["amount"] == 1067
        assert plan["deployment"]["employer"]["companyName"] == "Formosa Precision Co."
        assert plan["deployment"]["worker"]["nationality"] == "VNM"

    async def test_get_plan(self, client, generated_plan):
        response = await client.get(f"/billing-plans/{generated_plan['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == generated_plan["id"]

    async def test_get_missing_plan(self, client):
        response = await client.get("/billing-plans/9999")

        assert response.status_code == 404
        assert response.json()["detail"]["error"]["code"] == "not_found"

    async def test_plan_for_deployment(self, client, deployment, generated_plan):
        response = await client.get(f"/billing-plans/deployment/{deployment.id}")

        assert response.status_code == 200
        assert response.json()["id"] == generated_plan["id"]

    async def test_generate_for_missing_deployment(self, client):
        response = await client.post("/billing-plans/deployment/9999/generate")

        assert response.status_code == 404

    async def test_simulate_unchanged(self, client, generated_plan):
        response = await client.post(f"/billing-plans/{generated_plan['id']}/simulate")

        body = response.json()
        assert response.status_code == 200
        assert body["currentTotal"] == body["suggestedTotal"] == 81000
        assert not any(item["isDifferent"] for item in body["items"])
        assert body["items"][0]["existingItemId"] == generated_plan["items"][0]["id"]
        assert body["deployment"]["status"] == "active"

    async def test_simulate_invalid_dates(self, client, async_db_session, deployment, generated_plan):
        deployment.end_date = date(2024, 12, 1)
        await async_db_session.commit()

        response = await client.post(f"/billing-plans/{generated_plan['id']}/simulate")

        assert response.status_code == 400
        assert response.json()["detail"]["error"]["code"] == "validation_error"

    async def test_confirm_with_edits(self, client, generated_plan):
        arc = next(i for i in generated_plan["items"] if i["category"] == "ARC_FEE")

        response = await client.post(
            f"/billing-plans/{generated_plan['id']}/confirm",
            json={
                "items": [
                    {"id": arc["id"], "amount": 2500, "status": "MODIFIED"},
                    {
                        "amount": 3000,
                        "billingMonth": "2025-01",
                        "category": "DORMITORY_FEE",
                        "description": "Rent: 2500 Management: 500",
                    },
                ]
            },
            headers={"X-Actor": "reviewer"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["plan"]["status"] == "CONFIRMED"
        assert body["plan"]["confirmedBy"] == "reviewer"
        # 81000 - 500 on ARC + 3000 new dormitory line
        assert body["plan"]["totalAmount"] == 83500
        assert len(body["plan"]["items"]) == 42

    async def test_confirm_rejects_bad_month(self, client, generated_plan):
        response = await client.post(
            f"/billing-plans/{generated_plan['id']}/confirm",
            json={"items": [{"amount": 1, "billingMonth": "2025-13", "category": "ARC_FEE"}]},
        )

        assert response.status_code == 422

    async def test_lock_unlock_cycle(self, client, generated_plan):
        plan_id = generated_plan["id"]

        locked = await client.post(f"/billing-plans/{plan_id}/lock")
        relock = await client.post(f"/billing-plans/{plan_id}/lock")
        unlocked = await client.post(
            f"/billing-plans/{plan_id}/unlock", json={"reason": "Worker changed dormitory"}
        )

        assert locked.json() == {"success": True, "message": "Plan locked successfully"}
        assert relock.status_code == 400
        assert relock.json()["detail"]["error"]["code"] == "invalid_plan_state"
        assert unlocked.status_code == 200

        plan = (await client.get(f"/billing-plans/{plan_id}")).json()
        assert plan["status"] == "PENDING"
        assert plan["reviewStatus"] == "NEEDS_REVIEW"

    async def test_unlock_requires_reason(self, client, generated_plan):
        response = await client.post(
            f"/billing-plans/{generated_plan['id']}/unlock", json={"reason": ""}
        )

        assert response.status_code == 422

    async def test_flag_review(self, client, deployment, generated_plan):
        response = await client.post(
            f"/billing-plans/deployment/{deployment.id}/flag-review",
            json={"reason": "Passport renewed"},
        )

        assert response.json() == {"flagged": 1}

    async def test_history(self, client, generated_plan):
        plan_id = generated_plan["id"]
        await client.post(f"/billing-plans/{plan_id}/lock", headers={"X-Actor": "lead"})

        response = await client.get(f"/billing-plans/{plan_id}/history")

        body = response.json()
        assert body["planId"] == plan_id
        assert body["confirmedBy"] == "lead"
        assert [log["action"] for log in body["auditLogs"]] == ["lock", "generate"]
        assert body["auditLogs"][1]["actor"] == "ops"

"""API endpoint integration tests.

Tests the FastAPI endpoints against an in-memory database.
"""

from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient

MILEAGE_PROFILE = {
    "name": "Standard OTR",
    "profile_type": "DRIVER",
    "pay_basis": "MILEAGE",
    "base_rule": {
        "name": "Loaded miles",
        "category": "BASE",
        "trigger_event": "MILE_LOADED",
        "rate_amount": "0.55",
    },
}


async def create_assigned_profile(client: AsyncClient, seeded, driver_id=None) -> dict:
    response = await client.post("/api/v1/profiles", headers=seeded.headers, json=MILEAGE_PROFILE)
    assert response.status_code == 201
    profile = response.json()

    response = await client.post(
        "/api/v1/assignments/DRIVER",
        headers=seeded.headers,
        json={"subject_id": str(driver_id or seeded.driver_id), "profile_id": profile["profile_id"]},
    )
    assert response.status_code == 201
    return profile


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Health endpoint should return 200."""
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert "timestamp" in data

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestProfileEndpoints:
    """Test profile and rule endpoints."""

    async def test_create_profile(self, client: AsyncClient, seeded):
        """POST /api/v1/profiles creates the profile with its BASE rule."""
        response = await client.post("/api/v1/profiles", headers=seeded.headers, json=MILEAGE_PROFILE)

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Standard OTR"
        assert data["is_active"] is True
        assert len(data["rules"]) == 1
        assert data["rules"][0]["category"] == "BASE"

    async def test_mismatched_base_rule(self, client: AsyncClient, seeded):
        payload = {**MILEAGE_PROFILE, "pay_basis": "HOURLY"}

        response = await client.post("/api/v1/profiles", headers=seeded.headers, json=payload)

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_RULE_CONFIGURATION"

    async def test_negative_rate_rejected(self, client: AsyncClient, seeded):
        payload = {
            **MILEAGE_PROFILE,
            "base_rule": {**MILEAGE_PROFILE["base_rule"], "rate_amount": "-1"},
        }

        response = await client.post("/api/v1/profiles", headers=seeded.headers, json=payload)

        assert response.status_code == 422

    async def test_missing_organization_header(self, client: AsyncClient):
        response = await client.get("/api/v1/profiles")
        assert response.status_code == 400

    async def test_unknown_profile(self, client: AsyncClient, seeded):
        response = await client.get(f"/api/v1/profiles/{uuid4()}", headers=seeded.headers)

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_rule_lifecycle(self, client: AsyncClient, seeded):
        profile = (
            await client.post("/api/v1/profiles", headers=seeded.headers, json=MILEAGE_PROFILE)
        ).json()
        base_rule_id = profile["rules"][0]["rule_id"]

        response = await client.post(
            f"/api/v1/profiles/{profile['profile_id']}/rules",
            headers=seeded.headers,
            json={
                "name": "Stop pay",
                "category": "ACCESSORIAL",
                "trigger_event": "COUNT_STOPS",
                "rate_amount": "25",
            },
        )
        assert response.status_code == 201
        stop_rule_id = response.json()["rule_id"]

        response = await client.post(
            f"/api/v1/profiles/rules/{base_rule_id}/toggle", headers=seeded.headers, json={}
        )
        assert response.status_code == 422

        response = await client.delete(
            f"/api/v1/profiles/rules/{stop_rule_id}", headers=seeded.headers
        )
        assert response.status_code == 204

        response = await client.get(
            f"/api/v1/profiles/{profile['profile_id']}", headers=seeded.headers
        )
        assert [r["name"] for r in response.json()["rules"]] == ["Loaded miles"]

    async def test_set_default(self, client: AsyncClient, seeded):
        profile = (
            await client.post("/api/v1/profiles", headers=seeded.headers, json=MILEAGE_PROFILE)
        ).json()

        response = await client.post(
            f"/api/v1/profiles/{profile['profile_id']}/default", headers=seeded.headers
        )

        assert response.status_code == 200
        assert response.json()["is_default"] is True


class TestAssignmentEndpoints:
    """Test profile assignment endpoints."""

    async def test_assign_and_list(self, client: AsyncClient, seeded):
        await create_assigned_profile(client, seeded)

        response = await client.get(
            f"/api/v1/assignments/DRIVER/{seeded.driver_id}", headers=seeded.headers
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["is_default"] is True
        assert data[0]["profile_name"] == "Standard OTR"

    async def test_wrong_subject_type(self, client: AsyncClient, seeded):
        profile = (
            await client.post("/api/v1/profiles", headers=seeded.headers, json=MILEAGE_PROFILE)
        ).json()

        response = await client.post(
            "/api/v1/assignments/CARRIER",
            headers=seeded.headers,
            json={"subject_id": str(seeded.carrier_id), "profile_id": profile["profile_id"]},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "ASSIGNMENT_CONFLICT"


class TestLegPayEndpoints:
    """Test recalculation, preview and payables of a leg."""

    async def test_recalculate_without_profile(self, client: AsyncClient, seeded):
        response = await client.post(
            f"/api/v1/legs/{seeded.leg_id}/recalculate", headers=seeded.headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "NO_ACTIVE_PROFILE"

    async def test_unknown_leg(self, client: AsyncClient, seeded):
        response = await client.post(f"/api/v1/legs/{uuid4()}/recalculate", headers=seeded.headers)

        assert response.status_code == 404
        assert response.json()["code"] == "MISSING_DISPATCH_LEG"

    async def test_recalculate_leg(self, client: AsyncClient, seeded):
        profile = await create_assigned_profile(client, seeded)

        response = await client.post(
            f"/api/v1/legs/{seeded.leg_id}/recalculate", headers=seeded.headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["profile_id"] == profile["profile_id"]
        assert data["persisted"] is True
        assert Decimal(data["total"]) == Decimal("275.00")
        assert data["blocked"] is False

        response = await client.get(f"/api/v1/legs/{seeded.leg_id}/payables", headers=seeded.headers)
        summary = response.json()
        assert summary["status"] == "CALCULATED"
        assert len(summary["items"]) == 1

    async def test_preview_writes_nothing(self, client: AsyncClient, seeded):
        await create_assigned_profile(client, seeded)

        response = await client.get(f"/api/v1/legs/{seeded.leg_id}/preview", headers=seeded.headers)

        assert response.status_code == 200
        assert response.json()["persisted"] is False

        response = await client.get(f"/api/v1/legs/{seeded.leg_id}/payables", headers=seeded.headers)
        assert response.json()["status"] == "AWAITING_CALCULATION"

    async def test_manual_payable_and_edits(self, client: AsyncClient, seeded):
        await create_assigned_profile(client, seeded)
        await client.post(f"/api/v1/legs/{seeded.leg_id}/recalculate", headers=seeded.headers)

        response = await client.post(
            f"/api/v1/legs/{seeded.leg_id}/payables",
            headers=seeded.headers,
            json={"description": "Lumper", "quantity": "1", "rate": "45"},
        )
        assert response.status_code == 201
        assert response.json()["source_type"] == "MANUAL"

        summary = (
            await client.get(f"/api/v1/legs/{seeded.leg_id}/payables", headers=seeded.headers)
        ).json()
        assert summary["status"] == "MANUALLY_ADJUSTED"
        assert Decimal(summary["total"]) == Decimal("320.00")

        system_item = next(i for i in summary["items"] if i["source_type"] == "SYSTEM")
        response = await client.delete(
            f"/api/v1/payables/{system_item['payable_id']}", headers=seeded.headers
        )
        assert response.status_code == 422
        assert response.json()["code"] == "PAYABLE_EDIT_REJECTED"

        response = await client.patch(
            f"/api/v1/payables/{system_item['payable_id']}",
            headers=seeded.headers,
            json={"rate": "0.60"},
        )
        assert response.status_code == 200
        edited = response.json()
        assert edited["is_locked"] is True
        assert edited["source_type"] == "MANUAL"
        assert Decimal(edited["total_amount"]) == Decimal("300.00")

    async def test_assign_payee_requires_one(self, client: AsyncClient, seeded):
        response = await client.put(
            f"/api/v1/legs/{seeded.leg_id}/payee",
            headers=seeded.headers,
            json={"driver_id": str(seeded.driver_id), "carrier_id": str(seeded.carrier_id)},
        )

        assert response.status_code == 422

    async def test_assign_and_remove_payee(self, client: AsyncClient, seeded):
        await create_assigned_profile(client, seeded, driver_id=seeded.second_driver_id)

        response = await client.put(
            f"/api/v1/legs/{seeded.leg_id}/payee",
            headers=seeded.headers,
            json={"driver_id": str(seeded.second_driver_id)},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["leg"]["driver_id"] == str(seeded.second_driver_id)
        assert Decimal(data["recalculation"]["total"]) == Decimal("275.00")

        response = await client.delete(f"/api/v1/legs/{seeded.leg_id}/payee", headers=seeded.headers)
        assert response.status_code == 200
        assert response.json()["driver_id"] is None

        summary = (
            await client.get(f"/api/v1/legs/{seeded.leg_id}/payables", headers=seeded.headers)
        ).json()
        assert summary["status"] == "UNASSIGNED"
        assert len(summary["items"]) == 1


class TestLoadEndpoints:
    """Test load-level recalculation and splits."""

    async def test_recalculate_load(self, client: AsyncClient, seeded):
        await create_assigned_profile(client, seeded)

        response = await client.post(
            f"/api/v1/loads/{seeded.load_id}/recalculate", headers=seeded.headers
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["results"]) == 1
        assert data["skipped_leg_ids"] == []
        assert Decimal(data["total"]) == Decimal("275.00")

    async def test_split_load(self, client: AsyncClient, seeded):
        await create_assigned_profile(client, seeded)

        response = await client.post(
            f"/api/v1/loads/{seeded.load_id}/split",
            headers=seeded.headers,
            json={"split_stop_id": str(seeded.stop_ids[1])},
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["original_leg"]["loaded_miles"]) == Decimal("333")
        assert Decimal(data["new_leg"]["loaded_miles"]) == Decimal("167")
        assert data["skipped"] == [data["new_leg"]["leg_id"]]

        response = await client.get(f"/api/v1/loads/{seeded.load_id}/payables", headers=seeded.headers)
        assert len(response.json()["legs"]) == 2

    async def test_split_at_first_stop(self, client: AsyncClient, seeded):
        response = await client.post(
            f"/api/v1/loads/{seeded.load_id}/split",
            headers=seeded.headers,
            json={"split_stop_id": str(seeded.stop_ids[0])},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_SPLIT"

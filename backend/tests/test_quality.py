# tests/test_quality.py - Quality indicators
import pytest
from httpx import AsyncClient
from sqlalchemy import update

from models import QualityIndicator
from tests.conftest import get_auth_headers


def _indicator(project_id, **overrides):
    data = {
        "project_id": project_id,
        "indicator_name": "Outer diameter",
        "indicator_type": "dimensional",
        "target_value": 100,
        "current_value": 100,
        "unit": "mm",
        "measurement_date": "2025-05-20",
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
class TestIndicators:
    @pytest.mark.parametrize("current,status,trend", [
        (100, "conforming", "flat"),
        (97.5, "conforming", "down"),
        (104, "attention", "up"),
        (107, "non_conforming", "up"),
    ])
    async def test_status_and_trend(self, client: AsyncClient, technician, test_project, current, status, trend):
        res = await client.post(
            "/api/v1/quality/indicators",
            json=_indicator(test_project.id, current_value=current),
            headers=get_auth_headers(technician),
        )
        assert res.status_code == 201
        data = res.json()
        assert data["status"] == status
        assert data["trend"] == trend
        assert data["project"]["name"] == "Optical Sensor"

    async def test_status_is_stored(self, client: AsyncClient, db_session, technician, test_user, test_project):
        created = await client.post(
            "/api/v1/quality/indicators",
            json=_indicator(test_project.id, current_value=104.5),
            headers=get_auth_headers(technician),
        )
        # Move the measurement behind the API's back; status keeps its write-time value
        await db_session.execute(
            update(QualityIndicator)
            .where(QualityIndicator.id == created.json()["id"])
            .values(current_value=90)
        )
        await db_session.commit()

        res = await client.get("/api/v1/quality/indicators", headers=get_auth_headers(test_user))
        assert res.status_code == 200
        data = res.json()[0]
        assert data["current_value"] == 90
        assert data["status"] == "attention"
        assert data["trend"] == "down"

    async def test_measurement_date_defaults_to_today(self, client: AsyncClient, technician, test_project):
        payload = _indicator(test_project.id)
        del payload["measurement_date"]
        res = await client.post("/api/v1/quality/indicators", json=payload, headers=get_auth_headers(technician))
        assert res.status_code == 201
        assert res.json()["measurement_date"]

    async def test_latest_measurement_first(self, client: AsyncClient, technician, test_project):
        headers = get_auth_headers(technician)
        for name, day in [("purity", "2025-01-10"), ("yield", "2025-03-10")]:
            await client.post(
                "/api/v1/quality/indicators",
                json=_indicator(test_project.id, indicator_name=name, measurement_date=day),
                headers=headers,
            )
        res = await client.get("/api/v1/quality/indicators", headers=headers)
        assert [i["indicator_name"] for i in res.json()] == ["yield", "purity"]

    @pytest.mark.parametrize("field", ["target_value", "current_value"])
    async def test_non_numeric_values(self, client: AsyncClient, technician, test_project, field):
        res = await client.post(
            "/api/v1/quality/indicators",
            json=_indicator(test_project.id, **{field: "lots"}),
            headers=get_auth_headers(technician),
        )
        assert res.status_code == 422
        assert field in res.json()["fields"]

    async def test_unknown_project(self, client: AsyncClient, technician):
        res = await client.post("/api/v1/quality/indicators", json=_indicator("missing"), headers=get_auth_headers(technician))
        assert res.status_code == 404

# tests/test_tdp.py - Technical Data Package documents
import pytest
from httpx import AsyncClient

from tests.conftest import get_auth_headers


@pytest.mark.asyncio
class TestDocuments:
    async def test_create_document(self, client: AsyncClient, technician, test_project):
        res = await client.post(
            "/api/v1/tdp/documents",
            json={
                "project_id": test_project.id,
                "document_type": "drawing",
                "title": "Housing assembly drawing",
            },
            headers=get_auth_headers(technician),
        )
        assert res.status_code == 201
        data = res.json()
        assert data["version"] == "1.0"
        assert data["status"] == "draft"
        assert data["author_id"] == technician.id
        assert data["project"]["name"] == "Optical Sensor"

    async def test_list_documents(self, client: AsyncClient, technician, test_user, test_project):
        headers = get_auth_headers(technician)
        for title in ["Bill of materials", "Test report"]:
            await client.post(
                "/api/v1/tdp/documents",
                json={"project_id": test_project.id, "document_type": "other", "title": title},
                headers=headers,
            )
        res = await client.get("/api/v1/tdp/documents", headers=get_auth_headers(test_user))
        assert res.status_code == 200
        assert {d["title"] for d in res.json()} == {"Bill of materials", "Test report"}

    async def test_approved_document(self, client: AsyncClient, technician, admin_user, test_project):
        res = await client.post(
            "/api/v1/tdp/documents",
            json={
                "project_id": test_project.id,
                "document_type": "procedure",
                "title": "Calibration procedure",
                "version": "2.1",
                "status": "approved",
                "approved_by": admin_user.id,
                "approval_date": "2025-06-30",
            },
            headers=get_auth_headers(technician),
        )
        assert res.status_code == 201
        assert res.json()["approved_by"] == admin_user.id

    async def test_unknown_approver(self, client: AsyncClient, technician, test_project):
        res = await client.post(
            "/api/v1/tdp/documents",
            json={
                "project_id": test_project.id,
                "document_type": "manual",
                "title": "Operator manual",
                "approved_by": "missing",
            },
            headers=get_auth_headers(technician),
        )
        assert res.status_code == 404

    async def test_invalid_document_type(self, client: AsyncClient, technician, test_project):
        res = await client.post(
            "/api/v1/tdp/documents",
            json={"project_id": test_project.id, "document_type": "poster", "title": "x"},
            headers=get_auth_headers(technician),
        )
        assert res.status_code == 422
        assert "document_type" in res.json()["fields"]

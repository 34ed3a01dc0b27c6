"""
Unit Tests for Test Case Endpoints
Tests for: authoring with steps, requirement links, approval, revisions, traces, history
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.testing import TestStep


class TestCreateTestCase:

    @pytest.mark.asyncio
    async def test_create_with_steps(self, client: AsyncClient, auth_headers, test_user):
        payload = {
            "title": "Login succeeds with valid credentials",
            "description": "Happy path",
            "steps": [
                {"action": "Open login page", "expectedResult": "Form is shown"},
                {"description": "Submit credentials", "expectedResult": "Dashboard opens"},
            ],
        }
        response = await client.post("/api/test-cases", json=payload, headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["testCase"]["id"] == "TC-1"
        assert body["testCase"]["status"] == "draft"
        assert body["testCase"]["revision"] == 0
        assert body["testCase"]["createdByName"] == test_user.full_name
        assert [(s["stepNumber"], s["action"]) for s in body["testSteps"]] == [
            (1, "Open login page"),
            (2, "Submit credentials"),
        ]
        assert body["testSteps"][1]["expectedResult"] == "Dashboard opens"

    @pytest.mark.asyncio
    async def test_create_links_requirements(self, client: AsyncClient, auth_headers, create_item, create_test_case):
        user_req = await create_item("user-requirements")
        risk = await create_item("risks")

        test_case = await create_test_case(linked_requirements=[user_req["id"].lower(), risk["id"], "SR-404"])

        response = await client.get(f"/api/test-cases/{test_case['id']}/traces", headers=auth_headers)
        upstream = response.json()["upstreamTraces"]
        assert {t["fromId"] for t in upstream} == {user_req["id"], risk["id"]}
        assert {t["type"] for t in upstream} == {"user", "risk"}
        assert all(t["toId"] == test_case["id"] for t in upstream)

    @pytest.mark.asyncio
    async def test_blank_title(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/test-cases", json={"title": "  "}, headers=auth_headers)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_title(self, client: AsyncClient, auth_headers, create_test_case):
        existing = await create_test_case()
        response = await client.post("/api/test-cases", json={"title": existing["title"]}, headers=auth_headers)

        assert response.status_code == 409


class TestReadTestCases:

    @pytest.mark.asyncio
    async def test_get_with_steps(self, client: AsyncClient, auth_headers, create_test_case):
        test_case = await create_test_case(steps=3)

        response = await client.get(f"/api/test-cases/{test_case['id'].lower()}", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["testCase"]["id"] == test_case["id"]
        assert [s["stepNumber"] for s in body["steps"]] == [1, 2, 3]
        assert body["steps"][0]["testCaseId"] == test_case["id"]

    @pytest.mark.asyncio
    async def test_get_missing(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/test-cases/TC-9", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Test case not found"

    @pytest.mark.asyncio
    async def test_list_embeds_steps_and_searches_description(self, client: AsyncClient, auth_headers, create_test_case):
        await create_test_case(description="Checks the password reset email")
        await create_test_case(description="Checks the audit export")

        response = await client.get("/api/test-cases?search=RESET", headers=auth_headers)

        body = response.json()
        assert body["meta"]["pagination"]["total"] == 1
        assert len(body["data"][0]["steps"]) == 2

    @pytest.mark.asyncio
    async def test_list_status_all(self, client: AsyncClient, auth_headers, create_test_case):
        await create_test_case()
        await create_test_case(approve=True)

        all_items = (await client.get("/api/test-cases?status=all", headers=auth_headers)).json()
        approved = (await client.get("/api/test-cases?status=approved", headers=auth_headers)).json()

        assert all_items["meta"]["pagination"]["total"] == 2
        assert approved["meta"]["pagination"]["total"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["sort=bogus&order=sideways", "sort=bogus", "order=sideways", ""])
    async def test_unknown_sort_falls_back_to_last_modified(self, client: AsyncClient, auth_headers,
                                                           create_test_case, query):
        first = await create_test_case()
        second = await create_test_case()
        third = await create_test_case()
        await client.patch(f"/api/test-cases/{first['id']}", json={"description": "Touched"}, headers=auth_headers)

        response = await client.get(f"/api/test-cases?{query}", headers=auth_headers)

        assert [tc["id"] for tc in response.json()["data"]] == [first["id"], third["id"], second["id"]]


class TestUpdateTestCase:

    @pytest.mark.asyncio
    async def test_replace_steps(self, client: AsyncClient, auth_headers, create_test_case, db_session):
        test_case = await create_test_case(steps=3)

        response = await client.patch(
            f"/api/test-cases/{test_case['id']}",
            json={"steps": [{"action": "Only step", "expectedResult": "Done"}]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        steps = response.json()["testCase"]["steps"]
        assert [(s["stepNumber"], s["action"]) for s in steps] == [(1, "Only step")]

        rows = (await db_session.execute(
            select(TestStep).where(TestStep.test_case_id == test_case["id"])
        )).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_edit_approved_bumps_revision(self, client: AsyncClient, auth_headers, create_test_case):
        test_case = await create_test_case(approve=True)
        assert test_case["revision"] == 1

        response = await client.patch(
            f"/api/test-cases/{test_case['id']}", json={"description": "Clarified"}, headers=auth_headers
        )

        updated = response.json()["testCase"]
        assert updated["status"] == "draft"
        assert updated["revision"] == 2
        assert updated["approvedAt"] is None

    @pytest.mark.asyncio
    async def test_update_missing(self, client: AsyncClient, auth_headers):
        response = await client.patch("/api/test-cases/TC-77", json={"title": "x"}, headers=auth_headers)

        assert response.status_code == 404


class TestApproveTestCase:

    @pytest.mark.asyncio
    async def test_approve(self, client: AsyncClient, auth_headers, create_test_case, password, test_user):
        test_case = await create_test_case()

        response = await client.put(
            f"/api/test-cases/{test_case['id']}/approve", json={"password": password}, headers=auth_headers
        )

        assert response.status_code == 200
        approved = response.json()["testCase"]
        assert approved["status"] == "approved"
        assert approved["revision"] == 1
        assert approved["approvedBy"] == test_user.id

    @pytest.mark.asyncio
    async def test_approve_errors(self, client: AsyncClient, auth_headers, create_test_case, password):
        test_case = await create_test_case(approve=True)
        url = f"/api/test-cases/{test_case['id']}/approve"

        response = await client.put(url, json={}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Password is required for approval"

        assert (await client.put(url, json={"password": "WrongPass1"}, headers=auth_headers)).status_code == 401
        assert (await client.put("/api/test-cases/TC-50/approve", json={"password": password},
                                 headers=auth_headers)).status_code == 404

        response = await client.put(url, json={"password": password}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Test case is already approved"


class TestDeleteTestCase:

    @pytest.mark.asyncio
    async def test_soft_delete(self, client: AsyncClient, auth_headers, create_test_case, test_user):
        test_case = await create_test_case()

        response = await client.delete(f"/api/test-cases/{test_case['id']}", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["testCase"]["deletedAt"] is not None
        assert body["testCase"]["modifiedByName"] == test_user.full_name
        assert (await client.get(f"/api/test-cases/{test_case['id']}", headers=auth_headers)).status_code == 404
        assert (await client.delete(f"/api/test-cases/{test_case['id']}", headers=auth_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_deleted_test_case_hidden_from_requirement_traces(self, client: AsyncClient, auth_headers,
                                                                    create_item, create_test_case):
        user_req = await create_item("user-requirements")
        test_case = await create_test_case(linked_requirements=[user_req["id"]])
        await client.delete(f"/api/test-cases/{test_case['id']}", headers=auth_headers)

        response = await client.get(f"/api/requirements/{user_req['id']}/traces", headers=auth_headers)

        assert response.json()["downstreamTraces"] == []

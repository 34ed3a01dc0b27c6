"""
Unit Tests for Test Run Endpoints
Tests for: run creation, execution, step results, completion, evidence, approval, coverage
"""
import io
import hashlib
import pytest
from pathlib import Path
from httpx import AsyncClient
from sqlalchemy import select
from starlette.datastructures import Headers, UploadFile

from app.core.config import settings
from app.models.testing import EvidenceFile
from app.models.trace import Trace
from app.services import test_run_service


async def execute(client, headers, run_id, test_case_id):
    return await client.post(f"/api/test-runs/{run_id}/test-cases/{test_case_id}/execute", headers=headers)


async def record(client, headers, run_id, test_case_id, step, status="pass", actual="As expected", **extra):
    return await client.put(
        f"/api/test-runs/{run_id}/test-cases/{test_case_id}/steps/{step}",
        json={"status": status, "actualResult": actual, **extra},
        headers=headers,
    )


async def run_to_completion(client, headers, run_id, test_case_ids, outcomes=None):
    """Execute every case and record every step; outcomes maps test case id to per-step status"""
    outcomes = outcomes or {}
    for tc_id in test_case_ids:
        await execute(client, headers, run_id, tc_id)
        for step, status in enumerate(outcomes.get(tc_id, ["pass", "pass"]), start=1):
            response = await record(client, headers, run_id, tc_id, step, status=status)
            assert response.status_code == 200, response.text


class TestCreateRun:

    @pytest.mark.asyncio
    async def test_create_run(self, client: AsyncClient, auth_headers, create_test_case, create_test_run, test_user):
        first = await create_test_case(approve=True)
        second = await create_test_case(approve=True)

        body = await create_test_run([first["id"], second["id"].lower()])

        run = body["testRun"]
        assert run["id"] == "TR-1"
        assert run["status"] == "not_started"
        assert run["overallResult"] == "pending"
        assert run["createdByName"] == test_user.full_name
        cases = body["testRunCases"]
        assert {c["testCaseId"] for c in cases} == {first["id"], second["id"]}
        assert all(c["status"] == "not_started" and c["result"] == "pending" for c in cases)
        assert cases[0]["testCaseTitle"] in {first["title"], second["title"]}

    @pytest.mark.asyncio
    async def test_requires_name_and_cases(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/test-runs", json={"name": "Empty", "testCaseIds": []}, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Name and test case IDs are required"

        response = await client.post("/api/test-runs", json={"testCaseIds": ["TC-1"]}, headers=auth_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_rejects_draft_and_unknown_cases(self, client: AsyncClient, auth_headers, create_test_case):
        draft = await create_test_case()
        approved = await create_test_case(approve=True)

        response = await client.post(
            "/api/test-runs",
            json={"name": "Bad", "testCaseIds": [approved["id"], draft["id"], "TC-999"]},
            headers=auth_headers,
        )

        assert response.status_code == 422
        message = response.json()["error"]["message"]
        assert message.startswith("Some test cases are invalid or not approved")
        assert draft["id"] in message and "TC-999" in message

    @pytest.mark.asyncio
    async def test_list_runs(self, client: AsyncClient, auth_headers, create_test_case, create_test_run):
        test_case = await create_test_case(approve=True)
        await create_test_run([test_case["id"]], name="Smoke")
        await create_test_run([test_case["id"]], name="Full regression")

        response = await client.get("/api/test-runs?search=regress", headers=auth_headers)
        assert [r["name"] for r in response.json()["data"]] == ["Full regression"]

        response = await client.get("/api/test-runs?sort=name&order=asc", headers=auth_headers)
        assert [r["name"] for r in response.json()["data"]] == ["Full regression", "Smoke"]

        response = await client.get("/api/test-runs?status=complete", headers=auth_headers)
        assert response.json()["meta"]["pagination"]["total"] == 0


class TestExecution:

    @pytest.mark.asyncio
    async def test_execute_starts_case_and_run(self, client: AsyncClient, auth_headers, create_test_case,
                                               create_test_run, test_user):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]

        response = await execute(client, auth_headers, run["id"], test_case["id"])

        assert response.status_code == 200
        run_case = response.json()["testRunCase"]
        assert run_case["status"] == "in_progress"
        assert run_case["result"] == "pending"
        assert run_case["startedAt"] is not None
        assert run_case["executedByName"] == test_user.full_name

        details = (await client.get(f"/api/test-runs/{run['id']}", headers=auth_headers)).json()
        assert details["testRun"]["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_execute_unknown_run_or_case(self, client: AsyncClient, auth_headers, create_test_case, create_test_run):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]

        assert (await execute(client, auth_headers, "TR-99", test_case["id"])).status_code == 404
        response = await execute(client, auth_headers, run["id"], "TC-99")
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Test case not found in this test run"

    @pytest.mark.asyncio
    async def test_step_results_complete_case_and_run(self, client: AsyncClient, auth_headers,
                                                      create_test_case, create_test_run, test_user):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        await execute(client, auth_headers, run["id"], test_case["id"])

        response = await record(client, auth_headers, run["id"], test_case["id"], 1)
        assert response.status_code == 200
        body = response.json()
        assert body["stepResult"]["stepNumber"] == 1
        assert body["stepResult"]["expectedResult"] == "Outcome 1 observed"
        assert body["stepResult"]["executedByName"] == test_user.full_name
        assert body["testRunCase"]["status"] == "in_progress"

        response = await record(client, auth_headers, run["id"], test_case["id"], 2)
        run_case = response.json()["testRunCase"]
        assert run_case["status"] == "complete"
        assert run_case["result"] == "pass"
        assert run_case["completedAt"] is not None

        details = (await client.get(f"/api/test-runs/{run['id']}", headers=auth_headers)).json()
        assert details["testRun"]["status"] == "complete"
        assert details["testRun"]["overallResult"] == "pass"
        assert [s["stepNumber"] for s in details["testSteps"][test_case["id"]]] == [1, 2]
        assert len(details["testStepResults"][run_case["id"]]) == 2

    @pytest.mark.asyncio
    async def test_failed_step_fails_case_and_run(self, client: AsyncClient, auth_headers,
                                                  create_test_case, create_test_run):
        passing = await create_test_case(approve=True)
        failing = await create_test_case(approve=True)
        run = (await create_test_run([passing["id"], failing["id"]]))["testRun"]

        await run_to_completion(client, auth_headers, run["id"], [passing["id"], failing["id"]],
                                outcomes={failing["id"]: ["pass", "fail"]})

        details = (await client.get(f"/api/test-runs/{run['id']}", headers=auth_headers)).json()
        results = {c["testCaseId"]: c["result"] for c in details["testRunCases"]}
        assert results == {passing["id"]: "pass", failing["id"]: "fail"}
        assert details["testRun"]["status"] == "complete"
        assert details["testRun"]["overallResult"] == "fail"

    @pytest.mark.asyncio
    async def test_rerecording_a_step_updates_it(self, client: AsyncClient, auth_headers,
                                                 create_test_case, create_test_run):
        test_case = await create_test_case(approve=True, steps=1)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        await execute(client, auth_headers, run["id"], test_case["id"])

        await record(client, auth_headers, run["id"], test_case["id"], 1, status="fail", actual="Crashed")
        response = await record(client, auth_headers, run["id"], test_case["id"], 1, status="pass", actual="Fixed")

        body = response.json()
        assert body["stepResult"]["actualResult"] == "Fixed"
        assert body["testRunCase"]["result"] == "pass"
        details = (await client.get(f"/api/test-runs/{run['id']}", headers=auth_headers)).json()
        assert len(details["testStepResults"][body["testRunCase"]["id"]]) == 1

    @pytest.mark.asyncio
    async def test_reexecute_clears_results(self, client: AsyncClient, auth_headers, create_test_case, create_test_run):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        await run_to_completion(client, auth_headers, run["id"], [test_case["id"]])

        response = await execute(client, auth_headers, run["id"], test_case["id"])

        run_case = response.json()["testRunCase"]
        assert run_case["status"] == "in_progress"
        assert run_case["completedAt"] is None
        details = (await client.get(f"/api/test-runs/{run['id']}", headers=auth_headers)).json()
        assert details["testStepResults"][run_case["id"]] == []
        assert details["testRun"]["status"] == "in_progress"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload,message", [
        ({"status": "pass"}, "Status and actual result are required"),
        ({"status": "skipped", "actualResult": "n/a"}, "Status must be either pass or fail"),
    ])
    async def test_step_validation(self, client: AsyncClient, auth_headers, create_test_case, create_test_run,
                                   payload, message):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]

        response = await client.put(
            f"/api/test-runs/{run['id']}/test-cases/{test_case['id']}/steps/1", json=payload, headers=auth_headers
        )

        assert response.status_code == 422
        assert response.json()["error"]["message"] == message

    @pytest.mark.asyncio
    async def test_unknown_step(self, client: AsyncClient, auth_headers, create_test_case, create_test_run):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]

        response = await record(client, auth_headers, run["id"], test_case["id"], 9)

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Test step not found"


class TestEvidence:

    @pytest.mark.asyncio
    async def test_upload_and_download(self, client: AsyncClient, auth_headers, create_test_case,
                                       create_test_run, test_user):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        content = b"%PDF-1.4 evidence of a passing step"

        response = await client.post(
            f"/api/test-runs/{run['id']}/test-cases/{test_case['id']}/steps/1/upload",
            files={"file": ("../login result.pdf", content, "application/pdf")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        evidence = response.json()["evidenceFile"]
        assert evidence["fileName"] == "../login result.pdf"
        assert evidence["fileSize"] == len(content)
        assert evidence["mimeType"] == "application/pdf"
        assert evidence["checksum"] == hashlib.sha256(content).hexdigest()
        assert evidence["uploadedByName"] == test_user.full_name

        stored = Path(evidence["filePath"])
        assert stored.parent == settings.EVIDENCE_DIR
        assert stored.name.endswith("_login_result.pdf")
        assert stored.read_bytes() == content

        response = await record(client, auth_headers, run["id"], test_case["id"], 1, evidenceFileId=evidence["id"])
        assert response.json()["stepResult"]["evidenceFileId"] == evidence["id"]

        response = await client.get(f"/api/evidence/{evidence['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.content == content
        assert "attachment" in response.headers["content-disposition"]

    @pytest.mark.asyncio
    async def test_upload_without_file(self, client: AsyncClient, auth_headers, create_test_case, create_test_run):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]

        response = await client.post(
            f"/api/test-runs/{run['id']}/test-cases/{test_case['id']}/steps/1/upload", headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No file uploaded"

    @pytest.mark.asyncio
    async def test_upload_disallowed_extension(self, client: AsyncClient, auth_headers, create_test_case, create_test_run):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]

        response = await client.post(
            f"/api/test-runs/{run['id']}/test-cases/{test_case['id']}/steps/1/upload",
            files={"file": ("payload.exe", b"MZ", "application/octet-stream")},
            headers=auth_headers,
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_upload_too_large(self, client: AsyncClient, auth_headers, create_test_case, create_test_run,
                                    monkeypatch):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        monkeypatch.setattr(settings, "MAX_EVIDENCE_SIZE", 16)

        response = await client.post(
            f"/api/test-runs/{run['id']}/test-cases/{test_case['id']}/steps/1/upload",
            files={"file": ("log.txt", b"x" * 17, "text/plain")},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert "too large" in response.json()["error"]["message"]

    @pytest.mark.asyncio
    async def test_failed_save_leaves_no_file(self, db_session, test_user, create_test_case, create_test_run,
                                             monkeypatch, tmp_path):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        monkeypatch.setattr(settings, "EVIDENCE_UPLOAD_DIR", str(tmp_path / "evidence"))

        async def failing_record(*args, **kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(test_run_service, "_record", failing_record)
        upload = UploadFile(
            file=io.BytesIO(b"step log"), filename="log.txt", headers=Headers({"content-type": "text/plain"})
        )

        with pytest.raises(RuntimeError):
            await test_run_service.upload_evidence(db_session, test_user, run["id"], test_case["id"], 1, upload)

        assert list(settings.EVIDENCE_DIR.iterdir()) == []
        assert (await db_session.execute(select(EvidenceFile))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_download_missing(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/evidence/00000000-0000-0000-0000-000000000000", headers=auth_headers)

        assert response.status_code == 404


class TestApproveRun:

    @pytest.mark.asyncio
    async def test_approve_creates_results_and_traces(self, client: AsyncClient, auth_headers, password,
                                                      create_test_case, create_test_run, db_session, test_user):
        first = await create_test_case(approve=True)
        second = await create_test_case(approve=True)
        run = (await create_test_run([first["id"], second["id"]]))["testRun"]
        await run_to_completion(client, auth_headers, run["id"], [first["id"], second["id"]])

        response = await client.put(f"/api/test-runs/{run['id']}/approve", json={"password": password}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Test run approved. Created 2 test result traces."
        assert body["testRun"]["status"] == "approved"
        assert body["testRun"]["approvedByName"] == test_user.full_name

        traces = (await db_session.execute(select(Trace).where(Trace.to_type == "testresult"))).scalars().all()
        assert {t.from_requirement_id for t in traces} == {first["id"], second["id"]}
        assert {t.to_requirement_id for t in traces} == {"TRES-1", "TRES-2"}
        assert all(t.is_system_generated for t in traces)

        response = await client.get(f"/api/test-cases/{first['id']}/traces", headers=auth_headers)
        downstream = response.json()["downstreamTraces"]
        assert len(downstream) == 1
        assert downstream[0]["testRunId"] == run["id"]
        assert downstream[0]["testRunName"] == "Regression run"
        assert downstream[0]["result"] == "pass"
        assert downstream[0]["description"].startswith("Approved on ")
        assert downstream[0]["description"].endswith(f"by {test_user.full_name}")

        response = await client.get(f"/api/requirements/{first['id']}/traces", headers=auth_headers)
        result_view = response.json()["downstreamTraces"][0]
        assert result_view["title"] == "Test Result: pass - Regression run"
        assert result_view["description"] == f"Result from test run {run['id']}"
        assert result_view["type"] == "testresult"

    @pytest.mark.asyncio
    async def test_approved_run_is_frozen(self, client: AsyncClient, auth_headers, password,
                                          create_test_case, create_test_run):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        await run_to_completion(client, auth_headers, run["id"], [test_case["id"]])
        await client.put(f"/api/test-runs/{run['id']}/approve", json={"password": password}, headers=auth_headers)

        response = await execute(client, auth_headers, run["id"], test_case["id"])
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Cannot modify approved test run"

        assert (await record(client, auth_headers, run["id"], test_case["id"], 1)).status_code == 400

        response = await client.put(f"/api/test-runs/{run['id']}/approve", json={"password": password}, headers=auth_headers)
        assert response.json()["error"]["message"] == "Test run is already approved"

    @pytest.mark.asyncio
    async def test_approve_errors(self, client: AsyncClient, auth_headers, password, create_test_case, create_test_run):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        url = f"/api/test-runs/{run['id']}/approve"

        assert (await client.put(url, json={}, headers=auth_headers)).status_code == 400
        assert (await client.put(url, json={"password": "WrongPass1"}, headers=auth_headers)).status_code == 401
        assert (await client.put("/api/test-runs/TR-9/approve", json={"password": password},
                                 headers=auth_headers)).status_code == 404

        response = await client.put(url, json={"password": password}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Test run must be complete before approval"


class TestHistoryAndCoverage:

    @pytest.mark.asyncio
    async def test_test_case_results(self, client: AsyncClient, auth_headers, create_test_case, create_test_run, test_user):
        test_case = await create_test_case(approve=True)
        run = (await create_test_run([test_case["id"]]))["testRun"]
        await run_to_completion(client, auth_headers, run["id"], [test_case["id"]],
                                outcomes={test_case["id"]: ["pass", "fail"]})

        response = await client.get(f"/api/test-cases/{test_case['id']}/results", headers=auth_headers)

        body = response.json()
        assert body["testCaseId"] == test_case["id"]
        assert len(body["results"]) == 1
        entry = body["results"][0]
        assert entry["testRunId"] == run["id"]
        assert entry["result"] == "fail"
        assert entry["executedByName"] == test_user.full_name
        assert [s["status"] for s in entry["stepResults"]] == ["pass", "fail"]

    @pytest.mark.asyncio
    async def test_requirement_coverage(self, client: AsyncClient, auth_headers, create_item,
                                        create_test_case, create_test_run):
        user_req = await create_item("user-requirements")
        executed = await create_test_case(approve=True, linked_requirements=[user_req["id"]])
        await create_test_case(approve=True, linked_requirements=[user_req["id"]])
        run = (await create_test_run([executed["id"]]))["testRun"]
        await run_to_completion(client, auth_headers, run["id"], [executed["id"]])

        response = await client.get(f"/api/requirements/{user_req['id']}/test-coverage", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["requirementId"] == user_req["id"]
        assert len(body["testCases"]) == 2
        assert [r["testCaseId"] for r in body["latestResults"]] == [executed["id"]]
        assert body["coverageStats"] == {
            "totalTests": 2,
            "passedTests": 1,
            "failedTests": 0,
            "pendingTests": 1,
            "coveragePercentage": 50,
        }

    @pytest.mark.asyncio
    async def test_coverage_without_tests(self, client: AsyncClient, auth_headers, create_item):
        user_req = await create_item("user-requirements")

        response = await client.get(f"/api/requirements/{user_req['id']}/test-coverage", headers=auth_headers)

        assert response.json()["coverageStats"]["coveragePercentage"] == 0

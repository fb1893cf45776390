import pytest

from medrec.models.user import UserRole

ISSUE = {
    "entity_type": "patient",
    "entity_id": "00000000-0000-0000-0000-000000000001",
    "issue_type": "missing_field",
    "description": "Next of kin phone is missing",
    "severity": "high",
}


@pytest.mark.asyncio
async def test_issue_lifecycle(client, make_user, headers_for, audit_rows):
    manager = await make_user(UserRole.DataManager)
    clerk = await make_user(UserRole.RecordsStaff)
    headers = headers_for(manager)

    res = await client.post("/api/data-quality/", json=ISSUE, headers=headers)
    assert res.status_code == 201
    issue = res.json()["data"]
    assert issue["status"] == "open"

    res = await client.post(
        f"/api/data-quality/{issue['id']}/assign", json={"assignee_id": str(clerk.id)}, headers=headers
    )
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "in_progress"
    assert res.json()["data"]["assigned_to"] == str(clerk.id)

    res = await client.post(
        f"/api/data-quality/{issue['id']}/resolve", json={"resolution": "Phone captured"}, headers=headers
    )
    assert res.status_code == 200
    resolved = res.json()["data"]
    assert resolved["status"] == "resolved"
    assert resolved["resolved_at"] is not None

    labels = [row.action for row in await audit_rows(entity_type="dataQuality")]
    assert labels == ["create", "assign", "resolve"]


@pytest.mark.asyncio
async def test_terminal_issue_is_state_conflict(client, make_user, headers_for, audit_rows):
    manager = await make_user(UserRole.DataManager)
    headers = headers_for(manager)
    issue = (await client.post("/api/data-quality/", json=ISSUE, headers=headers)).json()["data"]

    res = await client.post(f"/api/data-quality/{issue['id']}/dismiss", json={"reason": "Duplicate"}, headers=headers)
    assert res.status_code == 200

    res = await client.post(f"/api/data-quality/{issue['id']}/resolve", json={"resolution": "x"}, headers=headers)
    assert res.status_code == 409
    assert res.json()["code"] == "STATE_CONFLICT"
    assert res.json()["state"] == "dismissed"

    res = await client.post(f"/api/data-quality/{issue['id']}/dismiss", json={"reason": "again"}, headers=headers)
    assert res.status_code == 409

    assert await audit_rows(action="resolve") == []
    assert len(await audit_rows(action="dismiss")) == 1


@pytest.mark.asyncio
async def test_access_is_data_manager_and_admin(client, make_user, headers_for):
    clinician = await make_user(UserRole.Clinician)

    res = await client.get("/api/data-quality/", headers=headers_for(clinician))
    assert res.status_code == 403
    assert res.json()["required_roles"] == ["admin", "data_manager"]


@pytest.mark.asyncio
async def test_filters_and_update(client, make_user, headers_for):
    manager = await make_user(UserRole.DataManager)
    headers = headers_for(manager)
    first = (await client.post("/api/data-quality/", json=ISSUE, headers=headers)).json()["data"]
    await client.post("/api/data-quality/", json={**ISSUE, "severity": "low"}, headers=headers)

    res = await client.get("/api/data-quality/", params={"severity": "high"}, headers=headers)
    assert [i["id"] for i in res.json()["data"]] == [first["id"]]

    res = await client.put(f"/api/data-quality/{first['id']}", json={"severity": "critical"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["severity"] == "critical"


@pytest.mark.asyncio
async def test_my_issues_lists_open_work_for_assignee(client, make_user, headers_for):
    manager = await make_user(UserRole.DataManager)
    clerk = await make_user(UserRole.RecordsStaff)
    other = await make_user(UserRole.RecordsStaff)
    headers = headers_for(manager)

    async def raise_and_assign(severity, assignee):
        issue = (await client.post("/api/data-quality/", json={**ISSUE, "severity": severity}, headers=headers)).json()["data"]
        await client.post(
            f"/api/data-quality/{issue['id']}/assign", json={"assignee_id": str(assignee.id)}, headers=headers
        )
        return issue

    low = await raise_and_assign("low", clerk)
    critical = await raise_and_assign("critical", clerk)
    done = await raise_and_assign("high", clerk)
    await raise_and_assign("high", other)
    await client.post(f"/api/data-quality/{done['id']}/resolve", json={"resolution": "Fixed"}, headers=headers)

    # records_staff cannot browse the queue but sees its own assignments
    res = await client.get("/api/data-quality/", headers=headers_for(clerk))
    assert res.status_code == 403

    res = await client.get("/api/data-quality/my-issues", headers=headers_for(clerk))
    assert res.status_code == 200
    assert [i["id"] for i in res.json()["data"]] == [critical["id"], low["id"]]

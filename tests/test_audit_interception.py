import pytest

from medrec.core.audit import extract_outcome, resolve_entity_id
from medrec.models.user import UserRole
from medrec.schemas.common import ApiResponse
from medrec.services import audit_service
from starlette.responses import JSONResponse, Response

PATIENT = {
    "first_name": "Kofi",
    "last_name": "Boateng",
    "sex": "male",
    "date_of_birth": "1980-04-02",
    "phone": "0200000000",
}


def test_extract_outcome():
    assert extract_outcome(ApiResponse(data={"id": "1"})) == (True, {"id": "1"})
    assert extract_outcome(ApiResponse(success=False, data={"id": "1"})) == (False, None)
    assert extract_outcome(JSONResponse({"x": 1}, status_code=201)) == (True, {"x": 1})
    assert extract_outcome(JSONResponse({"success": True, "data": {"id": "7"}})) == (True, {"id": "7"})
    assert extract_outcome(Response(b"done", media_type="text/plain")) == (True, None)
    assert extract_outcome(JSONResponse({"x": 1}, status_code=422)) == (False, None)


def test_resolve_entity_id():
    assert resolve_entity_id({"id": "abc"}, "path") == "abc"
    assert resolve_entity_id(None, "path") == "path"
    assert resolve_entity_id({"name": "x"}, None) is None


@pytest.mark.asyncio
async def test_successful_create_emits_one_record(client, make_user, headers_for, audit_rows):
    clerk = await make_user(UserRole.RecordsStaff)

    res = await client.post("/api/patients/", json=PATIENT, headers=headers_for(clerk))
    assert res.status_code == 201
    created = res.json()["data"]

    rows = await audit_rows(entity_type="patient")
    assert len(rows) == 1
    row = rows[0]
    assert row.action == "create"
    assert row.entity_id == created["id"]
    assert row.after_value == created
    assert row.before_value is None
    assert row.actor_id == clerk.id
    assert row.actor_role == "records_staff"


@pytest.mark.asyncio
async def test_update_captures_before_and_after(client, make_user, headers_for, audit_rows):
    clerk = await make_user(UserRole.RecordsStaff)
    res = await client.post("/api/patients/", json=PATIENT, headers=headers_for(clerk))
    patient_id = res.json()["data"]["id"]

    res = await client.put(
        f"/api/patients/{patient_id}", json={"phone": "0244444444"}, headers=headers_for(clerk)
    )
    assert res.status_code == 200

    rows = await audit_rows(action="update", entity_type="patient")
    assert len(rows) == 1
    assert rows[0].entity_id == patient_id
    assert rows[0].before_value["phone"] == "0200000000"
    assert rows[0].after_value["phone"] == "0244444444"


@pytest.mark.asyncio
async def test_denied_request_emits_no_general_record(client, make_user, headers_for, audit_rows):
    viewer = await make_user(UserRole.Viewer)

    res = await client.post("/api/patients/", json=PATIENT, headers=headers_for(viewer))
    assert res.status_code == 403

    assert await audit_rows(entity_type="patient") == []


@pytest.mark.asyncio
async def test_failed_handler_emits_no_record(client, make_user, headers_for, audit_rows):
    admin = await make_user(UserRole.Admin)

    # validation failure
    res = await client.post("/api/patients/", json={"first_name": "x"}, headers=headers_for(admin))
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_ERROR"

    # not found raised inside the handler
    res = await client.put(
        "/api/patients/00000000-0000-0000-0000-000000000000",
        json={"phone": "1"},
        headers=headers_for(admin),
    )
    assert res.status_code == 404

    assert await audit_rows(entity_type="patient") == []


@pytest.mark.asyncio
async def test_audit_storage_failure_does_not_change_outcome(
    client, make_user, headers_for, audit_rows, monkeypatch
):
    clerk = await make_user(UserRole.RecordsStaff)

    async def broken(log_entry):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(audit_service.audit_recorder, "_persist", broken)

    res = await client.post("/api/patients/", json=PATIENT, headers=headers_for(clerk))
    assert res.status_code == 201
    assert res.json()["success"] is True

    monkeypatch.undo()
    assert await audit_rows(entity_type="patient") == []


def test_decorated_endpoints_carry_labels():
    from medrec.api.endpoints import patients, users

    assert patients.register_patient.audit_labels == ("create", "patient")
    assert users.deactivate_user.audit_labels == ("deactivate", "user")
    assert users.delete_user.audit_labels == ("delete", "user")

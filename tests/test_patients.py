import pytest

from medrec.models.user import UserRole

PATIENT = {
    "first_name": "Esi",
    "last_name": "Owusu",
    "sex": "female",
    "date_of_birth": "1992-11-20",
    "national_id": "GHA-123456789-0",
}


@pytest.mark.asyncio
async def test_register_assigns_unique_mrn(client, make_user, headers_for):
    clerk = await make_user(UserRole.RecordsStaff)

    first = (await client.post("/api/patients/", json=PATIENT, headers=headers_for(clerk))).json()["data"]
    second = (await client.post("/api/patients/", json=PATIENT, headers=headers_for(clerk))).json()["data"]

    assert first["mrn"].startswith("MRN-")
    assert first["mrn"] != second["mrn"]
    assert first["created_by"] == str(clerk.id)


@pytest.mark.asyncio
async def test_future_birth_date_rejected(client, make_user, headers_for):
    clerk = await make_user(UserRole.RecordsStaff)
    res = await client.post(
        "/api/patients/", json={**PATIENT, "date_of_birth": "2999-01-01"}, headers=headers_for(clerk)
    )
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_search(client, make_user, headers_for):
    clerk = await make_user(UserRole.RecordsStaff)
    await client.post("/api/patients/", json=PATIENT, headers=headers_for(clerk))
    await client.post(
        "/api/patients/", json={**PATIENT, "first_name": "Yaw", "last_name": "Asante"}, headers=headers_for(clerk)
    )

    res = await client.get("/api/patients/", params={"search": "Asante"}, headers=headers_for(clerk))
    assert res.status_code == 200
    names = [p["last_name"] for p in res.json()["data"]]
    assert names == ["Asante"]


@pytest.mark.asyncio
async def test_read_roles(client, make_user, headers_for):
    tech = await make_user(UserRole.LabTech)
    viewer = await make_user(UserRole.Viewer)

    assert (await client.get("/api/patients/", headers=headers_for(tech))).status_code == 200
    res = await client.get("/api/patients/", headers=headers_for(viewer))
    assert res.status_code == 403
    assert res.json()["your_role"] == "viewer"


@pytest.mark.asyncio
async def test_delete_admin_only_and_blocked_by_encounters(client, make_user, headers_for, audit_rows):
    admin = await make_user(UserRole.Admin)
    clinician = await make_user(UserRole.Clinician)

    patient = (await client.post("/api/patients/", json=PATIENT, headers=headers_for(admin))).json()["data"]

    res = await client.delete(f"/api/patients/{patient['id']}", headers=headers_for(clinician))
    assert res.status_code == 403

    await client.post(
        "/api/encounters/",
        json={"patient_id": patient["id"], "encounter_type": "OPD"},
        headers=headers_for(clinician),
    )
    res = await client.delete(f"/api/patients/{patient['id']}", headers=headers_for(admin))
    assert res.status_code == 409
    assert await audit_rows(action="delete", entity_type="patient") == []

    lonely = (await client.post("/api/patients/", json=PATIENT, headers=headers_for(admin))).json()["data"]
    res = await client.delete(f"/api/patients/{lonely['id']}", headers=headers_for(admin))
    assert res.status_code == 200

    rows = await audit_rows(action="delete", entity_type="patient")
    assert len(rows) == 1
    assert rows[0].entity_id == lonely["id"]
    assert rows[0].before_value["mrn"] == lonely["mrn"]


@pytest.mark.asyncio
async def test_lookup_by_mrn(client, make_user, headers_for):
    clerk = await make_user(UserRole.RecordsStaff)
    patient = (await client.post("/api/patients/", json=PATIENT, headers=headers_for(clerk))).json()["data"]

    res = await client.get(f"/api/patients/mrn/{patient['mrn'].lower()}", headers=headers_for(clerk))
    assert res.status_code == 200
    assert res.json()["data"]["id"] == patient["id"]

    res = await client.get("/api/patients/mrn/MRN-DOES-NOT-EXIST", headers=headers_for(clerk))
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_check_duplicates(client, make_user, headers_for, audit_rows):
    clerk = await make_user(UserRole.RecordsStaff)
    await client.post("/api/patients/", json=PATIENT, headers=headers_for(clerk))

    res = await client.post(
        "/api/patients/check-duplicates",
        json={"first_name": "esi", "last_name": "OWUSU", "date_of_birth": "1992-11-20"},
        headers=headers_for(clerk),
    )
    assert res.status_code == 200
    assert res.json()["data"]["has_duplicates"] is True
    assert res.json()["data"]["count"] == 1

    res = await client.post(
        "/api/patients/check-duplicates",
        json={"first_name": "Esi", "last_name": "Owusu", "date_of_birth": "1980-01-01"},
        headers=headers_for(clerk),
    )
    assert res.json()["data"]["has_duplicates"] is False

    # Only the registration is audited
    assert len(await audit_rows(entity_type="patient")) == 1

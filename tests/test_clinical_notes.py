import pytest

from medrec.models.user import UserRole

PATIENT = {"first_name": "Kwame", "last_name": "Mensah", "sex": "male", "date_of_birth": "1960-01-15"}


async def setup_encounter(client, headers):
    patient = (await client.post("/api/patients/", json=PATIENT, headers=headers)).json()["data"]
    res = await client.post(
        "/api/encounters/", json={"patient_id": patient["id"], "encounter_type": "IPD"}, headers=headers
    )
    return res.json()["data"]


async def write_note(client, headers, encounter_id, **extra):
    return await client.post(
        "/api/clinical-notes/",
        json={"encounter_id": encounter_id, "note_type": "progress", "content": "Stable overnight.", **extra},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_create_note_with_vitals(client, make_user, headers_for, audit_rows):
    doc = await make_user(UserRole.Clinician)
    encounter = await setup_encounter(client, headers_for(doc))

    res = await write_note(
        client, headers_for(doc), encounter["id"],
        vitals={"temperature": 37.8, "pulse": 92, "oxygen_saturation": 97, "blood_pressure": "120/80"},
    )
    assert res.status_code == 201
    note = res.json()["data"]
    assert note["clinician_id"] == str(doc.id)
    assert note["vitals"]["pulse"] == 92

    rows = await audit_rows(action="create", entity_type="clinicalNote")
    assert len(rows) == 1
    assert rows[0].entity_id == note["id"]
    assert rows[0].after_value == note


@pytest.mark.asyncio
async def test_implausible_vitals_rejected(client, make_user, headers_for):
    doc = await make_user(UserRole.Clinician)
    encounter = await setup_encounter(client, headers_for(doc))

    res = await write_note(client, headers_for(doc), encounter["id"], vitals={"temperature": 55})
    assert res.status_code == 400
    res = await write_note(client, headers_for(doc), encounter["id"], vitals={"pulse": 10})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_author_may_edit_other_clinician_may_not(client, make_user, headers_for, audit_rows):
    author = await make_user(UserRole.Clinician)
    colleague = await make_user(UserRole.Clinician)
    admin = await make_user(UserRole.Admin)
    encounter = await setup_encounter(client, headers_for(author))
    note = (await write_note(client, headers_for(author), encounter["id"])).json()["data"]

    res = await client.put(
        f"/api/clinical-notes/{note['id']}", json={"content": "Edited by author"}, headers=headers_for(author)
    )
    assert res.status_code == 200

    res = await client.put(
        f"/api/clinical-notes/{note['id']}", json={"content": "Hijack"}, headers=headers_for(colleague)
    )
    assert res.status_code == 403
    assert res.json()["reason"] == "not owner"

    res = await client.put(
        f"/api/clinical-notes/{note['id']}", json={"content": "Admin fix"}, headers=headers_for(admin)
    )
    assert res.status_code == 200

    updates = await audit_rows(action="update", entity_type="clinicalNote")
    assert [u.actor_id for u in updates] == [author.id, admin.id]
    assert updates[0].before_value["content"] == "Stable overnight."


@pytest.mark.asyncio
async def test_delete_is_admin_only(client, make_user, headers_for):
    author = await make_user(UserRole.Clinician)
    admin = await make_user(UserRole.Admin)
    encounter = await setup_encounter(client, headers_for(author))
    note = (await write_note(client, headers_for(author), encounter["id"])).json()["data"]

    res = await client.delete(f"/api/clinical-notes/{note['id']}", headers=headers_for(author))
    assert res.status_code == 403

    res = await client.delete(f"/api/clinical-notes/{note['id']}", headers=headers_for(admin))
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_no_notes_on_closed_encounter(client, make_user, headers_for):
    doc = await make_user(UserRole.Clinician)
    encounter = await setup_encounter(client, headers_for(doc))
    await client.post(
        f"/api/encounters/{encounter['id']}/close", json={"disposition": "discharged"}, headers=headers_for(doc)
    )

    res = await write_note(client, headers_for(doc), encounter["id"])
    assert res.status_code == 409
    assert res.json()["code"] == "STATE_CONFLICT"


@pytest.mark.asyncio
async def test_list_for_encounter(client, make_user, headers_for):
    doc = await make_user(UserRole.Clinician)
    tech = await make_user(UserRole.LabTech)
    encounter = await setup_encounter(client, headers_for(doc))
    await write_note(client, headers_for(doc), encounter["id"])
    await write_note(client, headers_for(doc), encounter["id"])

    res = await client.get(f"/api/clinical-notes/encounter/{encounter['id']}", headers=headers_for(doc))
    assert len(res.json()["data"]) == 2

    res = await client.get(f"/api/clinical-notes/encounter/{encounter['id']}", headers=headers_for(tech))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_notes_by_type(client, make_user, headers_for):
    doc = await make_user(UserRole.Clinician)
    headers = headers_for(doc)
    encounter = await setup_encounter(client, headers)
    await write_note(client, headers, encounter["id"])
    admission = (await write_note(client, headers, encounter["id"], note_type="admission")).json()["data"]

    res = await client.get(f"/api/clinical-notes/encounter/{encounter['id']}/type/admission", headers=headers)
    assert res.status_code == 200
    assert [n["id"] for n in res.json()["data"]] == [admission["id"]]

    res = await client.get(f"/api/clinical-notes/encounter/{encounter['id']}/type/discharge", headers=headers)
    assert res.json()["data"] == []


@pytest.mark.asyncio
async def test_latest_vitals(client, make_user, headers_for):
    doc = await make_user(UserRole.Clinician)
    headers = headers_for(doc)
    encounter = await setup_encounter(client, headers)

    res = await client.get(f"/api/clinical-notes/patient/{encounter['patient_id']}/latest-vitals", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"] is None

    await write_note(client, headers, encounter["id"], vitals={"pulse": 88})
    latest = (await write_note(client, headers, encounter["id"], vitals={"pulse": 76})).json()["data"]
    # Notes without vitals are skipped
    await write_note(client, headers, encounter["id"])

    res = await client.get(f"/api/clinical-notes/patient/{encounter['patient_id']}/latest-vitals", headers=headers)
    assert res.json()["data"]["id"] == latest["id"]
    assert res.json()["data"]["vitals"]["pulse"] == 76

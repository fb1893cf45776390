import pytest
import pytest_asyncio

from medrec.models.user import UserRole

PATIENT = {"first_name": "Abena", "last_name": "Addo", "sex": "female", "date_of_birth": "1988-03-09"}


@pytest_asyncio.fixture
async def ward(client, make_user, headers_for):
    """A clinician, a lab tech, a radiographer and an open encounter."""
    doc = await make_user(UserRole.Clinician)
    tech = await make_user(UserRole.LabTech)
    rad = await make_user(UserRole.Radiographer)

    patient = (await client.post("/api/patients/", json=PATIENT, headers=headers_for(doc))).json()["data"]
    encounter = (await client.post(
        "/api/encounters/", json={"patient_id": patient["id"], "encounter_type": "OPD"}, headers=headers_for(doc)
    )).json()["data"]

    return {
        "doc": headers_for(doc),
        "doc_user": doc,
        "tech": headers_for(tech),
        "rad": headers_for(rad),
        "encounter_id": encounter["id"],
    }


async def place_lab_order(client, ward, test_name="Full blood count"):
    res = await client.post(
        "/api/lab-orders/",
        json={"encounter_id": ward["encounter_id"], "test_name": test_name, "priority": "urgent"},
        headers=ward["doc"],
    )
    assert res.status_code == 201
    return res.json()["data"]


@pytest.mark.asyncio
async def test_lab_workflow(client, ward, audit_rows):
    order = await place_lab_order(client, ward)
    assert order["status"] == "pending"
    assert order["order_type"] == "lab"
    assert order["ordering_clinician_id"] == str(ward["doc_user"].id)

    res = await client.patch(
        f"/api/lab-orders/{order['id']}/status", json={"status": "collected"}, headers=ward["tech"]
    )
    assert res.status_code == 200
    assert res.json()["data"]["collected_at"] is not None

    res = await client.post(
        f"/api/lab-orders/{order['id']}/results",
        json={"result_text": "Hb 9.1 g/dL", "result_data": {"hb": 9.1}, "is_abnormal": True},
        headers=ward["tech"],
    )
    assert res.status_code == 201
    result = res.json()["data"]

    res = await client.get(f"/api/lab-orders/{order['id']}", headers=ward["doc"])
    assert res.json()["data"]["status"] == "completed"

    assert len(await audit_rows(action="update_status", entity_type="labOrder")) == 1
    created = await audit_rows(action="create_result", entity_type="result")
    assert len(created) == 1
    assert created[0].entity_id == result["id"]


@pytest.mark.asyncio
async def test_clinician_cannot_enter_results(client, ward):
    order = await place_lab_order(client, ward)
    res = await client.post(
        f"/api/lab-orders/{order['id']}/results", json={"result_text": "x"}, headers=ward["doc"]
    )
    assert res.status_code == 403
    assert res.json()["required_roles"] == ["admin", "lab_tech"]


@pytest.mark.asyncio
async def test_approved_result_is_frozen(client, ward, audit_rows):
    order = await place_lab_order(client, ward)
    result = (await client.post(
        f"/api/lab-orders/{order['id']}/results", json={"result_text": "Na 139"}, headers=ward["tech"]
    )).json()["data"]
    base = f"/api/lab-orders/{order['id']}/results/{result['id']}"

    # Drafts can be edited
    res = await client.put(base, json={"result_text": "Na 138"}, headers=ward["tech"])
    assert res.status_code == 200

    res = await client.post(f"{base}/approve", headers=ward["tech"])
    assert res.status_code == 200
    approved = res.json()["data"]
    assert approved["approved_by"] is not None
    assert approved["approved_at"] is not None

    res = await client.put(base, json={"result_text": "Na 150"}, headers=ward["tech"])
    assert res.status_code == 409
    assert res.json()["code"] == "STATE_CONFLICT"
    assert res.json()["state"] == "approved"

    res = await client.post(f"{base}/approve", headers=ward["tech"])
    assert res.status_code == 409

    approvals = await audit_rows(action="approve", entity_type="result")
    assert len(approvals) == 1
    assert approvals[0].after_value["approved_by"] == approved["approved_by"]
    assert approvals[0].before_value["approved_by"] is None
    assert len(await audit_rows(action="update_result")) == 1


@pytest.mark.asyncio
async def test_amend_creates_linked_result(client, ward, audit_rows):
    order = await place_lab_order(client, ward)
    result = (await client.post(
        f"/api/lab-orders/{order['id']}/results", json={"result_text": "K 3.0"}, headers=ward["tech"]
    )).json()["data"]
    base = f"/api/lab-orders/{order['id']}/results/{result['id']}"

    # Drafts are edited, not amended
    res = await client.post(f"{base}/amend", json={"result_text": "K 3.5", "reason": "typo"}, headers=ward["tech"])
    assert res.status_code == 409

    await client.post(f"{base}/approve", headers=ward["tech"])
    res = await client.post(
        f"{base}/amend", json={"result_text": "K 3.5", "reason": "Transcription error"}, headers=ward["tech"]
    )
    assert res.status_code == 201
    amendment = res.json()["data"]
    assert amendment["amends_id"] == result["id"]
    assert amendment["amendment_reason"] == "Transcription error"
    assert amendment["approved_by"] is None

    res = await client.get(f"/api/lab-orders/{order['id']}/results", headers=ward["doc"])
    assert len(res.json()["data"]) == 2

    amends = await audit_rows(action="amend", entity_type="result")
    assert len(amends) == 1
    assert amends[0].entity_id == amendment["id"]


@pytest.mark.asyncio
async def test_cancel_is_ordering_clinician_only(client, ward, make_user, headers_for, audit_rows):
    order = await place_lab_order(client, ward)
    other_doc = await make_user(UserRole.Clinician)

    res = await client.post(f"/api/lab-orders/{order['id']}/cancel", headers=headers_for(other_doc))
    assert res.status_code == 403
    assert res.json()["reason"] == "not owner"

    res = await client.post(f"/api/lab-orders/{order['id']}/cancel", headers=ward["tech"])
    assert res.status_code == 403
    assert res.json()["reason"] == "insufficient role"

    res = await client.post(f"/api/lab-orders/{order['id']}/cancel", headers=ward["doc"])
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "cancelled"

    res = await client.post(f"/api/lab-orders/{order['id']}/cancel", headers=ward["doc"])
    assert res.status_code == 409

    cancels = await audit_rows(action="cancel")
    assert len(cancels) == 1
    assert cancels[0].entity_type == "labOrder"


@pytest.mark.asyncio
async def test_invalid_status_transition(client, ward):
    order = await place_lab_order(client, ward)
    await client.patch(f"/api/lab-orders/{order['id']}/status", json={"status": "in_progress"}, headers=ward["tech"])

    res = await client.patch(
        f"/api/lab-orders/{order['id']}/status", json={"status": "collected"}, headers=ward["tech"]
    )
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_radiology_orders_are_separate(client, ward):
    lab_order = await place_lab_order(client, ward)

    res = await client.post(
        "/api/radiology-orders/",
        json={"encounter_id": ward["encounter_id"], "test_name": "Chest X-ray"},
        headers=ward["doc"],
    )
    assert res.status_code == 201
    xray = res.json()["data"]
    assert xray["order_type"] == "radiology"

    # Lab techs do not handle imaging and radiographers do not handle lab orders
    res = await client.get(f"/api/radiology-orders/{xray['id']}", headers=ward["tech"])
    assert res.status_code == 403
    res = await client.get(f"/api/lab-orders/{lab_order['id']}", headers=ward["rad"])
    assert res.status_code == 403

    # A lab order id is not reachable through the radiology router
    res = await client.get(f"/api/radiology-orders/{lab_order['id']}", headers=ward["rad"])
    assert res.status_code == 404

    res = await client.post(
        f"/api/radiology-orders/{xray['id']}/results",
        json={"result_text": "No acute findings"},
        headers=ward["rad"],
    )
    assert res.status_code == 201

    res = await client.get("/api/radiology-orders/", headers=ward["rad"])
    assert [o["id"] for o in res.json()["data"]] == [xray["id"]]


@pytest.mark.asyncio
async def test_result_events_have_their_own_trail(client, ward, make_user, headers_for):
    admin = headers_for(await make_user(UserRole.Admin))
    order = await place_lab_order(client, ward)
    result = (await client.post(
        f"/api/lab-orders/{order['id']}/results", json={"result_text": "WBC 11.2"}, headers=ward["tech"]
    )).json()["data"]
    await client.post(f"/api/lab-orders/{order['id']}/results/{result['id']}/approve", headers=ward["tech"])

    res = await client.get(f"/api/audit-logs/entity/result/{result['id']}", headers=admin)
    rows = res.json()["data"]
    assert [r["action"] for r in rows] == ["approve", "create_result"]
    assert all(r["after_value"]["order_id"] == order["id"] for r in rows)

    res = await client.get(f"/api/audit-logs/entity/labOrder/{order['id']}", headers=admin)
    assert [r["action"] for r in res.json()["data"]] == ["create"]

    # No labOrder row points at a result id
    res = await client.get(f"/api/audit-logs/entity/labOrder/{result['id']}", headers=admin)
    assert res.json()["data"] == []


async def order_with_priority(client, ward, test_name, priority):
    res = await client.post(
        "/api/lab-orders/",
        json={"encounter_id": ward["encounter_id"], "test_name": test_name, "priority": priority},
        headers=ward["doc"],
    )
    return res.json()["data"]


@pytest.mark.asyncio
async def test_pending_worklist_is_most_urgent_first(client, ward):
    routine = await order_with_priority(client, ward, "Lipid panel", "routine")
    stat = await order_with_priority(client, ward, "Troponin", "stat")
    urgent = await order_with_priority(client, ward, "Electrolytes", "urgent")
    done = await order_with_priority(client, ward, "Malaria RDT", "stat")
    await client.post(f"/api/lab-orders/{done['id']}/results", json={"result_text": "Negative"}, headers=ward["tech"])

    res = await client.get("/api/lab-orders/pending", headers=ward["tech"])
    assert res.status_code == 200
    assert [o["id"] for o in res.json()["data"]] == [stat["id"], urgent["id"], routine["id"]]

    # Radiology worklist does not see lab orders
    res = await client.get("/api/radiology-orders/pending", headers=ward["rad"])
    assert res.json()["data"] == []


@pytest.mark.asyncio
async def test_orders_for_patient(client, ward):
    order = await place_lab_order(client, ward)
    encounter = (await client.get(f"/api/encounters/{ward['encounter_id']}", headers=ward["doc"])).json()["data"]

    res = await client.get(f"/api/lab-orders/patient/{encounter['patient_id']}", headers=ward["doc"])
    assert res.status_code == 200
    assert [o["id"] for o in res.json()["data"]] == [order["id"]]

    res = await client.get("/api/lab-orders/patient/00000000-0000-0000-0000-000000000001", headers=ward["doc"])
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_result_worklists(client, ward):
    first = await place_lab_order(client, ward, "Full blood count")
    second = await place_lab_order(client, ward, "Potassium")
    normal = (await client.post(
        f"/api/lab-orders/{first['id']}/results", json={"result_text": "Normal"}, headers=ward["tech"]
    )).json()["data"]
    critical = (await client.post(
        f"/api/lab-orders/{second['id']}/results",
        json={"result_text": "K 6.8 mmol/L", "critical_flag": True},
        headers=ward["tech"],
    )).json()["data"]

    res = await client.get("/api/lab-orders/results/pending-approval", headers=ward["tech"])
    assert res.status_code == 200
    assert [r["id"] for r in res.json()["data"]] == [normal["id"], critical["id"]]

    await client.post(f"/api/lab-orders/{first['id']}/results/{normal['id']}/approve", headers=ward["tech"])
    res = await client.get("/api/lab-orders/results/pending-approval", headers=ward["tech"])
    assert [r["id"] for r in res.json()["data"]] == [critical["id"]]

    # Approval worklist needs the update permission
    res = await client.get("/api/lab-orders/results/pending-approval", headers=ward["doc"])
    assert res.status_code == 403

    res = await client.get("/api/lab-orders/results/critical", headers=ward["doc"])
    assert res.status_code == 200
    assert [r["id"] for r in res.json()["data"]] == [critical["id"]]

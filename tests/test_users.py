import pytest

from medrec.models.user import UserRole
from medrec.services.audit_service import log_auth_event

NEW_USER = {
    "email": "Lab.Tech@Hospital.org",
    "first_name": "Ama",
    "last_name": "Mensah",
    "password": "password123",
    "role": "lab_tech",
}


@pytest.mark.asyncio
async def test_admin_creates_user(client, make_user, headers_for, audit_rows):
    admin = await make_user(UserRole.Admin)

    res = await client.post("/api/users/", json=NEW_USER, headers=headers_for(admin))
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["email"] == "lab.tech@hospital.org"
    assert data["role"] == "lab_tech"
    assert data["is_active"] is True

    rows = await audit_rows(action="create", entity_type="user")
    assert len(rows) == 1
    assert rows[0].entity_id == data["id"]
    assert "password" not in rows[0].after_value


@pytest.mark.asyncio
async def test_duplicate_email_is_conflict(client, make_user, headers_for):
    admin = await make_user(UserRole.Admin)
    await client.post("/api/users/", json=NEW_USER, headers=headers_for(admin))

    res = await client.post("/api/users/", json=NEW_USER, headers=headers_for(admin))
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_non_admin_cannot_manage_users(client, make_user, headers_for):
    manager = await make_user(UserRole.DataManager)

    res = await client.post("/api/users/", json=NEW_USER, headers=headers_for(manager))
    assert res.status_code == 403
    assert res.json()["required_roles"] == ["admin"]


@pytest.mark.asyncio
async def test_list_and_filter(client, make_user, headers_for):
    admin = await make_user(UserRole.Admin)
    await make_user(UserRole.Clinician)
    await make_user(UserRole.Clinician, active=False)

    res = await client.get("/api/users/", params={"role": "clinician"}, headers=headers_for(admin))
    assert res.status_code == 200
    assert len(res.json()["data"]) == 2

    res = await client.get(
        "/api/users/", params={"role": "clinician", "is_active": "true"}, headers=headers_for(admin)
    )
    assert len(res.json()["data"]) == 1


@pytest.mark.asyncio
async def test_deactivate_and_activate_are_labelled_soft(client, make_user, headers_for, audit_rows):
    admin = await make_user(UserRole.Admin)
    target = await make_user(UserRole.Clinician)

    res = await client.post(f"/api/users/{target.id}/deactivate", headers=headers_for(admin))
    assert res.status_code == 200
    assert res.json()["data"]["is_active"] is False

    # Deactivated account loses access immediately
    res = await client.get("/api/patients/", headers=headers_for(target))
    assert res.status_code == 401
    assert res.json()["code"] == "ACCOUNT_INACTIVE"

    res = await client.post(f"/api/users/{target.id}/activate", headers=headers_for(admin))
    assert res.status_code == 200

    deactivations = await audit_rows(action="deactivate")
    assert len(deactivations) == 1
    assert deactivations[0].before_value["is_active"] is True
    assert deactivations[0].after_value["is_active"] is False
    assert len(await audit_rows(action="activate")) == 1
    assert await audit_rows(action="delete") == []


@pytest.mark.asyncio
async def test_hard_delete_without_history(client, make_user, headers_for, audit_rows):
    admin = await make_user(UserRole.Admin)
    target = await make_user(UserRole.Viewer)

    res = await client.delete(f"/api/users/{target.id}", headers=headers_for(admin))
    assert res.status_code == 200

    res = await client.get(f"/api/users/{target.id}", headers=headers_for(admin))
    assert res.status_code == 404

    rows = await audit_rows(action="delete", entity_type="user")
    assert len(rows) == 1
    assert rows[0].entity_id == str(target.id)
    assert rows[0].before_value["email"] == target.email
    assert rows[0].before_value["password_hash"] == "[REDACTED]"


@pytest.mark.asyncio
async def test_hard_delete_refused_with_audit_history(client, make_user, headers_for, audit_rows):
    admin = await make_user(UserRole.Admin)
    target = await make_user(UserRole.Viewer)
    await log_auth_event(target.id, "login", True)

    res = await client.delete(f"/api/users/{target.id}", headers=headers_for(admin))
    assert res.status_code == 409

    assert await audit_rows(action="delete") == []


@pytest.mark.asyncio
async def test_admin_cannot_remove_self(client, make_user, headers_for):
    admin = await make_user(UserRole.Admin)

    res = await client.delete(f"/api/users/{admin.id}", headers=headers_for(admin))
    assert res.status_code == 400
    res = await client.post(f"/api/users/{admin.id}/deactivate", headers=headers_for(admin))
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_reset_password(client, make_user, headers_for, audit_rows):
    admin = await make_user(UserRole.Admin)
    target = await make_user(UserRole.Radiographer)

    res = await client.post(
        f"/api/users/{target.id}/reset-password",
        json={"new_password": "fresh-pass-1"},
        headers=headers_for(admin),
    )
    assert res.status_code == 200

    res = await client.post(
        "/api/auth/login", json={"email": target.email, "password": "fresh-pass-1"}
    )
    assert res.status_code == 200

    rows = await audit_rows(action="reset_password")
    assert len(rows) == 1
    assert rows[0].entity_id == str(target.id)

from conftest import auth_headers, create_property, create_user, unique_email

from VistoriaAPI.models import ActivityLog, User


def _login(test_client, email, password):
    return test_client.post("/login", data={"username": email, "password": password})


def test_user_management_requires_admin(test_client, headers):
    assert test_client.get("/users", headers=headers).status_code == 403
    response = test_client.post(
        "/users",
        json={"name": "Bob", "email": unique_email("bob"), "password": "secret123"},
        headers=headers,
    )
    assert response.status_code == 403


def test_create_user_defaults_to_inspector(test_client, db, admin):
    email = unique_email("new")
    response = test_client.post(
        "/users",
        json={"name": "New Inspector", "email": f"  {email.upper()} ", "password": "secret123"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["email"] == email
    assert body["role"] == "INSPECTOR"
    assert body["active"] is True
    assert body["inspection_count"] == 0

    assert _login(test_client, email, "secret123").status_code == 200

    log = db.query(ActivityLog).filter_by(action="CREATE", entity="User", entity_id=str(body["id"])).one()
    assert log.user_id == admin.id
    assert log.data["email"] == email


def test_create_user_rejects_duplicate_email(test_client, db, admin):
    existing = create_user(db)
    response = test_client.post(
        "/users",
        json={"name": "Copy", "email": existing.email, "password": "secret123"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_create_user_validation(test_client, admin):
    response = test_client.post(
        "/users",
        json={"name": "Short", "email": "not-an-email", "password": "123"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["errors"]}
    assert {"email", "password"} <= fields


def test_get_user_with_recent_inspections(test_client, db, admin):
    user = create_user(db, name="Field Worker")
    prop = create_property(db)
    created = test_client.post(
        "/inspections",
        json={"property_id": prop.id, "type": "MOVE_IN"},
        headers=auth_headers(user),
    )
    assert created.status_code == 201, created.text

    response = test_client.get(f"/users/{user.id}", headers=auth_headers(admin))

    assert response.status_code == 200
    body = response.json()
    assert body["inspection_count"] == 1
    assert [i["id"] for i in body["inspections"]] == [created.json()["id"]]
    assert body["inspections"][0]["property"]["id"] == prop.id
    assert body["inspections"][0]["item_count"] == 18

    listed = test_client.get("/users", headers=auth_headers(admin)).json()
    assert next(u for u in listed if u["id"] == user.id)["inspection_count"] == 1


def test_get_unknown_user(test_client, admin):
    response = test_client.get("/users/999999", headers=auth_headers(admin))
    assert response.status_code == 404


def test_update_user_rehashes_password(test_client, db, admin):
    user = create_user(db, password="old-secret")
    response = test_client.put(
        f"/users/{user.id}",
        json={"password": "new-secret", "role": "ADMIN"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200, response.text
    assert response.json()["role"] == "ADMIN"

    assert _login(test_client, user.email, "old-secret").status_code == 401
    assert _login(test_client, user.email, "new-secret").status_code == 200

    log = db.query(ActivityLog).filter_by(action="UPDATE", entity="User", entity_id=str(user.id)).one()
    assert log.data == {"fields": ["role", "password"]}


def test_update_user_email_conflict(test_client, db, admin):
    first = create_user(db)
    second = create_user(db)
    response = test_client.put(f"/users/{second.id}", json={"email": first.email}, headers=auth_headers(admin))
    assert response.status_code == 400


def test_deactivate_user(test_client, db, admin):
    user = create_user(db, password="secret123")

    response = test_client.delete(f"/users/{user.id}", headers=auth_headers(admin))

    assert response.status_code == 200
    db.expire_all()
    assert db.query(User).filter_by(id=user.id).one().active is False
    assert _login(test_client, user.email, "secret123").status_code == 401
    assert db.query(ActivityLog).filter_by(action="DEACTIVATE", entity="User", entity_id=str(user.id)).count() == 1


def test_admin_cannot_deactivate_self(test_client, admin):
    response = test_client.delete(f"/users/{admin.id}", headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.json()["detail"] == "You cannot deactivate your own account"

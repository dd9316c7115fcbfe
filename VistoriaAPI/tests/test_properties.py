from conftest import create_property

from VistoriaAPI.constants import DEFAULT_ROOMS


def _property_body(**overrides):
    body = {
        "type": "HOUSE",
        "street": "Rua das Flores",
        "number": "42",
        "district": "Jardim",
        "city": "Campinas",
        "state": "sp",
    }
    body.update(overrides)
    return body


def test_create_property_with_rooms(test_client, headers):
    response = test_client.post(
        "/properties",
        json=_property_body(rooms=["Living Room", "Kitchen"]),
        headers=headers,
    )
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["state"] == "SP"
    assert data["active"] is True
    assert [(r["name"], r["position"]) for r in data["rooms"]] == [("Living Room", 1), ("Kitchen", 2)]


def test_create_property_uses_default_rooms(test_client, headers):
    response = test_client.post("/properties", json=_property_body(), headers=headers)
    assert response.status_code == 201
    assert [r["name"] for r in response.json()["rooms"]] == DEFAULT_ROOMS


def test_create_property_validation(test_client, headers):
    response = test_client.post("/properties", json=_property_body(state="SPX", city=""), headers=headers)
    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["errors"]}
    assert {"state", "city"} <= fields


def test_get_update_and_deactivate_property(test_client, db, headers):
    prop = create_property(db, street="Avenida Brasil", city="Curitiba")

    response = test_client.get(f"/properties/{prop.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["inspections"] == []

    response = test_client.put(
        f"/properties/{prop.id}",
        json={"owner_name": "Carla", "phone": "41999990000"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["owner_name"] == "Carla"
    assert response.json()["street"] == "Avenida Brasil"

    listed = test_client.get("/properties", params={"city": "curitiba"}, headers=headers).json()
    assert prop.id in [row["id"] for row in listed["data"]]

    response = test_client.delete(f"/properties/{prop.id}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"detail": "Property deactivated"}

    listed = test_client.get("/properties", params={"city": "curitiba"}, headers=headers).json()
    assert prop.id not in [row["id"] for row in listed["data"]]
    # still reachable directly for its inspection history
    assert test_client.get(f"/properties/{prop.id}", headers=headers).json()["active"] is False


def test_list_properties_search_and_pagination(test_client, db, headers):
    for number in ("1", "2", "3"):
        create_property(db, street="Travessa Pagina", number=number)

    response = test_client.get(
        "/properties", params={"search": "travessa pagina", "limit": 2}, headers=headers
    )
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["pages"] == 2


def test_get_unknown_property(test_client, headers):
    response = test_client.get("/properties/999999", headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Property not found"


def test_room_management(test_client, db, headers):
    prop = create_property(db)

    response = test_client.post(f"/properties/{prop.id}/rooms", json={"name": "Attic"}, headers=headers)
    assert response.status_code == 201
    attic = response.json()
    assert attic["position"] == 3

    response = test_client.put(
        f"/properties/{prop.id}/rooms/{attic['id']}",
        json={"exists": False},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["exists"] is False
    assert response.json()["name"] == "Attic"

    response = test_client.delete(f"/properties/{prop.id}/rooms/{attic['id']}", headers=headers)
    assert response.status_code == 200

    response = test_client.put(f"/properties/{prop.id}/rooms/{attic['id']}", json={"name": "X"}, headers=headers)
    assert response.status_code == 404


def test_room_in_use_cannot_be_deleted(test_client, db, headers):
    prop = create_property(db, room_names=("Living Room",))
    room_id = prop.rooms[0].id
    test_client.post("/inspections", json={"property_id": prop.id, "type": "PERIODIC"}, headers=headers)

    response = test_client.delete(f"/properties/{prop.id}/rooms/{room_id}", headers=headers)

    assert response.status_code == 400


def test_default_rooms_endpoint(test_client, headers):
    response = test_client.get("/properties/default-rooms", headers=headers)
    assert response.status_code == 200
    assert response.json() == DEFAULT_ROOMS


def test_rooms_of_inactive_property_are_frozen(test_client, db, headers):
    prop = create_property(db, active=False)
    room_id = prop.rooms[0].id

    response = test_client.put(f"/properties/{prop.id}/rooms/{room_id}", json={"name": "Suite"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Property not found"

    response = test_client.delete(f"/properties/{prop.id}/rooms/{room_id}", headers=headers)
    assert response.status_code == 404

    db.refresh(prop.rooms[0])
    assert prop.rooms[0].name == "Living Room"

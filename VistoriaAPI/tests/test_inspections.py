from conftest import TestingSessionLocal, auth_headers, create_property, create_user, unique_email

from VistoriaAPI import lifecycle
from VistoriaAPI.constants import CHECKLIST_ITEMS
from VistoriaAPI.errors import InvalidStateError
from VistoriaAPI.models import ActivityLog, Inspection, InspectionStatus, InspectionType, ItemCondition


def _create_inspection(test_client, headers, property_id, type="MOVE_IN", **extra):
    body = {"property_id": property_id, "type": type}
    body.update(extra)
    response = test_client.post("/inspections", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _set_all(test_client, headers, inspection, condition="GOOD"):
    for item in inspection["items"]:
        response = test_client.put(
            f"/inspections/{inspection['id']}/items/{item['id']}",
            json={"condition": condition},
            headers=headers,
        )
        assert response.status_code == 200, response.text


def _item(inspection, room, label):
    return next(i for i in inspection["items"] if i["room"]["name"] == room and i["label"] == label)


def test_create_inspection_builds_checklist(test_client, db, headers):
    prop = create_property(db)
    room_ids = [room.id for room in prop.rooms]

    data = _create_inspection(test_client, headers, prop.id, room_ids=room_ids, notes="Keys with doorman")

    assert data["status"] == "IN_PROGRESS"
    assert data["finalized_at"] is None
    assert data["notes"] == "Keys with doorman"
    assert len(data["items"]) == 2 * len(CHECKLIST_ITEMS) == 18
    assert {item["condition"] for item in data["items"]} == {"UNVERIFIED"}
    assert data["property"]["id"] == prop.id
    assert data["inspector"]["name"] == "Ana Inspector"


def test_create_inspection_defaults_to_existing_rooms(test_client, db, headers):
    prop = create_property(db, room_names=("Living Room", "Kitchen", "Garage"))
    garage = prop.rooms[2]
    garage.exists = False
    db.commit()

    data = _create_inspection(test_client, headers, prop.id)

    assert len(data["items"]) == 2 * len(CHECKLIST_ITEMS)
    assert "Garage" not in {item["room"]["name"] for item in data["items"]}


def test_create_inspection_unknown_property(test_client, headers):
    response = test_client.post("/inspections", json={"property_id": 999999, "type": "MOVE_IN"}, headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Property not found"


def test_create_inspection_rejects_unknown_room(test_client, db, headers):
    prop = create_property(db)
    response = test_client.post(
        "/inspections",
        json={"property_id": prop.id, "type": "MOVE_IN", "room_ids": [prop.rooms[0].id, 999999]},
        headers=headers,
    )
    assert response.status_code == 404


def test_create_inspection_invalid_type_is_validation_error(test_client, db, headers):
    prop = create_property(db)
    response = test_client.post("/inspections", json={"property_id": prop.id, "type": "SOMETIMES"}, headers=headers)
    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "Validation error"
    assert any(error["field"] == "type" for error in body["errors"])


def test_inspection_requires_authentication(test_client):
    response = test_client.get("/inspections")
    assert response.status_code == 401


def test_finalize_reports_unverified_count(test_client, db, headers):
    prop = create_property(db)
    inspection = _create_inspection(test_client, headers, prop.id)
    first = inspection["items"][0]
    test_client.put(
        f"/inspections/{inspection['id']}/items/{first['id']}",
        json={"condition": "FAIR"},
        headers=headers,
    )

    response = test_client.post(f"/inspections/{inspection['id']}/finalize", headers=headers)

    assert response.status_code == 400
    body = response.json()
    assert body["unverified_count"] == 17
    assert "17" in body["detail"]
    current = test_client.get(f"/inspections/{inspection['id']}", headers=headers).json()
    assert current["status"] == "IN_PROGRESS"
    assert current["finalized_at"] is None


def test_finalize_freezes_inspection(test_client, db, headers, monkeypatch):
    sent = []
    monkeypatch.setattr(
        "VistoriaAPI.routes.inspections.dispatch_finalized_notice",
        lambda notice: sent.append(notice),
    )
    prop = create_property(db, phone="(11) 98765-4321")
    inspection = _create_inspection(test_client, headers, prop.id)
    _set_all(test_client, headers, inspection)
    inspection_id = inspection["id"]

    response = test_client.post(f"/inspections/{inspection_id}/finalize", headers=headers)
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "FINALIZED"
    assert data["finalized_at"] is not None

    assert len(sent) == 1
    assert sent[0].inspection_id == inspection_id
    assert sent[0].owner_phone == "(11) 98765-4321"

    again = test_client.post(f"/inspections/{inspection_id}/finalize", headers=headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "Inspection is already finalized"

    item_id = inspection["items"][0]["id"]
    edit = test_client.put(
        f"/inspections/{inspection_id}/items/{item_id}",
        json={"condition": "POOR", "note": "late change"},
        headers=headers,
    )
    assert edit.status_code == 400
    assert edit.json()["detail"] == lifecycle.FINALIZED_EDIT_MESSAGE

    notes = test_client.put(f"/inspections/{inspection_id}", json={"notes": "after"}, headers=headers)
    assert notes.status_code == 400

    item = test_client.get(f"/inspections/{inspection_id}", headers=headers).json()["items"][0]
    assert item["condition"] == "GOOD"
    assert item["note"] is None

    with TestingSessionLocal() as session:
        actions = {
            row.action
            for row in session.query(ActivityLog).filter(
                ActivityLog.entity == "Inspection", ActivityLog.entity_id == str(inspection_id)
            )
        }
    assert {"CREATE", "FINALIZE"} <= actions


def test_notification_failure_does_not_affect_finalize(test_client, db, headers, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("relay down")

    monkeypatch.setattr("VistoriaAPI.notifications.email_service.send_email", boom)
    monkeypatch.setattr("VistoriaAPI.notifications.chat_relay.send_message", boom)
    prop = create_property(db, phone="11987654321")
    inspection = _create_inspection(test_client, headers, prop.id)
    _set_all(test_client, headers, inspection, condition="NOT_APPLICABLE")

    response = test_client.post(f"/inspections/{inspection['id']}/finalize", headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "FINALIZED"


def test_sign_is_allowed_after_finalize(test_client, db, headers, monkeypatch):
    monkeypatch.setattr("VistoriaAPI.routes.inspections.dispatch_finalized_notice", lambda notice: None)
    prop = create_property(db, room_names=("Living Room",))
    inspection = _create_inspection(test_client, headers, prop.id)
    _set_all(test_client, headers, inspection)
    test_client.post(f"/inspections/{inspection['id']}/finalize", headers=headers)

    response = test_client.post(
        f"/inspections/{inspection['id']}/sign",
        json={"client_name": "Joana", "client_signature": "data:image/png;base64,AAAA"},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "FINALIZED"
    assert data["client_name"] == "Joana"


def test_sign_unknown_inspection(test_client, headers):
    response = test_client.post("/inspections/999999/sign", json={"client_name": "X"}, headers=headers)
    assert response.status_code == 404


def test_item_edit_only_depends_on_its_own_inspection(test_client, db, headers, monkeypatch):
    monkeypatch.setattr("VistoriaAPI.routes.inspections.dispatch_finalized_notice", lambda notice: None)
    prop = create_property(db, room_names=("Living Room",))
    finished = _create_inspection(test_client, headers, prop.id)
    _set_all(test_client, headers, finished)
    assert test_client.post(f"/inspections/{finished['id']}/finalize", headers=headers).status_code == 200

    current = _create_inspection(test_client, headers, prop.id, type="MOVE_OUT")
    item = current["items"][0]
    response = test_client.put(
        f"/inspections/{current['id']}/items/{item['id']}",
        json={"condition": "POOR", "note": "Scratched"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["condition"] == "POOR"
    assert response.json()["note"] == "Scratched"


def test_update_item_of_another_inspection_is_not_found(test_client, db, headers):
    prop = create_property(db, room_names=("Living Room",))
    first = _create_inspection(test_client, headers, prop.id)
    second = _create_inspection(test_client, headers, prop.id)

    response = test_client.put(
        f"/inspections/{second['id']}/items/{first['items'][0]['id']}",
        json={"condition": "GOOD"},
        headers=headers,
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Item not found"


def test_progress_counts_by_room(test_client, db, headers):
    prop = create_property(db)
    inspection = _create_inspection(test_client, headers, prop.id)
    item = _item(inspection, "Kitchen", "Floor")
    test_client.put(
        f"/inspections/{inspection['id']}/items/{item['id']}",
        json={"condition": "GOOD"},
        headers=headers,
    )

    response = test_client.get(f"/inspections/{inspection['id']}/progress", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 18
    assert data["verified"] == 1
    assert data["percentage"] == 6
    assert data["by_room"]["Kitchen"] == {"total": 9, "verified": 1}
    assert data["by_room"]["Living Room"] == {"total": 9, "verified": 0}


def test_list_inspections_scoped_to_inspector(test_client, db, headers, inspector, admin):
    prop = create_property(db, room_names=("Living Room",))
    mine = _create_inspection(test_client, headers, prop.id)
    other = create_user(db, email=unique_email("other"))
    theirs = _create_inspection(test_client, auth_headers(other), prop.id, type="PERIODIC")

    response = test_client.get("/inspections", params={"property_id": prop.id}, headers=headers)
    assert response.status_code == 200
    ids = [row["id"] for row in response.json()["data"]]
    assert ids == [mine["id"]]
    assert response.json()["data"][0]["item_count"] == len(CHECKLIST_ITEMS)

    response = test_client.get("/inspections", params={"property_id": prop.id}, headers=auth_headers(admin))
    ids = [row["id"] for row in response.json()["data"]]
    assert set(ids) == {mine["id"], theirs["id"]}
    assert response.json()["pagination"]["total"] == 2

    response = test_client.get(
        "/inspections",
        params={"property_id": prop.id, "type": "PERIODIC"},
        headers=auth_headers(admin),
    )
    assert [row["id"] for row in response.json()["data"]] == [theirs["id"]]


def test_checklist_items_vocabulary(test_client, headers):
    response = test_client.get("/inspections/checklist-items", headers=headers)
    assert response.status_code == 200
    assert response.json() == CHECKLIST_ITEMS


def test_compare_entry_and_exit(test_client, db, headers, monkeypatch):
    monkeypatch.setattr("VistoriaAPI.routes.inspections.dispatch_finalized_notice", lambda notice: None)
    prop = create_property(db)
    entry = _create_inspection(test_client, headers, prop.id, type="MOVE_IN")
    _set_all(test_client, headers, entry, condition="FAIR")
    floor = _item(entry, "Living Room", "Floor")
    test_client.put(
        f"/inspections/{entry['id']}/items/{floor['id']}",
        json={"condition": "POOR", "note": "Stained"},
        headers=headers,
    )
    test_client.post(f"/inspections/{entry['id']}/finalize", headers=headers)

    exit_ = _create_inspection(
        test_client, headers, prop.id, type="MOVE_OUT", room_ids=[prop.rooms[0].id]
    )
    _set_all(test_client, headers, exit_, condition="FAIR")
    for label, condition in (("Floor", "GOOD"), ("Walls", "POOR")):
        item = _item(exit_, "Living Room", label)
        test_client.put(
            f"/inspections/{exit_['id']}/items/{item['id']}",
            json={"condition": condition},
            headers=headers,
        )
    test_client.post(f"/inspections/{exit_['id']}/finalize", headers=headers)

    response = test_client.get(
        "/inspections/compare", params={"entry": entry["id"], "exit": exit_["id"]}, headers=headers
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["entry"]["id"] == entry["id"]
    assert data["exit"]["id"] == exit_["id"]
    assert data["property"]["id"] == prop.id
    assert len(data["comparison"]) == 18

    rows = {(row["room"], row["label"]): row for row in data["comparison"]}
    floor_row = rows[("Living Room", "Floor")]
    assert floor_row["changed"] is True
    assert floor_row["change"] == "improved"
    assert floor_row["entry"]["condition"] == "POOR"
    assert floor_row["entry"]["note"] == "Stained"
    assert floor_row["exit"]["condition"] == "GOOD"

    assert rows[("Living Room", "Walls")]["change"] == "worsened"
    assert rows[("Living Room", "Doors")]["changed"] is False
    assert rows[("Living Room", "Doors")]["change"] == "unchanged"

    kitchen = rows[("Kitchen", "Floor")]
    assert kitchen["exit"] is None
    assert kitchen["changed"] is False


def test_compare_requires_both_ids(test_client, headers):
    response = test_client.get("/inspections/compare", params={"entry": 1}, headers=headers)
    assert response.status_code == 400


def test_compare_unknown_inspection(test_client, db, headers):
    prop = create_property(db, room_names=("Living Room",))
    entry = _create_inspection(test_client, headers, prop.id)
    response = test_client.get(
        "/inspections/compare", params={"entry": entry["id"], "exit": 999999}, headers=headers
    )
    assert response.status_code == 404


def test_classify_change_follows_severity_order():
    assert lifecycle.classify_change(ItemCondition.POOR, ItemCondition.GOOD) == "improved"
    assert lifecycle.classify_change("GOOD", "FAIR") == "worsened"
    assert lifecycle.classify_change("FAIR", "FAIR") == "unchanged"
    assert lifecycle.classify_change("NOT_APPLICABLE", "POOR") == "improved"
    assert lifecycle.classify_change("POOR", "UNVERIFIED") == "worsened"


def test_concurrent_finalize_only_one_wins(db, inspector):
    prop = create_property(db, room_names=("Living Room",))
    created = lifecycle.create_inspection(db, prop.id, InspectionType.MOVE_IN, inspector)
    for item in created.items:
        item.condition = ItemCondition.GOOD
    db.commit()
    inspection_id = created.id

    stale = TestingSessionLocal()
    try:
        # load the row so the second session holds an IN_PROGRESS snapshot
        snapshot = stale.query(Inspection).filter(Inspection.id == inspection_id).one()
        assert snapshot.status == InspectionStatus.IN_PROGRESS

        winner = lifecycle.finalize_inspection(db, inspection_id, inspector)
        assert winner.status == InspectionStatus.FINALIZED

        try:
            lifecycle.finalize_inspection(stale, inspection_id, inspector)
        except InvalidStateError as exc:
            assert exc.message == "Inspection is already finalized"
        else:
            raise AssertionError("second finalize should fail")
    finally:
        stale.close()

    db.expire_all()
    final = db.query(Inspection).filter(Inspection.id == inspection_id).one()
    assert final.status == InspectionStatus.FINALIZED
    assert final.finalized_at is not None
    finalize_logs = (
        db.query(ActivityLog)
        .filter(ActivityLog.action == "FINALIZE", ActivityLog.entity_id == str(inspection_id))
        .count()
    )
    assert finalize_logs == 1

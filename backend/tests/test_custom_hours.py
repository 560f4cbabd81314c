def _payload(**overrides):
    payload = {
        "title": "Lerngruppe",
        "start_time": "2025-01-20T10:00:00Z",
        "end_time": "2025-01-20T11:00:00Z",
        "custom_location": "Bibliothek",
    }
    payload.update(overrides)
    return payload


def test_create_list_update_delete(make_room, client, auth):
    make_room("A101")
    auth.login("user-a", "anna.schmidt@nordakademie.de")

    created = client.post("/v1/custom_hours/", json=_payload())
    assert created.status_code == 201
    item = created.json()
    assert item["custom_location"] == "Bibliothek"
    assert item["room_number"] is None

    moved = client.put(f"/v1/custom_hours/{item['id']}", json={"room_number": "A101", "title": "Tutorium"})
    assert moved.status_code == 200
    assert moved.json()["room_number"] == "A101"
    assert moved.json()["custom_location"] is None
    assert moved.json()["title"] == "Tutorium"

    listing = client.get("/v1/custom_hours/").json()
    assert [entry["id"] for entry in listing] == [item["id"]]

    assert client.delete(f"/v1/custom_hours/{item['id']}").json() == {"success": True}
    assert client.get("/v1/custom_hours/").json() == []


def test_room_and_custom_location_are_mutually_exclusive(make_room, client, auth):
    make_room("A101")
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    both = client.post("/v1/custom_hours/", json=_payload(room_number="A101"))
    assert both.status_code == 422
    neither = client.post("/v1/custom_hours/", json=_payload(custom_location=None))
    assert neither.status_code == 422


def test_naive_and_inverted_times_are_rejected(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    naive = client.post("/v1/custom_hours/", json=_payload(start_time="2025-01-20T10:00:00"))
    assert naive.status_code == 422
    inverted = client.post("/v1/custom_hours/", json=_payload(end_time="2025-01-20T09:00:00Z"))
    assert inverted.status_code == 400


def test_unknown_room_is_404(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    response = client.post("/v1/custom_hours/", json=_payload(custom_location=None, room_number="Z999"))
    assert response.status_code == 404


def test_update_keeps_time_order(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    item = client.post("/v1/custom_hours/", json=_payload()).json()
    response = client.put(f"/v1/custom_hours/{item['id']}", json={"end_time": "2025-01-20T09:00:00Z"})
    assert response.status_code == 400
    unchanged = client.get("/v1/custom_hours/").json()[0]
    assert unchanged["end_time"].startswith("2025-01-20T11:00:00")


def test_only_the_owner_can_change_a_custom_hour(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    item = client.post("/v1/custom_hours/", json=_payload()).json()

    auth.login("user-b", "ben.meier@nordakademie.de")
    assert client.put(f"/v1/custom_hours/{item['id']}", json={"title": "Mine"}).status_code == 403
    assert client.delete(f"/v1/custom_hours/{item['id']}").status_code == 403
    assert client.get("/v1/custom_hours/").json() == []
    assert client.delete("/v1/custom_hours/9999").status_code == 404


def test_listing_filters_by_window(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    client.post("/v1/custom_hours/", json=_payload())
    client.post(
        "/v1/custom_hours/",
        json=_payload(start_time="2025-01-27T10:00:00Z", end_time="2025-01-27T11:00:00Z"),
    )
    listing = client.get(
        "/v1/custom_hours/",
        params={"start_time": "2025-01-26T00:00:00+00:00", "end_time": "2025-02-01T00:00:00+00:00"},
    ).json()
    assert len(listing) == 1
    assert listing[0]["start_time"].startswith("2025-01-27")


def test_update_rejects_null_for_required_fields(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    item = client.post("/v1/custom_hours/", json=_payload()).json()
    for field in ("title", "start_time", "end_time"):
        response = client.put(f"/v1/custom_hours/{item['id']}", json={field: None})
        assert response.status_code == 422, field
    cleared = client.put(f"/v1/custom_hours/{item['id']}", json={"description": None})
    assert cleared.status_code == 200
    assert client.get("/v1/custom_hours/").json()[0]["title"] == "Lerngruppe"


def test_listing_rejects_naive_window(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    response = client.get("/v1/custom_hours/", params={"start_time": "2025-01-20T10:00:00"})
    assert response.status_code == 422

from conftest import utc


def test_user_is_provisioned_from_token(client, auth):
    auth.login("kc-123", "max.mustermann@nordakademie.de", "student", "teacher")
    response = client.get("/v1/user")
    assert response.status_code == 200
    payload = response.json()
    assert payload["first_name"] == "Max"
    assert payload["last_name"] == "Mustermann"
    assert payload["initials"] == "MM"
    assert payload["zenturie"] is None
    assert payload["roles"] == ["student", "teacher"]

    again = client.get("/v1/user").json()
    assert again["id"] == payload["id"]


def test_requests_without_token_are_unauthorized(client):
    response = client.get("/v1/user")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_assigning_unknown_zenturie_is_404(client, auth):
    auth.login("kc-123", "max.mustermann@nordakademie.de")
    assert client.post("/v1/zenturie", json={"zenturie": "X99z"}).status_code == 404


def test_user_settings_round_trip(client, auth):
    auth.login("kc-123", "max.mustermann@nordakademie.de")
    defaults = client.get("/v1/user_settings").json()
    assert defaults == {"theme": "auto", "notification_preference": "beide"}

    updated = client.post("/v1/user_settings", json={"theme": "dunkel"}).json()
    assert updated == {"theme": "dunkel", "notification_preference": "beide"}
    assert client.post("/v1/user_settings", json={"theme": "neon"}).status_code == 422


def test_public_zenturie_listing_and_view(make_zenturie, make_event, client):
    cohort = make_zenturie("I24c")
    make_zenturie("A24a")
    make_event(cohort, "evt-1", utc(2025, 1, 20, 8, 0), utc(2025, 1, 20, 9, 30), summary="Algorithmen")
    make_event(cohort, "evt-2", utc(2025, 1, 22, 8, 0), utc(2025, 1, 22, 9, 30), summary="Datenbanken")

    names = [item["name"] for item in client.get("/v1/all_zenturie").json()]
    assert names == ["A24a", "I24c"]

    view = client.get("/v1/view", params={"zenturie": "I24c", "date": "2025-01-20"}).json()
    assert view["zenturie"] == "I24c"
    assert [event["uid"] for event in view["events"]] == ["evt-1"]

    week = client.get("/v1/view", params={"zenturie": "I24c", "date": "2025-01-20", "end": "2025-01-24"}).json()
    assert len(week["events"]) == 2

    backwards = client.get("/v1/view", params={"zenturie": "I24c", "date": "2025-01-24", "end": "2025-01-20"})
    assert backwards.status_code == 400


def test_events_merge_timetable_custom_hours_and_exams(make_zenturie, make_event, make_course, client, auth):
    cohort = make_zenturie("I24c")
    make_course("I231", "Algorithmen")
    make_event(cohort, "evt-1", utc(2025, 1, 20, 8, 0), utc(2025, 1, 20, 9, 30), summary="Algorithmen")
    auth.login("kc-123", "max.mustermann@nordakademie.de")
    client.post("/v1/zenturie", json={"zenturie": "I24c"})
    client.post(
        "/v1/custom_hours/",
        json={
            "title": "Sport",
            "start_time": "2025-01-20T12:00:00Z",
            "end_time": "2025-01-20T13:00:00Z",
            "custom_location": "Sporthalle",
        },
    )
    client.post("/v1/exams/", json={"module_number": "I231", "start_time": "2025-01-20T15:00:00Z", "duration": 60})

    events = client.get("/v1/events", params={"date": "2025-01-20"}).json()
    assert [event["event_type"] for event in events] == ["timetable", "custom_hour", "exam"]
    assert events[1]["custom_location"] == "Sporthalle"
    assert events[2]["course_name"] == "Algorithmen"
    assert events[2]["end_time"].startswith("2025-01-20T16:00:00")

    assert client.get("/v1/events", params={"date": "2025-01-21"}).json() == []


def test_courses_require_login(make_course, client, auth):
    make_course("I231", "Algorithmen")
    assert client.get("/v1/courses").status_code == 401
    auth.login("kc-123", "max.mustermann@nordakademie.de")
    assert [course["module_number"] for course in client.get("/v1/courses").json()] == ["I231"]


def test_subscription_feed(make_zenturie, make_event, client, auth):
    cohort = make_zenturie("I24c")
    make_event(cohort, "evt-1@nordakademie.de", utc(2025, 1, 20, 8, 0), utc(2025, 1, 20, 9, 30), summary="Algorithmen")
    auth.login("kc-123", "max.mustermann@nordakademie.de")
    client.post("/v1/zenturie", json={"zenturie": "I24c"})
    custom = client.post(
        "/v1/custom_hours/",
        json={
            "title": "Lernen; Gruppe, 2",
            "start_time": "2025-01-21T12:00:00Z",
            "end_time": "2025-01-21T13:00:00Z",
            "custom_location": "Bibliothek",
        },
    ).json()

    subscription = client.post("/v1/subscription").json()
    assert subscription["url"].endswith(f"/v1/subscription/{subscription['subscription_uuid']}.ics")

    auth.logout()
    feed = client.get(f"/v1/subscription/{subscription['subscription_uuid']}.ics")
    assert feed.status_code == 200
    assert feed.headers["content-type"].startswith("text/calendar")
    assert "nora-calendar.ics" in feed.headers["content-disposition"]
    body = feed.text
    assert body.startswith("BEGIN:VCALENDAR\r\n")
    assert "X-WR-CALNAME:NORA Stundenplan" in body
    assert "UID:evt-1@nordakademie.de" in body
    assert "DTSTART:20250120T080000Z" in body
    assert f"UID:custom-{custom['id']}@default-realm" in body
    assert "SUMMARY:Lernen\\; Gruppe\\, 2" in body


def test_rotating_subscription_invalidates_old_link(client, auth):
    auth.login("kc-123", "max.mustermann@nordakademie.de")
    first = client.post("/v1/subscription").json()["subscription_uuid"]
    second = client.post("/v1/subscription").json()["subscription_uuid"]
    assert first != second
    assert client.get(f"/v1/subscription/{first}.ics").status_code == 404
    assert client.get(f"/v1/subscription/{second}.ics").status_code == 200

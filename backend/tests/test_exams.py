from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.core.exceptions import ConflictError, InvalidInputError
from app.models.exam import Exam
from app.services.exams import VERIFICATION_THRESHOLD, record_exam
from app.services.users import get_or_create_user

from conftest import utc

EXAM_START = "2025-02-14T09:00:00Z"


def _join(client, auth, subject: str, email: str, zenturie: str = "I24c") -> None:
    auth.login(subject, email)
    response = client.post("/v1/zenturie", json={"zenturie": zenturie})
    assert response.status_code == 200


def _report(client, start: str = EXAM_START, duration: int = 90):
    return client.post("/v1/exams/", json={"module_number": "I231", "start_time": start, "duration": duration})


def test_third_reporter_verifies_the_group(db, make_zenturie, make_course, client, auth):
    make_zenturie("I24c")
    make_course("I231", "Algorithmen")

    results = []
    for index, name in enumerate(("anna.schmidt", "ben.meier", "cara.vogel")):
        _join(client, auth, f"user-{index}", f"{name}@nordakademie.de")
        response = _report(client)
        assert response.status_code == 201
        results.append(response.json())

    assert [item["is_verified"] for item in results] == [False, False, True]
    db.expire_all()
    rows = db.execute(select(Exam)).scalars().all()
    assert len(rows) == VERIFICATION_THRESHOLD
    assert all(row.is_verified for row in rows)

    _join(client, auth, "user-3", "dora.wolf@nordakademie.de")
    late = _report(client)
    assert late.json()["is_verified"] is True


def test_different_duration_is_a_different_group(db, make_zenturie, make_course, client, auth):
    make_zenturie("I24c")
    make_course("I231", "Algorithmen")
    for index, duration in enumerate((90, 90, 60)):
        _join(client, auth, f"user-{index}", f"user{index}.test@nordakademie.de")
        assert _report(client, duration=duration).status_code == 201

    db.expire_all()
    assert not any(row.is_verified for row in db.execute(select(Exam)).scalars())


def test_duplicate_report_is_rejected(make_zenturie, make_course, client, auth):
    make_zenturie("I24c")
    make_course("I231", "Algorithmen")
    _join(client, auth, "user-a", "anna.schmidt@nordakademie.de")
    assert _report(client).status_code == 201
    duplicate = _report(client)
    assert duplicate.status_code == 409


def test_invalid_duration_is_rejected(make_zenturie, make_course, client, auth):
    make_zenturie("I24c")
    make_course("I231", "Algorithmen")
    _join(client, auth, "user-a", "anna.schmidt@nordakademie.de")
    assert _report(client, duration=75).status_code == 422


def test_reporting_requires_a_zenturie(make_course, client, auth):
    make_course("I231", "Algorithmen")
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    response = _report(client)
    assert response.status_code == 400


def test_upcoming_exams_are_shared_with_parallel_cohorts(make_zenturie, make_course, client, auth):
    make_zenturie("I24a")
    make_zenturie("I24b")
    make_zenturie("A24a")
    make_course("I231", "Algorithmen")
    future = (datetime.now(timezone.utc) + timedelta(days=10)).replace(microsecond=0).isoformat()

    _join(client, auth, "user-a", "anna.schmidt@nordakademie.de", zenturie="I24a")
    assert _report(client, start=future).status_code == 201

    _join(client, auth, "user-b", "ben.meier@nordakademie.de", zenturie="I24b")
    listing = client.get("/v1/exams/").json()
    assert len(listing) == 1
    assert listing[0]["module_number"] == "I231"
    assert listing[0]["reported_by_me"] is False

    _join(client, auth, "user-c", "cara.vogel@nordakademie.de", zenturie="A24a")
    assert client.get("/v1/exams/").json() == []


def test_only_the_reporter_can_delete(make_zenturie, make_course, client, auth):
    make_zenturie("I24c")
    make_course("I231", "Algorithmen")
    _join(client, auth, "user-a", "anna.schmidt@nordakademie.de")
    exam_id = _report(client).json()["id"]

    _join(client, auth, "user-b", "ben.meier@nordakademie.de")
    assert client.delete(f"/v1/exams/{exam_id}").status_code == 403

    auth.login("user-a", "anna.schmidt@nordakademie.de")
    assert client.delete(f"/v1/exams/{exam_id}").json() == {"success": True}
    assert client.delete(f"/v1/exams/{exam_id}").status_code == 404


def test_record_exam_service_checks(db, tenant, make_course):
    course = make_course("I231", "Algorithmen")
    user = get_or_create_user(db, tenant, subject="user-a", email="anna.schmidt@nordakademie.de")

    with pytest.raises(InvalidInputError):
        record_exam(db, user=user, course=course, start_time=utc(2025, 2, 14, 9), duration=75)

    exam = record_exam(db, user=user, course=course, start_time=utc(2025, 2, 14, 9, 0, 0, 500), duration=90)
    assert exam.start_time == utc(2025, 2, 14, 9)
    assert exam.end_time == utc(2025, 2, 14, 10, 30)
    with pytest.raises(ConflictError):
        record_exam(db, user=user, course=course, start_time=utc(2025, 2, 14, 9), duration=90)

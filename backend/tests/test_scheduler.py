import threading

import pytest

from app.services.ics_import import ImportStatistics
from app.services.scheduler import JOB_NAME, ImportAlreadyRunningError, TimetableScheduler, next_run_after

from conftest import utc


def test_next_run_after_aligns_to_half_hours():
    assert next_run_after(utc(2025, 1, 20, 10, 0)) == utc(2025, 1, 20, 10, 0)
    assert next_run_after(utc(2025, 1, 20, 10, 0, 1)) == utc(2025, 1, 20, 10, 30)
    assert next_run_after(utc(2025, 1, 20, 10, 29, 59)) == utc(2025, 1, 20, 10, 30)
    assert next_run_after(utc(2025, 1, 20, 10, 45)) == utc(2025, 1, 20, 11, 0)
    assert next_run_after(utc(2025, 12, 31, 23, 59)) == utc(2026, 1, 1, 0, 0)


def test_status_reflects_start_and_stop():
    scheduler = TimetableScheduler(lambda stop: None, clock=lambda: utc(2025, 1, 20, 10, 12))
    assert scheduler.status().status == "stopped"
    assert scheduler.status().next_run is None

    assert scheduler.start() is True
    try:
        assert scheduler.start() is False
        status = scheduler.status()
        assert status.status == "running"
        assert status.next_run == utc(2025, 1, 20, 10, 30)
        assert status.job_name == JOB_NAME
    finally:
        assert scheduler.stop(timeout=5) is True
    assert scheduler.running is False
    assert scheduler.stop() is True


def test_overlapping_run_is_skipped():
    entered = threading.Event()
    release = threading.Event()
    calls = []

    def job(stop_event):
        calls.append(stop_event)
        entered.set()
        release.wait(5)
        return "done"

    scheduler = TimetableScheduler(job)
    results = []
    worker = threading.Thread(target=lambda: results.append(scheduler.run_once()))
    worker.start()
    assert entered.wait(5)

    assert scheduler.run_once() is None

    release.set()
    worker.join(5)
    assert results == ["done"]
    assert len(calls) == 1


def test_failed_run_is_contained():
    def job(stop_event):
        raise RuntimeError("feed server down")

    scheduler = TimetableScheduler(job)
    assert scheduler.run_once() is None
    # The lock is released again, so the next tick can run.
    scheduler._job = lambda stop_event: 42
    assert scheduler.run_once() == 42


def test_start_can_run_immediately():
    ran = threading.Event()
    scheduler = TimetableScheduler(lambda stop_event: ran.set())
    scheduler.start(run_immediately=True)
    try:
        assert ran.wait(5)
    finally:
        scheduler.stop(timeout=5)


def test_scheduler_endpoints(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    status = client.get("/v1/scheduler/status")
    assert status.status_code == 200
    assert status.json()["status"] == "stopped"
    assert client.post("/v1/scheduler/start").status_code == 403

    auth.login("admin-1", "admin.user@nordakademie.de", "admin")
    started = client.post("/v1/scheduler/start").json()
    assert started["status"] == "running"
    assert started["job_name"] == JOB_NAME
    stopped = client.post("/v1/scheduler/stop").json()
    assert stopped == {"status": "stopped", "running": False, "next_run": None, "job_name": None}


def test_manual_run_returns_statistics(client, auth, monkeypatch):
    scheduler = client.app.state.scheduler
    monkeypatch.setattr(scheduler, "_job", lambda stop_event: ImportStatistics(files_downloaded=2, events_created=5))
    auth.login("admin-1", "admin.user@nordakademie.de", "admin")
    response = client.post("/v1/scheduler/run")
    assert response.status_code == 200
    assert response.json() == {
        "files_downloaded": 2,
        "events_created": 5,
        "events_updated": 0,
        "events_unchanged": 0,
        "errors": 0,
    }


def test_manual_run_after_stop_is_not_cancelled():
    seen = []

    def job(stop_event):
        seen.append(stop_event.is_set())
        return "imported"

    scheduler = TimetableScheduler(job)
    scheduler.start()
    scheduler.stop(timeout=5)

    assert scheduler.run_now() == "imported"
    assert scheduler.run_once() == "imported"
    assert seen == [False, False]


def test_run_now_reports_busy_and_failed_runs_separately():
    def job(stop_event):
        raise RuntimeError("feed server down")

    scheduler = TimetableScheduler(job)
    with pytest.raises(RuntimeError, match="feed server down"):
        scheduler.run_now()

    scheduler._run_lock.acquire()
    try:
        with pytest.raises(ImportAlreadyRunningError):
            scheduler.run_now()
    finally:
        scheduler._run_lock.release()


def test_manual_run_endpoint_maps_busy_to_409_and_failure_to_500(client, auth, monkeypatch):
    scheduler = client.app.state.scheduler
    auth.login("admin-1", "admin.user@nordakademie.de", "admin")

    scheduler._run_lock.acquire()
    try:
        busy = client.post("/v1/scheduler/run")
    finally:
        scheduler._run_lock.release()
    assert busy.status_code == 409
    assert busy.json()["detail"] == "Timetable import already running"

    def broken(stop_event):
        raise RuntimeError("database gone")

    monkeypatch.setattr(scheduler, "_job", broken)
    failed = client.post("/v1/scheduler/run")
    assert failed.status_code == 500
    assert failed.json()["detail"] == "Timetable import failed"

import pytest

from app.api.routes import search as search_routes
from app.services.rate_limit import RateLimit
from app.services.search import levenshtein_distance, longest_common_subsequence, similarity

from conftest import utc


def test_similarity_ranking():
    assert similarity("algorithmen", "Algorithmen") == 1.0
    substring = similarity("algo", "Algorithmen und Datenstrukturen")
    assert 0.85 < substring < 1.0
    assert similarity("daten", "Algorithmen Datenstrukturen") > 0.85
    assert similarity("dat alg", "Algorithmen Datenstrukturen") == 0.65
    assert similarity("", "anything") == 0.0
    assert similarity("x", None) == 0.0


def test_fuzzy_matches_score_below_exact_ones():
    typo = similarity("algoritmen", "algorithmen")
    assert 0.3 <= typo < 0.65
    assert similarity("zzzz", "Algorithmen") < 0.3


@pytest.mark.parametrize(
    ("left", "right", "expected"),
    [("kitten", "sitting", 3), ("", "abc", 3), ("abc", "abc", 0)],
)
def test_levenshtein_distance(left, right, expected):
    assert levenshtein_distance(left, right) == expected


def test_longest_common_subsequence():
    assert longest_common_subsequence("abcde", "ace") == 3


def test_search_groups_results(make_zenturie, make_event, make_room, client, auth):
    cohort = make_zenturie("I24c")
    make_room("A104", room_name="Hörsaal Algorithmik")
    make_event(
        cohort,
        "evt-1",
        utc(2025, 1, 20, 8, 0),
        utc(2025, 1, 20, 9, 30),
        summary="Algorithmen",
        professor="Prof. Müller",
    )
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    client.post("/v1/zenturie", json={"zenturie": "I24c"})
    client.post(
        "/v1/custom_hours/",
        json={
            "title": "Algorithmen lernen",
            "start_time": "2025-01-21T12:00:00Z",
            "end_time": "2025-01-21T13:00:00Z",
            "custom_location": "Bibliothek",
        },
    )

    response = client.get("/v1/search", params={"parameter": "algorithmen"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["timetables"][0]["name"] == "Algorithmen"
    assert payload["timetables"][0]["score"] == 1.0
    assert payload["timetables"][0]["details"] == "Professor: Prof. Müller"
    assert payload["custom_hours"][0]["name"] == "Algorithmen lernen"
    assert payload["friends"] == []


def test_search_finds_friends(client, auth):
    auth.login("user-b", "ben.meier@nordakademie.de")
    client.get("/v1/user")
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    request_id = client.post("/v1/friends/request", json={"email": "ben.meier@nordakademie.de"}).json()["id"]
    auth.login("user-b", "ben.meier@nordakademie.de")
    client.post("/v1/friends/accept", json={"request_id": request_id})

    hits = client.get("/v1/search", params={"parameter": "Anna"}).json()["friends"]
    assert [hit["name"] for hit in hits] == ["Anna Schmidt"]


def test_search_requires_a_parameter(client, auth):
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    assert client.get("/v1/search").status_code == 422


def test_search_is_rate_limited(client, auth, monkeypatch):
    monkeypatch.setattr(search_routes, "SEARCH_LIMIT", RateLimit(scope="search", limit=2, window_seconds=60))
    auth.login("user-a", "anna.schmidt@nordakademie.de")
    for _ in range(2):
        assert client.get("/v1/search", params={"parameter": "x"}).status_code == 200
    limited = client.get("/v1/search", params={"parameter": "x"})
    assert limited.status_code == 429
    assert "retry-after" in limited.headers

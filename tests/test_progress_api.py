from __future__ import annotations


def test_health_and_request_id(api_client) -> None:
    resp = api_client.get("/api/health", headers={"X-Request-Id": "req_test_1"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["catalog_version"] == "2026.1"
    assert resp.headers["X-Request-Id"] == "req_test_1"


def test_login_and_me(api_client) -> None:
    resp = api_client.post("/api/auth/login", json={"username": "Asha"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    assert resp.json()["user_id"] == "user_asha"

    me = api_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user_id"] == "user_asha"


def test_progress_requires_auth(api_client) -> None:
    assert api_client.get("/api/progress/me").status_code == 401
    bad = api_client.get("/api/progress/me", headers={"Authorization": "Bearer nope"})
    assert bad.status_code == 401


def test_fresh_progress(api_client, auth_headers) -> None:
    resp = api_client.get("/api/progress/me", headers=auth_headers())
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_xp"] == 0
    assert body["level"] == 1
    assert body["level_title"] == "Beginner"
    assert body["xp_to_next_level"] == 50
    assert body["earned_badge_ids"] == []


def test_levels_table(api_client) -> None:
    resp = api_client.get("/api/progress/levels")
    assert resp.status_code == 200
    body = resp.json()
    assert body["max_level"] == 50
    assert body["levels"][0] == {"level": 1, "xp_required": 0, "title": "Beginner"}
    assert body["levels"][2]["xp_required"] == 200


def test_quiz_with_answers(api_client, auth_headers) -> None:
    headers = auth_headers()
    answers = [
        {"question_id": "q1", "correct": True, "topic": "algebra"},
        {"question_id": "q2", "correct": True, "topic": "algebra"},
        {"question_id": "q3", "correct": True, "topic": "geometry"},
        {"question_id": "q4", "correct": True, "topic": "geometry"},
        {"question_id": "q5", "correct": True, "topic": "geometry"},
    ]
    resp = api_client.post(
        "/api/progress/quiz", json={"subject": "Math", "answers": answers}, headers=headers
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["is_perfect"] is True
    assert body["score_percentage"] == 100.0
    assert body["performance"] == "Excellent"
    assert body["strong_topics"] == ["algebra", "geometry"]
    assert body["weak_topics"] == []
    award = body["award"]
    assert award["xp_awarded"] == 37
    assert award["new_total_xp"] == 187
    assert award["leveled_up"] is True
    assert sorted(b["id"] for b in award["new_badges"]) == ["quiz_first", "quiz_perfect"]

    badges = api_client.get("/api/progress/badges", headers=headers).json()
    assert len(badges) == 14
    earned = {b["id"] for b in badges if b["earned"]}
    assert earned == {"quiz_first", "quiz_perfect"}
    math = next(b for b in badges if b["id"] == "math_expert")
    assert math["progress"] == 0.2


def test_quiz_with_bad_counts_is_invalid_input(api_client, auth_headers) -> None:
    headers = auth_headers()
    resp = api_client.post(
        "/api/progress/quiz",
        json={"total_questions": 3, "correct_answers": 5},
        headers=headers,
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_input"
    assert api_client.get("/api/progress/me", headers=headers).json()["total_xp"] == 0


def test_lesson_endpoint(api_client, auth_headers) -> None:
    headers = auth_headers()
    resp = api_client.post(
        "/api/progress/lesson", json={"subject": "Hindi", "chapter": "Ch 2"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["base_xp"] == 20
    me = api_client.get("/api/progress/me", headers=headers).json()
    assert me["lessons_completed"] == 1
    assert me["total_xp"] == 20


def test_admin_xp_grant(api_client) -> None:
    payload = {"user_id": "user_granted", "amount": 60, "reason": "contest prize"}
    assert api_client.post("/api/progress/xp", json=payload).status_code == 401
    wrong = api_client.post("/api/progress/xp", json=payload, headers={"X-Admin-Token": "x"})
    assert wrong.status_code == 401

    ok = api_client.post(
        "/api/progress/xp", json=payload, headers={"X-Admin-Token": "test-admin"}
    )
    assert ok.status_code == 200
    assert ok.json()["source"] == "manual"
    assert ok.json()["xp_awarded"] == 60

    neg = api_client.post(
        "/api/progress/xp",
        json={**payload, "amount": -1},
        headers={"X-Admin-Token": "test-admin"},
    )
    assert neg.status_code == 422
    assert neg.json()["error"] == "invalid_input"


def test_streak_endpoints(api_client, auth_headers, fixed_clock) -> None:
    headers = auth_headers()
    first = api_client.post("/api/progress/streak", headers=headers).json()
    assert first["current_streak"] == 1
    assert first["outcome"] == "started"

    fixed_clock.advance(hours=26)
    second = api_client.post("/api/progress/streak", headers=headers).json()
    assert second["current_streak"] == 2
    assert second["outcome"] == "continued"

    fixed_clock.advance(hours=6)
    status = api_client.get("/api/progress/streak", headers=headers).json()
    assert status["current_streak"] == 2
    assert status["is_active_today"] is True
    assert status["hours_until_streak_lost"] == 30


def test_daily_challenge_endpoints(api_client, auth_headers, fixed_clock) -> None:
    headers = auth_headers()
    first = api_client.get("/api/challenges/today", headers=headers).json()
    again = api_client.get("/api/challenges/today", headers=headers).json()
    assert first["id"] == again["id"]
    assert first["valid_on"] == "2026-03-10"
    assert first["completed"] is False

    done = api_client.post("/api/challenges/today/complete", headers=headers).json()
    assert done["outcome"] == "completed"
    assert done["award"]["base_xp"] == first["xp_reward"]
    assert done["challenge"]["completed"] is True

    dup = api_client.post("/api/challenges/today/complete", headers=headers).json()
    assert dup["outcome"] == "already_completed"
    assert dup["award"] is None

    fixed_clock.advance(days=1)
    stale = api_client.post("/api/challenges/today/complete", headers=headers).json()
    assert stale["outcome"] == "stale"
    nxt = api_client.get("/api/challenges/today", headers=headers).json()
    assert nxt["id"] != first["id"]
    assert nxt["valid_on"] == "2026-03-11"


def test_store_unavailable_maps_to_503(api_client, auth_headers, fixed_clock) -> None:
    from eduquest_api.deps import get_coordinator
    from eduquest_api.main import app
    from eduquest_api.progression import ProgressionCoordinator
    from eduquest_api.store import MemoryProgressStore

    store = MemoryProgressStore()
    store.available = False
    app.dependency_overrides[get_coordinator] = lambda: ProgressionCoordinator(
        store, clock=fixed_clock
    )
    resp = api_client.post("/api/progress/lesson", json={}, headers=auth_headers())
    assert resp.status_code == 503
    assert resp.json()["error"] == "store_unavailable"
    assert resp.headers.get("X-Request-Id")

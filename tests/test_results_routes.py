"""
tests/test_results_routes.py -- Integration tests for /api/v1/results/*.

Coverage:
  - save: 201, malformed answer ids dropped, body validation
  - my-results: own rows only, newest first, subject filter incl. "all"/"nodejs"
  - best/{subject}: highest score, message when none
  - /{id}: answers joined to question text, 403 for someone else's, 404
"""

from __future__ import annotations

import pytest


def _save(api, role: str = "user", **overrides) -> dict:
    body = {
        "subject": "CSS",
        "score": 50,
        "correct_count": 1,
        "total_questions": 2,
        "answers": [],
        "time_spent": 30,
        **overrides,
    }
    resp = api.client.post("/api/v1/results", json=body, headers=api.headers(role))
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture(scope="module")
def css_question(api) -> dict:
    resp = api.client.post(
        "/api/v1/questions",
        json={
            "question": "Which property sets text color?",
            "subject": "CSS",
            "options": ["color", "font-color", "text-color", "fg"],
            "correct_answer": 0,
            "explanation": "color sets the foreground color.",
        },
        headers=api.headers("admin"),
    )
    assert resp.status_code == 201
    return resp.json()


def test_save_result_drops_bad_answer_ids(api, css_question) -> None:
    saved = _save(
        api,
        answers=[
            {"question_id": css_question["id"], "selected_answer": 0, "correct_answer": 0, "is_correct": True},
            {"question_id": "not-an-id", "selected_answer": 1},
        ],
    )
    assert saved["user_id"] == api.ids["user"]
    stored = api.quiz_store.get_result(saved["id"])
    assert [a.question_id for a in stored.answers] == [css_question["id"]]


@pytest.mark.parametrize(
    "overrides",
    [{"score": 101}, {"score": -1}, {"subject": "Rust"}, {"total_questions": 0}],
)
def test_save_result_validation(api, overrides) -> None:
    body = {"subject": "CSS", "score": 50, "correct_count": 1, "total_questions": 2, **overrides}
    resp = api.client.post("/api/v1/results", json=body, headers=api.headers("user"))
    assert resp.status_code == 422


def test_save_requires_login(api) -> None:
    resp = api.client.post("/api/v1/results", json={"subject": "CSS", "score": 1, "correct_count": 0, "total_questions": 1})
    assert resp.status_code == 401


def test_my_results_are_own_and_newest_first(api) -> None:
    first = _save(api, "manager", subject="HTML", score=40)
    second = _save(api, "manager", subject="Node.js", score=60)
    _save(api, "admin", subject="HTML", score=99)

    resp = api.client.get("/api/v1/results/my-results", headers=api.headers("manager"))
    assert resp.status_code == 200
    rows = resp.json()
    assert [r["id"] for r in rows] == [second["id"], first["id"]]
    assert all("answers" not in r for r in rows)

    html = api.client.get("/api/v1/results/my-results?subject=html", headers=api.headers("manager")).json()
    assert [r["id"] for r in html] == [first["id"]]
    node = api.client.get("/api/v1/results/my-results?subject=nodejs", headers=api.headers("manager")).json()
    assert [r["id"] for r in node] == [second["id"]]
    everything = api.client.get("/api/v1/results/my-results?subject=all", headers=api.headers("manager")).json()
    assert len(everything) == 2


def test_my_results_unknown_subject(api) -> None:
    resp = api.client.get("/api/v1/results/my-results?subject=fortran", headers=api.headers("user"))
    assert resp.status_code == 400


def test_best_result(api) -> None:
    _save(api, "superadmin", subject="React", score=70)
    top = _save(api, "superadmin", subject="React", score=95)
    _save(api, "superadmin", subject="React", score=80)
    resp = api.client.get("/api/v1/results/best/react", headers=api.headers("superadmin"))
    assert resp.status_code == 200
    assert resp.json()["id"] == top["id"]


def test_best_result_none_yet(api) -> None:
    resp = api.client.get("/api/v1/results/best/MongoDB", headers=api.headers("superadmin"))
    assert resp.status_code == 200
    assert "message" in resp.json()


def test_result_detail_joins_questions(api, css_question) -> None:
    saved = _save(
        api,
        answers=[
            {"question_id": css_question["id"], "selected_answer": 2, "correct_answer": 0, "is_correct": False},
            {"question_id": 999999, "selected_answer": 1, "correct_answer": 1, "is_correct": True},
        ],
    )
    resp = api.client.get(f"/api/v1/results/{saved['id']}", headers=api.headers("user"))
    assert resp.status_code == 200, resp.text
    answers = resp.json()["answers"]
    assert answers[0]["question"]["question"] == css_question["question"]
    assert answers[0]["question"]["options"] == css_question["options"]
    assert answers[0]["is_correct"] is False
    assert answers[1]["question"] is None


def test_result_detail_of_other_user_is_forbidden(api) -> None:
    saved = _save(api, "user")
    resp = api.client.get(f"/api/v1/results/{saved['id']}", headers=api.headers("superadmin"))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"


def test_result_detail_missing(api) -> None:
    resp = api.client.get("/api/v1/results/999999", headers=api.headers("user"))
    assert resp.status_code == 404


@pytest.mark.parametrize("result_id", ["9" * 25, str(2**63), "0"])
def test_result_id_outside_row_range_is_rejected(api, result_id) -> None:
    resp = api.client.get(f"/api/v1/results/{result_id}", headers=api.headers("user"))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation_error"

"""Unit tests for quiz/store.py -- QuizStore queries.

Covers:
- question CRUD with JSON-encoded options
- list_questions() subject filter and ordering
- get_questions_by_ids() skips unknown ids
- results: create, list by user/subject, best_result() ties
"""

from quiz.models import AnswerRecord, Question, Result


def _question(subject: str = "CSS", text: str = "What does CSS stand for?") -> Question:
    return Question(
        question=text,
        subject=subject,
        options=["Cascading Style Sheets", "Colorful Style Sheets", "Computer Style Sheets", "Creative Style"],
        correct_answer=0,
        explanation="CSS = Cascading Style Sheets.",
    )


def test_question_crud(quiz_store):
    qid = quiz_store.create_question(_question())
    q = quiz_store.get_question(qid)
    assert q.options[0] == "Cascading Style Sheets"
    assert q.correct_answer == 0
    assert q.created_at

    assert quiz_store.update_question(qid, options=["a", "b", "c", "d"], correct_answer=3)
    q = quiz_store.get_question(qid)
    assert q.options == ["a", "b", "c", "d"]
    assert q.correct_answer == 3

    assert quiz_store.delete_question(qid)
    assert quiz_store.get_question(qid) is None
    assert not quiz_store.delete_question(qid)
    assert not quiz_store.update_question(qid, question="gone")


def test_list_questions_filters_by_subject(quiz_store):
    css = quiz_store.create_question(_question("CSS"))
    html = quiz_store.create_question(_question("HTML", "What is HTML?"))
    node = quiz_store.create_question(_question("Node.js", "What is npm?"))
    assert [q.id for q in quiz_store.list_questions()] == [node, html, css]
    assert [q.id for q in quiz_store.list_questions("HTML")] == [html]
    assert quiz_store.list_questions("React") == []


def test_get_questions_by_ids(quiz_store):
    a = quiz_store.create_question(_question())
    b = quiz_store.create_question(_question("HTML"))
    found = quiz_store.get_questions_by_ids([a, b, 999, a])
    assert set(found) == {a, b}
    assert quiz_store.get_questions_by_ids([]) == {}


def _result(user_id: int, subject: str, score: float) -> Result:
    return Result(
        user_id=user_id,
        subject=subject,
        score=score,
        correct_count=int(score // 10),
        total_questions=10,
        answers=[AnswerRecord(question_id=1, selected_answer=2, correct_answer=2, is_correct=True)],
        time_spent=95,
    )


def test_result_round_trip(quiz_store):
    rid = quiz_store.create_result(_result(1, "CSS", 80))
    r = quiz_store.get_result(rid)
    assert r.user_id == 1
    assert r.time_spent == 95
    assert r.answers == [AnswerRecord(question_id=1, selected_answer=2, correct_answer=2, is_correct=True)]
    assert quiz_store.get_result(9999) is None


def test_list_results_is_per_user_and_newest_first(quiz_store):
    r1 = quiz_store.create_result(_result(1, "CSS", 50))
    r2 = quiz_store.create_result(_result(1, "HTML", 70))
    quiz_store.create_result(_result(2, "CSS", 90))
    assert [r.id for r in quiz_store.list_results(1)] == [r2, r1]
    assert [r.id for r in quiz_store.list_results(1, "CSS")] == [r1]


def test_best_result(quiz_store):
    quiz_store.create_result(_result(1, "CSS", 60))
    top = quiz_store.create_result(_result(1, "CSS", 90))
    quiz_store.create_result(_result(1, "HTML", 100))
    quiz_store.create_result(_result(2, "CSS", 100))
    assert quiz_store.best_result(1, "CSS").id == top
    assert quiz_store.best_result(1, "React") is None


def test_best_result_tie_prefers_newest(quiz_store):
    quiz_store.create_result(_result(1, "CSS", 80))
    newer = quiz_store.create_result(_result(1, "CSS", 80))
    assert quiz_store.best_result(1, "CSS").id == newer

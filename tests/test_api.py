from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient

from assessments.autosave import get_pipeline
from assessments.models import ExamAttempt, ExamResponse
from exams.models import Exam, Question
from .factories import make_exam, option_ids, question_of

pytestmark = pytest.mark.django_db


def start_url(exam):
    return f"/api/exams/{exam.pk}/start/"


def attempt_url(attempt_id, action):
    return f"/api/exams/attempts/{attempt_id}/{action}/"


@pytest.fixture
def started(student_client, exam):
    response = student_client.post(start_url(exam), format="json")
    assert response.status_code == 201
    return response.data["attempt"]["id"]


# --- Start / resume ---

def test_start_returns_attempt_and_questions(student_client, exam):
    response = student_client.post(start_url(exam), format="json")

    assert response.status_code == 201
    assert response.data["attempt"]["status"] == "in_progress"
    assert response.data["attempt"]["remaining_seconds"] <= 60 * 60
    assert len(response.data["questions"]) == 5
    for question in response.data["questions"]:
        assert "numerical_answer" not in question
        assert all(set(option) == {"id", "text"} for option in question["options"])


def test_second_start_resumes(student_client, exam, started):
    response = student_client.post(start_url(exam), format="json")

    assert response.status_code == 200
    assert response.data["attempt"]["id"] == started
    assert ExamAttempt.objects.count() == 1


def test_resume_restores_saved_answers(student_client, exam, started):
    question = question_of(exam, Question.QuestionType.SUBJECTIVE)
    student_client.post(attempt_url(started, "save"), {"questionId": question.pk, "textAnswer": "draft"}, format="json")

    response = student_client.post(start_url(exam), format="json")
    saved = {r["question_id"]: r for r in response.data["attempt"]["responses"]}
    assert saved[question.pk]["text_answer"] == "draft"


def test_start_requires_login(api_client, exam):
    assert api_client.post(start_url(exam), format="json").status_code == 401


def test_teachers_do_not_take_exams(teacher_client, exam):
    assert teacher_client.post(start_url(exam), format="json").status_code == 403


def test_start_unknown_exam(student_client):
    response = student_client.post("/api/exams/99999/start/", format="json")
    assert response.status_code == 404
    assert response.data == {"error": "Exam not found."}


def test_start_after_last_attempt_conflicts(student_client, exam, started):
    student_client.post(attempt_url(started, "submit"), format="json")
    response = student_client.post(start_url(exam), format="json")
    assert response.status_code == 409
    assert "Maximum attempts" in response.data["error"]


# --- Autosave ---

def test_save_answer(student_client, exam, started):
    question = question_of(exam, Question.QuestionType.MULTIPLE_CHOICE)
    ids = option_ids(question, "A", "C")

    response = student_client.post(attempt_url(started, "save"), {
        "questionId": question.pk, "selectedOptionIds": ids, "isMarkedForReview": True,
    }, format="json")

    assert response.status_code == 202
    assert response.data == {"status": "saved", "warnings": []}
    saved = ExamResponse.objects.get(attempt_id=started, question=question)
    assert saved.selected_option_ids == ids
    assert saved.is_marked_for_review


def test_save_numerical_answer(student_client, exam, started):
    question = question_of(exam, Question.QuestionType.NUMERICAL)
    response = student_client.post(attempt_url(started, "save"), {"questionId": question.pk, "numericalAnswer": "7.52"}, format="json")

    assert response.status_code == 202
    assert ExamResponse.objects.get(attempt_id=started, question=question).numerical_answer == Decimal("7.52")


def test_save_wrong_answer_shape(student_client, exam, started):
    question = question_of(exam, Question.QuestionType.NUMERICAL)
    response = student_client.post(attempt_url(started, "save"), {"questionId": question.pk, "textAnswer": "seven"}, format="json")
    assert response.status_code == 400
    assert "error" in response.data


def test_save_to_someone_elses_attempt(exam, started, other_student):
    client = APIClient()
    client.force_authenticate(user=other_student)
    question = question_of(exam, Question.QuestionType.SUBJECTIVE)

    response = client.post(attempt_url(started, "save"), {"questionId": question.pk, "textAnswer": "mine"}, format="json")
    assert response.status_code == 403


def test_save_after_submit_conflicts(student_client, exam, started):
    student_client.post(attempt_url(started, "submit"), format="json")
    question = question_of(exam, Question.QuestionType.SUBJECTIVE)

    response = student_client.post(attempt_url(started, "save"), {"questionId": question.pk, "textAnswer": "late"}, format="json")
    assert response.status_code == 409


def test_save_unknown_question(student_client, started):
    response = student_client.post(attempt_url(started, "save"), {"questionId": 123456, "textAnswer": "?"}, format="json")
    assert response.status_code == 404


# --- Submit / result ---

def test_submit_and_replay(student_client, exam, started):
    single = question_of(exam, Question.QuestionType.SINGLE_CHOICE)
    student_client.post(attempt_url(started, "save"), {
        "questionId": single.pk, "selectedOptionIds": option_ids(single, "Newton"),
    }, format="json")

    first = student_client.post(attempt_url(started, "submit"), {"reason": "manual"}, format="json")
    second = student_client.post(attempt_url(started, "submit"), {"reason": "timeout"}, format="json")

    assert first.status_code == 200
    assert first.data["status"] == "submitted"
    assert first.data["marks_obtained"] == "2.00"
    assert first.data["remaining_seconds"] == 0
    assert second.status_code == 200
    assert second.data == first.data


def test_submit_reports_autosave_warnings(student_client, exam, started):
    question = question_of(exam, Question.QuestionType.SUBJECTIVE)
    pipeline = get_pipeline()
    # Left behind by a background write that gave up
    pipeline._warn((started, question.pk), "Your answer could not be saved. Please try again.")

    response = student_client.post(attempt_url(started, "submit"), {"reason": "manual"}, format="json")

    assert response.status_code == 200
    assert response.data["warnings"] == [
        {"question_id": question.pk, "message": "Your answer could not be saved. Please try again."},
    ]
    assert pipeline.drain_warnings(started) == []


def test_submit_bad_reason(student_client, started):
    response = student_client.post(attempt_url(started, "submit"), {"reason": "bored"}, format="json")
    assert response.status_code == 400


def test_result(student_client, exam, started):
    result_url = f"/api/exams/{exam.pk}/result/"
    assert student_client.get(result_url).status_code == 404

    student_client.post(attempt_url(started, "submit"), format="json")
    response = student_client.get(result_url)

    assert response.status_code == 200
    assert response.data["attempt"]["id"] == started
    assert response.data["total_attempts"] == 1
    assert response.data["best_marks"] == "0.00"


def test_attempt_history(student_client, exam, started):
    response = student_client.get("/api/exams/attempts/")
    assert response.status_code == 200
    assert [a["id"] for a in response.data] == [started]


def test_review_endpoint(student_client, exam, started):
    assert student_client.get(attempt_url(started, "review")).status_code == 403

    student_client.post(attempt_url(started, "submit"), format="json")
    response = student_client.get(attempt_url(started, "review"))

    assert response.status_code == 200
    assert len(response.data["responses"]) == 5


# --- Tab switches / leaderboard ---

def test_tab_switch_counts_without_detection(student_client, started):
    response = student_client.post(attempt_url(started, "tab-switch"), format="json")

    assert response.status_code == 200
    assert response.data["count"] == 1
    assert response.data["exceeded"] is False
    assert response.data["attempt"]["status"] == "in_progress"


def test_tab_switch_limit_submits_attempt(student_client, exam, started):
    Exam.objects.filter(pk=exam.pk).update(enable_tab_switch_detection=True, max_tab_switches=1)

    response = student_client.post(attempt_url(started, "tab-switch"), format="json")

    assert response.data["exceeded"] is True
    assert response.data["attempt"]["status"] == "expired"
    assert response.data["attempt"]["tab_switch_count"] == 1
    assert student_client.post(attempt_url(started, "tab-switch"), format="json").status_code == 409


def test_tab_switch_on_someone_elses_attempt(started, other_student):
    client = APIClient()
    client.force_authenticate(user=other_student)
    assert client.post(attempt_url(started, "tab-switch"), format="json").status_code == 403


def test_leaderboard(student_client, teacher_client, exam, started):
    single = question_of(exam, Question.QuestionType.SINGLE_CHOICE)
    student_client.post(attempt_url(started, "save"), {
        "questionId": single.pk, "selectedOptionIds": option_ids(single, "Newton"),
    }, format="json")
    student_client.post(attempt_url(started, "submit"), format="json")

    response = teacher_client.get(f"/api/exams/{exam.pk}/leaderboard/")

    assert response.status_code == 200
    assert len(response.data) == 1
    assert response.data[0]["rank"] == 1
    assert response.data[0]["attempt_id"] == started
    assert response.data[0]["marks_obtained"] == "2.00"
    assert response.data[0]["percentile"] == "0.00"


@pytest.mark.parametrize("limit", ["0", "101", "ten"])
def test_leaderboard_rejects_bad_limit(student_client, exam, limit):
    response = student_client.get(f"/api/exams/{exam.pk}/leaderboard/", {"limit": limit})
    assert response.status_code == 400


def test_leaderboard_unknown_exam(student_client):
    assert student_client.get("/api/exams/99999/leaderboard/").status_code == 404


def test_leaderboard_requires_login(api_client, exam):
    assert api_client.get(f"/api/exams/{exam.pk}/leaderboard/").status_code == 401


# --- Grading ---

def test_grading_flow(student_client, teacher_client, exam, started):
    subjective = question_of(exam, Question.QuestionType.SUBJECTIVE)
    student_client.post(attempt_url(started, "save"), {"questionId": subjective.pk, "textAnswer": "Essay"}, format="json")
    student_client.post(attempt_url(started, "submit"), format="json")

    pending = teacher_client.get("/api/grading/pending/")
    assert [a["id"] for a in pending.data] == [started]
    assert pending.data[0]["student_email"] == "student@example.com"

    response = teacher_client.post(f"/api/grading/attempts/{started}/grade/", {
        "grades": [{"question_id": subjective.pk, "marks": "4", "feedback": "Good"}],
    }, format="json")

    assert response.status_code == 200
    assert response.data["attempt"]["is_graded"] is True
    assert response.data["attempt"]["marks_obtained"] == "4.00"


def test_students_cannot_see_grading_queue(student_client):
    assert student_client.get("/api/grading/pending/").status_code == 403


# --- Authoring ---

def test_teacher_creates_exam_and_question(teacher_client):
    response = teacher_client.post("/api/exams/", {
        "title": "Algebra", "duration_minutes": 30, "total_marks": "10", "passing_marks": "5",
    }, format="json")
    assert response.status_code == 201
    exam_id = response.data["id"]

    response = teacher_client.post("/api/questions/", {
        "exam": exam_id,
        "question_text": "2 + 2 = ?",
        "question_type": "single_choice",
        "marks": "2",
        "options": [{"text": "4", "is_correct": True}, {"text": "5", "is_correct": False}],
    }, format="json")
    assert response.status_code == 201
    assert Question.objects.get(pk=response.data["id"]).options.filter(is_correct=True).count() == 1


def test_choice_question_needs_a_correct_option(teacher_client, exam):
    response = teacher_client.post("/api/questions/", {
        "exam": exam.pk, "question_text": "?", "question_type": "single_choice",
        "options": [{"text": "a", "is_correct": False}, {"text": "b", "is_correct": False}],
    }, format="json")
    assert response.status_code == 400


def test_exam_is_locked_once_attempted(teacher_client, exam, started):
    response = teacher_client.patch(f"/api/exams/{exam.pk}/", {"duration_minutes": 5}, format="json")
    assert response.status_code == 409

    question = exam.questions.first()
    assert teacher_client.delete(f"/api/questions/{question.pk}/").status_code == 409
    assert Exam.objects.get(pk=exam.pk).duration_minutes == 60


def test_students_only_list_published_exams(student_client, exam):
    make_exam(title="Draft", is_active=False)
    response = student_client.get("/api/exams/")

    assert response.status_code == 200
    assert [e["title"] for e in response.data] == [exam.title]
    assert student_client.post("/api/exams/", {"title": "Nope", "duration_minutes": 5}, format="json").status_code == 403


def test_bulk_upload(teacher_client):
    exam = make_exam(title="Imported")
    csv_body = (
        "question_text,question_type,marks,options,correct_answer,numerical_answer\n"
        "Capital of France?,single_choice,2,Paris|Lyon|Nice,Paris,\n"
        "Primes,multiple_choice,4,2|4|5,2|5,\n"
        "Speed of sound (m/s)?,numerical,3,,,343\n"
        "Explain osmosis,subjective,5,,,\n"
    )
    upload = SimpleUploadedFile("questions.csv", csv_body.encode("utf-8"), content_type="text/csv")

    response = teacher_client.post("/api/questions/bulk-upload/", {"exam": exam.pk, "file": upload}, format="multipart")

    assert response.status_code == 201
    assert exam.questions.count() == 4
    primes = exam.questions.get(question_type="multiple_choice")
    assert sorted(o.text for o in primes.options.filter(is_correct=True)) == ["2", "5"]


def test_bulk_upload_rejects_bad_rows(teacher_client):
    exam = make_exam(title="Imported")
    csv_body = (
        "question_text,question_type,marks,options,correct_answer\n"
        "Fine,true_false,1,,True\n"
        "Broken,single_choice,1,A|B,C\n"
    )
    upload = SimpleUploadedFile("questions.csv", csv_body.encode("utf-8"), content_type="text/csv")

    response = teacher_client.post("/api/questions/bulk-upload/", {"exam": exam.pk, "file": upload}, format="multipart")

    assert response.status_code == 400
    assert response.data["error"].startswith("Row 3")
    assert exam.questions.count() == 0

from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from assessments.autosave import get_pipeline
from exams.models import Question
from users.models import User
from .factories import add_question, make_exam, make_user


@pytest.fixture(autouse=True)
def synchronous_autosave(settings):
    """Autosave writes inline so they share the test transaction."""
    settings.EXAM_ENGINE = {"AUTOSAVE_ASYNC": False}
    get_pipeline.cache_clear()
    yield
    get_pipeline.cache_clear()


@pytest.fixture
def student(db):
    return make_user("student")


@pytest.fixture
def other_student(db):
    return make_user("other")


@pytest.fixture
def teacher(db):
    return make_user("teacher", role=User.Role.TEACHER)


@pytest.fixture
def exam(db):
    """One question of every type, 18 marks in all."""
    exam = make_exam()
    add_question(exam, Question.QuestionType.SINGLE_CHOICE, marks="2", negative_marks=Decimal("0.5"),
                 options=[("Newton", True), ("Pascal", False), ("Joule", False)])
    add_question(exam, Question.QuestionType.MULTIPLE_CHOICE, marks="4",
                 options=[("A", True), ("B", False), ("C", True), ("D", False)])
    add_question(exam, Question.QuestionType.TRUE_FALSE, marks="1",
                 options=[("True", True), ("False", False)])
    add_question(exam, Question.QuestionType.NUMERICAL, marks="6",
                 numerical_answer=Decimal("7.5"), numerical_tolerance=Decimal("0.1"))
    add_question(exam, Question.QuestionType.SUBJECTIVE, marks="5", model_answer="Energy is conserved.")
    return exam


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def student_client(student):
    client = APIClient()
    client.force_authenticate(user=student)
    return client


@pytest.fixture
def teacher_client(teacher):
    client = APIClient()
    client.force_authenticate(user=teacher)
    return client

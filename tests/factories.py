"""Small builders for exams and users shared by the test modules."""
from decimal import Decimal

from exams.models import Exam, Option, Question
from users.models import User


def make_user(name, role=User.Role.STUDENT, **extra):
    return User.objects.create_user(
        username=name, email=f"{name}@example.com", password="pass1234", role=role, **extra
    )


def make_exam(**overrides):
    fields = {
        "title": "Physics Mid-Term",
        "subject": "Physics",
        "class_grade": "10",
        "duration_minutes": 60,
        "total_marks": Decimal("100"),
        "passing_marks": Decimal("40"),
        "is_active": True,
    }
    fields.update(overrides)
    return Exam.objects.create(**fields)


def add_question(exam, question_type, marks="1", options=(), **fields):
    """``options`` is a sequence of (text, is_correct) pairs."""
    question = Question.objects.create(
        exam=exam,
        text=f"{question_type} question",
        question_type=question_type,
        marks=Decimal(marks),
        sequence_order=exam.questions.count(),
        **fields,
    )
    for position, (text, is_correct) in enumerate(options):
        Option.objects.create(question=question, text=text, is_correct=is_correct, sequence_order=position)
    return question


def option_ids(question, *texts):
    by_text = {o.text: o.pk for o in question.options.all()}
    return [by_text[t] for t in texts]


def question_of(exam, question_type):
    return exam.questions.get(question_type=question_type)

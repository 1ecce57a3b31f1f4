"""
Question bank access for exam attempts.

Loads an exam with its ordered questions and options. Randomised order is
derived from the attempt's stored ``shuffle_seed`` so a reload mid-exam
always shows the same sequence.
"""
import random
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from django.utils import timezone

from assessments.conf import engine_setting
from assessments.exceptions import NotFound
from .models import Exam, Question


@dataclass
class ExamBundle:
    exam: Exam
    questions: List[Question]


def get_exam(exam_id) -> Exam:
    try:
        return Exam.objects.get(pk=exam_id, is_active=True)
    except Exam.DoesNotExist:
        raise NotFound("Exam not found.")


def ordered_questions(exam: Exam, seed: Optional[int] = None) -> List[Question]:
    """
    Questions of ``exam`` in attempt order, each with ``ordered_options`` set.

    Without a seed (or with randomisation off) the authored order is kept.
    """
    questions = list(exam.questions.prefetch_related('options').order_by('sequence_order', 'id'))
    if seed is not None and exam.randomize_questions:
        random.Random(seed).shuffle(questions)

    for question in questions:
        options = list(question.options.all())
        if seed is not None and exam.randomize_options:
            random.Random(f"{seed}:{question.pk}").shuffle(options)
        question.ordered_options = options
    return questions


def load_exam_for_attempt(exam_id, attempt=None, now=None) -> ExamBundle:
    """
    Fetch an exam and its question set for taking.

    The scheduling window is only enforced when no attempt exists yet; a
    started attempt stays completable after the window closes.
    """
    if attempt is None:
        exam = get_exam(exam_id)
        now = now or timezone.now()
        early_entry = timedelta(minutes=engine_setting("EARLY_ENTRY_MINUTES"))
        if not exam.is_open_at(now, early_entry):
            raise NotFound("Exam is not open at this time.")
        seed = None
    else:
        if attempt.exam_id != int(exam_id):
            raise NotFound("Exam not found.")
        exam = attempt.exam
        seed = attempt.shuffle_seed

    return ExamBundle(exam=exam, questions=ordered_questions(exam, seed))

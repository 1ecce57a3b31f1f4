"""
Manual grading of answers the scoring engine left pending.

A teacher awards marks per question; the attempt's aggregates, pass/fail
and graded state are then recomputed from the persisted responses so the
marks total stays equal to the sum of awarded marks.
"""
import logging

from django.db import transaction
from django.utils import timezone

from . import scoring
from .exceptions import Conflict, Forbidden, NotFound, ValidationError
from .models import ExamAttempt

logger = logging.getLogger(__name__)


def pending_grading_queryset():
    return (ExamAttempt.objects.select_related('exam', 'student')
            .exclude(status=ExamAttempt.Status.IN_PROGRESS)
            .filter(is_graded=False)
            .order_by('submitted_at'))


def grade_attempt(attempt_id, grader, grades) -> ExamAttempt:
    """
    Apply teacher marks to an ended attempt.

    ``grades`` is a list of ``{"question_id", "marks", "feedback"}``. Only
    responses still awaiting manual grading (subjective, or numerical without
    a key) may be graded here.
    """
    if not getattr(grader, 'can_grade', False):
        raise Forbidden("Only teachers can grade attempts.")

    with transaction.atomic():
        try:
            attempt = (ExamAttempt.objects.select_for_update(of=('self',))
                       .select_related('exam').get(pk=attempt_id))
        except ExamAttempt.DoesNotExist:
            raise NotFound("Attempt not found.")
        if not attempt.is_terminal:
            raise Conflict("Attempt has not been submitted yet.")

        responses = {r.question_id: r for r in attempt.responses.select_related('question')}
        for grade in grades:
            response = responses.get(grade['question_id'])
            if response is None:
                raise NotFound(f"No response for question {grade['question_id']} in this attempt.")
            question = response.question
            if not _needs_manual_grading(question):
                raise ValidationError(f"Question {question.pk} is graded automatically.")
            if not response.is_attempted:
                raise ValidationError(f"Question {question.pk} was not answered.")

            marks = grade['marks']
            if marks < 0 or marks > question.marks:
                raise ValidationError(f"Marks for question {question.pk} must be between 0 and {question.marks}.")

            response.marks_awarded = marks
            response.is_correct = marks > 0
            response.grader_feedback = grade.get('feedback', '')
            response.save(update_fields=['marks_awarded', 'is_correct', 'grader_feedback'])

        summary = scoring.summarise(attempt, responses)
        scoring.apply_summary(attempt, summary)
        attempt.graded_by = grader
        attempt.graded_at = timezone.now()
        attempt.save()

    logger.info(
        f"Attempt {attempt.pk} graded by {grader.pk}: marks={attempt.marks_obtained} "
        f"passed={attempt.is_passed} pending={summary.pending}"
    )
    return attempt


def _needs_manual_grading(question):
    if question.question_type == question.QuestionType.SUBJECTIVE:
        return True
    return (question.question_type == question.QuestionType.NUMERICAL
            and question.numerical_answer is None)
